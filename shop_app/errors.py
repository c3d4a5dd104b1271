"""Error taxonomy shared by the extraction and matching pipeline."""

from __future__ import annotations


class ShopError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigError(ShopError):
    """A required backend or credential is not configured."""


class UpstreamUnavailable(ConfigError):
    """The generative backend cannot be used at all for this request."""


class UpstreamError(ShopError):
    """Network failure, timeout or non-2xx response from an external service."""


class FetchError(UpstreamError):
    """An image could not be downloaded."""


class BlobStoreError(UpstreamError):
    """A generated image could not be persisted."""


class ParseError(ShopError):
    """A backend replied with text or JSON we could not interpret."""


__all__ = [
    "BlobStoreError",
    "ConfigError",
    "FetchError",
    "ParseError",
    "ShopError",
    "UpstreamError",
    "UpstreamUnavailable",
]
