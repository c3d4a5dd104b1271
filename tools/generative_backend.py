"""Generative model backend abstraction and the Gemini implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from google import generativeai as genai

from shop_app.errors import UpstreamError, UpstreamUnavailable
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60

# genai.configure mutates process-wide SDK state shared by every GeminiBackend.
_configured_api_key: str | None = None


def configure_sdk(api_key: str | None) -> None:
    """Point the SDK at ``api_key`` unless it is already configured with it."""

    global _configured_api_key
    if not api_key or api_key == _configured_api_key:
        return
    genai.configure(api_key=api_key)
    _configured_api_key = api_key


@dataclass
class InlineImage:
    data: bytes
    mime_type: str = "image/png"


@dataclass
class GenerationResult:
    """Text and inline images returned by one model call."""

    text: str = ""
    inline_images: List[InlineImage] = field(default_factory=list)

    @property
    def first_image(self) -> Optional[InlineImage]:
        return self.inline_images[0] if self.inline_images else None


class GenerativeBackend(ABC):
    """Abstract multimodal model interface."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def generate(
        self,
        prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
        grounded: bool = False,
    ) -> GenerationResult:
        """Run one prompt, optionally with an input image or search grounding."""

    def test_connection(self) -> bool:
        """Return True when a trivial prompt round-trips successfully."""

        if not self.is_configured:
            return False
        try:
            result = self.generate("Reply with the single word: ok")
        except UpstreamError as exc:
            LOGGER.warning("Generative backend connection test failed", extra={"error": str(exc)})
            return False
        return bool(result.text.strip())


class GeminiBackend(GenerativeBackend):
    """Gemini backend built on ``google.generativeai``."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        configure_sdk(api_key)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_model(self, grounded: bool) -> Any:
        if grounded:
            return genai.GenerativeModel(self.model, tools="google_search_retrieval")
        return genai.GenerativeModel(self.model)

    @instrument_call("gemini_generate")
    def generate(
        self,
        prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
        grounded: bool = False,
    ) -> GenerationResult:
        if not self.is_configured:
            raise UpstreamUnavailable("Gemini API key is not configured")

        contents: List[Any] = [prompt]
        if image_bytes:
            contents.append({"mime_type": mime_type, "data": image_bytes})

        try:
            response = self._build_model(grounded).generate_content(
                contents, request_options={"timeout": self.timeout_seconds}
            )
        except Exception as exc:  # the SDK raises google.api_core and transport errors alike
            raise UpstreamError(f"Gemini request failed: {exc}") from exc
        return _to_result(response)


def _to_result(response: Any) -> GenerationResult:
    result = GenerationResult()
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return result
    content = getattr(candidates[0], "content", None)
    texts: List[str] = []
    for part in getattr(content, "parts", None) or []:
        text = getattr(part, "text", None)
        if text:
            texts.append(text)
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None) if inline is not None else None
        if data:
            result.inline_images.append(
                InlineImage(data=data, mime_type=getattr(inline, "mime_type", None) or "image/png")
            )
    result.text = "".join(texts)
    return result


class MockGenerativeBackend(GenerativeBackend):
    """Deterministic backend for tests and offline runs.

    ``responder`` receives the prompt and whether an image was attached and
    returns a :class:`GenerationResult`, or raises to simulate failures.
    Every call is recorded in :attr:`calls`.
    """

    def __init__(
        self,
        responses: Sequence[GenerationResult] | None = None,
        responder: Callable[[str, bool], GenerationResult] | None = None,
        configured: bool = True,
    ) -> None:
        self._responses = list(responses or [])
        self._responder = responder
        self._configured = configured
        self.calls: List[dict] = []

    @property
    def is_configured(self) -> bool:
        return self._configured

    def generate(
        self,
        prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
        grounded: bool = False,
    ) -> GenerationResult:
        self.calls.append({"prompt": prompt, "has_image": bool(image_bytes), "grounded": grounded})
        if self._responder is not None:
            return self._responder(prompt, bool(image_bytes))
        if self._responses:
            return self._responses.pop(0)
        return GenerationResult()


__all__ = [
    "GeminiBackend",
    "GenerationResult",
    "GenerativeBackend",
    "InlineImage",
    "MockGenerativeBackend",
    "configure_sdk",
]
