"""Persistence of generated images behind a public URL."""

from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from shop_app.errors import BlobStoreError

LOGGER = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredBlob:
    url: str
    path: Optional[str] = None


def _safe_name(suggested_name: str, extension: str = ".png") -> str:
    stem = _UNSAFE_NAME_CHARS.sub("-", suggested_name or "blob").strip("-") or "blob"
    return f"{stem}-{uuid.uuid4().hex[:8]}{extension}"


class BlobStore(ABC):
    @abstractmethod
    def save(self, data: bytes, suggested_name: str) -> StoredBlob:
        """Persist ``data`` and return where it can be read back."""


class LocalBlobStore(BlobStore):
    """Writes blobs to a local directory served under ``base_url``."""

    def __init__(self, root_dir: str | Path, base_url: str, url_prefix: str = "generated") -> None:
        self.root_dir = Path(root_dir)
        self.base_url = base_url.rstrip("/")
        self.url_prefix = url_prefix.strip("/")

    def save(self, data: bytes, suggested_name: str) -> StoredBlob:
        if not data:
            raise BlobStoreError("Refusing to store an empty blob")
        filename = _safe_name(suggested_name)
        target = self.root_dir / filename
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Could not write {target}: {exc}") from exc
        LOGGER.debug("Stored blob", extra={"path": str(target), "length": len(data)})
        return StoredBlob(url=f"{self.base_url}/{self.url_prefix}/{filename}", path=str(target))


class InMemoryBlobStore(BlobStore):
    """Keeps blobs in a dict; used by tests and dry runs."""

    def __init__(self, base_url: str = "memory://blobs") -> None:
        self.base_url = base_url.rstrip("/")
        self.blobs: Dict[str, bytes] = {}

    def save(self, data: bytes, suggested_name: str) -> StoredBlob:
        if not data:
            raise BlobStoreError("Refusing to store an empty blob")
        filename = _safe_name(suggested_name)
        self.blobs[filename] = data
        return StoredBlob(url=f"{self.base_url}/{filename}", path=filename)


__all__ = ["BlobStore", "InMemoryBlobStore", "LocalBlobStore", "StoredBlob"]
