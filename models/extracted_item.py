"""Extracted clothing item data model and helpers."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models.taxonomy import normalize_piece_type

DEFAULT_BOX = (0.1, 0.1, 0.8, 0.8)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _clean_attribute(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def item_id_for(image_ref: str, index: int, prefix: str = "extracted") -> str:
    """Derive a stable item id from the source image and list position."""

    digest = hashlib.md5(f"{image_ref}{index}".encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:8]}"


@dataclass(frozen=True)
class BoundingBox:
    """Normalised rectangle relative to the source image."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _clamp(_as_float(self.x, 0.0)))
        object.__setattr__(self, "y", _clamp(_as_float(self.y, 0.0)))
        object.__setattr__(self, "width", _clamp(_as_float(self.width, 0.0)))
        object.__setattr__(self, "height", _clamp(_as_float(self.height, 0.0)))

    @classmethod
    def from_raw(cls, raw: Any) -> "BoundingBox":
        if not isinstance(raw, dict):
            return cls(*DEFAULT_BOX)
        return cls(
            x=_as_float(raw.get("x"), DEFAULT_BOX[0]),
            y=_as_float(raw.get("y"), DEFAULT_BOX[1]),
            width=_as_float(raw.get("width"), DEFAULT_BOX[2]),
            height=_as_float(raw.get("height"), DEFAULT_BOX[3]),
        )

    @property
    def area(self) -> float:
        return self.width * self.height

    def overlap_ratio(self, other: "BoundingBox") -> float:
        """Intersection over union of the two boxes."""

        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.x + self.width, other.x + other.width)
        y2 = min(self.y + self.height, other.y + other.height)
        if x2 <= x1 or y2 <= y1:
            return 0.0
        overlap = (x2 - x1) * (y2 - y1)
        union = self.area + other.area - overlap
        return overlap / union if union > 0 else 0.0

    def as_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class ExtractedItem:
    """One physical clothing or accessory piece detected in a flat lay."""

    id: str
    piece_type: str
    description: str
    bounding_box: BoundingBox = field(default_factory=lambda: BoundingBox(*DEFAULT_BOX))
    confidence: float = 0.8
    color: Optional[str] = None
    pattern: Optional[str] = None
    style: Optional[str] = None
    extracted_image_url: Optional[str] = None
    extracted_image_path: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "piece_type", normalize_piece_type(self.piece_type))
        object.__setattr__(self, "confidence", _clamp(_as_float(self.confidence, 0.0)))
        if not self.description:
            object.__setattr__(self, "description", f"{self.piece_type} item")

    @property
    def has_image(self) -> bool:
        return bool(self.extracted_image_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pieceType": self.piece_type,
            "description": self.description,
            "boundingBox": self.bounding_box.as_dict(),
            "confidence": self.confidence,
            "color": self.color,
            "pattern": self.pattern,
            "style": self.style,
            "extractedImageUrl": self.extracted_image_url,
            "extractedImagePath": self.extracted_image_path,
        }


def from_descriptor(descriptor: Dict[str, Any], image_ref: str, index: int) -> ExtractedItem:
    """Factory to build an :class:`ExtractedItem` from a model item descriptor."""

    piece_type = _clean_attribute(descriptor.get("pieceType")) or "unknown"
    confidence = descriptor.get("confidence")
    return ExtractedItem(
        id=item_id_for(image_ref, index),
        piece_type=piece_type,
        description=_clean_attribute(descriptor.get("description")) or f"{piece_type} item",
        bounding_box=BoundingBox.from_raw(descriptor.get("boundingBox")),
        confidence=_as_float(confidence, 0.8) if confidence else 0.8,
        color=_clean_attribute(descriptor.get("color")),
        pattern=_clean_attribute(descriptor.get("pattern")),
        style=_clean_attribute(descriptor.get("style")),
    )


__all__ = ["BoundingBox", "ExtractedItem", "from_descriptor", "item_id_for"]
