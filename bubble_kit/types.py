from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .polygon import Polygon, parse_css_polygon, polygon_to_css


@dataclass(frozen=True)
class BoxXYXY:
    """
    Axis-aligned box in original image pixels.
    """

    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2


@dataclass(eq=False)
class CandidateDetection:
    """
    Decoded box before suppression.

    `mask` and `polygon` start empty and are attached by the pipeline once the
    prototype masks have been combined for this candidate.
    """

    bbox: BoxXYXY
    confidence: float
    mask_coeffs: np.ndarray
    mask: Optional[np.ndarray] = field(default=None, repr=False)
    polygon: Optional[Polygon] = None


@dataclass(frozen=True)
class Detection:
    """
    Final speech bubble detection handed to callers.

    center/size are normalized to the image (0..1); `bbox` is in pixels and
    `polygon` holds (percent_x, percent_y) points in the local mask-crop frame.
    """

    center_x: float
    center_y: float
    width: float
    height: float
    confidence: float
    bbox: BoxXYXY
    polygon: Optional[Polygon] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.bbox.as_tuple()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.center_x,
            "y": self.center_y,
            "width": self.width,
            "height": self.height,
            "confidence": self.confidence,
            "bbox": {"x1": self.bbox.x1, "y1": self.bbox.y1, "x2": self.bbox.x2, "y2": self.bbox.y2},
            "mask_path": polygon_to_css(self.polygon) if self.polygon is not None else None,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Detection":
        bbox = payload["bbox"]
        mask_path = payload.get("mask_path")
        return cls(
            center_x=float(payload["x"]),
            center_y=float(payload["y"]),
            width=float(payload["width"]),
            height=float(payload["height"]),
            confidence=float(payload["confidence"]),
            bbox=BoxXYXY(float(bbox["x1"]), float(bbox["y1"]), float(bbox["x2"]), float(bbox["y2"])),
            polygon=parse_css_polygon(mask_path) if mask_path else None,
        )


@dataclass(frozen=True)
class DetectionResult:
    detections: Tuple[Detection, ...]
    image_width: int
    image_height: int
    inference_time_ms: float

    def __len__(self) -> int:
        return len(self.detections)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bubbles": [d.to_dict() for d in self.detections],
            "image_width": self.image_width,
            "image_height": self.image_height,
            "inference_time_ms": self.inference_time_ms,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DetectionResult":
        bubbles: List[Dict[str, Any]] = payload.get("bubbles", [])
        return cls(
            detections=tuple(Detection.from_dict(b) for b in bubbles),
            image_width=int(payload["image_width"]),
            image_height=int(payload["image_height"]),
            inference_time_ms=float(payload["inference_time_ms"]),
        )


def is_comic(result: DetectionResult, min_bubbles: int = 1, min_confidence: float = 0.5) -> bool:
    """
    Treat an image as a comic page once it carries at least `min_bubbles` speech
    bubbles scored at or above `min_confidence`.
    """

    confident = [d for d in result.detections if d.confidence >= min_confidence]
    return len(confident) >= min_bubbles


def bubble_at_point(result: DetectionResult, x: float, y: float) -> Optional[Detection]:
    """
    First detection whose box contains pixel (x, y), edges included; None otherwise.

    Used for hover lookups, so the point is in the same pixel frame as the image
    the result was computed on.
    """

    nx = x / result.image_width
    ny = y / result.image_height
    for det in result.detections:
        half_w = det.width / 2
        half_h = det.height / 2
        if det.center_x - half_w <= nx <= det.center_x + half_w and det.center_y - half_h <= ny <= det.center_y + half_h:
            return det
    return None
