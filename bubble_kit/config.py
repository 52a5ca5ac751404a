from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class SegPostConfig:
    """
    Thresholds and geometry for speech bubble post-processing.
    """

    conf_threshold: float = 0.3
    nms_threshold: float = 0.5
    mask_threshold: float = 0.5
    input_size: int = 640
    polygon_stride: int = 2
    num_mask_coeffs: int = 32
    # None keeps every survivor of NMS.
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("conf_threshold", "nms_threshold", "mask_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.input_size <= 0:
            raise ValueError("input_size must be > 0")
        if self.polygon_stride < 1:
            raise ValueError("polygon_stride must be >= 1")
        if self.num_mask_coeffs < 1:
            raise ValueError("num_mask_coeffs must be >= 1")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 when set")


@dataclass(frozen=True)
class LetterboxConfig:
    input_size: int = 640
    color: Tuple[int, int, int] = (128, 128, 128)


_FLOAT_KEYS = {"conf_threshold", "nms_threshold", "mask_threshold"}
_INT_KEYS = {"input_size", "polygon_stride", "num_mask_coeffs", "max_detections"}


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_seg_config(path: Path) -> SegPostConfig:
    """
    Load a SegPostConfig from a JSON object. Missing keys keep their defaults;
    unknown keys are rejected.
    """

    if not path.exists():
        raise FileNotFoundError(f"Segmentation config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid segmentation config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Segmentation config must be a JSON object")

    unknown = sorted(set(payload.keys()) - _FLOAT_KEYS - _INT_KEYS)
    if unknown:
        raise ValueError(f"Unknown segmentation config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in _FLOAT_KEYS & payload.keys():
        kwargs[key] = _require_number(payload, key)
    for key in _INT_KEYS & payload.keys():
        if key == "max_detections" and payload[key] is None:
            kwargs[key] = None
            continue
        kwargs[key] = _require_int(payload, key)

    return SegPostConfig(**kwargs)
