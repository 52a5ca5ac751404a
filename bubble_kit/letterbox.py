from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class LetterboxTransform:
    """
    Mapping between the square model input and the original image.

    model -> original: (p - offset) / scale
    original -> model: offset + p * scale
    """

    scale: float
    offset_x: float
    offset_y: float
    input_size: int


def compute_transform(original_width: float, original_height: float, input_size: int = 640) -> LetterboxTransform:
    scale = min(input_size / original_width, input_size / original_height)
    scaled_w = original_width * scale
    scaled_h = original_height * scale
    return LetterboxTransform(
        scale=scale,
        offset_x=(input_size - scaled_w) / 2,
        offset_y=(input_size - scaled_h) / 2,
        input_size=input_size,
    )


def to_original(point: Tuple[float, float], transform: LetterboxTransform) -> Tuple[float, float]:
    x, y = point
    return (x - transform.offset_x) / transform.scale, (y - transform.offset_y) / transform.scale


def to_model_space(point: Tuple[float, float], transform: LetterboxTransform) -> Tuple[float, float]:
    x, y = point
    return transform.offset_x + x * transform.scale, transform.offset_y + y * transform.scale


def mask_scale(mask_dim: int, input_size: int) -> float:
    """Factor from model-input pixels to prototype-grid cells (e.g. 160 / 640)."""
    return mask_dim / input_size


def boxes_to_original(boxes: np.ndarray, transform: LetterboxTransform) -> np.ndarray:
    """
    Map (N, 4) xyxy boxes from model space to original image space. Returns a new array.
    """

    out = np.array(boxes, dtype=np.float64, copy=True)
    out[:, [0, 2]] = (out[:, [0, 2]] - transform.offset_x) / transform.scale
    out[:, [1, 3]] = (out[:, [1, 3]] - transform.offset_y) / transform.scale
    return out


def boxes_to_model_space(boxes: np.ndarray, transform: LetterboxTransform) -> np.ndarray:
    out = np.array(boxes, dtype=np.float64, copy=True)
    out[:, [0, 2]] = transform.offset_x + out[:, [0, 2]] * transform.scale
    out[:, [1, 3]] = transform.offset_y + out[:, [1, 3]] * transform.scale
    return out


def letterbox_image(
    image: np.ndarray,
    input_size: int = 640,
    color: Tuple[int, int, int] = (128, 128, 128),
) -> Tuple[np.ndarray, LetterboxTransform]:
    """
    Resize an image into a square canvas keeping its aspect ratio, centered on a gray pad.

    Returns:
        padded: (input_size, input_size, C) image
        transform: the LetterboxTransform describing the placement

    The pasted image is placed at integer pixel offsets; the returned transform
    keeps the exact fractional offsets, so boxes decode within half a pixel of
    the drawn content.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox_image(). Install with `pip install opencv-python`.") from e

    if image.ndim != 3:
        raise ValueError(f"Expected image shape (H, W, C), got {image.shape}")

    h, w = image.shape[:2]
    transform = compute_transform(w, h, input_size)

    resized_w = max(1, int(round(w * transform.scale)))
    resized_h = max(1, int(round(h * transform.scale)))
    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    left = int(round(transform.offset_x - 0.1))
    top = int(round(transform.offset_y - 0.1))
    right = input_size - resized_w - left
    bottom = input_size - resized_h - top
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, transform
