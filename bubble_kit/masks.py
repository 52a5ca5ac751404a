from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy.special import expit

from .letterbox import LetterboxTransform, mask_scale, to_model_space
from .types import BoxXYXY


def sigmoid(x: np.ndarray) -> np.ndarray:
    return expit(x)


@dataclass(frozen=True)
class MaskRegion:
    """
    Half-open window [x1, x2) x [y1, y2) on the prototype grid.
    """

    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1


def mask_crop_region(bbox: BoxXYXY, transform: LetterboxTransform, mask_shape: Tuple[int, int]) -> MaskRegion:
    """
    Project an original-image box onto the prototype grid.

    The box goes back into model space, is scaled by mask_dim / input_size,
    then floored/ceiled outward and clipped to the grid. The region is always
    at least one cell wide and tall.
    """

    mask_h, mask_w = mask_shape
    sx = mask_scale(mask_w, transform.input_size)
    sy = mask_scale(mask_h, transform.input_size)

    mx1, my1 = to_model_space((bbox.x1, bbox.y1), transform)
    mx2, my2 = to_model_space((bbox.x2, bbox.y2), transform)

    # Tolerance keeps exact grid edges from spilling into a neighbour cell on float noise.
    eps = 1e-6
    x1 = min(max(math.floor(mx1 * sx + eps), 0), mask_w - 1)
    y1 = min(max(math.floor(my1 * sy + eps), 0), mask_h - 1)
    x2 = min(max(math.ceil(mx2 * sx - eps), x1 + 1), mask_w)
    y2 = min(max(math.ceil(my2 * sy - eps), y1 + 1), mask_h)
    return MaskRegion(x1=x1, y1=y1, x2=x2, y2=y2)


def reconstruct_mask(coeffs: np.ndarray, protos: np.ndarray, region: MaskRegion) -> np.ndarray:
    """
    Soft mask for one detection, computed only inside `region`.

    protos: (K, Mh, Mw) prototype masks; coeffs: (K,) per-detection weights.
    Returns a (region.height, region.width) array of sigmoid(sum_k coeffs[k] * protos[k]).

    Cropping before the dot product keeps the cost proportional to the box
    area rather than the full grid for every detection.
    """

    crop = protos[:, region.y1 : region.y2, region.x1 : region.x2]
    logits = np.tensordot(np.asarray(coeffs, dtype=np.float64), crop.astype(np.float64), axes=(0, 0))
    return sigmoid(logits)
