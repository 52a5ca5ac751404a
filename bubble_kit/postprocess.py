from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from .letterbox import LetterboxTransform, boxes_to_original
from .types import BoxXYXY, CandidateDetection


logger = logging.getLogger(__name__)

# Row layout of the detection head: cx, cy, w, h, confidence, then mask coefficients.
CONF_INDEX = 4
COEFF_START = 5


class OutputShapeError(ValueError):
    """Raised when model outputs do not match the segmentation head layout."""


def validate_outputs(
    preds: np.ndarray,
    protos: Optional[np.ndarray] = None,
    num_mask_coeffs: int = 32,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Strip the batch axis and check the layout of the raw outputs.

    Accepts:
    - preds: (1, 5 + K, A) or (5 + K, A), channel-major
    - protos: (1, K, Mh, Mw) or (K, Mh, Mw), optional

    Returns the 2-D detection array and the 3-D prototype array (or None).
    """

    p = np.asarray(preds)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise OutputShapeError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]
    if p.ndim != 2:
        raise OutputShapeError(f"Expected detection output (1, 5 + K, A), got shape {np.shape(preds)}")
    if p.shape[0] < COEFF_START:
        raise OutputShapeError(
            f"Detection output needs at least {COEFF_START} feature rows (box + confidence), got {p.shape[0]}"
        )

    if protos is None:
        return p, None

    m = np.asarray(protos)
    if m.ndim == 4:
        if m.shape[0] != 1:
            raise OutputShapeError(f"Batch > 1 is not supported for prototypes (got shape {m.shape}).")
        m = m[0]
    if m.ndim != 3:
        raise OutputShapeError(f"Expected prototype masks (1, K, Mh, Mw), got shape {np.shape(protos)}")
    if m.shape[0] != num_mask_coeffs:
        raise OutputShapeError(f"Expected {num_mask_coeffs} prototype masks, got {m.shape[0]}")
    if p.shape[0] < COEFF_START + num_mask_coeffs:
        raise OutputShapeError(
            f"Detection output has {p.shape[0]} feature rows; {COEFF_START + num_mask_coeffs} needed "
            f"for {num_mask_coeffs} mask coefficients"
        )
    if m.shape[1] == 0 or m.shape[2] == 0:
        raise OutputShapeError(f"Prototype masks are empty (shape {m.shape})")
    return p, m


def feature_at(preds: np.ndarray, feature_index: int, box_index: int) -> float:
    """
    Read one scalar from a channel-major (features, boxes) output.

    Each feature occupies a contiguous run of `num_boxes` values, so the flat
    offset is `feature_index * num_boxes + box_index`.
    """

    num_boxes = preds.shape[-1]
    return float(preds.reshape(-1)[feature_index * num_boxes + box_index])


def feature_row(preds: np.ndarray, feature_index: int) -> np.ndarray:
    """The contiguous run of `num_boxes` values for one feature."""
    num_boxes = preds.shape[-1]
    start = feature_index * num_boxes
    return preds.reshape(-1)[start : start + num_boxes]


def decode_candidates(
    preds: np.ndarray,
    original_size: Tuple[int, int],
    transform: LetterboxTransform,
    conf_threshold: float = 0.3,
    num_mask_coeffs: int = 32,
) -> List[CandidateDetection]:
    """
    Convert a validated (5 + K, A) output into candidates in original image pixels.

    Boxes below `conf_threshold` are skipped. Surviving boxes are converted from
    center form, mapped out of the letterbox and clamped to [0, W] x [0, H].
    Degenerate boxes are still emitted; suppression guards against them.
    """

    orig_w, orig_h = original_size
    conf = feature_row(preds, CONF_INDEX)
    keep = np.nonzero(conf >= conf_threshold)[0]
    if keep.size == 0:
        return []

    cx = feature_row(preds, 0)[keep].astype(np.float64)
    cy = feature_row(preds, 1)[keep].astype(np.float64)
    w = feature_row(preds, 2)[keep].astype(np.float64)
    h = feature_row(preds, 3)[keep].astype(np.float64)

    # Corners stay ordered even for a negative width/height.
    half_w = np.abs(w) / 2
    half_h = np.abs(h) / 2
    boxes = boxes_to_original(np.stack([cx - half_w, cy - half_h, cx + half_w, cy + half_h], axis=1), transform)
    x1 = np.clip(boxes[:, 0], 0, orig_w)
    y1 = np.clip(boxes[:, 1], 0, orig_h)
    x2 = np.clip(boxes[:, 2], 0, orig_w)
    y2 = np.clip(boxes[:, 3], 0, orig_h)

    num_coeffs = min(num_mask_coeffs, preds.shape[0] - COEFF_START)
    if num_coeffs > 0:
        coeffs = np.stack([feature_row(preds, COEFF_START + c)[keep] for c in range(num_coeffs)], axis=1)
    else:
        coeffs = np.zeros((keep.size, 0), dtype=np.float32)

    candidates = [
        CandidateDetection(
            bbox=BoxXYXY(float(x1[k]), float(y1[k]), float(x2[k]), float(y2[k])),
            confidence=float(np.clip(conf[i], 0.0, 1.0)),
            mask_coeffs=coeffs[k].astype(np.float32),
        )
        for k, i in enumerate(keep)
    ]
    logger.debug("Decoded %d/%d candidates above conf %.2f", len(candidates), conf.size, conf_threshold)
    return candidates
