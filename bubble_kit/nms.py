from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, TypeVar

import numpy as np

from .types import BoxXYXY, CandidateDetection


@dataclass
class NMSConfig:
    iou_threshold: float = 0.5
    max_detections: Optional[int] = None


def _areas(x1: np.ndarray, y1: np.ndarray, x2: np.ndarray, y2: np.ndarray) -> np.ndarray:
    # Inverted boxes count as empty.
    return np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)


def box_iou(a: BoxXYXY, b: BoxXYXY) -> float:
    """
    Intersection over union of two pixel boxes; 0.0 when both are empty.
    """

    inter_w = max(0.0, min(a.x2, b.x2) - max(a.x1, b.x1))
    inter_h = max(0.0, min(a.y2, b.y2) - max(a.y1, b.y1))
    inter = inter_w * inter_h
    area_a = max(0.0, a.x2 - a.x1) * max(0.0, a.y2 - a.y1)
    area_b = max(0.0, b.x2 - b.x1) * max(0.0, b.y2 - b.y1)
    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    A box is suppressed when its IoU with an already kept box is strictly
    greater than `cfg.iou_threshold`. Ties in score keep the earlier index.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    boxes = np.asarray(boxes, dtype=np.float64)
    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = _areas(x1, y1, x2, y2)

    order = np.argsort(-np.asarray(scores, dtype=np.float64), kind="stable")
    keep: List[int] = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(int(i))

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        iou = np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)

        inds = np.where(iou <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int32)


C = TypeVar("C", bound=CandidateDetection)


def suppress(candidates: Sequence[C], cfg: NMSConfig) -> List[C]:
    """
    Run NMS over candidate detections and return the survivors, highest confidence first.
    """

    if not candidates:
        return []
    boxes = np.array([c.bbox.as_tuple() for c in candidates], dtype=np.float64)
    scores = np.array([c.confidence for c in candidates], dtype=np.float64)
    return [candidates[i] for i in nms(boxes, scores, cfg)]
