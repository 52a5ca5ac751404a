from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import numpy as np

from .types import Detection


BOX_COLOR: Tuple[int, int, int] = (0, 212, 187)
POLYGON_COLOR: Tuple[int, int, int] = (255, 56, 56)


def polygon_to_pixels(det: Detection) -> Optional[np.ndarray]:
    """
    Project a detection's local percentage polygon into image pixels.

    The polygon is expressed in the mask-crop frame, which is laid over the
    detection box here, as the overlay renderer does with a clip-path.
    """

    if det.polygon is None:
        return None
    x1, y1, x2, y2 = det.as_xyxy()
    pts: List[Tuple[float, float]] = [
        (x1 + px / 100.0 * (x2 - x1), y1 + py / 100.0 * (y2 - y1)) for px, py in det.polygon
    ]
    return np.round(np.array(pts, dtype=np.float64)).astype(np.int32)


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    box_thickness: int = 1,
    polygon_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw bubble boxes, outlines and scores on an OpenCV BGR image and return a copy.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), BOX_COLOR, thickness=box_thickness)

        pts = polygon_to_pixels(det)
        if pts is not None:
            cv2.polylines(out, [pts.reshape(-1, 1, 2)], isClosed=True, color=POLYGON_COLOR, thickness=polygon_thickness)

        if not show_score:
            continue

        label = f"bubble {det.confidence:.2f}"
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i

        x_text_right = min(x1i + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)
        cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), BOX_COLOR, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
