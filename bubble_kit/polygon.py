from __future__ import annotations

import re
from typing import Optional, Sequence, Tuple

import numpy as np


Point = Tuple[float, float]
Polygon = Tuple[Point, ...]

_CSS_POLYGON_RE = re.compile(r"^\s*polygon\((?P<body>.*)\)\s*$", re.DOTALL)
_CSS_POINT_RE = re.compile(r"^\s*(?P<x>[-+]?\d*\.?\d+)%\s+(?P<y>[-+]?\d*\.?\d+)%\s*$")


def extract_polygon(mask: np.ndarray, threshold: float = 0.5, stride: int = 2) -> Optional[Polygon]:
    """
    Trace the outline of a cropped soft mask into an ordered polygon.

    The mask is subsampled every `stride` pixels. A sample is a boundary point
    when its value is strictly above `threshold` and at least one 4-neighbour
    is at or below it; neighbours outside the crop count as below. Points are
    expressed as percentages of the crop (x / W * 100, y / H * 100) and ordered
    by angle around their centroid.

    Returns None when fewer than 3 boundary points are found; callers decide
    how to fall back (ellipse, plain box).

    Note: angular ordering only yields a simple polygon for star-shaped masks.
    Bubbles with tails or several lobes may self-intersect.
    """

    m = np.asarray(mask, dtype=np.float64)
    if m.ndim != 2 or m.size == 0:
        return None
    if stride < 1:
        raise ValueError(f"stride must be >= 1, got {stride}")

    h, w = m.shape
    padded = np.pad(m, 1, mode="constant", constant_values=-np.inf)
    left = padded[1:-1, :-2]
    right = padded[1:-1, 2:]
    top = padded[:-2, 1:-1]
    bottom = padded[2:, 1:-1]

    inside = m > threshold
    touches_outside = (left <= threshold) | (right <= threshold) | (top <= threshold) | (bottom <= threshold)
    boundary = (inside & touches_outside)[::stride, ::stride]

    ys, xs = np.nonzero(boundary)  # row-major, same as a y-then-x scan
    if ys.size < 3:
        return None

    px = xs * stride * 100.0 / w
    py = ys * stride * 100.0 / h

    cx = px.mean()
    cy = py.mean()
    order = np.argsort(np.arctan2(py - cy, px - cx), kind="stable")

    return tuple((float(px[i]), float(py[i])) for i in order)


def polygon_to_css(points: Sequence[Point], precision: int = 1) -> str:
    """
    Render a polygon as a CSS clip-path value, e.g. `polygon(10.0% 5.0%, ...)`.
    """

    if len(points) < 3:
        raise ValueError(f"A polygon needs at least 3 points, got {len(points)}")
    body = ", ".join(f"{x:.{precision}f}% {y:.{precision}f}%" for x, y in points)
    return f"polygon({body})"


def parse_css_polygon(text: str) -> Polygon:
    match = _CSS_POLYGON_RE.match(text)
    if match is None:
        raise ValueError(f"Not a CSS polygon(): {text!r}")

    points = []
    for chunk in match.group("body").split(","):
        pm = _CSS_POINT_RE.match(chunk)
        if pm is None:
            raise ValueError(f"Malformed polygon point {chunk!r} in {text!r}")
        points.append((float(pm.group("x")), float(pm.group("y"))))

    if len(points) < 3:
        raise ValueError(f"A polygon needs at least 3 points, got {len(points)}")
    return tuple(points)
