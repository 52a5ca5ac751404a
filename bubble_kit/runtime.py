from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import LetterboxConfig, SegPostConfig
from .letterbox import LetterboxTransform, compute_transform, letterbox_image
from .masks import mask_crop_region, reconstruct_mask
from .nms import NMSConfig, suppress
from .polygon import extract_polygon
from .postprocess import decode_candidates, validate_outputs
from .types import CandidateDetection, Detection, DetectionResult


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
InferFn = Callable[[np.ndarray], Tuple[np.ndarray, Optional[np.ndarray]]]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def _attach_polygons(
    candidates: List[CandidateDetection],
    protos: np.ndarray,
    transform: LetterboxTransform,
    mask_threshold: float,
    polygon_stride: int,
) -> None:
    mask_shape = (protos.shape[1], protos.shape[2])
    for cand in candidates:
        region = mask_crop_region(cand.bbox, transform, mask_shape)
        cand.mask = reconstruct_mask(cand.mask_coeffs, protos, region)
        cand.polygon = extract_polygon(cand.mask, threshold=mask_threshold, stride=polygon_stride)
        if cand.polygon is None:
            logger.debug(
                "No polygon for candidate at %s (crop %dx%d); caller falls back to the box",
                cand.bbox.as_tuple(),
                region.width,
                region.height,
            )


def _to_detection(cand: CandidateDetection, width: int, height: int) -> Detection:
    box = cand.bbox
    return Detection(
        center_x=(box.x1 + box.x2) / 2 / width,
        center_y=(box.y1 + box.y2) / 2 / height,
        width=(box.x2 - box.x1) / width,
        height=(box.y2 - box.y1) / height,
        confidence=cand.confidence,
        bbox=box,
        polygon=cand.polygon,
    )


def detect(
    raw_output: np.ndarray,
    mask_protos: Optional[np.ndarray],
    original_width: int,
    original_height: int,
    confidence_threshold: float = 0.3,
    nms_threshold: float = 0.5,
    *,
    input_size: int = 640,
    mask_threshold: float = 0.5,
    polygon_stride: int = 2,
    num_mask_coeffs: int = 32,
    max_detections: Optional[int] = None,
) -> DetectionResult:
    """
    Decode raw segmentation outputs for one image into speech bubble detections.

    Steps: decode boxes above `confidence_threshold`, rebuild each candidate's
    mask from the prototypes, trace its polygon, then run greedy NMS.

    Args:
        raw_output: (1, 5 + K, A) detection tensor in model-input space
        mask_protos: (1, K, Mh, Mw) prototype masks, or None for box-only output
        original_width/original_height: image size before letterboxing

    Raises:
        ValueError: when the image size is not positive.
        OutputShapeError: when the tensors do not have the expected layout.
    """

    if original_width <= 0 or original_height <= 0:
        raise ValueError(f"Image size must be positive, got {original_width}x{original_height}")

    start = time.perf_counter()
    preds, protos = validate_outputs(raw_output, mask_protos, num_mask_coeffs=num_mask_coeffs)
    transform = compute_transform(original_width, original_height, input_size)

    candidates = decode_candidates(
        preds,
        (original_width, original_height),
        transform,
        conf_threshold=confidence_threshold,
        num_mask_coeffs=num_mask_coeffs,
    )
    if protos is not None and candidates:
        _attach_polygons(candidates, protos, transform, mask_threshold, polygon_stride)

    kept = suppress(candidates, NMSConfig(iou_threshold=nms_threshold, max_detections=max_detections))
    detections = tuple(_to_detection(c, original_width, original_height) for c in kept)

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    logger.debug(
        "Kept %d of %d candidates after NMS (iou %.2f) in %.1f ms",
        len(detections),
        len(candidates),
        nms_threshold,
        elapsed_ms,
    )
    return DetectionResult(
        detections=detections,
        image_width=original_width,
        image_height=original_height,
        inference_time_ms=elapsed_ms,
    )


@dataclasses.dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    transform: LetterboxTransform


class BubblePipeline:
    """
    Plug-and-play pipeline: letterbox -> inference -> segmentation decoding.

    Expects BGR images (OpenCV-style) and returns a DetectionResult whose
    `inference_time_ms` covers the whole call.
    """

    def __init__(
        self,
        infer_fn: InferFn,
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        letterbox_cfg: LetterboxConfig = LetterboxConfig(),
        post_cfg: SegPostConfig = SegPostConfig(),
    ):
        if letterbox_cfg.input_size != post_cfg.input_size:
            raise ValueError(
                f"Letterbox size {letterbox_cfg.input_size} does not match post-processing size {post_cfg.input_size}"
            )
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.letterbox_cfg = letterbox_cfg
        self.post_cfg = post_cfg

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise TypeError("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        orig_h, orig_w = image_bgr.shape[:2]
        img, transform = letterbox_image(image_bgr, self.letterbox_cfg.input_size, self.letterbox_cfg.color)

        # BGR -> RGB, normalize, HWC -> CHW, add batch
        blob = img[:, :, ::-1].astype(np.float32) / 255.0
        blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])

        return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h), transform=transform)

    def __call__(self, image_bgr: np.ndarray) -> DetectionResult:
        start = time.perf_counter()
        prep = self.preprocess(image_bgr)
        raw, protos = self._infer_fn(prep.blob)
        cfg = self.post_cfg
        result = detect(
            raw,
            protos,
            prep.orig_size[0],
            prep.orig_size[1],
            confidence_threshold=cfg.conf_threshold,
            nms_threshold=cfg.nms_threshold,
            input_size=cfg.input_size,
            mask_threshold=cfg.mask_threshold,
            polygon_stride=cfg.polygon_stride,
            num_mask_coeffs=cfg.num_mask_coeffs,
            max_detections=cfg.max_detections,
        )
        total_ms = (time.perf_counter() - start) * 1000.0
        logger.info("Detected %d speech bubbles in %.0f ms", len(result.detections), total_ms)
        return dataclasses.replace(result, inference_time_ms=total_ms)


def load_pipeline(
    model_path: PathLike,
    *,
    root: Optional[PathLike] = "auto",
    post_cfg: SegPostConfig = SegPostConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
) -> BubblePipeline:
    """
    Create a pipeline for an ONNX speech bubble model on disk.

    Args:
        model_path: path to the .onnx file; relative paths resolve against the project root by default
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    resolved = resolve_path(model_path, root=root)
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only ONNX models are supported, got '{resolved.suffix}'")

    ort_backend = OnnxRuntimeBackend(resolved, OnnxRuntimeBackendConfig(providers=onnx_providers))
    return BubblePipeline(
        ort_backend.infer,
        backend=ort_backend,
        backend_name="onnxruntime",
        letterbox_cfg=LetterboxConfig(input_size=post_cfg.input_size),
        post_cfg=post_cfg,
    )
