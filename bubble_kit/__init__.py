"""
Speech bubble instance-segmentation decoding for YOLOv8-seg style models.

Turns raw detection and prototype-mask tensors into boxes, confidences and
polygon outlines in original image coordinates. Core decoding needs only
NumPy; OpenCV is used for letterboxing and drawing, ONNX Runtime for the
optional inference backend.
"""

from .config import LetterboxConfig, SegPostConfig, load_seg_config
from .letterbox import LetterboxTransform, compute_transform, letterbox_image, to_model_space, to_original
from .masks import mask_crop_region, reconstruct_mask
from .nms import NMSConfig, box_iou, nms, suppress
from .polygon import extract_polygon, parse_css_polygon, polygon_to_css
from .postprocess import OutputShapeError, decode_candidates, feature_at, validate_outputs
from .runtime import BubblePipeline, detect, find_project_root, load_pipeline, resolve_path
from .types import BoxXYXY, CandidateDetection, Detection, DetectionResult, bubble_at_point, is_comic
from .visualize import draw_detections

__all__ = [
    "LetterboxConfig",
    "SegPostConfig",
    "load_seg_config",
    "LetterboxTransform",
    "compute_transform",
    "letterbox_image",
    "to_model_space",
    "to_original",
    "mask_crop_region",
    "reconstruct_mask",
    "NMSConfig",
    "box_iou",
    "nms",
    "suppress",
    "extract_polygon",
    "parse_css_polygon",
    "polygon_to_css",
    "OutputShapeError",
    "decode_candidates",
    "feature_at",
    "validate_outputs",
    "BubblePipeline",
    "detect",
    "find_project_root",
    "load_pipeline",
    "resolve_path",
    "BoxXYXY",
    "CandidateDetection",
    "Detection",
    "DetectionResult",
    "bubble_at_point",
    "is_comic",
    "draw_detections",
]
