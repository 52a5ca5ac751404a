import argparse
import dataclasses
import json
import logging
from pathlib import Path

import cv2

from bubble_kit import SegPostConfig, draw_detections, is_comic, load_pipeline, load_seg_config


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect speech bubbles in an image and print the result as JSON.")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--model", default="Models/speech-bubble-yolov8m-seg.onnx", help="Path to the ONNX model.")
    parser.add_argument("--config", default=None, help="Optional JSON file with post-processing settings.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (overrides --config).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (overrides --config).")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Optional output path to save the visualization.")
    parser.add_argument("--show", action="store_true", help="Show a window with visualized detections.")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    post_cfg = load_seg_config(Path(args.config)) if args.config else SegPostConfig()
    overrides = {}
    if args.conf is not None:
        overrides["conf_threshold"] = args.conf
    if args.iou is not None:
        overrides["nms_threshold"] = args.iou
    if overrides:
        post_cfg = dataclasses.replace(post_cfg, **overrides)

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_pipeline(model_path=args.model, post_cfg=post_cfg, onnx_providers=onnx_providers)

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    result = pipeline(img)
    payload = result.to_dict()
    payload["is_comic"] = is_comic(result)
    print(json.dumps(payload, indent=2))

    if args.out or args.show:
        vis = draw_detections(img, result.detections)
        if args.out:
            if not cv2.imwrite(args.out, vis):
                raise RuntimeError(f"Failed to write output image: {args.out}")
        if args.show:
            cv2.imshow("bubbles", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
