import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from leaf_kit import (
    DEFAULT_CATALOG,
    DetectorConfig,
    LeafKitError,
    decode_image_file,
    draw_detections,
    load_class_catalog,
    load_detector_config,
    load_pipeline,
    write_detections_json,
)

logger = logging.getLogger("detect_image")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect coffee-leaf diseases in a single photo.")
    parser.add_argument("--image", required=True, help="Path to the input photo (JPEG).")
    parser.add_argument("--model", default="Models/best.onnx", help="Path to the detector (.onnx/.torchscript).")
    parser.add_argument("--metadata", default=None, help="Class metadata yaml (names mapping). Built-in classes if omitted.")
    parser.add_argument("--config", default=None, help="Detector config JSON (overrides --imgsz/--conf/--class-conf).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--imgsz", type=int, default=640, help="Square model input size (e.g., 640).")
    parser.add_argument("--conf", type=float, default=0.25, help="Box confidence threshold.")
    parser.add_argument("--class-conf", type=float, default=0.25, help="Class score threshold.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out-json", default=None, help="Optional path to write detections as JSON.")
    parser.add_argument("--out-image", default=None, help="Optional path to save the annotated photo.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config:
        cfg = load_detector_config(Path(args.config))
    else:
        cfg = DetectorConfig(
            input_size=int(args.imgsz),
            confidence_threshold=float(args.conf),
            class_score_threshold=float(args.class_conf),
        )
    catalog = load_class_catalog(args.metadata) if args.metadata else DEFAULT_CATALOG

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    try:
        raw = decode_image_file(args.image)
        with load_pipeline(
            args.model,
            backend=args.backend,
            catalog=catalog,
            cfg=cfg,
            onnx_providers=onnx_providers,
        ) as pipeline:
            result = pipeline(raw)
    except LeafKitError as exc:
        logger.error("Detection failed: %s", exc)
        return 1

    if result.is_empty:
        print("No diseases detected.")
    for det in result.detections:
        print(f"{det.label}\t{det.score:.3f}\t" + " ".join(f"{v:.4f}" for v in det.as_xywh()))

    if args.out_json:
        write_detections_json(args.out_json, result, model_path=args.model, image_path=args.image)
        logger.info("Wrote %s", args.out_json)

    if args.out_image:
        import cv2

        img = cv2.imread(args.image)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {args.image}")
        vis = draw_detections(img, result.detections, show_score=True)
        if not cv2.imwrite(args.out_image, vis):
            raise RuntimeError(f"Failed to write output image: {args.out_image}")
        logger.info("Wrote %s", args.out_image)

    return 0


if __name__ == "__main__":
    sys.exit(main())
