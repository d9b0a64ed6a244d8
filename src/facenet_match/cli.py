#!/usr/bin/env python3
"""Command-line interface for FaceNet embedding and matching.

Usage:
    facenet-match embed --image face.jpg
    facenet-match enroll --name "Alice" --image alice.jpg --gallery gallery.npz
    facenet-match recognize --image face.jpg --gallery gallery.npz
    facenet-match camera --gallery gallery.npz

Face detection is not part of this tool: images are expected to be face
crops, or a region can be given with --face x,y,w,h.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .constants import (
    get_config,
    get_facenet_config,
    get_logging_config,
    get_pipeline_settings,
    get_reporting_config,
)
from .errors import FaceNetError
from .extractor import EmbeddingExtractor
from .gallery import FaceGallery
from .matcher import FaceMatcher
from .model import TFLiteEmbeddingModel
from .pipeline import RecognitionEvent, RecognitionPipeline
from .preprocessing import crop_face
from .reporting import MatchReporter
from .types import FaceRegion, PixelBuffer

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    """Configure root logging from the loaded config."""
    cfg = get_logging_config()
    level = getattr(logging, cfg.level.upper(), logging.INFO)
    logging.basicConfig(level=logging.DEBUG if debug else level, format=cfg.format)


def parse_region(value: str) -> FaceRegion:
    """Parse an ``x,y,w,h`` face region."""
    try:
        x, y, w, h = (float(v) for v in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected x,y,w,h, got {value!r}")
    return FaceRegion(x, y, w, h)


def build_extractor(args) -> EmbeddingExtractor:
    facenet = get_facenet_config()
    model = TFLiteEmbeddingModel(
        model_path=args.model or facenet.model_path,
        num_threads=facenet.num_threads,
    )
    return EmbeddingExtractor(model, embedding_dim=facenet.embedding_dim)


def load_face(path: str, region: Optional[FaceRegion] = None) -> PixelBuffer:
    """Load an image file as a face crop buffer."""
    image = cv2.imread(path)
    if image is None:
        logger.error(f"Could not load image: {path}")
        sys.exit(1)

    buffer = PixelBuffer.from_bgr(image)
    if region is not None:
        buffer = crop_face(buffer, region, get_facenet_config().min_face_size)
    return buffer


def load_gallery(path: str) -> FaceGallery:
    if Path(path).exists():
        return FaceGallery.load_npz(path)
    logger.warning(f"Gallery not found: {path}, starting empty")
    return FaceGallery()


def cmd_embed(args):
    """Print the embedding of a face image."""
    extractor = build_extractor(args)
    result = extractor.extract(load_face(args.image, args.face))

    vector = result.embedding.embedding
    logger.info(f"Inference time: {result.inference_time_ms:.1f} ms")
    logger.info(f"Embedding ({vector.shape[0]}D, norm={np.linalg.norm(vector):.4f})")

    if args.output:
        np.save(args.output, vector)
        logger.info(f"Saved to: {args.output}")
    else:
        print(", ".join(f"{v:.6f}" for v in vector))


def cmd_enroll(args):
    """Enroll a face image under a name."""
    extractor = build_extractor(args)
    gallery = load_gallery(args.gallery)

    result = extractor.extract(load_face(args.image, args.face))
    gallery.enroll(args.name, result.embedding)
    gallery.save_npz(args.gallery)
    logger.info(f"✓ Enrolled {args.name} ({len(gallery)} identities)")


def cmd_recognize(args):
    """Match a face image against the gallery."""
    facenet = get_facenet_config()
    threshold = args.threshold if args.threshold is not None else facenet.match_threshold

    extractor = build_extractor(args)
    gallery = load_gallery(args.gallery)
    matcher = FaceMatcher(threshold)

    extracted = extractor.extract(load_face(args.image, args.face))
    result = matcher.match(extracted.embedding.embedding, gallery)

    if result.is_match:
        logger.info(f"Match: {result.label} (similarity {result.score:.2f})")
    else:
        logger.info("No match")

    for label, score in matcher.top_k(extracted.embedding.embedding, gallery, args.top):
        logger.info(f"  {label}: {score:.3f}")

    report_url = args.report_url or get_reporting_config().url
    if report_url:
        report(report_url, result, inference_time_ms=extracted.inference_time_ms)

    return result


def report(url: str, result, **extra):
    """Upload a result, logging instead of failing on network errors."""
    reporting = get_reporting_config()
    with MatchReporter(url, timeout=reporting.timeout) as reporter:
        try:
            if reporting.multipart:
                reporter.send_form(result, **extra)
            else:
                reporter.send_json(result, **extra)
        except FaceNetError as e:
            logger.error(f"Could not report result: {e}")


def cmd_camera(args):
    """Run live recognition on camera frames."""
    facenet = get_facenet_config()
    threshold = args.threshold if args.threshold is not None else facenet.match_threshold

    def on_result(event: RecognitionEvent):
        if event.failed:
            return
        score = f" {event.result.score:.2f}" if event.is_match else ""
        logger.info(f"[frame {event.frame_number}] {event.label}{score} "
                    f"({event.inference_time_ms:.1f} ms)")

    cap = cv2.VideoCapture(args.camera_id)
    if not cap.isOpened():
        logger.error(f"Could not open camera {args.camera_id}")
        sys.exit(1)

    pipeline = RecognitionPipeline(
        build_extractor(args),
        load_gallery(args.gallery),
        threshold=threshold,
        on_result=on_result,
        settings=get_pipeline_settings(),
    )

    logger.info("Camera started. Press Ctrl+C to quit.")
    try:
        with pipeline:
            while True:
                ret, frame = cap.read()
                if not ret:
                    break
                buffer = PixelBuffer.from_bgr(frame)
                if args.face:
                    try:
                        buffer = crop_face(buffer, args.face, facenet.min_face_size)
                    except FaceNetError as e:
                        logger.debug(f"Skipping frame: {e}")
                        continue
                pipeline.submit(buffer, face_rect=args.face)
    except KeyboardInterrupt:
        pass
    finally:
        cap.release()

    logger.info(f"Stats: {pipeline.get_stats()}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facenet-match",
        description="FaceNet face embedding and gallery matching",
    )
    parser.add_argument("--config", help="Path to config YAML")
    parser.add_argument("--model", help="Path to TFLite FaceNet model")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_face_args(p):
        p.add_argument("--image", required=True, help="Face image path")
        p.add_argument("--face", type=parse_region, help="Face region x,y,w,h")

    embed = subparsers.add_parser("embed", help="Extract an embedding")
    add_face_args(embed)
    embed.add_argument("--output", help="Save embedding as .npy")
    embed.set_defaults(func=cmd_embed)

    enroll = subparsers.add_parser("enroll", help="Enroll a face")
    add_face_args(enroll)
    enroll.add_argument("--name", required=True, help="Identity label")
    enroll.add_argument("--gallery", default="gallery.npz", help="Gallery file")
    enroll.set_defaults(func=cmd_enroll)

    recognize = subparsers.add_parser("recognize", help="Match a face")
    add_face_args(recognize)
    recognize.add_argument("--gallery", default="gallery.npz", help="Gallery file")
    recognize.add_argument("--threshold", type=float, help="Match threshold (-1 to 1)")
    recognize.add_argument("--top", type=int, default=3, help="Candidates to list")
    recognize.add_argument("--report-url", help="POST the result to this URL")
    recognize.set_defaults(func=cmd_recognize)

    camera = subparsers.add_parser("camera", help="Live camera recognition")
    camera.add_argument("--gallery", default="gallery.npz", help="Gallery file")
    camera.add_argument("--camera-id", type=int, default=0, help="Camera device index")
    camera.add_argument("--threshold", type=float, help="Match threshold (-1 to 1)")
    camera.add_argument("--face", type=parse_region, help="Fixed face region x,y,w,h")
    camera.set_defaults(func=cmd_camera)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        get_config().reload(Path(args.config))
    setup_logging(args.debug)

    if not args.command:
        parser.print_help()
        return 0

    try:
        args.func(args)
    except FaceNetError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
