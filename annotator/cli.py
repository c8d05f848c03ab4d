"""
Command line augmentation

Usage:
    annotator augment photo.jpg photo.json --out-dir out --flip-horizontal --rotation 90
    annotator letterbox photo.jpg photo.json --out-dir out --size 640

Annotation files hold either a list of persisted annotations or an object
with an "annotations" list.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ImageDecodeError
from .services.annotation import Annotation, load_annotations
from .services.augmentation import (
    AugmentationConfig,
    AugmentationEngine,
    adjust_annotations,
    decode_image,
    letterbox,
    recommended_size,
)
from .utils import image_to_png_bytes, setup_logging

logger = logging.getLogger(__name__)


def _read_annotations(path: Optional[Path], image_size) -> List[Annotation]:
    if path is None:
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    entries = data.get("annotations", []) if isinstance(data, dict) else data
    return load_annotations(entries, image_size=image_size)


def _write_outputs(out_dir: Path, name: str, blob: bytes, payload: Dict[str, Any]) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    image_path = out_dir / f"{name}.png"
    image_path.write_bytes(blob)
    with open(out_dir / f"{name}.json", "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    return image_path


def run_augment(args: argparse.Namespace) -> int:
    augmentation = AugmentationConfig(
        flip_horizontal=args.flip_horizontal,
        flip_vertical=args.flip_vertical,
        rotation=args.rotation,
        brightness=args.brightness,
        contrast=args.contrast,
        saturation=args.saturation,
    )
    augmentation.validate()

    image = decode_image(Path(args.image).read_bytes())
    annotations = _read_annotations(args.annotations, image.size)
    result = AugmentationEngine().apply(image, augmentation, annotations)

    name = f"{Path(args.image).stem}{augmentation.suffix()}"
    payload = {
        "image": {"width": result.width, "height": result.height},
        "augmentation": augmentation.to_dict(),
        "annotations": [a.to_dict() for a in result.annotations],
        "dropped": result.dropped,
    }
    image_path = _write_outputs(Path(args.out_dir), name, result.blob, payload)
    logger.info(
        f"Wrote {image_path} ({result.width}x{result.height}, "
        f"{len(result.annotations)} annotations, {len(result.dropped)} dropped)"
    )
    return 0


def run_letterbox(args: argparse.Namespace) -> int:
    image = decode_image(Path(args.image).read_bytes())
    annotations = _read_annotations(args.annotations, image.size)

    size = args.size if args.size else recommended_size(image.width, image.height)
    squared, padding = letterbox(image, size, args.padding_color, args.strategy)
    adjusted = adjust_annotations(annotations, padding)

    name = f"{Path(args.image).stem}_lb{size}"
    payload = {
        "image": {"width": squared.width, "height": squared.height},
        "padding": padding.to_dict(),
        "annotations": [a.to_dict() for a in adjusted],
    }
    image_path = _write_outputs(Path(args.out_dir), name, image_to_png_bytes(squared), payload)
    logger.info(f"Wrote {image_path} ({size}x{size}, {len(adjusted)} annotations)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="annotator",
        description="Augment annotated images",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    augment = subparsers.add_parser("augment", help="Flip, rotate and adjust an image with its annotations")
    augment.add_argument("image", help="Image file")
    augment.add_argument("annotations", nargs="?", type=Path, help="Annotation JSON file")
    augment.add_argument("--out-dir", required=True, help="Output directory")
    augment.add_argument("--flip-horizontal", action="store_true", help="Mirror left-right")
    augment.add_argument("--flip-vertical", action="store_true", help="Mirror top-bottom")
    augment.add_argument("--rotation", type=float, default=0.0, help="Clockwise rotation in degrees")
    augment.add_argument("--brightness", type=int, default=0, help="Brightness offset (-100..100)")
    augment.add_argument("--contrast", type=int, default=0, help="Contrast offset (-100..100)")
    augment.add_argument("--saturation", type=int, default=0, help="Saturation offset (-100..100)")
    augment.set_defaults(handler=run_augment)

    square = subparsers.add_parser("letterbox", help="Pad an image to a square with its annotations")
    square.add_argument("image", help="Image file")
    square.add_argument("annotations", nargs="?", type=Path, help="Annotation JSON file")
    square.add_argument("--out-dir", required=True, help="Output directory")
    square.add_argument("--size", type=int, default=0, help="Square side (recommended size if omitted)")
    square.add_argument("--strategy", choices=["resize", "pad"], default="resize",
                        help="Resize to fit before padding, or only pad")
    square.add_argument("--padding-color", default="#000000", help="Fill color of the padding")
    square.set_defaults(handler=run_letterbox)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("annotator", logging.DEBUG if args.verbose else logging.INFO)

    try:
        return args.handler(args)
    except ImageDecodeError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Cannot read or write {e.filename}: {e.strerror}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
