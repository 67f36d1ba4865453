"""Command line interface for imagelabel.

Commands:
  imagelabel classify <image> [--top-k N] [--json]
  imagelabel detect <image> [--output PATH] [--json]

Models and limits come from IMAGELABEL_* environment variables (see
``imagelabel.config.Settings``). Any failure to read a model, label list or
image, any invalid setting or unknown model, and any unexpected model output
is logged and exits with status 1.
"""

from __future__ import annotations

import argparse
import logging
from typing import TYPE_CHECKING

from imagelabel.config import get_settings
from imagelabel.errors import ImageLabelError
from imagelabel.pipeline import classify_image_file, detect_faces_file
from imagelabel.schemas import ClassifyImageResponse, DetectedFace, DetectFacesResponse, ImageTag

if TYPE_CHECKING:
    from collections.abc import Sequence

    from imagelabel.config import Settings
    from imagelabel.ml.image_classifier import LabelScore

logger = logging.getLogger(__name__)


def _likely(score: LabelScore) -> str:
    return f"{score.label} ({score.confidence * 100:.2f}% likely)"


def _tag(score: LabelScore) -> ImageTag:
    return ImageTag(label=score.label, confidence=score.confidence)


def cmd_classify(args: argparse.Namespace, settings: Settings) -> None:
    result = classify_image_file(args.image, settings)
    top_k = settings.top_k if args.top_k is None else args.top_k
    best = result.best()
    top = result.top(min(top_k, len(result.labels)))

    if args.json:
        report = ClassifyImageResponse(
            image=args.image,
            model=settings.classification_model,
            best_match=_tag(best),
            tags=[_tag(score) for score in top],
        )
        print(report.model_dump_json(indent=2))
        return

    print(f"BEST MATCH: {_likely(best)}")
    for score in top:
        print(f"TOP {len(top)} BEST MATCHES: {_likely(score)}")
    print("Labeling result: " + ", ".join(score.label for score in top))


def cmd_detect(args: argparse.Namespace, settings: Settings) -> None:
    result, written = detect_faces_file(args.image, args.output, settings)

    if args.json:
        report = DetectFacesResponse(
            image=args.image,
            model=settings.face_detection_model,
            faces=[DetectedFace(x=r.x, y=r.y, width=r.width, height=r.height) for r in result.regions],
            output=str(written),
        )
        print(report.model_dump_json(indent=2))
        return

    print(f"Detected {len(result.regions)} faces")
    print(f"Writing {written}")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="imagelabel", description="Label images and detect faces")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    pc = sub.add_parser("classify", help="Classify an image with a pre-trained network")
    pc.add_argument("image")
    pc.add_argument("--top-k", type=_positive_int, default=None, help="Number of labels to report")
    pc.add_argument("--json", action="store_true", help="Print a JSON report")
    pc.set_defaults(func=cmd_classify)

    pd = sub.add_parser("detect", help="Detect faces and write an annotated copy")
    pd.add_argument("image")
    pd.add_argument("--output", default=None, help="Annotated image path (default: IMAGELABEL_DETECTION_OUTPUT)")
    pd.add_argument("--json", action="store_true", help="Print a JSON report")
    pd.set_defaults(func=cmd_detect)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        settings = get_settings()
        if not args.verbose:
            logging.getLogger().setLevel(settings.log_level)
        args.func(args, settings)
    except ImageLabelError as exc:
        logger.error("%s", exc)  # noqa: TRY400
        return 1
    return 0
