"""Programmatic entry points: one image in, one result out.

Each call opens its own model manager, so sessions and cascades are released
when the call returns or raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from imagelabel.config import get_settings
from imagelabel.ml.face_detector import HaarCascadeDetector, draw_regions, write_image
from imagelabel.ml.image_classifier import ClassificationResult, OnnxImageClassifier
from imagelabel.ml.model_manager import OnnxModelManager
from imagelabel.ml.preprocessing import ImagePreprocessor
from imagelabel.resources import read_bytes

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from imagelabel.config import Settings
    from imagelabel.ml.face_detector import FaceRegion
    from imagelabel.ml.image_classifier import LabelScore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionResult:
    """Detected faces and a copy of the image with the faces outlined."""

    regions: list[FaceRegion]
    annotated: NDArray[np.uint8]


def label_probabilities(
    image_bytes: bytes,
    settings: Settings | None = None,
    source: str = "<memory>",
) -> ClassificationResult:
    """Return every label of the classification model with its probability."""
    settings = settings or get_settings()
    with OnnxModelManager(settings) as manager:
        classifier = OnnxImageClassifier.from_settings(manager, settings)
        return classifier.label_probabilities(image_bytes, source)


def classify_image(
    image_bytes: bytes,
    settings: Settings | None = None,
    top_k: int | None = None,
) -> list[LabelScore]:
    """Return the most likely labels for an encoded image, best first."""
    settings = settings or get_settings()
    return label_probabilities(image_bytes, settings).top(settings.top_k if top_k is None else top_k)


def classify_image_file(
    path: str | Path,
    settings: Settings | None = None,
) -> ClassificationResult:
    """Read an image file and return its full classification result."""
    return label_probabilities(read_bytes(path), settings, source=str(path))


def detect_faces(
    image_bytes: bytes,
    settings: Settings | None = None,
    source: str = "<memory>",
) -> DetectionResult:
    """Detect faces in an encoded image and outline them on a copy."""
    settings = settings or get_settings()
    image = ImagePreprocessor.from_settings(settings).decode_image(image_bytes, source)
    with OnnxModelManager(settings) as manager:
        detector = HaarCascadeDetector.from_settings(manager, settings)
        regions = detector.detect(image)
    return DetectionResult(regions=regions, annotated=draw_regions(image, regions))


def detect_faces_file(
    path: str | Path,
    output: str | Path | None = None,
    settings: Settings | None = None,
) -> tuple[DetectionResult, Path]:
    """Detect faces in an image file and write the annotated image.

    Returns:
        The detection result and the path the annotated image was written to.
    """
    settings = settings or get_settings()
    result = detect_faces(read_bytes(path), settings, source=str(path))
    written = write_image(output or settings.detection_output, result.annotated)
    logger.info("Wrote %d face regions to %s", len(result.regions), written)
    return result, written
