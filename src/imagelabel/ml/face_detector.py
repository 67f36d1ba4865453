"""Face detection with OpenCV Haar cascades, plus result annotation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2

from imagelabel.errors import ResourceError

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np
    from numpy.typing import NDArray

    from imagelabel.config import Settings
    from imagelabel.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)

GREEN: tuple[int, int, int] = (0, 255, 0)


@dataclass(frozen=True)
class FaceRegion:
    """Axis-aligned face bounding box in pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def top_left(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def bottom_right(self) -> tuple[int, int]:
        return (self.x + self.width, self.y + self.height)


class FaceDetector(Protocol):
    """Protocol for face detection models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def detect(self, image: NDArray[np.uint8]) -> list[FaceRegion]:
        """Detect faces in an image.

        Args:
            image: HxWx3 BGR or HxW grayscale uint8 array.

        Returns:
            List of face bounding boxes.
        """
        ...


class HaarCascadeDetector:
    """Runs ``detectMultiScale`` of a loaded Haar cascade."""

    def __init__(
        self,
        cascade: cv2.CascadeClassifier,
        model_name: str = "haarcascade_frontalface_alt",
        *,
        scale_factor: float = 1.1,
        min_neighbors: int = 3,
    ) -> None:
        self._cascade = cascade
        self._model_name = model_name
        self._scale_factor = scale_factor
        self._min_neighbors = min_neighbors

    @classmethod
    def from_settings(cls, manager: ModelManager, settings: Settings) -> HaarCascadeDetector:
        name = settings.face_detection_model
        return cls(
            manager.get_cascade(name),
            name,
            scale_factor=settings.scale_factor,
            min_neighbors=settings.min_neighbors,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    def detect(self, image: NDArray[np.uint8]) -> list[FaceRegion]:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
        rects = self._cascade.detectMultiScale(
            gray,
            scaleFactor=self._scale_factor,
            minNeighbors=self._min_neighbors,
        )
        regions = [FaceRegion(int(x), int(y), int(w), int(h)) for (x, y, w, h) in rects]
        logger.debug("%s found %d faces", self._model_name, len(regions))
        return regions


def draw_regions(
    image: NDArray[np.uint8],
    regions: Iterable[FaceRegion],
    color: tuple[int, int, int] = GREEN,
    thickness: int = 1,
) -> NDArray[np.uint8]:
    """Return a copy of ``image`` with a rectangle drawn around each region."""
    annotated = image.copy()
    for region in regions:
        cv2.rectangle(annotated, region.top_left, region.bottom_right, color, thickness)
    return annotated


def write_image(path: str | Path, image: NDArray[np.uint8]) -> Path:
    """Encode ``image`` to ``path``; the format follows the file extension.

    Raises:
        ResourceError: If OpenCV cannot encode or write the file.
    """
    target = Path(path)
    try:
        written = cv2.imwrite(str(target), image)
    except cv2.error as exc:
        raise ResourceError(target, f"cannot encode image ({exc})") from exc
    if not written:
        raise ResourceError(target, "could not write image")
    return target
