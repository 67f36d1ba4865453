"""Tests for Haar cascade detection and annotation."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from imagelabel.config import Settings
from imagelabel.errors import ResourceError
from imagelabel.ml.face_detector import FaceRegion, HaarCascadeDetector, draw_regions, write_image


def _blank(height: int = 40, width: int = 60) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


class TestFaceRegion:
    def test_corners(self) -> None:
        region = FaceRegion(x=3, y=4, width=10, height=20)
        assert region.top_left == (3, 4)
        assert region.bottom_right == (13, 24)


class TestHaarCascadeDetector:
    def test_detect_converts_to_gray_and_maps_rects(self) -> None:
        cascade = MagicMock()
        cascade.detectMultiScale.return_value = np.array([[1, 2, 10, 12], [20, 5, 8, 8]], dtype=np.int32)
        detector = HaarCascadeDetector(cascade, scale_factor=1.2, min_neighbors=4)

        regions = detector.detect(_blank())

        assert regions == [FaceRegion(1, 2, 10, 12), FaceRegion(20, 5, 8, 8)]
        assert all(isinstance(r.x, int) for r in regions)
        gray = cascade.detectMultiScale.call_args.args[0]
        assert gray.shape == (40, 60)
        assert cascade.detectMultiScale.call_args.kwargs == {"scaleFactor": 1.2, "minNeighbors": 4}

    def test_detect_accepts_grayscale(self) -> None:
        cascade = MagicMock()
        cascade.detectMultiScale.return_value = ()
        detector = HaarCascadeDetector(cascade)

        assert detector.detect(np.zeros((10, 10), dtype=np.uint8)) == []

    def test_blank_image_has_no_faces_with_real_cascade(self) -> None:
        cascade = cv2.CascadeClassifier(str(Path(cv2.data.haarcascades) / "haarcascade_frontalface_alt.xml"))
        assert HaarCascadeDetector(cascade).detect(_blank(120, 120)) == []

    def test_from_settings(self) -> None:
        manager = MagicMock()
        settings = Settings(face_detection_model="haarcascade_frontalface_default", min_neighbors=7)

        detector = HaarCascadeDetector.from_settings(manager, settings)

        manager.get_cascade.assert_called_once_with("haarcascade_frontalface_default")
        assert detector.model_name == "haarcascade_frontalface_default"
        assert detector._min_neighbors == 7


class TestDrawRegions:
    def test_draws_green_outline_on_copy(self) -> None:
        image = _blank()
        annotated = draw_regions(image, [FaceRegion(5, 5, 10, 10)])

        assert not image.any()
        assert tuple(annotated[5, 5]) == (0, 255, 0)
        assert tuple(annotated[15, 15]) == (0, 255, 0)
        assert tuple(annotated[10, 10]) == (0, 0, 0)

    def test_no_regions_leaves_image_unchanged(self) -> None:
        image = _blank()
        np.testing.assert_array_equal(draw_regions(image, []), image)


class TestWriteImage:
    def test_writes_png(self, tmp_path: Path) -> None:
        target = tmp_path / "output.png"
        assert write_image(target, _blank()) == target
        assert cv2.imread(str(target)).shape == (40, 60, 3)

    def test_unwritable_path(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceError):
            write_image(tmp_path / "missing" / "output.png", _blank())

    def test_unknown_extension(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceError, match="output.nope"):
            write_image(tmp_path / "output.nope", _blank())
