"""Tests for the imagelabel command line."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from imagelabel.cli import build_parser, main
from imagelabel.errors import OutputShapeError, ResourceError
from imagelabel.ml.face_detector import FaceRegion
from imagelabel.ml.image_classifier import ClassificationResult
from imagelabel.pipeline import DetectionResult

RESULT = ClassificationResult(
    ["dummy", "military uniform", "suit", "bow tie", "Windsor tie", "mortarboard"],
    [0.01, 0.4, 0.25, 0.2, 0.1, 0.04],
)


class TestParser:
    def test_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_rejects_non_positive_top_k(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["classify", "img.jpg", "--top-k", "0"])


class TestClassifyCommand:
    @patch("imagelabel.cli.classify_image_file", return_value=RESULT)
    def test_text_output(self, mock_classify: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["classify", "jack.jpg", "--top-k", "3"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            "BEST MATCH: military uniform (40.00% likely)",
            "TOP 3 BEST MATCHES: military uniform (40.00% likely)",
            "TOP 3 BEST MATCHES: suit (25.00% likely)",
            "TOP 3 BEST MATCHES: bow tie (20.00% likely)",
            "Labeling result: military uniform, suit, bow tie",
        ]

    @patch("imagelabel.cli.classify_image_file", return_value=RESULT)
    def test_default_top_k_from_settings(self, mock_classify: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        with patch.dict(os.environ, {"IMAGELABEL_TOP_K": "2"}):
            assert main(["classify", "jack.jpg"]) == 0
        assert "Labeling result: military uniform, suit" in capsys.readouterr().out

    @patch("imagelabel.cli.classify_image_file", return_value=RESULT)
    def test_json_output(self, mock_classify: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["classify", "jack.jpg", "--top-k", "2", "--json"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["image"] == "jack.jpg"
        assert report["model"] == "inception5h"
        assert report["best_match"] == {"label": "military uniform", "confidence": pytest.approx(0.4)}
        assert [t["label"] for t in report["tags"]] == ["military uniform", "suit"]

    @patch("imagelabel.cli.classify_image_file", return_value=RESULT)
    def test_top_k_larger_than_labels(self, mock_classify: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["classify", "jack.jpg", "--top-k", "50"]) == 0
        out = capsys.readouterr().out
        assert out.count("TOP 6 BEST MATCHES") == 6
        assert "TOP 50" not in out


class TestDetectCommand:
    @patch("imagelabel.cli.detect_faces_file")
    def test_text_output(self, mock_detect: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        result = DetectionResult(regions=[FaceRegion(1, 2, 3, 4)], annotated=np.zeros((5, 5, 3), dtype=np.uint8))
        mock_detect.return_value = (result, Path("output.png"))

        assert main(["detect", "ja.jpg"]) == 0

        assert capsys.readouterr().out.splitlines() == ["Detected 1 faces", "Writing output.png"]
        mock_detect.assert_called_once()
        assert mock_detect.call_args.args[:2] == ("ja.jpg", None)

    @patch("imagelabel.cli.detect_faces_file")
    def test_json_output(self, mock_detect: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        result = DetectionResult(regions=[FaceRegion(1, 2, 3, 4)], annotated=np.zeros((5, 5, 3), dtype=np.uint8))
        mock_detect.return_value = (result, Path("faces.png"))

        assert main(["detect", "ja.jpg", "--output", "faces.png", "--json"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["faces"] == [{"x": 1, "y": 2, "width": 3, "height": 4}]
        assert report["output"] == "faces.png"
        assert report["model"] == "haarcascade_frontalface_alt"


class TestFailures:
    @pytest.mark.parametrize(
        "error",
        [
            ResourceError("models/imagenet_comp_graph_label_strings.txt", "No such file or directory"),
            ResourceError("jack.jpg", "No such file or directory"),
            OutputShapeError((1, 1008), 1001),
        ],
    )
    def test_every_failure_exits_with_status_one(
        self, error: Exception, caplog: pytest.LogCaptureFixture, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("imagelabel.cli.classify_image_file", side_effect=error), caplog.at_level(logging.ERROR):
            assert main(["classify", "jack.jpg"]) == 1

        assert str(error) in caplog.text
        assert capsys.readouterr().out == ""

    def test_missing_image_end_to_end(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        missing = tmp_path / "missing.jpg"
        with caplog.at_level(logging.ERROR):
            assert main(["detect", str(missing)]) == 1
        assert f"Failed to read [{missing}]" in caplog.text

    def test_unknown_model_exits_with_status_one(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        image = tmp_path / "jack.png"
        cv2.imwrite(str(image), np.full((8, 8, 3), 90, dtype=np.uint8))
        env = {"IMAGELABEL_CLASSIFICATION_MODEL": "inception_v3"}
        with patch.dict(os.environ, env), caplog.at_level(logging.ERROR):
            assert main(["classify", str(image)]) == 1
        assert "Unknown model: inception_v3" in caplog.text

    def test_invalid_setting_exits_with_status_one(
        self, caplog: pytest.LogCaptureFixture, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch.dict(os.environ, {"IMAGELABEL_TOP_K": "0"}), caplog.at_level(logging.ERROR):
            assert main(["classify", "jack.jpg"]) == 1
        assert "Invalid IMAGELABEL_* settings" in caplog.text
        assert capsys.readouterr().out == ""
