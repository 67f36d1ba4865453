"""Model manager: locate, download, load, and release model artifacts.

Handles the classification graph (ONNX, optionally fetched from a
HuggingFace repository), its label list, and the Haar cascades shipped with
OpenCV. Loaded sessions and cascades are cached for the lifetime of the
manager and released by ``shutdown()`` or on leaving a ``with`` block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2
from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError
from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode, Fail, InvalidGraph, InvalidProtobuf

from imagelabel.errors import ConfigurationError, ResourceError
from imagelabel.resources import read_bytes, read_lines

if TYPE_CHECKING:
    from types import TracebackType

    from imagelabel.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for model lifecycle management."""

    def load_labels(self, model_name: str) -> list[str]:
        """Return the label list of a classification model."""
        ...

    def get_session(self, model_name: str) -> InferenceSession:
        """Return a cached or newly created InferenceSession."""
        ...

    def get_cascade(self, model_name: str) -> cv2.CascadeClassifier:
        """Return a cached or newly loaded cascade classifier."""
        ...

    def shutdown(self) -> None:
        """Release all cached models."""
        ...


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


class ModelTask(StrEnum):
    IMAGE_CLASSIFICATION = "image_classification"
    FACE_DETECTION = "face_detection"


class ModelSource(StrEnum):
    HUB = "hub"
    OPENCV = "opencv"


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a single model artifact."""

    name: str
    filename: str
    task: ModelTask
    license: str
    source: ModelSource
    labels_filename: str | None = None


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "inception5h": ModelSpec(
        name="inception5h",
        filename="tensorflow_inception_graph.onnx",
        task=ModelTask.IMAGE_CLASSIFICATION,
        license="Apache-2.0",
        source=ModelSource.HUB,
        labels_filename="imagenet_comp_graph_label_strings.txt",
    ),
    "haarcascade_frontalface_alt": ModelSpec(
        name="haarcascade_frontalface_alt",
        filename="haarcascade_frontalface_alt.xml",
        task=ModelTask.FACE_DETECTION,
        license="Intel License Agreement",
        source=ModelSource.OPENCV,
    ),
    "haarcascade_frontalface_default": ModelSpec(
        name="haarcascade_frontalface_default",
        filename="haarcascade_frontalface_default.xml",
        task=ModelTask.FACE_DETECTION,
        license="Intel License Agreement",
        source=ModelSource.OPENCV,
    ),
}


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelManager:
    """Resolves model files and caches ONNX sessions and Haar cascades."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)

        self._sessions: dict[str, InferenceSession] = {}
        self._cascades: dict[str, cv2.CascadeClassifier] = {}
        self._model_paths: dict[str, Path] = {}

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    def __enter__(self) -> OnnxModelManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()

    # -- Public API ---------------------------------------------------------

    def ensure_downloaded(self, model_name: str) -> Path:
        """Return the local path of a model, downloading it if needed."""
        spec = self._get_spec(model_name)

        cached = self._model_paths.get(model_name)
        if cached is not None and cached.exists():
            return cached

        if spec.source is ModelSource.OPENCV:
            path = Path(cv2.data.haarcascades) / spec.filename
            if not path.exists():
                raise ResourceError(path, "cascade not shipped with this OpenCV build")
        else:
            path = self._fetch(spec.filename)

        self._model_paths[model_name] = path
        return path

    def labels_path(self, model_name: str) -> Path:
        """Return the local path of a model's label list."""
        spec = self._get_spec(model_name)
        if spec.labels_filename is None:
            raise ConfigurationError(f"Model has no label list: {model_name}")
        return self._fetch(spec.labels_filename)

    def load_labels(self, model_name: str) -> list[str]:
        """Read a model's labels, one per line, in output order."""
        path = self.labels_path(model_name)
        labels = read_lines(path)
        logger.info("Loaded %d labels for %s", len(labels), model_name)
        return labels

    def get_session(self, model_name: str) -> InferenceSession:
        """Return a cached InferenceSession, creating one if needed."""
        cached = self._sessions.get(model_name)
        if cached is not None:
            return cached

        model_path = self.ensure_downloaded(model_name)
        try:
            session = InferenceSession(
                read_bytes(model_path),
                sess_options=self._session_options,
                providers=self._providers,
            )
        except (Fail, InvalidGraph, InvalidProtobuf) as exc:
            raise ResourceError(model_path, f"not a loadable ONNX model ({exc})") from exc
        self._sessions[model_name] = session
        logger.info("Loaded session for %s", model_name)
        return session

    def get_cascade(self, model_name: str) -> cv2.CascadeClassifier:
        """Return a cached cascade classifier, loading it if needed."""
        cached = self._cascades.get(model_name)
        if cached is not None:
            return cached

        model_path = self.ensure_downloaded(model_name)
        cascade = cv2.CascadeClassifier(str(model_path))
        if cascade.empty():
            raise ResourceError(model_path, "not a valid cascade classifier")
        self._cascades[model_name] = cascade
        logger.info("Loaded cascade for %s", model_name)
        return cascade

    def get_loaded_models(self) -> list[str]:
        """Return names of models with a live session or cascade."""
        return [*self._sessions, *self._cascades]

    def shutdown(self) -> None:
        """Release all cached sessions and cascades."""
        if not self._sessions and not self._cascades:
            return
        self._sessions.clear()
        self._cascades.clear()
        logger.info("All model sessions cleared")

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _get_spec(model_name: str) -> ModelSpec:
        try:
            return MODEL_REGISTRY[model_name]
        except KeyError:
            known = ", ".join(sorted(MODEL_REGISTRY))
            raise ConfigurationError(f"Unknown model: {model_name} (known: {known})") from None

    def _fetch(self, filename: str) -> Path:
        local = self._models_dir / filename
        if local.exists():
            return local

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ResourceError(local, "file not found and IMAGELABEL_MODEL_REPO_ID is not set")

        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=filename,
                    local_dir=str(self._models_dir),
                )
            )
        except (HfHubHTTPError, OSError) as exc:
            raise ResourceError(f"{repo_id}/{filename}", str(exc)) from exc
        logger.info("Downloaded %s to %s", filename, downloaded)
        return downloaded

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
