"""Image classification with a pre-trained ONNX graph.

The graph takes a normalized (1, H, W, 3) float tensor and returns one
probability per label as a (1, N) tensor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np
from onnxruntime.capi.onnxruntime_pybind11_state import Fail, InvalidArgument

from imagelabel.errors import ConfigurationError, OutputShapeError
from imagelabel.ml.preprocessing import ImagePreprocessor
from imagelabel.ml.ranking import best_index, top_k_indices

if TYPE_CHECKING:
    from collections.abc import Sequence

    from onnxruntime import InferenceSession

    from imagelabel.config import Settings
    from imagelabel.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelScore:
    """A single classification prediction."""

    label: str
    confidence: float


@dataclass(frozen=True, init=False)
class ClassificationResult:
    """Labels paired index-for-index with their probabilities.

    Both fields are stored as tuples and can only be replaced together,
    via ``replace()``, so ``len(labels) == len(probabilities)`` always holds.
    """

    labels: tuple[str, ...]
    probabilities: tuple[float, ...]

    def __init__(self, labels: Sequence[str], probabilities: Sequence[float]) -> None:
        if len(labels) != len(probabilities):
            raise ValueError(f"Got {len(labels)} labels for {len(probabilities)} probabilities")
        object.__setattr__(self, "labels", tuple(labels))
        object.__setattr__(self, "probabilities", tuple(float(p) for p in probabilities))

    def replace(self, labels: Sequence[str], probabilities: Sequence[float]) -> ClassificationResult:
        """Return a new result with both fields swapped out."""
        return ClassificationResult(labels, probabilities)

    def top(self, k: int) -> list[LabelScore]:
        """Return the ``k`` most likely labels, best first."""
        return [self._score(i) for i in top_k_indices(self.probabilities, k)]

    def best(self) -> LabelScore:
        """Return the most likely label."""
        return self._score(best_index(self.probabilities))

    def _score(self, index: int) -> LabelScore:
        return LabelScore(label=self.labels[index], confidence=self.probabilities[index])


class ImageClassifier(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def classify(self, image_bytes: bytes, top_k: int = 5) -> list[LabelScore]:
        """Classify an encoded image and return ranked labels.

        Args:
            image_bytes: Raw file bytes (any format OpenCV can decode).
            top_k: Number of labels to return.

        Returns:
            List of predictions sorted by confidence (descending).
        """
        ...


class OnnxImageClassifier:
    """Runs a classification graph through an ONNX Runtime session."""

    def __init__(
        self,
        session: InferenceSession,
        labels: Sequence[str],
        preprocessor: ImagePreprocessor | None = None,
        *,
        input_name: str = "input",
        output_name: str = "output",
        model_name: str = "inception5h",
    ) -> None:
        self._session = session
        self._labels = tuple(labels)
        self._preprocessor = preprocessor or ImagePreprocessor()
        self._input_name = input_name
        self._output_name = output_name
        self._model_name = model_name

    @classmethod
    def from_settings(cls, manager: ModelManager, settings: Settings) -> OnnxImageClassifier:
        """Build a classifier for ``settings.classification_model``."""
        name = settings.classification_model
        return cls(
            manager.get_session(name),
            manager.load_labels(name),
            ImagePreprocessor.from_settings(settings),
            input_name=settings.input_name,
            output_name=settings.output_name,
            model_name=name,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def label_probabilities(self, image_bytes: bytes, source: str = "<memory>") -> ClassificationResult:
        """Run the model and pair its output with the label list.

        Raises:
            ResourceError: If the image cannot be decoded.
            ConfigurationError: If the session rejects the input or output names.
            OutputShapeError: If the output is not shaped [1, len(labels)].
        """
        tensor = self._preprocessor.to_tensor(image_bytes, source)
        try:
            (output,) = self._session.run([self._output_name], {self._input_name: tensor})
        except (Fail, InvalidArgument) as exc:
            raise ConfigurationError(f"Model {self._model_name} rejected its input ({exc})") from exc
        output = np.asarray(output)

        if output.ndim != 2 or output.shape[0] != 1 or output.shape[1] != len(self._labels):
            raise OutputShapeError(output.shape, len(self._labels))

        logger.debug("Classified %s with %s", source, self._model_name)
        return ClassificationResult(self._labels, output[0].tolist())

    def classify(self, image_bytes: bytes, top_k: int = 5, source: str = "<memory>") -> list[LabelScore]:
        """Return the ``top_k`` most likely labels for an image."""
        return self.label_probabilities(image_bytes, source).top(top_k)

    def best_match(self, image_bytes: bytes, source: str = "<memory>") -> LabelScore:
        """Return the single most likely label for an image."""
        return self.label_probabilities(image_bytes, source).best()
