"""Error types raised by imagelabel.

Every failure the package raises on purpose derives from ``ImageLabelError``
so the command line can report it and exit with one consistent status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ImageLabelError(Exception):
    """Base class for imagelabel errors."""


class ResourceError(ImageLabelError):
    """A model, label list, or image could not be read, decoded, or written."""

    def __init__(self, resource: object, reason: str) -> None:
        self.resource = str(resource)
        self.reason = reason
        super().__init__(f"Failed to read [{self.resource}]: {reason}")


class OutputShapeError(ImageLabelError):
    """The classification model produced a tensor of unexpected shape."""

    def __init__(self, shape: Sequence[int], expected_labels: int) -> None:
        self.shape = tuple(int(dim) for dim in shape)
        self.expected_labels = expected_labels
        super().__init__(
            f"Expected model to produce a [1 {expected_labels}] shaped tensor where "
            f"{expected_labels} is the number of labels, instead it produced one with shape {list(self.shape)}"
        )


class SelectionError(ImageLabelError, ValueError):
    """Invalid arguments to a top-K selection."""


class InvalidKError(SelectionError):
    """``k`` is not in ``1..len(scores)``."""

    def __init__(self, k: int, size: int) -> None:
        self.k = k
        self.size = size
        super().__init__(f"Invalid k={k} for {size} scores (expected 1 <= k <= {size})")


class EmptyInputError(SelectionError):
    """Top-K selection was asked to rank an empty score vector."""

    def __init__(self) -> None:
        super().__init__("Empty input: cannot select from an empty score vector")


class ConfigurationError(ImageLabelError):
    """Settings name a model that does not exist or does not fit its role."""
