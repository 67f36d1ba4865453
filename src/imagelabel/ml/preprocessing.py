"""Image decoding and normalization for the classification model.

Decode, convert to RGB, cast to float, resize bilinearly, subtract the mean,
divide by the scale and add a batch dimension. The defaults match the
Inception5h graph, which was trained on 224x224 RGB images converted to
float with ``(value - 117) / 1``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2
import numpy as np

from imagelabel.errors import ResourceError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from imagelabel.config import Settings


@dataclass(frozen=True)
class NormalizationParams:
    """Input geometry and pixel normalization expected by a model."""

    height: int = 224
    width: int = 224
    mean: float = 117.0
    scale: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> NormalizationParams:
        return cls(
            height=settings.image_height,
            width=settings.image_width,
            mean=settings.image_mean,
            scale=settings.image_scale,
        )


class ImagePreprocessor:
    """Turns encoded image bytes into model input tensors."""

    def __init__(
        self,
        params: NormalizationParams | None = None,
        *,
        max_image_pixels: int = 16_777_216,
        max_file_size: int = 209_715_200,
    ) -> None:
        self.params = params or NormalizationParams()
        self._max_image_pixels = max_image_pixels
        self._max_file_size = max_file_size

    @classmethod
    def from_settings(cls, settings: Settings) -> ImagePreprocessor:
        return cls(
            NormalizationParams.from_settings(settings),
            max_image_pixels=settings.max_image_pixels,
            max_file_size=settings.max_file_size,
        )

    def decode_image(self, image_bytes: bytes, source: str = "<memory>") -> NDArray[np.uint8]:
        """Decode raw image bytes into a BGR uint8 array.

        Args:
            image_bytes: Raw file bytes in any format OpenCV can read.
            source: Name used in error messages, usually the file path.

        Returns:
            HxWx3 BGR uint8 numpy array.

        Raises:
            ResourceError: If the data is empty, too large, or cannot be decoded.
        """
        if not image_bytes:
            raise ResourceError(source, "image data is empty")
        if len(image_bytes) > self._max_file_size:
            raise ResourceError(source, f"image is {len(image_bytes)} bytes, limit is {self._max_file_size}")

        buffer = np.frombuffer(image_bytes, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise ResourceError(source, "unsupported or corrupt image data")

        height, width = image.shape[:2]
        if height * width > self._max_image_pixels:
            raise ResourceError(source, f"image has {height * width} pixels, limit is {self._max_image_pixels}")
        return image

    def normalize(self, image: NDArray[np.uint8]) -> NDArray[np.float32]:
        """Convert a decoded BGR image into a normalized NHWC batch of one.

        Returns:
            float32 array of shape (1, height, width, 3), RGB channel order.
        """
        params = self.params
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB).astype(np.float32)
        resized = cv2.resize(rgb, (params.width, params.height), interpolation=cv2.INTER_LINEAR)
        normalized = (resized - np.float32(params.mean)) / np.float32(params.scale)
        return np.ascontiguousarray(np.expand_dims(normalized, axis=0), dtype=np.float32)

    def to_tensor(self, image_bytes: bytes, source: str = "<memory>") -> NDArray[np.float32]:
        """Decode and normalize in one step."""
        return self.normalize(self.decode_image(image_bytes, source))
