"""Environment-based configuration for imagelabel."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagelabel.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from IMAGELABEL_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGELABEL_",
        case_sensitive=False,
    )

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Model artifacts (None = local files only)
    models_dir: str = "models"
    model_repo_id: str | None = None

    # Model selection
    classification_model: str = "inception5h"
    face_detection_model: str = "haarcascade_frontalface_alt"

    # Classification graph I/O and normalization
    input_name: str = "input"
    output_name: str = "output"
    image_height: int = Field(default=224, ge=1)
    image_width: int = Field(default=224, ge=1)
    image_mean: float = 117.0
    image_scale: float = Field(default=1.0, gt=0.0)
    top_k: int = Field(default=5, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)

    # Face detection
    scale_factor: float = Field(default=1.1, gt=1.0)
    min_neighbors: int = Field(default=3, ge=0)
    detection_output: str = "output.png"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


def get_settings() -> Settings:
    """Create and return application settings.

    Raises:
        ConfigurationError: If an IMAGELABEL_* variable holds an invalid value.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid IMAGELABEL_* settings: {exc}") from exc
