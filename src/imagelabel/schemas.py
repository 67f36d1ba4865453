"""Pydantic schemas for the command line's JSON reports."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ImageTag(BaseModel):
    """A single classification tag with confidence score."""

    label: str
    confidence: float = Field(description="Model output for this label, usually a probability")


class ClassifyImageResponse(BaseModel):
    """Report of the ``classify`` command."""

    image: str
    model: str
    best_match: ImageTag
    tags: list[ImageTag] = Field(description="Top-k tags, best first")


class DetectedFace(BaseModel):
    """A detected face as a pixel bounding box."""

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class DetectFacesResponse(BaseModel):
    """Report of the ``detect`` command."""

    image: str
    model: str
    faces: list[DetectedFace]
    output: str = Field(description="Path of the annotated image")
