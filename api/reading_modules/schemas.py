"""
Reading-module API schemas.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_PARAGRAPHS = 40

Genre = Literal[
    "History",
    "Adventure",
    "Science",
    "Non-Fiction",
    "Fantasy",
    "Biography",
    "Mystery",
    "Science-Fiction",
    "Folktale",
    "Custom",
]
Language = Literal["UK", "US"]
ModuleType = Literal["curated", "custom"]


class Paragraph(BaseModel):
    index: int = Field(..., ge=1)
    text: str = Field(..., min_length=1, max_length=5000)


def _check_paragraph_indices(paragraphs: list[Paragraph] | None) -> list[Paragraph] | None:
    """
    Paragraph indices must run 1..n with no gaps or repeats, so that
    `paragraph_count` is also the last index a student can submit.
    """
    if paragraphs is None:
        return paragraphs
    indices = [p.index for p in paragraphs]
    if len(set(indices)) != len(indices):
        raise ValueError("Paragraph indices must be unique")
    if sorted(indices) != list(range(1, len(indices) + 1)):
        raise ValueError("Paragraph indices must be sequential starting from 1")
    return paragraphs


class _ModuleFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str | None = Field(default=None, max_length=2000)
    image_url: str | None = Field(default=None, alias="imageUrl", max_length=2048, pattern=r"^https?://\S+$")
    estimated_reading_time: int | None = Field(default=None, alias="estimatedReadingTime", ge=1, le=1440)
    author_first_name: str | None = Field(default=None, alias="authorFirstName", max_length=100)
    author_last_name: str | None = Field(default=None, alias="authorLastName", max_length=100)


class ModuleCreateRequest(_ModuleFields):
    title: str = Field(..., min_length=1, max_length=255)
    structured_content: list[Paragraph] = Field(
        ..., alias="structuredContent", min_length=1, max_length=MAX_PARAGRAPHS
    )
    level: int = Field(..., ge=1, le=10)
    genre: Genre
    language: Language = "UK"
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("structured_content")
    @classmethod
    def _paragraph_indices(cls, value):
        return _check_paragraph_indices(value)


class ModuleUpdateRequest(_ModuleFields):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    structured_content: list[Paragraph] | None = Field(
        default=None, alias="structuredContent", min_length=1, max_length=MAX_PARAGRAPHS
    )
    level: int | None = Field(default=None, ge=1, le=10)
    genre: Genre | None = None
    language: Language | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
    # Only honoured for super admins.
    type: ModuleType | None = None
    admin_id: UUID | None = Field(default=None, alias="adminId")

    @field_validator("structured_content")
    @classmethod
    def _paragraph_indices(cls, value):
        return _check_paragraph_indices(value)

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class VocabularyCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    paragraph_index: int = Field(..., alias="paragraphIndex", ge=1)
    word: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)


class VocabularyUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    paragraph_index: int | None = Field(default=None, alias="paragraphIndex", ge=1)
    word: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self
