"""
Profile API schemas.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, model_validator

# Request field -> profiles column
PROFILE_COLUMNS = {
    "full_name": "full_name",
    "avatar_url": "avatar_url",
    "age": "age",
    "reading_level": "reading_level",
}


class _PartialUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Fields that may be omitted but never cleared with an explicit null.
    required_columns: ClassVar[frozenset[str]] = frozenset({"full_name"})

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        for name in sorted(self.model_fields_set & self.required_columns):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_columns(self) -> dict[str, object]:
        values: dict[str, object] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            values[PROFILE_COLUMNS[name]] = str(value) if isinstance(value, HttpUrl) else value
        return values


class ProfileUpdateRequest(_PartialUpdate):
    full_name: str | None = Field(default=None, alias="fullName", min_length=2, max_length=100)
    avatar_url: HttpUrl | None = Field(default=None, alias="avatarUrl")


class AdminUpdateStudentRequest(_PartialUpdate):
    required_columns: ClassVar[frozenset[str]] = frozenset({"full_name", "age"})

    full_name: str | None = Field(default=None, alias="fullName", min_length=2, max_length=100)
    avatar_url: HttpUrl | None = Field(default=None, alias="avatarUrl")
    age: int | None = Field(default=None, ge=1, le=120)
    reading_level: int | None = Field(default=None, alias="readingLevel", ge=1, le=10)
