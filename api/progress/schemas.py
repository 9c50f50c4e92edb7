"""
Progress API schemas.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StartProgressRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: UUID = Field(alias="moduleId")


class SubmitSummaryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: UUID = Field(alias="moduleId")
    paragraph_index: int = Field(alias="paragraphIndex", ge=1)
    paragraph_summary: str = Field(alias="paragraphSummary", min_length=1, max_length=1000)
    cumulative_summary: str = Field(alias="cumulativeSummary", min_length=1, max_length=10000)


class AdminProgressUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: int | None = Field(default=None, ge=0, le=100)
    teacher_feedback: str | None = Field(default=None, alias="teacherFeedback", max_length=2000)
    completed: bool | None = None

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self

    def to_columns(self) -> dict[str, object]:
        # `completed: null` leaves the flag unchanged.
        values = {name: getattr(self, name) for name in self.model_fields_set}
        if values.get("completed") is None:
            values.pop("completed", None)
        return values
