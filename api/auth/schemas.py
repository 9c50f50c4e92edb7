"""
Auth API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., alias="fullName", min_length=2, max_length=100)


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)


class EmailRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=254)


class UpdatePasswordRequest(CamelModel):
    access_token: str = Field(..., alias="accessToken", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=8, max_length=128)


class ResetPasswordRequest(CamelModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", min_length=8, max_length=128)


class CreateStudentRequest(CamelModel):
    full_name: str = Field(..., alias="fullName", min_length=2, max_length=100)
    pin: str = Field(..., pattern=r"^\d{4}$")
    age: int = Field(..., ge=1, le=120)
    reading_level: int | None = Field(default=None, alias="readingLevel", ge=1, le=10)


class ResetPinRequest(CamelModel):
    student_id: UUID = Field(..., alias="studentId")
    new_pin: str = Field(..., alias="newPin", pattern=r"^\d{4,6}$")


class StudentLoginRequest(CamelModel):
    student_id: UUID = Field(..., alias="studentId")
    pin: str = Field(..., min_length=4, max_length=6)


class StudentProfileResponse(CamelModel):
    id: str
    full_name: str | None = Field(default=None, alias="fullName")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")
    role: str = "STUDENT"
    created_at: datetime | None = Field(default=None, alias="createdAt")
    admin_id: str | None = Field(default=None, alias="adminId")
    age: int | None = None
    reading_level: int | None = Field(default=None, alias="readingLevel")


class StudentLoginResponse(CamelModel):
    access_token: str = Field(..., alias="accessToken")
    profile: StudentProfileResponse
