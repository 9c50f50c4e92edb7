"""
Profile API endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from auth import dependencies as auth_dependencies
from core.responses import success

from . import schemas, service

router = APIRouter()


@router.get("/profiles/me")
async def get_my_profile(
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    return success(await service.get_profile(current_user["id"]))


@router.patch("/profiles/me")
async def update_my_profile(
    request: schemas.ProfileUpdateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    profile = await service.update_own_profile(current_user, request)
    return success(profile, "Profile updated successfully")


@router.get("/profiles/admin/students")
async def list_my_students(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.list_students(current_user["id"]))


@router.get("/profiles/admin/students/{profile_id}")
async def get_student(
    profile_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_student(current_user, str(profile_id)))


@router.patch("/profiles/admin/students/{profile_id}")
async def update_student(
    profile_id: UUID,
    request: schemas.AdminUpdateStudentRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    profile = await service.update_student(current_user, str(profile_id), request)
    return success(profile, "Student profile updated successfully")


@router.delete("/profiles/admin/students/{profile_id}")
async def delete_student(
    profile_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    await service.delete_student(current_user, str(profile_id))
    return success(message="Student profile deleted successfully")
