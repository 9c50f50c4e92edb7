"""
Profile business logic.
"""

from __future__ import annotations

import logging

from fastapi import status

from auth.security import STUDENT_ROLE
from core.errors import AppError

from . import repository, schemas

logger = logging.getLogger(__name__)


def to_profile_dict(row: dict) -> dict:
    role = row["role"]
    if role != STUDENT_ROLE and not row.get("email"):
        logger.error("profile_missing_email profile_id=%s", row["id"])
        raise AppError("Profile data is incomplete")

    profile = {
        "profileId": str(row["id"]),
        "email": row.get("email"),
        "fullName": row.get("full_name"),
        "avatarUrl": row.get("avatar_url"),
        "role": role,
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
        "stripeCustomerId": row.get("stripe_customer_id"),
        "subscriptionStatus": row.get("subscription_status"),
        "subscriptionPlan": row.get("current_plan_tier") or row.get("subscription_plan"),
        "subscriptionRenewalDate": row.get("subscription_renewal_date"),
        "completedModulesCount": int(row.get("completed_modules_count") or 0),
    }
    if role == STUDENT_ROLE:
        profile["adminId"] = str(row["admin_id"]) if row.get("admin_id") else None
        profile["age"] = row.get("age")
        profile["readingLevel"] = row.get("reading_level")
    return profile


async def get_profile(profile_id: str) -> dict:
    row = await repository.get_profile(profile_id)
    if row is None:
        raise AppError("Profile not found", status.HTTP_404_NOT_FOUND)
    return to_profile_dict(row)


async def update_own_profile(current_user: dict, payload: schemas.ProfileUpdateRequest) -> dict:
    if current_user["role"] == STUDENT_ROLE:
        raise AppError("Students cannot update their profile", status.HTTP_403_FORBIDDEN)

    updated = await repository.update_profile(current_user["id"], payload.to_columns())
    if not updated:
        raise AppError("Profile not found", status.HTTP_404_NOT_FOUND)
    return await get_profile(current_user["id"])


async def list_students(admin_id: str) -> list[dict]:
    rows = await repository.list_students_for_admin(admin_id)
    return [to_profile_dict(row) for row in rows]


async def _get_managed_student(current_user: dict, profile_id: str) -> dict:
    row = await repository.get_profile(profile_id)
    if row is None:
        raise AppError("Profile not found", status.HTTP_404_NOT_FOUND)
    if row["role"] != STUDENT_ROLE:
        raise AppError("Target profile is not a student", status.HTTP_400_BAD_REQUEST)
    if not current_user["is_super_admin"] and str(row.get("admin_id")) != current_user["id"]:
        raise AppError("You do not manage this student", status.HTTP_403_FORBIDDEN)
    return row


async def get_student(current_user: dict, profile_id: str) -> dict:
    return to_profile_dict(await _get_managed_student(current_user, profile_id))


async def update_student(
    current_user: dict,
    profile_id: str,
    payload: schemas.AdminUpdateStudentRequest,
) -> dict:
    await _get_managed_student(current_user, profile_id)
    await repository.update_profile(profile_id, payload.to_columns())
    logger.info("student_updated admin_id=%s student_id=%s", current_user["id"], profile_id)
    return await get_profile(profile_id)


async def delete_student(current_user: dict, profile_id: str) -> None:
    await _get_managed_student(current_user, profile_id)
    await repository.delete_profile(profile_id)
    logger.info("student_deleted admin_id=%s student_id=%s", current_user["id"], profile_id)
