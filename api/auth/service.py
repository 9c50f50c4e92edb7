"""
Auth business logic.

Admin accounts live in Supabase Auth; this module only mirrors them into
`profiles`. Student accounts are local profiles with a bcrypt PIN.
"""

from __future__ import annotations

import logging

from fastapi import status

from core import config, supabase
from core.errors import AppError
from subscriptions import service as subscription_service

from . import repository, schemas, security

logger = logging.getLogger(__name__)

_UNCONFIRMED_MARKERS = ("email not confirmed", "email_not_confirmed", "confirm", "verify")


def to_student_profile(row: dict) -> schemas.StudentProfileResponse:
    return schemas.StudentProfileResponse(
        id=str(row["id"]),
        full_name=row.get("full_name"),
        avatar_url=row.get("avatar_url"),
        created_at=row.get("created_at"),
        admin_id=str(row["admin_id"]) if row.get("admin_id") else None,
        age=row.get("age"),
        reading_level=row.get("reading_level"),
    )


def _is_unconfirmed_email(message: str) -> bool:
    lowered = (message or "").lower()
    return any(marker in lowered for marker in _UNCONFIRMED_MARKERS)


# Admin accounts

async def sign_up_admin(payload: schemas.SignupRequest) -> dict:
    email = repository.normalize_email(payload.email)

    try:
        existing = await supabase.find_user_by_email(email)
    except supabase.SupabaseError as exc:
        logger.error("signup_precheck_failed error=%s", exc)
        raise AppError("Failed to verify email address. Please try again.") from exc
    if existing is not None:
        raise AppError("Email address is already registered.", status.HTTP_409_CONFLICT)

    try:
        data = await supabase.sign_up(email, payload.password, payload.full_name)
    except supabase.SupabaseError as exc:
        if "already registered" in exc.message.lower():
            raise AppError("Email address is already registered.", status.HTTP_409_CONFLICT) from exc
        raise AppError(f"Authentication error: {exc.message}", status.HTTP_400_BAD_REQUEST) from exc

    user_id = data["user"].get("id")
    if not user_id:
        raise AppError("User creation failed after signup")

    profile = await repository.upsert_admin_profile(
        user_id=str(user_id),
        email=email,
        full_name=payload.full_name,
    )
    logger.info("admin_signed_up user_id=%s", user_id)
    return {
        "userId": str(user_id),
        "email": email,
        "profile": {
            "id": str(profile["id"]),
            "role": profile["role"],
            "fullName": profile.get("full_name"),
            "email": profile.get("email"),
        },
    }


async def login_admin(payload: schemas.LoginRequest) -> dict:
    try:
        session = await supabase.sign_in_with_password(repository.normalize_email(payload.email), payload.password)
    except supabase.SupabaseError as exc:
        if _is_unconfirmed_email(exc.message):
            raise AppError(
                "Please verify your email address before signing in.",
                status.HTTP_400_BAD_REQUEST,
            ) from exc
        if exc.status_code is not None and exc.status_code < 500:
            raise AppError("Invalid credentials", status.HTTP_401_UNAUTHORIZED) from exc
        logger.error("admin_login_upstream_failed error=%s", exc)
        raise AppError("Login failed") from exc

    user = session.get("user") or {}
    if not user.get("id"):
        raise AppError("Login failed", status.HTTP_400_BAD_REQUEST)
    if not user.get("email_confirmed_at"):
        raise AppError("Please verify your email address before signing in.", status.HTTP_400_BAD_REQUEST)

    profile = await repository.get_profile_by_id(str(user["id"]))
    if profile is None or profile["role"] not in security.ADMIN_ROLES:
        raise AppError("Admin profile not found", status.HTTP_404_NOT_FOUND)

    if not session.get("access_token"):
        raise AppError("Login failed, no session returned.")

    return {
        "userId": str(user["id"]),
        "email": user.get("email"),
        "accessToken": session["access_token"],
        "refreshToken": session.get("refresh_token"),
    }


async def refresh_admin_session(refresh_token: str) -> dict:
    try:
        session = await supabase.refresh_session(refresh_token)
    except supabase.SupabaseError as exc:
        logger.info("admin_refresh_rejected status=%s", exc.status_code)
        raise AppError("Invalid or expired refresh token", status.HTTP_401_UNAUTHORIZED) from exc

    if not session.get("access_token"):
        raise AppError("Invalid or expired refresh token", status.HTTP_401_UNAUTHORIZED)
    return {
        "accessToken": session["access_token"],
        "refreshToken": session.get("refresh_token"),
    }


async def sign_out_everywhere(access_token: str) -> None:
    try:
        await supabase.sign_out(access_token, scope="global")
    except supabase.SupabaseError as exc:
        logger.error("admin_sign_out_failed status=%s error=%s", exc.status_code, exc)
        raise AppError("Failed to logout") from exc


async def resend_verification(email: str) -> None:
    try:
        user = await supabase.find_user_by_email(email)
    except supabase.SupabaseError as exc:
        logger.error("resend_lookup_failed error=%s", exc)
        raise AppError("Failed to process verification request.") from exc

    if user is None:
        raise AppError("Email address not found.", status.HTTP_404_NOT_FOUND)
    if user.get("email_confirmed_at"):
        raise AppError("Email is already verified.", status.HTTP_400_BAD_REQUEST)

    try:
        await supabase.resend_signup(repository.normalize_email(email))
    except supabase.SupabaseError as exc:
        logger.error("resend_verification_failed error=%s", exc)
        raise AppError("Failed to resend verification email.") from exc
    logger.info("verification_resent")


async def forgot_password(email: str) -> None:
    """
    Request a reset mail. Never fails: callers must not learn whether the
    address exists.
    """
    try:
        await supabase.recover(
            repository.normalize_email(email),
            redirect_to=f"{config.client_url()}/password-reset",
        )
    except supabase.SupabaseError as exc:
        logger.warning("password_reset_mail_failed status=%s", exc.status_code)


async def update_password(access_token: str, new_password: str) -> None:
    try:
        user = await supabase.get_user(access_token)
    except supabase.SupabaseError as exc:
        raise AppError(
            "Password reset session has expired. Please request a new password reset.",
            status.HTTP_401_UNAUTHORIZED,
        ) from exc

    try:
        await supabase.admin_update_user(str(user["id"]), {"password": new_password})
    except supabase.SupabaseError as exc:
        logger.error("password_update_failed user_id=%s error=%s", user["id"], exc)
        raise AppError("Failed to update password") from exc
    logger.info("password_updated user_id=%s", user["id"])


async def reset_admin_password(user_id: str, current_password: str, new_password: str) -> None:
    profile = await repository.get_profile_by_id(user_id)
    if profile is None or not profile.get("email"):
        raise AppError("Admin profile not found", status.HTTP_404_NOT_FOUND)

    try:
        await supabase.sign_in_with_password(str(profile["email"]), current_password)
    except supabase.SupabaseError as exc:
        raise AppError("Current password is incorrect", status.HTTP_401_UNAUTHORIZED) from exc

    try:
        await supabase.admin_update_user(user_id, {"password": new_password})
    except supabase.SupabaseError as exc:
        logger.error("password_reset_failed user_id=%s error=%s", user_id, exc)
        raise AppError("Failed to reset password") from exc
    logger.info("admin_password_reset user_id=%s", user_id)


# Students

async def create_student(admin_id: str, payload: schemas.CreateStudentRequest) -> schemas.StudentProfileResponse:
    plan, _ = await subscription_service.get_plan_for_user(admin_id)
    student_limit = int(plan["student_limit"])
    current = await repository.count_students_for_admin(admin_id)
    if current >= student_limit:
        raise AppError(
            f"Student limit reached for your plan ({student_limit}). Upgrade to add more students.",
            status.HTTP_403_FORBIDDEN,
        )

    row = await repository.create_student(
        admin_id=admin_id,
        full_name=payload.full_name.strip(),
        pin_hash=security.hash_pin(payload.pin),
        age=payload.age,
        reading_level=payload.reading_level,
    )
    logger.info("student_created admin_id=%s student_id=%s", admin_id, row["id"])
    return to_student_profile(row)


async def reset_student_pin(current_user: dict, student_id: str, new_pin: str) -> None:
    student = await repository.get_profile_by_id(student_id)
    if student is None or student["role"] != security.STUDENT_ROLE:
        raise AppError("Student not found", status.HTTP_404_NOT_FOUND)
    if not current_user["is_super_admin"] and str(student.get("admin_id")) != current_user["id"]:
        raise AppError("You do not manage this student", status.HTTP_403_FORBIDDEN)

    await repository.update_student_pin(student_id, security.hash_pin(new_pin))
    logger.info("student_pin_reset admin_id=%s student_id=%s", current_user["id"], student_id)


async def login_student(payload: schemas.StudentLoginRequest) -> tuple[schemas.StudentLoginResponse, str]:
    """
    Returns the response body and the refresh token for the cookie.
    """
    student = await repository.get_profile_by_id(str(payload.student_id))
    if student is None or student["role"] != security.STUDENT_ROLE:
        raise AppError("Invalid Student ID or PIN", status.HTTP_401_UNAUTHORIZED)
    if not student.get("pin") or not student.get("admin_id"):
        raise AppError("Student account is not fully set up", status.HTTP_400_BAD_REQUEST)
    if not security.verify_pin(payload.pin, str(student["pin"])):
        raise AppError("Invalid PIN", status.HTTP_401_UNAUTHORIZED)

    student_id = str(student["id"])
    access_token = security.build_student_access_token(
        student_id=student_id,
        admin_id=str(student["admin_id"]),
    )
    refresh_token = security.build_student_refresh_token(student_id=student_id)
    logger.info("student_logged_in student_id=%s", student_id)
    body = schemas.StudentLoginResponse(access_token=access_token, profile=to_student_profile(student))
    return body, refresh_token


async def refresh_student_token(refresh_token: str | None) -> str:
    if not refresh_token:
        raise AppError("Refresh token missing", status.HTTP_401_UNAUTHORIZED)
    try:
        payload = security.decode_student_refresh_token(refresh_token)
    except security.AuthSecurityError as exc:
        raise AppError("Invalid or expired refresh token", status.HTTP_401_UNAUTHORIZED) from exc

    student = await repository.get_profile_by_id(str(payload["id"]))
    if student is None or student["role"] != security.STUDENT_ROLE or not student.get("admin_id"):
        raise AppError("Student not found", status.HTTP_401_UNAUTHORIZED)

    return security.build_student_access_token(
        student_id=str(student["id"]),
        admin_id=str(student["admin_id"]),
    )


# OAuth

async def google_authorize_url() -> str:
    try:
        return await supabase.authorize_url("google", redirect_to=f"{config.frontend_url()}/auth/callback")
    except supabase.SupabaseError as exc:
        raise AppError(f"Failed to initiate Google sign-in: {exc.message}") from exc


async def oauth_redirect_path(access_token: str) -> str:
    try:
        user = await supabase.get_user(access_token)
    except supabase.SupabaseError as exc:
        raise AppError("Failed to validate OAuth session", status.HTTP_401_UNAUTHORIZED) from exc

    role = await repository.get_profile_role(str(user["id"]))
    if role is None:
        return "/auth/complete-profile"
    if role in security.ADMIN_ROLES:
        return "/admin/dashboard"
    return "/student/dashboard"
