"""
Auth dependencies for protected FastAPI routes.

Two token authorities are accepted on the same `Authorization: Bearer` header:
- students carry a JWT signed by this API (`security.build_student_access_token`)
- admins carry a Supabase session access token

Every dependency resolves to a plain user context dict:
    {"id": str, "role": str, "is_super_admin": bool, "admin_id": str | None,
     "access_token": str}
"""

from __future__ import annotations

import logging

from fastapi import Depends, Header, status

from core import supabase
from core.errors import AppError

from . import repository, security

logger = logging.getLogger(__name__)


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    parts = raw.split(" ", 1)
    if len(parts) != 2 or parts[0].strip().lower() != "bearer" or not parts[1].strip():
        raise AppError("Authentication required", status.HTTP_401_UNAUTHORIZED)
    return parts[1].strip()


def _student_context(payload: dict, access_token: str) -> dict:
    return {
        "id": str(payload["id"]),
        "role": security.STUDENT_ROLE,
        "is_super_admin": False,
        "admin_id": str(payload["adminId"]),
        "access_token": access_token,
    }


def _admin_context(user_id: str, role: str, access_token: str) -> dict:
    return {
        "id": str(user_id),
        "role": role,
        "is_super_admin": role == security.SUPER_ADMIN_ROLE,
        "admin_id": None,
        "access_token": access_token,
    }


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def _supabase_user_id(access_token: str) -> str | None:
    try:
        user = await supabase.get_user(access_token)
    except supabase.SupabaseError as exc:
        logger.debug("supabase_token_rejected status=%s", exc.status_code)
        return None
    return str(user["id"])


async def resolve_user(access_token: str) -> dict:
    """
    Student JWT first, then Supabase. Raises 401 when neither accepts the token.
    """
    try:
        payload = security.decode_student_access_token(access_token)
    except security.AuthSecurityError:
        payload = None
    if payload is not None:
        return _student_context(payload, access_token)

    user_id = await _supabase_user_id(access_token)
    if user_id is None:
        raise AppError("Invalid or expired token", status.HTTP_401_UNAUTHORIZED)

    role = await repository.get_profile_role(user_id)
    if role is None:
        raise AppError("User profile not found", status.HTTP_404_NOT_FOUND)
    if role not in security.ADMIN_ROLES:
        raise AppError("Insufficient permissions", status.HTTP_403_FORBIDDEN)
    return _admin_context(user_id, role, access_token)


async def get_current_user(access_token: str = Depends(get_bearer_token)) -> dict:
    return await resolve_user(access_token)


async def get_optional_user(authorization: str | None = Header(default=None)) -> dict | None:
    if not (authorization or "").strip():
        return None
    try:
        return await resolve_user(_extract_bearer_token(authorization))
    except AppError:
        return None


async def _admin_from_supabase(access_token: str, allowed_roles: frozenset[str]) -> dict:
    user_id = await _supabase_user_id(access_token)
    if user_id is None:
        raise AppError("Invalid or expired token", status.HTTP_401_UNAUTHORIZED)

    role = await repository.get_profile_role(user_id)
    if role is None:
        raise AppError("Admin profile not found", status.HTTP_403_FORBIDDEN)
    if role not in allowed_roles:
        raise AppError("Insufficient permissions", status.HTTP_403_FORBIDDEN)
    return _admin_context(user_id, role, access_token)


async def require_admin(access_token: str = Depends(get_bearer_token)) -> dict:
    return await _admin_from_supabase(access_token, security.ADMIN_ROLES)


async def require_super_admin(access_token: str = Depends(get_bearer_token)) -> dict:
    return await _admin_from_supabase(access_token, frozenset({security.SUPER_ADMIN_ROLE}))


async def require_student(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user["role"] != security.STUDENT_ROLE:
        raise AppError("This action is only available to students", status.HTTP_403_FORBIDDEN)
    return current_user
