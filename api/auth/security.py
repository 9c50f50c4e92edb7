"""
Auth security helpers: PIN hashing and student JWTs.

Admin tokens are issued and verified by Supabase; only student tokens are
signed here.
"""

from __future__ import annotations

import time
from typing import Any

import bcrypt
import jwt

from core import config

ADMIN_ROLE = "ADMIN"
SUPER_ADMIN_ROLE = "SUPER_ADMIN"
STUDENT_ROLE = "STUDENT"
ADMIN_ROLES = frozenset({ADMIN_ROLE, SUPER_ADMIN_ROLE})

STUDENT_REFRESH_TYPE = "student_refresh"


class AuthSecurityError(RuntimeError):
    pass


def now_epoch_s() -> int:
    return int(time.time())


def hash_pin(plain_pin: str) -> str:
    pin = (plain_pin or "").encode("utf-8")
    if not pin:
        raise AuthSecurityError("PIN is empty.")
    return bcrypt.hashpw(pin, bcrypt.gensalt()).decode("utf-8")


def verify_pin(plain_pin: str, pin_hash: str) -> bool:
    pin = (plain_pin or "").encode("utf-8")
    hashed = (pin_hash or "").encode("utf-8")
    if not pin or not hashed:
        return False
    try:
        return bcrypt.checkpw(pin, hashed)
    except ValueError:
        return False


def build_student_access_token(*, student_id: str, admin_id: str) -> str:
    issued_at = now_epoch_s()
    payload = {
        "id": str(student_id),
        "role": STUDENT_ROLE,
        "adminId": str(admin_id),
        "iat": issued_at,
        "exp": issued_at + config.student_access_token_seconds(),
    }
    return jwt.encode(payload, config.jwt_secret(), algorithm=config.jwt_algorithm())


def decode_student_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(raw, config.jwt_secret(), algorithms=[config.jwt_algorithm()])
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid student token.") from exc

    if payload.get("role") != STUDENT_ROLE or not payload.get("id") or not payload.get("adminId"):
        raise AuthSecurityError("Token is not a student access token.")
    return payload


def build_student_refresh_token(*, student_id: str) -> str:
    issued_at = now_epoch_s()
    payload = {
        "id": str(student_id),
        "type": STUDENT_REFRESH_TYPE,
        "iat": issued_at,
        "exp": issued_at + config.student_refresh_token_seconds(),
    }
    return jwt.encode(payload, config.jwt_refresh_secret(), algorithm=config.jwt_algorithm())


def decode_student_refresh_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Refresh token is empty.")

    try:
        payload = jwt.decode(raw, config.jwt_refresh_secret(), algorithms=[config.jwt_algorithm()])
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid refresh token.") from exc

    if payload.get("type") != STUDENT_REFRESH_TYPE or not payload.get("id"):
        raise AuthSecurityError("Token is not a student refresh token.")
    return payload
