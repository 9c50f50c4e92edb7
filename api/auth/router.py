"""
Auth API endpoints (admin sessions via Supabase, student PIN login).
"""

from __future__ import annotations

from fastapi import APIRouter, Cookie, Depends, Query, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from core import config
from core.errors import AppError, error_body
from core.responses import success

from . import dependencies, schemas, service

router = APIRouter()

ADMIN_REFRESH_COOKIE = "refresh-token"
STUDENT_REFRESH_COOKIE = "student_refresh_token"
ADMIN_REFRESH_COOKIE_MAX_AGE = 30 * 24 * 60 * 60


def _set_admin_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        ADMIN_REFRESH_COOKIE,
        refresh_token,
        max_age=ADMIN_REFRESH_COOKIE_MAX_AGE,
        httponly=True,
        secure=config.is_production(),
        samesite="lax",
        path="/",
    )


def _set_student_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        STUDENT_REFRESH_COOKIE,
        refresh_token,
        max_age=config.student_refresh_token_seconds(),
        httponly=True,
        secure=config.is_production(),
        samesite="lax",
        path="/",
    )


def _clear_cookie(response: Response, name: str) -> None:
    response.delete_cookie(name, path="/", httponly=True, secure=config.is_production(), samesite="lax")


# Public admin flows

@router.post("/auth/signup", status_code=status.HTTP_201_CREATED)
async def sign_up(request: schemas.SignupRequest) -> dict:
    data = await service.sign_up_admin(request)
    return success(data, "Admin account created successfully")


@router.post("/auth/login")
async def login(request: schemas.LoginRequest, response: Response) -> dict:
    result = await service.login_admin(request)
    refresh_token = result.pop("refreshToken", None)
    if refresh_token:
        _set_admin_refresh_cookie(response, refresh_token)
    return success(result, "Admin login successful")


@router.get("/auth/google")
async def google_login() -> dict:
    return success({"url": await service.google_authorize_url()})


@router.get("/auth/callback")
async def oauth_callback(
    token: str | None = Query(default=None),
    refresh_token: str | None = Query(default=None),
) -> RedirectResponse:
    if not token:
        raise AppError("Invalid or missing token", status.HTTP_400_BAD_REQUEST)

    path = await service.oauth_redirect_path(token)
    redirect = RedirectResponse(url=f"{config.frontend_url()}{path}", status_code=status.HTTP_302_FOUND)
    if refresh_token:
        _set_admin_refresh_cookie(redirect, refresh_token)
    return redirect


@router.post("/auth/refresh", response_model=None)
async def refresh(
    response: Response,
    refresh_token: str | None = Cookie(default=None, alias=ADMIN_REFRESH_COOKIE),
) -> Response | dict:
    if not refresh_token:
        raise AppError("Refresh token missing", status.HTTP_401_UNAUTHORIZED)

    try:
        result = await service.refresh_admin_session(refresh_token)
    except AppError as exc:
        # A dead refresh token must not linger in the browser.
        error_response = JSONResponse(status_code=exc.status_code, content=error_body(exc.message))
        _clear_cookie(error_response, ADMIN_REFRESH_COOKIE)
        return error_response

    if result.get("refreshToken"):
        _set_admin_refresh_cookie(response, result["refreshToken"])
    return success({"accessToken": result["accessToken"]}, "Token refreshed")


@router.post("/auth/resend-verification")
async def resend_verification(request: schemas.EmailRequest) -> dict:
    await service.resend_verification(request.email)
    return success(message="Verification email sent. Please check your inbox.")


@router.post("/auth/forgot-password")
async def forgot_password(request: schemas.EmailRequest) -> dict:
    await service.forgot_password(request.email)
    return success(message="If an account exists for this email, a password reset link has been sent.")


@router.post("/auth/update-password")
async def update_password(request: schemas.UpdatePasswordRequest) -> dict:
    await service.update_password(request.access_token, request.new_password)
    return success(message="Password updated successfully")


# Authenticated admin flows

@router.post("/auth/logout")
async def logout(
    response: Response,
    current_user: dict = Depends(dependencies.require_admin),
) -> dict:
    await service.sign_out_everywhere(current_user["access_token"])
    _clear_cookie(response, ADMIN_REFRESH_COOKIE)
    _clear_cookie(response, STUDENT_REFRESH_COOKIE)
    return success(message="Logged out successfully")


@router.post("/auth/reset-password")
async def reset_password(
    request: schemas.ResetPasswordRequest,
    current_user: dict = Depends(dependencies.require_admin),
) -> dict:
    await service.reset_admin_password(current_user["id"], request.current_password, request.new_password)
    return success(message="Password reset successfully")


@router.post("/auth/invalidate-all-sessions")
async def invalidate_all_sessions(
    response: Response,
    current_user: dict = Depends(dependencies.require_admin),
) -> dict:
    await service.sign_out_everywhere(current_user["access_token"])
    _clear_cookie(response, ADMIN_REFRESH_COOKIE)
    return success(message="All sessions have been invalidated")


@router.post("/auth/admin/student", status_code=status.HTTP_201_CREATED)
async def create_student(
    request: schemas.CreateStudentRequest,
    current_user: dict = Depends(dependencies.require_admin),
) -> dict:
    student = await service.create_student(current_user["id"], request)
    return success(student, "Student created successfully")


@router.post("/auth/admin/student/reset-pin")
async def reset_student_pin(
    request: schemas.ResetPinRequest,
    current_user: dict = Depends(dependencies.require_admin),
) -> dict:
    await service.reset_student_pin(current_user, str(request.student_id), request.new_pin)
    return success(message="Student PIN reset successfully")


# Students

@router.post("/auth/student/login")
async def student_login(request: schemas.StudentLoginRequest, response: Response) -> dict:
    body, refresh_token = await service.login_student(request)
    _set_student_refresh_cookie(response, refresh_token)
    return success(body, "Student login successful")


@router.post("/auth/student/refresh")
async def student_refresh(
    refresh_token: str | None = Cookie(default=None, alias=STUDENT_REFRESH_COOKIE),
) -> dict:
    access_token = await service.refresh_student_token(refresh_token)
    return success({"accessToken": access_token})


@router.post("/auth/student/logout")
async def student_logout(response: Response) -> dict:
    _clear_cookie(response, STUDENT_REFRESH_COOKIE)
    return success(message="Logged out successfully")
