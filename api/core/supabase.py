"""
Supabase Auth helpers on top of the official `supabase` async client.

Every call builds its own client with session persistence off, so no session
state is shared between requests. Session calls use the anon key; admin calls
(user listing, password updates, sign-out by JWT) use the service role key.

Results are plain dicts (`model_dump(mode="json")`); SDK and transport errors
surface as `SupabaseError`.
"""

from __future__ import annotations

from typing import Any, Awaitable

import httpx
from supabase import AsyncClient, AsyncClientOptions, AuthError, acreate_client

from . import config


class SupabaseError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


async def _client(key: str) -> AsyncClient:
    url = config.supabase_url()
    if not url:
        raise SupabaseError("SUPABASE_URL is empty.")
    return await acreate_client(
        url,
        key,
        options=AsyncClientOptions(
            persist_session=False,
            auto_refresh_token=False,
            # The frontend receives tokens in the redirect fragment.
            flow_type="implicit",
        ),
    )


async def _anon_client() -> AsyncClient:
    return await _client(config.supabase_anon_key())


async def _service_client() -> AsyncClient:
    key = config.supabase_service_role_key()
    if not key:
        raise SupabaseError("SUPABASE_SERVICE_ROLE_KEY is empty.")
    return await _client(key)


async def _call(awaitable: Awaitable[Any]) -> Any:
    try:
        return await awaitable
    except AuthError as exc:
        raise SupabaseError(exc.message, status_code=getattr(exc, "status", None)) from exc
    except httpx.HTTPError as exc:
        raise SupabaseError(f"Supabase request failed: {exc}") from exc


def _dump(model: Any) -> dict:
    return model.model_dump(mode="json") if model is not None else {}


async def get_user(access_token: str) -> dict:
    token = (access_token or "").strip()
    if not token:
        raise SupabaseError("Access token is empty.", status_code=401)
    client = await _anon_client()
    response = await _call(client.auth.get_user(token))
    user = _dump(response.user if response is not None else None)
    if not user.get("id"):
        raise SupabaseError("Supabase returned no user.", status_code=401)
    return user


async def sign_in_with_password(email: str, password: str) -> dict:
    """
    Password grant. Returns the session: access_token, refresh_token, user.
    """
    client = await _anon_client()
    response = await _call(client.auth.sign_in_with_password({"email": email, "password": password}))
    session = _dump(response.session)
    session["user"] = _dump(response.user)
    return session


async def refresh_session(refresh_token: str) -> dict:
    client = await _anon_client()
    response = await _call(client.auth.refresh_session(refresh_token))
    return _dump(response.session)


async def sign_up(email: str, password: str, full_name: str) -> dict:
    """
    Returns {"user": ..., "session": ...}; the session is empty while email
    confirmation is pending.
    """
    client = await _anon_client()
    response = await _call(
        client.auth.sign_up(
            {
                "email": email,
                "password": password,
                "options": {"data": {"full_name": full_name}},
            }
        )
    )
    return {"user": _dump(response.user), "session": _dump(response.session)}


async def sign_out(access_token: str, *, scope: str = "global") -> None:
    client = await _service_client()
    await _call(client.auth.admin.sign_out(access_token, scope))


async def recover(email: str, *, redirect_to: str) -> None:
    client = await _anon_client()
    await _call(client.auth.reset_password_for_email(email, {"redirect_to": redirect_to}))


async def resend_signup(email: str) -> None:
    client = await _anon_client()
    await _call(client.auth.resend({"type": "signup", "email": email}))


async def list_users(*, page: int = 1, per_page: int = 50) -> list[dict]:
    client = await _service_client()
    users = await _call(client.auth.admin.list_users(page=page, per_page=per_page))
    return [_dump(user) for user in users or []]


async def find_user_by_email(email: str, *, per_page: int = 1000) -> dict | None:
    wanted = (email or "").strip().lower()
    for user in await list_users(page=1, per_page=per_page):
        if str(user.get("email") or "").lower() == wanted:
            return user
    return None


async def admin_update_user(user_id: str, attributes: dict[str, Any]) -> dict:
    client = await _service_client()
    response = await _call(client.auth.admin.update_user_by_id(user_id, attributes))
    return _dump(response.user)


async def authorize_url(provider: str, *, redirect_to: str) -> str:
    client = await _anon_client()
    response = await _call(
        client.auth.sign_in_with_oauth({"provider": provider, "options": {"redirect_to": redirect_to}})
    )
    return response.url
