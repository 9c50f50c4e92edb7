"""Tests for auth endpoints (admin sessions and student PIN login)."""

from datetime import datetime, timezone

from auth import repository as auth_repository
from auth import security
from core import config, supabase
from profiles import repository as profiles_repository
from subscriptions import service as subscription_service

from conftest import ADMIN_ID, STUDENT_ID, bearer, patch_async, student_token


def student_row(pin="1234", admin_id=ADMIN_ID):
    return {
        "id": STUDENT_ID,
        "role": security.STUDENT_ROLE,
        "full_name": "Ada Reader",
        "email": None,
        "avatar_url": None,
        "pin": security.hash_pin(pin) if pin else None,
        "admin_id": admin_id,
        "age": 9,
        "reading_level": 3,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }


class TestAdminSignup:
    """Tests for POST /api/v1/auth/signup."""

    def test_creates_profile(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "find_user_by_email", None)
        patch_async(monkeypatch, supabase, "sign_up", {"user": {"id": ADMIN_ID, "email": "t@example.com"}, "session": {}})
        upsert = patch_async(
            monkeypatch,
            auth_repository,
            "upsert_admin_profile",
            {"id": ADMIN_ID, "role": "ADMIN", "full_name": "Tess", "email": "t@example.com"},
        )

        response = client.post(
            "/api/v1/auth/signup",
            json={"email": " T@Example.com ", "password": "password123", "fullName": "Tess"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["userId"] == ADMIN_ID
        assert data["profile"]["role"] == "ADMIN"
        upsert.assert_awaited_once_with(user_id=ADMIN_ID, email="t@example.com", full_name="Tess")

    def test_existing_email_conflicts(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "find_user_by_email", {"id": ADMIN_ID})
        response = client.post(
            "/api/v1/auth/signup",
            json={"email": "t@example.com", "password": "password123", "fullName": "Tess"},
        )
        assert response.status_code == 409

    def test_short_password_is_invalid(self, client):
        response = client.post(
            "/api/v1/auth/signup",
            json={"email": "t@example.com", "password": "short", "fullName": "Tess"},
        )
        assert response.status_code == 400


class TestAdminLogin:
    """Tests for POST /api/v1/auth/login."""

    def test_sets_refresh_cookie(self, client, monkeypatch):
        session = {
            "access_token": "access",
            "refresh_token": "refresh",
            "user": {"id": ADMIN_ID, "email": "t@example.com", "email_confirmed_at": "2024-01-01T00:00:00Z"},
        }
        patch_async(monkeypatch, supabase, "sign_in_with_password", session)
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", {"id": ADMIN_ID, "role": "ADMIN"})

        response = client.post("/api/v1/auth/login", json={"email": "t@example.com", "password": "pw"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["accessToken"] == "access"
        assert "refreshToken" not in data
        assert response.cookies.get("refresh-token") == "refresh"

    def test_bad_credentials(self, client, monkeypatch):
        patch_async(
            monkeypatch,
            supabase,
            "sign_in_with_password",
            side_effect=supabase.SupabaseError("Invalid login credentials", 400),
        )
        response = client.post("/api/v1/auth/login", json={"email": "t@example.com", "password": "pw"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_unconfirmed_email(self, client, monkeypatch):
        patch_async(
            monkeypatch,
            supabase,
            "sign_in_with_password",
            side_effect=supabase.SupabaseError("Email not confirmed", 400),
        )
        response = client.post("/api/v1/auth/login", json={"email": "t@example.com", "password": "pw"})
        assert response.status_code == 400

    def test_student_profile_cannot_log_in_as_admin(self, client, monkeypatch):
        session = {
            "access_token": "access",
            "user": {"id": STUDENT_ID, "email_confirmed_at": "2024-01-01T00:00:00Z"},
        }
        patch_async(monkeypatch, supabase, "sign_in_with_password", session)
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", {"id": STUDENT_ID, "role": "STUDENT"})
        response = client.post("/api/v1/auth/login", json={"email": "t@example.com", "password": "pw"})
        assert response.status_code == 404


class TestAdminRefresh:
    """Tests for POST /api/v1/auth/refresh."""

    def test_missing_cookie(self, client):
        response = client.post("/api/v1/auth/refresh")
        assert response.status_code == 401

    def test_rotates_tokens(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "refresh_session", {"access_token": "new", "refresh_token": "r2"})
        client.cookies.set("refresh-token", "r1")
        response = client.post("/api/v1/auth/refresh")
        assert response.status_code == 200
        assert response.json()["data"] == {"accessToken": "new"}
        assert response.cookies.get("refresh-token") == "r2"

    def test_rejected_token_clears_cookie(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "refresh_session", side_effect=supabase.SupabaseError("expired", 400))
        client.cookies.set("refresh-token", "stale")
        response = client.post("/api/v1/auth/refresh")
        assert response.status_code == 401
        assert response.json()["status"] == "error"
        assert "refresh-token=" in response.headers.get("set-cookie", "")


class TestForgotPassword:
    """Tests for POST /api/v1/auth/forgot-password."""

    def test_never_reveals_failures(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "recover", side_effect=supabase.SupabaseError("boom", 500))
        response = client.post("/api/v1/auth/forgot-password", json={"email": "t@example.com"})
        assert response.status_code == 200


class TestLogout:
    """Tests for POST /api/v1/auth/logout."""

    def test_signs_out_globally(self, client, monkeypatch, admin_headers):
        sign_out = patch_async(monkeypatch, supabase, "sign_out")
        response = client.post("/api/v1/auth/logout", headers=admin_headers)
        assert response.status_code == 200
        sign_out.assert_awaited_once_with("admin-session-token", scope="global")

    def test_student_token_is_rejected(self, client, student_headers):
        response = client.post("/api/v1/auth/logout", headers=student_headers)
        assert response.status_code == 401


class TestGoogleSignIn:
    """Tests for GET /api/v1/auth/google."""

    def test_returns_authorize_url(self, client, monkeypatch):
        authorize = patch_async(
            monkeypatch,
            supabase,
            "authorize_url",
            "http://supabase.test/auth/v1/authorize?provider=google",
        )
        response = client.get("/api/v1/auth/google")

        assert response.status_code == 200
        assert response.json()["data"] == {"url": "http://supabase.test/auth/v1/authorize?provider=google"}
        authorize.assert_awaited_once_with("google", redirect_to=f"{config.frontend_url()}/auth/callback")

    def test_supabase_failure(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "authorize_url", side_effect=supabase.SupabaseError("provider disabled", 400))
        response = client.get("/api/v1/auth/google")
        assert response.status_code == 500


class TestOAuthCallback:
    """Tests for GET /api/v1/auth/callback."""

    def _callback(self, client, query):
        return client.get(f"/api/v1/auth/callback?{query}", follow_redirects=False)

    def test_missing_token(self, client):
        response = self._callback(client, "refresh_token=r1")
        assert response.status_code == 400

    def test_admin_goes_to_dashboard_with_cookie(self, client):
        response = self._callback(client, "token=admin-session-token&refresh_token=r1")

        assert response.status_code == 302
        assert response.headers["location"] == f"{config.frontend_url()}/admin/dashboard"
        assert response.cookies.get("refresh-token") == "r1"

    def test_new_user_completes_profile(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "get_user", {"id": "77777777-7777-4777-8777-777777777777"})
        response = self._callback(client, "token=fresh-oauth-token")

        assert response.headers["location"] == f"{config.frontend_url()}/auth/complete-profile"
        assert "refresh-token" not in response.cookies

    def test_student_profile_goes_to_student_dashboard(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "get_user", {"id": STUDENT_ID})
        patch_async(monkeypatch, auth_repository, "get_profile_role", security.STUDENT_ROLE)
        response = self._callback(client, "token=student-oauth-token")
        assert response.headers["location"] == f"{config.frontend_url()}/student/dashboard"

    def test_invalid_token(self, client):
        response = self._callback(client, "token=not-a-session")
        assert response.status_code == 401


class TestResendVerification:
    """Tests for POST /api/v1/auth/resend-verification."""

    def test_unknown_email(self, client, monkeypatch):
        patch_async(monkeypatch, supabase, "find_user_by_email", None)
        response = client.post("/api/v1/auth/resend-verification", json={"email": "nobody@example.com"})
        assert response.status_code == 404

    def test_already_confirmed(self, client, monkeypatch):
        patch_async(
            monkeypatch,
            supabase,
            "find_user_by_email",
            {"id": ADMIN_ID, "email": "t@example.com", "email_confirmed_at": "2024-01-01T00:00:00Z"},
        )
        resend = patch_async(monkeypatch, supabase, "resend_signup")

        response = client.post("/api/v1/auth/resend-verification", json={"email": "t@example.com"})

        assert response.status_code == 400
        resend.assert_not_awaited()

    def test_resends_signup_mail(self, client, monkeypatch):
        patch_async(
            monkeypatch,
            supabase,
            "find_user_by_email",
            {"id": ADMIN_ID, "email": "t@example.com", "email_confirmed_at": None},
        )
        resend = patch_async(monkeypatch, supabase, "resend_signup")

        response = client.post("/api/v1/auth/resend-verification", json={"email": "T@example.com"})

        assert response.status_code == 200
        resend.assert_awaited_once_with("t@example.com")


class TestUpdatePassword:
    """Tests for POST /api/v1/auth/update-password."""

    def test_expired_reset_session(self, client, monkeypatch):
        update = patch_async(monkeypatch, supabase, "admin_update_user")
        response = client.post(
            "/api/v1/auth/update-password",
            json={"accessToken": "expired-recovery-token", "newPassword": "newpassword1"},
        )

        assert response.status_code == 401
        assert response.json()["message"].startswith("Password reset session has expired")
        update.assert_not_awaited()

    def test_updates_password(self, client, monkeypatch):
        update = patch_async(monkeypatch, supabase, "admin_update_user", {"id": ADMIN_ID})
        response = client.post(
            "/api/v1/auth/update-password",
            json={"accessToken": "admin-session-token", "newPassword": "newpassword1"},
        )

        assert response.status_code == 200
        update.assert_awaited_once_with(ADMIN_ID, {"password": "newpassword1"})


class TestResetPassword:
    """Tests for POST /api/v1/auth/reset-password."""

    def _patch_profile(self, monkeypatch):
        patch_async(
            monkeypatch,
            auth_repository,
            "get_profile_by_id",
            {"id": ADMIN_ID, "role": "ADMIN", "email": "t@example.com"},
        )

    def test_wrong_current_password(self, client, monkeypatch, admin_headers):
        self._patch_profile(monkeypatch)
        patch_async(
            monkeypatch,
            supabase,
            "sign_in_with_password",
            side_effect=supabase.SupabaseError("Invalid login credentials", 400),
        )
        update = patch_async(monkeypatch, supabase, "admin_update_user")

        response = client.post(
            "/api/v1/auth/reset-password",
            json={"currentPassword": "wrong", "newPassword": "newpassword1"},
            headers=admin_headers,
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Current password is incorrect"
        update.assert_not_awaited()

    def test_resets_password(self, client, monkeypatch, admin_headers):
        self._patch_profile(monkeypatch)
        verify = patch_async(monkeypatch, supabase, "sign_in_with_password", {"access_token": "a"})
        update = patch_async(monkeypatch, supabase, "admin_update_user", {"id": ADMIN_ID})

        response = client.post(
            "/api/v1/auth/reset-password",
            json={"currentPassword": "password123", "newPassword": "newpassword1"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        verify.assert_awaited_once_with("t@example.com", "password123")
        update.assert_awaited_once_with(ADMIN_ID, {"password": "newpassword1"})


class TestInvalidateAllSessions:
    """Tests for POST /api/v1/auth/invalidate-all-sessions."""

    def test_signs_out_and_clears_cookie(self, client, monkeypatch, admin_headers):
        sign_out = patch_async(monkeypatch, supabase, "sign_out")
        client.cookies.set("refresh-token", "r1")

        response = client.post("/api/v1/auth/invalidate-all-sessions", headers=admin_headers)

        assert response.status_code == 200
        sign_out.assert_awaited_once_with("admin-session-token", scope="global")
        assert "refresh-token=" in response.headers.get("set-cookie", "")

    def test_upstream_failure(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, supabase, "sign_out", side_effect=supabase.SupabaseError("down", 503))
        response = client.post("/api/v1/auth/invalidate-all-sessions", headers=admin_headers)
        assert response.status_code == 500

    def test_requires_admin(self, client):
        response = client.post("/api/v1/auth/invalidate-all-sessions")
        assert response.status_code == 401


class TestCreateStudent:
    """Tests for POST /api/v1/auth/admin/student."""

    payload = {"fullName": "Ada Reader", "pin": "1234", "age": 9, "readingLevel": 3}

    def test_creates_student_with_hashed_pin(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, subscription_service, "get_plan_for_user", ({"student_limit": 3}, None))
        patch_async(monkeypatch, auth_repository, "count_students_for_admin", 1)
        create = patch_async(monkeypatch, auth_repository, "create_student", student_row())

        response = client.post("/api/v1/auth/admin/student", json=self.payload, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["id"] == STUDENT_ID
        assert data["adminId"] == ADMIN_ID
        assert data["readingLevel"] == 3
        kwargs = create.await_args.kwargs
        assert kwargs["admin_id"] == ADMIN_ID
        assert security.verify_pin("1234", kwargs["pin_hash"])

    def test_student_limit_reached(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, subscription_service, "get_plan_for_user", ({"student_limit": 3}, None))
        patch_async(monkeypatch, auth_repository, "count_students_for_admin", 3)
        create = patch_async(monkeypatch, auth_repository, "create_student")

        response = client.post("/api/v1/auth/admin/student", json=self.payload, headers=admin_headers)

        assert response.status_code == 403
        create.assert_not_awaited()

    def test_pin_must_be_four_digits(self, client, admin_headers):
        payload = dict(self.payload, pin="12a4")
        response = client.post("/api/v1/auth/admin/student", json=payload, headers=admin_headers)
        assert response.status_code == 400


class TestResetStudentPin:
    """Tests for POST /api/v1/auth/admin/student/reset-pin."""

    def test_managing_admin_can_reset(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", student_row())
        update = patch_async(monkeypatch, auth_repository, "update_student_pin")
        response = client.post(
            "/api/v1/auth/admin/student/reset-pin",
            json={"studentId": STUDENT_ID, "newPin": "987654"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        student_id, pin_hash = update.await_args.args
        assert student_id == STUDENT_ID
        assert security.verify_pin("987654", pin_hash)

    def test_other_admin_is_forbidden(self, client, monkeypatch, other_admin_headers):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", student_row(admin_id=ADMIN_ID))
        update = patch_async(monkeypatch, auth_repository, "update_student_pin")
        response = client.post(
            "/api/v1/auth/admin/student/reset-pin",
            json={"studentId": STUDENT_ID, "newPin": "9876"},
            headers=other_admin_headers,
        )
        assert response.status_code == 403
        update.assert_not_awaited()


class TestStudentLogin:
    """Tests for POST /api/v1/auth/student/login."""

    def test_valid_pin(self, client, monkeypatch):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", student_row())
        response = client.post("/api/v1/auth/student/login", json={"studentId": STUDENT_ID, "pin": "1234"})

        assert response.status_code == 200
        data = response.json()["data"]
        payload = security.decode_student_access_token(data["accessToken"])
        assert payload["id"] == STUDENT_ID
        assert payload["adminId"] == ADMIN_ID
        assert data["profile"]["fullName"] == "Ada Reader"
        assert "pin" not in data["profile"]
        assert response.cookies.get("student_refresh_token")

    def test_wrong_pin(self, client, monkeypatch):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", student_row())
        response = client.post("/api/v1/auth/student/login", json={"studentId": STUDENT_ID, "pin": "0000"})
        assert response.status_code == 401

    def test_unknown_student(self, client, monkeypatch):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", None)
        response = client.post("/api/v1/auth/student/login", json={"studentId": STUDENT_ID, "pin": "1234"})
        assert response.status_code == 401

    def test_student_without_pin(self, client, monkeypatch):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", student_row(pin=None))
        response = client.post("/api/v1/auth/student/login", json={"studentId": STUDENT_ID, "pin": "1234"})
        assert response.status_code == 400


class TestStudentRefresh:
    """Tests for POST /api/v1/auth/student/refresh."""

    def test_issues_new_access_token(self, client, monkeypatch):
        patch_async(monkeypatch, auth_repository, "get_profile_by_id", student_row())
        client.cookies.set("student_refresh_token", security.build_student_refresh_token(student_id=STUDENT_ID))
        response = client.post("/api/v1/auth/student/refresh")
        assert response.status_code == 200
        payload = security.decode_student_access_token(response.json()["data"]["accessToken"])
        assert payload["id"] == STUDENT_ID

    def test_access_token_cannot_refresh(self, client):
        client.cookies.set("student_refresh_token", student_token())
        response = client.post("/api/v1/auth/student/refresh")
        assert response.status_code == 401


class TestStudentLogout:
    """Tests for POST /api/v1/auth/student/logout."""

    def test_clears_student_cookie(self, client):
        client.cookies.set("student_refresh_token", "r1")
        response = client.post("/api/v1/auth/student/logout")

        assert response.status_code == 200
        set_cookie = response.headers.get("set-cookie", "")
        assert "student_refresh_token=" in set_cookie
        assert "Max-Age=0" in set_cookie


class TestDualAuthentication:
    """The same header accepts student JWTs and Supabase tokens."""

    def test_student_token_resolves_without_supabase(self, client, monkeypatch):
        get_profile = patch_async(monkeypatch, profiles_repository, "get_profile", None)
        response = client.get("/api/v1/profiles/me", headers=bearer(student_token()))
        assert response.status_code == 404
        get_profile.assert_awaited_once_with(STUDENT_ID)

    def test_admin_without_profile_is_not_found(self, client, monkeypatch):
        async def no_role(_):
            return None

        monkeypatch.setattr(auth_repository, "get_profile_role", no_role)
        response = client.get("/api/v1/profiles/me", headers=bearer("admin-session-token"))
        assert response.status_code == 404

    def test_require_admin_without_profile_is_forbidden(self, client, monkeypatch):
        async def no_role(_):
            return None

        monkeypatch.setattr(auth_repository, "get_profile_role", no_role)
        response = client.get("/api/v1/profiles/admin/students", headers=bearer("admin-session-token"))
        assert response.status_code == 403
