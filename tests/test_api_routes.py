"""
tests/test_api_routes.py -- Integration tests for the /api/v1/auth routes.

These tests exercise the full stack: FastAPI routing -> request model
validation -> AuthService -> SQLite -> response serialization and the error
envelope. Unit tests of the service would miss aliasing, status codes,
headers, and exception handler wiring.

Coverage:
  - register: 201, duplicate email 409, camelCase body, 422 envelope
  - verify-email: success, replay 400, missing token 422
  - login: camelCase pair + user, Cache-Control no-store, uniform 401
  - refresh: rotation, replay 401
  - profile: Bearer access token 200, refresh token 401, no header 401
  - forgot/reset password: uniform response, reset then login with new password

Fixtures used (from conftest.py):
  - api_client: (client, notifier) -- module-scoped TestClient, real clock
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from tests.helpers import RecordingNotifier

PASSWORD = "correct-horse-battery"


def _register(client: TestClient, email: str, role: str = "client") -> None:
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": PASSWORD, "role": role, "firstName": "Ada", "lastName": "L"},
    )
    assert resp.status_code == 201, resp.text


def _activate(client: TestClient, notifier: RecordingNotifier, email: str) -> None:
    _register(client, email)
    token = notifier.last_verification_token(email)
    assert client.get("/api/v1/auth/verify-email", params={"token": token}).status_code == 200


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegister:
    def test_register_returns_201_with_message(self, api_client) -> None:
        client, notifier = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": "reg@x.com", "password": PASSWORD, "role": "workshop"},
        )
        assert resp.status_code == 201
        assert "verify" in resp.json()["message"].lower()
        assert notifier.last_verification_token("reg@x.com")

    def test_duplicate_email_conflicts(self, api_client) -> None:
        client, _ = api_client
        _register(client, "dup@x.com")
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": "dup@x.com", "password": PASSWORD, "role": "admin"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_short_password_is_422_envelope(self, api_client) -> None:
        client, _ = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": "short@x.com", "password": "short", "role": "client"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_unknown_role_rejected(self, api_client) -> None:
        client, _ = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": "role@x.com", "password": PASSWORD, "role": "superuser"},
        )
        assert resp.status_code == 422

    def test_multibyte_password_over_bcrypt_limit_is_422(self, api_client) -> None:
        client, _ = api_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": "bytes@x.com", "password": "é" * 40, "role": "client"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestVerifyEmail:
    def test_verify_then_replay(self, api_client) -> None:
        client, notifier = api_client
        _register(client, "verify@x.com")
        token = notifier.last_verification_token("verify@x.com")

        ok = client.get("/api/v1/auth/verify-email", params={"token": token})
        assert ok.status_code == 200

        again = client.get("/api/v1/auth/verify-email", params={"token": token})
        assert again.status_code == 400
        assert again.json()["error"]["code"] == "bad_request"

    def test_missing_token_is_422(self, api_client) -> None:
        client, _ = api_client
        assert client.get("/api/v1/auth/verify-email").status_code == 422


class TestLogin:
    def test_login_returns_pair_and_profile(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "login@x.com")

        resp = _login(client, "login@x.com")
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        body = resp.json()
        assert body["tokenType"] == "bearer"
        assert body["expiresIn"] == 900
        assert body["accessToken"] and body["refreshToken"]
        user = body["user"]
        assert user["email"] == "login@x.com"
        assert user["firstName"] == "Ada"
        assert user["status"] == "active"
        assert user["emailVerified"] is True
        assert "passwordHash" not in user and "verificationToken" not in user

    def test_unknown_email_and_wrong_password_look_alike(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "uniform@x.com")

        wrong = _login(client, "uniform@x.com", "not-the-password")
        unknown = _login(client, "nobody@x.com", "not-the-password")
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_unverified_login_is_401(self, api_client) -> None:
        client, _ = api_client
        _register(client, "pending@x.com")
        resp = _login(client, "pending@x.com")
        assert resp.status_code == 401
        assert "verify" in resp.json()["error"]["message"].lower()


class TestRefresh:
    def test_rotation_and_replay(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "refresh@x.com")
        first = _login(client, "refresh@x.com").json()["refreshToken"]

        rotated = client.post("/api/v1/auth/refresh", json={"refreshToken": first})
        assert rotated.status_code == 200
        assert rotated.headers["cache-control"] == "no-store"
        second = rotated.json()["refreshToken"]
        assert second != first

        replay = client.post("/api/v1/auth/refresh", json={"refreshToken": first})
        assert replay.status_code == 401
        assert replay.json()["error"]["code"] == "unauthorized"

        assert client.post("/api/v1/auth/refresh", json={"refreshToken": second}).status_code == 200

    def test_longest_allowed_email_can_rotate(self, api_client) -> None:
        client, notifier = api_client
        email = "m" * 243 + "@example.com"
        assert len(email) == 255
        _activate(client, notifier, email)
        refresh_token = _login(client, email).json()["refreshToken"]

        resp = client.post("/api/v1/auth/refresh", json={"refreshToken": refresh_token})
        assert resp.status_code == 200
        assert resp.json()["refreshToken"] != refresh_token


class TestProfile:
    def test_profile_with_access_token(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "me@x.com")
        access = _login(client, "me@x.com").json()["accessToken"]

        resp = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200
        assert resp.json()["email"] == "me@x.com"
        assert resp.json()["role"] == "client"

    def test_refresh_token_is_not_an_access_token(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "wrongkind@x.com")
        refresh = _login(client, "wrongkind@x.com").json()["refreshToken"]

        resp = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {refresh}"})
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_no_header_is_401(self, api_client) -> None:
        client, _ = api_client
        assert client.get("/api/v1/auth/profile").status_code == 401


class TestPasswordReset:
    def test_forgot_password_is_uniform(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "forgot@x.com")

        known = client.post("/api/v1/auth/forgot-password", json={"email": "forgot@x.com"})
        unknown = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@x.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_reset_then_login_with_new_password(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "reset@x.com")
        client.post("/api/v1/auth/forgot-password", json={"email": "reset@x.com"})
        token = notifier.last_reset_token("reset@x.com")

        resp = client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "newPassword": "brand-new-password"},
        )
        assert resp.status_code == 200

        assert _login(client, "reset@x.com").status_code == 401
        assert _login(client, "reset@x.com", "brand-new-password").status_code == 200

        replay = client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "newPassword": "yet-another-password"},
        )
        assert replay.status_code == 400

    def test_reset_with_overlong_multibyte_password_is_422(self, api_client) -> None:
        client, notifier = api_client
        _activate(client, notifier, "resetbytes@x.com")
        client.post("/api/v1/auth/forgot-password", json={"email": "resetbytes@x.com"})
        token = notifier.last_reset_token("resetbytes@x.com")

        resp = client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "newPassword": "é" * 40},
        )
        assert resp.status_code == 422

        # The grant was not consumed by the rejected request.
        ok = client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "newPassword": "brand-new-password"},
        )
        assert ok.status_code == 200
