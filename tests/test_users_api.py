"""HTTP tests for /api/v1/users and /api/v1/health via FastAPI TestClient."""

import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.security import PASSWORD_MAX_LEN
from app.main import app
from app.schemas.media import MediaAsset

PREFIX = "/api/v1/users"
PASSWORD = "correct-horse-battery"


async def _fake_upload(path: str | None, settings: object = None) -> MediaAsset | None:
    if not path:
        return None
    return MediaAsset(secure_url=f"https://img.example.com/{Path(path).name}", public_id="x")


class UsersApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch(
            "app.services.auth_service.upload_image", new=AsyncMock(side_effect=_fake_upload)
        )
        self.upload = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(app)
        self.addCleanup(self.client.close)

    def register(self, with_avatar: bool = True, **overrides: str):
        data = {
            "username": "Ada",
            "fullname": "Ada Lovelace",
            "email": "ada@example.com",
            "password": PASSWORD,
        }
        data.update(overrides)
        files = {"coverImage": ("cover.jpg", b"jpeg-bytes", "image/jpeg")}
        if with_avatar:
            files["avatar"] = ("avatar.png", b"png-bytes", "image/png")
        return self.client.post(f"{PREFIX}/register", data=data, files=files)

    def login(self, **body: str):
        payload = {"username": "ada", "password": PASSWORD}
        payload.update(body)
        return self.client.post(f"{PREFIX}/login", json=payload)


class TestRegisterEndpoint(UsersApiTestCase):
    def test_register_returns_201_envelope_without_secrets(self) -> None:
        response = self.register()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["statusCode"], 201)
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "User registered successfully")
        user = body["data"]
        self.assertEqual(user["username"], "ada")
        self.assertTrue(user["avatarUrl"].startswith("https://img.example.com/"))
        self.assertTrue(user["coverImageUrl"].startswith("https://img.example.com/"))
        for secret in ("password", "passwordHash", "refreshToken"):
            self.assertNotIn(secret, user)
        self.assertEqual(self.upload.await_count, 2)

    def test_register_leaves_no_temp_files(self) -> None:
        temp_dir = Path(get_settings().UPLOAD_TEMP_DIR)
        temp_dir.mkdir(parents=True, exist_ok=True)
        before = set(temp_dir.iterdir())
        self.register()
        self.register(email="ADA@example.com", username="other")
        self.assertEqual(set(temp_dir.iterdir()), before)

    def test_duplicate_email_conflict(self) -> None:
        self.register()
        response = self.register(username="someone", email="ADA@EXAMPLE.COM")
        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertEqual(body["statusCode"], 409)
        self.assertFalse(body["success"])
        self.assertIsNone(body["data"])
        self.assertEqual(body["message"], "User with username or email already exists")

    def test_empty_field_is_400(self) -> None:
        response = self.register(fullname="  ")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "All fields are required")

    def test_missing_avatar_is_400(self) -> None:
        response = self.register(with_avatar=False)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Avatar file is required")

    def test_non_image_avatar_is_400(self) -> None:
        response = self.client.post(
            f"{PREFIX}/register",
            data={"username": "ada", "fullname": "Ada", "email": "a@b.com", "password": PASSWORD},
            files={"avatar": ("avatar.exe", b"MZ", "application/octet-stream")},
        )
        self.assertEqual(response.status_code, 400)

    def test_password_at_length_limit_can_register_and_log_in(self) -> None:
        password = "p" * PASSWORD_MAX_LEN
        self.assertEqual(self.register(password=password).status_code, 201)
        self.assertEqual(self.login(password=password).status_code, 200)

    def test_password_over_length_limit_is_400_and_not_stored(self) -> None:
        response = self.register(password="p" * (PASSWORD_MAX_LEN + 1))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.login(password="p" * PASSWORD_MAX_LEN).status_code, 404)


class TestLoginEndpoint(UsersApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.register()

    def test_login_sets_http_only_cookies(self) -> None:
        response = self.login()
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["user"]["username"], "ada")
        self.assertNotIn("refreshToken", data["user"])
        set_cookies = response.headers.get_list("set-cookie")
        self.assertEqual(len(set_cookies), 2)
        self.assertTrue(any(c.startswith("accessToken=") for c in set_cookies))
        self.assertTrue(any(c.startswith("refreshToken=") for c in set_cookies))
        for cookie in set_cookies:
            self.assertIn("httponly", cookie.lower())
        self.assertEqual(response.cookies["refreshToken"], data["refreshToken"])

    def test_login_by_email(self) -> None:
        response = self.client.post(
            f"{PREFIX}/login", json={"email": "ADA@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200)

    def test_missing_identity_is_400(self) -> None:
        response = self.client.post(f"{PREFIX}/login", json={"password": PASSWORD})
        self.assertEqual(response.status_code, 400)

    def test_unknown_user_is_404(self) -> None:
        self.assertEqual(self.login(username="grace").status_code, 404)

    def test_wrong_password_is_401(self) -> None:
        response = self.login(password="nope-nope-nope")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid user credentials")


class TestSessionEndpoints(UsersApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.register()
        self.tokens = self.login().json()["data"]

    def test_refresh_from_cookie_rotates(self) -> None:
        response = self.client.post(f"{PREFIX}/refresh-token")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Access token refreshed")
        self.assertNotEqual(body["data"]["refreshToken"], self.tokens["refreshToken"])
        self.assertEqual(response.cookies["refreshToken"], body["data"]["refreshToken"])

    def test_refresh_from_body(self) -> None:
        self.client.cookies.clear()
        response = self.client.post(
            f"{PREFIX}/refresh-token", json={"refreshToken": self.tokens["refreshToken"]}
        )
        self.assertEqual(response.status_code, 200)

    def test_reused_refresh_token_is_401(self) -> None:
        self.client.cookies.clear()
        first = self.client.post(
            f"{PREFIX}/refresh-token", json={"refreshToken": self.tokens["refreshToken"]}
        )
        self.assertEqual(first.status_code, 200)
        self.client.cookies.clear()
        second = self.client.post(
            f"{PREFIX}/refresh-token", json={"refreshToken": self.tokens["refreshToken"]}
        )
        self.assertEqual(second.status_code, 401)
        self.assertEqual(second.json()["message"], "Refresh token is expired or already used")

    def test_missing_refresh_token_is_401(self) -> None:
        self.client.cookies.clear()
        self.assertEqual(self.client.post(f"{PREFIX}/refresh-token").status_code, 401)

    def test_non_string_refresh_token_in_body_is_401(self) -> None:
        self.client.cookies.clear()
        bodies = ({"refreshToken": 123}, {"refreshToken": {"nested": "x"}}, ["not", "an", "object"])
        for body in bodies:
            response = self.client.post(f"{PREFIX}/refresh-token", json=body)
            self.assertEqual(response.status_code, 401, body)
            self.assertEqual(response.json()["message"], "Unauthorized request")

    def test_logout_clears_cookies_and_invalidates_refresh(self) -> None:
        response = self.client.post(f"{PREFIX}/logout")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {})
        retry = self.client.post(
            f"{PREFIX}/refresh-token", json={"refreshToken": self.tokens["refreshToken"]}
        )
        self.assertEqual(retry.status_code, 401)

    def test_logout_requires_authentication(self) -> None:
        self.client.cookies.clear()
        self.assertEqual(self.client.post(f"{PREFIX}/logout").status_code, 401)

    def test_current_user_with_bearer_token(self) -> None:
        self.client.cookies.clear()
        response = self.client.get(
            f"{PREFIX}/current-user",
            headers={"Authorization": f"Bearer {self.tokens['accessToken']}"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["email"], "ada@example.com")

    def test_current_user_rejects_refresh_token(self) -> None:
        self.client.cookies.clear()
        response = self.client.get(
            f"{PREFIX}/current-user",
            headers={"Authorization": f"Bearer {self.tokens['refreshToken']}"},
        )
        self.assertEqual(response.status_code, 401)


class TestChangePasswordEndpoint(UsersApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.register()
        self.login()

    def test_mismatch_is_400(self) -> None:
        response = self.client.post(
            f"{PREFIX}/change-password",
            json={"oldPassword": PASSWORD, "newPassword": "abc-12345", "confirmPassword": "xyz"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.login().status_code, 200)

    def test_missing_field_is_400(self) -> None:
        response = self.client.post(
            f"{PREFIX}/change-password", json={"oldPassword": PASSWORD}
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_change_then_login_with_new_password(self) -> None:
        response = self.client.post(
            f"{PREFIX}/change-password",
            json={
                "oldPassword": PASSWORD,
                "newPassword": "brand-new-secret",
                "confirmPassword": "brand-new-secret",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Password changed successfully")
        self.assertEqual(self.login(password=PASSWORD).status_code, 401)
        self.assertEqual(self.login(password="brand-new-secret").status_code, 200)

    def test_requires_authentication(self) -> None:
        self.client.cookies.clear()
        response = self.client.post(
            f"{PREFIX}/change-password",
            json={"oldPassword": PASSWORD, "newPassword": "a-1", "confirmPassword": "a-1"},
        )
        self.assertEqual(response.status_code, 401)


class TestHealthEndpoint(UsersApiTestCase):
    def test_health_reports_database(self) -> None:
        response = self.client.get("/api/v1/health/")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["status"], "ok")
        self.assertEqual(data["database"], "connected")


if __name__ == "__main__":
    unittest.main()
