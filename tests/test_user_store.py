"""Tests for app.services.user_store against in-memory SQLite."""

import unittest

from app.core.database import SessionLocal
from app.core.errors import DuplicateKeyError
from app.models import User
from app.schemas.user import UserPublic
from app.services import user_store


def _create(session, username: str = "Ada", email: str = "Ada@Example.com", **kwargs) -> User:
    defaults = {
        "fullname": "  Ada Lovelace ",
        "password_hash": "$2b$04$notarealhashbutlongenoughforthecolumn",
        "avatar_url": "https://img.example.com/ada.png",
    }
    defaults.update(kwargs)
    return user_store.create_user(session, username=username, email=email, **defaults)


class UserStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session = SessionLocal()

    def tearDown(self) -> None:
        self.session.close()


class TestCreateUser(UserStoreTestCase):
    def test_normalizes_username_email_and_trims_fullname(self) -> None:
        user = _create(self.session, username="  Ada ", email=" ADA@Example.COM ")
        self.assertIsNotNone(user.id)
        self.assertEqual(user.username, "ada")
        self.assertEqual(user.email, "ada@example.com")
        self.assertEqual(user.fullname, "Ada Lovelace")
        self.assertEqual(user.cover_image_url, "")
        self.assertIsNone(user.refresh_token)
        self.assertIsNotNone(user.created_at)

    def test_duplicate_email_any_case_raises(self) -> None:
        _create(self.session, username="ada", email="ada@example.com")
        with self.assertRaises(DuplicateKeyError):
            _create(self.session, username="other", email="ADA@EXAMPLE.COM")
        self.assertEqual(self.session.query(User).count(), 1)

    def test_duplicate_username_raises(self) -> None:
        _create(self.session, username="ada", email="ada@example.com")
        with self.assertRaises(DuplicateKeyError):
            _create(self.session, username="ADA", email="other@example.com")


class TestLookups(UserStoreTestCase):
    def test_find_by_username_or_email_is_case_insensitive(self) -> None:
        user = _create(self.session)
        self.assertEqual(user_store.find_by_username_or_email(self.session, "ADA", None).id, user.id)
        self.assertEqual(
            user_store.find_by_username_or_email(self.session, None, "ada@EXAMPLE.com").id, user.id
        )
        self.assertEqual(
            user_store.find_by_username_or_email(self.session, "nobody", "ada@example.com").id,
            user.id,
        )

    def test_find_by_username_or_email_without_identity_returns_none(self) -> None:
        _create(self.session)
        self.assertIsNone(user_store.find_by_username_or_email(self.session, "", "  "))
        self.assertIsNone(user_store.find_by_username_or_email(self.session, None, None))

    def test_find_by_id_tolerates_bad_ids(self) -> None:
        self.assertIsNone(user_store.find_by_id(self.session, "not-a-number"))
        self.assertIsNone(user_store.find_by_id(self.session, 999))

    def test_public_projection_excludes_secrets(self) -> None:
        user = _create(self.session)
        user_store.update_refresh_token(self.session, user.id, "some-token")
        public = user_store.find_public_by_id(self.session, user.id)
        self.assertIsInstance(public, UserPublic)
        dumped = public.model_dump(by_alias=True)
        self.assertNotIn("passwordHash", dumped)
        self.assertNotIn("password_hash", dumped)
        self.assertNotIn("refreshToken", dumped)
        self.assertNotIn("refresh_token", dumped)
        self.assertEqual(dumped["avatarUrl"], "https://img.example.com/ada.png")


class TestUpdates(UserStoreTestCase):
    def test_update_and_clear_refresh_token(self) -> None:
        user = _create(self.session)
        self.assertTrue(user_store.update_refresh_token(self.session, user.id, "t1"))
        self.assertEqual(user_store.find_by_id(self.session, user.id).refresh_token, "t1")
        self.assertTrue(user_store.update_refresh_token(self.session, user.id, None))
        self.assertIsNone(user_store.find_by_id(self.session, user.id).refresh_token)

    def test_compare_and_swap_only_replaces_expected_token(self) -> None:
        user = _create(self.session)
        user_store.update_refresh_token(self.session, user.id, "t1")
        self.assertFalse(
            user_store.update_refresh_token(self.session, user.id, "t3", expected="stale")
        )
        self.assertEqual(user_store.find_by_id(self.session, user.id).refresh_token, "t1")
        self.assertTrue(user_store.update_refresh_token(self.session, user.id, "t2", expected="t1"))
        self.assertEqual(user_store.find_by_id(self.session, user.id).refresh_token, "t2")

    def test_update_password_hash(self) -> None:
        user = _create(self.session)
        self.assertTrue(user_store.update_password_hash(self.session, user.id, "new-hash"))
        self.assertEqual(user_store.find_by_id(self.session, user.id).password_hash, "new-hash")
        self.assertFalse(user_store.update_password_hash(self.session, 999, "new-hash"))


if __name__ == "__main__":
    unittest.main()
