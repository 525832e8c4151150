"""Test environment: in-memory SQLite, fast bcrypt, plain-http cookies, throwaway upload dir."""

import os
import shutil
import tempfile

UPLOAD_TEMP_DIR = tempfile.mkdtemp(prefix="accounts-test-uploads-")

# Must be set before app.core.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["COOKIE_SECURE"] = "false"
os.environ["UPLOAD_TEMP_DIR"] = UPLOAD_TEMP_DIR
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["CLOUDINARY_CLOUD_NAME"] = ""
os.environ["CLOUDINARY_API_KEY"] = ""

import pytest

from app.core.database import engine
from app.models import Base


@pytest.fixture(autouse=True)
def reset_database():
    """Every test starts from an empty users table."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(UPLOAD_TEMP_DIR, ignore_errors=True)
