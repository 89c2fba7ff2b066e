from __future__ import annotations

import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

# Ensure secrets + a throwaway database are set before app import
_TEST_DB_DIR = tempfile.mkdtemp(prefix="uaetrail-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_DIR}/uaetrail.db")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("REFRESH_TOKEN_PEPPER", "test_refresh_pepper")
os.environ.setdefault("ACCESS_TOKEN_TTL_SECONDS", "900")
os.environ.setdefault("REFRESH_TOKEN_TTL_DAYS", "30")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("DB_AUTO_CREATE", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from uaetrail.db import SessionLocal, init_db  # noqa: E402
from uaetrail.main import app  # noqa: E402
from uaetrail.models import Base  # noqa: E402

init_db()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db():
    # Children first so foreign keys hold on PostgreSQL too
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(delete(table))
        db.commit()
    finally:
        db.close()
    yield
