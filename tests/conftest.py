"""Shared fixtures: a throwaway SQLite database and bearer credentials."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_DB_PATH = Path(tempfile.gettempdir()) / "learning_notifications_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["APP_TIMEZONE"] = "UTC"

from app.config import get_settings  # noqa: E402

get_settings.cache_clear()

from app.domain.entities import ADMIN_ROLE, Principal  # noqa: E402
from app.infrastructure.database import Base, engine, initialize_database  # noqa: E402
from app.infrastructure.security import issue_token_for  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def reset_database():
    """Ensure the test database starts from a clean state."""

    Base.metadata.drop_all(bind=engine)
    initialize_database()
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def token_for():
    """Return a factory producing bearer tokens for a user id."""

    def _token(user_id: int, role: str | None = None) -> str:
        return issue_token_for(Principal(user_id=user_id, role=role))

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user_id: int, role: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user_id, role)}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers) -> dict[str, str]:
    return auth_headers(999, ADMIN_ROLE)
