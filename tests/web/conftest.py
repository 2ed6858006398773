"""Fixtures for API tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.db.session import get_db
from app.web.main import app


@pytest.fixture
def client(db):
    """Test client bound to the in-memory test database."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def team_headers(jan_shop):
    return {"X-Team-Id": str(jan_shop["team"].id)}
