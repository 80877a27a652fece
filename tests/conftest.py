"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.core.config import settings
from src.main import app


@pytest.fixture
def test_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """Provide a FastAPI test client running the full lifespan against a temporary database."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "app.db"))
    monkeypatch.setattr(settings, "notification_webhook_url", None)
    with TestClient(app) as client:
        yield client
