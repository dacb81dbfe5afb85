"""Shared fixtures for HTTP-level tests."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from nalevel.api.main import create_app
from nalevel.config.settings import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
        draft_root=str(tmp_path / "drafts"),
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def register(client: TestClient, email: str = "ada@example.com") -> dict[str, str]:
    """Create an account and return headers authenticating as it."""

    response = client.post("/api/v1/auth/register", json={"email": email})
    assert response.status_code == 201, response.text
    token = response.headers["set-cookie"].split(";", 1)[0].split("=", 1)[1]
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client: TestClient) -> dict[str, str]:
    return register(client)
