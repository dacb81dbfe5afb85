"""HTTP tests for the onboarding routes and the page guard."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_mock
from fastapi import HTTPException
from fastapi.testclient import TestClient

from nalevel.api.main import create_app
from nalevel.api.onboarding import draft_store_for
from nalevel.config.settings import Settings
from nalevel.onboarding.stages import OnboardingStage
from nalevel.users.models import User
from nalevel.users.repository import SqlUserRepository


def test_full_onboarding_flow(client: TestClient, auth_headers: dict[str, str]) -> None:

    status = client.get("/api/v1/onboarding/status", headers=auth_headers).json()
    assert status["stage"] == "role-selection"
    assert status["has_completed_onboarding"] is False

    response = client.post("/api/v1/onboarding/start", json={"roles": ["actor", "crew"]}, headers=auth_headers)
    assert response.status_code == 200, response.text
    assert response.json()["stage"] == "basic-info"
    assert response.json()["redirect"] == "/auth/onboarding/basic-info"

    response = client.put(
        "/api/v1/onboarding/basic-info",
        json={"firstName": "Ada", "lastName": "Obi", "bio": "x"},
        headers=auth_headers,
    )
    body = response.json()
    assert body["stage"] == "role-details"
    assert "basic-info" in body["completed"]
    assert body["data"]["basic-info"]["bio"] == "x"

    response = client.put(
        "/api/v1/onboarding/role-details",
        json={"primaryRole": "actor", "skills": ["stunts"], "experienceLevel": "expert"},
        headers=auth_headers,
    )
    assert response.json()["stage"] == "verification"

    response = client.put(
        "/api/v1/onboarding/verification",
        json={"identificationType": "passport", "identificationNumber": "A1234567"},
        headers=auth_headers,
    )
    assert response.json()["stage"] == "completed"
    assert response.json()["redirect"] == "/auth/onboarding/completed"

    response = client.post("/api/v1/onboarding/complete", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Onboarding completed"}


def test_skipping_a_stage_is_a_conflict(client: TestClient, auth_headers: dict[str, str]) -> None:
    client.post("/api/v1/onboarding/start", json={"roles": ["vendor"]}, headers=auth_headers)

    response = client.put(
        "/api/v1/onboarding/verification",
        json={"identificationType": "passport"},
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert client.get("/api/v1/onboarding/status", headers=auth_headers).json()["stage"] == "basic-info"


def test_complete_before_finishing_is_a_conflict(client: TestClient, auth_headers: dict[str, str]) -> None:

    assert client.post("/api/v1/onboarding/complete", headers=auth_headers).status_code == 409


def test_invalid_forms_are_rejected(client: TestClient, auth_headers: dict[str, str]) -> None:

    assert client.post("/api/v1/onboarding/start", json={"roles": []}, headers=auth_headers).status_code == 422
    assert client.post("/api/v1/onboarding/start", json={"roles": ["wizard"]}, headers=auth_headers).status_code == 422

    client.post("/api/v1/onboarding/start", json={"roles": ["actor"]}, headers=auth_headers)
    response = client.put(
        "/api/v1/onboarding/basic-info",
        json={"firstName": "Ada", "lastName": "Obi", "age": 17},
        headers=auth_headers,
    )
    assert response.status_code == 422


def test_requests_without_session_are_unauthorized(client: TestClient) -> None:
    assert client.get("/api/v1/onboarding/status").status_code == 401
    response = client.get("/api/v1/onboarding/status", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_persistence_failure_is_retryable(
    client: TestClient,
    auth_headers: dict[str, str],
    mocker: pytest_mock.MockerFixture,
) -> None:
    mocker.patch.object(SqlUserRepository, "update_user", side_effect=RuntimeError("database is locked"))

    response = client.post("/api/v1/onboarding/start", json={"roles": ["ngo"]}, headers=auth_headers)

    assert response.status_code == 502
    assert "try again" in response.json()["detail"].lower()
    assert client.get("/api/v1/onboarding/status", headers=auth_headers).json()["stage"] == "role-selection"


def test_drafts_round_trip_and_clear_on_submit(client: TestClient, auth_headers: dict[str, str]) -> None:

    response = client.get("/api/v1/onboarding/drafts/verification", headers=auth_headers)
    assert response.json() == {"stage": "verification", "exists": False, "draft": None}

    client.put("/api/v1/onboarding/drafts/role-selection", json={"roles": ["donor"]}, headers=auth_headers)
    client.put("/api/v1/onboarding/drafts/basic-info", json={"firstName": "Ada"}, headers=auth_headers)
    response = client.get("/api/v1/onboarding/drafts/basic-info", headers=auth_headers)
    assert response.json()["draft"] == {"firstName": "Ada"}

    client.post("/api/v1/onboarding/start", json={"roles": ["donor"]}, headers=auth_headers)

    assert client.get("/api/v1/onboarding/drafts/role-selection", headers=auth_headers).json()["exists"] is False
    assert client.get("/api/v1/onboarding/drafts/basic-info", headers=auth_headers).json()["exists"] is True
    assert client.get("/api/v1/onboarding/drafts/portfolio", headers=auth_headers).status_code == 422


def test_guard_endpoint(client: TestClient, auth_headers: dict[str, str]) -> None:

    response = client.get(
        "/api/v1/onboarding/guard",
        params={"path": "/auth/onboarding/verification"},
        headers=auth_headers,
    )
    assert response.json() == {"redirect": "/auth/onboarding/role-selection"}

    response = client.get("/api/v1/onboarding/guard", params={"path": "/dashboard"})
    assert response.json() == {"redirect": "/auth/login?redirect=%2Fdashboard"}


def test_page_requests_are_redirected_to_current_stage(client: TestClient, auth_headers: dict[str, str]) -> None:
    client.post("/api/v1/onboarding/start", json={"roles": ["producer"]}, headers=auth_headers)

    response = client.get("/auth/onboarding/verification", headers=auth_headers, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/auth/onboarding/basic-info"
    assert response.headers["X-Frame-Options"] == "DENY"

    response = client.get("/dashboard", headers=auth_headers, follow_redirects=False)
    assert response.headers["location"] == "/auth/onboarding/basic-info"

    response = client.get("/auth/onboarding/basic-info", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["stage"] == "basic-info"
    assert response.json()["roles"] == ["producer"]


def test_signed_out_page_request_goes_to_login(client: TestClient) -> None:
    response = client.get("/dashboard", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/auth/login?redirect=%2Fdashboard"


def test_registration_is_disabled_for_remote_backend(settings: Settings) -> None:
    remote = Settings(
        environment="test",
        user_backend="remote",
        backend_base_url="http://backend.invalid",
        draft_root=settings.draft_root,
    )
    with TestClient(create_app(remote)) as remote_client:
        response = remote_client.post("/api/v1/auth/register", json={"email": "ada@example.com"})

    assert response.status_code == 404


def test_stage_data_is_stored_under_form_field_names(client: TestClient, auth_headers: dict[str, str]) -> None:
    client.post("/api/v1/onboarding/start", json={"roles": ["actor"]}, headers=auth_headers)
    client.put(
        "/api/v1/onboarding/basic-info",
        json={"firstName": "Ada", "lastName": "Obi", "dateOfBirth": "1990-01-01"},
        headers=auth_headers,
    )

    data = client.get("/api/v1/onboarding/status", headers=auth_headers).json()["data"]

    assert data["basic-info"] == {"firstName": "Ada", "lastName": "Obi", "dateOfBirth": "1990-01-01"}


@pytest.mark.parametrize("user_id", ["", ".", "..", "../etc/passwd", "a/b", "a\\b"])
def test_draft_storage_rejects_unusable_account_ids(tmp_path: Path, user_id: str) -> None:
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(settings=Settings(draft_root=str(tmp_path)))))

    with pytest.raises(HTTPException) as excinfo:
        draft_store_for(request, User(id=user_id, email="ada@example.com"))

    assert excinfo.value.status_code == 502
    assert list(tmp_path.iterdir()) == []


def test_draft_storage_uses_one_file_per_account(tmp_path: Path) -> None:
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(settings=Settings(draft_root=str(tmp_path)))))

    draft_store_for(request, User(id="user-1", email="ada@example.com")).save_draft(
        OnboardingStage.BASIC_INFO,
        {"firstName": "Ada"},
    )

    assert [path.name for path in tmp_path.iterdir()] == ["user-1.json"]
