from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.dependencies import build_pipeline
from app.main import create_app
from conftest import FakeBrowser, make_profile


@pytest.fixture
def client(settings):
    pipeline = build_pipeline(settings, context_factory=FakeBrowser())
    with TestClient(create_app(settings, pipeline)) as client:
        yield client


def test_status_starts_idle(client):
    response = client.get("/queue/status")

    assert response.status_code == 200
    assert response.json()["is_running"] is False
    assert response.json()["is_paused"] is False


def test_paused_queue_refuses_runs_until_resumed(client):
    paused = client.post("/queue/pause").json()
    assert paused["is_paused"]
    assert paused["pause_reason"] == "Paused by operator"

    refused = client.post("/queue/run", json={"limit": 1})
    assert refused.status_code == 409
    assert "paused" in refused.json()["detail"]

    assert client.post("/queue/resume").json()["is_paused"] is False
    accepted = client.post("/queue/run", json={"limit": 1, "dry_run": True})
    assert accepted.status_code == 202


def test_run_request_validates_limit(client):
    assert client.post("/queue/run", json={"limit": 0}).status_code == 422


def test_profile_put_then_get(client):
    payload = make_profile(remote_only=True).model_dump(mode="json")

    assert client.put("/users/ada/profile", json=payload).status_code == 200
    fetched = client.get("/users/ada/profile").json()

    assert fetched["contact"]["email"] == "ada@example.com"
    assert fetched["preferences"]["remote_only"] is True


def test_invalid_profile_is_rejected(client):
    payload = make_profile().model_dump(mode="json")
    payload["resume_profiles"][0]["name"] = "Not Valid"

    assert client.put("/users/ada/profile", json=payload).status_code == 422


def test_jobs_and_stats_start_empty(client):
    assert client.get("/jobs").json() == []
    stats = client.get("/jobs/stats").json()
    assert stats["total"] == 0
    assert client.get("/jobs", params={"status": "bogus"}).status_code == 422


def test_audit_trail_lists_profile_updates(client):
    client.put("/users/ada/profile", json=make_profile().model_dump(mode="json"))
    client.post("/queue/run", json={"limit": 1})

    entries = client.get("/audit").json()

    assert [e["action_type"] for e in entries] == ["PROFILE_UPDATE"]


def test_audit_trail_includes_metadata(client):
    client.put("/users/ada/profile", json=make_profile().model_dump(mode="json"))
    client.post("/queue/run", json={"limit": 1})

    [entry] = client.get("/audit").json()

    assert entry["metadata"] == {"resume_profile_count": 2}
    assert entry["details"]["user_id"] == "ada"
