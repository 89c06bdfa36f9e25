import pytest
from fastapi.testclient import TestClient

from refgate.server import create_app


@pytest.fixture
def client():
    return TestClient(create_app())


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_push_tag_webhook(client):
    resp = client.post(
        "/webhook",
        json={"ref": "refs/tags/v1.2.3"},
        headers={"X-GitHub-Event": "push"},
    )
    assert resp.status_code == 200
    jobs = {j["job"]: j for j in resp.json()["jobs"]}
    assert jobs["publish"]["scheduled"] is True
    assert jobs["publish"]["reason"] == "matched tag pattern v*"


def test_pull_request_off_main(client):
    resp = client.post(
        "/webhook",
        json={"action": "opened", "pull_request": {"base": {"ref": "dev"}}},
        headers={"X-GitHub-Event": "pull_request"},
    )
    assert resp.status_code == 200
    assert not any(j["scheduled"] for j in resp.json()["jobs"])


def test_unknown_event_is_all_skipped(client):
    resp = client.post("/webhook", json={"zen": "hi"}, headers={"X-GitHub-Event": "ping"})
    assert resp.status_code == 200
    assert {j["reason"] for j in resp.json()["jobs"]} == {"no matching trigger"}


def test_malformed_payload_is_422(client):
    resp = client.post("/webhook", json={"action": "opened"}, headers={"X-GitHub-Event": "pull_request"})
    assert resp.status_code == 422


def test_missing_event_header_is_422(client):
    assert client.post("/webhook", json={"ref": "refs/heads/main"}).status_code == 422


def test_jobs_endpoint(client):
    jobs = client.get("/jobs").json()
    assert [j["name"] for j in jobs] == ["checks", "build", "publish"]
    assert jobs[2]["needs"] == ["build"]
    assert jobs[2]["secrets"] == ["CARGO_REGISTRY_TOKEN"]
