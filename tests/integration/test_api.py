"""
Integration tests for the HTTP API.

The app runs with its real lifespan, a temp SQLite job store and a temp
corpus; only the embedding model is replaced.
"""
import time
from unittest.mock import MagicMock

import numpy as np
import pytest
from fastapi.testclient import TestClient

from game_scout.api.main import build_job_manager, create_app
from game_scout.ops.commands import CommandRegistry


@pytest.fixture
def registry():
    reg = CommandRegistry()

    @reg.command("noop-success")
    async def noop_success():
        return {"ok": True}

    @reg.command("noop-failure")
    async def noop_failure():
        raise RuntimeError("boom")

    return reg


@pytest.fixture
def app(corpus_files, registry):
    return create_app(corpus_files, build_job_manager(corpus_files, registry))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def wait_for_job(client, job_id, timeout=5.0):
    """Poll until the job reaches a terminal status."""
    deadline = time.monotonic() + timeout
    while True:
        job = client.get(f"/jobs/{job_id}").json()["data"]
        if job["status"] in ("completed", "failed"):
            return job
        assert time.monotonic() < deadline, f"job {job_id} still {job['status']}"
        time.sleep(0.02)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "noop-success" in data["commands"]
    assert "generateEmbeddings" in data["commands"]


def test_list_commands(client):
    body = client.get("/commands").json()
    assert body["success"] is True
    assert body["data"] == ["generateEmbeddings", "noop-failure", "noop-success"]


def test_start_command_and_poll(client):
    response = client.post("/commands/noop-success")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    job_id = body["data"]["jobId"]
    assert body["data"]["status"] == "pending"
    assert job_id in body["data"]["message"]

    job = wait_for_job(client, job_id)
    assert job["status"] == "completed"
    assert job["result"] == {"ok": True}
    assert job["started_at"] <= job["completed_at"]


def test_failed_command(client):
    job_id = client.post("/commands/noop-failure").json()["data"]["jobId"]

    job = wait_for_job(client, job_id)
    assert job["status"] == "failed"
    assert job["error"] == "boom"


def test_unknown_command(client):
    response = client.post("/commands/doesNotExist")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert "Unknown command: doesNotExist" in body["message"]
    assert client.get("/jobs").json()["data"]["stats"]["total"] == 0


def test_get_missing_job(client):
    response = client.get("/jobs/job_missing")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Job not found: job_missing"}


def test_list_jobs_with_filters(client):
    ok_id = client.post("/commands/noop-success").json()["data"]["jobId"]
    bad_id = client.post("/commands/noop-failure").json()["data"]["jobId"]
    wait_for_job(client, ok_id)
    wait_for_job(client, bad_id)

    data = client.get("/jobs").json()["data"]
    assert [j["id"] for j in data["jobs"]] == [bad_id, ok_id]
    assert data["stats"] == {"pending": 0, "running": 0, "completed": 1, "failed": 1, "total": 2}

    failed = client.get("/jobs", params={"status": "failed"}).json()["data"]["jobs"]
    assert [j["id"] for j in failed] == [bad_id]

    by_command = client.get("/jobs", params={"command": "noop-success"}).json()["data"]["jobs"]
    assert [j["id"] for j in by_command] == [ok_id]

    page = client.get("/jobs", params={"limit": 1, "offset": 1}).json()["data"]["jobs"]
    assert [j["id"] for j in page] == [ok_id]


@pytest.mark.parametrize("params", [{"limit": 0}, {"offset": -1}, {"status": "bogus"}])
def test_list_jobs_rejects_bad_params(client, params):
    assert client.get("/jobs", params=params).status_code == 422


def test_delete_job(client):
    job_id = client.post("/commands/noop-success").json()["data"]["jobId"]
    wait_for_job(client, job_id)

    response = client.delete(f"/jobs/{job_id}")
    assert response.json() == {"success": True, "data": {"deleted": True}}
    assert client.delete(f"/jobs/{job_id}").status_code == 404


def test_cleanup_jobs(client):
    job_id = client.post("/commands/noop-success").json()["data"]["jobId"]
    wait_for_job(client, job_id)

    kept = client.post("/jobs/cleanup").json()["data"]
    assert kept == {"removed": 0, "older_than_days": 30}

    removed = client.post("/jobs/cleanup", params={"days": 0}).json()["data"]
    assert removed["removed"] == 1
    assert client.get(f"/jobs/{job_id}").status_code == 404


def test_job_events_for_finished_job(client):
    job_id = client.post("/commands/noop-success").json()["data"]["jobId"]
    wait_for_job(client, job_id)

    response = client.get(f"/jobs/{job_id}/events")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text.startswith("event: jobUpdated\ndata: ")
    assert '"status": "completed"' in response.text


def test_job_events_missing_job(client):
    assert client.get("/jobs/job_missing/events").status_code == 404


def test_list_games_sorted_by_name(client):
    response = client.get("/games")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [g["name"] for g in data] == ["Obby", "Pet Simulator", "Tower Defense Simulator", "Zombie Tower"]
    assert data[0] == {
        "universeId": 4,
        "rootPlaceId": 104,
        "name": "Obby",
        "description": "",
        "gameplayDescription": "   ",
    }


def test_list_games_limit(client):
    data = client.get("/games", params={"limit": 2}).json()["data"]
    assert [g["universeId"] for g in data] == [4, 3]
    assert client.get("/games", params={"limit": 0}).status_code == 422


def test_list_games_without_corpus(settings):
    with TestClient(create_app(settings, build_job_manager(settings))) as c:
        response = c.get("/games")
    assert response.status_code == 409
    assert response.json()["message"] == "Games data not found. Run gatherGames first."


def test_similar_games(client):
    response = client.get("/games/1/similar", params={"limit": 5})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [g["universeId"] for g in data] == [2, 3]
    assert data[0]["name"] == "Zombie Tower"
    assert data[0]["similarity"] == pytest.approx(0.9 / np.sqrt(0.82))


def test_similar_games_with_popularity(client):
    data = client.get("/games/1/similar", params={"popularity": True}).json()["data"]
    # Game 2 has 10 players: 0.8 + 10/500
    assert data[0]["similarity"] == pytest.approx(0.82 * 0.9 / np.sqrt(0.82))


def test_similar_games_unknown_item(client):
    response = client.get("/games/99/similar")
    assert response.status_code == 404
    assert response.json()["message"] == "No embeddings found for item 99"


def test_vector_search_uses_encoder(client, app):
    encoder = MagicMock()
    encoder.encode.return_value = np.array([[1.0, 0.0, 0.0]])
    app.state.encoder = encoder

    response = client.get("/games/vector-search", params={"q": "tower defense", "limit": 2})

    assert response.status_code == 200
    assert [g["universeId"] for g in response.json()["data"]] == [1, 2]
    encoder.encode.assert_called_once_with(["tower defense"], convert_to_numpy=True)


def test_keyword_search(client):
    data = client.get("/games/search", params={"q": "zombie"}).json()["data"]

    assert data[0]["universeId"] == 2
    assert data[0]["matchType"] == "title"
    assert data[0]["relevanceScore"] == 125


def test_keyword_search_blank_query(client):
    response = client.get("/games/search", params={"q": "   "})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_corpus_stats(client):
    data = client.get("/stats").json()["data"]
    assert data == {
        "totalGames": 4,
        "gamesLackingDescriptions": 2,
        "gamesLackingGameplayDescriptions": 2,
        "gamesLackingEmbeddings": 1,
    }


def test_corpus_not_ready(settings):
    with TestClient(create_app(settings, build_job_manager(settings))) as c:
        response = c.get("/games/1/similar")
    assert response.status_code == 409
    assert response.json()["message"] == "Embeddings not found. Run generateEmbeddings first."


def test_orphaned_jobs_failed_on_startup(corpus_files, registry):
    manager = build_job_manager(corpus_files, registry)
    job_id = manager.create_job("noop-success")

    with TestClient(create_app(corpus_files, manager)) as c:
        job = c.get(f"/jobs/{job_id}").json()["data"]

    assert job["status"] == "failed"
    assert job["error"] == "Interrupted by process restart"
