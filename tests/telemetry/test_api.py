"""Tests for the telemetry debug API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from context_tiers.telemetry.api import create_app
from context_tiers.telemetry.insights import NO_RUNS_MESSAGE
from context_tiers.telemetry.recorder import TelemetryRecorder
from tests.mocks.results import make_result


@pytest.fixture
def recorder() -> TelemetryRecorder:
    """A recorder with a few entries for two conversations."""
    recorder = TelemetryRecorder()
    recorder.record(make_result("a"))
    recorder.record(make_result("a", status="fallback", fallback_reason="timeout"))
    recorder.record(make_result("b"))
    return recorder


@pytest.fixture
def client(recorder: TelemetryRecorder) -> TestClient:
    """Test client with the lifespan running."""
    with TestClient(create_app(recorder)) as client:
        yield client


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "entries": 3}


def test_logs(client: TestClient) -> None:
    data = client.get("/logs").json()
    assert data["conversation_id"] is None
    assert len(data["logs"]) == 3


def test_logs_for_conversation(client: TestClient) -> None:
    data = client.get("/logs", params={"conversation_id": "a"}).json()
    assert data["conversation_id"] == "a"
    assert [log["status"] for log in data["logs"]] == ["success", "fallback"]
    assert data["logs"][1]["fallback_reason"] == "timeout"


def test_stats(client: TestClient) -> None:
    data = client.get("/stats/a").json()
    assert data["statistics"]["total_operations"] == 2
    assert data["statistics"]["fallback_count"] == 1
    assert data["success_rate"] == 50.0
    assert data["fallback_rate"] == 50.0
    assert data["compression_ratio"] == 30.0


def test_stats_unknown_conversation(client: TestClient) -> None:
    data = client.get("/stats/nobody").json()
    assert data["statistics"]["total_operations"] == 0
    assert data["success_rate"] == 0.0


def test_insights(client: TestClient) -> None:
    data = client.get("/insights/a").json()
    assert data["conversation_id"] == "a"
    assert data["insights"][0].startswith("Low success rate")
    assert client.get("/insights/nobody").json()["insights"] == [NO_RUNS_MESSAGE]


def test_clear_conversation(client: TestClient, recorder: TelemetryRecorder) -> None:
    response = client.delete("/logs", params={"conversation_id": "a"})
    assert response.json() == {"status": "cleared", "conversation_id": "a"}
    assert [e.conversation_id for e in recorder.get_logs()] == ["b"]


def test_clear_all(client: TestClient, recorder: TelemetryRecorder) -> None:
    assert client.delete("/logs").json()["conversation_id"] is None
    assert recorder.get_logs() == ()
    assert client.get("/health").json()["entries"] == 0
