from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_without_database(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["checks"] == {"database": "not_configured"}


def test_health_reports_cache_sizes(client: TestClient) -> None:
    client.get("/exams")
    body = client.get("/health").json()
    assert body["caches"] == {"exams": 1}


def test_ready_passes_on_memory_repos(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200
    assert resp.json()["ready"] is True


def test_metrics_endpoint_exposes_progress_counters(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "progress_writes_total" in resp.text
