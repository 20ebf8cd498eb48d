from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import add_node, seed_chapter


def _hits(cache: str) -> float:
    return (
        REGISTRY.get_sample_value(
            "cache_operations_total", {"cache": cache, "operation": "hit"}
        )
        or 0.0
    )


def _seed_exams(count: int, *, status: str = "active") -> None:
    for i in range(count):
        add_node(f"exam-{i:02d}", "exam", status=status, order=i)


# ---- /exams ----


def test_exams_pagination_shape(client: TestClient) -> None:
    _seed_exams(12)

    resp = client.get("/exams", params={"page": 2, "limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [e["_id"] for e in body["data"]] == [f"exam-{i:02d}" for i in range(5, 10)]
    assert body["pagination"] == {
        "page": 2,
        "limit": 5,
        "total": 12,
        "totalPages": 3,
        "hasNextPage": True,
        "hasPrevPage": True,
        "nextPage": 3,
        "prevPage": 1,
    }


def test_exams_limit_is_clamped(client: TestClient) -> None:
    _seed_exams(3)
    body = client.get("/exams", params={"limit": 1, "page": 0}).json()
    assert body["pagination"]["limit"] == 5
    assert body["pagination"]["page"] == 1


def test_exams_status_filter(client: TestClient) -> None:
    _seed_exams(2)
    add_node("exam-old", "exam", status="inactive", order=99)

    active = client.get("/exams").json()
    everything = client.get("/exams", params={"status": "all"}).json()

    assert active["pagination"]["total"] == 2
    assert everything["pagination"]["total"] == 3


def test_active_exams_are_cached(client: TestClient) -> None:
    _seed_exams(2)
    before = _hits("exams")

    first = client.get("/exams").json()
    add_node("exam-new", "exam", order=50)
    second = client.get("/exams").json()

    assert second == first
    assert _hits("exams") - before == 1


def test_no_cache_header_bypasses_and_refreshes(client: TestClient) -> None:
    _seed_exams(2)
    client.get("/exams")
    add_node("exam-new", "exam", order=50)

    fresh = client.get("/exams", headers={"Cache-Control": "no-cache"}).json()
    after = client.get("/exams").json()

    assert fresh["pagination"]["total"] == 3
    assert after["pagination"]["total"] == 3


def test_non_active_status_is_never_cached(client: TestClient) -> None:
    _seed_exams(1)
    client.get("/exams", params={"status": "all"})
    add_node("exam-new", "exam", order=50)

    body = client.get("/exams", params={"status": "all"}).json()

    assert body["pagination"]["total"] == 2


# ---- /tree ----


def test_tree_nests_levels(client: TestClient) -> None:
    seed_chapter(definitions_per_subtopic=0)

    resp = client.get("/tree", params={"examId": "exam-1"})

    assert resp.status_code == 200
    [exam] = resp.json()["data"]
    assert exam["_id"] == "exam-1"
    [subject] = exam["subjects"]
    [unit] = subject["units"]
    [chapter] = unit["chapters"]
    [topic] = chapter["topics"]
    assert unit["_id"] == "unit-1"
    assert topic["subTopics"][0]["_id"] == "ch-1-t0-s0"


def test_tree_skips_inactive_nodes(client: TestClient) -> None:
    seed_chapter(definitions_per_subtopic=0)
    add_node("ch-archived", "chapter", "unit-1", status="inactive")

    [exam] = client.get("/tree").json()["data"]

    chapters = exam["subjects"][0]["units"][0]["chapters"]
    assert [c["_id"] for c in chapters] == ["ch-1"]


def test_tree_is_cached_per_exam(client: TestClient) -> None:
    seed_chapter()
    before = _hits("tree")

    client.get("/tree", params={"examId": "exam-1"})
    client.get("/tree", params={"examId": "exam-1"})
    client.get("/tree")

    assert _hits("tree") - before == 1
