from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import studytrack` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from studytrack.api.dependencies import progress_repo, taxonomy_repo  # noqa: E402
from studytrack.main import app  # noqa: E402
from studytrack.models.taxonomy import TaxonomyNode  # noqa: E402
from studytrack.services import token_service  # noqa: E402
from studytrack.services.query_cache import reset_caches  # noqa: E402


@pytest.fixture(autouse=True)
def reset_progress_state() -> None:
    """Clear stored progress documents between tests."""
    progress_repo.clear()


@pytest.fixture(autouse=True)
def reset_taxonomy_state() -> None:
    taxonomy_repo.clear()


@pytest.fixture(autouse=True)
def reset_query_caches() -> None:
    """Drop the per-resource query caches so hits don't bleed across tests."""
    reset_caches()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    student_id: str = "student-1",
    *,
    ttl: timedelta = timedelta(hours=1),
    token_type: str = "student",
) -> str:
    """Create a valid HS256 student token for testing."""
    return token_service.create_student_token(
        student_id=student_id, ttl=ttl, token_type=token_type
    )


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    return mint_token()


# ---------------------------------------------------------------------------
# Taxonomy helpers
# ---------------------------------------------------------------------------


def add_node(
    node_id: str,
    kind: str,
    parent_id: str | None = None,
    *,
    status: str = "active",
    order: int = 0,
) -> TaxonomyNode:
    """Add a node to the in-memory taxonomy."""
    return taxonomy_repo.add(
        TaxonomyNode(
            id=node_id,
            kind=kind,
            name=node_id.replace("-", " ").title(),
            parent_id=parent_id,
            slug=node_id,
            status=status,
            order_number=order,
        )
    )


def seed_chapter(
    chapter_id: str = "ch-1",
    unit_id: str = "unit-1",
    *,
    topics: int = 1,
    subtopics_per_topic: int = 1,
    definitions_per_subtopic: int = 2,
) -> dict[str, list[str]]:
    """Seed a chapter under unit-1/subject-1/exam-1 and return its item ids.

    The defaults give 1 topic + 1 subtopic + 2 definitions = 4 items, so
    with the chapter itself a visit flow divides by 5.
    """
    if taxonomy_repo._nodes.get("exam-1") is None:
        add_node("exam-1", "exam")
        add_node("subject-1", "subject", "exam-1")
    if taxonomy_repo._nodes.get(unit_id) is None:
        add_node(unit_id, "unit", "subject-1")
    add_node(chapter_id, "chapter", unit_id)

    ids: dict[str, list[str]] = {"topic": [], "subtopic": [], "definition": []}
    for t in range(topics):
        topic_id = f"{chapter_id}-t{t}"
        add_node(topic_id, "topic", chapter_id, order=t)
        ids["topic"].append(topic_id)
        for s in range(subtopics_per_topic):
            sub_id = f"{topic_id}-s{s}"
            add_node(sub_id, "subtopic", topic_id, order=s)
            ids["subtopic"].append(sub_id)
            for d in range(definitions_per_subtopic):
                def_id = f"{sub_id}-d{d}"
                add_node(def_id, "definition", sub_id, order=d)
                ids["definition"].append(def_id)
    return ids
