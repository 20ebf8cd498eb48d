from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from prometheus_client import REGISTRY

from studytrack.core.errors import StoreError, ValidationError
from studytrack.models.progress import ChapterProgress, UnitProgressDocument, VisitedItems
from studytrack.repos.progress_repo import InMemoryProgressRepo
from studytrack.services.progress_store import ProgressStore, merge_chapter


def _store() -> tuple[ProgressStore, InMemoryProgressRepo]:
    repo = InMemoryProgressRepo()
    return ProgressStore(repo), repo


def test_get_or_create_does_not_persist() -> None:
    store, repo = _store()
    doc = asyncio.run(store.get_or_create("st", "u1"))
    assert doc.chapters == {}
    assert asyncio.run(repo.get("st", "u1")) is None


def test_upsert_chapter_creates_document() -> None:
    store, repo = _store()
    record = ChapterProgress(progress=40, auto_calculated_progress=40)

    asyncio.run(store.upsert_chapter("st", "u1", "ch", record))

    saved = asyncio.run(repo.get("st", "u1"))
    assert saved.chapter("ch").progress == 40
    assert saved.updated_at >= saved.created_at > 0


def test_upsert_runs_rollup_before_the_save() -> None:
    store, repo = _store()

    async def rollup(doc: UnitProgressDocument) -> UnitProgressDocument:
        return replace(doc, unit_progress=77)

    asyncio.run(store.upsert_chapter("st", "u1", "ch", ChapterProgress(), rollup=rollup))
    assert asyncio.run(repo.get("st", "u1")).unit_progress == 77


def test_set_unit_progress_upserts_and_clamps() -> None:
    store, repo = _store()

    asyncio.run(store.set_unit_progress("st", "u1", 140))
    assert asyncio.run(repo.get("st", "u1")).unit_progress == 100

    asyncio.run(store.upsert_chapter("st", "u1", "ch", ChapterProgress(progress=30)))
    asyncio.run(store.set_unit_progress("st", "u1", -5))

    saved = asyncio.run(repo.get("st", "u1"))
    assert saved.unit_progress == 0
    assert saved.chapter("ch").progress == 30


def test_merge_keeps_latch_and_visits() -> None:
    stored = ChapterProgress(
        congratulations_shown=True,
        visited_items=VisitedItems(chapter=True, topics=("t1",)),
    )
    incoming = ChapterProgress(
        progress=50,
        auto_calculated_progress=50,
        visited_items=VisitedItems(topics=("t2",)),
    )

    merged = merge_chapter(stored, incoming)

    assert merged.congratulations_shown is True
    assert merged.visited_items.chapter is True
    assert merged.visited_items.topics == ("t1", "t2")
    assert merged.progress == 50


def test_merge_normalizes_inconsistent_record() -> None:
    incoming = ChapterProgress(progress=90, is_completed=True, auto_calculated_progress=30)
    merged = merge_chapter(None, incoming)
    assert merged.progress == 30
    assert merged.is_completed is False


def test_replace_chapters_merges_every_entry() -> None:
    store, repo = _store()
    chapters = {
        "a": ChapterProgress(progress=100, auto_calculated_progress=100, is_completed=True),
        "b": ChapterProgress(progress=20, is_manual_override=True, manual_progress=20),
    }
    asyncio.run(store.replace_chapters("st", "u1", chapters))

    saved = asyncio.run(repo.get("st", "u1"))
    assert set(saved.chapters) == {"a", "b"}
    assert saved.chapter("b").is_manual_override is True


def test_subject_defaults_to_zero() -> None:
    store, _ = _store()
    subject = asyncio.run(store.get_subject("st", "subj"))
    assert subject.subject_progress == 0
    assert subject.subject_congratulations_shown is False


def test_mark_chapter_celebration() -> None:
    store, repo = _store()
    before = REGISTRY.get_sample_value("celebrations_marked_total", {"kind": "chapter"}) or 0.0

    asyncio.run(store.mark_celebration_shown("chapter", "st", unit_id="u1", chapter_id="ch"))

    assert asyncio.run(repo.get("st", "u1")).chapter("ch").congratulations_shown is True
    after = REGISTRY.get_sample_value("celebrations_marked_total", {"kind": "chapter"})
    assert after - before == 1


def test_mark_unit_and_subject_celebrations() -> None:
    store, repo = _store()
    asyncio.run(store.mark_celebration_shown("unit", "st", unit_id="u1"))
    asyncio.run(store.mark_celebration_shown("subject", "st", subject_id="subj"))

    assert asyncio.run(repo.get("st", "u1")).unit_congratulations_shown is True
    assert asyncio.run(store.get_subject("st", "subj")).subject_congratulations_shown is True


@pytest.mark.parametrize(
    ("kind", "ids"),
    [
        ("badge", {"unit_id": "u1"}),
        (None, {"unit_id": "u1"}),
        ("chapter", {"unit_id": "u1"}),
        ("unit", {}),
        ("subject", {"unit_id": "u1"}),
    ],
)
def test_mark_celebration_validation(kind, ids) -> None:
    store, repo = _store()
    with pytest.raises(ValidationError):
        asyncio.run(store.mark_celebration_shown(kind, "st", **ids))
    assert asyncio.run(repo.list_for_student("st")) == []


def test_repo_failures_become_store_errors() -> None:
    class Down(InMemoryProgressRepo):
        async def get(self, student_id, unit_id):
            raise ConnectionError("connection reset")

    store = ProgressStore(Down())
    with pytest.raises(StoreError):
        asyncio.run(store.get("st", "u1"))
