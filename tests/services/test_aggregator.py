from __future__ import annotations

import asyncio

import pytest

from studytrack.core.errors import StoreError
from studytrack.models.progress import ChapterProgress, UnitProgressDocument
from studytrack.models.taxonomy import TaxonomyNode
from studytrack.repos.progress_repo import InMemoryProgressRepo
from studytrack.repos.taxonomy_repo import InMemoryTaxonomyRepo
from studytrack.services.aggregator import (
    Aggregator,
    ProgressChannel,
    subject_progress_for,
    unit_progress_for,
)
from studytrack.services.progress_store import ProgressStore


def _at(value: int) -> ChapterProgress:
    return ChapterProgress(progress=value, auto_calculated_progress=value, is_completed=value == 100)


def test_missing_chapters_count_as_zero() -> None:
    chapters = {"c1": _at(100), "c2": _at(50)}
    assert unit_progress_for(chapters, ["c1", "c2", "c3", "c4"]) == 38


def test_inactive_chapter_records_are_ignored() -> None:
    chapters = {"c1": _at(100), "old": _at(0)}
    assert unit_progress_for(chapters, ["c1"]) == 100


def test_no_active_chapters_is_zero() -> None:
    assert unit_progress_for({"c1": _at(100)}, []) == 0


def test_subject_is_mean_over_active_units() -> None:
    assert subject_progress_for({"u1": 100, "u2": 25}, ["u1", "u2", "u3"]) == 42
    assert subject_progress_for({}, []) == 0


def _taxonomy() -> InMemoryTaxonomyRepo:
    repo = InMemoryTaxonomyRepo()
    repo.add(TaxonomyNode(id="s1", kind="subject", name="S"))
    for uid in ("u1", "u2"):
        repo.add(TaxonomyNode(id=uid, kind="unit", name=uid, parent_id="s1"))
    for cid in ("c1", "c2"):
        repo.add(TaxonomyNode(id=cid, kind="chapter", name=cid, parent_id="u1"))
    repo.add(TaxonomyNode(id="c3", kind="chapter", name="c3", parent_id="u1", status="inactive"))
    return repo


def test_apply_uses_active_chapters_from_taxonomy() -> None:
    aggregator = Aggregator(_taxonomy(), ProgressStore(InMemoryProgressRepo()))
    doc = UnitProgressDocument(
        student_id="st", unit_id="u1", chapters={"c1": _at(100), "c3": _at(100)}
    )
    assert asyncio.run(aggregator.apply(doc)).unit_progress == 50


def test_refresh_subject_persists_mean_of_units() -> None:
    store = ProgressStore(InMemoryProgressRepo())
    aggregator = Aggregator(_taxonomy(), store)

    async def run() -> int:
        await store.save(UnitProgressDocument(student_id="st", unit_id="u1", unit_progress=75))
        value = await aggregator.refresh_subject("st", "u1")
        assert value == 38
        return (await store.get_subject("st", "s1")).subject_progress

    assert asyncio.run(run()) == 38


def test_refresh_subject_for_unknown_unit_is_noop() -> None:
    aggregator = Aggregator(_taxonomy(), ProgressStore(InMemoryProgressRepo()))
    assert asyncio.run(aggregator.refresh_subject("st", "nope")) is None


def test_taxonomy_failure_surfaces_as_store_error() -> None:
    class Broken(InMemoryTaxonomyRepo):
        async def children(self, parent_ids, kind, status="active"):
            raise ConnectionError("taxonomy down")

    aggregator = Aggregator(Broken(), ProgressStore(InMemoryProgressRepo()))
    doc = UnitProgressDocument(student_id="st", unit_id="u1")
    with pytest.raises(StoreError):
        asyncio.run(aggregator.apply(doc))


# ---------------------------------------------------------------------------
# ProgressChannel
# ---------------------------------------------------------------------------


def test_channel_delivers_only_to_matching_unit() -> None:
    channel = ProgressChannel()
    seen: list[tuple[str, int]] = []
    channel.subscribe("u1", lambda unit, value: seen.append((unit, value)))

    channel.publish("u2", 10)
    channel.publish("u1", 40)

    assert seen == [("u1", 40)]


def test_channel_unsubscribe() -> None:
    channel = ProgressChannel()
    seen: list[int] = []
    unsubscribe = channel.subscribe("u1", lambda _unit, value: seen.append(value))

    unsubscribe()
    unsubscribe()
    channel.publish("u1", 40)

    assert seen == []
    assert channel.listener_count("u1") == 0


def test_failing_listener_does_not_block_others() -> None:
    channel = ProgressChannel()
    seen: list[int] = []

    def boom(_unit: str, _value: int) -> None:
        raise RuntimeError("listener bug")

    channel.subscribe("u1", boom)
    channel.subscribe("u1", lambda _unit, value: seen.append(value))
    channel.publish("u1", 70)

    assert seen == [70]
