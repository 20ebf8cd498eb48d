from __future__ import annotations

import asyncio

from prometheus_client import REGISTRY

from studytrack.models.taxonomy import TaxonomyNode
from studytrack.repos.taxonomy_repo import InMemoryTaxonomyRepo
from studytrack.services.item_counter import ItemCounter


def _failures() -> float:
    return REGISTRY.get_sample_value("item_count_failures_total") or 0.0


def test_counts_active_descendants_only() -> None:
    repo = InMemoryTaxonomyRepo()
    repo.add(TaxonomyNode(id="ch", kind="chapter", name="Ch"))
    repo.add(TaxonomyNode(id="t1", kind="topic", name="T1", parent_id="ch"))
    repo.add(TaxonomyNode(id="t2", kind="topic", name="T2", parent_id="ch", status="inactive"))
    repo.add(TaxonomyNode(id="s1", kind="subtopic", name="S1", parent_id="t1"))
    repo.add(TaxonomyNode(id="s2", kind="subtopic", name="S2", parent_id="t1"))
    # under an inactive topic: not reachable
    repo.add(TaxonomyNode(id="s3", kind="subtopic", name="S3", parent_id="t2"))
    repo.add(TaxonomyNode(id="d1", kind="definition", name="D1", parent_id="s1"))
    repo.add(TaxonomyNode(id="d2", kind="definition", name="D2", parent_id="s2", status="INACTIVE"))

    counts = asyncio.run(ItemCounter(repo).count("ch"))

    assert (counts.topics, counts.subtopics, counts.definitions) == (1, 2, 1)
    assert counts.total == 4


def test_unknown_chapter_counts_zero() -> None:
    counts = asyncio.run(ItemCounter(InMemoryTaxonomyRepo()).count("missing"))
    assert counts.total == 0


def test_lookup_failure_degrades_to_zero() -> None:
    class Flaky(InMemoryTaxonomyRepo):
        async def children(self, parent_ids, kind, status="active"):
            if kind == "subtopic":
                raise TimeoutError("taxonomy read timed out")
            return await super().children(parent_ids, kind, status)

    repo = Flaky()
    repo.add(TaxonomyNode(id="t1", kind="topic", name="T1", parent_id="ch"))
    before = _failures()

    counts = asyncio.run(ItemCounter(repo).count("ch"))

    assert counts.total == 0
    assert _failures() - before == 1
