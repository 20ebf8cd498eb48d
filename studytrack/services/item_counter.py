"""Counts the visitable items beneath a chapter.

Three dependent lookups against the taxonomy:

  chapter → active topics → their active subtopics → their active definitions

A failure anywhere in the chain degrades to zero counts instead of
failing the request: the learner's visit is still recorded, the chapter
simply shows 0% (or only the chapter's own share) until the taxonomy
answers again.
"""

from __future__ import annotations

import logging

from studytrack.core.metrics import ITEM_COUNT_FAILURES
from studytrack.models.progress import ItemCounts
from studytrack.repos.taxonomy_repo import TaxonomyRepo

logger = logging.getLogger(__name__)


class ItemCounter:
    def __init__(self, taxonomy: TaxonomyRepo) -> None:
        self._taxonomy = taxonomy

    async def count(self, chapter_id: str) -> ItemCounts:
        try:
            topics = await self._taxonomy.children([chapter_id], "topic")
            subtopics = await self._taxonomy.children([t.id for t in topics], "subtopic")
            definitions = await self._taxonomy.children(
                [s.id for s in subtopics], "definition"
            )
        except Exception:
            ITEM_COUNT_FAILURES.inc()
            logger.warning(
                "Item count lookup failed, using zero counts",
                exc_info=True,
                extra={"chapter_id": chapter_id},
            )
            return ItemCounts()

        return ItemCounts(
            topics=len(topics),
            subtopics=len(subtopics),
            definitions=len(definitions),
        )
