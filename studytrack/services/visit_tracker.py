from __future__ import annotations

import logging
from dataclasses import replace

from studytrack.core.errors import ValidationError
from studytrack.core.metrics import PROGRESS_WRITES
from studytrack.models.progress import ITEM_TYPES, ChapterProgress
from studytrack.services.progress_calculator import auto_progress, resolve

logger = logging.getLogger(__name__)


def validate_visit(
    unit_id: str | None,
    chapter_id: str | None,
    item_type: str | None,
    item_id: str | None,
) -> str:
    """Check a visit request and return the effective item id."""
    if not unit_id or not chapter_id or not item_type:
        raise ValidationError("unitId, chapterId and itemType are required")
    if item_type not in ITEM_TYPES:
        raise ValidationError(
            f"itemType must be one of {', '.join(ITEM_TYPES)} (got {item_type!r})"
        )
    if item_type == "chapter":
        return item_id or chapter_id
    if not item_id:
        raise ValidationError(f"itemId is required for itemType {item_type!r}")
    return item_id


class VisitTracker:
    """Records that a learner opened a chapter or one of its items.

    One call is one read-modify-write of the unit document: the visit is
    added, the chapter's auto value recomputed with the chapter itself
    counted, the unit value rolled up, and the result saved once.
    """

    def __init__(self, store, counter, aggregator) -> None:
        self._store = store
        self._counter = counter
        self._aggregator = aggregator

    async def record_visit(
        self,
        student_id: str,
        unit_id: str | None,
        chapter_id: str | None,
        item_type: str | None,
        item_id: str | None = None,
    ) -> dict:
        item_id = validate_visit(unit_id, chapter_id, item_type, item_id)

        document = await self._store.get_or_create(student_id, unit_id)
        record = document.chapter(chapter_id) or ChapterProgress()
        visited = record.visited_items.with_visit(item_type, item_id)

        counts = await self._counter.count(chapter_id)
        auto = auto_progress(visited, counts, include_chapter=True)
        record = resolve(replace(record, visited_items=visited), auto)

        document = await self._aggregator.apply(document.with_chapter(chapter_id, record))
        document = await self._store.save(document)
        await self._aggregator.refresh_subject(student_id, unit_id)
        PROGRESS_WRITES.labels(operation="visit").inc()

        logger.info(
            "Visit recorded type=%s auto=%d effective=%d unit=%d",
            item_type,
            auto,
            record.progress,
            document.unit_progress,
            extra={"student_id": student_id, "unit_id": unit_id, "chapter_id": chapter_id},
        )
        return {
            "chapterId": chapter_id,
            "itemType": item_type,
            "itemId": item_id,
            "visited": True,
            "chapterProgress": record.progress,
            "autoCalculatedProgress": auto,
            "unitProgress": document.unit_progress,
        }
