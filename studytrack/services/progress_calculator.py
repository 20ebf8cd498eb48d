"""Chapter score arithmetic and the manual-override rules.

Everything here except ProgressCalculator.recalculate is pure: records
go in, new records come out, and the caller decides when to persist.

AUTO VALUE
------------
    auto = clamp(round_half_up(100 * visited / total), 0, 100)

with auto = 0 when total == 0.  Two flows count differently:

  visit flow (include_chapter=True)
      visited = [chapter opened] + |topics| + |subtopics| + |definitions|
      total   = 1 + counted items

  recalculate flow (include_chapter=False)
      the chapter itself is on neither side of the fraction

EFFECTIVE VALUE
-----------------
    not overridden  →  progress = auto
    overridden      →  progress = manual_progress (auto kept for reference)

and in both cases is_completed = (progress == 100).
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from studytrack.core.errors import NotFoundError, ValidationError
from studytrack.core.metrics import PROGRESS_WRITES
from studytrack.models.progress import (
    ChapterProgress,
    ItemCounts,
    VisitedItems,
    clamp_percent,
)

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    # round() is banker's rounding: round(37.5) == 38 but round(36.5) == 36
    return int(math.floor(value + 0.5))


def auto_progress(
    visited: VisitedItems, counts: ItemCounts, *, include_chapter: bool
) -> int:
    total = counts.total + (1 if include_chapter else 0)
    if total <= 0:
        return 0
    seen = visited.count(include_chapter=include_chapter)
    return clamp_percent(round_half_up(100 * seen / total))


def resolve(record: ChapterProgress, auto: int) -> ChapterProgress:
    """Store a fresh auto value and derive the effective progress from it."""
    auto = clamp_percent(auto)
    if record.is_manual_override and record.manual_progress is not None:
        effective = clamp_percent(record.manual_progress)
    else:
        effective = auto
    return replace(
        record,
        auto_calculated_progress=auto,
        progress=effective,
        is_completed=effective == 100,
    )


def apply_manual_progress(
    record: ChapterProgress, value: int, *, force_override: bool = False
) -> ChapterProgress:
    """Slider semantics.

    A value that differs from the last auto value becomes an override; a
    value equal to it clears any override, so the record goes back to
    following its visits.  `force_override` (mark as done) always pins.
    """
    value = clamp_percent(value)
    if force_override or value != record.auto_calculated_progress:
        return replace(
            record,
            is_manual_override=True,
            manual_progress=value,
            progress=value,
            is_completed=value == 100,
        )
    return replace(
        record,
        is_manual_override=False,
        manual_progress=None,
        progress=value,
        is_completed=value == 100,
    )


def mark_done(record: ChapterProgress) -> ChapterProgress:
    return apply_manual_progress(record, 100, force_override=True)


def reset(record: ChapterProgress) -> ChapterProgress:
    return apply_manual_progress(record, 0)


class ProgressCalculator:
    """Forces a recomputation pass from the stored visited-item sets."""

    def __init__(self, store, counter, aggregator) -> None:
        self._store = store
        self._counter = counter
        self._aggregator = aggregator

    async def recalculate(self, student_id: str, unit_id: str | None, chapter_id: str | None) -> dict:
        if not unit_id or not chapter_id:
            raise ValidationError("unitId and chapterId are required")

        document = await self._store.get(student_id, unit_id)
        if document is None:
            raise NotFoundError("Progress not found")
        record = document.chapter(chapter_id)
        if record is None:
            raise NotFoundError("Chapter progress not found")

        counts = await self._counter.count(chapter_id)
        auto = auto_progress(record.visited_items, counts, include_chapter=False)
        record = resolve(record, auto)

        document = await self._aggregator.apply(document.with_chapter(chapter_id, record))
        document = await self._store.save(document)
        await self._aggregator.refresh_subject(student_id, unit_id)
        PROGRESS_WRITES.labels(operation="calculate").inc()

        logger.info(
            "Chapter recalculated auto=%d effective=%d unit=%d",
            auto,
            record.progress,
            document.unit_progress,
            extra={"student_id": student_id, "unit_id": unit_id, "chapter_id": chapter_id},
        )
        return {
            "chapterId": chapter_id,
            "chapterProgress": record.progress,
            "autoCalculatedProgress": auto,
            "unitProgress": document.unit_progress,
            "itemCounts": counts.to_dict(),
        }
