"""Persistence façade over a ProgressRepo.

Reads and writes whole documents.  Every write is an upsert keyed by
(student_id, unit_id), and every repo failure that is not already one
of ours surfaces as StoreError so the API answers 500 with the usual
envelope instead of a bare traceback.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace

from studytrack.core.errors import ProgressError, StoreError, ValidationError
from studytrack.core.metrics import CELEBRATIONS_MARKED, PROGRESS_WRITES
from studytrack.models.progress import (
    CELEBRATION_KINDS,
    ChapterProgress,
    SubjectProgress,
    UnitProgressDocument,
    VisitedItems,
    unique_ids,
    clamp_percent,
)
from studytrack.repos.progress_repo import ProgressRepo

logger = logging.getLogger(__name__)

Rollup = Callable[[UnitProgressDocument], Awaitable[UnitProgressDocument]]


def _merge_visits(stored: VisitedItems, incoming: VisitedItems) -> VisitedItems:
    return VisitedItems(
        chapter=stored.chapter or incoming.chapter,
        topics=unique_ids((*stored.topics, *incoming.topics)),
        subtopics=unique_ids((*stored.subtopics, *incoming.subtopics)),
        definitions=unique_ids((*stored.definitions, *incoming.definitions)),
    )


def merge_chapter(stored: ChapterProgress | None, incoming: ChapterProgress) -> ChapterProgress:
    """Full-record replace, except visits and the latch only ever grow."""
    record = incoming.normalized()
    if stored is None:
        return record
    return replace(
        record,
        visited_items=_merge_visits(stored.visited_items, record.visited_items),
        congratulations_shown=stored.congratulations_shown or record.congratulations_shown,
    )


class ProgressStore:
    def __init__(self, repo: ProgressRepo) -> None:
        self._repo = repo

    async def _call(self, operation: str, coro):
        try:
            return await coro
        except ProgressError:
            raise
        except Exception as exc:
            logger.exception("Progress store %s failed", operation)
            raise StoreError() from exc

    # --- reads ---

    async def get(self, student_id: str, unit_id: str) -> UnitProgressDocument | None:
        return await self._call("get", self._repo.get(student_id, unit_id))

    async def get_or_create(self, student_id: str, unit_id: str) -> UnitProgressDocument:
        document = await self.get(student_id, unit_id)
        if document is None:
            document = UnitProgressDocument.new(student_id=student_id, unit_id=unit_id)
        return document

    async def list_for_student(
        self, student_id: str, unit_id: str | None = None
    ) -> list[UnitProgressDocument]:
        return await self._call("list", self._repo.list_for_student(student_id, unit_id))

    async def get_subject(self, student_id: str, subject_id: str) -> SubjectProgress:
        record = await self._call("get_subject", self._repo.get_subject(student_id, subject_id))
        if record is None:
            return SubjectProgress(student_id=student_id, subject_id=subject_id)
        return record

    # --- writes ---

    async def save(self, document: UnitProgressDocument) -> UnitProgressDocument:
        document = document.touched()
        await self._call("save", self._repo.save(document))
        return document

    async def upsert_chapter(
        self,
        student_id: str,
        unit_id: str,
        chapter_id: str,
        record: ChapterProgress,
        *,
        rollup: Rollup | None = None,
    ) -> UnitProgressDocument:
        """Store the full chapter record.

        `rollup` runs on the updated document before the single save, so
        the unit value is written together with the chapter.
        """
        document = await self.get_or_create(student_id, unit_id)
        merged = merge_chapter(document.chapter(chapter_id), record)
        document = document.with_chapter(chapter_id, merged)
        if rollup is not None:
            document = await rollup(document)
        return await self.save(document)

    async def replace_chapters(
        self,
        student_id: str,
        unit_id: str,
        chapters: Mapping[str, ChapterProgress],
        *,
        rollup: Rollup | None = None,
    ) -> UnitProgressDocument:
        document = await self.get_or_create(student_id, unit_id)
        for chapter_id, record in chapters.items():
            merged = merge_chapter(document.chapter(chapter_id), record)
            document = document.with_chapter(chapter_id, merged)
        if rollup is not None:
            document = await rollup(document)
        return await self.save(document)

    async def set_unit_progress(
        self, student_id: str, unit_id: str, value: int
    ) -> UnitProgressDocument:
        document = await self.get_or_create(student_id, unit_id)
        return await self.save(replace(document, unit_progress=clamp_percent(value)))

    async def set_subject_progress(
        self, student_id: str, subject_id: str, value: int
    ) -> SubjectProgress:
        current = await self.get_subject(student_id, subject_id)
        record = replace(current, subject_progress=clamp_percent(value))
        await self._call("save_subject", self._repo.save_subject(record))
        return record

    async def mark_celebration_shown(
        self,
        kind: str | None,
        student_id: str,
        *,
        unit_id: str | None = None,
        chapter_id: str | None = None,
        subject_id: str | None = None,
    ) -> dict:
        """Set one congratulations latch; validation happens before any write."""
        if kind not in CELEBRATION_KINDS:
            raise ValidationError("type must be one of chapter, unit, subject")
        if kind == "chapter" and not (unit_id and chapter_id):
            raise ValidationError("unitId and chapterId are required for chapter")
        if kind == "unit" and not unit_id:
            raise ValidationError("unitId is required for unit")
        if kind == "subject" and not subject_id:
            raise ValidationError("subjectId is required for subject")

        if kind == "subject":
            current = await self.get_subject(student_id, subject_id)
            record = replace(current, subject_congratulations_shown=True)
            await self._call("save_subject", self._repo.save_subject(record))
            result = {"type": kind, "subjectId": subject_id}
        else:
            document = await self.get_or_create(student_id, unit_id)
            if kind == "chapter":
                chapter = document.chapter(chapter_id) or ChapterProgress()
                document = document.with_chapter(
                    chapter_id, replace(chapter, congratulations_shown=True)
                )
                result = {"type": kind, "unitId": unit_id, "chapterId": chapter_id}
            else:
                document = replace(document, unit_congratulations_shown=True)
                result = {"type": kind, "unitId": unit_id}
            await self.save(document)

        CELEBRATIONS_MARKED.labels(kind=kind).inc()
        PROGRESS_WRITES.labels(operation="celebration").inc()
        logger.info(
            "Congratulations marked kind=%s",
            kind,
            extra={
                "student_id": student_id,
                "unit_id": unit_id,
                "chapter_id": chapter_id,
                "subject_id": subject_id,
            },
        )
        return result
