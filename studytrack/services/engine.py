"""Wires the progress services together behind one object.

The API layer only talks to ProgressEngine; each request gets an engine
built over the repos chosen in api/dependencies.py.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from studytrack.core.errors import ValidationError
from studytrack.core.metrics import PROGRESS_WRITES
from studytrack.models.progress import ChapterProgress
from studytrack.repos.progress_repo import ProgressRepo
from studytrack.repos.taxonomy_repo import TaxonomyRepo
from studytrack.services.aggregator import Aggregator
from studytrack.services.item_counter import ItemCounter
from studytrack.services.progress_calculator import ProgressCalculator
from studytrack.services.progress_store import ProgressStore
from studytrack.services.visit_tracker import VisitTracker

logger = logging.getLogger(__name__)


class ProgressEngine:
    def __init__(self, progress_repo: ProgressRepo, taxonomy_repo: TaxonomyRepo) -> None:
        self.store = ProgressStore(progress_repo)
        self.counter = ItemCounter(taxonomy_repo)
        self.aggregator = Aggregator(taxonomy_repo, self.store)
        self.calculator = ProgressCalculator(self.store, self.counter, self.aggregator)
        self.tracker = VisitTracker(self.store, self.counter, self.aggregator)

    async def list_progress(self, student_id: str, unit_id: str | None = None) -> list[dict]:
        documents = await self.store.list_for_student(student_id, unit_id or None)
        return [d.to_dict() for d in documents]

    async def update_chapter(
        self,
        student_id: str,
        unit_id: str | None,
        chapter_id: str | None,
        record: ChapterProgress | None,
    ) -> dict:
        if not unit_id or not chapter_id or record is None:
            raise ValidationError("unitId, chapterId and progress are required")

        document = await self.store.upsert_chapter(
            student_id, unit_id, chapter_id, record, rollup=self.aggregator.apply
        )
        await self.aggregator.refresh_subject(student_id, unit_id)
        PROGRESS_WRITES.labels(operation="chapter").inc()
        logger.info(
            "Chapter progress saved unit=%d",
            document.unit_progress,
            extra={"student_id": student_id, "unit_id": unit_id, "chapter_id": chapter_id},
        )
        return {
            "unitId": unit_id,
            "chapterId": chapter_id,
            "progress": document.chapters[chapter_id].to_dict(),
            "unitProgress": document.unit_progress,
        }

    async def replace_chapters(
        self,
        student_id: str,
        unit_id: str | None,
        chapters: Mapping[str, ChapterProgress] | None,
    ) -> dict:
        if not unit_id or chapters is None:
            raise ValidationError("unitId and progress are required")

        document = await self.store.replace_chapters(
            student_id, unit_id, chapters, rollup=self.aggregator.apply
        )
        await self.aggregator.refresh_subject(student_id, unit_id)
        PROGRESS_WRITES.labels(operation="bulk").inc()
        logger.info(
            "Unit progress replaced chapters=%d unit=%d",
            len(chapters),
            document.unit_progress,
            extra={"student_id": student_id, "unit_id": unit_id},
        )
        return document.to_dict()

    async def record_visit(self, student_id: str, **visit) -> dict:
        return await self.tracker.record_visit(student_id, **visit)

    async def recalculate(self, student_id: str, unit_id: str | None, chapter_id: str | None) -> dict:
        return await self.calculator.recalculate(student_id, unit_id, chapter_id)

    async def mark_congratulations(self, student_id: str, kind: str | None, **ids) -> dict:
        return await self.store.mark_celebration_shown(kind, student_id, **ids)

    async def subject_progress(self, student_id: str, subject_id: str | None) -> dict:
        if not subject_id:
            raise ValidationError("subjectId is required")
        return (await self.store.get_subject(student_id, subject_id)).to_dict()
