"""Student progress endpoints.

Every route is scoped to the student in the bearer token; ids in the
body or query only select the unit/chapter/subject inside that scope.

Request model ids are optional; a missing one is a 400 `ValidationError`
raised by the service before any write.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from studytrack.api.dependencies import get_engine, require_student
from studytrack.api.envelope import ok
from studytrack.models.principal import Principal
from studytrack.models.progress import ChapterProgress, VisitedItems
from studytrack.services.engine import ProgressEngine

router = APIRouter(prefix="/progress", tags=["progress"])

Student = Annotated[Principal, Depends(require_student)]
Engine = Annotated[ProgressEngine, Depends(get_engine)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VisitedItemsIn(_CamelModel):
    chapter: bool = False
    topics: list[str] = Field(default_factory=list)
    subtopics: list[str] = Field(default_factory=list)
    definitions: list[str] = Field(default_factory=list)


class ChapterProgressIn(_CamelModel):
    progress: int = Field(0, ge=0, le=100)
    is_completed: bool = Field(False, alias="isCompleted")
    is_manual_override: bool = Field(False, alias="isManualOverride")
    manual_progress: int | None = Field(None, ge=0, le=100, alias="manualProgress")
    auto_calculated_progress: int = Field(0, ge=0, le=100, alias="autoCalculatedProgress")
    visited_items: VisitedItemsIn = Field(default_factory=VisitedItemsIn, alias="visitedItems")
    congratulations_shown: bool = Field(False, alias="congratulationsShown")

    def to_record(self) -> ChapterProgress:
        return ChapterProgress(
            progress=self.progress,
            is_completed=self.is_completed,
            is_manual_override=self.is_manual_override,
            manual_progress=self.manual_progress,
            auto_calculated_progress=self.auto_calculated_progress,
            visited_items=VisitedItems.from_dict(self.visited_items.model_dump()),
            congratulations_shown=self.congratulations_shown,
        )


class ChapterUpdateIn(_CamelModel):
    unit_id: str | None = Field(None, alias="unitId")
    chapter_id: str | None = Field(None, alias="chapterId")
    progress: ChapterProgressIn | None = None
    # accepted for compatibility; the server always recomputes it
    unit_progress: int | None = Field(None, alias="unitProgress")


class UnitReplaceIn(_CamelModel):
    unit_id: str | None = Field(None, alias="unitId")
    progress: dict[str, ChapterProgressIn] | None = None
    unit_progress: int | None = Field(None, alias="unitProgress")


class VisitIn(_CamelModel):
    unit_id: str | None = Field(None, alias="unitId")
    chapter_id: str | None = Field(None, alias="chapterId")
    item_type: str | None = Field(None, alias="itemType")
    item_id: str | None = Field(None, alias="itemId")


class CalculateIn(_CamelModel):
    unit_id: str | None = Field(None, alias="unitId")
    chapter_id: str | None = Field(None, alias="chapterId")


class CongratulationsIn(_CamelModel):
    type: str | None = None
    unit_id: str | None = Field(None, alias="unitId")
    chapter_id: str | None = Field(None, alias="chapterId")
    subject_id: str | None = Field(None, alias="subjectId")


@router.get("")
async def list_progress(
    principal: Student,
    engine: Engine,
    unit_id: Annotated[str | None, Query(alias="unitId")] = None,
) -> dict:
    documents = await engine.list_progress(principal.student_id, unit_id)
    return ok(documents, "Progress fetched successfully")


@router.post("")
async def update_chapter(body: ChapterUpdateIn, principal: Student, engine: Engine) -> dict:
    result = await engine.update_chapter(
        principal.student_id,
        body.unit_id,
        body.chapter_id,
        body.progress.to_record() if body.progress is not None else None,
    )
    return ok(result, "Progress saved successfully")


@router.put("")
async def replace_unit(body: UnitReplaceIn, principal: Student, engine: Engine) -> dict:
    chapters = None
    if body.progress is not None:
        chapters = {cid: rec.to_record() for cid, rec in body.progress.items()}
    result = await engine.replace_chapters(principal.student_id, body.unit_id, chapters)
    return ok(result, "Progress updated successfully")


@router.post("/track-visit")
async def track_visit(body: VisitIn, principal: Student, engine: Engine) -> dict:
    result = await engine.record_visit(
        principal.student_id,
        unit_id=body.unit_id,
        chapter_id=body.chapter_id,
        item_type=body.item_type,
        item_id=body.item_id,
    )
    return ok(result, "Visit tracked successfully")


@router.post("/calculate")
async def calculate(body: CalculateIn, principal: Student, engine: Engine) -> dict:
    result = await engine.recalculate(principal.student_id, body.unit_id, body.chapter_id)
    return ok(result, "Progress calculated successfully")


@router.post("/mark-congratulations")
async def mark_congratulations(body: CongratulationsIn, principal: Student, engine: Engine) -> dict:
    result = await engine.mark_congratulations(
        principal.student_id,
        body.type,
        unit_id=body.unit_id,
        chapter_id=body.chapter_id,
        subject_id=body.subject_id,
    )
    return ok(result, "Congratulations marked as shown")


@router.get("/subject")
async def subject_progress(
    principal: Student,
    engine: Engine,
    subject_id: Annotated[str | None, Query(alias="subjectId")] = None,
) -> dict:
    result = await engine.subject_progress(principal.student_id, subject_id)
    return ok(result, "Subject progress fetched successfully")
