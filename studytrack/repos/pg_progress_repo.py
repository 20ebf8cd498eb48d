"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from studytrack.db.tables import StudentProgressRow, SubjectProgressRow
from studytrack.models.progress import (
    ChapterProgress,
    SubjectProgress,
    UnitProgressDocument,
)


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy.

    `save` is INSERT ... ON CONFLICT (student_id, unit_id) DO UPDATE, so
    the first write creates the document.  There is no version column:
    two concurrent saves of the same document are last-write-wins.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: str, unit_id: str) -> UnitProgressDocument | None:
        stmt = select(StudentProgressRow).where(
            StudentProgressRow.student_id == student_id,
            StudentProgressRow.unit_id == unit_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_document(row)

    async def list_for_student(
        self, student_id: str, unit_id: str | None = None
    ) -> list[UnitProgressDocument]:
        stmt = select(StudentProgressRow).where(
            StudentProgressRow.student_id == student_id
        )
        if unit_id is not None:
            stmt = stmt.where(StudentProgressRow.unit_id == unit_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_document(row) for row in rows]

    async def save(self, document: UnitProgressDocument) -> None:
        values = {
            "student_id": document.student_id,
            "unit_id": document.unit_id,
            "chapters": {cid: rec.to_dict() for cid, rec in document.chapters.items()},
            "unit_progress": document.unit_progress,
            "unit_congratulations_shown": document.unit_congratulations_shown,
            "created_at": document.created_at,
            "updated_at": document.updated_at,
        }
        stmt = insert(StudentProgressRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_student_progress_unit",
            set_={k: v for k, v in values.items() if k not in ("student_id", "unit_id", "created_at")},
        )
        await self._session.execute(stmt)
        await self._session.flush()

    async def get_subject(
        self, student_id: str, subject_id: str
    ) -> SubjectProgress | None:
        stmt = select(SubjectProgressRow).where(
            SubjectProgressRow.student_id == student_id,
            SubjectProgressRow.subject_id == subject_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return SubjectProgress(
            student_id=row.student_id,
            subject_id=row.subject_id,
            subject_progress=row.subject_progress,
            subject_congratulations_shown=row.subject_congratulations_shown,
        )

    async def save_subject(self, record: SubjectProgress) -> None:
        values = {
            "student_id": record.student_id,
            "subject_id": record.subject_id,
            "subject_progress": record.subject_progress,
            "subject_congratulations_shown": record.subject_congratulations_shown,
        }
        stmt = insert(SubjectProgressRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_subject_progress_subject",
            set_={
                "subject_progress": record.subject_progress,
                "subject_congratulations_shown": record.subject_congratulations_shown,
            },
        )
        await self._session.execute(stmt)
        await self._session.flush()


def _row_to_document(row: StudentProgressRow) -> UnitProgressDocument:
    return UnitProgressDocument(
        student_id=row.student_id,
        unit_id=row.unit_id,
        chapters={
            cid: ChapterProgress.from_dict(rec) for cid, rec in (row.chapters or {}).items()
        },
        unit_progress=row.unit_progress,
        unit_congratulations_shown=row.unit_congratulations_shown,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
