from __future__ import annotations

from typing import Protocol

from studytrack.models.progress import SubjectProgress, UnitProgressDocument


class ProgressRepo(Protocol):
    async def get(self, student_id: str, unit_id: str) -> UnitProgressDocument | None: ...
    async def list_for_student(
        self, student_id: str, unit_id: str | None = None
    ) -> list[UnitProgressDocument]: ...
    async def save(self, document: UnitProgressDocument) -> None: ...
    async def get_subject(
        self, student_id: str, subject_id: str
    ) -> SubjectProgress | None: ...
    async def save_subject(self, record: SubjectProgress) -> None: ...


class InMemoryProgressRepo:
    """Dict-backed store keyed by (student_id, unit_id); save is an upsert."""

    def __init__(self) -> None:
        self._docs: dict[tuple[str, str], UnitProgressDocument] = {}
        self._subjects: dict[tuple[str, str], SubjectProgress] = {}

    async def get(self, student_id: str, unit_id: str) -> UnitProgressDocument | None:
        return self._docs.get((student_id, unit_id))

    async def list_for_student(
        self, student_id: str, unit_id: str | None = None
    ) -> list[UnitProgressDocument]:
        return [
            doc
            for (sid, uid), doc in self._docs.items()
            if sid == student_id and (unit_id is None or uid == unit_id)
        ]

    async def save(self, document: UnitProgressDocument) -> None:
        self._docs[(document.student_id, document.unit_id)] = document

    async def get_subject(
        self, student_id: str, subject_id: str
    ) -> SubjectProgress | None:
        return self._subjects.get((student_id, subject_id))

    async def save_subject(self, record: SubjectProgress) -> None:
        self._subjects[(record.student_id, record.subject_id)] = record

    def clear(self) -> None:
        self._docs.clear()
        self._subjects.clear()
