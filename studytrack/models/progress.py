from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Literal

ItemType = Literal["chapter", "topic", "subtopic", "definition"]
ITEM_TYPES: tuple[str, ...] = ("chapter", "topic", "subtopic", "definition")

CelebrationKind = Literal["chapter", "unit", "subject"]
CELEBRATION_KINDS: tuple[str, ...] = ("chapter", "unit", "subject")

# item type -> VisitedItems field holding its ids
_VISIT_FIELDS = {"topic": "topics", "subtopic": "subtopics", "definition": "definitions"}


def clamp_percent(value: int | float) -> int:
    return int(min(100, max(0, value)))


def unique_ids(ids: Iterable[Any]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for item in ids:
        seen.setdefault(str(item), None)
    return tuple(seen)


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True, slots=True)
class VisitedItems:
    """Append-only record of what a learner opened inside one chapter.

    Ids are kept in first-visit order with no duplicates, so a tuple is
    used as an ordered set.
    """

    chapter: bool = False
    topics: tuple[str, ...] = ()
    subtopics: tuple[str, ...] = ()
    definitions: tuple[str, ...] = ()

    def with_visit(self, item_type: str, item_id: str) -> VisitedItems:
        """Return the record with the visit applied (self when already present)."""
        if item_type == "chapter":
            return self if self.chapter else replace(self, chapter=True)
        name = _VISIT_FIELDS[item_type]
        current: tuple[str, ...] = getattr(self, name)
        if item_id in current:
            return self
        return replace(self, **{name: (*current, item_id)})

    def count(self, *, include_chapter: bool) -> int:
        total = len(self.topics) + len(self.subtopics) + len(self.definitions)
        if include_chapter and self.chapter:
            total += 1
        return total

    def to_dict(self) -> dict[str, Any]:
        return {
            "chapter": self.chapter,
            "topics": list(self.topics),
            "subtopics": list(self.subtopics),
            "definitions": list(self.definitions),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> VisitedItems:
        if not data:
            return VisitedItems()
        return VisitedItems(
            chapter=bool(data.get("chapter", False)),
            topics=unique_ids(data.get("topics") or ()),
            subtopics=unique_ids(data.get("subtopics") or ()),
            definitions=unique_ids(data.get("definitions") or ()),
        )


@dataclass(frozen=True, slots=True)
class ChapterProgress:
    """Progress of one learner through one chapter.

    `progress` is the effective score: the manual value while an override
    is active, otherwise the auto-calculated one.
    """

    progress: int = 0
    is_completed: bool = False
    is_manual_override: bool = False
    manual_progress: int | None = None
    auto_calculated_progress: int = 0
    visited_items: VisitedItems = field(default_factory=VisitedItems)
    congratulations_shown: bool = False

    def normalized(self) -> ChapterProgress:
        """Re-derive `progress`/`is_completed` so the record is self-consistent."""
        auto = clamp_percent(self.auto_calculated_progress)
        if self.is_manual_override and self.manual_progress is not None:
            effective = clamp_percent(self.manual_progress)
            manual: int | None = effective
        else:
            effective = auto
            manual = None
        return replace(
            self,
            progress=effective,
            is_completed=effective == 100,
            is_manual_override=manual is not None,
            manual_progress=manual,
            auto_calculated_progress=auto,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "progress": self.progress,
            "isCompleted": self.is_completed,
            "isManualOverride": self.is_manual_override,
            "manualProgress": self.manual_progress,
            "autoCalculatedProgress": self.auto_calculated_progress,
            "visitedItems": self.visited_items.to_dict(),
            "congratulationsShown": self.congratulations_shown,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> ChapterProgress:
        """Lenient decode: absent or null fields take their defaults."""
        if not data:
            return ChapterProgress()
        manual = data.get("manualProgress")
        return ChapterProgress(
            progress=clamp_percent(data.get("progress") or 0),
            is_completed=bool(data.get("isCompleted", False)),
            is_manual_override=bool(data.get("isManualOverride", False)),
            manual_progress=None if manual is None else clamp_percent(manual),
            auto_calculated_progress=clamp_percent(
                data.get("autoCalculatedProgress") or 0
            ),
            visited_items=VisitedItems.from_dict(data.get("visitedItems")),
            congratulations_shown=bool(data.get("congratulationsShown", False)),
        )


@dataclass(frozen=True, slots=True)
class UnitProgressDocument:
    """Per-student-per-unit progress document, keyed by (student_id, unit_id)."""

    student_id: str
    unit_id: str
    chapters: dict[str, ChapterProgress] = field(default_factory=dict)
    unit_progress: int = 0
    unit_congratulations_shown: bool = False
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def new(*, student_id: str, unit_id: str) -> UnitProgressDocument:
        now = _now()
        return UnitProgressDocument(
            student_id=student_id, unit_id=unit_id, created_at=now, updated_at=now
        )

    def chapter(self, chapter_id: str) -> ChapterProgress | None:
        return self.chapters.get(chapter_id)

    def with_chapter(
        self, chapter_id: str, record: ChapterProgress
    ) -> UnitProgressDocument:
        return replace(self, chapters={**self.chapters, chapter_id: record})

    def touched(self) -> UnitProgressDocument:
        return replace(self, updated_at=_now())

    def to_dict(self) -> dict[str, Any]:
        return {
            "studentId": self.student_id,
            "unitId": self.unit_id,
            "progress": {cid: rec.to_dict() for cid, rec in self.chapters.items()},
            "unitProgress": self.unit_progress,
            "unitCongratulationsShown": self.unit_congratulations_shown,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> UnitProgressDocument:
        chapters = data.get("progress") or {}
        return UnitProgressDocument(
            student_id=str(data["studentId"]),
            unit_id=str(data["unitId"]),
            chapters={
                str(cid): ChapterProgress.from_dict(rec)
                for cid, rec in chapters.items()
                if not str(cid).startswith("_")
            },
            unit_progress=clamp_percent(data.get("unitProgress") or 0),
            unit_congratulations_shown=bool(data.get("unitCongratulationsShown", False)),
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
        )


@dataclass(frozen=True, slots=True)
class SubjectProgress:
    student_id: str
    subject_id: str
    subject_progress: int = 0
    subject_congratulations_shown: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "subjectId": self.subject_id,
            "subjectProgress": self.subject_progress,
            "subjectCongratulationsShown": self.subject_congratulations_shown,
        }


@dataclass(frozen=True, slots=True)
class ItemCounts:
    topics: int = 0
    subtopics: int = 0
    definitions: int = 0

    @property
    def total(self) -> int:
        return self.topics + self.subtopics + self.definitions

    def to_dict(self) -> dict[str, int]:
        return {
            "totalTopics": self.topics,
            "totalSubtopics": self.subtopics,
            "totalDefinitions": self.definitions,
            "totalItems": self.total,
        }
