"""SQLAlchemy table definitions.

The frozen dataclasses in studytrack/models/ are the domain model; these
rows are only the persistence shape.  Repos convert between the two.

A unit progress document is stored whole: the chapter map, keyed by
dynamic chapter ids, lives in one JSONB column and is always read and
written as a unit (read, mutate in memory, save).
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from studytrack.db.engine import Base

# --- Progress (owned by ProgressStore) ---


class StudentProgressRow(Base):
    __tablename__ = "student_progress"
    __table_args__ = (
        UniqueConstraint("student_id", "unit_id", name="uq_student_progress_unit"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # chapter_id -> ChapterProgress.to_dict()
    chapters: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    unit_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_congratulations_shown: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SubjectProgressRow(Base):
    __tablename__ = "subject_progress"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", name="uq_subject_progress_subject"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    subject_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subject_congratulations_shown: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )


# --- Taxonomy (read-only for this service) ---


class TaxonomyNodeRow(Base):
    __tablename__ = "taxonomy_nodes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    parent_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    order_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
