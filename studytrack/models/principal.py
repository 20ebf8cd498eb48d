from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated student extracted from a validated bearer token.

    Carried through the request via FastAPI's dependency system; every
    progress read and write is scoped to `student_id`.
    """

    student_id: str
    token_type: str = "student"
