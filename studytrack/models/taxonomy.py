from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

NodeKind = Literal["exam", "subject", "unit", "chapter", "topic", "subtopic", "definition"]

# child kind for each parent kind, top-down
CHILD_KIND: dict[str, str] = {
    "exam": "subject",
    "subject": "unit",
    "unit": "chapter",
    "chapter": "topic",
    "topic": "subtopic",
    "subtopic": "definition",
}

STATUS_ACTIVE = "active"
STATUS_ALL = "all"


@dataclass(frozen=True, slots=True)
class TaxonomyNode:
    """One node of the exam → ... → definition hierarchy (read-only here)."""

    id: str
    kind: str
    name: str
    parent_id: str | None = None
    slug: str = ""
    status: str = STATUS_ACTIVE
    order_number: int = 0

    @property
    def is_active(self) -> bool:
        return self.status.lower() == STATUS_ACTIVE

    def matches_status(self, status: str) -> bool:
        status = status.lower()
        return status == STATUS_ALL or self.status.lower() == status

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "slug": self.slug,
            "status": self.status,
            "orderNumber": self.order_number,
        }
