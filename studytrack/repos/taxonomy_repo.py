from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from studytrack.models.taxonomy import STATUS_ACTIVE, TaxonomyNode


class TaxonomyRepo(Protocol):
    async def get(self, node_id: str) -> TaxonomyNode | None: ...
    async def children(
        self, parent_ids: Sequence[str], kind: str, status: str = STATUS_ACTIVE
    ) -> list[TaxonomyNode]: ...
    async def list_kind(
        self, kind: str, status: str, offset: int, limit: int
    ) -> list[TaxonomyNode]: ...
    async def count_kind(self, kind: str, status: str) -> int: ...


def _ordered(nodes: list[TaxonomyNode]) -> list[TaxonomyNode]:
    return sorted(nodes, key=lambda n: n.order_number)


class InMemoryTaxonomyRepo:
    """Read-only taxonomy held in a dict; `add` exists for seeding."""

    def __init__(self) -> None:
        self._nodes: dict[str, TaxonomyNode] = {}

    def add(self, node: TaxonomyNode) -> TaxonomyNode:
        self._nodes[node.id] = node
        return node

    def clear(self) -> None:
        self._nodes.clear()

    async def get(self, node_id: str) -> TaxonomyNode | None:
        return self._nodes.get(node_id)

    async def children(
        self, parent_ids: Sequence[str], kind: str, status: str = STATUS_ACTIVE
    ) -> list[TaxonomyNode]:
        wanted = set(parent_ids)
        if not wanted:
            return []
        return _ordered(
            [
                n
                for n in self._nodes.values()
                if n.kind == kind and n.parent_id in wanted and n.matches_status(status)
            ]
        )

    async def list_kind(
        self, kind: str, status: str, offset: int, limit: int
    ) -> list[TaxonomyNode]:
        nodes = _ordered(
            [n for n in self._nodes.values() if n.kind == kind and n.matches_status(status)]
        )
        return nodes[offset : offset + limit]

    async def count_kind(self, kind: str, status: str) -> int:
        return sum(
            1 for n in self._nodes.values() if n.kind == kind and n.matches_status(status)
        )
