"""PostgreSQL implementation of TaxonomyRepo (reads only)."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studytrack.db.tables import TaxonomyNodeRow
from studytrack.models.taxonomy import STATUS_ACTIVE, STATUS_ALL, TaxonomyNode


class PgTaxonomyRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, node_id: str) -> TaxonomyNode | None:
        row = await self._session.get(TaxonomyNodeRow, node_id)
        return None if row is None else _row_to_node(row)

    async def children(
        self, parent_ids: Sequence[str], kind: str, status: str = STATUS_ACTIVE
    ) -> list[TaxonomyNode]:
        if not parent_ids:
            return []
        stmt = _filtered(
            select(TaxonomyNodeRow).where(
                TaxonomyNodeRow.kind == kind,
                TaxonomyNodeRow.parent_id.in_(list(parent_ids)),
            ),
            status,
        ).order_by(TaxonomyNodeRow.order_number)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_node(r) for r in rows]

    async def list_kind(
        self, kind: str, status: str, offset: int, limit: int
    ) -> list[TaxonomyNode]:
        stmt = (
            _filtered(select(TaxonomyNodeRow).where(TaxonomyNodeRow.kind == kind), status)
            .order_by(TaxonomyNodeRow.order_number)
            .offset(offset)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_node(r) for r in rows]

    async def count_kind(self, kind: str, status: str) -> int:
        stmt = _filtered(
            select(func.count()).select_from(TaxonomyNodeRow).where(TaxonomyNodeRow.kind == kind),
            status,
        )
        return int((await self._session.execute(stmt)).scalar_one())


def _filtered(stmt, status: str):
    if status.lower() == STATUS_ALL:
        return stmt
    return stmt.where(func.lower(TaxonomyNodeRow.status) == status.lower())


def _row_to_node(row: TaxonomyNodeRow) -> TaxonomyNode:
    return TaxonomyNode(
        id=row.id,
        kind=row.kind,
        name=row.name,
        parent_id=row.parent_id,
        slug=row.slug,
        status=row.status,
        order_number=row.order_number,
    )
