"""Nested exam → subject → unit → chapter → topic → subtopic tree.

Built breadth-first, one `children` query per level, then stitched
together by parent id.  Definitions are not part of the tree.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from studytrack.models.taxonomy import TaxonomyNode
from studytrack.repos.taxonomy_repo import TaxonomyRepo

# (kind, key its children are listed under)
_LEVELS: tuple[tuple[str, str], ...] = (
    ("subject", "subjects"),
    ("unit", "units"),
    ("chapter", "chapters"),
    ("topic", "topics"),
    ("subtopic", "subTopics"),
)


async def build_tree(
    taxonomy: TaxonomyRepo, status: str, exam_id: str | None = None
) -> list[dict[str, Any]]:
    if exam_id:
        exam = await taxonomy.get(exam_id)
        exams = [exam] if exam is not None and exam.kind == "exam" and exam.matches_status(status) else []
    else:
        exams = await taxonomy.list_kind("exam", status, 0, 10_000)
    if not exams:
        return []

    levels: list[list[TaxonomyNode]] = []
    parents = [e.id for e in exams]
    for kind, _ in _LEVELS:
        nodes = await taxonomy.children(parents, kind, status)
        levels.append(nodes)
        parents = [n.id for n in nodes]

    by_parent: list[dict[str, list[TaxonomyNode]]] = []
    for nodes in levels:
        grouped: dict[str, list[TaxonomyNode]] = defaultdict(list)
        for node in nodes:
            grouped[node.parent_id or ""].append(node)
        by_parent.append(grouped)

    def _expand(node: TaxonomyNode, depth: int) -> dict[str, Any]:
        out = node.to_dict()
        if depth < len(_LEVELS):
            key = _LEVELS[depth][1]
            out[key] = [_expand(c, depth + 1) for c in by_parent[depth].get(node.id, ())]
        return out

    return [_expand(e, 0) for e in exams]
