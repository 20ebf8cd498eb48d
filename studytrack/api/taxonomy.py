"""Read-only taxonomy endpoints served through the query cache.

Only `status=active` reads are cached, and a request carrying
`Cache-Control: no-cache` always goes to the store (it still refreshes
the cached entry).
"""

from __future__ import annotations

import logging
import math
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query

from studytrack.api.dependencies import get_taxonomy
from studytrack.api.envelope import ok
from studytrack.models.taxonomy import STATUS_ACTIVE
from studytrack.repos.taxonomy_repo import TaxonomyRepo
from studytrack.services.query_cache import cache_key, query_cache
from studytrack.services.taxonomy_tree import build_tree

logger = logging.getLogger(__name__)

router = APIRouter(tags=["taxonomy"])

Taxonomy = Annotated[TaxonomyRepo, Depends(get_taxonomy)]

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MIN_LIMIT = 5
MAX_LIMIT = 10_000


def _use_cache(status: str, cache_control: str | None) -> bool:
    return status == STATUS_ACTIVE and (cache_control or "").lower() != "no-cache"


def pagination(data: list, total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "success": True,
        "message": "OK",
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
            "nextPage": page + 1 if page < total_pages else None,
            "prevPage": page - 1 if page > 1 else None,
        },
    }


@router.get("/exams")
async def list_exams(
    taxonomy: Taxonomy,
    status: str = STATUS_ACTIVE,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    cache_control: Annotated[str | None, Header()] = None,
) -> dict:
    status = status.lower()
    page = max(DEFAULT_PAGE, page)
    limit = min(MAX_LIMIT, max(MIN_LIMIT, limit))

    cache = query_cache("exams")
    key = cache_key("exams", status, page, limit)
    if _use_cache(status, cache_control):
        cached = cache.get(key)
        if cached is not None:
            return cached

    total = await taxonomy.count_kind("exam", status)
    exams = await taxonomy.list_kind("exam", status, (page - 1) * limit, limit)
    response = pagination([e.to_dict() for e in exams], total, page, limit)

    if status == STATUS_ACTIVE:
        cache.set(key, response)
    return response


@router.get("/tree")
async def get_tree(
    taxonomy: Taxonomy,
    status: str = STATUS_ACTIVE,
    exam_id: Annotated[str | None, Query(alias="examId")] = None,
    cache_control: Annotated[str | None, Header()] = None,
) -> dict:
    status = status.lower()
    cache = query_cache("tree")
    key = cache_key("tree", status, exam_id=exam_id)
    if _use_cache(status, cache_control):
        cached = cache.get(key)
        if cached is not None:
            return cached

    response = ok(await build_tree(taxonomy, status, exam_id))
    if status == STATUS_ACTIVE:
        cache.set(key, response)
    logger.debug("Tree built", extra={"exam_id": exam_id, "cache": "tree"})
    return response
