"""Client-side cache of per-exam hierarchy trees.

  load(exam_id)
      hit        → cached tree, no request
      in flight  → await the request already running for that exam
      otherwise  → start a fetch; fetches for any other exam are cancelled

A cancelled (superseded) fetch never writes the cache and its waiters
get None.  Trees are evicted oldest-inserted first past `max_entries`.

The exam list is refreshed separately: `start()` runs a timer that
re-fetches it every `refresh_interval` seconds and `on_focus()` forces a
re-fetch immediately.  Neither touches the cached trees.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Iterable, Mapping
from typing import Any

from studytrack.client.api_client import ProgressApiClient
from studytrack.core.errors import ProgressError
from studytrack.core.metrics import CACHE_ENTRIES, CACHE_OPERATIONS

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 12
DEFAULT_REFRESH_INTERVAL_SECONDS = 120.0

_CACHE_NAME = "tree_client"


def _node(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": str(raw.get("_id") or raw.get("id") or ""),
        "name": raw.get("name", ""),
        "slug": raw.get("slug", ""),
        "orderNumber": raw.get("orderNumber", 0),
    }


def _children(raw: Mapping[str, Any], key: str) -> Iterable[Mapping[str, Any]]:
    return sorted(raw.get(key) or (), key=lambda n: n.get("orderNumber") or 0)


def transform(raw_exams: list[Mapping[str, Any]], exam_id: str | None = None) -> list[dict[str, Any]]:
    """Exam payload → [subject{units[chapters[topics]]}] for one exam."""
    exam = None
    for candidate in raw_exams or ():
        if exam_id is None or str(candidate.get("_id") or candidate.get("id")) == exam_id:
            exam = candidate
            break
    if exam is None:
        return []

    tree = []
    for subject in _children(exam, "subjects"):
        units = []
        for unit in _children(subject, "units"):
            chapters = []
            for chapter in _children(unit, "chapters"):
                topics = [_node(t) for t in _children(chapter, "topics")]
                chapters.append({**_node(chapter), "topics": topics})
            units.append({**_node(unit), "chapters": chapters})
        tree.append({**_node(subject), "units": units})
    return tree


class TreeCache:
    def __init__(
        self,
        api: ProgressApiClient,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self._api = api
        self.max_entries = max_entries
        self.refresh_interval = refresh_interval
        self._trees: OrderedDict[str, list[dict[str, Any]]] = OrderedDict()
        self._inflight: dict[str, asyncio.Task] = {}
        self._exams: list[dict[str, Any]] = []
        self._exam_refresh: asyncio.Task | None = None
        self._timer: asyncio.Task | None = None

    # --- trees ---

    async def load(self, exam_id: str) -> list[dict[str, Any]] | None:
        cached = self._trees.get(exam_id)
        if cached is not None:
            CACHE_OPERATIONS.labels(cache=_CACHE_NAME, operation="hit").inc()
            return cached
        CACHE_OPERATIONS.labels(cache=_CACHE_NAME, operation="miss").inc()

        task = self._inflight.get(exam_id)
        if task is None:
            for other_id, other in list(self._inflight.items()):
                if other_id != exam_id:
                    logger.debug("Superseding tree fetch", extra={"exam_id": other_id})
                    del self._inflight[other_id]
                    other.cancel()
            task = asyncio.get_running_loop().create_task(self._fetch(exam_id))
            self._inflight[exam_id] = task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            raise

    async def _fetch(self, exam_id: str) -> list[dict[str, Any]]:
        try:
            raw = await self._api.get_tree(exam_id)
            tree = transform(raw, exam_id)
            if tree:
                self._store(exam_id, tree)
            return tree
        finally:
            if self._inflight.get(exam_id) is asyncio.current_task():
                del self._inflight[exam_id]

    def _store(self, exam_id: str, tree: list[dict[str, Any]]) -> None:
        self._trees.pop(exam_id, None)
        self._trees[exam_id] = tree
        while len(self._trees) > self.max_entries:
            evicted, _ = self._trees.popitem(last=False)
            CACHE_OPERATIONS.labels(cache=_CACHE_NAME, operation="evict").inc()
            logger.debug("Tree evicted", extra={"exam_id": evicted})
        CACHE_ENTRIES.labels(cache=_CACHE_NAME).set(len(self._trees))

    def invalidate(self, exam_id: str | None = None) -> None:
        if exam_id is None:
            self._trees.clear()
        else:
            self._trees.pop(exam_id, None)
        CACHE_ENTRIES.labels(cache=_CACHE_NAME).set(len(self._trees))

    def in_flight(self, exam_id: str) -> bool:
        return exam_id in self._inflight

    def __len__(self) -> int:
        return len(self._trees)

    def __contains__(self, exam_id: object) -> bool:
        return exam_id in self._trees

    # --- exam list ---

    @property
    def exams(self) -> list[dict[str, Any]]:
        return self._exams

    def refresh_exams(self) -> asyncio.Task:
        """Start an exam-list re-fetch unless one is already running."""
        if self._exam_refresh is None or self._exam_refresh.done():
            self._exam_refresh = asyncio.get_running_loop().create_task(self._refresh_exams())
        return self._exam_refresh

    async def _refresh_exams(self) -> None:
        try:
            self._exams = await self._api.list_exams(no_cache=True)
        except ProgressError as exc:
            logger.warning("Exam list refresh failed: %s", exc.message)

    def on_focus(self) -> asyncio.Task:
        return self.refresh_exams()

    def start(self) -> None:
        if self._timer is None or self._timer.done():
            self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh_exams()

    def stop(self) -> None:
        for task in (self._timer, self._exam_refresh, *self._inflight.values()):
            if task is not None and not task.done():
                task.cancel()
        self._timer = None
        self._inflight.clear()
