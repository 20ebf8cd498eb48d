from __future__ import annotations

import asyncio
import json

import httpx
from prometheus_client import REGISTRY

from studytrack.client.api_client import ProgressApiClient
from studytrack.client.tree_cache import TreeCache, transform


def _exam(exam_id: str) -> dict:
    return {
        "_id": exam_id,
        "name": exam_id,
        "subjects": [
            {
                "_id": f"{exam_id}-s2",
                "name": "Second",
                "orderNumber": 2,
                "units": [],
            },
            {
                "_id": f"{exam_id}-s1",
                "name": "First",
                "orderNumber": 1,
                "units": [
                    {
                        "_id": "u1",
                        "name": "Unit",
                        "chapters": [
                            {"_id": "c1", "name": "Chapter", "topics": [{"_id": "t1", "name": "Topic"}]}
                        ],
                    }
                ],
            },
        ],
    }


class TreeServer:
    """Serves /tree and /exams; `gate` holds /tree responses until set."""

    def __init__(self) -> None:
        self.tree_requests: list[str] = []
        self.exam_requests: list[httpx.Request] = []
        self.gate: asyncio.Event | None = None
        self.empty: set[str] = set()

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/exams":
            self.exam_requests.append(request)
            return httpx.Response(200, json={"success": True, "data": [{"_id": "e1"}]})
        exam_id = request.url.params["examId"]
        self.tree_requests.append(exam_id)
        if self.gate is not None:
            await self.gate.wait()
        data = [] if exam_id in self.empty else [_exam(exam_id)]
        return httpx.Response(200, content=json.dumps({"success": True, "data": data}))

    def cache(self, **kwargs) -> TreeCache:
        api = ProgressApiClient("http://test", "tok", transport=httpx.MockTransport(self.handle))
        return TreeCache(api, **kwargs)


def _ops(operation: str) -> float:
    return (
        REGISTRY.get_sample_value(
            "cache_operations_total", {"cache": "tree_client", "operation": operation}
        )
        or 0.0
    )


def test_transform_orders_and_flattens() -> None:
    tree = transform([_exam("e1")], "e1")

    assert [s["id"] for s in tree] == ["e1-s1", "e1-s2"]
    chapter = tree[0]["units"][0]["chapters"][0]
    assert chapter["id"] == "c1"
    assert chapter["topics"] == [{"id": "t1", "name": "Topic", "slug": "", "orderNumber": 0}]


def test_transform_unknown_exam_is_empty() -> None:
    assert transform([_exam("e1")], "e2") == []
    assert transform([], None) == []


def test_second_load_is_a_hit() -> None:
    server = TreeServer()
    before = _ops("hit")

    async def scenario() -> None:
        cache = server.cache()
        first = await cache.load("e1")
        second = await cache.load("e1")
        assert first is second

    asyncio.run(scenario())
    assert server.tree_requests == ["e1"]
    assert _ops("hit") - before == 1


def test_concurrent_loads_share_one_request() -> None:
    server = TreeServer()

    async def scenario() -> None:
        server.gate = asyncio.Event()
        cache = server.cache()
        waiters = [asyncio.create_task(cache.load("e1")) for _ in range(3)]
        await asyncio.sleep(0.01)
        assert cache.in_flight("e1")
        server.gate.set()
        results = await asyncio.gather(*waiters)
        assert all(r == results[0] for r in results)
        assert not cache.in_flight("e1")

    asyncio.run(scenario())
    assert server.tree_requests == ["e1"]


def test_new_exam_supersedes_pending_fetch() -> None:
    server = TreeServer()

    async def scenario() -> None:
        server.gate = asyncio.Event()
        cache = server.cache()
        stale = asyncio.create_task(cache.load("e1"))
        await asyncio.sleep(0.01)
        fresh = asyncio.create_task(cache.load("e2"))
        await asyncio.sleep(0.01)
        server.gate.set()

        assert await stale is None
        assert (await fresh)[0]["id"] == "e2-s1"
        assert "e1" not in cache
        assert "e2" in cache

    asyncio.run(scenario())


def test_empty_trees_are_not_cached() -> None:
    server = TreeServer()
    server.empty.add("e1")

    async def scenario() -> None:
        cache = server.cache()
        assert await cache.load("e1") == []
        assert await cache.load("e1") == []
        assert len(cache) == 0

    asyncio.run(scenario())
    assert server.tree_requests == ["e1", "e1"]


def test_oldest_tree_is_evicted() -> None:
    server = TreeServer()

    async def scenario() -> None:
        cache = server.cache(max_entries=12)
        for i in range(13):
            await cache.load(f"e{i}")
        assert len(cache) == 12
        assert "e0" not in cache
        assert "e12" in cache

    asyncio.run(scenario())


def test_invalidate_forces_refetch() -> None:
    server = TreeServer()

    async def scenario() -> None:
        cache = server.cache()
        await cache.load("e1")
        cache.invalidate("e1")
        await cache.load("e1")

    asyncio.run(scenario())
    assert server.tree_requests == ["e1", "e1"]


def test_focus_refreshes_exam_list_bypassing_server_cache() -> None:
    server = TreeServer()

    async def scenario() -> TreeCache:
        cache = server.cache()
        first = cache.on_focus()
        assert cache.on_focus() is first
        await first
        return cache

    cache = asyncio.run(scenario())

    assert cache.exams == [{"_id": "e1"}]
    assert len(server.exam_requests) == 1
    assert server.exam_requests[0].headers["cache-control"] == "no-cache"


def test_timer_refreshes_exam_list() -> None:
    server = TreeServer()

    async def scenario() -> None:
        cache = server.cache(refresh_interval=0.01)
        cache.start()
        await asyncio.sleep(0.05)
        cache.stop()

    asyncio.run(scenario())
    assert len(server.exam_requests) >= 2
