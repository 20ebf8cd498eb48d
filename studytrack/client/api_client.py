"""Async HTTP client for the progress API.

Failures come back as the same error classes the server raises:

  httpx.TimeoutException      → RequestTimeoutError
  other httpx.TransportError  → NetworkError
  HTTP 4xx/5xx                → error_for_status(status, envelope message)

Cancellation (asyncio.CancelledError) is never translated; a superseded
request just stops.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from studytrack.core.errors import NetworkError, RequestTimeoutError, error_for_status
from studytrack.models.progress import ChapterProgress, UnitProgressDocument

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class ProgressApiClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def set_token(self, token: str | None) -> None:
        self._token = token

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ProgressApiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        request_headers = dict(headers or {})
        if self._token:
            request_headers["Authorization"] = f"Bearer {self._token}"
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self._http.request(
                method, path, json=json, params=params, headers=request_headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("Request timed out %s %s", method, path)
            raise RequestTimeoutError() from exc
        except httpx.TransportError as exc:
            logger.warning("Request failed %s %s: %s", method, path, exc)
            raise NetworkError() from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise error_for_status(response.status_code, message)
        return body

    # --- progress ---

    async def get_progress(self, unit_id: str) -> UnitProgressDocument | None:
        body = await self._request("GET", "/progress", params={"unitId": unit_id})
        documents = body.get("data") or []
        return UnitProgressDocument.from_dict(documents[0]) if documents else None

    async def save_chapter(
        self, unit_id: str, chapter_id: str, record: ChapterProgress
    ) -> dict[str, Any]:
        body = await self._request(
            "POST",
            "/progress",
            json={"unitId": unit_id, "chapterId": chapter_id, "progress": record.to_dict()},
        )
        return body["data"]

    async def replace_unit(
        self, unit_id: str, chapters: Mapping[str, ChapterProgress]
    ) -> UnitProgressDocument:
        body = await self._request(
            "PUT",
            "/progress",
            json={"unitId": unit_id, "progress": {c: r.to_dict() for c, r in chapters.items()}},
        )
        return UnitProgressDocument.from_dict(body["data"])

    async def track_visit(
        self, unit_id: str, chapter_id: str, item_type: str, item_id: str | None = None
    ) -> dict[str, Any]:
        body = await self._request(
            "POST",
            "/progress/track-visit",
            json={"unitId": unit_id, "chapterId": chapter_id, "itemType": item_type, "itemId": item_id},
        )
        return body["data"]

    async def calculate(self, unit_id: str, chapter_id: str) -> dict[str, Any]:
        body = await self._request(
            "POST", "/progress/calculate", json={"unitId": unit_id, "chapterId": chapter_id}
        )
        return body["data"]

    async def mark_congratulations(
        self,
        kind: str,
        *,
        unit_id: str | None = None,
        chapter_id: str | None = None,
        subject_id: str | None = None,
    ) -> dict[str, Any]:
        payload = {"type": kind, "unitId": unit_id, "chapterId": chapter_id, "subjectId": subject_id}
        body = await self._request(
            "POST",
            "/progress/mark-congratulations",
            json={k: v for k, v in payload.items() if v is not None},
        )
        return body["data"]

    async def get_subject(self, subject_id: str) -> dict[str, Any]:
        body = await self._request("GET", "/progress/subject", params={"subjectId": subject_id})
        return body["data"]

    # --- taxonomy ---

    async def get_tree(self, exam_id: str | None = None, status: str = "active") -> list[dict]:
        body = await self._request("GET", "/tree", params={"examId": exam_id, "status": status})
        return body.get("data") or []

    async def list_exams(
        self, status: str = "active", page: int = 1, limit: int = 100, *, no_cache: bool = False
    ) -> list[dict]:
        body = await self._request(
            "GET",
            "/exams",
            params={"status": status, "page": page, "limit": limit},
            headers={"Cache-Control": "no-cache"} if no_cache else None,
        )
        return body.get("data") or []
