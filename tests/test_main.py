from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from studytrack.api.dependencies import progress_repo
from tests.conftest import auth


def test_store_failure_is_enveloped_500(
    client: TestClient, token: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken(*_args, **_kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(progress_repo, "list_for_student", broken)

    resp = client.get("/progress", headers=auth(token))

    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "message": "Progress store unavailable",
        "data": None,
    }


def test_malformed_body_is_400_not_422(client: TestClient, token: str) -> None:
    resp = client.post(
        "/progress/track-visit",
        content=b"{not json",
        headers={**auth(token), "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_unknown_route_is_404(client: TestClient) -> None:
    assert client.get("/nope").status_code == 404
