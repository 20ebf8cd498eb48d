"""Local copy of each unit's progress document.

Written synchronously before every durable write so the UI has the new
value immediately, and read back when the learner is offline or signed
out.  Entries are JSON strings stored under `unit-progress-{unitId}` in
a pluggable LocalPersistence:

  InMemoryPersistence   tests, short-lived sessions
  FilePersistence       one <key>.json file per unit in a directory
  RedisPersistence      a (sync) redis-py client shared by local tools

Older entries are a flat chapter map with aggregate fields mixed in
under underscore keys (`_unitProgress`).  Those keys are dropped on
read; the unit value is always recomputed from the chapters.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import redis

from studytrack.models.progress import ChapterProgress, clamp_percent

logger = logging.getLogger(__name__)

KEY_PREFIX = "unit-progress-"


def mirror_key(unit_id: str) -> str:
    return f"{KEY_PREFIX}{unit_id}"


class LocalPersistence(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class InMemoryPersistence:
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()


class FilePersistence:
    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        # readers never see a half-written file
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class RedisPersistence:
    def __init__(self, client: redis.Redis, *, prefix: str = "studytrack:mirror:") -> None:
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisPersistence:
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    def get(self, key: str) -> str | None:
        value = self._redis.get(f"{self._prefix}{key}")
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._redis.set(f"{self._prefix}{key}", value)

    def remove(self, key: str) -> None:
        self._redis.delete(f"{self._prefix}{key}")


@dataclass(frozen=True, slots=True)
class MirrorSnapshot:
    unit_id: str
    chapters: dict[str, ChapterProgress] = field(default_factory=dict)
    unit_progress: int = 0
    unit_congratulations_shown: bool = False


def _chapters_from(raw: Mapping[str, Any]) -> dict[str, ChapterProgress]:
    return {
        str(cid): ChapterProgress.from_dict(rec)
        for cid, rec in raw.items()
        if not str(cid).startswith("_") and isinstance(rec, Mapping)
    }


class DeviceMirror:
    def __init__(self, persistence: LocalPersistence | None = None) -> None:
        self._persistence = persistence if persistence is not None else InMemoryPersistence()

    def read(self, unit_id: str) -> MirrorSnapshot | None:
        raw = self._persistence.get(mirror_key(unit_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable mirror entry", extra={"unit_id": unit_id})
            return None
        if not isinstance(data, dict):
            return None

        if isinstance(data.get("progress"), Mapping):
            return MirrorSnapshot(
                unit_id=unit_id,
                chapters=_chapters_from(data["progress"]),
                unit_progress=clamp_percent(data.get("unitProgress") or 0),
                unit_congratulations_shown=bool(data.get("unitCongratulationsShown", False)),
            )
        # legacy flat layout
        return MirrorSnapshot(unit_id=unit_id, chapters=_chapters_from(data))

    def write(
        self,
        unit_id: str,
        chapters: Mapping[str, ChapterProgress],
        unit_progress: int,
        *,
        unit_congratulations_shown: bool = False,
    ) -> None:
        payload = {
            "unitId": unit_id,
            "progress": {cid: rec.to_dict() for cid, rec in chapters.items()},
            "unitProgress": clamp_percent(unit_progress),
            "unitCongratulationsShown": unit_congratulations_shown,
        }
        self._persistence.set(mirror_key(unit_id), json.dumps(payload))

    def remove(self, unit_id: str) -> None:
        self._persistence.remove(mirror_key(unit_id))
