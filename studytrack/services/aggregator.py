"""Unit and subject roll-ups.

UNIT
------
    unitProgress = round_half_up(sum(progress of active chapters) / |active chapters|)

Chapters with no record count as 0.  Records for chapters that are no
longer active (archived, moved) are kept but ignored, so reactivating a
chapter restores its score.  No active chapters → 0.

SUBJECT
---------
Same rule one level up: the mean of the stored unitProgress of every
active unit under the subject, 0 for units the learner never opened.
The subject value is always recomputed here, never taken from a client.

CHANNEL
---------
ProgressChannel is the in-process replacement for a global "progress
updated" broadcast: subscribers register per unit and are told the new
unit value after every successful save for that unit only.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace

from studytrack.core.errors import StoreError
from studytrack.models.progress import ChapterProgress, UnitProgressDocument, clamp_percent
from studytrack.models.taxonomy import NodeKind
from studytrack.repos.taxonomy_repo import TaxonomyRepo
from studytrack.services.progress_calculator import round_half_up

logger = logging.getLogger(__name__)


def unit_progress_for(
    chapters: Mapping[str, ChapterProgress], active_ids: Iterable[str]
) -> int:
    ids = list(dict.fromkeys(active_ids))
    if not ids:
        return 0
    total = sum(chapters[cid].progress if cid in chapters else 0 for cid in ids)
    return clamp_percent(round_half_up(total / len(ids)))


def subject_progress_for(
    unit_values: Mapping[str, int], active_unit_ids: Iterable[str]
) -> int:
    ids = list(dict.fromkeys(active_unit_ids))
    if not ids:
        return 0
    total = sum(unit_values.get(uid, 0) for uid in ids)
    return clamp_percent(round_half_up(total / len(ids)))


class Aggregator:
    def __init__(self, taxonomy: TaxonomyRepo, store) -> None:
        self._taxonomy = taxonomy
        self._store = store

    async def active_ids(self, parent_id: str, kind: NodeKind) -> list[str]:
        try:
            nodes = await self._taxonomy.children([parent_id], kind)
        except Exception as exc:
            raise StoreError(f"Could not list active {kind}s") from exc
        return [n.id for n in nodes]

    async def apply(self, document: UnitProgressDocument) -> UnitProgressDocument:
        """Return the document with unit_progress recomputed from its chapters."""
        active = await self.active_ids(document.unit_id, "chapter")
        value = unit_progress_for(document.chapters, active)
        return replace(document, unit_progress=value)

    async def refresh_subject(self, student_id: str, unit_id: str) -> int | None:
        """Recompute and persist the subject value for the unit's parent.

        Returns None when the unit is unknown to the taxonomy.
        """
        unit = await self._taxonomy.get(unit_id)
        if unit is None or not unit.parent_id:
            return None
        subject_id = unit.parent_id

        unit_ids = await self.active_ids(subject_id, "unit")
        documents = await self._store.list_for_student(student_id)
        values = {d.unit_id: d.unit_progress for d in documents}
        value = subject_progress_for(values, unit_ids)

        await self._store.set_subject_progress(student_id, subject_id, value)
        logger.debug(
            "Subject progress refreshed value=%d units=%d",
            value,
            len(unit_ids),
            extra={"student_id": student_id, "subject_id": subject_id},
        )
        return value


Listener = Callable[[str, int], None]


class ProgressChannel:
    """Per-unit listener registry.

    `subscribe` returns the matching unsubscribe callable; calling it
    twice is harmless.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, unit_id: str, listener: Listener) -> Callable[[], None]:
        self._listeners[unit_id].append(listener)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(unit_id)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[unit_id]

        return _unsubscribe

    def publish(self, unit_id: str, unit_progress: int) -> None:
        for listener in list(self._listeners.get(unit_id, ())):
            try:
                listener(unit_id, unit_progress)
            except Exception:
                logger.exception("Progress listener failed", extra={"unit_id": unit_id})

    def listener_count(self, unit_id: str) -> int:
        return len(self._listeners.get(unit_id, ()))
