"""Client-side progress state for one unit.

Every local mutation follows the same order:

  1. compute the new chapter record in memory
  2. recompute the unit value over the unit's active chapters
  3. write the DeviceMirror (synchronous)
  4. publish (unit_id, unit_progress) on the ProgressChannel
  5. schedule the durable write through the Debouncer
  6. feed the new values to the celebration gates

A gate that fires calls `on_celebrate(kind, key)` and then performs its
own mark-congratulations request; the gate only latches once that
request succeeds.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace

from studytrack.client.api_client import ProgressApiClient
from studytrack.client.debounce import Debouncer
from studytrack.client.device_mirror import DeviceMirror
from studytrack.core.errors import AuthError, NetworkError, ProgressError, RequestTimeoutError
from studytrack.models.progress import ChapterProgress
from studytrack.services import progress_calculator as calc
from studytrack.services.aggregator import ProgressChannel, unit_progress_for
from studytrack.services.celebration import CelebrationGate

logger = logging.getLogger(__name__)

# read failures that fall back to the mirror
_OFFLINE_ERRORS = (NetworkError, RequestTimeoutError, AuthError)

CelebrateCallback = Callable[[str, str], None]


class UnitProgressSession:
    def __init__(
        self,
        api: ProgressApiClient,
        mirror: DeviceMirror,
        unit_id: str,
        *,
        chapter_ids: Sequence[str],
        subject_id: str | None = None,
        channel: ProgressChannel | None = None,
        debouncer: Debouncer | None = None,
        on_celebrate: CelebrateCallback | None = None,
    ) -> None:
        self.api = api
        self.mirror = mirror
        self.unit_id = unit_id
        self.subject_id = subject_id
        self.channel = channel or ProgressChannel()
        self.debouncer = debouncer or Debouncer()
        # every active chapter of the unit; unrecorded ones count as 0
        self._chapter_ids = list(chapter_ids)
        self._on_celebrate = on_celebrate

        self.chapters: dict[str, ChapterProgress] = {}
        self.unit_progress = 0
        self.unit_congratulations_shown = False
        self.source = "none"

        self._chapter_gates: dict[str, CelebrationGate] = {}
        self.unit_gate = CelebrationGate("unit", unit_id)
        self.subject_gate = CelebrationGate("subject", subject_id or "")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Server first when signed in, the mirror otherwise or when offline."""
        loaded = False
        if self.api.authenticated:
            try:
                document = await self.api.get_progress(self.unit_id)
            except _OFFLINE_ERRORS as exc:
                logger.warning(
                    "Progress read failed (%s), using device mirror",
                    type(exc).__name__,
                    extra={"unit_id": self.unit_id},
                )
            else:
                if document is not None:
                    self.chapters = dict(document.chapters)
                    self.unit_congratulations_shown = document.unit_congratulations_shown
                else:
                    self.chapters = {}
                self.source = "server"
                loaded = True

        if not loaded:
            snapshot = self.mirror.read(self.unit_id)
            if snapshot is not None:
                self.chapters = dict(snapshot.chapters)
                self.unit_congratulations_shown = snapshot.unit_congratulations_shown
                self.source = "mirror"

        self.unit_progress = self._rollup()
        self._write_mirror()

        for chapter_id, record in self.chapters.items():
            self._gate(chapter_id).load(shown=record.congratulations_shown, progress=record.progress)
        self.unit_gate.load(shown=self.unit_congratulations_shown, progress=self.unit_progress)
        await self._load_subject_gate()

    async def _load_subject_gate(self) -> None:
        if not self.subject_id or not self.api.authenticated:
            return
        try:
            subject = await self.api.get_subject(self.subject_id)
        except _OFFLINE_ERRORS:
            logger.warning("Subject progress unavailable", extra={"subject_id": self.subject_id})
            return
        self.subject_gate.load(
            shown=bool(subject.get("subjectCongratulationsShown")),
            progress=int(subject.get("subjectProgress") or 0),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def chapter(self, chapter_id: str) -> ChapterProgress:
        return self.chapters.get(chapter_id) or ChapterProgress()

    async def set_progress(self, chapter_id: str, value: int) -> ChapterProgress:
        """Slider."""
        return await self._apply(chapter_id, calc.apply_manual_progress(self.chapter(chapter_id), value))

    async def mark_done(self, chapter_id: str) -> ChapterProgress:
        return await self._apply(chapter_id, calc.mark_done(self.chapter(chapter_id)))

    async def reset(self, chapter_id: str) -> ChapterProgress:
        gate = self._gate(chapter_id)
        if not gate.loaded:
            gate.load(shown=False, progress=0)
        gate.rearm()
        return await self._apply(chapter_id, calc.reset(self.chapter(chapter_id)))

    async def record_visit(
        self, chapter_id: str, item_type: str, item_id: str | None = None
    ) -> ChapterProgress:
        """Visits are recorded server-side; the response drives local state."""
        result = await self.api.track_visit(self.unit_id, chapter_id, item_type, item_id)
        current = self.chapter(chapter_id)
        record = replace(
            current,
            visited_items=current.visited_items.with_visit(item_type, result.get("itemId") or chapter_id),
        )
        record = calc.resolve(record, int(result["autoCalculatedProgress"]))
        self._set_local(chapter_id, record)
        await self._observe(chapter_id)
        await self._observe_subject()
        return record

    async def _apply(self, chapter_id: str, record: ChapterProgress) -> ChapterProgress:
        self._set_local(chapter_id, record)
        self.debouncer.schedule(
            self._write_key(chapter_id), lambda: self._save_chapter(chapter_id)
        )
        await self._observe(chapter_id)
        return record

    def _set_local(self, chapter_id: str, record: ChapterProgress) -> None:
        self.chapters[chapter_id] = record
        self.unit_progress = self._rollup()
        self._write_mirror()
        self.channel.publish(self.unit_id, self.unit_progress)

    async def _save_chapter(self, chapter_id: str) -> None:
        # sends whatever the record is now, not what it was when scheduled
        await self.api.save_chapter(self.unit_id, chapter_id, self.chapter(chapter_id))
        await self._observe_subject()

    async def flush(self) -> bool:
        return await self.debouncer.flush()

    def close(self) -> None:
        self.debouncer.cancel()

    # ------------------------------------------------------------------
    # Celebrations
    # ------------------------------------------------------------------

    async def _observe(self, chapter_id: str) -> None:
        gate = self._gate(chapter_id)
        if not gate.loaded:
            # first sight of this chapter in the session: nothing to compare with
            gate.load(shown=self.chapter(chapter_id).congratulations_shown, progress=0)
        if gate.observe(self.chapter(chapter_id).progress):
            if await self._celebrate(gate, "chapter", unit_id=self.unit_id, chapter_id=chapter_id):
                self.chapters[chapter_id] = replace(self.chapter(chapter_id), congratulations_shown=True)
                self._write_mirror()

        if self.unit_gate.observe(self.unit_progress):
            if await self._celebrate(self.unit_gate, "unit", unit_id=self.unit_id):
                self.unit_congratulations_shown = True
                self._write_mirror()

    async def _observe_subject(self) -> None:
        if not self.subject_gate.loaded:
            return
        try:
            subject = await self.api.get_subject(self.subject_id)
        except ProgressError:
            logger.warning("Subject progress refresh failed", extra={"subject_id": self.subject_id})
            return
        if self.subject_gate.observe(int(subject.get("subjectProgress") or 0)):
            await self._celebrate(self.subject_gate, "subject", subject_id=self.subject_id)

    async def _celebrate(self, gate: CelebrationGate, kind: str, **ids: str | None) -> bool:
        if self._on_celebrate is not None:
            self._on_celebrate(kind, gate.key)
        try:
            await self.api.mark_congratulations(kind, **ids)
        except ProgressError:
            gate.failed()
            logger.warning("Could not mark %s congratulations", kind, extra={"unit_id": self.unit_id})
            return False
        gate.confirm()
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _gate(self, chapter_id: str) -> CelebrationGate:
        gate = self._chapter_gates.get(chapter_id)
        if gate is None:
            gate = self._chapter_gates[chapter_id] = CelebrationGate("chapter", chapter_id)
        return gate

    def _rollup(self) -> int:
        return unit_progress_for(self.chapters, self._chapter_ids)

    def _write_key(self, chapter_id: str) -> str:
        return f"{self.unit_id}:{chapter_id}"

    def _write_mirror(self) -> None:
        self.mirror.write(
            self.unit_id,
            self.chapters,
            self.unit_progress,
            unit_congratulations_shown=self.unit_congratulations_shown,
        )
