"""Once-only congratulations latch.

One gate per celebrated thing: a chapter, a unit or a subject.  The
gate only ever moves NotShown → Shown, and only after the server has
accepted the mark-congratulations write:

    load(shown, progress)      baseline known; 100 if already done
    observe(progress) → True   crossing <100 → 100, latch clear, nothing pending
    confirm()                  write succeeded, latch set for good
    failed()                   write failed, gate can fire on the next crossing

Until `load` has run the gate never fires; otherwise the first progress
value after a page load (already 100) would look like a fresh crossing.
"""

from __future__ import annotations

import logging

from studytrack.models.progress import CelebrationKind

logger = logging.getLogger(__name__)


class CelebrationGate:
    def __init__(self, kind: CelebrationKind, key: str) -> None:
        self.kind = kind
        self.key = key
        self._loaded = False
        self._shown = False
        self._pending = False
        self._previous = 0

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def shown(self) -> bool:
        return self._shown

    @property
    def pending(self) -> bool:
        return self._pending

    def load(self, *, shown: bool, progress: int) -> None:
        self._shown = shown
        self._pending = False
        self._previous = 100 if shown or progress >= 100 else progress
        self._loaded = True

    def observe(self, progress: int) -> bool:
        if not self._loaded:
            return False
        previous, self._previous = self._previous, progress
        fire = previous < 100 and progress == 100 and not self._shown and not self._pending
        if fire:
            self._pending = True
            logger.info("Celebration triggered kind=%s key=%s", self.kind, self.key)
        return fire

    def confirm(self) -> None:
        self._pending = False
        self._shown = True

    def failed(self) -> None:
        self._pending = False

    def rearm(self) -> None:
        """Clear the local latch (chapter reset); the stored flag is untouched."""
        self._shown = False
        self._pending = False
