from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool

from draperads.config import settings
from draperads.db.base import session_scope
from draperads.db.repositories import AdsRepository
from draperads.wizard.state import WizardSession

logger = logging.getLogger("wizard.registry")


def _load_latest_draft(session_factory=session_scope):
    with session_factory() as session:
        ad = AdsRepository(session).get_latest_draft()
        if ad is not None:
            session.expunge(ad)
        return ad


class WizardRegistry:
    """
    In-process wizards keyed by the browser session id.

    Wizards untouched for longer than `idle_ttl` seconds are evicted on the next lookup, so
    the registry never outlives the sessions that own it.
    """

    def __init__(
        self,
        *,
        autosave_delay: float,
        idle_ttl: float,
        draft_loader: Optional[Callable] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.autosave_delay = autosave_delay
        self.idle_ttl = idle_ttl
        self.draft_loader = draft_loader or _load_latest_draft
        self.clock = clock
        self._wizards: dict[str, WizardSession] = {}
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._wizards)

    async def get_or_create(self, sid: str) -> WizardSession:
        self.evict_idle()
        wizard = self._wizards.get(sid)
        if wizard is not None:
            self._last_seen[sid] = self.clock()
            return wizard
        wizard = WizardSession(autosave_delay=self.autosave_delay)
        draft = await run_in_threadpool(self.draft_loader)
        existing = self._wizards.get(sid)
        if existing is not None:
            self._last_seen[sid] = self.clock()
            return existing
        if draft is not None:
            wizard.rehydrate(draft)
        self._wizards[sid] = wizard
        self._last_seen[sid] = self.clock()
        logger.info("Started wizard", extra={"sid": sid, "draft_ad_id": wizard.draft_ad_id})
        return wizard

    def evict_idle(self) -> int:
        cutoff = self.clock() - self.idle_ttl
        stale = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for sid in stale:
            self.discard(sid)
        if stale:
            logger.info("Evicted idle wizards", extra={"count": len(stale)})
        return len(stale)

    def discard(self, sid: str) -> None:
        self._last_seen.pop(sid, None)
        wizard = self._wizards.pop(sid, None)
        if wizard is not None:
            wizard.autosaver.close()

    def clear(self) -> None:
        for sid in list(self._wizards):
            self.discard(sid)

    def rekey(self, old_sid: str, new_sid: str) -> None:
        """Keep the wizard when the session id is rotated at login."""
        wizard = self._wizards.pop(old_sid, None)
        self._last_seen.pop(old_sid, None)
        if wizard is not None:
            self._wizards[new_sid] = wizard
            self._last_seen[new_sid] = self.clock()


wizard_registry = WizardRegistry(
    autosave_delay=settings.WIZARD_AUTOSAVE_DELAY_SECONDS,
    idle_ttl=settings.SESSION_TTL_SECONDS,
)
