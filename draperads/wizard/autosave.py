from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool

from draperads.db.base import session_scope
from draperads.db.enums import AdStatusEnum
from draperads.db.repositories import AdsRepository

logger = logging.getLogger("wizard.autosave")


class Debouncer:
    """Runs `callback` once `delay` seconds after the most recent `trigger()`."""

    def __init__(self, callback: Callable[[], Awaitable[None]], *, delay: float) -> None:
        self.callback = callback
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(self) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._run_later())

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        self._pending = None
        await self.callback()

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> None:
        """Run the pending callback now instead of waiting for the timer."""
        if not self.pending:
            return
        self.cancel()
        await self.callback()


def save_draft(draft_ad_id: Optional[int], columns: dict[str, Any]) -> int:
    """Insert the draft on first save and overwrite the same row afterwards."""
    with session_scope() as session:
        repo = AdsRepository(session)
        existing = repo.get(draft_ad_id) if draft_ad_id is not None else None
        if existing is not None and existing.status == AdStatusEnum.draft:
            repo.update_fields(existing.id, **columns)
            return existing.id
        ad = repo.create(**columns)
        return ad.id


class DraftAutosaver:
    """
    Debounced persistence of the wizard's ad-plus-targeting snapshot.

    Saves are serialized so two bursts can never land out of order; a failed save is logged
    and kept in `last_error` while the in-memory state stays untouched.
    """

    def __init__(
        self,
        snapshot: Callable[[], dict[str, Any]],
        *,
        delay: float,
        draft_ad_id: Optional[int] = None,
        saver: Callable[[Optional[int], dict[str, Any]], int] = save_draft,
    ) -> None:
        self._snapshot = snapshot
        self._saver = saver
        self._lock = asyncio.Lock()
        self.draft_ad_id = draft_ad_id
        self.last_error: Optional[str] = None
        self.closed = False
        self.debouncer = Debouncer(self._save, delay=delay)

    def schedule(self) -> None:
        if not self.closed:
            self.debouncer.trigger()

    async def flush(self) -> None:
        await self.debouncer.flush()
        # wait out a save that the timer already started
        async with self._lock:
            pass

    async def save_now(self) -> Optional[int]:
        self.debouncer.cancel()
        await self._save()
        return self.draft_ad_id

    def close(self) -> None:
        """Stop saving; a save already queued behind the lock is dropped."""
        self.closed = True
        self.debouncer.cancel()

    async def _save(self) -> None:
        async with self._lock:
            if self.closed:
                return
            columns = self._snapshot()
            try:
                self.draft_ad_id = await run_in_threadpool(self._saver, self.draft_ad_id, columns)
            except Exception as exc:
                self.last_error = str(exc) or exc.__class__.__name__
                logger.exception("Draft auto-save failed", extra={"draft_ad_id": self.draft_ad_id})
                return
            self.last_error = None
            logger.debug("Draft auto-saved", extra={"draft_ad_id": self.draft_ad_id})
