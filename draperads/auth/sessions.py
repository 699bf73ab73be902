from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Any, Callable, Iterator, MutableMapping, Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from draperads.config import settings
from draperads.db.base import session_scope
from draperads.db.models import utcnow
from draperads.db.repositories import WebSessionsRepository

logger = logging.getLogger("auth.sessions")


def sign_session_id(sid: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), sid.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{sid}.{digest}"


def unsign_session_id(cookie_value: str | None, secret: str) -> Optional[str]:
    if not cookie_value or "." not in cookie_value:
        return None
    sid, _, supplied = cookie_value.rpartition(".")
    if not sid:
        return None
    expected = sign_session_id(sid, secret).rpartition(".")[2]
    if not hmac.compare_digest(expected, supplied):
        return None
    return sid


def _new_session_id() -> str:
    return secrets.token_urlsafe(32)


class ServerSession(MutableMapping[str, Any]):
    """Per-request view of a server-side session row."""

    def __init__(self, sid: str, data: dict[str, Any] | None = None, *, is_new: bool) -> None:
        self.sid = sid
        self._data: dict[str, Any] = dict(data or {})
        self.is_new = is_new
        self.modified = False
        self.destroyed = False
        self.previous_sid: Optional[str] = None

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self.modified = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    def destroy(self) -> None:
        self._data.clear()
        self.destroyed = True

    def regenerate(self) -> None:
        """Move the data to a fresh id, dropping the old row on save."""
        if not self.is_new and self.previous_sid is None:
            self.previous_sid = self.sid
        self.sid = _new_session_id()
        self.is_new = True
        self.modified = True


def get_web_session(request: Request) -> ServerSession:
    web_session = getattr(request.state, "web_session", None)
    if web_session is None:
        raise RuntimeError("ServerSessionMiddleware is not installed")
    return web_session


def _load_session(sid: Optional[str]) -> tuple[ServerSession, Optional[str]]:
    """Return the live session, plus the cookie's sid when it pointed at a dead one."""
    if sid:
        with session_scope() as db:
            record = WebSessionsRepository(db).get_live(sid)
            if record is not None:
                return ServerSession(sid, record.sess, is_new=False), None
    return ServerSession(_new_session_id(), is_new=True), sid


def _persist_session(web_session: ServerSession, ttl_seconds: int) -> None:
    with session_scope() as db:
        repo = WebSessionsRepository(db)
        if web_session.previous_sid:
            repo.destroy(web_session.previous_sid)
        if web_session.destroyed:
            repo.destroy(web_session.sid)
            return
        repo.store(
            sid=web_session.sid,
            data=web_session.to_dict(),
            expire=utcnow() + timedelta(seconds=ttl_seconds),
        )


class ServerSessionMiddleware(BaseHTTPMiddleware):
    """
    Database-backed sessions keyed by an HMAC-signed cookie.

    The expiry slides forward on every request that carries a live session; sessions that
    were never written to are not persisted.
    """

    def __init__(
        self,
        app,
        *,
        secret: str,
        cookie_name: str,
        ttl_seconds: int,
        secure: bool,
        on_session_lost: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(app)
        self.secret = secret
        self.cookie_name = cookie_name
        self.ttl_seconds = ttl_seconds
        self.secure = secure
        self.on_session_lost = on_session_lost

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        sid = unsign_session_id(request.cookies.get(self.cookie_name), self.secret)
        web_session, lost_sid = await run_in_threadpool(_load_session, sid)
        if lost_sid and self.on_session_lost is not None:
            self.on_session_lost(lost_sid)
        request.state.web_session = web_session

        response = await call_next(request)

        if web_session.destroyed:
            if not web_session.is_new or web_session.previous_sid:
                await run_in_threadpool(_persist_session, web_session, self.ttl_seconds)
            response.delete_cookie(self.cookie_name, path="/")
            return response

        if web_session.modified or not web_session.is_new:
            await run_in_threadpool(_persist_session, web_session, self.ttl_seconds)
            response.set_cookie(
                self.cookie_name,
                sign_session_id(web_session.sid, self.secret),
                max_age=self.ttl_seconds,
                path="/",
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        return response


def install_session_middleware(app, *, on_session_lost: Optional[Callable[[str], None]] = None) -> None:
    app.add_middleware(
        ServerSessionMiddleware,
        secret=settings.SESSION_SECRET,
        cookie_name=settings.SESSION_COOKIE_NAME,
        ttl_seconds=settings.SESSION_TTL_SECONDS,
        secure=settings.is_production,
        on_session_lost=on_session_lost,
    )
