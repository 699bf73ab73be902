from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends

from draperads.auth import oidc
from draperads.auth.sessions import ServerSession, get_web_session

logger = logging.getLogger("auth.deps")

LOGIN_URL = "/api/login"
SESSION_USER_KEY = "user"


class AuthenticationRequired(Exception):
    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(detail)
        self.detail = detail
        self.login_url = LOGIN_URL


@dataclass
class SessionUser:
    user_id: str
    claims: dict[str, Any]
    expires_at: int


def store_tokens(web_session: ServerSession, *, claims: dict[str, Any], tokens: oidc.TokenSet) -> None:
    """Record the provider claims and tokens for the signed-in user."""
    expires_at = claims.get("exp")
    if expires_at is None and tokens.expires_in is not None:
        expires_at = int(time.time()) + tokens.expires_in
    web_session[SESSION_USER_KEY] = {
        "claims": claims,
        "access_token": tokens.access_token,
        "refresh_token": tokens.refresh_token,
        "expires_at": expires_at,
    }


def _refresh_session(web_session: ServerSession, user: dict[str, Any]) -> dict[str, Any]:
    tokens = oidc.oidc_client.refresh(refresh_token=user["refresh_token"])
    claims = dict(user.get("claims") or {})
    if tokens.id_token:
        claims = oidc.oidc_client.verify_id_token(tokens.id_token, access_token=tokens.access_token)
    elif tokens.expires_in is not None:
        claims["exp"] = int(time.time()) + tokens.expires_in
    store_tokens(
        web_session,
        claims=claims,
        tokens=oidc.TokenSet(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token or user["refresh_token"],
            id_token=tokens.id_token,
            expires_in=tokens.expires_in,
        ),
    )
    return web_session[SESSION_USER_KEY]


def require_authenticated(web_session: ServerSession = Depends(get_web_session)) -> SessionUser:
    user: Optional[dict[str, Any]] = web_session.get(SESSION_USER_KEY)
    if not user or not user.get("expires_at"):
        raise AuthenticationRequired("Unauthorized")

    if int(time.time()) > int(user["expires_at"]):
        if not user.get("refresh_token"):
            raise AuthenticationRequired("Session expired")
        try:
            user = _refresh_session(web_session, user)
        except oidc.OIDCError as exc:
            logger.warning("Token refresh failed", exc_info=exc, extra={"sid": web_session.sid})
            raise AuthenticationRequired("Authentication failed") from exc
        logger.info("Refreshed session tokens", extra={"sub": (user.get("claims") or {}).get("sub")})

    claims = user.get("claims") or {}
    return SessionUser(user_id=str(claims.get("sub")), claims=claims, expires_at=int(user["expires_at"]))
