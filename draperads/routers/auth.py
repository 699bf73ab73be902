from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from draperads.auth import oidc
from draperads.auth.dependencies import SESSION_USER_KEY, SessionUser, require_authenticated, store_tokens
from draperads.auth.sessions import ServerSession, get_web_session
from draperads.config import settings
from draperads.db.deps import get_session
from draperads.db.models import User
from draperads.db.repositories import UsersRepository
from draperads.schemas.auth import UserResponse
from draperads.wizard.registry import wizard_registry

router = APIRouter(prefix="/api", tags=["auth"])
logger = logging.getLogger("auth.routes")

PENDING_LOGIN_KEY = "oidc_pending"


def _resolve_login_domain(request: Request) -> str:
    host = (request.url.hostname or "").lower()
    if host not in settings.AUTH_DOMAINS:
        logger.warning("Login attempted from unconfigured domain", extra={"host": host})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown authentication domain: {host}")
    return host


def _callback_url(domain: str) -> str:
    return f"https://{domain}/api/callback"


def _serialize_user(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        firstName=user.first_name,
        lastName=user.last_name,
        profileImageUrl=user.profile_image_url,
        createdAt=user.created_at,
        updatedAt=user.updated_at,
    )


def _upsert_user_from_claims(session: Session, claims: dict) -> User:
    sub = claims.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError) as exc:
        raise oidc.OIDCError("ID token subject is not numeric") from exc
    return UsersRepository(session).upsert(
        user_id=user_id,
        username=claims.get("username") or claims.get("email") or f"user_{user_id}",
        email=claims.get("email"),
        first_name=claims.get("first_name"),
        last_name=claims.get("last_name"),
        profile_image_url=claims.get("profile_image_url"),
    )


@router.get("/login")
def login(request: Request, web_session: ServerSession = Depends(get_web_session)):
    domain = _resolve_login_domain(request)
    login_request = oidc.oidc_client.build_login_request(redirect_uri=_callback_url(domain))
    web_session[PENDING_LOGIN_KEY] = {
        "state": login_request.state,
        "nonce": login_request.nonce,
        "code_verifier": login_request.code_verifier,
        "redirect_uri": login_request.redirect_uri,
    }
    return RedirectResponse(url=login_request.url, status_code=302)


@router.get("/callback")
def callback(
    request: Request,
    web_session: ServerSession = Depends(get_web_session),
    session: Session = Depends(get_session),
):
    _resolve_login_domain(request)
    pending = web_session.pop(PENDING_LOGIN_KEY, None)
    code = request.query_params.get("code")
    state_value = request.query_params.get("state")
    if not pending or not code or state_value != pending.get("state"):
        logger.warning("Rejected login callback", extra={"has_pending": bool(pending), "has_code": bool(code)})
        return RedirectResponse(url="/api/login", status_code=302)

    try:
        tokens = oidc.oidc_client.exchange_code(
            code=code,
            redirect_uri=pending["redirect_uri"],
            code_verifier=pending["code_verifier"],
        )
        if not tokens.id_token:
            raise oidc.OIDCError("Token response did not include an id_token")
        claims = oidc.oidc_client.verify_id_token(
            tokens.id_token,
            nonce=pending["nonce"],
            access_token=tokens.access_token,
        )
        user = _upsert_user_from_claims(session, claims)
    except oidc.OIDCError as exc:
        logger.warning("Login callback failed", exc_info=exc)
        return RedirectResponse(url="/api/login", status_code=302)

    old_sid = web_session.sid
    web_session.regenerate()
    wizard_registry.rekey(old_sid, web_session.sid)
    store_tokens(web_session, claims=claims, tokens=tokens)
    logger.info("User signed in", extra={"user_id": user.id})
    return RedirectResponse(url="/", status_code=302)


@router.get("/logout")
def logout(request: Request, web_session: ServerSession = Depends(get_web_session)):
    had_user = SESSION_USER_KEY in web_session
    wizard_registry.discard(web_session.sid)
    web_session.destroy()
    post_logout_redirect_uri = f"{request.url.scheme}://{request.url.netloc}"
    if not had_user:
        return RedirectResponse(url="/", status_code=302)
    try:
        url = oidc.oidc_client.end_session_url(post_logout_redirect_uri=post_logout_redirect_uri)
    except oidc.OIDCError as exc:
        logger.warning("Could not resolve end-session endpoint", exc_info=exc)
        url = "/"
    return RedirectResponse(url=url, status_code=302)


@router.get("/auth/user", response_model=UserResponse)
def current_user(
    auth: SessionUser = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    try:
        user_id = int(auth.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from exc
    user = UsersRepository(session).get(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _serialize_user(user)
