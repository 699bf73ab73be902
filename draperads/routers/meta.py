from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import ORJSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from draperads.auth.sessions import ServerSession, get_web_session
from draperads.db.deps import get_session
from draperads.db.enums import OAuthProviderEnum
from draperads.db.repositories import OAuthStatesRepository
from draperads.schemas.meta import MetaCreateAdRequest, MetaCreateAdResponse, MetaLoginResponse, MetaStatusResponse
from draperads.services.meta_ads import MetaAdsClient, MetaAdsConfigError, MetaAdsError, MetaOAuthClient

router = APIRouter(prefix="/api/meta", tags=["meta"])
logger = logging.getLogger("meta.routes")

META_TOKEN_KEY = "meta_access_token"
META_PENDING_KEY = "meta_oauth_pending"
CONNECTED_REDIRECT = "/ad-creator?meta_connected=true"


def _error(status_code: int, message: str) -> ORJSONResponse:
    return ORJSONResponse(status_code=status_code, content={"error": True, "message": message})


def _not_connected() -> ORJSONResponse:
    return _error(status.HTTP_401_UNAUTHORIZED, "Not authenticated with Meta")


def _adapter_error(exc: Exception, action: str) -> ORJSONResponse:
    message = exc.user_message if isinstance(exc, MetaAdsError) else str(exc)
    logger.warning(
        "Meta request failed",
        extra={"action": action, "status_code": getattr(exc, "status_code", None), "meta_message": message},
    )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, message or f"Failed to {action}")


def get_meta_oauth_client() -> MetaOAuthClient:
    return MetaOAuthClient.from_settings()


def meta_client_for(access_token: str) -> MetaAdsClient:
    return MetaAdsClient.for_token(access_token)


@router.get("/login", response_model=MetaLoginResponse)
def meta_login(
    web_session: ServerSession = Depends(get_web_session),
    session: Session = Depends(get_session),
):
    try:
        oauth_client = get_meta_oauth_client()
    except MetaAdsConfigError as exc:
        return _adapter_error(exc, "build Meta login URL")
    state = secrets.token_urlsafe(24)
    # The session must be persisted for the callback to find the same sid.
    web_session[META_PENDING_KEY] = True
    OAuthStatesRepository(session).create(state=state, session_id=web_session.sid, provider=OAuthProviderEnum.meta)
    return MetaLoginResponse(loginUrl=oauth_client.build_login_url(state=state))


@router.get("/callback")
def meta_callback(
    request: Request,
    web_session: ServerSession = Depends(get_web_session),
    session: Session = Depends(get_session),
):
    code = request.query_params.get("code")
    state_value = request.query_params.get("state")
    if not code or not state_value:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing required OAuth callback params: code, state")

    oauth_state = OAuthStatesRepository(session).consume(
        state=state_value,
        session_id=web_session.sid,
        provider=OAuthProviderEnum.meta,
    )
    if oauth_state is None:
        logger.warning("Rejected Meta callback with unknown state", extra={"sid": web_session.sid})
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid OAuth state")

    try:
        access_token = get_meta_oauth_client().exchange_code(code=code)
    except (MetaAdsError, MetaAdsConfigError) as exc:
        return _adapter_error(exc, "authenticate with Meta")

    web_session.pop(META_PENDING_KEY, None)
    web_session[META_TOKEN_KEY] = access_token
    logger.info("Connected Meta account", extra={"sid": web_session.sid})
    return RedirectResponse(url=CONNECTED_REDIRECT, status_code=302)


@router.get("/accounts")
def meta_accounts(
    web_session: ServerSession = Depends(get_web_session),
):
    token = web_session.get(META_TOKEN_KEY)
    if not token:
        return _not_connected()
    try:
        return {"accounts": meta_client_for(token).get_ad_accounts()}
    except MetaAdsError as exc:
        return _adapter_error(exc, "fetch ad accounts")


@router.get("/pages")
def meta_pages(
    web_session: ServerSession = Depends(get_web_session),
):
    token = web_session.get(META_TOKEN_KEY)
    if not token:
        return _not_connected()
    try:
        return {"pages": meta_client_for(token).get_facebook_pages()}
    except MetaAdsError as exc:
        return _adapter_error(exc, "fetch Facebook pages")


@router.get("/instagram/{page_id}")
def meta_instagram_accounts(
    page_id: str,
    web_session: ServerSession = Depends(get_web_session),
):
    token = web_session.get(META_TOKEN_KEY)
    if not token:
        return _not_connected()
    try:
        return {"instagramAccounts": meta_client_for(token).get_instagram_accounts(page_id)}
    except MetaAdsError as exc:
        return _adapter_error(exc, "fetch Instagram accounts")


@router.post("/create-ad", response_model=MetaCreateAdResponse)
def meta_create_ad(
    payload: MetaCreateAdRequest,
    web_session: ServerSession = Depends(get_web_session),
):
    token = web_session.get(META_TOKEN_KEY)
    if not token:
        return _not_connected()
    try:
        return meta_client_for(token).create_ad(payload.model_dump(exclude_none=True))
    except MetaAdsError as exc:
        return _adapter_error(exc, "create ad")


@router.get("/status", response_model=MetaStatusResponse)
def meta_status(web_session: ServerSession = Depends(get_web_session)):
    return MetaStatusResponse(isAuthenticated=bool(web_session.get(META_TOKEN_KEY)))
