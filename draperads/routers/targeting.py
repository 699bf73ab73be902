from __future__ import annotations

import logging
from dataclasses import asdict
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from draperads.auth.sessions import ServerSession, get_web_session
from draperads.config import settings
from draperads.routers.meta import META_TOKEN_KEY, meta_client_for
from draperads.services.meta_ads import MetaAdsError
from draperads.services.targeting import FixtureTargetingProvider, MetaTargetingProvider, TargetingDataProvider
from draperads.wizard.selection import search, sort_ad_sets, sort_campaigns

router = APIRouter(prefix="/api/targeting", tags=["targeting"])
logger = logging.getLogger(__name__)

fixture_provider = FixtureTargetingProvider()


def get_targeting_provider(web_session: ServerSession = Depends(get_web_session)) -> TargetingDataProvider:
    if settings.TARGETING_PROVIDER == "meta":
        token = web_session.get(META_TOKEN_KEY)
        if not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated with Meta")
        return MetaTargetingProvider(meta_client_for(token))
    return fixture_provider


def raise_provider_error(exc: MetaAdsError) -> NoReturn:
    logger.warning("Targeting data request failed", extra={"status_code": exc.status_code})
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.user_message) from exc


def _split_ids(value: Optional[str]) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


@router.get("/accounts")
def list_accounts(provider: TargetingDataProvider = Depends(get_targeting_provider)):
    try:
        return [asdict(account) for account in provider.list_accounts()]
    except MetaAdsError as exc:
        raise_provider_error(exc)


@router.get("/accounts/{account_id}/campaigns")
def list_campaigns(
    account_id: str,
    q: Optional[str] = Query(default=None, alias="search"),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    try:
        campaigns = provider.list_campaigns(account_id)
    except MetaAdsError as exc:
        raise_provider_error(exc)
    return [asdict(campaign) for campaign in sort_campaigns(search(campaigns, q))]


@router.get("/accounts/{account_id}/ad-sets")
def list_ad_sets(
    account_id: str,
    campaign_ids: Optional[str] = Query(default=None, alias="campaignIds"),
    q: Optional[str] = Query(default=None, alias="search"),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    try:
        campaigns = {campaign.id: campaign for campaign in provider.list_campaigns(account_id)}
        ad_sets = provider.list_ad_sets(account_id, _split_ids(campaign_ids))
    except MetaAdsError as exc:
        raise_provider_error(exc)
    return [asdict(ad_set) for ad_set in sort_ad_sets(search(ad_sets, q), campaigns)]


@router.get("/accounts/{account_id}/pages")
def list_pages(account_id: str, provider: TargetingDataProvider = Depends(get_targeting_provider)):
    try:
        return [asdict(page) for page in provider.list_pages(account_id)]
    except MetaAdsError as exc:
        raise_provider_error(exc)


@router.get("/accounts/{account_id}/instagram-accounts")
def list_instagram_accounts(account_id: str, provider: TargetingDataProvider = Depends(get_targeting_provider)):
    try:
        return [asdict(account) for account in provider.list_instagram_accounts(account_id)]
    except MetaAdsError as exc:
        raise_provider_error(exc)
