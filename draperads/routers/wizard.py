from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from starlette.concurrency import run_in_threadpool

from draperads.auth.dependencies import SessionUser, require_authenticated
from draperads.auth.sessions import ServerSession, get_web_session
from draperads.config import settings
from draperads.db.base import session_scope
from draperads.db.repositories import AdsRepository
from draperads.routers import publish as publish_router
from draperads.routers.meta import META_TOKEN_KEY
from draperads.routers.targeting import get_targeting_provider, raise_provider_error
from draperads.schemas.wizard import (
    AdSetOptionResponse,
    CampaignOptionResponse,
    CreativePatch,
    LaunchResultResponse,
    MediaUpdate,
    StepChange,
    TargetingPatch,
    WizardStateResponse,
)
from draperads.services.image_analysis import CopySuggestions
from draperads.services.meta_ads import MetaAdsError
from draperads.services.publishing import publish_ad_to_ad_sets
from draperads.services.targeting import TargetingDataProvider
from draperads.wizard.registry import wizard_registry
from draperads.wizard.selection import search, sort_ad_sets, sort_campaigns
from draperads.wizard.state import WizardSession, WizardStateError, WizardStep
from draperads.wizard.summary import build_launch_summary, launch_blockers

router = APIRouter(prefix="/api/wizard", tags=["wizard"])
logger = logging.getLogger("wizard.routes")

WIZARD_KEY = "wizard"


async def get_wizard(web_session: ServerSession = Depends(get_web_session)) -> WizardSession:
    if not web_session.get(WIZARD_KEY):
        # persist the session so the wizard survives across requests
        web_session[WIZARD_KEY] = True
    return await wizard_registry.get_or_create(web_session.sid)


async def _call_provider(fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return await run_in_threadpool(fn, *args)
    except MetaAdsError as exc:
        raise_provider_error(exc)


def _state(wizard: WizardSession) -> WizardStateResponse:
    return WizardStateResponse(**wizard.to_response())


def _bare_account_id(account_id: str) -> str:
    # ad sets store the platform's numeric id, not the picker's "account_<n>" key
    return account_id.removeprefix("account_")


@router.get("", response_model=WizardStateResponse)
async def get_state(wizard: WizardSession = Depends(get_wizard)):
    return _state(wizard)


@router.delete("", response_model=WizardStateResponse)
async def reset_wizard(wizard: WizardSession = Depends(get_wizard)):
    wizard.reset()
    return _state(wizard)


@router.patch("/creative", response_model=WizardStateResponse)
async def update_creative(payload: CreativePatch, wizard: WizardSession = Depends(get_wizard)):
    wizard.update_creative(payload.model_dump(exclude_unset=True))
    return _state(wizard)


@router.post("/media", response_model=WizardStateResponse)
async def set_media(payload: MediaUpdate, wizard: WizardSession = Depends(get_wizard)):
    suggestions: Optional[CopySuggestions] = None
    if payload.suggestionsStatus != "skipped":
        suggestions = CopySuggestions(
            headline=payload.suggestedHeadline,
            primary_text=payload.suggestedPrimaryText,
            description=payload.suggestedDescription,
            cta=payload.suggestedCta,
        )
    wizard.set_media(payload.mediaUrl, suggestions=suggestions, suggestions_status=payload.suggestionsStatus)
    return _state(wizard)


@router.post("/suggestions/apply", response_model=WizardStateResponse)
async def apply_suggestions(wizard: WizardSession = Depends(get_wizard)):
    wizard.apply_suggestions()
    return _state(wizard)


@router.delete("/suggestions", response_model=WizardStateResponse)
async def clear_suggestions(wizard: WizardSession = Depends(get_wizard)):
    wizard.clear_suggestions()
    return _state(wizard)


@router.patch("/targeting", response_model=WizardStateResponse)
async def update_targeting(payload: TargetingPatch, wizard: WizardSession = Depends(get_wizard)):
    wizard.update_targeting(payload.model_dump(exclude_unset=True))
    return _state(wizard)


@router.get("/campaigns", response_model=list[CampaignOptionResponse])
async def list_campaigns(
    q: Optional[str] = Query(default=None, alias="search"),
    wizard: WizardSession = Depends(get_wizard),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    selection = wizard.targeting.selection
    campaigns = await _call_provider(provider.list_campaigns, selection.account_id)
    return [
        CampaignOptionResponse(
            id=campaign.id,
            name=campaign.name,
            status=campaign.status,
            objective=campaign.objective,
            selected=campaign.id in selection.campaign_ids,
        )
        for campaign in sort_campaigns(search(campaigns, q))
    ]


@router.post("/campaigns/{campaign_id}", response_model=WizardStateResponse)
async def select_campaign(
    campaign_id: str,
    wizard: WizardSession = Depends(get_wizard),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    campaigns = await _call_provider(provider.list_campaigns, wizard.targeting.selection.account_id)
    if campaign_id not in {campaign.id for campaign in campaigns}:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found for this account")
    wizard.select_campaign(campaign_id)
    return _state(wizard)


@router.delete("/campaigns/{campaign_id}", response_model=WizardStateResponse)
async def deselect_campaign(campaign_id: str, wizard: WizardSession = Depends(get_wizard)):
    wizard.deselect_campaign(campaign_id)
    return _state(wizard)


@router.get("/ad-sets", response_model=list[AdSetOptionResponse])
async def list_ad_sets(
    q: Optional[str] = Query(default=None, alias="search"),
    wizard: WizardSession = Depends(get_wizard),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    selection = wizard.targeting.selection
    campaigns = {
        campaign.id: campaign
        for campaign in await _call_provider(provider.list_campaigns, selection.account_id)
    }
    ad_sets = await _call_provider(provider.list_ad_sets, selection.account_id, list(selection.campaign_ids))
    return [
        AdSetOptionResponse(
            id=ad_set.id,
            name=ad_set.name,
            status=ad_set.status,
            campaignId=ad_set.campaign_id,
            campaignName=campaigns[ad_set.campaign_id].name
            if ad_set.campaign_id in campaigns
            else f"Campaign {ad_set.campaign_id}",
            selected=ad_set.id in selection.ad_sets,
        )
        for ad_set in sort_ad_sets(search(ad_sets, q), campaigns)
    ]


@router.post("/ad-sets/{ad_set_id}", response_model=WizardStateResponse)
async def select_ad_set(
    ad_set_id: str,
    wizard: WizardSession = Depends(get_wizard),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    selection = wizard.targeting.selection
    ad_sets = await _call_provider(provider.list_ad_sets, selection.account_id, list(selection.campaign_ids))
    match = next((ad_set for ad_set in ad_sets if ad_set.id == ad_set_id), None)
    if match is None:
        raise WizardStateError("Ad set is not part of a selected campaign")
    wizard.select_ad_set(match.id, match.campaign_id)
    return _state(wizard)


@router.delete("/ad-sets/{ad_set_id}", response_model=WizardStateResponse)
async def deselect_ad_set(ad_set_id: str, wizard: WizardSession = Depends(get_wizard)):
    wizard.deselect_ad_set(ad_set_id)
    return _state(wizard)


@router.get("/step")
async def get_step(wizard: WizardSession = Depends(get_wizard)) -> dict[str, int]:
    return {"step": int(wizard.step)}


@router.put("/step", response_model=WizardStateResponse)
async def change_step(payload: StepChange, wizard: WizardSession = Depends(get_wizard)):
    await wizard.go_to(WizardStep(payload.step))
    return _state(wizard)


@router.post("/draft")
async def save_draft(wizard: WizardSession = Depends(get_wizard)) -> dict[str, Any]:
    draft_ad_id = await wizard.autosaver.save_now()
    if wizard.autosaver.last_error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Draft could not be saved")
    return {"draftAdId": draft_ad_id}


@router.get("/summary")
async def get_summary(
    wizard: WizardSession = Depends(get_wizard),
    web_session: ServerSession = Depends(get_web_session),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
) -> dict[str, Any]:
    return await _call_provider(
        lambda: build_launch_summary(
            wizard,
            provider,
            meta_connected=bool(web_session.get(META_TOKEN_KEY)),
            require_meta_connection=settings.WIZARD_REQUIRE_META_CONNECTION,
        )
    )


def _publish_to_ad_sets(ad_id: int, ad_sets: list[dict[str, Any]]) -> tuple[list[int], list[dict[str, Any]]]:
    with session_scope() as session:
        ad = AdsRepository(session).get(ad_id)
        if ad is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")
        results = publish_ad_to_ad_sets(
            session,
            ad=ad,
            ad_sets_fields=ad_sets,
            publisher=publish_router.publisher,
        )
        return [result.ad_set.id for result in results], [result.meta_response for result in results]


@router.post("/launch", response_model=LaunchResultResponse)
async def launch(
    _auth: SessionUser = Depends(require_authenticated),
    wizard: WizardSession = Depends(get_wizard),
    web_session: ServerSession = Depends(get_web_session),
    provider: TargetingDataProvider = Depends(get_targeting_provider),
):
    blockers = launch_blockers(
        wizard,
        meta_connected=bool(web_session.get(META_TOKEN_KEY)),
        require_meta_connection=settings.WIZARD_REQUIRE_META_CONNECTION,
    )
    if blockers:
        raise WizardStateError("; ".join(blockers))

    ad_id = await wizard.autosaver.save_now()
    if ad_id is None or wizard.autosaver.last_error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Draft could not be saved")

    targeting = wizard.targeting
    selection = targeting.selection
    names = {
        ad_set.id: ad_set.name
        for ad_set in await _call_provider(provider.list_ad_sets, selection.account_id, list(selection.campaign_ids))
    }
    ad_sets = [
        {
            "name": names.get(ad_set_id, f"Ad Set {ad_set_id}"),
            "account_id": _bare_account_id(selection.account_id),
            "campaign_objective": targeting.campaignObjective,
            "placements": list(targeting.placements),
            "campaign_id": campaign_id,
        }
        for ad_set_id, campaign_id in selection.ad_sets.items()
    ]
    ad_set_ids, responses = await run_in_threadpool(_publish_to_ad_sets, ad_id, ad_sets)
    logger.info("Launched wizard ad", extra={"ad_id": ad_id, "ad_set_count": len(ad_set_ids)})
    wizard.reset()
    return LaunchResultResponse(success=True, adId=ad_id, adSetIds=ad_set_ids, metaResponses=responses)
