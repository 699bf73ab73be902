from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from draperads.db.deps import get_session
from draperads.db.models import AdSet
from draperads.db.repositories import AdSetsRepository, AdsRepository
from draperads.schemas.ad_sets import AdSetCreate, AdSetResponse

router = APIRouter(prefix="/api/ad-sets", tags=["ad-sets"])


def serialize_ad_set(ad_set: AdSet) -> AdSetResponse:
    return AdSetResponse(
        id=ad_set.id,
        name=ad_set.name,
        accountId=ad_set.account_id,
        campaignObjective=ad_set.campaign_objective,
        placements=list(ad_set.placements or []),
        adId=ad_set.ad_id,
        campaignId=ad_set.campaign_id,
        metaAdSetId=ad_set.meta_ad_set_id,
        status=ad_set.status,
        createdAt=ad_set.created_at,
        publishedAt=ad_set.published_at,
    )


@router.get("", response_model=list[AdSetResponse])
def list_ad_sets(
    ad_id: Optional[int] = Query(default=None, alias="adId"),
    session: Session = Depends(get_session),
):
    return [serialize_ad_set(ad_set) for ad_set in AdSetsRepository(session).list(ad_id=ad_id)]


@router.post("", response_model=AdSetResponse, status_code=status.HTTP_201_CREATED)
def create_ad_set(payload: AdSetCreate, session: Session = Depends(get_session)):
    if not AdsRepository(session).get(payload.adId):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")
    ad_set = AdSetsRepository(session).create(
        name=payload.name,
        account_id=payload.accountId,
        campaign_objective=payload.campaignObjective,
        placements=payload.placements,
        campaign_id=payload.campaignId,
        ad_id=payload.adId,
        status=payload.status,
    )
    return serialize_ad_set(ad_set)
