from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from draperads.auth.dependencies import SessionUser, require_authenticated
from draperads.db.deps import get_session
from draperads.db.repositories import AdsRepository
from draperads.routers.ad_sets import serialize_ad_set
from draperads.routers.ads import serialize_ad
from draperads.schemas.publish import PublishRequest, PublishResponse
from draperads.services.meta_ads import SimulatedMetaPublisher
from draperads.services.publishing import publish_ad

router = APIRouter(prefix="/api", tags=["publish"])

publisher = SimulatedMetaPublisher()


@router.post("/publish", response_model=PublishResponse)
def publish(
    payload: PublishRequest,
    _auth: SessionUser = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    ad_set_data = payload.adSetData
    if ad_set_data.adId is not None and ad_set_data.adId != payload.adId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="adSetData.adId must match adId",
        )
    ad = AdsRepository(session).get(payload.adId)
    if not ad:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")

    result = publish_ad(
        session,
        ad=ad,
        ad_set_fields={
            "name": ad_set_data.name,
            "account_id": ad_set_data.accountId,
            "campaign_objective": ad_set_data.campaignObjective,
            "placements": ad_set_data.placements,
            "campaign_id": ad_set_data.campaignId,
        },
        publisher=publisher,
    )
    return PublishResponse(
        success=True,
        ad=serialize_ad(result.ad),
        adSet=serialize_ad_set(result.ad_set),
        metaResponse=result.meta_response,
    )
