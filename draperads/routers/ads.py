from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from draperads.db.deps import get_session
from draperads.db.enums import AdStatusEnum
from draperads.db.models import Ad
from draperads.db.repositories import AdsRepository
from draperads.schemas.ads import AdCreate, AdFields, AdResponse, AdStatusUpdate, AdUpdate

router = APIRouter(prefix="/api/ads", tags=["ads"])
logger = logging.getLogger(__name__)


def serialize_ad(ad: Ad) -> AdResponse:
    return AdResponse(
        id=ad.id,
        templateId=ad.template_id,
        mediaUrl=ad.media_url,
        primaryText=ad.primary_text,
        headline=ad.headline,
        description=ad.description,
        cta=ad.cta,
        websiteUrl=ad.website_url,
        brandName=ad.brand_name,
        brandLogoUrl=ad.brand_logo_url,
        adType=ad.ad_type,
        adFormat=ad.ad_format,
        customizePlacements=ad.customize_placements,
        status=ad.status,
        createdAt=ad.created_at,
        updatedAt=ad.updated_at,
        publishedAt=ad.published_at,
        metaAdId=ad.meta_ad_id,
        statistics=ad.statistics or {},
        targeting=ad.targeting,
    )


def ad_columns(payload: AdFields) -> dict[str, Any]:
    return {
        "primary_text": payload.primaryText,
        "headline": payload.headline,
        "description": payload.description,
        "cta": payload.cta,
        "website_url": payload.websiteUrl,
        "brand_name": payload.brandName,
        "brand_logo_url": payload.brandLogoUrl,
        "media_url": payload.mediaUrl,
        "template_id": payload.templateId,
        "ad_type": payload.adType,
        "ad_format": payload.adFormat,
        "customize_placements": payload.customizePlacements,
        "targeting": payload.targeting,
    }


def _get_ad_or_404(repo: AdsRepository, ad_id: int) -> Ad:
    ad = repo.get(ad_id)
    if not ad:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")
    return ad


@router.get("", response_model=list[AdResponse])
def list_ads(session: Session = Depends(get_session)):
    return [serialize_ad(ad) for ad in AdsRepository(session).list()]


@router.get("/drafts/latest", response_model=AdResponse)
def latest_draft(session: Session = Depends(get_session)):
    ad = AdsRepository(session).get_latest_draft()
    if not ad:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No draft ad found")
    return serialize_ad(ad)


@router.get("/{ad_id}", response_model=AdResponse)
def get_ad(ad_id: int, session: Session = Depends(get_session)):
    return serialize_ad(_get_ad_or_404(AdsRepository(session), ad_id))


@router.post("", response_model=AdResponse, status_code=status.HTTP_201_CREATED)
def create_ad(payload: AdCreate, session: Session = Depends(get_session)):
    ad = AdsRepository(session).create(**ad_columns(payload), statistics=payload.statistics)
    logger.info("Created ad", extra={"ad_id": ad.id})
    return serialize_ad(ad)


@router.put("/{ad_id}", response_model=AdResponse)
def update_ad(ad_id: int, payload: AdUpdate, session: Session = Depends(get_session)):
    repo = AdsRepository(session)
    ad = _get_ad_or_404(repo, ad_id)
    if ad.status != AdStatusEnum.draft:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only draft ads can be edited")
    ad = repo.update_fields(ad_id, **ad_columns(payload))
    return serialize_ad(ad)


@router.patch("/{ad_id}/status", response_model=AdResponse)
def update_ad_status(ad_id: int, payload: AdStatusUpdate, session: Session = Depends(get_session)):
    ad = AdsRepository(session).update_status(ad_id, payload.status)
    if not ad:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ad not found")
    logger.info("Updated ad status", extra={"ad_id": ad_id, "status": payload.status.value})
    return serialize_ad(ad)
