from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from draperads.db.enums import AdStatusEnum

DEFAULT_BRAND_NAME = "DraperAds"


class AdFields(BaseModel):
    primaryText: str = Field(min_length=1)
    headline: str = Field(min_length=1)
    description: Optional[str] = None
    cta: str = Field(min_length=1)
    websiteUrl: str = Field(min_length=1)
    brandName: str = Field(default=DEFAULT_BRAND_NAME, min_length=1)
    brandLogoUrl: Optional[str] = None
    mediaUrl: Optional[str] = None
    templateId: Optional[int] = None
    adType: Optional[str] = None
    adFormat: Optional[str] = None
    customizePlacements: bool = False
    targeting: Optional[dict[str, Any]] = None


class AdCreate(AdFields):
    statistics: Optional[dict[str, Any]] = None


class AdUpdate(AdFields):
    pass


class AdStatusUpdate(BaseModel):
    status: AdStatusEnum


class AdResponse(BaseModel):
    id: int
    templateId: Optional[int]
    mediaUrl: Optional[str]
    primaryText: str
    headline: str
    description: Optional[str]
    cta: str
    websiteUrl: str
    brandName: str
    brandLogoUrl: Optional[str]
    adType: Optional[str]
    adFormat: Optional[str]
    customizePlacements: bool
    status: AdStatusEnum
    createdAt: datetime
    updatedAt: datetime
    publishedAt: Optional[datetime]
    metaAdId: Optional[str]
    statistics: dict[str, Any]
    targeting: Optional[dict[str, Any]]
