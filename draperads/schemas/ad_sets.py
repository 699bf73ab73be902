from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from draperads.db.enums import AdStatusEnum


class AdSetFields(BaseModel):
    name: str = Field(min_length=1)
    accountId: str = Field(min_length=1)
    campaignObjective: str = Field(min_length=1)
    placements: list[str] = Field(min_length=1)
    campaignId: Optional[str] = None


class AdSetCreate(AdSetFields):
    adId: int
    status: AdStatusEnum = AdStatusEnum.draft


class AdSetResponse(BaseModel):
    id: int
    name: str
    accountId: str
    campaignObjective: str
    placements: list[str]
    adId: int
    campaignId: Optional[str]
    metaAdSetId: Optional[str]
    status: AdStatusEnum
    createdAt: datetime
    publishedAt: Optional[datetime]
