from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel

from draperads.schemas.ad_sets import AdSetFields, AdSetResponse
from draperads.schemas.ads import AdResponse


class PublishAdSetData(AdSetFields):
    adId: Optional[int] = None


class PublishRequest(BaseModel):
    adId: int
    adSetData: PublishAdSetData


class PublishResponse(BaseModel):
    success: bool
    ad: AdResponse
    adSet: AdSetResponse
    metaResponse: dict[str, Any]
