from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class MetaLoginResponse(BaseModel):
    loginUrl: str


class MetaStatusResponse(BaseModel):
    isAuthenticated: bool


class MetaCreateAdRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    adAccountId: Optional[str] = None
    adSetId: Optional[str] = None
    name: Optional[str] = None
    creative: Optional[dict[str, Any]] = None


class MetaCreateAdResponse(BaseModel):
    success: bool
    adId: str
