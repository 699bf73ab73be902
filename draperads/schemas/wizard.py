from __future__ import annotations

from typing import Any, Optional

from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator

from draperads.schemas.uploads import SuggestionsStatus

_http_url = TypeAdapter(AnyHttpUrl)


class CreativeForm(BaseModel):
    primaryText: str = Field(min_length=1, max_length=125)
    headline: str = Field(min_length=1, max_length=40)
    description: Optional[str] = Field(default=None, max_length=40)
    cta: str = Field(min_length=1)
    websiteUrl: str
    brandName: str = Field(min_length=1)
    brandLogoUrl: Optional[str] = None
    adType: str = "conversions"
    adFormat: str = "image"
    customizePlacements: bool = False

    @field_validator("websiteUrl")
    @classmethod
    def validate_website_url(cls, value: str) -> str:
        try:
            _http_url.validate_python(value)
        except ValidationError as exc:
            raise ValueError("Please enter a valid URL") from exc
        return value


class CreativePatch(BaseModel):
    primaryText: Optional[str] = None
    headline: Optional[str] = None
    description: Optional[str] = None
    cta: Optional[str] = None
    websiteUrl: Optional[str] = None
    brandName: Optional[str] = None
    brandLogoUrl: Optional[str] = None
    adType: Optional[str] = None
    adFormat: Optional[str] = None
    customizePlacements: Optional[bool] = None


class MediaUpdate(BaseModel):
    mediaUrl: str = Field(min_length=1)
    suggestedHeadline: str = ""
    suggestedPrimaryText: str = ""
    suggestedDescription: str = ""
    suggestedCta: str = "learn_more"
    suggestionsStatus: SuggestionsStatus = "skipped"


class TargetingPatch(BaseModel):
    adAccountId: Optional[str] = None
    campaignObjective: Optional[str] = None
    placements: Optional[list[str]] = None
    pageId: Optional[str] = None
    pageName: Optional[str] = None
    instagramAccountId: Optional[str] = None
    instagramAccountName: Optional[str] = None
    enhancements: Optional[dict[str, bool]] = None
    allowMultiAdvertiserAds: Optional[bool] = None
    enableFlexibleMedia: Optional[bool] = None


class StepChange(BaseModel):
    step: int = Field(ge=1, le=3)


class CampaignOptionResponse(BaseModel):
    id: str
    name: str
    status: str
    objective: Optional[str] = None
    selected: bool


class AdSetOptionResponse(BaseModel):
    id: str
    name: str
    status: str
    campaignId: str
    campaignName: str
    selected: bool


class WizardStateResponse(BaseModel):
    step: int
    creative: dict[str, Any]
    mediaUrl: Optional[str]
    suggestions: Optional[dict[str, str]]
    suggestionsStatus: Optional[str]
    hasAppliedAiSuggestions: bool
    targeting: dict[str, Any]
    draftAdId: Optional[int]
    lastSaveError: Optional[str]


class LaunchResultResponse(BaseModel):
    success: bool
    adId: int
    adSetIds: list[int]
    metaResponses: list[dict[str, Any]]
