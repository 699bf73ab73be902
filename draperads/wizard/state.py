from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any, Callable, Optional

from pydantic import ValidationError

from draperads.db.models import Ad
from draperads.schemas.wizard import CreativeForm
from draperads.services.image_analysis import CopySuggestions
from draperads.wizard.autosave import DraftAutosaver
from draperads.wizard.selection import TargetingSelection, ordered_unique

logger = logging.getLogger("wizard.state")

DEFAULT_ACCOUNT_ID = "account_1"
DEFAULT_OBJECTIVE = "traffic"
DEFAULT_PLACEMENTS = ["facebook", "instagram"]

ENHANCEMENT_FLAGS = (
    "translateText",
    "addOverlays",
    "addCatalogItems",
    "visualTouchUps",
    "music",
    "animation3d",
    "textImprovements",
    "storeLocations",
    "enhanceCta",
    "addSiteLinks",
    "imageAnimation",
)


class WizardStep(IntEnum):
    DESIGN = 1
    TARGET = 2
    LAUNCH = 3


StepListener = Callable[[WizardStep, WizardStep], None]


class StepTracker:
    """Current wizard step; listeners are told about every change."""

    def __init__(self, step: WizardStep = WizardStep.DESIGN) -> None:
        self._step = step
        self._listeners: list[StepListener] = []

    @property
    def step(self) -> WizardStep:
        return self._step

    def subscribe(self, listener: StepListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, step: WizardStep) -> None:
        previous = self._step
        if step == previous:
            return
        self._step = step
        for listener in list(self._listeners):
            listener(previous, step)


class CreativeValidationError(ValueError):
    def __init__(self, errors: list[dict[str, str]]) -> None:
        super().__init__("Creative failed validation")
        self.errors = errors


class WizardStateError(ValueError):
    pass


def _validation_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())) or "body",
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]


@dataclass
class Creative:
    primaryText: str = (
        "Transform your social media presence with our AI-powered design tools. No design skills needed!"
    )
    headline: str = "Create stunning ads in minutes!"
    description: Optional[str] = "No design skills needed. Try it today!"
    cta: str = "sign_up"
    websiteUrl: str = "https://example.com/signup"
    brandName: str = "DraperAds"
    brandLogoUrl: Optional[str] = None
    adType: str = "conversions"
    adFormat: str = "image"
    customizePlacements: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TargetingDraft:
    selection: TargetingSelection = field(default_factory=lambda: TargetingSelection(account_id=DEFAULT_ACCOUNT_ID))
    campaignObjective: str = DEFAULT_OBJECTIVE
    placements: list[str] = field(default_factory=lambda: list(DEFAULT_PLACEMENTS))
    pageId: Optional[str] = None
    pageName: Optional[str] = None
    instagramAccountId: Optional[str] = None
    instagramAccountName: Optional[str] = None
    enhancements: dict[str, bool] = field(default_factory=lambda: {flag: False for flag in ENHANCEMENT_FLAGS})
    allowMultiAdvertiserAds: bool = False
    enableFlexibleMedia: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.selection.to_dict(),
            "campaignObjective": self.campaignObjective,
            "placements": list(self.placements),
            "pageId": self.pageId,
            "pageName": self.pageName,
            "instagramAccountId": self.instagramAccountId,
            "instagramAccountName": self.instagramAccountName,
            "enhancements": dict(self.enhancements),
            "allowMultiAdvertiserAds": self.allowMultiAdvertiserAds,
            "enableFlexibleMedia": self.enableFlexibleMedia,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TargetingDraft":
        draft = cls(selection=TargetingSelection.from_dict(data, default_account=DEFAULT_ACCOUNT_ID))
        draft.campaignObjective = data.get("campaignObjective") or DEFAULT_OBJECTIVE
        draft.placements = ordered_unique(data.get("placements") or DEFAULT_PLACEMENTS)
        draft.pageId = data.get("pageId")
        draft.pageName = data.get("pageName")
        draft.instagramAccountId = data.get("instagramAccountId")
        draft.instagramAccountName = data.get("instagramAccountName")
        for flag, enabled in (data.get("enhancements") or {}).items():
            if flag in draft.enhancements:
                draft.enhancements[flag] = bool(enabled)
        draft.allowMultiAdvertiserAds = bool(data.get("allowMultiAdvertiserAds"))
        draft.enableFlexibleMedia = bool(data.get("enableFlexibleMedia"))
        return draft


class WizardSession:
    """Server-side state of one browser's ad creation wizard."""

    def __init__(self, *, autosave_delay: float) -> None:
        self.creative = Creative()
        self.targeting = TargetingDraft()
        self.steps = StepTracker()
        self.media_url: Optional[str] = None
        self.suggestions: Optional[CopySuggestions] = None
        self.suggestions_status: Optional[str] = None
        self.has_applied_ai_suggestions = False
        self.autosaver = DraftAutosaver(self.snapshot, delay=autosave_delay)

    @property
    def step(self) -> WizardStep:
        return self.steps.step

    @property
    def draft_ad_id(self) -> Optional[int]:
        return self.autosaver.draft_ad_id

    def creative_errors(self) -> list[dict[str, str]]:
        try:
            CreativeForm(**self.creative.to_dict())
        except ValidationError as exc:
            return _validation_errors(exc)
        return []

    def update_creative(self, changes: dict[str, Any]) -> None:
        """
        Apply a partial edit unless one of the edited fields is invalid.

        Fields left invalid by an earlier action (for example cleared suggestions) do not block
        edits to other fields; they only block leaving the design step.
        """
        merged = {**self.creative.to_dict(), **changes}
        try:
            CreativeForm(**merged)
        except ValidationError as exc:
            errors = [error for error in _validation_errors(exc) if error["field"] in changes]
            if errors:
                raise CreativeValidationError(errors) from exc
        self.creative = Creative(**merged)
        self.autosaver.schedule()

    def set_media(
        self,
        media_url: str,
        *,
        suggestions: Optional[CopySuggestions] = None,
        suggestions_status: Optional[str] = None,
    ) -> None:
        self.media_url = media_url
        self.suggestions = suggestions
        self.suggestions_status = suggestions_status
        if suggestions is not None and suggestions_status == "generated":
            self.apply_suggestions()
            return
        self.autosaver.schedule()

    def apply_suggestions(self) -> None:
        if self.suggestions is None:
            raise WizardStateError("No AI suggestions are available")
        suggestions = self.suggestions
        creative = self.creative
        # Trim to the form limits so the copy stays publishable.
        creative.headline = (suggestions.headline or creative.headline)[:40]
        creative.primaryText = (suggestions.primary_text or creative.primaryText)[:125]
        creative.description = (suggestions.description or creative.description or "")[:40] or None
        creative.cta = suggestions.cta or creative.cta
        self.has_applied_ai_suggestions = True
        self.autosaver.schedule()

    def clear_suggestions(self) -> None:
        self.creative.headline = ""
        self.creative.primaryText = ""
        self.creative.description = None
        self.creative.cta = "learn_more"
        self.has_applied_ai_suggestions = False
        self.autosaver.schedule()

    def update_targeting(self, changes: dict[str, Any]) -> None:
        targeting = self.targeting
        if "adAccountId" in changes and changes["adAccountId"]:
            targeting.selection.change_account(changes["adAccountId"])
        if changes.get("campaignObjective"):
            targeting.campaignObjective = changes["campaignObjective"]
        if changes.get("placements") is not None:
            targeting.placements = ordered_unique(changes["placements"])
        for key in ("pageId", "pageName", "instagramAccountId", "instagramAccountName"):
            if key in changes:
                setattr(targeting, key, changes[key])
        for flag, enabled in (changes.get("enhancements") or {}).items():
            if flag not in targeting.enhancements:
                raise WizardStateError(f"Unknown enhancement: {flag}")
            targeting.enhancements[flag] = bool(enabled)
        for key in ("allowMultiAdvertiserAds", "enableFlexibleMedia"):
            if changes.get(key) is not None:
                setattr(targeting, key, bool(changes[key]))
        self.autosaver.schedule()

    def select_campaign(self, campaign_id: str) -> None:
        self.targeting.selection.select_campaign(campaign_id)
        self.autosaver.schedule()

    def deselect_campaign(self, campaign_id: str) -> None:
        self.targeting.selection.deselect_campaign(campaign_id)
        self.autosaver.schedule()

    def select_ad_set(self, ad_set_id: str, campaign_id: str) -> None:
        self.targeting.selection.select_ad_set(ad_set_id, campaign_id)
        self.autosaver.schedule()

    def deselect_ad_set(self, ad_set_id: str) -> None:
        self.targeting.selection.deselect_ad_set(ad_set_id)
        self.autosaver.schedule()

    async def go_to(self, step: WizardStep) -> None:
        current = self.step
        if step == current:
            return
        if step > current + 1:
            raise WizardStateError("Steps must be completed in order")
        if current == WizardStep.DESIGN and step > current:
            errors = self.creative_errors()
            if errors:
                raise CreativeValidationError(errors)
            if not self.media_url:
                raise WizardStateError("Upload an image or video before continuing")
        if current == WizardStep.TARGET and step == WizardStep.LAUNCH:
            if not self.targeting.selection.ad_set_ids:
                raise WizardStateError("Select at least one ad set before continuing")
            await self.autosaver.save_now()
        self.steps.set(step)

    def snapshot(self) -> dict[str, Any]:
        """Ad row columns for the current draft."""
        creative = self.creative
        return {
            "primary_text": creative.primaryText,
            "headline": creative.headline,
            "description": creative.description,
            "cta": creative.cta,
            "website_url": creative.websiteUrl,
            "brand_name": creative.brandName,
            "brand_logo_url": creative.brandLogoUrl,
            "media_url": self.media_url,
            "ad_type": creative.adType,
            "ad_format": creative.adFormat,
            "customize_placements": creative.customizePlacements,
            "targeting": {
                **self.targeting.to_dict(),
                "hasAppliedAiSuggestions": self.has_applied_ai_suggestions,
            },
        }

    def rehydrate(self, ad: Ad) -> None:
        """Load a persisted draft into a wizard that is still on the first step."""
        if self.step != WizardStep.DESIGN:
            return
        self.creative = Creative(
            primaryText=ad.primary_text,
            headline=ad.headline,
            description=ad.description,
            cta=ad.cta,
            websiteUrl=ad.website_url,
            brandName=ad.brand_name,
            brandLogoUrl=ad.brand_logo_url,
            adType=ad.ad_type or Creative.adType,
            adFormat=ad.ad_format or Creative.adFormat,
            customizePlacements=bool(ad.customize_placements),
        )
        self.media_url = ad.media_url
        targeting = dict(ad.targeting or {})
        self.has_applied_ai_suggestions = bool(targeting.pop("hasAppliedAiSuggestions", False))
        self.targeting = TargetingDraft.from_dict(targeting)
        self.autosaver.draft_ad_id = ad.id
        logger.info("Rehydrated wizard from draft", extra={"ad_id": ad.id})

    def reset(self) -> None:
        """Start a fresh ad; step listeners stay subscribed."""
        self.autosaver.close()
        self.creative = Creative()
        self.targeting = TargetingDraft()
        self.media_url = None
        self.suggestions = None
        self.suggestions_status = None
        self.has_applied_ai_suggestions = False
        self.autosaver = DraftAutosaver(self.snapshot, delay=self.autosaver.debouncer.delay)
        self.steps.set(WizardStep.DESIGN)

    def to_response(self) -> dict[str, Any]:
        return {
            "step": int(self.step),
            "creative": self.creative.to_dict(),
            "mediaUrl": self.media_url,
            "suggestions": self.suggestions.as_payload() if self.suggestions else None,
            "suggestionsStatus": self.suggestions_status,
            "hasAppliedAiSuggestions": self.has_applied_ai_suggestions,
            "targeting": self.targeting.to_dict(),
            "draftAdId": self.draft_ad_id,
            "lastSaveError": self.autosaver.last_error,
        }
