from __future__ import annotations

from typing import Any

from draperads.services.targeting import TargetingDataProvider
from draperads.wizard.state import ENHANCEMENT_FLAGS, WizardSession

OBJECTIVE_LABELS = {
    "conversions": "Conversions",
    "leads": "Lead Generation",
    "traffic": "Website Traffic",
    "awareness": "Brand Awareness",
}

FORMAT_LABELS = {
    "image": "Image Ad",
    "video": "Video Ad",
    "carousel": "Carousel Ad",
    "collection": "Collection Ad",
}

CTA_LABELS = {
    "learn_more": "Learn More",
    "sign_up": "Sign Up",
    "shop_now": "Shop Now",
    "download": "Download",
    "get_offer": "Get Offer",
}

PLACEMENT_LABELS = {
    "facebook": "Facebook",
    "instagram": "Instagram",
    "messenger": "Messenger",
    "audience_network": "Audience Network",
    "feeds": "Feeds",
    "stories": "Stories",
    "rightColumn": "Right Column",
}


def _label(labels: dict[str, str], value: str | None) -> str:
    if not value:
        return ""
    return labels.get(value, value.replace("_", " ").title())


def launch_label(ad_set_count: int) -> str:
    return f"Launch to {ad_set_count} Ad Set{'' if ad_set_count == 1 else 's'}"


def launch_blockers(wizard: WizardSession, *, meta_connected: bool, require_meta_connection: bool) -> list[str]:
    blockers: list[str] = []
    if not wizard.media_url:
        blockers.append("Upload an image or video")
    if not wizard.targeting.selection.ad_set_ids:
        blockers.append("Select at least one ad set")
    if wizard.creative_errors():
        blockers.append("Fix the ad copy errors")
    if require_meta_connection and not meta_connected:
        blockers.append("Connect your Meta account")
    return blockers


def build_launch_summary(
    wizard: WizardSession,
    provider: TargetingDataProvider,
    *,
    meta_connected: bool,
    require_meta_connection: bool,
) -> dict[str, Any]:
    creative = wizard.creative
    targeting = wizard.targeting
    selection = targeting.selection

    account_names = {account.id: account.name for account in provider.list_accounts()}
    campaigns = {campaign.id: campaign for campaign in provider.list_campaigns(selection.account_id)}
    ad_sets = {
        ad_set.id: ad_set for ad_set in provider.list_ad_sets(selection.account_id, selection.campaign_ids)
    }

    campaign_rows = [
        {"id": campaign_id, "name": campaigns[campaign_id].name if campaign_id in campaigns else f"Campaign {campaign_id}"}
        for campaign_id in selection.campaign_ids
    ]
    ad_set_rows = [
        {
            "id": ad_set_id,
            "name": ad_sets[ad_set_id].name if ad_set_id in ad_sets else f"Ad Set {ad_set_id}",
            "campaignId": campaign_id,
        }
        for ad_set_id, campaign_id in selection.ad_sets.items()
    ]
    enabled_enhancements = [flag for flag in ENHANCEMENT_FLAGS if targeting.enhancements.get(flag)]

    badges = [
        _label(OBJECTIVE_LABELS, creative.adType),
        _label(FORMAT_LABELS, creative.adFormat),
        _label(CTA_LABELS, creative.cta),
    ]
    if wizard.has_applied_ai_suggestions:
        badges.append("AI Suggested Copy")
    if enabled_enhancements:
        badges.append(f"{len(enabled_enhancements)} Advantage+ Enhancements")

    blockers = launch_blockers(
        wizard,
        meta_connected=meta_connected,
        require_meta_connection=require_meta_connection,
    )
    return {
        "adName": f"Ad for {creative.brandName}",
        "accountId": selection.account_id,
        "accountName": account_names.get(selection.account_id, selection.account_id),
        "campaigns": campaign_rows,
        "adSets": ad_set_rows,
        "placements": [_label(PLACEMENT_LABELS, placement) for placement in targeting.placements],
        "objective": _label(OBJECTIVE_LABELS, targeting.campaignObjective),
        "adType": _label(OBJECTIVE_LABELS, creative.adType),
        "adFormat": _label(FORMAT_LABELS, creative.adFormat),
        "cta": _label(CTA_LABELS, creative.cta),
        "pageName": targeting.pageName,
        "instagramAccountName": targeting.instagramAccountName,
        "enhancements": enabled_enhancements,
        "badges": [badge for badge in badges if badge],
        "mediaUrl": wizard.media_url,
        "canLaunch": not blockers,
        "blockers": blockers,
        "launchLabel": launch_label(len(ad_set_rows)),
    }
