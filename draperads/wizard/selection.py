from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence, TypeVar

from draperads.services.targeting import AdSetOption, CampaignOption

T = TypeVar("T", CampaignOption, AdSetOption)


class SelectionError(ValueError):
    pass


def search(items: Iterable[T], query: Optional[str]) -> list[T]:
    """Case-insensitive substring match on the item name."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(items)
    return [item for item in items if needle in item.name.lower()]


def sort_campaigns(campaigns: Iterable[CampaignOption]) -> list[CampaignOption]:
    return sorted(campaigns, key=lambda campaign: (not campaign.is_active, campaign.name.lower()))


def sort_ad_sets(
    ad_sets: Iterable[AdSetOption],
    campaigns_by_id: Mapping[str, CampaignOption],
) -> list[AdSetOption]:
    """Group by parent campaign (active campaigns first, then by name), then active ad sets first, then name."""

    def key(ad_set: AdSetOption):
        parent = campaigns_by_id.get(ad_set.campaign_id)
        parent_active = parent.is_active if parent else False
        parent_name = parent.name.lower() if parent else ad_set.campaign_id.lower()
        return (not parent_active, parent_name, not ad_set.is_active, ad_set.name.lower())

    return sorted(ad_sets, key=key)


@dataclass
class TargetingSelection:
    account_id: str
    campaign_ids: list[str] = field(default_factory=list)
    # ad set id -> parent campaign id, in selection order
    ad_sets: dict[str, str] = field(default_factory=dict)

    @property
    def ad_set_ids(self) -> list[str]:
        return list(self.ad_sets)

    def change_account(self, account_id: str) -> None:
        if account_id == self.account_id:
            return
        self.account_id = account_id
        self.campaign_ids.clear()
        self.ad_sets.clear()

    def select_campaign(self, campaign_id: str) -> None:
        if campaign_id not in self.campaign_ids:
            self.campaign_ids.append(campaign_id)

    def deselect_campaign(self, campaign_id: str) -> None:
        if campaign_id in self.campaign_ids:
            self.campaign_ids.remove(campaign_id)
        for ad_set_id, parent_id in list(self.ad_sets.items()):
            if parent_id == campaign_id:
                del self.ad_sets[ad_set_id]

    def select_ad_set(self, ad_set_id: str, campaign_id: str) -> None:
        if campaign_id not in self.campaign_ids:
            raise SelectionError("Select the ad set's campaign first")
        self.ad_sets[ad_set_id] = campaign_id

    def deselect_ad_set(self, ad_set_id: str) -> None:
        self.ad_sets.pop(ad_set_id, None)

    def to_dict(self) -> dict:
        return {
            "adAccountId": self.account_id,
            "campaignIds": list(self.campaign_ids),
            "adSets": [{"id": ad_set_id, "campaignId": parent} for ad_set_id, parent in self.ad_sets.items()],
        }

    @classmethod
    def from_dict(cls, data: Mapping, *, default_account: str) -> "TargetingSelection":
        selection = cls(account_id=str(data.get("adAccountId") or default_account))
        for campaign_id in data.get("campaignIds") or []:
            selection.select_campaign(str(campaign_id))
        for entry in data.get("adSets") or []:
            campaign_id = str(entry.get("campaignId") or "")
            if campaign_id in selection.campaign_ids:
                selection.ad_sets[str(entry.get("id"))] = campaign_id
        return selection


def ordered_unique(values: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
