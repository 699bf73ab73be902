from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from draperads.services.meta_ads import MetaAdsClient

logger = logging.getLogger(__name__)

ACTIVE = "active"
PAUSED = "paused"


@dataclass(frozen=True)
class AccountOption:
    id: str
    name: str


@dataclass(frozen=True)
class CampaignOption:
    id: str
    name: str
    status: str
    objective: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE


@dataclass(frozen=True)
class AdSetOption:
    id: str
    name: str
    status: str
    campaign_id: str

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE


@dataclass(frozen=True)
class PageOption:
    id: str
    name: str


@dataclass(frozen=True)
class InstagramAccountOption:
    id: str
    username: str
    name: str | None = None


class TargetingDataProvider(Protocol):
    def list_accounts(self) -> list[AccountOption]: ...

    def list_campaigns(self, account_id: str) -> list[CampaignOption]: ...

    def list_ad_sets(self, account_id: str, campaign_ids: Iterable[str]) -> list[AdSetOption]: ...

    def list_pages(self, account_id: str) -> list[PageOption]: ...

    def list_instagram_accounts(self, account_id: str) -> list[InstagramAccountOption]: ...


_FIXTURE_ACCOUNTS = [
    AccountOption(id="account_1", name="Meta Ads Account (Main)"),
    AccountOption(id="account_2", name="Meta Ads Account (Secondary)"),
]

_FIXTURE_CAMPAIGNS = {
    "account_1": [
        CampaignOption(id="c1_1", name="Summer Sale 2025", status=ACTIVE, objective="conversions"),
        CampaignOption(id="c1_2", name="Product Launch: Eco Series", status=ACTIVE, objective="traffic"),
        CampaignOption(id="c1_3", name="Brand Awareness Q2", status=PAUSED, objective="awareness"),
    ],
    "account_2": [
        CampaignOption(id="c2_1", name="Winter Holiday Special", status=PAUSED, objective="conversions"),
        CampaignOption(id="c2_2", name="Lead Generation - Enterprise", status=ACTIVE, objective="leads"),
        CampaignOption(id="c2_3", name="Social Media Contest", status=ACTIVE, objective="awareness"),
    ],
}

_FIXTURE_AD_SETS = {
    "account_1": [
        AdSetOption(id="as1_1", name="Women 25-34 - Interests: Fashion", status=ACTIVE, campaign_id="c1_1"),
        AdSetOption(id="as1_2", name="Men 25-44 - Lookalike Buyers", status=PAUSED, campaign_id="c1_1"),
        AdSetOption(id="as1_3", name="Retargeting - Cart Abandoners", status=ACTIVE, campaign_id="c1_1"),
        AdSetOption(id="as1_4", name="Eco Enthusiasts - Broad", status=ACTIVE, campaign_id="c1_2"),
        AdSetOption(id="as1_5", name="Sustainability Followers 18-35", status=PAUSED, campaign_id="c1_2"),
        AdSetOption(id="as1_6", name="Broad Reach - US", status=PAUSED, campaign_id="c1_3"),
    ],
    "account_2": [
        AdSetOption(id="as2_1", name="Holiday Shoppers - Gift Buyers", status=ACTIVE, campaign_id="c2_1"),
        AdSetOption(id="as2_2", name="IT Decision Makers", status=ACTIVE, campaign_id="c2_2"),
        AdSetOption(id="as2_3", name="Company Size 500+", status=PAUSED, campaign_id="c2_2"),
        AdSetOption(id="as2_4", name="Contest Entrants - Lookalike", status=ACTIVE, campaign_id="c2_3"),
    ],
}

_FIXTURE_PAGES = {
    "account_1": [
        PageOption(id="page_1", name="DraperAds Official"),
        PageOption(id="page_2", name="DraperAds Shop"),
    ],
    "account_2": [PageOption(id="page_3", name="DraperAds Enterprise")],
}

_FIXTURE_INSTAGRAM_ACCOUNTS = {
    "account_1": [
        InstagramAccountOption(id="ig_1", username="@draperads", name="DraperAds"),
        InstagramAccountOption(id="ig_2", username="@draperads.shop", name="DraperAds Shop"),
    ],
    "account_2": [InstagramAccountOption(id="ig_3", username="@draperads.business", name="DraperAds Business")],
}


class FixtureTargetingProvider:
    """Static sample accounts for development and tests."""

    def list_accounts(self) -> list[AccountOption]:
        return list(_FIXTURE_ACCOUNTS)

    def list_campaigns(self, account_id: str) -> list[CampaignOption]:
        return list(_FIXTURE_CAMPAIGNS.get(account_id, []))

    def list_ad_sets(self, account_id: str, campaign_ids: Iterable[str]) -> list[AdSetOption]:
        wanted = set(campaign_ids)
        return [ad_set for ad_set in _FIXTURE_AD_SETS.get(account_id, []) if ad_set.campaign_id in wanted]

    def list_pages(self, account_id: str) -> list[PageOption]:
        return list(_FIXTURE_PAGES.get(account_id, []))

    def list_instagram_accounts(self, account_id: str) -> list[InstagramAccountOption]:
        return list(_FIXTURE_INSTAGRAM_ACCOUNTS.get(account_id, []))


def _normalize_status(raw: object) -> str:
    return ACTIVE if str(raw or "").upper() == "ACTIVE" else PAUSED


class MetaTargetingProvider:
    """Targeting data read live from the connected Meta account."""

    def __init__(self, client: MetaAdsClient) -> None:
        self.client = client

    def list_accounts(self) -> list[AccountOption]:
        return [
            AccountOption(id=str(item.get("account_id") or item.get("id")), name=str(item.get("name") or ""))
            for item in self.client.get_ad_accounts()
        ]

    def list_campaigns(self, account_id: str) -> list[CampaignOption]:
        items = self.client.fetch_all_pages(
            lambda after: self.client.list_campaigns(ad_account_id=account_id, after=after)
        )
        return [
            CampaignOption(
                id=str(item["id"]),
                name=str(item.get("name") or ""),
                status=_normalize_status(item.get("effective_status") or item.get("status")),
                objective=item.get("objective"),
            )
            for item in items
            if item.get("id")
        ]

    def list_ad_sets(self, account_id: str, campaign_ids: Iterable[str]) -> list[AdSetOption]:
        wanted = set(campaign_ids)
        if not wanted:
            return []
        items = self.client.fetch_all_pages(
            lambda after: self.client.list_adsets(ad_account_id=account_id, after=after)
        )
        return [
            AdSetOption(
                id=str(item["id"]),
                name=str(item.get("name") or ""),
                status=_normalize_status(item.get("effective_status") or item.get("status")),
                campaign_id=str(item.get("campaign_id")),
            )
            for item in items
            if item.get("id") and str(item.get("campaign_id")) in wanted
        ]

    def list_pages(self, account_id: str) -> list[PageOption]:
        payload = self.client.list_promote_pages(ad_account_id=account_id)
        data = payload.get("data") or []
        return [PageOption(id=str(item["id"]), name=str(item.get("name") or "")) for item in data if item.get("id")]

    def list_instagram_accounts(self, account_id: str) -> list[InstagramAccountOption]:
        accounts: list[InstagramAccountOption] = []
        for page in self.list_pages(account_id):
            for item in self.client.get_instagram_accounts(page.id):
                if not item.get("id"):
                    continue
                username = str(item.get("username") or "")
                accounts.append(
                    InstagramAccountOption(
                        id=str(item["id"]),
                        username=f"@{username}" if username and not username.startswith("@") else username,
                        name=item.get("name"),
                    )
                )
        return accounts
