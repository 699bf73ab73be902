import pytest

from draperads.services.targeting import AdSetOption, CampaignOption, FixtureTargetingProvider
from draperads.wizard.selection import SelectionError, TargetingSelection, search, sort_ad_sets, sort_campaigns


def test_campaigns_sort_active_first_then_by_name():
    campaigns = FixtureTargetingProvider().list_campaigns("account_1")

    ordered = [campaign.name for campaign in sort_campaigns(campaigns)]

    assert ordered == ["Product Launch: Eco Series", "Summer Sale 2025", "Brand Awareness Q2"]


def test_ad_sets_group_under_active_campaigns_first():
    campaigns = {
        "c_paused": CampaignOption(id="c_paused", name="Alpha", status="paused"),
        "c_active": CampaignOption(id="c_active", name="Zulu", status="active"),
    }
    ad_sets = [
        AdSetOption(id="a1", name="Anything", status="active", campaign_id="c_paused"),
        AdSetOption(id="a2", name="Beta", status="paused", campaign_id="c_active"),
        AdSetOption(id="a3", name="Gamma", status="active", campaign_id="c_active"),
    ]

    ordered = [ad_set.id for ad_set in sort_ad_sets(ad_sets, campaigns)]

    assert ordered == ["a3", "a2", "a1"]


def test_search_is_case_insensitive_and_blank_matches_all():
    campaigns = FixtureTargetingProvider().list_campaigns("account_2")

    assert [campaign.id for campaign in search(campaigns, "WINTER")] == ["c2_1"]
    assert len(search(campaigns, "   ")) == len(campaigns)
    assert search(campaigns, "no such campaign") == []


def test_deselecting_a_campaign_drops_its_ad_sets():
    selection = TargetingSelection(account_id="account_1")
    selection.select_campaign("c1_1")
    selection.select_campaign("c1_2")
    selection.select_ad_set("as1_1", "c1_1")
    selection.select_ad_set("as1_4", "c1_2")

    selection.deselect_campaign("c1_1")

    assert selection.campaign_ids == ["c1_2"]
    assert selection.ad_set_ids == ["as1_4"]


def test_ad_set_requires_its_campaign_to_be_selected():
    selection = TargetingSelection(account_id="account_1")

    with pytest.raises(SelectionError):
        selection.select_ad_set("as1_1", "c1_1")


def test_changing_account_clears_selection():
    selection = TargetingSelection(account_id="account_1")
    selection.select_campaign("c1_1")
    selection.select_ad_set("as1_1", "c1_1")

    selection.change_account("account_2")

    assert selection.account_id == "account_2"
    assert selection.campaign_ids == []
    assert selection.ad_set_ids == []


def test_selection_round_trips_and_drops_orphan_ad_sets():
    restored = TargetingSelection.from_dict(
        {
            "adAccountId": "account_1",
            "campaignIds": ["c1_1"],
            "adSets": [{"id": "as1_1", "campaignId": "c1_1"}, {"id": "as1_4", "campaignId": "c1_2"}],
        },
        default_account="account_1",
    )

    assert restored.to_dict() == {
        "adAccountId": "account_1",
        "campaignIds": ["c1_1"],
        "adSets": [{"id": "as1_1", "campaignId": "c1_1"}],
    }


def test_targeting_routes_serve_fixture_data(api_client):
    accounts = api_client.get("/api/targeting/accounts").json()
    assert [account["id"] for account in accounts] == ["account_1", "account_2"]

    campaigns = api_client.get("/api/targeting/accounts/account_1/campaigns", params={"search": "sale"}).json()
    assert [campaign["id"] for campaign in campaigns] == ["c1_1"]

    ad_sets = api_client.get(
        "/api/targeting/accounts/account_1/ad-sets",
        params={"campaignIds": "c1_2,c1_3"},
    ).json()
    assert {ad_set["campaign_id"] for ad_set in ad_sets} == {"c1_2", "c1_3"}
    assert ad_sets[-1]["campaign_id"] == "c1_3"

    assert api_client.get("/api/targeting/accounts/account_1/ad-sets").json() == []
