import pytest
from sqlalchemy import func, select

from draperads.db.enums import AdStatusEnum
from draperads.db.models import AdSet
from draperads.db.repositories import AdsRepository
from draperads.services.publishing import PublishError, publish_ad_to_ad_sets


class FlakyPublisher:
    def __init__(self, fail_on_call=None, response=None):
        self.calls = 0
        self.fail_on_call = fail_on_call
        self.response = response

    def publish(self, *, ad_id, ad_set_name, account_id):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("platform rejected the ad set")
        if self.response is not None:
            return self.response
        return {"id": f"meta_ad_{ad_id}", "adset_id": f"meta_adset_{self.calls}", "status": "ACTIVE"}


def _ad(db_session):
    return AdsRepository(db_session).create(
        primary_text="Copy",
        headline="Headline",
        cta="learn_more",
        website_url="https://example.com",
        brand_name="DraperAds",
    )


def _fields(name):
    return {
        "name": name,
        "account_id": "account_1",
        "campaign_objective": "traffic",
        "placements": ["facebook"],
        "campaign_id": "c1_1",
    }


def test_publishes_into_every_ad_set(db_session):
    ad = _ad(db_session)

    results = publish_ad_to_ad_sets(
        db_session,
        ad=ad,
        ad_sets_fields=[_fields("First"), _fields("Second")],
        publisher=FlakyPublisher(),
    )

    assert [result.ad_set.meta_ad_set_id for result in results] == ["meta_adset_1", "meta_adset_2"]
    assert all(result.ad_set.status == AdStatusEnum.active for result in results)
    assert ad.status == AdStatusEnum.active
    assert ad.published_at is not None


def test_failure_on_a_later_ad_set_rolls_back_all(db_session):
    ad = _ad(db_session)
    ad_id = ad.id

    with pytest.raises(RuntimeError):
        publish_ad_to_ad_sets(
            db_session,
            ad=ad,
            ad_sets_fields=[_fields("First"), _fields("Second")],
            publisher=FlakyPublisher(fail_on_call=2),
        )

    assert db_session.scalar(select(func.count()).select_from(AdSet)) == 0
    reloaded = AdsRepository(db_session).get(ad_id)
    assert reloaded.status == AdStatusEnum.draft
    assert reloaded.meta_ad_id is None


def test_incomplete_platform_response_is_rejected(db_session):
    ad = _ad(db_session)

    with pytest.raises(PublishError):
        publish_ad_to_ad_sets(
            db_session,
            ad=ad,
            ad_sets_fields=[_fields("Only")],
            publisher=FlakyPublisher(response={"id": "meta_ad_1"}),
        )

    assert db_session.scalar(select(func.count()).select_from(AdSet)) == 0
