from fastapi.testclient import TestClient
from sqlalchemy import func, select

from conftest import ad_payload, ad_set_payload, login_as
from draperads import main as main_module
from draperads.db.models import Ad, AdSet
from draperads.routers import publish as publish_router


def _publish_body(ad_id, **overrides):
    return {"adId": ad_id, "adSetData": ad_set_payload(**overrides)}


def test_publish_requires_sign_in_and_writes_nothing(api_client, db_session):
    ad_id = api_client.post("/api/ads", json=ad_payload()).json()["id"]

    resp = api_client.post("/api/publish", json=_publish_body(ad_id))

    assert resp.status_code == 401
    assert resp.json()["loginUrl"] == "/api/login"
    assert db_session.scalar(select(func.count()).select_from(AdSet)) == 0
    assert db_session.get(Ad, ad_id).status.value == "draft"


def test_publish_marks_ad_and_ad_set_active(auth_client, db_session):
    ad_id = auth_client.post("/api/ads", json=ad_payload()).json()["id"]

    resp = auth_client.post("/api/publish", json=_publish_body(ad_id, campaignId="c1_1"))

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["ad"]["status"] == "active"
    assert body["ad"]["metaAdId"].startswith("meta_ad_")
    assert body["ad"]["publishedAt"] is not None
    assert body["adSet"]["status"] == "active"
    assert body["adSet"]["adId"] == ad_id
    assert body["adSet"]["campaignId"] == "c1_1"
    assert body["adSet"]["metaAdSetId"].startswith("meta_adset_")
    assert body["metaResponse"]["status"] == "ACTIVE"


def test_publish_unknown_ad_returns_404_without_ad_set(auth_client, db_session):
    resp = auth_client.post("/api/publish", json=_publish_body(999999))

    assert resp.status_code == 404
    assert db_session.scalar(select(func.count()).select_from(AdSet)) == 0


def test_publish_rejects_mismatched_ad_ids(auth_client):
    ad_id = auth_client.post("/api/ads", json=ad_payload()).json()["id"]

    resp = auth_client.post("/api/publish", json=_publish_body(ad_id, adId=ad_id + 1))

    assert resp.status_code == 400


def test_publish_rolls_back_when_platform_call_fails(db_session, monkeypatch):
    client = TestClient(main_module.app, raise_server_exceptions=False)
    login_as(client, db_session)
    ad_id = client.post("/api/ads", json=ad_payload()).json()["id"]

    def failing_publish(**_kwargs):
        raise RuntimeError("platform unavailable")

    monkeypatch.setattr(publish_router.publisher, "publish", failing_publish)

    resp = client.post("/api/publish", json=_publish_body(ad_id))

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error."}
    db_session.expire_all()
    assert db_session.scalar(select(func.count()).select_from(AdSet)) == 0
    ad = db_session.get(Ad, ad_id)
    assert ad.status.value == "draft"
    assert ad.meta_ad_id is None


def test_expired_session_without_refresh_token_is_rejected(api_client, db_session):
    login_as(api_client, db_session, expires_in=-60)

    resp = api_client.post("/api/publish", json=_publish_body(1))

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Session expired"
