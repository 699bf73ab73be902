from sqlalchemy import func, select

from conftest import ad_payload, ad_set_payload
from draperads.db.models import Ad, AdSet


def test_health_endpoints(api_client):
    health = api_client.get("/health")
    db_health = api_client.get("/health/db")

    assert health.status_code == 200
    assert health.json() == {"ok": True}
    assert db_health.json() == {"db": "ok"}


def test_catalog_lists_seeded_templates_and_accounts(api_client):
    templates = api_client.get("/api/templates")
    accounts = api_client.get("/api/ad-accounts")

    assert templates.status_code == 200
    assert [template["name"] for template in templates.json()] == ["Standard Ad", "Carousel", "Collection"]
    assert {account["accountId"] for account in accounts.json()} == {"1234567890", "0987654321"}


def test_create_ad_with_only_required_fields_is_a_draft(api_client):
    resp = api_client.post("/api/ads", json=ad_payload())

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "draft"
    assert body["brandName"] == "DraperAds"
    assert body["statistics"] == {}
    assert body["publishedAt"] is None

    listed = api_client.get("/api/ads").json()
    assert [ad["id"] for ad in listed] == [body["id"]]
    assert api_client.get(f"/api/ads/{body['id']}").json()["headline"] == "Coffee, on repeat"


def test_create_ad_missing_headline_returns_field_errors(api_client, db_session):
    payload = ad_payload()
    del payload["headline"]

    resp = api_client.post("/api/ads", json=payload)

    assert resp.status_code == 400
    body = resp.json()
    assert body["detail"] == "Invalid request data"
    assert any(error["field"] == "headline" for error in body["errors"])
    assert db_session.scalar(select(func.count()).select_from(Ad)) == 0


def test_blank_brand_name_is_rejected(api_client):
    resp = api_client.post("/api/ads", json=ad_payload(brandName=""))

    assert resp.status_code == 400
    assert any(error["field"] == "brandName" for error in resp.json()["errors"])


def test_get_unknown_ad_returns_404_and_bad_id_returns_400(api_client):
    assert api_client.get("/api/ads/999999").status_code == 404
    assert api_client.get("/api/ads/not-a-number").status_code == 400


def test_status_update_to_published_sets_published_at(api_client):
    ad_id = api_client.post("/api/ads", json=ad_payload()).json()["id"]

    completed = api_client.patch(f"/api/ads/{ad_id}/status", json={"status": "completed"})
    assert completed.status_code == 200
    assert completed.json()["publishedAt"] is None

    published = api_client.patch(f"/api/ads/{ad_id}/status", json={"status": "published"})
    assert published.json()["status"] == "published"
    assert published.json()["publishedAt"] is not None


def test_status_update_rejects_unknown_status_and_missing_ad(api_client):
    ad_id = api_client.post("/api/ads", json=ad_payload()).json()["id"]

    assert api_client.patch(f"/api/ads/{ad_id}/status", json={"status": "archived"}).status_code == 400
    assert api_client.patch("/api/ads/999999/status", json={"status": "active"}).status_code == 404


def test_update_draft_and_reject_update_after_publish(api_client):
    ad_id = api_client.post("/api/ads", json=ad_payload()).json()["id"]

    updated = api_client.put(f"/api/ads/{ad_id}", json=ad_payload(headline="Second take"))
    assert updated.status_code == 200
    assert updated.json()["headline"] == "Second take"

    api_client.patch(f"/api/ads/{ad_id}/status", json={"status": "active"})
    conflict = api_client.put(f"/api/ads/{ad_id}", json=ad_payload(headline="Third take"))
    assert conflict.status_code == 409


def test_latest_draft_returns_most_recently_updated_draft(api_client):
    assert api_client.get("/api/ads/drafts/latest").status_code == 404

    first = api_client.post("/api/ads", json=ad_payload(headline="First")).json()
    api_client.post("/api/ads", json=ad_payload(headline="Second"))
    api_client.put(f"/api/ads/{first['id']}", json=ad_payload(headline="First, edited"))

    latest = api_client.get("/api/ads/drafts/latest")
    assert latest.status_code == 200
    assert latest.json()["headline"] == "First, edited"


def test_ad_sets_are_listed_per_ad(api_client, db_session):
    first = api_client.post("/api/ads", json=ad_payload()).json()["id"]
    second = api_client.post("/api/ads", json=ad_payload()).json()["id"]

    created = api_client.post("/api/ad-sets", json=ad_set_payload(adId=first))
    api_client.post("/api/ad-sets", json=ad_set_payload(adId=second, name="Other"))

    assert created.status_code == 201
    assert created.json()["status"] == "draft"
    only_first = api_client.get("/api/ad-sets", params={"adId": first}).json()
    assert [ad_set["name"] for ad_set in only_first] == ["Summer Audience"]
    assert len(api_client.get("/api/ad-sets").json()) == 2


def test_ad_set_requires_existing_ad_and_placements(api_client, db_session):
    missing_ad = api_client.post("/api/ad-sets", json=ad_set_payload(adId=999999))
    assert missing_ad.status_code == 404

    ad_id = api_client.post("/api/ads", json=ad_payload()).json()["id"]
    no_placements = api_client.post("/api/ad-sets", json=ad_set_payload(adId=ad_id, placements=[]))
    assert no_placements.status_code == 400
    assert db_session.scalar(select(func.count()).select_from(AdSet)) == 0
