from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy import select

from draperads.db.models import OAuthState
from draperads.routers import meta as meta_router
from draperads.services import meta_ads
from draperads.services.meta_ads import MetaAdsClient, MetaAdsError, MetaOAuthClient


def _oauth_client():
    return MetaOAuthClient(
        app_id="app-123",
        app_secret="secret",
        redirect_uri="https://localhost:5000/api/meta/callback",
        api_version="v19.0",
        scopes=["ads_management", "ads_read"],
    )


def _fake_graph(monkeypatch, responses):
    calls = []

    def fake_request(method, url, *, params=None, data=None, timeout=None):
        calls.append({"method": method, "url": url, "params": dict(params or {})})
        status_code, payload = responses.pop(0)
        return httpx.Response(status_code, json=payload, request=httpx.Request(method, url))

    monkeypatch.setattr(meta_ads.httpx, "request", fake_request)
    return calls


def test_login_url_carries_app_redirect_scopes_and_state():
    url = _oauth_client().build_login_url(state="abc123")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.netloc == "www.facebook.com"
    assert parsed.path == "/v19.0/dialog/oauth"
    assert query["client_id"] == ["app-123"]
    assert query["state"] == ["abc123"]
    assert query["scope"] == ["ads_management,ads_read"]
    assert query["response_type"] == ["code"]


def test_exchange_code_returns_access_token(monkeypatch):
    calls = _fake_graph(monkeypatch, [(200, {"access_token": "user-token", "token_type": "bearer"})])

    token = _oauth_client().exchange_code(code="the-code")

    assert token == "user-token"
    assert calls[0]["url"].endswith("/v19.0/oauth/access_token")
    assert calls[0]["params"]["code"] == "the-code"


def test_graph_errors_surface_the_platform_message(monkeypatch):
    _fake_graph(monkeypatch, [(400, {"error": {"message": "Invalid OAuth access token.", "code": 190}})])
    client = MetaAdsClient(access_token="bad", api_version="v19.0")

    with pytest.raises(MetaAdsError) as excinfo:
        client.get_ad_accounts()

    assert excinfo.value.status_code == 400
    assert excinfo.value.user_message == "Invalid OAuth access token."


def test_fetch_all_pages_follows_cursors(monkeypatch):
    calls = _fake_graph(
        monkeypatch,
        [
            (200, {"data": [{"id": "1"}], "paging": {"cursors": {"after": "c1"}, "next": "https://next"}}),
            (200, {"data": [{"id": "2"}], "paging": {"cursors": {"after": "c2"}}}),
        ],
    )
    client = MetaAdsClient(access_token="token", api_version="v19.0")

    items = client.fetch_all_pages(lambda after: client.list_campaigns(ad_account_id="42", after=after))

    assert [item["id"] for item in items] == ["1", "2"]
    assert calls[0]["url"].endswith("/act_42/campaigns")
    assert calls[1]["params"]["after"] == "c1"


def test_meta_routes_require_a_connected_account(api_client):
    for path in ("/api/meta/accounts", "/api/meta/pages", "/api/meta/instagram/page_1"):
        resp = api_client.get(path)
        assert resp.status_code == 401
        assert resp.json() == {"error": True, "message": "Not authenticated with Meta"}

    assert api_client.get("/api/meta/status").json() == {"isAuthenticated": False}


def test_meta_login_persists_state_bound_to_session(api_client, db_session):
    resp = api_client.get("/api/meta/login")

    assert resp.status_code == 200
    state = parse_qs(urlparse(resp.json()["loginUrl"]).query)["state"][0]
    stored = db_session.scalars(select(OAuthState).where(OAuthState.state == state)).first()
    assert stored is not None


def test_meta_callback_rejects_unknown_state(api_client, db_session):
    api_client.get("/api/meta/login")

    resp = api_client.get("/api/meta/callback", params={"code": "abc", "state": "forged"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid OAuth state"


def test_meta_callback_requires_code_and_state(api_client):
    resp = api_client.get("/api/meta/callback", params={"code": "abc"})

    assert resp.status_code == 400
    assert resp.json()["error"] is True


def test_meta_connect_flow_then_accounts(api_client, db_session, monkeypatch):
    login = api_client.get("/api/meta/login")
    state = parse_qs(urlparse(login.json()["loginUrl"]).query)["state"][0]

    monkeypatch.setattr(
        meta_router,
        "get_meta_oauth_client",
        lambda: type("FakeOAuth", (), {"exchange_code": lambda self, code: "user-token"})(),
    )
    callback = api_client.get(
        "/api/meta/callback",
        params={"code": "abc", "state": state},
        follow_redirects=False,
    )
    assert callback.status_code == 302
    assert callback.headers["location"] == "/ad-creator?meta_connected=true"

    # the state is single use
    replay = api_client.get("/api/meta/callback", params={"code": "abc", "state": state})
    assert replay.status_code == 400

    class FakeClient:
        def get_ad_accounts(self):
            return [{"id": "act_1", "name": "Main"}]

        def get_facebook_pages(self):
            raise MetaAdsError("Meta Graph API error (400).", 400, {"error": {"message": "Token expired"}})

    seen_tokens = []

    def fake_client_for(token):
        seen_tokens.append(token)
        return FakeClient()

    monkeypatch.setattr(meta_router, "meta_client_for", fake_client_for)

    assert api_client.get("/api/meta/status").json() == {"isAuthenticated": True}
    assert api_client.get("/api/meta/accounts").json() == {"accounts": [{"id": "act_1", "name": "Main"}]}
    pages = api_client.get("/api/meta/pages")
    assert pages.status_code == 500
    assert pages.json() == {"error": True, "message": "Token expired"}
    assert seen_tokens == ["user-token", "user-token"]


def test_meta_create_ad_uses_the_session_token(api_client, monkeypatch):
    assert api_client.post("/api/meta/create-ad", json={"name": "Spring"}).status_code == 401

    login = api_client.get("/api/meta/login")
    state = parse_qs(urlparse(login.json()["loginUrl"]).query)["state"][0]
    monkeypatch.setattr(
        meta_router,
        "get_meta_oauth_client",
        lambda: type("FakeOAuth", (), {"exchange_code": lambda self, code: "user-token"})(),
    )
    api_client.get("/api/meta/callback", params={"code": "abc", "state": state}, follow_redirects=False)

    resp = api_client.post("/api/meta/create-ad", json={"adAccountId": "act_1", "name": "Spring"})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "adId": "mock_ad_id"}


def test_simulated_publisher_never_reuses_platform_ids():
    publisher = meta_ads.SimulatedMetaPublisher()

    responses = [
        publisher.publish(ad_id=7, ad_set_name=f"Ad Set {n}", account_id="1") for n in range(5)
    ]

    ad_set_ids = [response["adset_id"] for response in responses]
    ad_ids = [response["id"] for response in responses]
    assert len(set(ad_set_ids)) == len(ad_set_ids)
    assert len(set(ad_ids)) == len(ad_ids)
    assert all(response["status"] == "ACTIVE" for response in responses)
