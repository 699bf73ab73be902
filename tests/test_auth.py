from datetime import timedelta
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient
from sqlalchemy import select

from conftest import TEST_USER_ID, login_as
from draperads import main as main_module
from draperads.auth import oidc
from draperads.auth.sessions import sign_session_id, unsign_session_id
from draperads.db.enums import OAuthProviderEnum
from draperads.db.models import OAuthState, User, WebSession, utcnow
from draperads.wizard.registry import wizard_registry

DISCOVERY = {
    "issuer": "https://issuer.test/oidc",
    "authorization_endpoint": "https://issuer.test/oidc/auth",
    "token_endpoint": "https://issuer.test/oidc/token",
    "jwks_uri": "https://issuer.test/oidc/jwks",
    "end_session_endpoint": "https://issuer.test/oidc/session/end",
}


def _fake_provider(monkeypatch, *, sub="77"):
    monkeypatch.setattr(oidc.oidc_client, "discovery", lambda: DISCOVERY)
    monkeypatch.setattr(
        oidc.oidc_client,
        "exchange_code",
        lambda **_kwargs: oidc.TokenSet(
            access_token="access-1",
            refresh_token="refresh-1",
            id_token="id-token",
            expires_in=3600,
        ),
    )
    nonces = []

    def verify(id_token, *, nonce=None, access_token=None):
        nonces.append(nonce)
        return {
            "sub": sub,
            "email": "ada@example.com",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "username": "ada",
            "nonce": nonce,
            "exp": 4102444800,
        }

    monkeypatch.setattr(oidc.oidc_client, "verify_id_token", verify)
    return nonces


def test_session_cookie_signature_round_trip():
    signed = sign_session_id("abc", "secret")

    assert unsign_session_id(signed, "secret") == "abc"
    assert unsign_session_id(signed, "other-secret") is None
    assert unsign_session_id("abc.deadbeef", "secret") is None
    assert unsign_session_id(None, "secret") is None


def test_login_redirects_to_provider_with_pkce(api_client, monkeypatch):
    _fake_provider(monkeypatch)

    resp = api_client.get("/api/login", follow_redirects=False)

    assert resp.status_code == 302
    location = urlparse(resp.headers["location"])
    query = parse_qs(location.query)
    assert f"{location.scheme}://{location.netloc}{location.path}" == DISCOVERY["authorization_endpoint"]
    assert query["redirect_uri"] == ["https://testserver/api/callback"]
    assert query["code_challenge_method"] == ["S256"]
    assert query["prompt"] == ["login consent"]
    assert query["state"][0]


def test_login_from_unknown_host_is_rejected(api_client, monkeypatch):
    _fake_provider(monkeypatch)

    resp = api_client.get("http://evil.example/api/login", follow_redirects=False)

    assert resp.status_code == 400


def test_callback_signs_in_and_rotates_session(api_client, db_session, monkeypatch):
    nonces = _fake_provider(monkeypatch)
    login = api_client.get("/api/login", follow_redirects=False)
    state = parse_qs(urlparse(login.headers["location"]).query)["state"][0]
    first_cookie = api_client.cookies.get("draperads.sid")

    callback = api_client.get("/api/callback", params={"code": "code-1", "state": state}, follow_redirects=False)

    assert callback.status_code == 302
    assert callback.headers["location"] == "/"
    assert nonces and nonces[0]
    assert api_client.cookies.get("draperads.sid") != first_cookie

    user = api_client.get("/api/auth/user")
    assert user.status_code == 200
    assert user.json()["id"] == 77
    assert user.json()["email"] == "ada@example.com"
    assert db_session.get(User, 77).first_name == "Ada"


def test_callback_with_wrong_state_restarts_login(api_client, monkeypatch):
    _fake_provider(monkeypatch)
    api_client.get("/api/login", follow_redirects=False)

    resp = api_client.get("/api/callback", params={"code": "code-1", "state": "forged"}, follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/api/login"
    assert api_client.get("/api/auth/user").status_code == 401


def test_second_login_updates_existing_user(api_client, db_session, monkeypatch):
    db_session.add(User(id=77, username="old-name", email="old@example.com"))
    db_session.commit()
    _fake_provider(monkeypatch)

    login = api_client.get("/api/login", follow_redirects=False)
    state = parse_qs(urlparse(login.headers["location"]).query)["state"][0]
    api_client.get("/api/callback", params={"code": "c", "state": state}, follow_redirects=False)

    db_session.expire_all()
    user = db_session.get(User, 77)
    assert user.username == "ada"
    assert user.email == "ada@example.com"


def test_wizard_survives_sign_in(api_client, monkeypatch):
    _fake_provider(monkeypatch)
    api_client.patch("/api/wizard/creative", json={"headline": "Before sign in"})

    login = api_client.get("/api/login", follow_redirects=False)
    state = parse_qs(urlparse(login.headers["location"]).query)["state"][0]
    api_client.get("/api/callback", params={"code": "c", "state": state}, follow_redirects=False)

    assert api_client.get("/api/wizard").json()["creative"]["headline"] == "Before sign in"


def test_current_user_requires_session(api_client):
    resp = api_client.get("/api/auth/user")

    assert resp.status_code == 401
    assert resp.json() == {"detail": "Unauthorized", "loginUrl": "/api/login"}


def test_expired_tokens_are_refreshed(api_client, db_session, monkeypatch):
    db_session.add(User(id=TEST_USER_ID, username="owner"))
    db_session.commit()
    sid = login_as(api_client, db_session, expires_in=-60, refresh_token="refresh-1")
    monkeypatch.setattr(
        oidc.oidc_client,
        "refresh",
        lambda **_kwargs: oidc.TokenSet(access_token="access-2", refresh_token=None, id_token=None, expires_in=600),
    )

    resp = api_client.get("/api/auth/user")

    assert resp.status_code == 200
    db_session.expire_all()
    stored = db_session.get(WebSession, sid).sess["user"]
    assert stored["access_token"] == "access-2"
    assert stored["refresh_token"] == "refresh-1"


def test_failed_refresh_is_rejected(api_client, db_session, monkeypatch):
    login_as(api_client, db_session, expires_in=-60, refresh_token="refresh-1")

    def reject(**_kwargs):
        raise oidc.OIDCError("Token request was rejected by the identity provider")

    monkeypatch.setattr(oidc.oidc_client, "refresh", reject)

    resp = api_client.get("/api/auth/user")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Authentication failed"


def test_logout_destroys_session_and_redirects_to_provider(api_client, db_session, monkeypatch):
    _fake_provider(monkeypatch)
    sid = login_as(api_client, db_session)

    resp = api_client.get("/api/logout", follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"].startswith(DISCOVERY["end_session_endpoint"])
    db_session.expire_all()
    assert db_session.get(WebSession, sid) is None
    assert api_client.get("/api/auth/user").status_code == 401


def test_expired_session_drops_its_wizard(api_client, db_session):
    api_client.patch("/api/wizard/creative", json={"headline": "Before expiry"})
    old_cookie = api_client.cookies.get("draperads.sid")
    assert len(wizard_registry) == 1
    db_session.expire_all()
    for record in db_session.scalars(select(WebSession)).all():
        record.expire = utcnow() - timedelta(minutes=1)
    db_session.commit()

    resp = api_client.get("/api/wizard")

    assert resp.status_code == 200
    assert api_client.cookies.get("draperads.sid") != old_cookie
    # the expired session's wizard is gone; only the fresh session's remains
    assert len(wizard_registry) == 1


def test_startup_purges_expired_sessions_and_oauth_states(db_session):
    db_session.add_all(
        [
            WebSession(sid="stale", sess={"k": 1}, expire=utcnow() - timedelta(hours=1)),
            WebSession(sid="live", sess={"k": 1}, expire=utcnow() + timedelta(hours=1)),
            OAuthState(
                state="old-state",
                session_id="stale",
                provider=OAuthProviderEnum.meta,
                created_at=utcnow() - timedelta(hours=1),
            ),
            OAuthState(state="new-state", session_id="live", provider=OAuthProviderEnum.meta),
        ]
    )
    db_session.commit()

    with TestClient(main_module.app):
        pass

    db_session.expire_all()
    assert db_session.get(WebSession, "stale") is None
    assert db_session.get(WebSession, "live") is not None
    assert db_session.get(OAuthState, "old-state") is None
    assert db_session.get(OAuthState, "new-state") is not None
