import os
import sys
import tempfile
import time
import uuid
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

_TMP_DIR = Path(tempfile.mkdtemp(prefix="draperads-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_DIR / 'test.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_TMP_DIR / "uploads"))
os.environ.setdefault("AUTH_DOMAINS", "testserver")
os.environ.setdefault("OIDC_CLIENT_ID", "test-client")
os.environ.setdefault("OIDC_ISSUER_URL", "https://issuer.test/oidc")
os.environ.setdefault("META_APP_ID", "test-app")
os.environ.setdefault("META_APP_SECRET", "test-app-secret")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("WIZARD_AUTOSAVE_DELAY_SECONDS", "0.05")
os.environ.setdefault("TARGETING_PROVIDER", "fixture")

from draperads import main as main_module  # noqa: E402
from draperads.auth.sessions import sign_session_id, unsign_session_id  # noqa: E402
from draperads.config import settings  # noqa: E402
from draperads.db.base import SessionLocal, init_db  # noqa: E402
from draperads.db.models import Ad, AdSet, OAuthState, User, WebSession, utcnow  # noqa: E402
from draperads.db.seed import seed_reference_data  # noqa: E402
from draperads.wizard.registry import wizard_registry  # noqa: E402

TEST_USER_ID = 4242


@pytest.fixture(scope="session", autouse=True)
def create_schema() -> None:
    init_db()
    session = SessionLocal()
    try:
        seed_reference_data(session)
    finally:
        session.close()


def _clear_tables(session) -> None:
    for model in (AdSet, Ad, OAuthState, WebSession, User):
        session.execute(delete(model))
    session.commit()


@pytest.fixture()
def db_session():
    session = SessionLocal()
    _clear_tables(session)
    wizard_registry.clear()
    try:
        yield session
    finally:
        session.rollback()
        wizard_registry.clear()
        _clear_tables(session)
        session.close()


@pytest.fixture()
def api_client(db_session):
    with TestClient(main_module.app) as client:
        yield client


def login_as(client: TestClient, session, *, user_id: int = TEST_USER_ID, expires_in: int = 3600, **user_fields):
    """Sign the client's session in, creating the session when the client has none yet."""
    user = {
        "claims": {"sub": str(user_id), "email": "owner@example.com"},
        "access_token": "access-token",
        "refresh_token": None,
        "expires_at": int(time.time()) + expires_in,
    }
    user.update(user_fields)

    session.expire_all()
    sid = unsign_session_id(client.cookies.get(settings.SESSION_COOKIE_NAME), settings.SESSION_SECRET)
    record = session.get(WebSession, sid) if sid else None
    if record is not None:
        record.sess = {**record.sess, "user": user}
        session.commit()
        return sid

    sid = uuid.uuid4().hex
    session.add(WebSession(sid=sid, sess={"user": user}, expire=utcnow() + timedelta(hours=1)))
    session.commit()
    # same cookie key the server's Set-Cookie uses for the "testserver" host
    client.cookies.set(
        settings.SESSION_COOKIE_NAME,
        sign_session_id(sid, settings.SESSION_SECRET),
        domain="testserver.local",
    )
    return sid


@pytest.fixture()
def auth_client(api_client, db_session):
    login_as(api_client, db_session)
    return api_client


def ad_payload(**overrides):
    payload = {
        "primaryText": "Fresh roasted coffee delivered weekly.",
        "headline": "Coffee, on repeat",
        "cta": "shop_now",
        "websiteUrl": "https://example.com/coffee",
    }
    payload.update(overrides)
    return payload


def ad_set_payload(**overrides):
    payload = {
        "name": "Summer Audience",
        "accountId": "account_1",
        "campaignObjective": "conversions",
        "placements": ["facebook", "instagram"],
    }
    payload.update(overrides)
    return payload
