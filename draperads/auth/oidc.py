from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from jose import jwk, jwt
from jose.exceptions import JWSError, JWTError
from jose.utils import base64url_decode

from draperads.config import settings

logger = logging.getLogger("auth.oidc")


class OIDCError(RuntimeError):
    pass


class _TTLCache:
    def __init__(self, ttl_seconds: int) -> None:
        self.value: Optional[Dict[str, Any]] = None
        self.cached_at: float = 0.0
        self.ttl_seconds = ttl_seconds

    def get(self) -> Optional[Dict[str, Any]]:
        if self.value and (time.time() - self.cached_at) < self.ttl_seconds:
            return self.value
        return None

    def set(self, value: Optional[Dict[str, Any]]) -> None:
        self.value = value
        self.cached_at = time.time()


@dataclass(frozen=True)
class LoginRequest:
    url: str
    state: str
    nonce: str
    code_verifier: str
    redirect_uri: str


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: Optional[str]
    id_token: Optional[str]
    expires_in: Optional[int]


def _pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class OIDCClient:
    def __init__(
        self,
        *,
        issuer: str,
        client_id: str,
        client_secret: Optional[str],
        scopes: str,
        discovery_ttl_seconds: int,
        timeout: float,
    ) -> None:
        self.issuer = issuer.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes
        self.timeout = timeout
        self._discovery = _TTLCache(discovery_ttl_seconds)
        self._jwks = _TTLCache(discovery_ttl_seconds)

    @classmethod
    def from_settings(cls) -> "OIDCClient":
        return cls(
            issuer=settings.oidc_issuer,
            client_id=settings.OIDC_CLIENT_ID,
            client_secret=settings.OIDC_CLIENT_SECRET,
            scopes=settings.OIDC_SCOPES,
            discovery_ttl_seconds=settings.OIDC_DISCOVERY_TTL_SECONDS,
            timeout=settings.OIDC_TIMEOUT_SECONDS,
        )

    def _get_json(self, url: str) -> Dict[str, Any]:
        try:
            resp = httpx.get(url, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("OIDC metadata fetch failed", extra={"url": url})
            raise OIDCError(f"Unable to fetch {url}") from exc

    def discovery(self) -> Dict[str, Any]:
        cached = self._discovery.get()
        if cached:
            return cached
        document = self._get_json(f"{self.issuer}/.well-known/openid-configuration")
        self._discovery.set(document)
        return document

    def _endpoint(self, name: str) -> str:
        value = self.discovery().get(name)
        if not isinstance(value, str) or not value:
            raise OIDCError(f"Provider metadata is missing {name}")
        return value

    def build_login_request(self, *, redirect_uri: str) -> LoginRequest:
        state = secrets.token_urlsafe(24)
        nonce = secrets.token_urlsafe(24)
        code_verifier = secrets.token_urlsafe(48)
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": redirect_uri,
                "scope": self.scopes,
                "state": state,
                "nonce": nonce,
                "prompt": "login consent",
                "code_challenge": _pkce_challenge(code_verifier),
                "code_challenge_method": "S256",
            }
        )
        url = f"{self._endpoint('authorization_endpoint')}?{query}"
        return LoginRequest(
            url=url,
            state=state,
            nonce=nonce,
            code_verifier=code_verifier,
            redirect_uri=redirect_uri,
        )

    def _token_request(self, data: Dict[str, str]) -> TokenSet:
        payload = {**data, "client_id": self.client_id}
        if self.client_secret:
            payload["client_secret"] = self.client_secret
        try:
            resp = httpx.post(self._endpoint("token_endpoint"), data=payload, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "OIDC token request rejected",
                extra={"grant_type": data.get("grant_type"), "status_code": exc.response.status_code},
            )
            raise OIDCError("Token request was rejected by the identity provider") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise OIDCError(f"Token request failed: {exc}") from exc

        access_token = body.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise OIDCError("Token response did not include an access_token")
        expires_in = body.get("expires_in")
        return TokenSet(
            access_token=access_token,
            refresh_token=body.get("refresh_token"),
            id_token=body.get("id_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
        )

    def exchange_code(self, *, code: str, redirect_uri: str, code_verifier: str) -> TokenSet:
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            }
        )

    def refresh(self, *, refresh_token: str) -> TokenSet:
        return self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})

    def _fetch_jwks(self) -> Dict[str, Any]:
        cached = self._jwks.get()
        if cached:
            return cached
        data = self._get_json(self._endpoint("jwks_uri"))
        self._jwks.set(data)
        return data

    def _get_public_key(self, token: str) -> Dict[str, Any]:
        try:
            headers = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise OIDCError("Invalid ID token header") from exc
        kid = headers.get("kid")
        for _ in range(2):
            for key in self._fetch_jwks().get("keys", []):
                if kid is None or key.get("kid") == kid:
                    return key
            # key rotation; refetch once
            self._jwks.set(None)
        logger.warning("Signing key not found", extra={"kid": kid})
        raise OIDCError("Signing key not found")

    def verify_id_token(
        self,
        id_token: str,
        *,
        nonce: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            public_key = self._get_public_key(id_token)
            key = jwk.construct(public_key)

            message, encoded_sig = id_token.rsplit(".", 1)
            decoded_sig = base64url_decode(encoded_sig.encode())
            if not key.verify(message.encode(), decoded_sig):
                raise OIDCError("Invalid ID token signature")

            claims = jwt.decode(
                id_token,
                key=key.to_pem().decode(),
                algorithms=[public_key.get("alg", "RS256")],
                audience=self.client_id,
                issuer=self.discovery().get("issuer", self.issuer),
                access_token=access_token,
            )
        except (JWTError, JWSError, ValueError) as exc:
            logger.warning("ID token verification failed", exc_info=exc)
            raise OIDCError("Invalid ID token") from exc

        if nonce is not None and claims.get("nonce") != nonce:
            raise OIDCError("ID token nonce mismatch")
        logger.debug("Verified ID token", extra={"sub": claims.get("sub"), "iss": claims.get("iss")})
        return claims

    def end_session_url(self, *, post_logout_redirect_uri: str) -> str:
        endpoint = self.discovery().get("end_session_endpoint")
        if not endpoint:
            return post_logout_redirect_uri
        query = urlencode({"client_id": self.client_id, "post_logout_redirect_uri": post_logout_redirect_uri})
        return f"{endpoint}?{query}"


oidc_client = OIDCClient.from_settings()
