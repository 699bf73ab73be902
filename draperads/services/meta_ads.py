from __future__ import annotations

import logging
import uuid
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from draperads.config import settings

logger = logging.getLogger("meta.ads")

AD_ACCOUNT_FIELDS = "id,name,account_id,account_status"
PAGE_FIELDS = "id,name,access_token,picture"
INSTAGRAM_ACCOUNT_FIELDS = "id,name,username,profile_pic"
CAMPAIGN_FIELDS = "id,name,status,effective_status,objective"
ADSET_FIELDS = "id,name,status,effective_status,campaign_id"


class MetaAdsConfigError(RuntimeError):
    pass


class MetaAdsError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None, error_payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_payload = error_payload

    @property
    def user_message(self) -> str:
        """Prefer the Graph API's own error message over the generic one."""
        if isinstance(self.error_payload, dict):
            error = self.error_payload.get("error")
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                return error["message"]
        return str(self)


def _normalize_ad_account_id(ad_account_id: str) -> str:
    if ad_account_id.startswith("act_"):
        return ad_account_id
    return f"act_{ad_account_id}"


def _graph_request(
    method: str,
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    data: Optional[dict[str, Any]] = None,
    timeout: httpx.Timeout,
) -> dict[str, Any]:
    try:
        response = httpx.request(method, url, params=params, data=data, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        error_payload: Any = None
        try:
            error_payload = response.json()
        except ValueError:
            error_payload = {"text": response.text}
        message = f"Meta Graph API error ({response.status_code})."
        logger.warning(
            "Meta Graph API returned an error",
            extra={"status_code": response.status_code, "path": httpx.URL(url).path},
        )
        raise MetaAdsError(message, status_code=response.status_code, error_payload=error_payload) from exc
    except httpx.RequestError as exc:
        message = f"Meta Graph API request failed: {exc}"
        raise MetaAdsError(message) from exc

    try:
        return response.json()
    except ValueError as exc:
        message = "Meta Graph API returned a non-JSON response."
        raise MetaAdsError(message) from exc


class MetaOAuthClient:
    """Facebook Login for the Meta app: authorization URL and code-for-token exchange."""

    def __init__(
        self,
        *,
        app_id: str,
        app_secret: str,
        redirect_uri: str,
        api_version: str,
        scopes: list[str],
        base_url: str | None = None,
        dialog_base_url: str | None = None,
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.api_version = api_version
        self.scopes = scopes
        self.base_url = (base_url or "https://graph.facebook.com").rstrip("/")
        self.dialog_base_url = (dialog_base_url or "https://www.facebook.com").rstrip("/")
        self.timeout = httpx.Timeout(30.0)

    @classmethod
    def from_settings(cls) -> "MetaOAuthClient":
        if not settings.META_APP_ID or not settings.META_APP_SECRET:
            raise MetaAdsConfigError("META_APP_ID and META_APP_SECRET are required to connect a Meta account.")
        return cls(
            app_id=settings.META_APP_ID,
            app_secret=settings.META_APP_SECRET,
            redirect_uri=settings.meta_redirect_uri,
            api_version=settings.META_GRAPH_API_VERSION,
            scopes=settings.META_SCOPES,
            base_url=settings.META_GRAPH_API_BASE_URL,
            dialog_base_url=settings.META_DIALOG_BASE_URL,
        )

    def build_login_url(self, *, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.app_id,
                "redirect_uri": self.redirect_uri,
                "state": state,
                "scope": ",".join(self.scopes),
                "response_type": "code",
            }
        )
        return f"{self.dialog_base_url}/{self.api_version}/dialog/oauth?{query}"

    def exchange_code(self, *, code: str) -> str:
        url = f"{self.base_url}/{self.api_version}/oauth/access_token"
        params = {
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "redirect_uri": self.redirect_uri,
            "code": code,
        }
        payload = _graph_request("GET", url, params=params, timeout=self.timeout)
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MetaAdsError("Meta token exchange response did not include an access_token.", error_payload=payload)
        return access_token


class MetaAdsClient:
    def __init__(self, *, access_token: str, api_version: str, base_url: str | None = None) -> None:
        self.access_token = access_token
        self.api_version = api_version
        self.base_url = (base_url or "https://graph.facebook.com").rstrip("/")
        self.timeout = httpx.Timeout(30.0)

    @classmethod
    def for_token(cls, access_token: str) -> "MetaAdsClient":
        return cls(
            access_token=access_token,
            api_version=settings.META_GRAPH_API_VERSION,
            base_url=settings.META_GRAPH_API_BASE_URL,
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"
        merged_params = {**(params or {}), "access_token": self.access_token}
        return _graph_request(method, url, params=merged_params, data=data, timeout=self.timeout)

    def _get_data(self, path: str, *, fields: str) -> list[dict[str, Any]]:
        payload = self._request("GET", path, params={"fields": fields})
        data = payload.get("data")
        return data if isinstance(data, list) else []

    def get_ad_accounts(self) -> list[dict[str, Any]]:
        return self._get_data("me/adaccounts", fields=AD_ACCOUNT_FIELDS)

    def get_facebook_pages(self) -> list[dict[str, Any]]:
        return self._get_data("me/accounts", fields=PAGE_FIELDS)

    def get_instagram_accounts(self, page_id: str) -> list[dict[str, Any]]:
        return self._get_data(f"{page_id}/instagram_accounts", fields=INSTAGRAM_ACCOUNT_FIELDS)

    def list_campaigns(
        self,
        *,
        ad_account_id: str,
        fields: str = CAMPAIGN_FIELDS,
        limit: Optional[int] = None,
        after: Optional[str] = None,
    ) -> dict[str, Any]:
        return self._list_ad_account_edge(
            ad_account_id=ad_account_id,
            edge="campaigns",
            fields=fields,
            limit=limit,
            after=after,
        )

    def list_adsets(
        self,
        *,
        ad_account_id: str,
        fields: str = ADSET_FIELDS,
        limit: Optional[int] = None,
        after: Optional[str] = None,
    ) -> dict[str, Any]:
        return self._list_ad_account_edge(
            ad_account_id=ad_account_id,
            edge="adsets",
            fields=fields,
            limit=limit,
            after=after,
        )

    def list_promote_pages(self, *, ad_account_id: str, fields: str = "id,name") -> dict[str, Any]:
        return self._list_ad_account_edge(
            ad_account_id=ad_account_id,
            edge="promote_pages",
            fields=fields,
            limit=None,
            after=None,
        )

    def _list_ad_account_edge(
        self,
        *,
        ad_account_id: str,
        edge: str,
        fields: str,
        limit: Optional[int],
        after: Optional[str],
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"fields": fields}
        if limit is not None:
            params["limit"] = limit
        if after:
            params["after"] = after
        path = f"{_normalize_ad_account_id(ad_account_id)}/{edge}"
        return self._request("GET", path, params=params)

    def fetch_all_pages(self, fetch, *, max_pages: int = 20) -> list[dict[str, Any]]:
        """Follow `paging.cursors.after` until the edge is exhausted."""
        items: list[dict[str, Any]] = []
        after: Optional[str] = None
        for _ in range(max_pages):
            payload = fetch(after=after)
            data = payload.get("data")
            if isinstance(data, list):
                items.extend(data)
            paging = payload.get("paging") or {}
            after = (paging.get("cursors") or {}).get("after")
            if not after or not paging.get("next"):
                break
        return items

    def create_ad(self, ad_data: dict[str, Any]) -> dict[str, Any]:
        # TODO: post the creative and ad to `act_<id>/adcreatives` and `act_<id>/ads` once ad-set ids
        # from the platform are available to the wizard.
        logger.info(
            "Meta ad creation requested",
            extra={"ad_account_id": ad_data.get("adAccountId"), "fields": sorted(ad_data)},
        )
        return {"success": True, "adId": "mock_ad_id"}


class SimulatedMetaPublisher:
    """Synthesizes the platform's response to publishing an ad into an ad set."""

    def publish(self, *, ad_id: int, ad_set_name: str, account_id: str) -> dict[str, Any]:
        response = {
            "id": f"meta_ad_{uuid.uuid4().hex}",
            "adset_id": f"meta_adset_{uuid.uuid4().hex}",
            "status": "ACTIVE",
        }
        logger.info(
            "Simulated Meta publish",
            extra={"ad_id": ad_id, "ad_set_name": ad_set_name, "account_id": account_id, "meta_ad_id": response["id"]},
        )
        return response
