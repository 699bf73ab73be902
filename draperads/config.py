from __future__ import annotations

from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)

DEV_SESSION_SECRET = "draperads-secret-key"


def _split_csv(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./draperads.db"
    DB_AUTO_CREATE: bool = True

    BACKEND_CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:5173"]

    SESSION_SECRET: str = DEV_SESSION_SECRET
    SESSION_COOKIE_NAME: str = "draperads.sid"
    SESSION_TTL_SECONDS: int = 7 * 24 * 60 * 60

    AUTH_DOMAINS: Annotated[list[str], NoDecode]
    OIDC_ISSUER_URL: str = "https://replit.com/oidc"
    OIDC_CLIENT_ID: str
    OIDC_CLIENT_SECRET: str | None = None
    OIDC_SCOPES: str = "openid email profile offline_access"
    OIDC_DISCOVERY_TTL_SECONDS: int = 60 * 60
    OIDC_TIMEOUT_SECONDS: float = 10.0

    META_APP_ID: str | None = None
    META_APP_SECRET: str | None = None
    META_GRAPH_API_BASE_URL: str = "https://graph.facebook.com"
    META_GRAPH_API_VERSION: str = "v19.0"
    META_DIALOG_BASE_URL: str = "https://www.facebook.com"
    META_SCOPES: Annotated[list[str], NoDecode] = [
        "ads_management",
        "ads_read",
        "business_management",
        "pages_read_engagement",
        "pages_manage_ads",
        "instagram_basic",
        "instagram_content_publish",
    ]
    BASE_URL: str | None = None

    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-7-sonnet-20250219"
    ANTHROPIC_MAX_TOKENS: int = 1024
    ANTHROPIC_TIMEOUT_SECONDS: float = 60.0

    UPLOAD_DIR: str = "uploads"
    UPLOAD_MAX_BYTES: int = 10 * 1024 * 1024

    TARGETING_PROVIDER: str = "fixture"
    WIZARD_AUTOSAVE_DELAY_SECONDS: float = 1.0
    WIZARD_REQUIRE_META_CONNECTION: bool = False

    @field_validator("BACKEND_CORS_ORIGINS", "AUTH_DOMAINS", "META_SCOPES", mode="before")
    @classmethod
    def split_lists(cls, value: str | list[str]) -> list[str]:
        return _split_csv(value)

    @field_validator("AUTH_DOMAINS")
    @classmethod
    def validate_domains(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("AUTH_DOMAINS must include at least one domain")
        return [domain.lower() for domain in value]

    @field_validator("TARGETING_PROVIDER")
    @classmethod
    def validate_targeting_provider(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"fixture", "meta"}:
            raise ValueError("TARGETING_PROVIDER must be one of: fixture, meta")
        return normalized

    @model_validator(mode="after")
    def validate_production_config(self) -> "Settings":
        if self.is_production:
            if self.SESSION_SECRET == DEV_SESSION_SECRET:
                raise ValueError("SESSION_SECRET must be set explicitly when ENVIRONMENT=production")
            if not self.BASE_URL:
                raise ValueError("BASE_URL is required when ENVIRONMENT=production")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def meta_redirect_uri(self) -> str:
        if self.is_production and self.BASE_URL:
            return f"{self.BASE_URL.rstrip('/')}/api/meta/callback"
        return "https://localhost:5000/api/meta/callback"

    @property
    def oidc_issuer(self) -> str:
        return self.OIDC_ISSUER_URL.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
