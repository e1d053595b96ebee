"""
Client configuration.

Settings are resolved once from the environment and cached. Base URL
precedence for the gateway (production mode):

    STOREFRONT_API_URL -> STOREFRONT_SITE_URL -> STOREFRONT_ORIGIN -> ""
"""

import os
from dataclasses import dataclass, field
from functools import cache
from typing import Optional

from storefront.errors import ConfigurationError

MODE_DEVELOPMENT = "development"
MODE_PRODUCTION = "production"

DEFAULT_DEV_PROXY_URL = "http://localhost:4000"
DEFAULT_REQUEST_TIMEOUT = 12.0


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number of seconds, got {raw!r}",
            code="INVALID_CONFIG",
        )


@dataclass(frozen=True)
class Settings:
    """Explicit client settings. Build directly in tests, from_env() otherwise."""

    mode: str = MODE_PRODUCTION
    api_url: Optional[str] = None
    site_url: Optional[str] = None
    origin: Optional[str] = None
    dev_proxy_url: str = DEFAULT_DEV_PROXY_URL
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = field(default=None, repr=False)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    token_path: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.mode == MODE_DEVELOPMENT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mode=(_env("STOREFRONT_MODE") or MODE_PRODUCTION).lower(),
            api_url=_env("STOREFRONT_API_URL"),
            site_url=_env("STOREFRONT_SITE_URL"),
            origin=_env("STOREFRONT_ORIGIN"),
            dev_proxy_url=_env("STOREFRONT_DEV_PROXY_URL") or DEFAULT_DEV_PROXY_URL,
            supabase_url=_env("SUPABASE_URL"),
            supabase_anon_key=_env("SUPABASE_ANON_KEY"),
            request_timeout=_env_float("STOREFRONT_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            token_path=_env("STOREFRONT_TOKEN_PATH"),
        )


@cache
def get_settings() -> Settings:
    """Settings singleton, read from the environment on first use."""
    return Settings.from_env()


@dataclass
class ConfigCheck:
    """Result of check_supabase_config()."""

    url_present: bool = False
    key_present: bool = False
    url_valid: bool = False
    key_valid: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return not self.errors


def check_supabase_config(settings: Settings) -> ConfigCheck:
    """Inspect Supabase URL and anon key without contacting the service."""
    check = ConfigCheck(
        url_present=bool(settings.supabase_url),
        key_present=bool(settings.supabase_anon_key),
    )

    url = settings.supabase_url
    if not url:
        check.errors.append("SUPABASE_URL is not set")
    elif not url.startswith(("http://", "https://")):
        check.errors.append("SUPABASE_URL should start with http:// or https://")
    elif "supabase" not in url:
        check.url_valid = True
        check.errors.append("SUPABASE_URL does not look like a Supabase project URL")
    else:
        check.url_valid = True

    key = settings.supabase_anon_key
    if not key:
        check.errors.append("SUPABASE_ANON_KEY is not set")
    else:
        # Anon keys are JWTs
        check.key_valid = key.startswith("eyJ") and len(key) > 100
        if not check.key_valid:
            check.errors.append("SUPABASE_ANON_KEY should be a JWT starting with 'eyJ'")

    return check


def require_supabase_config(settings: Settings) -> tuple[str, str]:
    """Return (url, anon_key) or raise ConfigurationError listing what to fix."""
    check = check_supabase_config(settings)
    if not (check.url_present and check.url_valid and check.key_present):
        raise ConfigurationError(
            "Supabase is not configured: "
            + "; ".join(check.errors)
            + ". Set SUPABASE_URL and SUPABASE_ANON_KEY from the project's API settings.",
            code="SUPABASE_NOT_CONFIGURED",
            details=check.errors,
        )
    return settings.supabase_url, settings.supabase_anon_key  # type: ignore[return-value]
