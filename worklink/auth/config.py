"""
Configuration for the WorkLink client session layer.

Everything is read from environment variables so the same package runs against a
local backend during development and the hosted API in production.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"
DEFAULT_API_BASE_URL = "http://localhost:5000/api"


@dataclass(frozen=True)
class SessionConfig:
    # Backend REST API
    api_base_url: str
    api_timeout_seconds: float

    # Durable storage (JSON file holding `token` / `user`)
    storage_path: str

    # OIDC identity provider
    oidc_discovery_url: str
    oidc_client_id: Optional[str]
    oidc_client_secret: Optional[str]
    oidc_redirect_uri: Optional[str]
    oidc_provider_name: str

    # Domains allowed to receive provider callbacks (empty = any)
    authorized_domains: List[str]

    # Pending redirect state signing
    state_secret: Optional[str]
    redirect_ttl_seconds: int

    @property
    def provider_enabled(self) -> bool:
        """Provider sign-in is enabled once a client id and a redirect URI are configured."""
        return bool(self.oidc_client_id and self.oidc_redirect_uri)


def _parse_csv(value: str) -> List[str]:
    items = [x.strip().lower() for x in (value or "").split(",")]
    return [x for x in items if x]


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def load_session_config() -> SessionConfig:
    """
    Load session configuration from environment variables.

    Provider sign-in is enabled if OIDC_CLIENT_ID and OIDC_REDIRECT_URI are set.
    Password login against the backend is always available.
    """
    timeout = _env_float("WORKLINK_API_TIMEOUT_SECONDS", 10.0)
    timeout = min(max(timeout, 1.0), 120.0)

    ttl = int(_env_float("AUTH_REDIRECT_TTL_SECONDS", 600))
    if ttl < 60:
        ttl = 60

    storage_path = _env_str("WORKLINK_STORAGE_PATH") or str(Path.home() / ".worklink" / "session.json")

    return SessionConfig(
        api_base_url=(_env_str("WORKLINK_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/"),
        api_timeout_seconds=timeout,
        storage_path=storage_path,
        oidc_discovery_url=_env_str("OIDC_DISCOVERY_URL") or GOOGLE_DISCOVERY_URL,
        oidc_client_id=_env_str("OIDC_CLIENT_ID"),
        oidc_client_secret=_env_str("OIDC_CLIENT_SECRET"),
        oidc_redirect_uri=_env_str("OIDC_REDIRECT_URI"),
        oidc_provider_name=_env_str("OIDC_PROVIDER_NAME") or "Google",
        authorized_domains=_parse_csv(os.getenv("AUTH_AUTHORIZED_DOMAINS", "")),
        state_secret=_env_str("AUTH_STATE_SECRET"),
        redirect_ttl_seconds=ttl,
    )
