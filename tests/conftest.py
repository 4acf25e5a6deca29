"""
Pytest config.

Local imports like `import worklink` rely on the repo root being on sys.path; when
invoking a global `pytest` entrypoint without an editable install that doesn't happen
reliably during collection, so we pin it here.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from unittest.mock import MagicMock


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

import pytest  # noqa: E402

from worklink.auth import oidc  # noqa: E402
from worklink.auth.api import BackendClient  # noqa: E402
from worklink.auth.config import SessionConfig  # noqa: E402
from worklink.auth.schemas import AuthResponse  # noqa: E402
from worklink.auth.storage import MemoryStorage  # noqa: E402
from worklink.auth.util import query_params  # noqa: E402

CALLBACK_URL = "https://app.worklink.test/auth/callback"


def make_config(**overrides: Any) -> SessionConfig:
    values: Dict[str, Any] = {
        "api_base_url": "http://api.worklink.test/api",
        "api_timeout_seconds": 5.0,
        "storage_path": "/tmp/worklink-test-session.json",
        "oidc_discovery_url": "https://idp.test/.well-known/openid-configuration",
        "oidc_client_id": "client-123",
        "oidc_client_secret": None,
        "oidc_redirect_uri": CALLBACK_URL,
        "oidc_provider_name": "Google",
        "authorized_domains": ["app.worklink.test"],
        "state_secret": "test-state-secret-for-unit-tests-only",
        "redirect_ttl_seconds": 600,
    }
    values.update(overrides)
    return SessionConfig(**values)


@pytest.fixture
def cfg() -> SessionConfig:
    return make_config()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def backend() -> MagicMock:
    return MagicMock(spec=BackendClient)


@pytest.fixture
def auth_response() -> Callable[..., AuthResponse]:
    def _make(token: str = "tok-1", **user: Any) -> AuthResponse:
        record = {
            "id": "u1",
            "email": "asha@example.com",
            "firstName": "Asha",
            "lastName": "Verma",
            "userType": "worker",
            "profileCompleted": True,
        }
        record.update(user)
        return AuthResponse.model_validate({"user": record, "token": token})

    return _make


@pytest.fixture
def stub_oidc(monkeypatch: pytest.MonkeyPatch) -> Dict[str, Any]:
    """
    Replace the network-facing OIDC helpers with deterministic fakes.

    The returned dict holds the claims the fake ID token validates to, and records the
    code verifier used for the exchange.
    """
    seen: Dict[str, Any] = {
        "claims": {
            "sub": "google-sub-1",
            "email": "Asha@Example.com",
            "name": "Asha Verma",
            "picture": "https://img.test/asha.png",
            "email_verified": True,
        },
        "exchanges": [],
    }

    def _authorize_url(_cfg, *, state, nonce, code_challenge, prompt="select_account", login_hint=None):  # type: ignore[no-untyped-def]
        return f"https://idp.test/authorize?state={state}&nonce={nonce}&prompt={prompt}"

    def _exchange(_cfg, *, code, code_verifier):  # type: ignore[no-untyped-def]
        seen["exchanges"].append({"code": code, "verifier": code_verifier})
        return {"id_token": "id-token-1", "access_token": "at"}

    def _validate(_cfg, *, id_token, expected_nonce):  # type: ignore[no-untyped-def]
        return dict(seen["claims"], nonce=expected_nonce)

    monkeypatch.setattr(oidc, "build_authorize_url", _authorize_url)
    monkeypatch.setattr(oidc, "exchange_code_for_tokens", _exchange)
    monkeypatch.setattr(oidc, "validate_id_token", _validate)
    return seen


def callback_for(authorize_url: str, *, code: Optional[str] = "auth-code-1", **extra: str) -> str:
    """Callback URL the provider would send the browser to after consent."""
    state = query_params(authorize_url).get("state", "")
    parts = [f"state={state}"]
    if code:
        parts.append(f"code={code}")
    parts.extend(f"{k}={v}" for k, v in extra.items())
    return f"{CALLBACK_URL}?{'&'.join(parts)}"


@pytest.fixture
def approving_popup() -> Callable[[str], Optional[str]]:
    return lambda url: callback_for(url)


@pytest.fixture
def callback() -> Callable[..., str]:
    return callback_for


@pytest.fixture
def config_factory() -> Callable[..., SessionConfig]:
    return make_config
