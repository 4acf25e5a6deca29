from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import jwt  # PyJWT
import requests

from worklink.auth.config import SessionConfig
from worklink.auth.util import b64url

SCOPES = ("openid", "email", "profile")
_CACHE_TTL_SECONDS = 3600

_discovery_cache: Dict[str, Tuple[float, Optional[Dict[str, Any]]]] = {}
_jwks_cache: Dict[str, Tuple[float, Optional[Dict[str, Any]]]] = {}


def _fetch_cached(cache: Dict[str, Tuple[float, Optional[Dict[str, Any]]]], url: str, what: str) -> Dict[str, Any]:
    ts, cached = cache.get(url, (0.0, None))
    now = time.time()
    if cached is not None and now - ts < _CACHE_TTL_SECONDS:
        return cached
    r = requests.get(url, timeout=10)
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {what}")
    cache[url] = (now, data)
    return data


def get_discovery(cfg: SessionConfig) -> Dict[str, Any]:
    """Provider discovery document, cached for an hour per URL."""
    return _fetch_cached(_discovery_cache, cfg.oidc_discovery_url, "OIDC discovery document")


def _get_jwks(jwks_uri: str) -> Dict[str, Any]:
    return _fetch_cached(_jwks_cache, jwks_uri, "JWKS")


def clear_caches() -> None:
    _discovery_cache.clear()
    _jwks_cache.clear()


def build_authorize_url(
    cfg: SessionConfig,
    *,
    state: str,
    nonce: str,
    code_challenge: str,
    prompt: Optional[str] = "select_account",
    login_hint: Optional[str] = None,
) -> str:
    """
    Authorization URL for the code flow with PKCE.

    `prompt=select_account` forces the account chooser instead of silently reusing the
    last Google account picked in this browser.
    """
    if not cfg.oidc_client_id or not cfg.oidc_redirect_uri:
        raise ValueError("OIDC client ID / redirect URI not configured")

    disc = get_discovery(cfg)
    auth_endpoint = str(disc.get("authorization_endpoint") or "")
    if not auth_endpoint:
        raise ValueError("OIDC discovery missing authorization_endpoint")

    params = {
        "client_id": cfg.oidc_client_id,
        "redirect_uri": cfg.oidc_redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "state": state,
        "nonce": nonce,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    if prompt:
        params["prompt"] = prompt
    if login_hint:
        params["login_hint"] = login_hint
    return f"{auth_endpoint}?{urlencode(params)}"


def exchange_code_for_tokens(cfg: SessionConfig, *, code: str, code_verifier: str) -> Dict[str, Any]:
    """
    Exchange an authorization code for tokens (id_token, access_token).

    Public clients (no secret configured) rely on the PKCE verifier alone.
    """
    if not cfg.oidc_client_id or not cfg.oidc_redirect_uri:
        raise ValueError("OIDC client ID / redirect URI not configured")

    disc = get_discovery(cfg)
    token_endpoint = str(disc.get("token_endpoint") or "")
    if not token_endpoint:
        raise ValueError("OIDC discovery missing token_endpoint")

    payload = {
        "client_id": cfg.oidc_client_id,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": cfg.oidc_redirect_uri,
        "code_verifier": code_verifier,
    }
    if cfg.oidc_client_secret:
        payload["client_secret"] = cfg.oidc_client_secret
    r = requests.post(token_endpoint, data=payload, timeout=10)
    if r.status_code >= 400:
        # Avoid leaking sensitive info; include minimal context.
        raise ValueError(f"Token exchange failed (status={r.status_code})")
    data = r.json()
    if not isinstance(data, dict):
        raise ValueError("Invalid token response")
    return data


def validate_id_token(cfg: SessionConfig, *, id_token: str, expected_nonce: str) -> Dict[str, Any]:
    """
    Validate an ID token from the provider.
    - Verifies JWT signature using provider's public keys
    - Validates issuer, audience, nonce
    """
    if not cfg.oidc_client_id:
        raise ValueError("OIDC client ID not configured")

    disc = get_discovery(cfg)
    issuer = str(disc.get("issuer") or "")
    jwks_uri = str(disc.get("jwks_uri") or "")
    if not issuer or not jwks_uri:
        raise ValueError("OIDC discovery missing issuer/jwks_uri")

    hdr = jwt.get_unverified_header(id_token)
    kid = str(hdr.get("kid") or "")
    if not kid:
        raise ValueError("ID token missing kid")

    keys = _get_jwks(jwks_uri).get("keys")
    if not isinstance(keys, list):
        raise ValueError("Invalid JWKS keys")
    jwk = next((k for k in keys if isinstance(k, dict) and str(k.get("kid") or "") == kid), None)
    if jwk is None:
        raise ValueError("Unknown signing key (kid)")

    key = jwt.algorithms.RSAAlgorithm.from_jwk(json.dumps(jwk))
    claims = jwt.decode(
        id_token,
        key=key,
        algorithms=["RS256"],
        audience=cfg.oidc_client_id,
        issuer=issuer,
        leeway=5,  # client/provider clock skew
        options={"require": ["exp", "iat", "iss", "aud", "sub"]},
    )
    if not isinstance(claims, dict):
        raise ValueError("Invalid ID token claims")

    nonce = str(claims.get("nonce") or "")
    if not nonce or nonce != expected_nonce:
        raise ValueError("Nonce mismatch")
    return claims


def pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return b64url(digest)
