"""
Identity provider flows (popup and full-page redirect) on top of OpenID Connect.

The "browser" is injected: a `PopupOpener` shows the consent page in a popup and hands
back the URL the provider redirected the popup to, a `Navigator` leaves the current
page for the provider. Both flows end in a validated `ProviderIdentity`.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import jwt
import requests
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from worklink.auth import oidc
from worklink.auth.adapters import identity_from_claims
from worklink.auth.config import SessionConfig
from worklink.auth.errors import (
    CANCELLED_POPUP_REQUEST,
    INVALID_ID_TOKEN,
    INVALID_REDIRECT_STATE,
    NETWORK_REQUEST_FAILED,
    OPERATION_NOT_ALLOWED,
    POPUP_BLOCKED,
    POPUP_CLOSED_BY_USER,
    REDIRECT_CANCELLED_BY_USER,
    UNAUTHORIZED_DOMAIN,
    ProviderError,
)
from worklink.auth.models import ProviderIdentity
from worklink.auth.storage import KeyValueStorage
from worklink.auth.util import query_params, random_token, url_host

logger = logging.getLogger(__name__)

REDIRECT_STATE_KEY = "oidc_redirect"
REDIRECT_SALT = "worklink-oidc-redirect-v1"

# authorize URL -> callback URL, or None when the user closed the popup.
PopupOpener = Callable[[str], Optional[str]]
Navigator = Callable[[str], None]


class IdentityProvider(Protocol):
    """Minimal provider interface consumed by the session manager."""

    @property
    def name(self) -> str:
        ...

    def sign_in_with_popup(self) -> ProviderIdentity:
        ...

    def sign_in_with_redirect(self) -> None:
        ...

    def has_pending_redirect(self) -> bool:
        ...

    def has_redirect_response(self, current_url: Optional[str]) -> bool:
        ...

    def get_redirect_result(self, current_url: Optional[str]) -> Optional[ProviderIdentity]:
        ...

    def sign_out(self) -> None:
        ...


@dataclass(frozen=True)
class _PendingAuth:
    state: str
    nonce: str
    verifier: str
    authorize_url: str = ""


class OIDCIdentityProvider:
    def __init__(
        self,
        cfg: SessionConfig,
        storage: KeyValueStorage,
        *,
        popup_opener: Optional[PopupOpener] = None,
        navigator: Optional[Navigator] = None,
    ) -> None:
        self._cfg = cfg
        self._storage = storage
        self._popup_opener = popup_opener
        self._navigator = navigator
        self._popup_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._cfg.oidc_provider_name

    def _ensure_available(self) -> None:
        if not self._cfg.provider_enabled:
            raise ProviderError(OPERATION_NOT_ALLOWED)
        domains = self._cfg.authorized_domains
        if domains and url_host(self._cfg.oidc_redirect_uri) not in set(domains):
            raise ProviderError(UNAUTHORIZED_DOMAIN)

    def _serializer(self) -> Optional[URLSafeTimedSerializer]:
        if not self._cfg.state_secret:
            return None
        return URLSafeTimedSerializer(secret_key=self._cfg.state_secret, salt=REDIRECT_SALT)

    def _begin(self) -> _PendingAuth:
        state = random_token(32)
        nonce = random_token(32)
        verifier = random_token(32)  # 43+ chars (base64url) -> valid PKCE verifier
        try:
            url = oidc.build_authorize_url(
                self._cfg,
                state=state,
                nonce=nonce,
                code_challenge=oidc.pkce_challenge(verifier),
            )
        except requests.RequestException as e:
            raise ProviderError(NETWORK_REQUEST_FAILED, str(e)) from e
        return _PendingAuth(state=state, nonce=nonce, verifier=verifier, authorize_url=url)

    def _complete(self, pending: _PendingAuth, callback_url: str, *, cancel_code: str) -> ProviderIdentity:
        params = query_params(callback_url)
        err = params.get("error")
        if err:
            if err == "access_denied":
                raise ProviderError(cancel_code)
            if err in ("unauthorized_client", "redirect_uri_mismatch"):
                raise ProviderError(UNAUTHORIZED_DOMAIN)
            raise ProviderError(f"auth/{err}", params.get("error_description") or f"{self.name} login failed")

        if not pending.state or params.get("state") != pending.state:
            raise ProviderError(INVALID_REDIRECT_STATE)
        code = params.get("code")
        if not code:
            raise ProviderError(INVALID_REDIRECT_STATE)

        try:
            tokens = oidc.exchange_code_for_tokens(self._cfg, code=code, code_verifier=pending.verifier)
            id_token = str(tokens.get("id_token") or "").strip()
            if not id_token:
                raise ValueError("Missing id_token in token response")
            claims = oidc.validate_id_token(self._cfg, id_token=id_token, expected_nonce=pending.nonce)
            return identity_from_claims(claims, id_token=id_token)
        except requests.RequestException as e:
            raise ProviderError(NETWORK_REQUEST_FAILED, str(e)) from e
        except (jwt.PyJWTError, ValueError) as e:
            logger.warning("%s ID token rejected: %s", self.name, e)
            raise ProviderError(INVALID_ID_TOKEN, str(e)) from e

    def sign_in_with_popup(self) -> ProviderIdentity:
        self._ensure_available()
        if not self._popup_lock.acquire(blocking=False):
            raise ProviderError(CANCELLED_POPUP_REQUEST)
        try:
            if self._popup_opener is None:
                # No window to open: behave like a blocked popup so callers fall back to redirect.
                raise ProviderError(POPUP_BLOCKED)
            pending = self._begin()
            logger.info("Opening %s sign-in popup", self.name)
            callback_url = self._popup_opener(pending.authorize_url)
            if not callback_url:
                raise ProviderError(POPUP_CLOSED_BY_USER)
            return self._complete(pending, callback_url, cancel_code=POPUP_CLOSED_BY_USER)
        finally:
            self._popup_lock.release()

    def sign_in_with_redirect(self) -> None:
        self._ensure_available()
        s = self._serializer()
        if s is None or self._navigator is None:
            raise ProviderError(OPERATION_NOT_ALLOWED, "Redirect sign-in requires AUTH_STATE_SECRET and a navigator")
        pending = self._begin()
        self._storage.set(
            REDIRECT_STATE_KEY,
            s.dumps({"state": pending.state, "nonce": pending.nonce, "verifier": pending.verifier}),
        )
        logger.info("Redirecting to %s sign-in", self.name)
        self._navigator(pending.authorize_url)

    def _load_pending(self) -> Optional[_PendingAuth]:
        raw = self._storage.get(REDIRECT_STATE_KEY)
        if not raw:
            return None
        s = self._serializer()
        if s is None:
            self._storage.remove(REDIRECT_STATE_KEY)
            return None
        try:
            data = s.loads(raw, max_age=self._cfg.redirect_ttl_seconds)
        except SignatureExpired:
            logger.info("Discarding expired %s redirect state", self.name)
            self._storage.remove(REDIRECT_STATE_KEY)
            return None
        except BadSignature:
            logger.warning("Discarding tampered %s redirect state", self.name)
            self._storage.remove(REDIRECT_STATE_KEY)
            return None
        if not isinstance(data, dict):
            self._storage.remove(REDIRECT_STATE_KEY)
            return None
        return _PendingAuth(
            state=str(data.get("state") or ""),
            nonce=str(data.get("nonce") or ""),
            verifier=str(data.get("verifier") or ""),
        )

    def has_pending_redirect(self) -> bool:
        return bool(self._storage.get(REDIRECT_STATE_KEY))

    def has_redirect_response(self, current_url: Optional[str]) -> bool:
        """True when a redirect is pending and `current_url` carries the provider's answer."""
        if not self.has_pending_redirect():
            return False
        params = query_params(current_url)
        return bool(params.get("code") or params.get("error"))

    def get_redirect_result(self, current_url: Optional[str]) -> Optional[ProviderIdentity]:
        """
        Identity from a completed redirect, or None when no redirect is pending.

        The pending state is consumed on first use, so a second call is a no-op.
        """
        pending = self._load_pending()
        if pending is None:
            return None
        params = query_params(current_url)
        if not params.get("code") and not params.get("error"):
            # Back on the app without a provider response (yet).
            return None
        self._storage.remove(REDIRECT_STATE_KEY)
        return self._complete(pending, current_url or "", cancel_code=REDIRECT_CANCELLED_BY_USER)

    def sign_out(self) -> None:
        self._storage.remove(REDIRECT_STATE_KEY)
