"""
Error taxonomy for the session layer.

`BackendError` and `ProviderError` are raised by the transport layers; the session
manager turns every failure into a plain message through the tables below so UI code
never has to inspect exceptions.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

# Provider error codes (same vocabulary as the Firebase web SDK).
POPUP_CLOSED_BY_USER = "auth/popup-closed-by-user"
POPUP_BLOCKED = "auth/popup-blocked"
NETWORK_REQUEST_FAILED = "auth/network-request-failed"
CANCELLED_POPUP_REQUEST = "auth/cancelled-popup-request"
OPERATION_NOT_ALLOWED = "auth/operation-not-allowed"
UNAUTHORIZED_DOMAIN = "auth/unauthorized-domain"
REDIRECT_CANCELLED_BY_USER = "auth/redirect-cancelled-by-user"
INVALID_REDIRECT_STATE = "auth/invalid-redirect-state"
INVALID_ID_TOKEN = "auth/invalid-id-token"

PROVIDER_ERROR_MESSAGES: Dict[str, str] = {
    POPUP_CLOSED_BY_USER: "Login cancelled by user",
    POPUP_BLOCKED: "Popup blocked by browser. Please allow popups and try again",
    NETWORK_REQUEST_FAILED: "Network error. Please check your connection",
    CANCELLED_POPUP_REQUEST: "Another popup is already open. Please close it and try again",
    OPERATION_NOT_ALLOWED: "{provider} sign-in is not enabled. Please contact support",
    UNAUTHORIZED_DOMAIN: "This domain is not authorized for {provider} sign-in",
    REDIRECT_CANCELLED_BY_USER: "Login cancelled by user",
    INVALID_REDIRECT_STATE: "Sign-in session expired or is invalid. Please try again",
    INVALID_ID_TOKEN: "{provider} sign-in could not be verified. Please try again",
}

COOP_MARKER = "Cross-Origin-Opener-Policy"


class AuthError(Exception):
    """Base class for session layer failures."""


class BackendError(AuthError):
    """
    Non-2xx response (or transport failure) from the WorkLink backend.

    `status` is None when no response was received at all.
    """

    def __init__(self, message: str, *, status: Optional[int] = None, body: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status = status
        self.body = body or {}

    @property
    def is_transport(self) -> bool:
        return self.status is None

    def detail(self, *keys: str) -> Optional[str]:
        for k in keys:
            v = self.body.get(k)
            if isinstance(v, str) and v.strip():
                return v.strip()
        return None


class ProviderError(AuthError):
    """Identity provider failure, identified by a provider error code."""

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


def is_coop_warning(exc: BaseException) -> bool:
    """Browsers emit a report-only COOP warning during popup messaging; it is not a failure."""
    return COOP_MARKER in str(exc)


def describe_provider_error(exc: ProviderError, *, provider_name: str = "Google") -> str:
    template = PROVIDER_ERROR_MESSAGES.get(exc.code)
    if template is None:
        return str(exc) or f"{provider_name} login failed"
    return template.format(provider=provider_name)


def describe_backend_error(exc: BackendError, fallback: str) -> str:
    """Message for password/registration style endpoints: backend message, else fallback."""
    if exc.is_transport:
        return fallback
    return exc.detail("message", "error") or fallback


def describe_provider_login_error(exc: BackendError, *, provider_name: str = "Google") -> str:
    """Message for a failed provider-identity exchange with the backend."""
    if exc.status == 409:
        return exc.detail("details") or "Account already exists. Please try logging in instead."
    if exc.status == 500:
        detail = exc.detail("details", "error") or "Server error occurred"
        return f"Server error: {detail}. Please try again or contact support if the issue persists."
    if exc.status == 400:
        return exc.detail("details", "error") or "Invalid user data"
    if exc.is_transport:
        return PROVIDER_ERROR_MESSAGES[NETWORK_REQUEST_FAILED]
    return exc.detail("error", "message") or f"{provider_name} login failed"
