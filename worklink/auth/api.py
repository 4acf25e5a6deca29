"""
HTTP client for the WorkLink backend auth endpoints.

Thin by intent: every method issues one request and either returns the decoded body
or raises `BackendError`. Session bookkeeping lives in `worklink.auth.manager`.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import ValidationError

from worklink.auth.config import SessionConfig
from worklink.auth.errors import BackendError
from worklink.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    ProviderLoginRequest,
    RegisterRequest,
    SetPasswordRequest,
)

logger = logging.getLogger(__name__)

TokenGetter = Callable[[], Optional[str]]


class BackendClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        token_getter: Optional[TokenGetter] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token_getter = token_getter
        self._http = http or requests.Session()

    @classmethod
    def from_config(cls, cfg: SessionConfig, *, token_getter: Optional[TokenGetter] = None) -> "BackendClient":
        return cls(cfg.api_base_url, timeout=cfg.api_timeout_seconds, token_getter=token_getter)

    def set_token_getter(self, token_getter: TokenGetter) -> None:
        self._token_getter = token_getter

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        auth: bool = True,
    ) -> Dict[str, Any]:
        """
        Issue one request against the backend.

        Args:
            method: HTTP method
            path: Endpoint path relative to the API base URL (e.g. `/auth/me`)
            json_body: Optional JSON request body
            token: Explicit bearer token; defaults to the token getter
            auth: Attach the bearer token when one is available

        Returns:
            Decoded JSON object (empty dict for an empty body)

        Raises:
            BackendError on transport failures and non-2xx responses
        """
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        bearer = token if token is not None else (self._token_getter() if (auth and self._token_getter) else None)
        if auth and bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        try:
            r = self._http.request(method, url, json=json_body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise BackendError(str(e) or type(e).__name__) from e

        body: Dict[str, Any] = {}
        if r.content:
            try:
                data = r.json()
            except ValueError:
                data = None
            if isinstance(data, dict):
                body = data

        if r.status_code >= 400:
            if r.status_code == 403:
                logger.error("Access forbidden: %s %s", method, path)
            elif r.status_code >= 500:
                logger.error("Server error on %s %s: %s", method, path, body.get("message") or "Internal server error")
            raise BackendError(
                str(body.get("message") or body.get("error") or f"HTTP {r.status_code}"),
                status=r.status_code,
                body=body,
            )
        return body

    @staticmethod
    def _auth_response(body: Dict[str, Any]) -> AuthResponse:
        try:
            return AuthResponse.model_validate(body)
        except ValidationError as e:
            raise BackendError("Malformed auth response", status=None, body=body) from e

    def login(self, email: str, password: str) -> AuthResponse:
        body = self._request("POST", "/auth/login", json_body=LoginRequest(email=email, password=password).to_body(), auth=False)
        return self._auth_response(body)

    def register(self, req: RegisterRequest) -> AuthResponse:
        body = self._request("POST", "/auth/register", json_body=req.to_body(), auth=False)
        return self._auth_response(body)

    def provider_login(self, req: ProviderLoginRequest) -> AuthResponse:
        body = self._request("POST", "/auth/google", json_body=req.to_body(), auth=False)
        return self._auth_response(body)

    def me(self, token: Optional[str] = None) -> Dict[str, Any]:
        return self._request("GET", "/auth/me", token=token)

    def change_password(self, current_password: str, new_password: str) -> MessageResponse:
        req = ChangePasswordRequest(current_password=current_password, new_password=new_password)
        return MessageResponse.model_validate(self._request("PUT", "/auth/change-password", json_body=req.to_body()))

    def set_password(self, new_password: str) -> MessageResponse:
        req = SetPasswordRequest(new_password=new_password)
        return MessageResponse.model_validate(self._request("PUT", "/auth/set-password", json_body=req.to_body()))
