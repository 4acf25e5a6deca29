from __future__ import annotations

from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests

from worklink.auth.api import BackendClient
from worklink.auth.errors import BackendError
from worklink.auth.schemas import ProviderLoginRequest, ProviderUserData


def _response(status: int = 200, body: Optional[Any] = None) -> MagicMock:
    r = MagicMock()
    r.status_code = status
    r.content = b"{}" if body is not None else b""
    r.json.return_value = body
    return r


def _client(response: MagicMock, token: Optional[str] = "tok") -> tuple:
    http = MagicMock(spec=requests.Session)
    http.request.return_value = response
    c = BackendClient("http://api.test/api/", timeout=7.0, token_getter=lambda: token, http=http)
    return c, http


def test_login_posts_credentials_without_bearer() -> None:
    c, http = _client(_response(200, {"user": {"id": "u1"}, "token": "t1"}))

    resp = c.login("a@b.co", "secret1")

    assert resp.token == "t1"
    method, url = http.request.call_args.args
    kwargs = http.request.call_args.kwargs
    assert (method, url) == ("POST", "http://api.test/api/auth/login")
    assert kwargs["json"] == {"email": "a@b.co", "password": "secret1"}
    assert kwargs["timeout"] == 7.0
    assert "Authorization" not in kwargs["headers"]


def test_me_uses_explicit_token_over_getter() -> None:
    c, http = _client(_response(200, {"user": {"id": "u1"}}), token="from-store")
    assert c.me("explicit") == {"user": {"id": "u1"}}
    assert http.request.call_args.kwargs["headers"]["Authorization"] == "Bearer explicit"


def test_authenticated_calls_attach_store_token() -> None:
    c, http = _client(_response(200, {"message": "Password updated successfully"}))
    resp = c.change_password("old", "new-secret")
    assert resp.message == "Password updated successfully"
    kwargs = http.request.call_args.kwargs
    assert http.request.call_args.args == ("PUT", "http://api.test/api/auth/change-password")
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["json"] == {"currentPassword": "old", "newPassword": "new-secret"}


def test_no_bearer_without_token() -> None:
    c, http = _client(_response(200, {"user": {"id": "u1"}}), token=None)
    c.me()
    assert "Authorization" not in http.request.call_args.kwargs["headers"]


def test_provider_login_body_uses_backend_names() -> None:
    c, http = _client(_response(200, {"user": {"id": "u1"}, "token": "t"}))
    c.provider_login(
        ProviderLoginRequest(id_token="idt", user_data=ProviderUserData(uid="g1", email="a@b.co", first_name="A"))
    )
    assert http.request.call_args.args[1] == "http://api.test/api/auth/google"
    assert http.request.call_args.kwargs["json"] == {
        "idToken": "idt",
        "userData": {"uid": "g1", "email": "a@b.co", "firstName": "A", "lastName": "", "emailVerified": False},
    }


def test_error_status_raises_with_body() -> None:
    c, _ = _client(_response(409, {"error": "conflict", "details": "Account exists"}))
    with pytest.raises(BackendError) as ei:
        c.provider_login(ProviderLoginRequest(user_data=ProviderUserData(uid="g1")))
    assert ei.value.status == 409
    assert ei.value.detail("details") == "Account exists"
    assert str(ei.value) == "conflict"


def test_transport_failure_has_no_status() -> None:
    http = MagicMock(spec=requests.Session)
    http.request.side_effect = requests.ConnectionError("connection refused")
    c = BackendClient("http://api.test/api", http=http)
    with pytest.raises(BackendError) as ei:
        c.me("t")
    assert ei.value.is_transport is True
    assert ei.value.status is None


def test_malformed_auth_response_is_a_backend_error() -> None:
    c, _ = _client(_response(200, {"user": {"id": "u1"}}))
    with pytest.raises(BackendError) as ei:
        c.login("a@b.co", "secret1")
    assert "Malformed" in str(ei.value)


def test_non_json_error_body() -> None:
    r = _response(502)
    r.content = b"<html>Bad gateway</html>"
    r.json.side_effect = ValueError("no json")
    c, _ = _client(r)
    with pytest.raises(BackendError) as ei:
        c.me()
    assert ei.value.status == 502
    assert str(ei.value) == "HTTP 502"


def test_client_has_no_logout_endpoint() -> None:
    # Sign-out is local; the backend exposes no logout route.
    assert not hasattr(BackendClient, "logout")
