from __future__ import annotations

import base64
import os
from urllib.parse import parse_qs, urlparse


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def sanitize_next_path(next_path: str | None) -> str:
    """
    Prevent open-redirects: allow only relative paths like `/worker/dashboard`.
    """
    p = (next_path or "").strip()
    if not p:
        return "/"
    if not p.startswith("/"):
        return "/"
    # Disallow scheme-relative: `//evil.com`
    if p.startswith("//"):
        return "/"
    p = p.replace("\r", "").replace("\n", "")
    return p or "/"


def query_params(url: str | None) -> dict[str, str]:
    """Flatten the query string of `url` into single values (first one wins)."""
    if not url:
        return {}
    parsed = urlparse(url)
    return {k: v[0] for k, v in parse_qs(parsed.query).items() if v}


def url_host(url: str | None) -> str:
    return (urlparse(url or "").hostname or "").lower()
