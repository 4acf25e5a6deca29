from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from worklink.auth.models import ADMIN, OWNER, WORKER

LOGIN_PATH = "/login"
HOME_PATH = "/"
COMPLETE_PROFILE_PATH = "/complete-profile"

DASHBOARDS: Dict[str, str] = {
    WORKER: "/worker/dashboard",
    OWNER: "/owner/dashboard",
    ADMIN: "/admin/dashboard",
}

# Pages an authenticated user with a completed profile is bounced away from.
PUBLIC_PAGES = frozenset(
    {
        "/",
        "/login",
        "/register",
        "/how-it-works",
        "/find-work",
        "/post-work",
        "/about",
        "/search",
    }
)


@dataclass(frozen=True)
class Route:
    path: str
    protected: bool = False
    required_role: Optional[str] = None
    allow_incomplete_profile: bool = False

    def matches(self, path: str) -> bool:
        return _pattern(self.path).match(_normalize(path)) is not None


def _normalize(path: str) -> str:
    p = (path or "").split("?", 1)[0].split("#", 1)[0].strip() or "/"
    if len(p) > 1:
        p = p.rstrip("/")
    return p


def _pattern(template: str) -> "re.Pattern[str]":
    # ":param" segments match any single path segment.
    parts = [("[^/]+" if seg.startswith(":") else re.escape(seg)) for seg in template.split("/")]
    return re.compile("^" + "/".join(parts) + "$")


ROUTES: Tuple[Route, ...] = (
    # Public
    Route("/"),
    Route("/login"),
    Route("/register"),
    Route("/how-it-works"),
    Route("/find-work"),
    Route("/post-work"),
    Route("/about"),
    Route("/search"),
    # Any signed-in user, profile not yet required
    Route(COMPLETE_PROFILE_PATH, protected=True, allow_incomplete_profile=True),
    # Worker
    Route("/worker/dashboard", protected=True, required_role=WORKER),
    Route("/worker/portfolio", protected=True, required_role=WORKER),
    Route("/worker/certificates", protected=True, required_role=WORKER),
    # Public worker profile; listed after the worker pages so those win.
    Route("/worker/:id"),
    # Owner
    Route("/owner/dashboard", protected=True, required_role=OWNER),
    Route("/search-workers", protected=True, required_role=OWNER),
    Route("/worker-profile/:id", protected=True, required_role=OWNER),
    Route("/post-job", protected=True, required_role=OWNER),
    # Admin
    Route("/admin/dashboard", protected=True, required_role=ADMIN),
    Route("/admin/user-management", protected=True, required_role=ADMIN),
    Route("/admin/reports", protected=True, required_role=ADMIN),
    Route("/admin/analytics", protected=True, required_role=ADMIN),
    Route("/admin/settings", protected=True, required_role=ADMIN),
)


def find_route(path: str) -> Optional[Route]:
    for r in ROUTES:
        if r.matches(path):
            return r
    return None


def dashboard_path(user_type: Optional[str]) -> str:
    """Landing page for a role; users without a role go home."""
    return DASHBOARDS.get((user_type or "").strip().lower(), HOME_PATH)


def is_public_page(path: str) -> bool:
    return _normalize(path) in PUBLIC_PAGES
