"""
Route guard.

Decisions are computed from `SessionState` alone; the caller renders, shows a
placeholder or navigates. Rules are evaluated in order and the first match wins:

1. session still loading / not bootstrapped -> placeholder
2. no session -> /login (remembering where the user was going)
3. profile incomplete -> /complete-profile (unless the route allows it)
4. wrong role -> the user's own dashboard (or / without a role)
5. completed profile on /complete-profile -> dashboard
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from worklink.auth.models import User
from worklink.auth.store import SessionState
from worklink.auth.util import sanitize_next_path
from worklink.authz.routes import (
    COMPLETE_PROFILE_PATH,
    DASHBOARDS,
    HOME_PATH,
    LOGIN_PATH,
    dashboard_path,
    find_route,
    is_public_page,
)

logger = logging.getLogger(__name__)

RENDER = "render"
LOADING = "loading"
REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    action: str
    location: Optional[str] = None
    # Set on login redirects so the login page can send the user back afterwards.
    from_location: Optional[str] = None

    @classmethod
    def render(cls) -> "GuardDecision":
        return cls(action=RENDER)

    @classmethod
    def loading(cls) -> "GuardDecision":
        return cls(action=LOADING)

    @classmethod
    def redirect(cls, location: str, from_location: Optional[str] = None) -> "GuardDecision":
        return cls(action=REDIRECT, location=location, from_location=from_location)


def _path_only(location: str) -> str:
    p = (location or "").split("?", 1)[0].split("#", 1)[0] or "/"
    return p.rstrip("/") if len(p) > 1 else p


def guard_route(
    state: SessionState,
    location: str,
    *,
    required_role: Optional[str] = None,
    allow_incomplete_profile: bool = False,
) -> GuardDecision:
    if state.is_loading or not state.bootstrapped:
        return GuardDecision.loading()

    if not state.is_authenticated or state.user is None:
        return GuardDecision.redirect(LOGIN_PATH, from_location=sanitize_next_path(location))

    path = _path_only(location)
    on_complete_profile = path == COMPLETE_PROFILE_PATH

    if not state.profile_completed and not allow_incomplete_profile and not on_complete_profile:
        return GuardDecision.redirect(COMPLETE_PROFILE_PATH)

    if required_role and state.user_type != required_role:
        target = dashboard_path(state.user_type)
        logger.info(
            "User %s (role=%s) denied %s; sending to %s", state.user.id, state.user_type, path, target
        )
        return GuardDecision.redirect(target)

    if on_complete_profile and state.profile_completed:
        return GuardDecision.redirect(dashboard_path(state.user_type))

    return GuardDecision.render()


def guard_path(state: SessionState, location: str) -> GuardDecision:
    """Guard a location using the rules registered for it in `ROUTES`; unknown and public paths render."""
    route = find_route(_path_only(location))
    if route is None or not route.protected:
        return GuardDecision.render()
    return guard_route(
        state,
        location,
        required_role=route.required_role,
        allow_incomplete_profile=route.allow_incomplete_profile,
    )


def post_login_path(user: Optional[User]) -> str:
    """Where to send a user right after acquiring a session."""
    if user is None:
        return HOME_PATH
    if user.is_new_user or not user.profile_completed:
        return COMPLETE_PROFILE_PATH
    return dashboard_path(user.user_type)


def landing_redirect(state: SessionState, current_path: str) -> Optional[str]:
    """
    Dashboard for a signed-in user with a completed profile who landed on a public page.

    Returns None when the user should stay where they are (not bootstrapped yet,
    signed out, profile incomplete, no known role, or not on a public page).
    """
    if not state.bootstrapped or state.is_loading:
        return None
    if not state.is_authenticated or state.user is None or not state.profile_completed:
        return None
    if not is_public_page(current_path):
        return None
    return DASHBOARDS.get(state.user_type or "")
