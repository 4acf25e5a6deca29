"""
Session state container.

`SessionState` is immutable; `reduce_session` is a pure function from (state, action)
to the next state; `SessionStore` holds the current state and notifies subscribers.
Create one store per application and pass it to whatever needs it.

Every asynchronous operation reports its lifecycle as three actions:
`auth/<op>/pending`, `auth/<op>/fulfilled`, `auth/<op>/rejected`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional

from worklink.auth.models import Credentials, User
from worklink.auth.storage import KeyValueStorage, read_credentials

logger = logging.getLogger(__name__)

# Operation names
LOGIN_WITH_PASSWORD = "loginWithPassword"
REGISTER = "register"
LOGIN_WITH_PROVIDER_POPUP = "loginWithProviderPopup"
LOGIN_WITH_PROVIDER_REDIRECT = "loginWithProviderRedirect"
COLLECT_REDIRECT_RESULT = "collectRedirectResult"
BOOTSTRAP_SESSION = "bootstrapSession"
CHANGE_PASSWORD = "changePassword"
SET_PASSWORD = "setPassword"
LOGOUT = "logout"

# Synchronous actions
CLEAR_ERROR = "auth/clearError"
SET_PROFILE_COMPLETED = "auth/setProfileCompleted"
SET_USER_TYPE = "auth/setUserType"

PENDING = "pending"
FULFILLED = "fulfilled"
REJECTED = "rejected"

_CREDENTIAL_OPS = {LOGIN_WITH_PASSWORD, REGISTER, LOGIN_WITH_PROVIDER_POPUP, COLLECT_REDIRECT_RESULT}


@dataclass(frozen=True)
class SessionState:
    user: Optional[User] = None
    token: Optional[str] = None
    is_loading: bool = False
    error: Optional[str] = None
    bootstrapped: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def profile_completed(self) -> bool:
        return bool(self.user and self.user.profile_completed)

    @property
    def user_type(self) -> Optional[str]:
        return self.user.user_type if self.user else None


@dataclass(frozen=True)
class Action:
    type: str
    payload: Any = None
    error: Optional[str] = None

    @property
    def op(self) -> str:
        parts = self.type.split("/")
        return parts[1] if len(parts) == 3 else ""

    @property
    def phase(self) -> str:
        parts = self.type.split("/")
        return parts[2] if len(parts) == 3 else ""


def pending(op: str) -> Action:
    return Action(type=f"auth/{op}/{PENDING}")


def fulfilled(op: str, payload: Any = None) -> Action:
    return Action(type=f"auth/{op}/{FULFILLED}", payload=payload)


def rejected(op: str, error: str, payload: Any = None) -> Action:
    return Action(type=f"auth/{op}/{REJECTED}", payload=payload, error=error)


def hydrate_state(storage: KeyValueStorage) -> SessionState:
    """Initial state from durable storage, read synchronously before first render."""
    user, token = read_credentials(storage)
    return SessionState(user=user, token=token)


def _signed_out(state: SessionState) -> SessionState:
    return replace(state, user=None, token=None)


def _with_user(state: SessionState, **changes: Any) -> SessionState:
    if state.user is None:
        return state
    return replace(state, user=replace(state.user, **changes))


def _reduce_fulfilled(state: SessionState, action: Action) -> SessionState:
    op = action.op
    done = replace(state, is_loading=False)
    if op in _CREDENTIAL_OPS:
        creds = action.payload
        if isinstance(creds, Credentials):
            return replace(done, user=creds.user, token=creds.token)
        return done
    if op == BOOTSTRAP_SESSION:
        done = replace(done, bootstrapped=True)
        if isinstance(action.payload, User):
            return replace(done, user=action.payload)
        # No durable token: the session stays empty.
        return _signed_out(done)
    if op in (CHANGE_PASSWORD, SET_PASSWORD):
        return _with_user(replace(done, error=None), has_password=True)
    if op == LOGOUT:
        return _signed_out(done)
    return done


def _reduce_rejected(state: SessionState, action: Action) -> SessionState:
    done = replace(state, is_loading=False, error=action.error)
    if action.op == BOOTSTRAP_SESSION:
        done = replace(done, bootstrapped=True)
        if isinstance(action.payload, dict) and action.payload.get("evict"):
            return _signed_out(done)
    return done


def reduce_session(state: SessionState, action: Action) -> SessionState:
    if action.type == CLEAR_ERROR:
        return replace(state, error=None)
    if action.type == SET_PROFILE_COMPLETED:
        return _with_user(state, profile_completed=bool(action.payload))
    if action.type == SET_USER_TYPE:
        return _with_user(state, user_type=action.payload)

    phase = action.phase
    if phase == PENDING:
        # Logout is local-first: it never shows a spinner.
        if action.op == LOGOUT:
            return state
        return replace(state, is_loading=True, error=None)
    if phase == FULFILLED:
        return _reduce_fulfilled(state, action)
    if phase == REJECTED:
        return _reduce_rejected(state, action)

    logger.debug("Ignoring unknown action %s", action.type)
    return state


Listener = Callable[[SessionState], None]


class SessionStore:
    """
    Single source of truth for the session, observable by many subscribers.

    Only `SessionManager` dispatches; UI code reads `get_state()` and subscribes.
    """

    def __init__(self, initial: Optional[SessionState] = None) -> None:
        self._state = initial or SessionState()
        self._listeners: List[Listener] = []

    @classmethod
    def from_storage(cls, storage: KeyValueStorage) -> "SessionStore":
        return cls(hydrate_state(storage))

    def get_state(self) -> SessionState:
        return self._state

    def dispatch(self, action: Action) -> SessionState:
        prev = self._state
        self._state = reduce_session(prev, action)
        logger.debug("dispatch %s", action.type)
        if self._state is not prev:
            for listener in list(self._listeners):
                try:
                    listener(self._state)
                except Exception:
                    logger.exception("Session listener failed on %s", action.type)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
