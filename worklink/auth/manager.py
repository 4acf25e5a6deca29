"""
Session manager: acquires, refreshes and discards the client session.

Each operation is a coroutine that
  1. dispatches `pending`,
  2. awaits exactly one remote flow (backend call or provider flow; blocking I/O runs
     in a worker thread),
  3. on success writes durable storage and dispatches `fulfilled` in the same step,
     on failure dispatches `rejected` with a user-facing message.

Operations never raise: they resolve to a `Result`.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from worklink.auth import store as ops
from worklink.auth.adapters import normalize_user_type, provider_login_request, unwrap_me_response, user_from_backend
from worklink.auth.api import BackendClient
from worklink.auth.config import SessionConfig, load_session_config
from worklink.auth.errors import (
    POPUP_BLOCKED,
    BackendError,
    ProviderError,
    describe_backend_error,
    describe_provider_error,
    describe_provider_login_error,
    is_coop_warning,
)
from worklink.auth.models import Credentials, ProviderIdentity, User
from worklink.auth.provider import IdentityProvider, Navigator, OIDCIdentityProvider, PopupOpener
from worklink.auth.schemas import AuthResponse, RegisterRequest
from worklink.auth.storage import (
    TOKEN_KEY,
    FileStorage,
    KeyValueStorage,
    clear_credentials,
    write_credentials,
    write_user,
)
from worklink.auth.store import SessionState, SessionStore, fulfilled, pending, rejected

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Statuses that mean the stored token itself is no good.
EVICTING_STATUSES = (401, 403)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a session operation: a value, or a message (and provider code) to show."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: Optional[str] = None) -> "Result[T]":
        return cls(ok=False, error=error, code=code)

    @property
    def should_fallback_to_redirect(self) -> bool:
        """A blocked popup is retried through the full-page redirect flow by the caller."""
        return not self.ok and self.code == POPUP_BLOCKED


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        backend: BackendClient,
        provider: IdentityProvider,
        storage: KeyValueStorage,
    ) -> None:
        self._store = store
        self._backend = backend
        self._provider = provider
        self._storage = storage
        self._bootstrap_task: Optional["asyncio.Future[Result[User]]"] = None
        backend.set_token_getter(lambda: self._store.get_state().token)

    @classmethod
    def from_config(
        cls,
        cfg: Optional[SessionConfig] = None,
        *,
        storage: Optional[KeyValueStorage] = None,
        popup_opener: Optional[PopupOpener] = None,
        navigator: Optional[Navigator] = None,
    ) -> "SessionManager":
        """Wire a manager from environment configuration; the store is hydrated from storage."""
        cfg = cfg or load_session_config()
        storage = storage if storage is not None else FileStorage(cfg.storage_path)
        return cls(
            SessionStore.from_storage(storage),
            BackendClient.from_config(cfg),
            OIDCIdentityProvider(cfg, storage, popup_opener=popup_opener, navigator=navigator),
            storage,
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def state(self) -> SessionState:
        return self._store.get_state()

    # --- helpers -------------------------------------------------------------------

    def _reject(self, op: str, message: str, *, code: Optional[str] = None) -> Result:
        self._store.dispatch(rejected(op, message))
        return Result.failure(message, code=code)

    def _commit(self, op: str, creds: Credentials, failure_message: str) -> Result[Credentials]:
        try:
            write_credentials(self._storage, creds.user, creds.token)
        except OSError as e:
            logger.error("Could not save session for user %s: %s", creds.user.id, e)
            self._restore_credentials()
            return self._reject(op, failure_message)
        self._store.dispatch(fulfilled(op, creds))
        return Result.success(creds)

    def _restore_credentials(self) -> None:
        """Put durable storage back in line with the in-memory session after a failed write."""
        state = self._store.get_state()
        try:
            if state.user is not None and state.token:
                write_credentials(self._storage, state.user, state.token)
            else:
                clear_credentials(self._storage)
        except OSError as e:
            logger.error("Could not restore stored session: %s", e)

    def _persist_current_user(self) -> None:
        user = self._store.get_state().user
        if user is None:
            return
        try:
            write_user(self._storage, user)
        except OSError as e:
            logger.error("Could not save user %s: %s", user.id, e)

    @staticmethod
    def _credentials(resp: AuthResponse) -> Credentials:
        return Credentials(user=user_from_backend(resp.user), token=resp.token)

    async def _exchange_identity(self, identity: ProviderIdentity) -> Credentials:
        resp = await asyncio.to_thread(self._backend.provider_login, provider_login_request(identity))
        return self._credentials(resp)

    def _reject_provider_flow(self, op: str, exc: Exception) -> Result:
        name = self._provider.name
        if isinstance(exc, ProviderError):
            return self._reject(op, describe_provider_error(exc, provider_name=name), code=exc.code)
        if isinstance(exc, BackendError):
            logger.error("Backend %s login failed (status=%s): %s", name, exc.status, exc)
            return self._reject(op, describe_provider_login_error(exc, provider_name=name))
        logger.exception("%s login failed", name)
        return self._reject(op, str(exc) or f"{name} login failed")

    # --- credential acquisition ------------------------------------------------------

    async def login_with_password(self, email: str, password: str) -> Result[Credentials]:
        """Password login; the caller has already validated the form."""
        op = ops.LOGIN_WITH_PASSWORD
        self._store.dispatch(pending(op))
        try:
            resp = await asyncio.to_thread(self._backend.login, email, password)
            creds = self._credentials(resp)
        except BackendError as e:
            logger.warning("Email login failed for %s: %s", email, e)
            return self._reject(op, describe_backend_error(e, "Login failed"))
        except Exception:
            logger.exception("Email login failed for %s", email)
            return self._reject(op, "Login failed")
        logger.info("Email login successful for user %s", creds.user.id)
        return self._commit(op, creds, "Login failed")

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        user_type: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Result[Credentials]:
        op = ops.REGISTER
        req = RegisterRequest(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            user_type=normalize_user_type(user_type),
            phone=phone,
        )
        self._store.dispatch(pending(op))
        try:
            resp = await asyncio.to_thread(self._backend.register, req)
            creds = self._credentials(resp)
        except BackendError as e:
            logger.warning("Registration failed for %s: %s", email, e)
            return self._reject(op, describe_backend_error(e, "Registration failed"))
        except Exception:
            logger.exception("Registration failed for %s", email)
            return self._reject(op, "Registration failed")
        return self._commit(op, creds, "Registration failed")

    async def login_with_provider_popup(self) -> Result[Credentials]:
        """
        Provider sign-in in a popup, exchanged for a platform session.

        A blocked popup resolves with `code == "auth/popup-blocked"`; the UI decides
        whether to retry with `login_with_provider_redirect()`.
        """
        op = ops.LOGIN_WITH_PROVIDER_POPUP
        self._store.dispatch(pending(op))
        try:
            identity = await asyncio.to_thread(self._provider.sign_in_with_popup)
            creds = await self._exchange_identity(identity)
        except Exception as e:
            if is_coop_warning(e):
                logger.warning("Ignoring Cross-Origin-Opener-Policy warning during %s popup", self._provider.name)
                self._store.dispatch(fulfilled(op))
                return Result.success(None)
            return self._reject_provider_flow(op, e)
        logger.info("%s login successful for user %s", self._provider.name, creds.user.id)
        return self._commit(op, creds, f"{self._provider.name} login failed")

    async def login_with_provider_redirect(self) -> Result[None]:
        """Leave the app for the provider; the session is collected on the next load."""
        op = ops.LOGIN_WITH_PROVIDER_REDIRECT
        self._store.dispatch(pending(op))
        try:
            await asyncio.to_thread(self._provider.sign_in_with_redirect)
        except ProviderError as e:
            return self._reject(op, describe_provider_error(e, provider_name=self._provider.name), code=e.code)
        except Exception as e:
            logger.exception("%s redirect login failed", self._provider.name)
            return self._reject(op, str(e) or f"{self._provider.name} redirect login failed")
        self._store.dispatch(fulfilled(op))
        return Result.success(None)

    async def collect_redirect_result(self, current_url: Optional[str] = None) -> Result[Credentials]:
        """
        Finish a provider redirect that brought the user back to `current_url`.

        Unless a redirect is pending and `current_url` carries the provider's answer,
        this returns `ok` with no value and touches nothing.
        """
        if not self._provider.has_redirect_response(current_url):
            return Result.success(None)

        op = ops.COLLECT_REDIRECT_RESULT
        self._store.dispatch(pending(op))
        try:
            identity = await asyncio.to_thread(self._provider.get_redirect_result, current_url)
            if identity is None:
                self._store.dispatch(fulfilled(op))
                return Result.success(None)
            logger.info("%s redirect result found for %s", self._provider.name, identity.provider_uid)
            creds = await self._exchange_identity(identity)
        except Exception as e:
            logger.error("%s redirect result error: %s", self._provider.name, e)
            return self._reject_provider_flow(op, e)
        return self._commit(op, creds, f"{self._provider.name} login failed")

    # --- restore / discard ----------------------------------------------------------

    def _clear_stored_session(self) -> None:
        try:
            clear_credentials(self._storage)
        except OSError as e:
            logger.error("Could not clear stored session: %s", e)

    async def _bootstrap(self) -> Result[User]:
        op = ops.BOOTSTRAP_SESSION
        token = (self._storage.get(TOKEN_KEY) or "").strip()
        if not token:
            self._store.dispatch(fulfilled(op))
            return Result.success(None)

        self._store.dispatch(pending(op))
        try:
            payload = await asyncio.to_thread(self._backend.me, token)
            user = user_from_backend(unwrap_me_response(payload))
            if user.id is None:
                raise ValueError("user record has no id")
        except BackendError as e:
            message = describe_backend_error(e, "Authentication failed")
            if e.status in EVICTING_STATUSES:
                logger.info("Stored session rejected by backend (status=%s); signing out", e.status)
                self._clear_stored_session()
                self._store.dispatch(rejected(op, message, {"evict": True}))
            else:
                logger.warning("Could not refresh stored session (status=%s): %s", e.status, e)
                self._store.dispatch(rejected(op, message))
            return Result.failure(message)
        except ValueError as e:
            logger.error("Unexpected /auth/me response: %s", e)
            return self._reject(op, "Authentication failed")

        try:
            write_user(self._storage, user)
        except OSError as e:
            logger.error("Could not save refreshed user %s: %s", user.id, e)
            return self._reject(op, "Authentication failed")
        self._store.dispatch(fulfilled(op, user))
        return Result.success(user)

    async def bootstrap_session(self) -> Result[User]:
        """
        Validate the stored token against `/auth/me`; runs once per manager.

        Later calls (including concurrent ones) share the first call's outcome.
        """
        if self._bootstrap_task is None:
            self._bootstrap_task = asyncio.ensure_future(self._bootstrap())
        return await self._bootstrap_task

    async def initialize(self, current_url: Optional[str] = None) -> Result[Credentials]:
        """Application start: collect a pending redirect first, then restore the session."""
        redirect = await self.collect_redirect_result(current_url)
        await self.bootstrap_session()
        return redirect

    async def logout(self) -> Result[None]:
        """Sign out of the provider (best effort) and always clear the local session."""
        op = ops.LOGOUT
        self._store.dispatch(pending(op))
        try:
            await asyncio.to_thread(self._provider.sign_out)
        except Exception as e:
            logger.warning("%s sign-out failed; clearing local session anyway: %s", self._provider.name, e)
        self._clear_stored_session()
        self._store.dispatch(fulfilled(op))
        return Result.success(None)

    # --- account maintenance ----------------------------------------------------------

    async def change_password(self, current_password: str, new_password: str) -> Result[str]:
        op = ops.CHANGE_PASSWORD
        if not self._store.get_state().token:
            return self._reject(op, "Not authenticated")
        self._store.dispatch(pending(op))
        try:
            resp = await asyncio.to_thread(self._backend.change_password, current_password, new_password)
        except BackendError as e:
            return self._reject(op, describe_backend_error(e, "Password change failed"))
        except Exception:
            logger.exception("Password change failed")
            return self._reject(op, "Password change failed")
        self._store.dispatch(fulfilled(op))
        self._persist_current_user()
        return Result.success(resp.message)

    async def set_password(self, new_password: str) -> Result[str]:
        """Give a provider-only account a password so it can also use email login."""
        op = ops.SET_PASSWORD
        if not self._store.get_state().token:
            return self._reject(op, "Not authenticated")
        self._store.dispatch(pending(op))
        try:
            resp = await asyncio.to_thread(self._backend.set_password, new_password)
        except BackendError as e:
            return self._reject(op, describe_backend_error(e, "Set password failed"))
        except Exception:
            logger.exception("Set password failed")
            return self._reject(op, "Set password failed")
        self._store.dispatch(fulfilled(op))
        self._persist_current_user()
        return Result.success(resp.message)

    def clear_error(self) -> None:
        self._store.dispatch(ops.Action(type=ops.CLEAR_ERROR))

    def set_profile_completed(self, completed: bool) -> None:
        self._store.dispatch(ops.Action(type=ops.SET_PROFILE_COMPLETED, payload=bool(completed)))
        self._persist_current_user()

    def set_user_type(self, user_type: Optional[str]) -> None:
        self._store.dispatch(ops.Action(type=ops.SET_USER_TYPE, payload=normalize_user_type(user_type)))
        self._persist_current_user()
