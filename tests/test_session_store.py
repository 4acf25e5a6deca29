from __future__ import annotations

import json

from worklink.auth import store as ops
from worklink.auth.models import Credentials, User
from worklink.auth.storage import MemoryStorage
from worklink.auth.store import (
    Action,
    SessionState,
    SessionStore,
    fulfilled,
    hydrate_state,
    pending,
    reduce_session,
    rejected,
)


def _user(**kw) -> User:  # type: ignore[no-untyped-def]
    base = {"id": "u1", "email": "a@example.com", "user_type": "worker", "profile_completed": True}
    base.update(kw)
    return User(**base)


def test_derived_fields_follow_user_and_token() -> None:
    s = SessionState()
    assert s.is_authenticated is False
    assert s.profile_completed is False
    assert s.user_type is None

    s = SessionState(user=_user(user_type="owner", profile_completed=False), token="t")
    assert s.is_authenticated is True
    assert s.profile_completed is False
    assert s.user_type == "owner"


def test_user_without_token_is_not_authenticated() -> None:
    s = SessionState(user=_user(), token=None)
    assert s.is_authenticated is False


def test_action_type_lifecycle_names() -> None:
    assert pending(ops.LOGIN_WITH_PASSWORD).type == "auth/loginWithPassword/pending"
    assert fulfilled(ops.BOOTSTRAP_SESSION).type == "auth/bootstrapSession/fulfilled"
    a = rejected(ops.REGISTER, "boom")
    assert a.type == "auth/register/rejected"
    assert a.op == "register"
    assert a.phase == "rejected"
    assert a.error == "boom"


def test_pending_sets_loading_and_clears_error() -> None:
    s = SessionState(error="old")
    s2 = reduce_session(s, pending(ops.LOGIN_WITH_PASSWORD))
    assert s2.is_loading is True
    assert s2.error is None


def test_fulfilled_credentials_authenticate() -> None:
    creds = Credentials(user=_user(), token="tok")
    s = reduce_session(SessionState(is_loading=True), fulfilled(ops.LOGIN_WITH_PROVIDER_POPUP, creds))
    assert s.is_loading is False
    assert s.token == "tok"
    assert s.user == creds.user
    assert s.is_authenticated is True


def test_fulfilled_without_payload_leaves_session_untouched() -> None:
    s = SessionState(is_loading=True)
    s2 = reduce_session(s, fulfilled(ops.LOGIN_WITH_PROVIDER_POPUP))
    assert s2.is_loading is False
    assert s2.token is None
    assert s2.user is None


def test_rejected_records_error_and_keeps_session() -> None:
    s = SessionState(user=_user(), token="t", is_loading=True)
    s2 = reduce_session(s, rejected(ops.LOGIN_WITH_PASSWORD, "Invalid credentials"))
    assert s2.error == "Invalid credentials"
    assert s2.is_loading is False
    assert s2.token == "t"


def test_bootstrap_rejected_with_evict_signs_out() -> None:
    s = SessionState(user=_user(), token="t")
    s2 = reduce_session(s, rejected(ops.BOOTSTRAP_SESSION, "Token expired", {"evict": True}))
    assert s2.bootstrapped is True
    assert s2.token is None
    assert s2.user is None
    assert s2.error == "Token expired"


def test_bootstrap_rejected_without_evict_keeps_session() -> None:
    s = SessionState(user=_user(), token="t")
    s2 = reduce_session(s, rejected(ops.BOOTSTRAP_SESSION, "Network error"))
    assert s2.bootstrapped is True
    assert s2.token == "t"


def test_bootstrap_fulfilled_replaces_user() -> None:
    s = SessionState(user=_user(profile_completed=False), token="t")
    fresh = _user(profile_completed=True)
    s2 = reduce_session(s, fulfilled(ops.BOOTSTRAP_SESSION, fresh))
    assert s2.bootstrapped is True
    assert s2.profile_completed is True
    assert s2.token == "t"


def test_password_ops_mark_user_as_having_password() -> None:
    s = SessionState(user=_user(has_password=False), token="t", error="x")
    s2 = reduce_session(s, fulfilled(ops.SET_PASSWORD))
    assert s2.user is not None and s2.user.has_password is True
    assert s2.error is None


def test_logout_pending_is_a_noop_and_fulfilled_signs_out() -> None:
    s = SessionState(user=_user(), token="t", bootstrapped=True)
    assert reduce_session(s, pending(ops.LOGOUT)) is s
    s2 = reduce_session(s, fulfilled(ops.LOGOUT))
    assert s2.is_authenticated is False
    assert s2.user is None
    assert s2.bootstrapped is True


def test_sync_actions_update_user_fields() -> None:
    s = SessionState(user=_user(profile_completed=False, user_type=None), token="t", error="e")
    s = reduce_session(s, Action(type=ops.SET_PROFILE_COMPLETED, payload=True))
    s = reduce_session(s, Action(type=ops.SET_USER_TYPE, payload="owner"))
    s = reduce_session(s, Action(type=ops.CLEAR_ERROR))
    assert s.profile_completed is True
    assert s.user_type == "owner"
    assert s.error is None


def test_sync_user_actions_without_user_are_noops() -> None:
    s = SessionState()
    assert reduce_session(s, Action(type=ops.SET_USER_TYPE, payload="owner")) is s


def test_unknown_action_returns_same_state() -> None:
    s = SessionState()
    assert reduce_session(s, Action(type="something/else")) is s


def test_store_notifies_subscribers_only_on_change() -> None:
    st = SessionStore()
    seen = []
    unsubscribe = st.subscribe(seen.append)

    st.dispatch(Action(type="unrelated"))
    assert seen == []

    st.dispatch(pending(ops.LOGIN_WITH_PASSWORD))
    assert len(seen) == 1 and seen[0].is_loading is True

    unsubscribe()
    st.dispatch(rejected(ops.LOGIN_WITH_PASSWORD, "nope"))
    assert len(seen) == 1
    assert st.get_state().error == "nope"


def test_failing_listener_does_not_break_dispatch() -> None:
    st = SessionStore()
    calls = []

    def _bad(_state: SessionState) -> None:
        raise RuntimeError("listener bug")

    st.subscribe(_bad)
    st.subscribe(calls.append)
    st.dispatch(pending(ops.REGISTER))
    assert len(calls) == 1


def test_hydrate_state_reads_durable_storage() -> None:
    storage = MemoryStorage(
        {"token": "tok", "user": json.dumps({"id": "u9", "email": "x@y.z", "role": "owner", "profileCompleted": True})}
    )
    s = hydrate_state(storage)
    assert s.token == "tok"
    assert s.user_type == "owner"
    assert s.profile_completed is True
    assert s.bootstrapped is False

    st = SessionStore.from_storage(storage)
    assert st.get_state() == s
