"""
Boundary adapters: one per credential source.

The backend has returned user records in several shapes over time (`userType` vs
`role`, `_id` vs `id`, with or without `profileCompleted`). Everything is mapped onto
`worklink.auth.models.User` here, so nothing downstream needs fallback chains.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from worklink.auth.models import USER_TYPES, ProviderIdentity, User
from worklink.auth.schemas import ProviderLoginRequest, ProviderUserData

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "id",
    "_id",
    "uid",
    "email",
    "firstName",
    "lastName",
    "userType",
    "role",
    "profileCompleted",
    "hasPassword",
    "photoURL",
    "profilePhoto",
    "emailVerified",
    "isNewUser",
}


def normalize_user_type(value: Any) -> Optional[str]:
    t = str(value or "").strip().lower()
    if not t:
        return None
    if t not in USER_TYPES:
        logger.warning("Ignoring unknown user type %r", value)
        return None
    return t


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _opt_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def user_from_backend(raw: Mapping[str, Any]) -> User:
    """Map a backend user record (login, register, provider login, /auth/me) to `User`."""
    user_id = raw.get("id") or raw.get("_id") or raw.get("uid")
    photo = raw.get("photoURL") or raw.get("profilePhoto")
    if isinstance(photo, dict):
        photo = photo.get("path") or photo.get("url")
    return User(
        id=_opt_str(user_id),
        email=_opt_str(raw.get("email")),
        first_name=_opt_str(raw.get("firstName")),
        last_name=_opt_str(raw.get("lastName")),
        # userType wins over the legacy role field
        user_type=normalize_user_type(raw.get("userType") or raw.get("role")),
        profile_completed=bool(raw.get("profileCompleted") or False),
        has_password=_opt_bool(raw.get("hasPassword")),
        photo_url=_opt_str(photo),
        email_verified=_opt_bool(raw.get("emailVerified")),
        is_new_user=bool(raw.get("isNewUser") or False),
        extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
    )


def user_to_record(user: User) -> Dict[str, Any]:
    """Serialize `User` for durable storage, in the backend's own field names."""
    record: Dict[str, Any] = dict(user.extra)
    record.update(
        {
            "id": user.id,
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "userType": user.user_type,
            "profileCompleted": user.profile_completed,
            "hasPassword": user.has_password,
            "photoURL": user.photo_url,
            "emailVerified": user.email_verified,
            "isNewUser": user.is_new_user,
        }
    )
    return record


# Stored records use the backend field names, so the backend adapter reads them back.
user_from_record = user_from_backend


def unwrap_me_response(payload: Any) -> Dict[str, Any]:
    """
    `/auth/me` has answered both `{user: {...}}` and a bare user object.

    Both are accepted here and nowhere else.
    """
    if not isinstance(payload, dict):
        raise ValueError("Invalid /auth/me response")
    inner = payload.get("user")
    if isinstance(inner, dict):
        return inner
    return payload


def identity_from_claims(claims: Mapping[str, Any], *, id_token: Optional[str] = None) -> ProviderIdentity:
    """Map validated OIDC ID-token claims to a provider identity."""
    sub = str(claims.get("sub") or "").strip()
    if not sub:
        raise ValueError("ID token missing sub")
    email = str(claims.get("email") or "").strip().lower() or None
    name = str(claims.get("name") or "").strip()
    if not name:
        name = " ".join(
            p for p in (str(claims.get("given_name") or "").strip(), str(claims.get("family_name") or "").strip()) if p
        )
    return ProviderIdentity(
        provider_uid=sub,
        email=email,
        display_name=name or None,
        photo_url=str(claims.get("picture") or "").strip() or None,
        email_verified=claims.get("email_verified") is True,
        id_token=id_token,
    )


def provider_login_request(identity: ProviderIdentity) -> ProviderLoginRequest:
    """Body for `POST /auth/google`."""
    return ProviderLoginRequest(
        id_token=identity.id_token,
        user_data=ProviderUserData(
            uid=identity.provider_uid,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            photo_url=identity.photo_url,
            email_verified=identity.email_verified,
        ),
    )
