from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

WORKER = "worker"
OWNER = "owner"
ADMIN = "admin"
USER_TYPES = (WORKER, OWNER, ADMIN)


@dataclass(frozen=True)
class User:
    """Canonical platform user, whichever credential source produced it."""

    id: Optional[str]
    email: Optional[str]
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_type: Optional[str] = None  # worker|owner|admin
    profile_completed: bool = False
    has_password: Optional[bool] = None
    photo_url: Optional[str] = None
    email_verified: Optional[bool] = None
    is_new_user: bool = False
    # Backend fields the session layer does not interpret (phone, location, ...).
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or (self.email or "")


@dataclass(frozen=True)
class ProviderIdentity:
    """Identity returned by the OIDC provider, before exchange with the backend."""

    provider_uid: str
    email: Optional[str]
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False
    id_token: Optional[str] = None

    @property
    def first_name(self) -> str:
        parts = (self.display_name or "").split(" ")
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join((self.display_name or "").split(" ")[1:])


@dataclass(frozen=True)
class Credentials:
    """A platform session as issued by the backend."""

    user: User
    token: str
