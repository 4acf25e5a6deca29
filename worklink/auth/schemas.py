"""
Wire schemas for the WorkLink backend auth endpoints.

Request bodies use the backend's camelCase field names; Python code builds them with
snake_case attributes and serializes with `to_body()`.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class LoginRequest(_Body):
    email: str
    password: str


class RegisterRequest(_Body):
    email: str
    password: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    user_type: Optional[str] = Field(default=None, alias="userType")
    phone: Optional[str] = None


class ProviderUserData(_Body):
    uid: str
    email: Optional[str] = None
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    email_verified: bool = Field(default=False, alias="emailVerified")


class ProviderLoginRequest(_Body):
    id_token: Optional[str] = Field(default=None, alias="idToken")
    user_data: ProviderUserData = Field(alias="userData")


class ChangePasswordRequest(_Body):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


class SetPasswordRequest(_Body):
    new_password: str = Field(alias="newPassword")


class AuthResponse(BaseModel):
    """`{user, token}` as returned by login, register and provider login."""

    model_config = ConfigDict(extra="allow")

    user: Dict[str, Any]
    token: str = Field(min_length=1)


class MessageResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Optional[str] = None
