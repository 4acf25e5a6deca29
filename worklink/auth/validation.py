"""
Client-side form checks, run by callers before any session operation.

Each validator returns a field -> message mapping; an empty mapping means valid.
"""
from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
PHONE_RE = re.compile(r"^[6-9]\d{9}$")
STRONG_PASSWORD_RE = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

MIN_LOGIN_PASSWORD = 6
MIN_REGISTER_PASSWORD = 8


def _check_email(email: Optional[str], errors: Dict[str, str]) -> None:
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_RE.search(email):
        errors["email"] = "Email is invalid"


def validate_login_form(email: Optional[str], password: Optional[str]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    _check_email(email, errors)
    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_LOGIN_PASSWORD:
        errors["password"] = f"Password must be at least {MIN_LOGIN_PASSWORD} characters"
    return errors


def validate_registration_form(
    *,
    name: Optional[str],
    email: Optional[str],
    phone: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str],
    agree_to_terms: bool,
) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    full_name = (name or "").strip()
    if not full_name:
        errors["name"] = "Full name is required"
    elif len(full_name) < 2:
        errors["name"] = "Name must be at least 2 characters"

    _check_email(email, errors)

    if not phone:
        errors["phone"] = "Phone number is required"
    elif not PHONE_RE.match(phone):
        errors["phone"] = "Please enter a valid 10-digit phone number"

    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_REGISTER_PASSWORD:
        errors["password"] = f"Password must be at least {MIN_REGISTER_PASSWORD} characters"
    elif not STRONG_PASSWORD_RE.search(password):
        errors["password"] = (
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )

    if not confirm_password:
        errors["confirmPassword"] = "Please confirm your password"
    elif password != confirm_password:
        errors["confirmPassword"] = "Passwords do not match"

    if not agree_to_terms:
        errors["agreeToTerms"] = "You must agree to the terms and conditions"
    return errors


def validate_password_change(
    *,
    has_password: bool,
    current_password: Optional[str],
    new_password: Optional[str],
    confirm_password: Optional[str],
) -> Dict[str, str]:
    """Change-password form; accounts created through the provider have no current password."""
    errors: Dict[str, str] = {}
    if has_password and not current_password:
        errors["currentPassword"] = "Current password is required"
    if not new_password:
        errors["newPassword"] = "New password is required"
    elif len(new_password) < MIN_LOGIN_PASSWORD:
        errors["newPassword"] = f"Password must be at least {MIN_LOGIN_PASSWORD} characters long"
    if not confirm_password:
        errors["confirmPassword"] = "Please confirm your password"
    elif new_password != confirm_password:
        errors["confirmPassword"] = "Passwords do not match"
    return errors


def split_full_name(name: str) -> Tuple[str, str]:
    """'Asha Rani Verma' -> ('Asha', 'Rani Verma')."""
    parts = (name or "").strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
