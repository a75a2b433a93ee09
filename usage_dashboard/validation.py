"""Client-side checks run before registration and settings requests."""

from __future__ import annotations

import re

from usage_dashboard.models import UserSettingsUpdate

PASSWORD_MIN_LENGTH = 8
PASSWORD_POLICY_MESSAGE = (
    "Password must be at least 8 characters long and include uppercase, lowercase, and a symbol."
)
PASSWORD_MISMATCH_MESSAGE = "Passwords do not match"

_UPPERCASE = re.compile(r"[A-Z]")
_LOWERCASE = re.compile(r"[a-z]")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


class PasswordPolicyError(ValueError):
    """Raised when a new password does not meet the password policy."""


class SettingsValidationError(ValueError):
    """Raised when a settings update is inconsistent."""


def password_valid(password: str) -> bool:
    return (
        len(password) >= PASSWORD_MIN_LENGTH
        and bool(_UPPERCASE.search(password))
        and bool(_LOWERCASE.search(password))
        and bool(_SYMBOL.search(password))
    )


def validate_password(password: str) -> None:
    if not password_valid(password):
        raise PasswordPolicyError(PASSWORD_POLICY_MESSAGE)


def validate_settings_update(update: UserSettingsUpdate) -> None:
    if not update.password:
        return
    if update.password != (update.confirm_password or ""):
        raise SettingsValidationError(PASSWORD_MISMATCH_MESSAGE)
    validate_password(update.password)
