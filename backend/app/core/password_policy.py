"""Password strength rules applied on registration and password reset."""

from __future__ import annotations

import re

MIN_PASSWORD_LENGTH = 8
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'

_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("password_missing_uppercase", re.compile(r"[A-Z]")),
    ("password_missing_lowercase", re.compile(r"[a-z]")),
    ("password_missing_digit", re.compile(r"\d")),
    ("password_missing_symbol", re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")),
)


def password_policy_errors(password: str) -> list[str]:
    """Return every unmet rule, in a stable order. Empty means the password is acceptable."""
    errors: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append("password_too_short")
    for code, pattern in _RULES:
        if not pattern.search(password):
            errors.append(code)
    return errors
