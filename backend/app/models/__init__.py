"""Convenience imports for Alembic metadata discovery."""

from app.models.user import User
from app.models.access_token import AccessToken
from app.models.password_reset_token import PasswordResetToken
from app.models.email_verification_token import EmailVerificationToken

__all__ = ["User", "AccessToken", "PasswordResetToken", "EmailVerificationToken"]
