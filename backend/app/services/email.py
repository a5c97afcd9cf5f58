"""Outbound email: message builders and the sender collaborator."""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Protocol
from urllib.parse import urlencode

from app.core.config import Settings, settings
from app.core.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

RESET_PASSWORD_PATH = "/reset-password"
VERIFY_EMAIL_PATH = "/verify-email"


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    html: str
    text: str


class EmailSender(Protocol):
    def send(self, message: OutboundEmail) -> None:
        """Hand the message off for delivery or raise ``EmailDeliveryError``."""
        ...


def build_link(path: str, token: str) -> str:
    base = settings.APP_BASE_URL.rstrip("/")
    return f"{base}{path}?{urlencode({'token': token})}"


def _wrap_email_html(*, title: str, intro: str, content: str, footer: str) -> str:
    return f"""\
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{escape(title)}</title>
  </head>
  <body style="margin:0;padding:32px;background:#f7f7f7;font-family:Arial,sans-serif;color:#1f2937;">
    <div style="max-width:480px;margin:auto;background:#ffffff;border-radius:8px;padding:32px;">
      <h2 style="color:#2d7be5;margin-top:0;">{escape(title)}</h2>
      <p style="margin:0 0 14px;font-size:15px;line-height:1.6;">{escape(intro)}</p>
      {content}
      <hr style="margin:32px 0;border:none;border-top:1px solid #eeeeee;" />
      <small style="color:#888888;">{escape(footer)}</small>
    </div>
  </body>
</html>
"""


def _cta_button(label: str, href: str) -> str:
    safe_label = escape(label)
    safe_href = escape(href, quote=True)
    return (
        '<p style="text-align:center;margin:32px 0;">'
        f'<a href="{safe_href}" '
        'style="display:inline-block;background:#2d7be5;color:#ffffff;text-decoration:none;'
        'padding:12px 32px;border-radius:6px;font-weight:bold;">'
        f"{safe_label}</a></p>"
    )


def build_password_reset_email(to: str, name: str, token: str) -> OutboundEmail:
    link = build_link(RESET_PASSWORD_PATH, token)
    text = (
        f"Hello {name},\n\n"
        "We received a request to reset your password.\n\n"
        f"Reset link: {link}\n\n"
        "This link expires in 1 hour.\n\n"
        "If you did not request a reset, you can ignore this email."
    )
    content = (
        f"<p>Hello <strong>{escape(name)}</strong>,</p>"
        "<p>We received a request to reset your password. Use the button below to continue.</p>"
        f"{_cta_button('Reset password', link)}"
        "<p>If you did not request a reset, you can ignore this email.</p>"
    )
    html = _wrap_email_html(
        title="Password reset",
        intro="Security action for your account.",
        content=content,
        footer="This link expires in 1 hour.",
    )
    return OutboundEmail(to=to, subject="Reset your password", html=html, text=text)


def build_verification_email(to: str, name: str, token: str) -> OutboundEmail:
    link = build_link(VERIFY_EMAIL_PATH, token)
    text = (
        f"Hello {name},\n\n"
        "Please confirm your email address to activate your account.\n\n"
        f"Verification link: {link}\n\n"
        "This link expires in 24 hours.\n\n"
        "If you did not create an account, you can ignore this email."
    )
    content = (
        f"<p>Hello <strong>{escape(name)}</strong>,</p>"
        "<p>Please confirm your email address to activate your account.</p>"
        f"{_cta_button('Verify email', link)}"
        "<p>If you did not create an account, you can ignore this email.</p>"
    )
    html = _wrap_email_html(
        title="Confirm your email",
        intro="One more step before your account is fully active.",
        content=content,
        footer="This link expires in 24 hours.",
    )
    return OutboundEmail(to=to, subject="Verify your email", html=html, text=text)


class SmtpEmailSender:
    def __init__(self, config: Settings) -> None:
        self._config = config

    def send(self, message: OutboundEmail) -> None:
        config = self._config
        email = EmailMessage()
        email["From"] = config.SMTP_FROM
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text)
        email.add_alternative(message.html, subtype="html")

        try:
            with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30) as server:
                server.ehlo()
                if config.SMTP_TLS:
                    server.starttls()
                    server.ehlo()
                if config.SMTP_USER:
                    server.login(config.SMTP_USER, config.SMTP_PASSWORD)
                server.send_message(email)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"smtp delivery to {message.to} failed") from exc
        logger.info("Email sent: %s (%s)", message.to, message.subject)


class LoggingEmailSender:
    """Used when SMTP is not configured. Records the hand-off, never the body."""

    def send(self, message: OutboundEmail) -> None:
        logger.info("SMTP not configured; email to %s not delivered (%s)", message.to, message.subject)


def build_email_sender(config: Settings) -> EmailSender:
    if config.smtp_ready:
        return SmtpEmailSender(config)
    logger.warning("SMTP_HOST/SMTP_FROM not set; outbound email is disabled")
    return LoggingEmailSender()


def deliver(sender: EmailSender, message: OutboundEmail) -> bool:
    """Send and report success. A failed send is logged; the issued token stays valid."""
    try:
        sender.send(message)
    except EmailDeliveryError:
        logger.exception("Email delivery failed: %s (%s)", message.to, message.subject)
        return False
    return True
