from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_NAME = "Vehicle Inspection System"


class EmailType(enum.Enum):
    STAFF_INVITATION = "staff_invitation"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


def render_email(
    to: str,
    name: str,
    email_type: EmailType,
    business_name: str | None = None,
    password: str | None = None,
    reset_link: str | None = None,
) -> EmailMessage:
    if email_type is EmailType.STAFF_INVITATION:
        subject = f"Welcome to {business_name or DEFAULT_BUSINESS_NAME}"
        lines = [
            f"<h1>Welcome, {name}!</h1>",
            f"<p>You have been added as inspection staff at "
            f"{business_name or DEFAULT_BUSINESS_NAME}.</p>",
            f"<p>Sign in with <strong>{to}</strong>.</p>",
        ]
        if password:
            lines.append(
                f"<p>Your temporary password is <code>{password}</code>. "
                "Please change it after signing in.</p>"
            )
    else:
        subject = "Reset Your Password"
        lines = [
            f"<h1>Hello {name},</h1>",
            "<p>A password reset was requested for your account.</p>",
        ]
        if reset_link:
            lines.append(f'<p><a href="{reset_link}">Reset your password</a></p>')
        lines.append("<p>If you did not request this, ignore this email.</p>")

    return EmailMessage(to=to, subject=subject, html="\n".join(lines))


class EmailSender(ABC):
    @abstractmethod
    async def send(self, message: EmailMessage) -> None: ...


class LoggingEmailSender(EmailSender):
    async def send(self, message: EmailMessage) -> None:
        logger.info(
            "Email to %s: %s (%s...)", message.to, message.subject, message.html[:100]
        )
