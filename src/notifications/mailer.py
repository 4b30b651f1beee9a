"""Outbound email for out-of-band auth flows."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from src.config.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


class Mailer(ABC):
    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        ...


class LogMailer(Mailer):
    """Records that a message would have been sent. Nothing is delivered.

    Bodies carry redeemable token links, so only the recipient and subject
    are logged.
    """

    def send(self, message: EmailMessage) -> None:
        logger.info("Email not delivered (no mail backend configured): to=%s subject=%r", message.to, message.subject)


class SendGridMailer(Mailer):
    def __init__(self, api_key: str, from_email: str):
        self._client = SendGridAPIClient(api_key)
        self.from_email = from_email

    def send(self, message: EmailMessage) -> None:
        mail = Mail(
            from_email=self.from_email,
            to_emails=message.to,
            subject=message.subject,
            plain_text_content=message.body,
        )
        response = self._client.send(mail)
        logger.info("Email sent via SendGrid: to=%s subject=%r status=%s", message.to, message.subject, response.status_code)


def frontend_link(frontend_url: str, path: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}{path}?{urlencode({'token': token})}"


def verification_email(to: str, link: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject="Verify your email address",
        body=f"Confirm your email address to finish creating your account: {link}",
    )


def password_reset_email(to: str, link: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject="Reset your password",
        body=f"We received a request to reset your password. Set a new one here: {link}",
    )


def magic_link_email(to: str, link: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject="Your sign-in link",
        body=f"Use this link to sign in. It expires shortly and works once: {link}",
    )


# Singleton
_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        settings = get_settings()
        if settings.SENDGRID_API_KEY:
            _mailer = SendGridMailer(settings.SENDGRID_API_KEY, settings.MAIL_FROM_EMAIL)
        else:
            logger.warning("SENDGRID_API_KEY is not set, emails will not be delivered")
            _mailer = LogMailer()
    return _mailer
