"""Outbound email through the Resend API."""

import asyncio
from dataclasses import dataclass, field

import resend

from gigster.core.config import settings
from gigster.core.logging import get_logger

logger = get_logger(__name__)


class EmailNotConfiguredError(RuntimeError):
    """Raised when sending is attempted without a Resend API key."""


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email ready for delivery."""

    to: list[str]
    subject: str
    html: str
    attachments: list[EmailAttachment] = field(default_factory=list)


class EmailProvider:
    """Thin async wrapper over the synchronous Resend SDK.

    Usage:
        provider = EmailProvider(api_key=settings.resend_api_key)
        if provider.configured:
            message_id = await provider.send(message)
    """

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.from_address = from_address or settings.email_from_address

    @classmethod
    def from_settings(cls) -> "EmailProvider":
        return cls(api_key=settings.resend_api_key)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _payload(self, message: EmailMessage) -> dict:
        payload: dict = {
            "from": self.from_address,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.attachments:
            payload["attachments"] = [
                {"filename": item.filename, "content": list(item.content)}
                for item in message.attachments
            ]
        return payload

    def _send_sync(self, payload: dict) -> dict:
        resend.api_key = self.api_key
        return resend.Emails.send(payload)

    async def send(self, message: EmailMessage) -> str | None:
        """Deliver a message and return the provider message id.

        Raises:
            EmailNotConfiguredError: If no API key is configured.
            Exception: Any error raised by the Resend SDK.
        """
        if not self.configured:
            raise EmailNotConfiguredError("RESEND_API_KEY is not set")

        response = await asyncio.to_thread(self._send_sync, self._payload(message))
        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info(
            "email_sent",
            subject=message.subject,
            recipients=len(message.to),
            attachments=len(message.attachments),
            message_id=message_id,
        )
        return message_id
