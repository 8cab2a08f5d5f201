"""Outbound SMS through the Twilio REST API."""

import httpx

from gigster.core.config import settings
from gigster.core.logging import get_logger

logger = get_logger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class SmsNotConfiguredError(RuntimeError):
    """Raised when sending is attempted without Twilio credentials."""


class SmsDeliveryError(RuntimeError):
    """Raised when Twilio rejects a message."""


class SmsProvider:
    """Sends text messages with a shared ``httpx.AsyncClient``.

    Pass ``client`` to reuse a connection pool (or a mock transport in tests);
    otherwise a short-lived client is opened per message.
    """

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "SmsProvider":
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
        )

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, to_phone: str, body: str) -> str | None:
        """Send ``body`` to an E.164 number and return the message SID.

        Raises:
            SmsNotConfiguredError: If credentials are missing.
            ValueError: If the number is not in E.164 format.
            SmsDeliveryError: If Twilio responds with an error.
        """
        if not self.configured:
            raise SmsNotConfiguredError("Twilio credentials are not set")
        if not to_phone.startswith("+"):
            raise ValueError("Phone number must be in E.164 format (e.g. +15551234567)")

        url = TWILIO_MESSAGES_URL.format(sid=self.account_sid)
        data = {"To": to_phone, "From": self.from_number, "Body": body}
        auth = (self.account_sid, self.auth_token)

        if self._client is not None:
            response = await self._client.post(
                url, auth=auth, data=data, timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url, auth=auth, data=data, timeout=self.timeout
                )

        if response.status_code not in (200, 201):
            try:
                error = response.json()
            except ValueError:
                error = {}
            code = error.get("code")
            text = error.get("message", "Unknown error")
            raise SmsDeliveryError(f"[{code}] {text}" if code else text)

        sid = response.json().get("sid")
        logger.info("sms_sent", message_sid=sid)
        return sid
