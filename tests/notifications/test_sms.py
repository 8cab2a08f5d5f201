"""Tests for the Twilio SMS provider."""

from urllib.parse import parse_qs

import httpx
import pytest

from gigster.notifications.sms import (
    SmsDeliveryError,
    SmsNotConfiguredError,
    SmsProvider,
)


def _provider(handler) -> SmsProvider:
    return SmsProvider(
        account_sid="AC123",
        auth_token="secret",
        from_number="+15550009999",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestSmsProvider:
    """Tests for SmsProvider.send."""

    @pytest.mark.asyncio
    async def test_posts_form_and_returns_sid(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(201, json={"sid": "SM42"})

        sid = await _provider(handler).send("+15551234567", "Hello")

        assert sid == "SM42"
        request = captured[0]
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        form = parse_qs(request.content.decode())
        assert form == {"To": ["+15551234567"], "From": ["+15550009999"], "Body": ["Hello"]}
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_error_response_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To'"})

        with pytest.raises(SmsDeliveryError, match=r"\[21211\] Invalid 'To'"):
            await _provider(handler).send("+15551234567", "Hello")

    @pytest.mark.asyncio
    async def test_rejects_non_e164_numbers(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(ValueError, match="E.164"):
            await _provider(handler).send("555-1234", "Hello")

    @pytest.mark.asyncio
    async def test_unconfigured_provider_raises(self) -> None:
        provider = SmsProvider()

        assert provider.configured is False
        with pytest.raises(SmsNotConfiguredError):
            await provider.send("+15551234567", "Hello")
