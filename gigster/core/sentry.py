"""Sentry error tracking integration."""

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from gigster.core.config import settings


def init_sentry() -> None:
    """Initialize Sentry error tracking if DSN is configured.

    Only 5xx responses are reported as errors; 10% of requests are traced.
    PII is never sent, so client names and emails stay out of Sentry.
    """
    if not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes={*range(500, 600)},
            ),
        ],
    )


def capture_side_effect_failure(exc: BaseException, channel: str) -> None:
    """Report a swallowed side-effect failure (email, SMS, PDF) to Sentry.

    These never fail the request, so the FastAPI integration would not see
    them. No-op when Sentry is not configured.
    """
    if not settings.sentry_dsn:
        return
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("side_effect_channel", channel)
        sentry_sdk.capture_exception(exc)
