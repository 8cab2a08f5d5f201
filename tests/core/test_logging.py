"""Tests for structured logging configuration."""

import json
from decimal import Decimal

import structlog

from gigster.core.config import settings
from gigster.core.logging import (
    _add_context_vars,
    _orjson_serializer,
    configure_logging,
    document_ctx,
    request_id_ctx,
    user_id_ctx,
)


def _reset_structlog() -> None:
    """Reset structlog defaults to avoid test cross-talk."""
    structlog.reset_defaults()


def test_configure_logging_uses_json_when_log_format_json() -> None:
    """Use JSON logging when log_format=json, even in development."""
    original_env = settings.environment
    original_format = settings.log_format

    try:
        settings.environment = "development"
        settings.log_format = "json"
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert any(
            isinstance(processor, structlog.processors.JSONRenderer)
            for processor in processors
        )
        assert any(
            isinstance(processor, structlog.processors.EventRenamer)
            for processor in processors
        )
    finally:
        settings.environment = original_env
        settings.log_format = original_format
        _reset_structlog()


def test_configure_logging_defaults_to_json_outside_development() -> None:
    original_env = settings.environment
    original_format = settings.log_format

    try:
        settings.environment = "production"
        settings.log_format = None
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert any(
            isinstance(processor, structlog.processors.JSONRenderer)
            for processor in processors
        )
    finally:
        settings.environment = original_env
        settings.log_format = original_format
        _reset_structlog()


def test_configure_logging_uses_console_when_log_format_console() -> None:
    """Use console logging when log_format=console in development."""
    original_env = settings.environment
    original_format = settings.log_format

    try:
        settings.environment = "development"
        settings.log_format = "console"
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert any(
            isinstance(processor, structlog.dev.ConsoleRenderer)
            for processor in processors
        )
        assert not any(
            isinstance(processor, structlog.processors.JSONRenderer)
            for processor in processors
        )
    finally:
        settings.environment = original_env
        settings.log_format = original_format
        _reset_structlog()


def test_context_vars_added_to_events() -> None:
    tokens = [
        request_id_ctx.set("req-1"),
        user_id_ctx.set(7),
        document_ctx.set("invoice:3"),
    ]
    try:
        event = _add_context_vars(None, "info", {"event": "invoice_sent"})
    finally:
        document_ctx.reset(tokens[2])
        user_id_ctx.reset(tokens[1])
        request_id_ctx.reset(tokens[0])

    assert event == {
        "event": "invoice_sent",
        "request_id": "req-1",
        "user_id": 7,
        "document": "invoice:3",
    }


def test_orjson_serializer_handles_decimals() -> None:
    rendered = _orjson_serializer({"total_amount": Decimal("110.00")})

    assert json.loads(rendered) == {"total_amount": "110.00"}
