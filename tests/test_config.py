from __future__ import annotations

from decimal import Decimal

import pytest

from storefront_payments.adapters.outbound.mock_payment_provider import (
    MockPaymentProvider,
)
from storefront_payments.adapters.outbound.nexi_payment_provider import NexiXPayClient
from storefront_payments.bootstrap import build_provider
from storefront_payments.config import Settings
from storefront_payments.core.domain.model.errors import ConfigurationError


def test_defaults() -> None:
    settings = Settings.from_env({})

    assert settings.provider.kind == "mock"
    assert settings.provider.create_timeout_seconds == 30.0
    assert settings.provider.verify_timeout_seconds == 15.0
    assert settings.retry.max_attempts == 3
    assert settings.retry.base_delay_seconds == 1.0
    assert settings.max_order_total == Decimal("10000.00")
    assert settings.currency == "EUR"
    assert settings.database_url is None
    assert not settings.require_webhook_signature
    assert isinstance(build_provider(settings.provider), MockPaymentProvider)


def test_nexi_from_env() -> None:
    settings = Settings.from_env(
        {
            "STOREFRONT_PROVIDER": "NEXI",
            "STOREFRONT_NEXI_API_KEY": "k",
            "STOREFRONT_VERIFY_TIMEOUT_SECONDS": "5",
            "STOREFRONT_MAX_ORDER_TOTAL": "500",
            "STOREFRONT_STATIC_TOKENS": "a:user-1, b:user-2",
            "STOREFRONT_REQUIRE_WEBHOOK_SIGNATURE": "yes",
            "STOREFRONT_LOG_LEVEL": "debug",
        }
    )

    assert settings.provider.kind == "nexi"
    assert settings.provider.verify_timeout_seconds == 5.0
    assert settings.max_order_total == Decimal("500")
    assert settings.auth.static_tokens == {"a": "user-1", "b": "user-2"}
    assert settings.require_webhook_signature
    assert settings.log_level == "DEBUG"

    client = build_provider(settings.provider)
    assert isinstance(client, NexiXPayClient)
    assert client.verify_timeout_seconds == 5.0


@pytest.mark.parametrize(
    "env",
    [
        {"STOREFRONT_PROVIDER": "stripe"},
        {"STOREFRONT_PROVIDER": "nexi"},
        {"STOREFRONT_CREATE_TIMEOUT_SECONDS": "soon"},
        {"STOREFRONT_VERIFY_TIMEOUT_SECONDS": "0"},
        {"STOREFRONT_RETRY_MAX_ATTEMPTS": "1.5"},
        {"STOREFRONT_MAX_ORDER_TOTAL": "lots"},
        {"STOREFRONT_MAX_ORDER_TOTAL": "-1"},
        {"STOREFRONT_LOG_JSON": "sometimes"},
        {"STOREFRONT_LOG_LEVEL": "chatty"},
        {"STOREFRONT_STATIC_TOKENS": "no-colon"},
        {"STOREFRONT_AUTH_URL": "https://auth.test"},
    ],
)
def test_invalid_values(env) -> None:
    with pytest.raises(ConfigurationError):
        Settings.from_env(env)
