from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Mapping

from storefront_payments.core.domain.model.errors import ConfigurationError
from storefront_payments.core.domain.service.retry import RetryPolicy

ENV_PREFIX = "STOREFRONT_"
NEXI_STAGING_URL = "https://stg-ta.nexigroup.com"
PROVIDERS = ("mock", "nexi")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ProviderSettings:
    kind: str = "mock"
    api_key: str | None = None
    base_url: str = NEXI_STAGING_URL
    success_url: str = "http://localhost:3000/payment-success"
    cancel_url: str = "http://localhost:3000/checkout"
    callback_url: str = "http://localhost:8000/payments/webhook"
    language: str = "SI"
    create_timeout_seconds: float = 30.0
    verify_timeout_seconds: float = 15.0


@dataclass(frozen=True)
class AuthSettings:
    auth_url: str | None = None
    api_key: str | None = None
    static_tokens: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Settings:
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    max_order_total: Decimal = Decimal("10000.00")
    currency: str = "EUR"
    webhook_secret: str | None = None
    require_webhook_signature: bool = False
    database_url: str | None = None
    log_level: str = "INFO"
    log_json: bool = True

    @staticmethod
    def from_env(environ: Mapping[str, str]) -> "Settings":
        env = _Env(environ)

        kind = env.text("PROVIDER", "mock").lower()
        if kind not in PROVIDERS:
            raise ConfigurationError(
                f"{ENV_PREFIX}PROVIDER must be one of {', '.join(PROVIDERS)}"
            )
        api_key = env.optional("NEXI_API_KEY")
        if kind == "nexi" and not api_key:
            raise ConfigurationError(f"{ENV_PREFIX}NEXI_API_KEY is required for nexi")

        defaults = ProviderSettings()
        provider = ProviderSettings(
            kind=kind,
            api_key=api_key,
            base_url=env.text("NEXI_BASE_URL", defaults.base_url),
            success_url=env.text("NEXI_SUCCESS_URL", defaults.success_url),
            cancel_url=env.text("NEXI_CANCEL_URL", defaults.cancel_url),
            callback_url=env.text("NEXI_CALLBACK_URL", defaults.callback_url),
            language=env.text("NEXI_LANGUAGE", defaults.language),
            create_timeout_seconds=env.positive_float(
                "CREATE_TIMEOUT_SECONDS", defaults.create_timeout_seconds
            ),
            verify_timeout_seconds=env.positive_float(
                "VERIFY_TIMEOUT_SECONDS", defaults.verify_timeout_seconds
            ),
        )

        auth = AuthSettings(
            auth_url=env.optional("AUTH_URL"),
            api_key=env.optional("AUTH_API_KEY"),
            static_tokens=_parse_tokens(env.text("STATIC_TOKENS", "")),
        )
        if auth.auth_url and not auth.api_key:
            raise ConfigurationError(f"{ENV_PREFIX}AUTH_API_KEY is required with AUTH_URL")

        retry = RetryPolicy(
            max_attempts=env.positive_int("RETRY_MAX_ATTEMPTS", 3),
            base_delay_seconds=env.positive_float("RETRY_BASE_DELAY_SECONDS", 1.0),
            max_delay_seconds=env.positive_float("RETRY_MAX_DELAY_SECONDS", 8.0),
        )

        log_level = env.text("LOG_LEVEL", "INFO").upper()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}"
            )

        return Settings(
            provider=provider,
            auth=auth,
            retry=retry,
            max_order_total=env.positive_decimal("MAX_ORDER_TOTAL", Decimal("10000.00")),
            currency=env.text("CURRENCY", "EUR").upper(),
            webhook_secret=env.optional("WEBHOOK_SECRET"),
            require_webhook_signature=env.flag("REQUIRE_WEBHOOK_SIGNATURE", False),
            database_url=env.optional("DATABASE_URL"),
            log_level=log_level,
            log_json=env.flag("LOG_JSON", True),
        )


@dataclass(frozen=True)
class _Env:
    environ: Mapping[str, str]

    def optional(self, name: str) -> str | None:
        value = self.environ.get(ENV_PREFIX + name, "").strip()
        return value or None

    def text(self, name: str, default: str) -> str:
        return self.optional(name) or default

    def flag(self, name: str, default: bool) -> bool:
        raw = self.optional(name)
        if raw is None:
            return default
        if raw.lower() in ("1", "true", "yes", "on"):
            return True
        if raw.lower() in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")

    def positive_int(self, name: str, default: int) -> int:
        raw = self.optional(name)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name} must be an integer, got {raw!r}"
            ) from None
        if value <= 0:
            raise ConfigurationError(f"{ENV_PREFIX}{name} must be > 0")
        return value

    def positive_float(self, name: str, default: float) -> float:
        raw = self.optional(name)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name} must be a number, got {raw!r}"
            ) from None
        if value <= 0:
            raise ConfigurationError(f"{ENV_PREFIX}{name} must be > 0")
        return value

    def positive_decimal(self, name: str, default: Decimal) -> Decimal:
        raw = self.optional(name)
        if raw is None:
            return default
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name} must be a decimal, got {raw!r}"
            ) from None
        if not value.is_finite() or value <= 0:
            raise ConfigurationError(f"{ENV_PREFIX}{name} must be > 0")
        return value


def _parse_tokens(raw: str) -> dict[str, str]:
    """`tok_a:user-1,tok_b:user-2`"""
    tokens: dict[str, str] = {}
    for pair in filter(None, (p.strip() for p in raw.split(","))):
        token, sep, user = pair.partition(":")
        if not sep or not token.strip() or not user.strip():
            raise ConfigurationError(
                f"{ENV_PREFIX}STATIC_TOKENS entries must look like token:user"
            )
        tokens[token.strip()] = user.strip()
    return tokens
