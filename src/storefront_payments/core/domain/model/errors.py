from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentFlowError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover
        return self.message


@dataclass(frozen=True)
class InvalidOrderError(PaymentFlowError):
    pass


@dataclass(frozen=True)
class OrderNotFoundError(PaymentFlowError):
    order_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"order_not_found: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class PaymentProviderError(PaymentFlowError):
    """Transport failure, timeout or a provider-side 5xx. Safe to retry."""

    status_code: int | None = None
    body: str | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.status_code is None:
            return f"payment_provider_error: {self.message}"
        return f"payment_provider_error: status={self.status_code} ({self.message})"


@dataclass(frozen=True)
class PaymentProviderResponseError(PaymentFlowError):
    """Malformed or rejected provider response. Not retried blindly."""

    status_code: int | None = None
    body: str | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.status_code is None:
            return f"payment_provider_response_error: {self.message}"
        return f"payment_provider_response_error: status={self.status_code} ({self.message})"


@dataclass(frozen=True)
class InventoryReconciliationError(PaymentFlowError):
    stock_key: str

    def __str__(self) -> str:  # pragma: no cover
        return f"inventory_reconciliation_error: {self.stock_key} ({self.message})"


@dataclass(frozen=True)
class PersistenceError(PaymentFlowError):
    pass


@dataclass(frozen=True)
class ConcurrentUpdateError(PersistenceError):
    order_id: str
    expected_version: int

    def __str__(self) -> str:  # pragma: no cover
        return (
            f"concurrent_update: {self.order_id} "
            f"expected_version={self.expected_version} ({self.message})"
        )


@dataclass(frozen=True)
class InvalidWebhookPayloadError(PaymentFlowError):
    pass


@dataclass(frozen=True)
class WebhookSignatureError(PaymentFlowError):
    pass


@dataclass(frozen=True)
class AuthenticationError(PaymentFlowError):
    pass


@dataclass(frozen=True)
class ConfigurationError(PaymentFlowError):
    pass
