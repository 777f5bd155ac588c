from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from storefront_payments.core.domain.model.order import OrderId, OrderStatus

CONFIRMING_PROVIDER_STATUSES = frozenset({"COMPLETED", "AUTHORIZED"})
CANCELLING_PROVIDER_STATUSES = frozenset({"CANCELLED", "FAILED"})


def map_provider_status(provider_status: str | None) -> OrderStatus | None:
    """Order status a provider status asks for, None when it asks for nothing."""
    if not provider_status:
        return None
    normalized = provider_status.strip().upper()
    if normalized in CONFIRMING_PROVIDER_STATUSES:
        return OrderStatus.CONFIRMED
    if normalized in CANCELLING_PROVIDER_STATUSES:
        return OrderStatus.CANCELLED
    return None


@dataclass(frozen=True)
class PaymentItem:
    name: str
    quantity: int
    unit_price_minor: int


@dataclass(frozen=True)
class PaymentRequest:
    order_id: OrderId
    amount_minor: int
    currency: str
    items: Tuple[PaymentItem, ...]
    description: str

    @property
    def idempotency_key(self) -> str:
        return self.order_id.value


@dataclass(frozen=True)
class ProviderSession:
    session_id: str
    redirect_url: str
    transaction_id: str | None = None


@dataclass(frozen=True)
class VerificationOutcome:
    success: bool
    transaction_id: str | None = None
    raw_status: str | None = None


@dataclass(frozen=True)
class PaymentSession:
    """Provider session as tracked on our side, independent of the order."""

    session_id: str
    order_id: OrderId
    provider: str
    status: str
    amount_minor: int
    currency: str
    created_at: datetime
    updated_at: datetime
    transaction_id: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status.lower() in {"completed", "authorized"}
