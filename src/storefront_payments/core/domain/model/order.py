from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Tuple

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderId:
    value: str


@dataclass(frozen=True)
class CustomerId:
    value: str


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = "EUR"

    @staticmethod
    def of(amount: Decimal | int | str | float, currency: str = "EUR") -> "Money":
        dec = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
        return Money(dec, currency)

    def minor_units(self) -> int:
        """Amount in integer cents, as payment providers expect it."""
        cents = (self.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)


class OrderStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


PAID_STATUSES = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED}
)


def payment_transition(current: OrderStatus, target: OrderStatus) -> OrderStatus:
    """
    Status an order ends up in when a payment signal asks for `target`.

    submitted -> confirmed | cancelled, cancelled -> confirmed.
    Paid orders (confirmed and later) ignore payment signals.
    """
    if current == OrderStatus.SUBMITTED and target in (
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    ):
        return target
    if current == OrderStatus.CANCELLED and target == OrderStatus.CONFIRMED:
        return target
    return current


@dataclass(frozen=True)
class LineItem:
    product_id: str
    name: str
    quantity: int
    unit_price: Money
    final_unit_price: Money | None = None
    selected_variant_id: str | None = None

    def charged_unit_price(self) -> Money:
        return self.final_unit_price or self.unit_price


@dataclass(frozen=True)
class SelectedVariant:
    product_id: str
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class PaymentMetadata:
    session_id: str | None = None
    provider: str | None = None
    session_created_at: datetime | None = None
    checkout_url: str | None = None
    provider_status: str | None = None
    transaction_id: str | None = None
    webhook_received_at: datetime | None = None
    payment_confirmed_at: datetime | None = None
    confirmed_via: str | None = None
    inventory_adjusted: bool = False
    inventory_adjusted_at: datetime | None = None
    inventory_failures: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    customer_id: CustomerId
    status: OrderStatus
    total: Money
    items: Tuple[LineItem, ...]
    selected_variants: Tuple[SelectedVariant, ...] = ()
    payment: PaymentMetadata = field(default_factory=PaymentMetadata)
    delivery_address: str = ""
    contact_phone: str = ""
    created_at: datetime = field(default_factory=lambda: now_utc())
    version: int = 1

    @property
    def is_paid(self) -> bool:
        return self.status in PAID_STATUSES

    def with_payment(self, **changes: Any) -> "Order":
        return replace(self, payment=replace(self.payment, **changes))

    def with_payment_status(self, target: OrderStatus) -> "Order":
        new_status = payment_transition(self.status, target)
        if new_status == self.status:
            return self
        return replace(self, status=new_status)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
