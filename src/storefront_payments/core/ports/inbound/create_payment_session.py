from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError


@dataclass(frozen=True)
class PaymentSessionLine:
    name: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class CreatePaymentSessionCommand:
    customer_id: str
    order_id: str | None = None  # None: the shopper's latest submitted order
    total_amount: Decimal | None = None
    currency: str | None = None
    lines: Sequence[PaymentSessionLine] = ()


@dataclass(frozen=True)
class PaymentSessionReceipt:
    order_id: str
    session_id: str
    redirect_url: str


class CreatePaymentSessionUseCase(Protocol):
    async def create_session(
        self, command: CreatePaymentSessionCommand
    ) -> Result[PaymentSessionReceipt, PaymentFlowError]: ...
