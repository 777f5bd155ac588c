from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError


@dataclass(frozen=True)
class VerifyPaymentQuery:
    session_id: str


@dataclass(frozen=True)
class PaymentVerificationView:
    success: bool
    transaction_id: str | None
    status: str | None
    source: str  # session | order


class VerifyPaymentUseCase(Protocol):
    async def verify_payment(
        self, query: VerifyPaymentQuery
    ) -> Result[PaymentVerificationView, PaymentFlowError]: ...
