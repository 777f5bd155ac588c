from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError


@dataclass(frozen=True)
class PaymentReturnCommand:
    customer_id: str
    session_id: str | None = None
    order_id: str | None = None


class ReturnLevel(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class PaymentReturnOutcome:
    payment_succeeded: bool
    level: ReturnLevel
    code: str
    message: str
    order_id: str | None = None
    transaction_id: str | None = None


class PaymentReturnUseCase(Protocol):
    async def handle_return(
        self, command: PaymentReturnCommand
    ) -> Result[PaymentReturnOutcome, PaymentFlowError]: ...
