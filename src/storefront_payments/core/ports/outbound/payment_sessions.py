from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.payment import PaymentSession


class PaymentSessionRepository(Protocol):
    async def get(
        self, session_id: str
    ) -> Result[PaymentSession | None, PaymentFlowError]: ...

    async def save(self, session: PaymentSession) -> Result[None, PaymentFlowError]:
        """Insert or replace by session_id."""
        ...
