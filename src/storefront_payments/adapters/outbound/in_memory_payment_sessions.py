from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from returns.result import Result, Success

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.payment import PaymentSession
from storefront_payments.core.ports.outbound.payment_sessions import (
    PaymentSessionRepository,
)


@dataclass
class InMemoryPaymentSessionRepository(PaymentSessionRepository):
    _store: Dict[str, PaymentSession] = field(default_factory=dict)

    async def get(
        self, session_id: str
    ) -> Result[PaymentSession | None, PaymentFlowError]:
        return Success(self._store.get(session_id))

    async def save(self, session: PaymentSession) -> Result[None, PaymentFlowError]:
        self._store[session.session_id] = session
        return Success(None)
