from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.payment import (
    PaymentRequest,
    ProviderSession,
    VerificationOutcome,
)


class PaymentProviderClient(Protocol):
    @property
    def name(self) -> str: ...

    async def create_session(
        self, request: PaymentRequest
    ) -> Result[ProviderSession, PaymentFlowError]: ...

    async def verify_session(
        self, session_id: str
    ) -> Result[VerificationOutcome, PaymentFlowError]: ...

    async def aclose(self) -> None: ...
