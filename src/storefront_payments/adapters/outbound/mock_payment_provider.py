from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Set
from urllib.parse import urlencode
from uuid import uuid4

import structlog
from returns.result import Result, Success

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.payment import (
    PaymentRequest,
    ProviderSession,
    VerificationOutcome,
)
from storefront_payments.core.ports.outbound.payment_provider import (
    PaymentProviderClient,
)

logger = structlog.get_logger().bind(component="mock_payment_provider")


@dataclass
class MockPaymentProvider(PaymentProviderClient):
    """No network. Sends the shopper straight to the success page."""

    success_url: str = "/payment-success"
    declined_sessions: Set[str] = field(default_factory=set)
    strict: bool = False  # reject sessions this instance did not create
    max_sessions: int = 1000  # strict mode only; oldest are forgotten first
    name: str = "nexi_mock"
    _sessions: OrderedDict[str, str] = field(default_factory=OrderedDict)

    async def create_session(
        self, request: PaymentRequest
    ) -> Result[ProviderSession, PaymentFlowError]:
        session_id = f"mock_session_{uuid4().hex[:16]}"
        query = urlencode({"session_id": session_id, "order_id": request.order_id.value})
        if self.strict:
            self._remember(session_id, request.order_id.value)
        logger.info(
            "mock_session_created",
            order_id=request.order_id.value,
            session_id=session_id,
            amount_minor=request.amount_minor,
        )
        return Success(
            ProviderSession(
                session_id=session_id, redirect_url=f"{self.success_url}?{query}"
            )
        )

    async def verify_session(
        self, session_id: str
    ) -> Result[VerificationOutcome, PaymentFlowError]:
        if session_id in self.declined_sessions:
            return Success(VerificationOutcome(success=False, raw_status="DECLINED"))
        if self.strict and session_id not in self._sessions:
            return Success(VerificationOutcome(success=False, raw_status="UNKNOWN"))
        return Success(
            VerificationOutcome(
                success=True, transaction_id=f"txn_{session_id}", raw_status="COMPLETED"
            )
        )

    async def aclose(self) -> None:
        return None

    def _remember(self, session_id: str, order_id: str) -> None:
        self._sessions[session_id] = order_id
        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)
