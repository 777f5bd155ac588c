from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    InvalidOrderError,
    OrderNotFoundError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import Order, OrderId
from storefront_payments.core.ports.inbound.verify_payment import (
    PaymentVerificationView,
    VerifyPaymentQuery,
    VerifyPaymentUseCase,
)
from storefront_payments.core.ports.outbound.orders import OrderRepository
from storefront_payments.core.ports.outbound.payment_sessions import (
    PaymentSessionRepository,
)


@dataclass(frozen=True)
class VerifyPaymentDeps:
    orders: OrderRepository
    sessions: PaymentSessionRepository | None = None


@dataclass(frozen=True)
class VerifyPaymentService(VerifyPaymentUseCase):
    """Read-only: derives payment state, never touches status or stock."""

    deps: VerifyPaymentDeps

    async def verify_payment(
        self, query: VerifyPaymentQuery
    ) -> Result[PaymentVerificationView, PaymentFlowError]:
        session_id = query.session_id.strip()
        if not session_id:
            return Failure(InvalidOrderError("invalid session id"))

        order_id: OrderId | None = None
        if self.deps.sessions is not None:
            got = await self.deps.sessions.get(session_id)
            if isinstance(got, Failure):
                return got
            session = got.unwrap()
            if session is not None:
                if session.is_completed:
                    return Success(
                        PaymentVerificationView(
                            success=True,
                            transaction_id=session.transaction_id,
                            status=session.status,
                            source="session",
                        )
                    )
                # not settled on the session record; the order may know more
                order_id = session.order_id

        found = await self._find_order(session_id, order_id)
        if isinstance(found, Failure):
            return found
        return Success(_view_from_order(found.unwrap()))

    async def _find_order(
        self, session_id: str, order_id: OrderId | None
    ) -> Result[Order, PaymentFlowError]:
        if order_id is not None:
            return await self.deps.orders.get(order_id)

        by_session = await self.deps.orders.find_by_session_id(session_id)
        if isinstance(by_session, Failure):
            return by_session
        order = by_session.unwrap()
        if order is not None:
            return Success(order)

        # callers sometimes hold only the order id
        by_id = await self.deps.orders.get(OrderId(session_id))
        if isinstance(by_id, Failure) and isinstance(
            by_id.failure(), OrderNotFoundError
        ):
            return Failure(
                OrderNotFoundError(
                    message="no payment session or order matches", order_id=session_id
                )
            )
        return by_id


def _view_from_order(order: Order) -> PaymentVerificationView:
    return PaymentVerificationView(
        success=order.is_paid,
        transaction_id=order.payment.transaction_id or f"order_{order.order_id.value}",
        status=order.status.value,
        source="order",
    )
