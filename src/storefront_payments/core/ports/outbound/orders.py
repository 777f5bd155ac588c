from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
)


class OrderRepository(Protocol):
    """
    Orders are created and owned elsewhere (checkout). This port only reads them
    and writes back `status` and `payment`.
    """

    async def get(self, order_id: OrderId) -> Result[Order, PaymentFlowError]: ...

    async def update(
        self, order: Order, expected_version: int
    ) -> Result[Order, PaymentFlowError]:
        """
        Compare-and-set: persist `order.status` and `order.payment` only when the
        stored version still equals `expected_version`. Returns the stored order
        with its new version, or ConcurrentUpdateError.
        """
        ...

    async def find_by_owner_and_status(
        self, customer_id: CustomerId, status: OrderStatus
    ) -> Result[Sequence[Order], PaymentFlowError]:
        """Newest first."""
        ...

    async def find_by_session_id(
        self, session_id: str, customer_id: CustomerId | None = None
    ) -> Result[Order | None, PaymentFlowError]: ...
