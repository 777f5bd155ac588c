from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Dict, Sequence

from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
)
from storefront_payments.core.ports.outbound.orders import OrderRepository


@dataclass
class InMemoryOrderRepository(OrderRepository):
    _store: Dict[str, Order] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def add(self, order: Order) -> None:
        self._store[order.order_id.value] = order

    async def get(self, order_id: OrderId) -> Result[Order, PaymentFlowError]:
        order = self._store.get(order_id.value)
        if order is None:
            return Failure(
                OrderNotFoundError(message="order not found", order_id=order_id.value)
            )
        return Success(order)

    async def update(
        self, order: Order, expected_version: int
    ) -> Result[Order, PaymentFlowError]:
        key = order.order_id.value
        async with self._lock:
            current = self._store.get(key)
            if current is None:
                return Failure(OrderNotFoundError(message="order not found", order_id=key))
            if current.version != expected_version:
                return Failure(
                    ConcurrentUpdateError(
                        message="order was modified concurrently",
                        order_id=key,
                        expected_version=expected_version,
                    )
                )
            # only the mutable part is written back
            stored = replace(
                current,
                status=order.status,
                payment=order.payment,
                version=current.version + 1,
            )
            self._store[key] = stored
            return Success(stored)

    async def find_by_owner_and_status(
        self, customer_id: CustomerId, status: OrderStatus
    ) -> Result[Sequence[Order], PaymentFlowError]:
        orders = [
            o
            for o in self._store.values()
            if o.customer_id == customer_id and o.status == status
        ]
        return Success(tuple(sorted(orders, key=lambda o: o.created_at, reverse=True)))

    async def find_by_session_id(
        self, session_id: str, customer_id: CustomerId | None = None
    ) -> Result[Order | None, PaymentFlowError]:
        matches = [
            o
            for o in self._store.values()
            if o.payment.session_id == session_id
            and (customer_id is None or o.customer_id == customer_id)
        ]
        if not matches:
            return Success(None)
        return Success(max(matches, key=lambda o: o.created_at))
