from __future__ import annotations

from typing import Callable

import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    ConcurrentUpdateError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import Order, OrderId
from storefront_payments.core.ports.outbound.orders import OrderRepository

OrderChange = Callable[[Order], Order]

MAX_UPDATE_ATTEMPTS = 5

logger = structlog.get_logger().bind(component="order_updates")


async def apply_order_change(
    orders: OrderRepository,
    order_id: OrderId,
    change: OrderChange,
    max_attempts: int = MAX_UPDATE_ATTEMPTS,
) -> Result[Order, PaymentFlowError]:
    """
    Read the order, apply `change`, write it back with a version check.
    On a version conflict the change is re-applied to a fresh read.
    A change that returns an equal order writes nothing.
    """
    expected_version = 0
    for attempt in range(1, max_attempts + 1):
        got = await orders.get(order_id)
        if isinstance(got, Failure):
            return got

        current = got.unwrap()
        changed = change(current)
        if changed == current:
            return Success(current)

        expected_version = current.version
        saved = await orders.update(changed, expected_version=expected_version)
        if isinstance(saved, Success):
            return saved
        if not isinstance(saved.failure(), ConcurrentUpdateError):
            return saved

        logger.info(
            "order_update_conflict",
            order_id=order_id.value,
            attempt=attempt,
            expected_version=expected_version,
        )

    return Failure(
        ConcurrentUpdateError(
            message=f"gave up after {max_attempts} conflicting updates",
            order_id=order_id.value,
            expected_version=expected_version,
        )
    )
