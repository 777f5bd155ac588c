from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    InventoryReconciliationError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import Order, OrderId, now_utc
from storefront_payments.core.domain.service.order_updates import apply_order_change
from storefront_payments.core.ports.outbound.orders import OrderRepository
from storefront_payments.core.ports.outbound.stock import StockKey, StockRepository

logger = structlog.get_logger().bind(component="inventory_reconciler")


@dataclass(frozen=True)
class ReconciliationReport:
    order_id: OrderId
    performed: bool  # False: an earlier call already adjusted this order
    decremented: Tuple[str, ...] = ()
    failures: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InventoryReconcilerDeps:
    orders: OrderRepository
    stock: StockRepository


@dataclass(frozen=True)
class InventoryReconciler:
    """
    Decrements stock for a paid order at most once.

    The order's payment metadata is the guard: the first caller flips
    `inventory_adjusted` through the store's version check before touching stock,
    so concurrent callers (webhook and browser return) cannot both decrement.
    Per-item failures are logged and recorded on the order but never retried.
    """

    deps: InventoryReconcilerDeps

    async def reconcile(
        self, order: Order
    ) -> Result[ReconciliationReport, PaymentFlowError]:
        if order.payment.inventory_adjusted:
            return Success(ReconciliationReport(order.order_id, performed=False))

        claimed = await self._claim(order.order_id)
        if isinstance(claimed, Failure):
            logger.error(
                "inventory_claim_failed",
                order_id=order.order_id.value,
                error=str(claimed.failure()),
            )
            return claimed

        claimed_order = claimed.unwrap()
        if claimed_order is None:
            logger.info("inventory_already_adjusted", order_id=order.order_id.value)
            return Success(ReconciliationReport(order.order_id, performed=False))

        decremented: list[str] = []
        failures: list[str] = []
        for key, quantity in _stock_movements(claimed_order):
            moved = await self.deps.stock.decrement_clamped(key, quantity)
            if isinstance(moved, Failure):
                err = InventoryReconciliationError(
                    message=str(moved.failure()), stock_key=str(key)
                )
                logger.error(
                    "inventory_item_failed",
                    order_id=order.order_id.value,
                    stock_key=err.stock_key,
                    quantity=quantity,
                    error=err.message,
                )
                failures.append(str(key))
                continue

            decremented.append(str(key))
            logger.info(
                "inventory_item_decremented",
                order_id=order.order_id.value,
                stock_key=str(key),
                quantity=quantity,
                remaining=moved.unwrap(),
            )

        if failures:
            await self._record_failures(order.order_id, tuple(failures))

        return Success(
            ReconciliationReport(
                order.order_id,
                performed=True,
                decremented=tuple(decremented),
                failures=tuple(failures),
            )
        )

    async def _claim(
        self, order_id: OrderId
    ) -> Result[Order | None, PaymentFlowError]:
        # the flag reflects the application that was actually written
        won = False

        def mark(current: Order) -> Order:
            nonlocal won
            if current.payment.inventory_adjusted:
                won = False
                return current
            won = True
            return current.with_payment(
                inventory_adjusted=True, inventory_adjusted_at=now_utc()
            )

        result = await apply_order_change(self.deps.orders, order_id, mark)
        if isinstance(result, Failure):
            return result
        return Success(result.unwrap() if won else None)

    async def _record_failures(
        self, order_id: OrderId, failures: Tuple[str, ...]
    ) -> None:
        recorded = await apply_order_change(
            self.deps.orders,
            order_id,
            lambda o: o.with_payment(inventory_failures=failures),
        )
        if isinstance(recorded, Failure):
            logger.error(
                "inventory_failures_not_recorded",
                order_id=order_id.value,
                failures=list(failures),
                error=str(recorded.failure()),
            )


def _stock_movements(order: Order) -> Iterator[tuple[StockKey, int]]:
    for item in order.items:
        if item.quantity <= 0:
            logger.warning(
                "inventory_item_skipped",
                order_id=order.order_id.value,
                product_id=item.product_id,
                quantity=item.quantity,
            )
            continue
        yield StockKey.product(item.product_id), item.quantity

    for variant in order.selected_variants:
        if variant.quantity <= 0:
            continue
        yield StockKey.variant(variant.variant_id), variant.quantity
