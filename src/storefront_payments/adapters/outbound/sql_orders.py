from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Sequence

import structlog
from returns.result import Failure, Result, Success
from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from storefront_payments.adapters.outbound.sql_records import (
    dump_items,
    dump_metadata,
    dump_variants,
    load_items,
    load_metadata,
    load_variants,
)
from storefront_payments.adapters.outbound.sql_schema import as_utc, orders_table
from storefront_payments.core.domain.model.errors import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    PaymentFlowError,
    PersistenceError,
)
from storefront_payments.core.domain.model.order import (
    CustomerId,
    Money,
    Order,
    OrderId,
    OrderStatus,
)
from storefront_payments.core.ports.outbound.orders import OrderRepository

logger = structlog.get_logger().bind(component="sql_orders")


@dataclass(frozen=True)
class SqlOrderRepository(OrderRepository):
    engine: AsyncEngine

    async def add(self, order: Order) -> Result[Order, PaymentFlowError]:
        """Orders are created by checkout; this exists for seeding and tests."""
        values = {
            "id": order.order_id.value,
            "customer_id": order.customer_id.value,
            "status": order.status.value,
            "total_minor": order.total.minor_units(),
            "currency": order.total.currency,
            "line_items": dump_items(order.items),
            "selected_variants": dump_variants(order.selected_variants),
            "payment_metadata": dump_metadata(order.payment),
            "payment_session_id": order.payment.session_id,
            "delivery_address": order.delivery_address,
            "contact_phone": order.contact_phone,
            "created_at": order.created_at,
            "version": order.version,
        }
        try:
            async with self.engine.begin() as conn:
                await conn.execute(insert(orders_table).values(**values))
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"insert order failed: {e}"))
        return Success(order)

    async def get(self, order_id: OrderId) -> Result[Order, PaymentFlowError]:
        stmt = select(orders_table).where(orders_table.c.id == order_id.value)
        try:
            async with self.engine.connect() as conn:
                row = (await conn.execute(stmt)).mappings().first()
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"read order failed: {e}"))
        if row is None:
            return Failure(
                OrderNotFoundError(message="order not found", order_id=order_id.value)
            )
        return _to_order(row)

    async def update(
        self, order: Order, expected_version: int
    ) -> Result[Order, PaymentFlowError]:
        t = orders_table
        stmt = (
            update(t)
            .where(t.c.id == order.order_id.value, t.c.version == expected_version)
            .values(
                status=order.status.value,
                payment_metadata=dump_metadata(order.payment),
                payment_session_id=order.payment.session_id,
                version=t.c.version + 1,
            )
            .returning(*t.c)
        )
        exists = None
        try:
            async with self.engine.begin() as conn:
                row = (await conn.execute(stmt)).mappings().first()
                if row is None:
                    exists = (
                        await conn.execute(
                            select(t.c.version).where(t.c.id == order.order_id.value)
                        )
                    ).first()
        except SQLAlchemyError as e:
            logger.error(
                "order_update_failed", order_id=order.order_id.value, error=str(e)
            )
            return Failure(PersistenceError(message=f"update order failed: {e}"))

        if row is not None:
            return _to_order(row)
        if exists is None:
            return Failure(
                OrderNotFoundError(
                    message="order not found", order_id=order.order_id.value
                )
            )
        return Failure(
            ConcurrentUpdateError(
                message="order was modified concurrently",
                order_id=order.order_id.value,
                expected_version=expected_version,
            )
        )

    async def find_by_owner_and_status(
        self, customer_id: CustomerId, status: OrderStatus
    ) -> Result[Sequence[Order], PaymentFlowError]:
        t = orders_table
        stmt = (
            select(t)
            .where(t.c.customer_id == customer_id.value, t.c.status == status.value)
            .order_by(t.c.created_at.desc())
        )
        try:
            async with self.engine.connect() as conn:
                rows = (await conn.execute(stmt)).mappings().all()
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"list orders failed: {e}"))

        found: list[Order] = []
        for row in rows:
            parsed = _to_order(row)
            if isinstance(parsed, Failure):
                return parsed
            found.append(parsed.unwrap())
        return Success(tuple(found))

    async def find_by_session_id(
        self, session_id: str, customer_id: CustomerId | None = None
    ) -> Result[Order | None, PaymentFlowError]:
        t = orders_table
        stmt = select(t).where(t.c.payment_session_id == session_id)
        if customer_id is not None:
            stmt = stmt.where(t.c.customer_id == customer_id.value)
        stmt = stmt.order_by(t.c.created_at.desc()).limit(1)
        try:
            async with self.engine.connect() as conn:
                row = (await conn.execute(stmt)).mappings().first()
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"find order failed: {e}"))
        if row is None:
            return Success(None)
        return _to_order(row)


def _to_order(row: Mapping[str, Any]) -> Result[Order, PaymentFlowError]:
    currency = row["currency"]

    items = load_items(row["line_items"], currency)
    if isinstance(items, Failure):
        return items
    variants = load_variants(row["selected_variants"])
    if isinstance(variants, Failure):
        return variants
    payment = load_metadata(row["payment_metadata"])
    if isinstance(payment, Failure):
        return payment

    try:
        status = OrderStatus(row["status"])
    except ValueError:
        return Failure(PersistenceError(message=f"unknown order status {row['status']!r}"))

    return Success(
        Order(
            order_id=OrderId(row["id"]),
            customer_id=CustomerId(row["customer_id"]),
            status=status,
            total=Money.of(Decimal(row["total_minor"]) / 100, currency),
            items=items.unwrap(),
            selected_variants=variants.unwrap(),
            payment=payment.unwrap(),
            delivery_address=row["delivery_address"] or "",
            contact_phone=row["contact_phone"] or "",
            created_at=as_utc(row["created_at"]),
            version=row["version"],
        )
    )
