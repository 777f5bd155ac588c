from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success
from sqlalchemy import case, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from storefront_payments.adapters.outbound.sql_schema import stock_levels_table
from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    PersistenceError,
)
from storefront_payments.core.ports.outbound.stock import StockKey, StockRepository


@dataclass(frozen=True)
class SqlStockRepository(StockRepository):
    engine: AsyncEngine

    async def put(self, key: StockKey, quantity: int) -> Result[None, PaymentFlowError]:
        """Set an absolute level. Seeding and tests only."""
        t = stock_levels_table
        try:
            async with self.engine.begin() as conn:
                updated = await conn.execute(
                    update(t)
                    .where(t.c.kind == key.kind.value, t.c.id == key.id)
                    .values(available_quantity=quantity)
                )
                if updated.rowcount == 0:
                    await conn.execute(
                        insert(t).values(
                            kind=key.kind.value, id=key.id, available_quantity=quantity
                        )
                    )
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"write stock failed: {e}"))
        return Success(None)

    async def get(self, key: StockKey) -> Result[int, PaymentFlowError]:
        t = stock_levels_table
        stmt = select(t.c.available_quantity).where(
            t.c.kind == key.kind.value, t.c.id == key.id
        )
        try:
            async with self.engine.connect() as conn:
                qty = (await conn.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"read stock failed: {e}"))
        if qty is None:
            return Failure(PersistenceError(message=f"no stock record for {key}"))
        return Success(qty)

    async def decrement_clamped(
        self, key: StockKey, amount: int
    ) -> Result[int, PaymentFlowError]:
        if amount < 0:
            return Failure(PersistenceError(message="amount must be >= 0"))

        t = stock_levels_table
        qty = t.c.available_quantity
        # one statement: no read-modify-write window between concurrent callers
        stmt = (
            update(t)
            .where(t.c.kind == key.kind.value, t.c.id == key.id)
            .values(available_quantity=case((qty > amount, qty - amount), else_=0))
            .returning(qty)
        )
        try:
            async with self.engine.begin() as conn:
                remaining = (await conn.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"decrement stock failed: {e}"))
        if remaining is None:
            return Failure(PersistenceError(message=f"no stock record for {key}"))
        return Success(remaining)
