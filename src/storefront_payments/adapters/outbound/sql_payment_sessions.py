from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success
from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from storefront_payments.adapters.outbound.sql_schema import (
    as_utc,
    payment_sessions_table,
)
from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    PersistenceError,
)
from storefront_payments.core.domain.model.order import OrderId
from storefront_payments.core.domain.model.payment import PaymentSession
from storefront_payments.core.ports.outbound.payment_sessions import (
    PaymentSessionRepository,
)


@dataclass(frozen=True)
class SqlPaymentSessionRepository(PaymentSessionRepository):
    engine: AsyncEngine

    async def get(
        self, session_id: str
    ) -> Result[PaymentSession | None, PaymentFlowError]:
        t = payment_sessions_table
        try:
            async with self.engine.connect() as conn:
                row = (
                    (await conn.execute(select(t).where(t.c.session_id == session_id)))
                    .mappings()
                    .first()
                )
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"read payment session failed: {e}"))
        if row is None:
            return Success(None)
        return Success(
            PaymentSession(
                session_id=row["session_id"],
                order_id=OrderId(row["order_id"]),
                provider=row["provider"],
                status=row["status"],
                amount_minor=row["amount_minor"],
                currency=row["currency"],
                created_at=as_utc(row["created_at"]),
                updated_at=as_utc(row["updated_at"]),
                transaction_id=row["transaction_id"],
            )
        )

    async def save(self, session: PaymentSession) -> Result[None, PaymentFlowError]:
        t = payment_sessions_table
        values = {
            "order_id": session.order_id.value,
            "provider": session.provider,
            "status": session.status,
            "amount_minor": session.amount_minor,
            "currency": session.currency,
            "transaction_id": session.transaction_id,
            "created_at": session.created_at,
            "updated_at": session.updated_at,
        }
        try:
            async with self.engine.begin() as conn:
                updated = await conn.execute(
                    update(t).where(t.c.session_id == session.session_id).values(**values)
                )
                if updated.rowcount == 0:
                    await conn.execute(
                        insert(t).values(session_id=session.session_id, **values)
                    )
        except SQLAlchemyError as e:
            return Failure(PersistenceError(message=f"write payment session failed: {e}"))
        return Success(None)
