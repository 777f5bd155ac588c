from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

orders_table = Table(
    "orders",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("customer_id", String(64), nullable=False, index=True),
    Column("status", String(16), nullable=False, index=True),
    Column("total_minor", Integer, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("line_items", JSON, nullable=False),
    Column("selected_variants", JSON, nullable=False),
    Column("payment_metadata", JSON, nullable=False),
    # copied out of payment_metadata so lookups by session can use an index
    Column("payment_session_id", String(128), nullable=True, index=True),
    Column("delivery_address", Text, nullable=False, default=""),
    Column("contact_phone", String(32), nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False, default=1),
)

stock_levels_table = Table(
    "stock_levels",
    metadata,
    Column("kind", String(16), primary_key=True),
    Column("id", String(64), primary_key=True),
    Column("available_quantity", Integer, nullable=False),
)

payment_sessions_table = Table(
    "payment_sessions",
    metadata,
    Column("session_id", String(128), primary_key=True),
    Column("order_id", String(64), nullable=False, index=True),
    Column("provider", String(32), nullable=False),
    Column("status", String(32), nullable=False),
    Column("amount_minor", Integer, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("transaction_id", String(128), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
