from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from returns.result import Failure
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine

from storefront_payments.adapters.outbound.sql_orders import SqlOrderRepository
from storefront_payments.adapters.outbound.sql_payment_sessions import (
    SqlPaymentSessionRepository,
)
from storefront_payments.adapters.outbound.sql_schema import (
    create_schema,
    orders_table,
)
from storefront_payments.adapters.outbound.sql_stock import SqlStockRepository
from storefront_payments.core.domain.model.errors import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    PersistenceError,
)
from storefront_payments.core.domain.model.order import (
    CustomerId,
    LineItem,
    Money,
    OrderId,
    OrderStatus,
    SelectedVariant,
)
from storefront_payments.core.domain.model.payment import PaymentSession
from storefront_payments.core.domain.service.inventory_reconciler import (
    InventoryReconciler,
    InventoryReconcilerDeps,
)
from storefront_payments.core.ports.outbound.stock import StockKey

from conftest import make_order


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def orders(engine) -> SqlOrderRepository:
    repo = SqlOrderRepository(engine)
    order = make_order(
        items=(
            LineItem(
                product_id="p1",
                name="T-shirt",
                quantity=2,
                unit_price=Money.of("15.00"),
                final_unit_price=Money.of("12.75"),
                selected_variant_id="v1",
            ),
        ),
        variants=(SelectedVariant(product_id="p1", variant_id="v1", quantity=2),),
    )
    assert not isinstance(await repo.add(order), Failure)
    return repo


@pytest.fixture
async def stock(engine) -> SqlStockRepository:
    repo = SqlStockRepository(engine)
    await repo.put(StockKey.product("p1"), 5)
    await repo.put(StockKey.variant("v1"), 1)
    return repo


async def test_order_round_trips_through_json_columns(orders) -> None:
    order = (await orders.get(OrderId("ord-1"))).unwrap()

    assert order.customer_id == CustomerId("user-1")
    assert order.total == Money.of("25.50")
    assert order.items[0].final_unit_price == Money.of("12.75")
    assert order.items[0].selected_variant_id == "v1"
    assert order.selected_variants[0].variant_id == "v1"
    assert order.created_at.tzinfo is not None
    assert order.version == 1


async def test_update_is_compare_and_set(orders) -> None:
    order = (await orders.get(OrderId("ord-1"))).unwrap()
    changed = order.with_payment(session_id="sess-1").with_payment_status(
        OrderStatus.CONFIRMED
    )

    saved = (await orders.update(changed, expected_version=1)).unwrap()
    assert saved.version == 2
    assert saved.status == OrderStatus.CONFIRMED
    assert saved.payment.session_id == "sess-1"

    stale = await orders.update(changed, expected_version=1)
    assert isinstance(stale.failure(), ConcurrentUpdateError)


async def test_update_of_missing_order(orders) -> None:
    ghost = make_order(order_id="ghost")

    result = await orders.update(ghost, expected_version=1)

    assert isinstance(result.failure(), OrderNotFoundError)


async def test_lookups(orders) -> None:
    older = make_order(order_id="ord-0")
    await orders.add(replace(older, created_at=older.created_at - timedelta(hours=1)))
    order = (await orders.get(OrderId("ord-1"))).unwrap()
    await orders.update(order.with_payment(session_id="sess-1"), expected_version=1)

    submitted = (
        await orders.find_by_owner_and_status(CustomerId("user-1"), OrderStatus.SUBMITTED)
    ).unwrap()
    assert [o.order_id.value for o in submitted] == ["ord-1", "ord-0"]

    found = (await orders.find_by_session_id("sess-1")).unwrap()
    assert found.order_id == OrderId("ord-1")
    assert (
        await orders.find_by_session_id("sess-1", customer_id=CustomerId("user-2"))
    ).unwrap() is None


async def test_corrupt_metadata_is_a_persistence_error(engine, orders) -> None:
    async with engine.begin() as conn:
        await conn.execute(
            update(orders_table)
            .where(orders_table.c.id == "ord-1")
            .values(payment_metadata={"inventory_adjusted": "maybe"})
        )

    result = await orders.get(OrderId("ord-1"))

    assert isinstance(result.failure(), PersistenceError)


async def test_decrement_is_clamped(stock) -> None:
    assert (await stock.decrement_clamped(StockKey.product("p1"), 2)).unwrap() == 3
    assert (await stock.decrement_clamped(StockKey.product("p1"), 10)).unwrap() == 0
    assert (await stock.get(StockKey.product("p1"))).unwrap() == 0


async def test_decrement_of_unknown_record(stock) -> None:
    result = await stock.decrement_clamped(StockKey.variant("nope"), 1)

    assert isinstance(result.failure(), PersistenceError)


async def test_reconciler_against_sql_stores(orders, stock) -> None:
    reconciler = InventoryReconciler(InventoryReconcilerDeps(orders=orders, stock=stock))
    order = (await orders.get(OrderId("ord-1"))).unwrap()

    await reconciler.reconcile(order)
    await reconciler.reconcile(order)

    assert (await stock.get(StockKey.product("p1"))).unwrap() == 3
    assert (await stock.get(StockKey.variant("v1"))).unwrap() == 0
    assert (await orders.get(OrderId("ord-1"))).unwrap().payment.inventory_adjusted


async def test_payment_session_upsert(engine) -> None:
    repo = SqlPaymentSessionRepository(engine)
    now = datetime.now(timezone.utc)
    session = PaymentSession(
        session_id="sess-1",
        order_id=OrderId("ord-1"),
        provider="nexi_xpay_cee",
        status="created",
        amount_minor=2550,
        currency="EUR",
        created_at=now,
        updated_at=now,
    )

    await repo.save(session)
    await repo.save(replace(session, status="completed", transaction_id="t-1"))

    got = (await repo.get("sess-1")).unwrap()
    assert got.status == "completed"
    assert got.transaction_id == "t-1"
    assert got.is_completed
    assert (await repo.get("other")).unwrap() is None
