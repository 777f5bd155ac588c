from __future__ import annotations

from datetime import datetime, timezone

import pytest

from storefront_payments.core.domain.model.errors import (
    InvalidOrderError,
    OrderNotFoundError,
)
from storefront_payments.core.domain.model.order import OrderId, OrderStatus
from storefront_payments.core.domain.model.payment import PaymentSession
from storefront_payments.core.domain.service.verify_payment_service import (
    VerifyPaymentDeps,
    VerifyPaymentService,
)
from storefront_payments.core.ports.inbound.verify_payment import VerifyPaymentQuery

from conftest import make_order, stored


def _session(status: str, session_id: str = "sess-1") -> PaymentSession:
    now = datetime.now(timezone.utc)
    return PaymentSession(
        session_id=session_id,
        order_id=OrderId("ord-1"),
        provider="scripted",
        status=status,
        amount_minor=2550,
        currency="EUR",
        created_at=now,
        updated_at=now,
        transaction_id="txn-9" if status == "completed" else None,
    )


@pytest.fixture
def service(orders, sessions) -> VerifyPaymentService:
    return VerifyPaymentService(VerifyPaymentDeps(orders=orders, sessions=sessions))


async def test_completed_session_record_wins(service, sessions) -> None:
    await sessions.save(_session("completed"))

    view = (await service.verify_payment(VerifyPaymentQuery("sess-1"))).unwrap()

    assert view.success
    assert view.transaction_id == "txn-9"
    assert view.source == "session"


async def test_open_session_falls_back_to_order(service, orders, sessions) -> None:
    await sessions.save(_session("created"))

    view = (await service.verify_payment(VerifyPaymentQuery("sess-1"))).unwrap()

    assert not view.success
    assert view.status == "submitted"
    assert view.transaction_id == "order_ord-1"
    assert view.source == "order"


async def test_paid_order_found_by_session(service, orders) -> None:
    order = await stored(orders)
    await orders.update(
        order.with_payment(session_id="sess-2", transaction_id="txn-2").with_payment_status(
            OrderStatus.CONFIRMED
        ),
        order.version,
    )

    view = (await service.verify_payment(VerifyPaymentQuery("sess-2"))).unwrap()

    assert view.success
    assert view.transaction_id == "txn-2"
    assert view.status == "confirmed"


async def test_order_id_is_accepted_as_reference(service, orders) -> None:
    orders.add(make_order(order_id="ord-7", status=OrderStatus.DELIVERED))

    view = (await service.verify_payment(VerifyPaymentQuery("ord-7"))).unwrap()

    assert view.success


async def test_unknown_reference(service) -> None:
    result = await service.verify_payment(VerifyPaymentQuery("nothing"))

    assert isinstance(result.failure(), OrderNotFoundError)


async def test_blank_reference(service) -> None:
    result = await service.verify_payment(VerifyPaymentQuery("  "))

    assert isinstance(result.failure(), InvalidOrderError)


async def test_never_mutates(service, orders, stock) -> None:
    before = await stored(orders)

    await service.verify_payment(VerifyPaymentQuery("ord-1"))

    assert await stored(orders) == before
    assert stock.products["p1"] == 5
