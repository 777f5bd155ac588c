from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

import pytest
from returns.result import Failure, Result, Success

from storefront_payments.adapters.outbound.in_memory_orders import (
    InMemoryOrderRepository,
)
from storefront_payments.adapters.outbound.in_memory_payment_sessions import (
    InMemoryPaymentSessionRepository,
)
from storefront_payments.adapters.outbound.in_memory_stock import (
    InMemoryStockRepository,
)
from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.order import (
    CustomerId,
    LineItem,
    Money,
    Order,
    OrderId,
    OrderStatus,
    SelectedVariant,
)
from storefront_payments.core.domain.model.payment import (
    PaymentRequest,
    ProviderSession,
    VerificationOutcome,
)
from storefront_payments.core.domain.service.inventory_reconciler import (
    InventoryReconciler,
    InventoryReconcilerDeps,
)


def make_order(
    order_id: str = "ord-1",
    customer_id: str = "user-1",
    total: str = "25.50",
    items: tuple[LineItem, ...] | None = None,
    variants: tuple[SelectedVariant, ...] = (),
    status: OrderStatus = OrderStatus.SUBMITTED,
) -> Order:
    if items is None:
        items = (
            LineItem(
                product_id="p1",
                name="T-shirt",
                quantity=2,
                unit_price=Money.of("12.75"),
            ),
        )
    return Order(
        order_id=OrderId(order_id),
        customer_id=CustomerId(customer_id),
        status=status,
        total=Money.of(Decimal(total)),
        items=items,
        selected_variants=variants,
    )


@dataclass
class RecordingSleep:
    delays: List[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@dataclass
class ScriptedProvider:
    """Plays back queued results; counts calls."""

    create_results: List[Result[ProviderSession, PaymentFlowError]] = field(
        default_factory=list
    )
    verify_results: List[Result[VerificationOutcome, PaymentFlowError]] = field(
        default_factory=list
    )
    name: str = "scripted"
    create_calls: List[PaymentRequest] = field(default_factory=list)
    verify_calls: List[str] = field(default_factory=list)

    async def create_session(
        self, request: PaymentRequest
    ) -> Result[ProviderSession, PaymentFlowError]:
        self.create_calls.append(request)
        if self.create_results:
            return self.create_results.pop(0)
        return Success(
            ProviderSession(
                session_id=f"sess-{request.order_id.value}",
                redirect_url=f"https://pay.example/{request.order_id.value}",
            )
        )

    async def verify_session(
        self, session_id: str
    ) -> Result[VerificationOutcome, PaymentFlowError]:
        self.verify_calls.append(session_id)
        if self.verify_results:
            return self.verify_results.pop(0)
        return Success(
            VerificationOutcome(
                success=True, transaction_id=f"txn-{session_id}", raw_status="COMPLETED"
            )
        )

    async def aclose(self) -> None:
        return None


@pytest.fixture
def orders() -> InMemoryOrderRepository:
    repo = InMemoryOrderRepository()
    repo.add(make_order())
    return repo


@pytest.fixture
def stock() -> InMemoryStockRepository:
    return InMemoryStockRepository(products={"p1": 5, "p2": 10}, variants={"v1": 4})


@pytest.fixture
def sessions() -> InMemoryPaymentSessionRepository:
    return InMemoryPaymentSessionRepository()


@pytest.fixture
def reconciler(
    orders: InMemoryOrderRepository, stock: InMemoryStockRepository
) -> InventoryReconciler:
    return InventoryReconciler(InventoryReconcilerDeps(orders=orders, stock=stock))


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


async def stored(repo: InMemoryOrderRepository, order_id: str = "ord-1") -> Order:
    got = await repo.get(OrderId(order_id))
    assert not isinstance(got, Failure)
    return got.unwrap()
