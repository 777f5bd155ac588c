from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from storefront_payments.adapters.outbound.hosted_auth import HostedAuthenticator
from storefront_payments.adapters.outbound.in_memory_orders import (
    InMemoryOrderRepository,
)
from storefront_payments.adapters.outbound.in_memory_payment_sessions import (
    InMemoryPaymentSessionRepository,
)
from storefront_payments.adapters.outbound.in_memory_stock import (
    InMemoryStockRepository,
)
from storefront_payments.adapters.outbound.mock_payment_provider import (
    MockPaymentProvider,
)
from storefront_payments.adapters.outbound.nexi_payment_provider import (
    NexiXPayClient,
)
from storefront_payments.adapters.outbound.sql_orders import SqlOrderRepository
from storefront_payments.adapters.outbound.sql_payment_sessions import (
    SqlPaymentSessionRepository,
)
from storefront_payments.adapters.outbound.sql_schema import create_schema
from storefront_payments.adapters.outbound.sql_stock import SqlStockRepository
from storefront_payments.adapters.outbound.static_auth import (
    StaticTokenAuthenticator,
)
from storefront_payments.config import ProviderSettings, Settings
from storefront_payments.core.domain.model.order import (
    CustomerId,
    LineItem,
    Money,
    Order,
    OrderId,
    OrderStatus,
)
from storefront_payments.core.domain.service.create_payment_session_service import (
    CreatePaymentSessionDeps,
    CreatePaymentSessionService,
)
from storefront_payments.core.domain.service.inventory_reconciler import (
    InventoryReconciler,
    InventoryReconcilerDeps,
)
from storefront_payments.core.domain.service.payment_return_service import (
    PaymentReturnDeps,
    PaymentReturnService,
)
from storefront_payments.core.domain.service.payment_webhook_service import (
    PaymentWebhookDeps,
    PaymentWebhookService,
)
from storefront_payments.core.domain.service.retry import Sleep
from storefront_payments.core.domain.service.verify_payment_service import (
    VerifyPaymentDeps,
    VerifyPaymentService,
)
from storefront_payments.core.ports.outbound.auth import ShopperAuthenticator
from storefront_payments.core.ports.outbound.orders import OrderRepository
from storefront_payments.core.ports.outbound.payment_provider import (
    PaymentProviderClient,
)
from storefront_payments.core.ports.outbound.payment_sessions import (
    PaymentSessionRepository,
)
from storefront_payments.core.ports.outbound.stock import StockRepository

logger = structlog.get_logger().bind(component="bootstrap")


@dataclass(frozen=True)
class UseCases:
    create_session: CreatePaymentSessionService
    webhook: PaymentWebhookService
    payment_return: PaymentReturnService
    verify_payment: VerifyPaymentService
    authenticator: ShopperAuthenticator
    provider: PaymentProviderClient
    engine: AsyncEngine | None = None

    async def start(self) -> None:
        if self.engine is not None:
            await create_schema(self.engine)

    async def aclose(self) -> None:
        await self.provider.aclose()
        if isinstance(self.authenticator, HostedAuthenticator):
            await self.authenticator.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def build_usecases(
    settings: Settings,
    *,
    orders: OrderRepository | None = None,
    stock: StockRepository | None = None,
    sessions: PaymentSessionRepository | None = None,
    provider: PaymentProviderClient | None = None,
    authenticator: ShopperAuthenticator | None = None,
    sleep: Sleep = asyncio.sleep,
) -> UseCases:
    """Explicit overrides win over what `settings` would build."""
    engine: AsyncEngine | None = None
    if settings.database_url and (orders is None or stock is None or sessions is None):
        engine = create_async_engine(settings.database_url, pool_pre_ping=True)
        orders = orders or SqlOrderRepository(engine)
        stock = stock or SqlStockRepository(engine)
        sessions = sessions or SqlPaymentSessionRepository(engine)
        logger.info("stores_selected", kind="sql", dialect=engine.dialect.name)
    elif orders is None or stock is None:
        mem_orders = InMemoryOrderRepository()
        mem_stock = InMemoryStockRepository()
        seed_demo_data(mem_orders, mem_stock)
        orders = orders or mem_orders
        stock = stock or mem_stock
        logger.info("stores_selected", kind="memory")
    if sessions is None:
        sessions = InMemoryPaymentSessionRepository()

    provider = provider or build_provider(settings.provider)
    authenticator = authenticator or build_authenticator(settings)

    reconciler = InventoryReconciler(InventoryReconcilerDeps(orders=orders, stock=stock))

    create_session = CreatePaymentSessionService(
        CreatePaymentSessionDeps(
            orders=orders,
            provider=provider,
            max_order_total=settings.max_order_total,
            currency=settings.currency,
            sessions=sessions,
            retry=settings.retry,
            sleep=sleep,
        )
    )
    webhook = PaymentWebhookService(
        PaymentWebhookDeps(
            orders=orders,
            reconciler=reconciler,
            sessions=sessions,
            webhook_secret=settings.webhook_secret,
            require_signature=settings.require_webhook_signature,
        )
    )
    payment_return = PaymentReturnService(
        PaymentReturnDeps(
            orders=orders,
            provider=provider,
            reconciler=reconciler,
            retry=settings.retry,
            sleep=sleep,
        )
    )
    verify_payment = VerifyPaymentService(
        VerifyPaymentDeps(orders=orders, sessions=sessions)
    )

    return UseCases(
        create_session=create_session,
        webhook=webhook,
        payment_return=payment_return,
        verify_payment=verify_payment,
        authenticator=authenticator,
        provider=provider,
        engine=engine,
    )


def build_provider(cfg: ProviderSettings) -> PaymentProviderClient:
    if cfg.kind == "nexi":
        logger.info("payment_provider_selected", provider="nexi", base_url=cfg.base_url)
        return NexiXPayClient(
            api_key=cfg.api_key or "",
            base_url=cfg.base_url,
            success_url=cfg.success_url,
            cancel_url=cfg.cancel_url,
            callback_url=cfg.callback_url,
            language=cfg.language,
            create_timeout_seconds=cfg.create_timeout_seconds,
            verify_timeout_seconds=cfg.verify_timeout_seconds,
        )
    logger.info("payment_provider_selected", provider="mock")
    return MockPaymentProvider(success_url=cfg.success_url)


def build_authenticator(settings: Settings) -> ShopperAuthenticator:
    if settings.auth.auth_url:
        return HostedAuthenticator(
            auth_url=settings.auth.auth_url, api_key=settings.auth.api_key or ""
        )
    return StaticTokenAuthenticator(tokens=dict(settings.auth.static_tokens))


def seed_demo_data(
    orders: InMemoryOrderRepository, stock: InMemoryStockRepository
) -> None:
    # lets `serve` with no database answer requests out of the box
    stock.products.update({"p1": 5, "p2": 10})
    orders.add(
        Order(
            order_id=OrderId("ord-demo-1"),
            customer_id=CustomerId("demo-user"),
            status=OrderStatus.SUBMITTED,
            total=Money.of(Decimal("25.50")),
            items=(
                LineItem(
                    product_id="p1",
                    name="Demo product",
                    quantity=2,
                    unit_price=Money.of(Decimal("12.75")),
                ),
            ),
        )
    )
