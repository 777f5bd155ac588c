from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    InvalidOrderError,
    OrderNotFoundError,
    PaymentFlowError,
    PaymentProviderResponseError,
)
from storefront_payments.core.domain.model.order import (
    CENT,
    CustomerId,
    LineItem,
    Money,
    Order,
    OrderId,
    OrderStatus,
    now_utc,
)
from storefront_payments.core.domain.model.payment import (
    PaymentItem,
    PaymentRequest,
    PaymentSession,
    ProviderSession,
)
from storefront_payments.core.domain.service.order_updates import apply_order_change
from storefront_payments.core.domain.service.retry import (
    RetryPolicy,
    Sleep,
    retry_transient,
)
from storefront_payments.core.ports.inbound.create_payment_session import (
    CreatePaymentSessionCommand,
    CreatePaymentSessionUseCase,
    PaymentSessionLine,
    PaymentSessionReceipt,
)
from storefront_payments.core.ports.outbound.orders import OrderRepository
from storefront_payments.core.ports.outbound.payment_provider import (
    PaymentProviderClient,
)
from storefront_payments.core.ports.outbound.payment_sessions import (
    PaymentSessionRepository,
)

logger = structlog.get_logger().bind(component="create_payment_session")


@dataclass(frozen=True)
class CreatePaymentSessionDeps:
    orders: OrderRepository
    provider: PaymentProviderClient
    max_order_total: Decimal
    currency: str = "EUR"
    sessions: PaymentSessionRepository | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Sleep = asyncio.sleep


@dataclass(frozen=True)
class CreatePaymentSessionService(CreatePaymentSessionUseCase):
    deps: CreatePaymentSessionDeps

    async def create_session(
        self, command: CreatePaymentSessionCommand
    ) -> Result[PaymentSessionReceipt, PaymentFlowError]:
        v = _validate_command(command)
        if isinstance(v, Failure):
            return v

        resolved = await self._resolve_order(command)
        if isinstance(resolved, Failure):
            return resolved
        order = resolved.unwrap()

        checked = _validate_order(
            order, command, self.deps.max_order_total, self.deps.currency
        )
        if isinstance(checked, Failure):
            logger.warning(
                "payment_session_rejected",
                order_id=order.order_id.value,
                reason=str(checked.failure()),
            )
            return checked

        request = _to_payment_request(order)
        created = await retry_transient(
            lambda: self.deps.provider.create_session(request),
            self.deps.retry,
            operation_name="create_session",
            sleep=self.deps.sleep,
        )
        if isinstance(created, Failure):
            logger.error(
                "payment_session_failed",
                order_id=order.order_id.value,
                error=str(created.failure()),
            )
            return created

        session = created.unwrap()
        if not session.redirect_url or not session.session_id:
            return Failure(
                PaymentProviderResponseError(
                    message="provider returned no redirect url or session id"
                )
            )

        logger.info(
            "payment_session_created",
            order_id=order.order_id.value,
            session_id=session.session_id,
            provider=self.deps.provider.name,
            amount_minor=request.amount_minor,
        )
        await self._remember_session(order, request, session)

        return Success(
            PaymentSessionReceipt(
                order_id=order.order_id.value,
                session_id=session.session_id,
                redirect_url=session.redirect_url,
            )
        )

    async def _resolve_order(
        self, command: CreatePaymentSessionCommand
    ) -> Result[Order, PaymentFlowError]:
        customer = CustomerId(command.customer_id)

        if command.order_id is None:
            found = await self.deps.orders.find_by_owner_and_status(
                customer, OrderStatus.SUBMITTED
            )
            if isinstance(found, Failure):
                return found
            orders = found.unwrap()
            if not orders:
                return Failure(InvalidOrderError("no submitted order awaiting payment"))
            return Success(orders[0])

        got = await self.deps.orders.get(OrderId(command.order_id))
        if isinstance(got, Failure):
            if isinstance(got.failure(), OrderNotFoundError):
                return Failure(InvalidOrderError("order not found"))
            return got

        order = got.unwrap()
        if order.customer_id != customer:
            # same message as a missing order: never confirm someone else's id
            return Failure(InvalidOrderError("order not found"))
        return Success(order)

    async def _remember_session(
        self, order: Order, request: PaymentRequest, session: ProviderSession
    ) -> None:
        # the session already exists at the provider; failures here are not fatal
        created_at = now_utc()
        stamped = await apply_order_change(
            self.deps.orders,
            order.order_id,
            lambda o: o.with_payment(
                session_id=session.session_id,
                provider=self.deps.provider.name,
                session_created_at=created_at,
                checkout_url=session.redirect_url,
            ),
        )
        if isinstance(stamped, Failure):
            logger.warning(
                "session_metadata_not_persisted",
                order_id=order.order_id.value,
                session_id=session.session_id,
                error=str(stamped.failure()),
            )

        if self.deps.sessions is None:
            return

        saved = await self.deps.sessions.save(
            PaymentSession(
                session_id=session.session_id,
                order_id=order.order_id,
                provider=self.deps.provider.name,
                status="created",
                amount_minor=request.amount_minor,
                currency=request.currency,
                created_at=created_at,
                updated_at=created_at,
                transaction_id=session.transaction_id,
            )
        )
        if isinstance(saved, Failure):
            logger.warning(
                "payment_session_not_recorded",
                session_id=session.session_id,
                error=str(saved.failure()),
            )


# ---- pure helpers ----------------------------------------------------------


def _validate_command(
    cmd: CreatePaymentSessionCommand,
) -> Result[CreatePaymentSessionCommand, PaymentFlowError]:
    if not cmd.customer_id.strip():
        return Failure(InvalidOrderError("customer_id is required"))
    if cmd.order_id is not None and not cmd.order_id.strip():
        return Failure(InvalidOrderError("order_id must be non-empty when provided"))
    if cmd.total_amount is not None and cmd.total_amount <= 0:
        return Failure(InvalidOrderError("total must be > 0"))
    for i, ln in enumerate(cmd.lines):
        if ln.quantity <= 0:
            return Failure(InvalidOrderError(f"lines[{i}].quantity must be > 0"))
    return Success(cmd)


def _validate_order(
    order: Order,
    cmd: CreatePaymentSessionCommand,
    max_total: Decimal,
    currency: str,
) -> Result[Order, PaymentFlowError]:
    if order.status != OrderStatus.SUBMITTED:
        return Failure(
            InvalidOrderError(f"order is {order.status.value}, not awaiting payment")
        )
    if not order.items:
        return Failure(InvalidOrderError("order has no items"))
    for i, item in enumerate(order.items):
        if item.quantity <= 0:
            return Failure(InvalidOrderError(f"items[{i}].quantity must be > 0"))
    if order.total.amount <= 0:
        return Failure(InvalidOrderError("order total must be > 0"))
    if order.total.amount > max_total:
        return Failure(
            InvalidOrderError(f"order total exceeds the maximum of {max_total}")
        )
    if order.total.currency.upper() != currency.upper():
        return Failure(InvalidOrderError(f"currency must be {currency}"))

    if cmd.currency is not None and cmd.currency.upper() != currency.upper():
        return Failure(InvalidOrderError(f"currency must be {currency}"))
    if cmd.total_amount is not None and (
        Decimal(str(cmd.total_amount)).quantize(CENT) != order.total.amount
    ):
        return Failure(InvalidOrderError("total does not match the order"))
    if cmd.lines and not _lines_match(cmd.lines, order.items):
        return Failure(InvalidOrderError("line items do not match the order"))

    return Success(order)


def _lines_match(
    lines: Sequence[PaymentSessionLine], items: Sequence[LineItem]
) -> bool:
    if len(lines) != len(items):
        return False
    for ln, it in zip(lines, items):
        if ln.quantity != it.quantity:
            return False
        if Money.of(ln.price).amount != it.charged_unit_price().amount:
            return False
    return True


def _to_payment_request(order: Order) -> PaymentRequest:
    items = tuple(
        PaymentItem(
            name=it.name or "Unknown Item",
            quantity=it.quantity,
            unit_price_minor=it.charged_unit_price().minor_units(),
        )
        for it in order.items
    )
    return PaymentRequest(
        order_id=order.order_id,
        amount_minor=order.total.minor_units(),
        currency=order.total.currency.upper(),
        items=items,
        description=f"Order with {len(items)} items",
    )
