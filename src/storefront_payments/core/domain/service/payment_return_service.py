from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    AuthenticationError,
    OrderNotFoundError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
    now_utc,
)
from storefront_payments.core.domain.model.payment import VerificationOutcome
from storefront_payments.core.domain.service.inventory_reconciler import (
    InventoryReconciler,
)
from storefront_payments.core.domain.service.order_updates import apply_order_change
from storefront_payments.core.domain.service.retry import (
    RetryPolicy,
    Sleep,
    retry_transient,
)
from storefront_payments.core.ports.inbound.payment_return import (
    PaymentReturnCommand,
    PaymentReturnOutcome,
    PaymentReturnUseCase,
    ReturnLevel,
)
from storefront_payments.core.ports.outbound.orders import OrderRepository
from storefront_payments.core.ports.outbound.payment_provider import (
    PaymentProviderClient,
)

logger = structlog.get_logger().bind(component="payment_return")


@dataclass(frozen=True)
class PaymentReturnDeps:
    orders: OrderRepository
    provider: PaymentProviderClient
    reconciler: InventoryReconciler
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Sleep = asyncio.sleep


@dataclass(frozen=True)
class PaymentReturnService(PaymentReturnUseCase):
    """
    Browser return from the provider. Best-effort: the webhook is authoritative,
    so lookup or update trouble degrades to a warning and never hides a
    verified payment from the shopper.
    """

    deps: PaymentReturnDeps

    async def handle_return(
        self, command: PaymentReturnCommand
    ) -> Result[PaymentReturnOutcome, PaymentFlowError]:
        if not command.customer_id.strip():
            return Failure(AuthenticationError("shopper is not authenticated"))
        customer = CustomerId(command.customer_id)

        session_id = (command.session_id or "").strip()
        if not session_id:
            logger.warning("payment_return_without_session", customer_id=customer.value)
            return Success(
                _outcome(
                    True,
                    ReturnLevel.WARNING,
                    "session_missing",
                    "payment could not be verified; the order will be updated "
                    "once the provider confirms it",
                )
            )

        log = logger.bind(session_id=session_id, customer_id=customer.value)

        verified = await retry_transient(
            lambda: self.deps.provider.verify_session(session_id),
            self.deps.retry,
            operation_name="verify_session",
            sleep=self.deps.sleep,
        )
        if isinstance(verified, Failure):
            log.warning("payment_return_unverified", error=str(verified.failure()))
            return Success(
                _outcome(
                    True,
                    ReturnLevel.WARNING,
                    "verification_unavailable",
                    "payment could not be verified right now; the order will be "
                    "updated once the provider confirms it",
                )
            )

        outcome = verified.unwrap()
        if not outcome.success:
            log.warning("payment_return_declined", raw_status=outcome.raw_status)
            return Success(
                _outcome(
                    False,
                    ReturnLevel.ERROR,
                    "payment_not_verified",
                    "the payment provider did not confirm this payment",
                )
            )

        located = await self._locate(customer, session_id, command.order_id)
        if isinstance(located, Failure):
            log.warning("payment_return_lookup_failed", error=str(located.failure()))
            return Success(_order_missing(outcome))

        order = located.unwrap()
        if order is None:
            log.warning("payment_return_order_not_found", order_id=command.order_id)
            return Success(_order_missing(outcome))

        confirmed = await apply_order_change(
            self.deps.orders, order.order_id, lambda o: _confirm(o, outcome)
        )
        if isinstance(confirmed, Failure):
            log.warning(
                "payment_return_update_failed",
                order_id=order.order_id.value,
                error=str(confirmed.failure()),
            )
            return Success(
                _outcome(
                    True,
                    ReturnLevel.WARNING,
                    "order_update_failed",
                    "payment succeeded; the order will be updated shortly",
                    order_id=order.order_id.value,
                    transaction_id=outcome.transaction_id,
                )
            )

        order = confirmed.unwrap()
        log.info("payment_return_confirmed", order_id=order.order_id.value)

        if order.is_paid:
            reconciled = await self.deps.reconciler.reconcile(order)
            if isinstance(reconciled, Failure):
                log.error(
                    "payment_return_inventory_failed",
                    order_id=order.order_id.value,
                    error=str(reconciled.failure()),
                )

        return Success(
            _outcome(
                True,
                ReturnLevel.SUCCESS,
                "payment_confirmed",
                "payment succeeded",
                order_id=order.order_id.value,
                transaction_id=order.payment.transaction_id,
            )
        )

    async def _locate(
        self, customer: CustomerId, session_id: str, order_id: str | None
    ) -> Result[Order | None, PaymentFlowError]:
        if not order_id:
            return await self.deps.orders.find_by_session_id(
                session_id, customer_id=customer
            )

        got = await self.deps.orders.get(OrderId(order_id))
        if isinstance(got, Failure):
            if isinstance(got.failure(), OrderNotFoundError):
                return Success(None)
            return got

        order = got.unwrap()
        if order.customer_id != customer:
            logger.warning(
                "payment_return_foreign_order",
                order_id=order_id,
                customer_id=customer.value,
            )
            return Success(None)
        if order.payment.session_id and order.payment.session_id != session_id:
            logger.warning(
                "payment_return_session_mismatch",
                order_id=order_id,
                session_id=session_id,
            )
            return Success(None)
        return Success(order)


def _confirm(order: Order, outcome: VerificationOutcome) -> Order:
    # the webhook's transaction id wins; only fill a gap here
    moved = order.with_payment(
        transaction_id=order.payment.transaction_id or outcome.transaction_id
    ).with_payment_status(OrderStatus.CONFIRMED)
    if moved.status != order.status:
        moved = moved.with_payment(
            payment_confirmed_at=now_utc(), confirmed_via="return"
        )
    return moved


def _order_missing(outcome: VerificationOutcome) -> PaymentReturnOutcome:
    return _outcome(
        True,
        ReturnLevel.WARNING,
        "order_not_found",
        "payment succeeded, but the order could not be found",
        transaction_id=outcome.transaction_id,
    )


def _outcome(
    payment_succeeded: bool,
    level: ReturnLevel,
    code: str,
    message: str,
    order_id: str | None = None,
    transaction_id: str | None = None,
) -> PaymentReturnOutcome:
    return PaymentReturnOutcome(
        payment_succeeded=payment_succeeded,
        level=level,
        code=code,
        message=message,
        order_id=order_id,
        transaction_id=transaction_id,
    )
