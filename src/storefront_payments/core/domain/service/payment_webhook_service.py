from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any

import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    InvalidWebhookPayloadError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import (
    Order,
    OrderId,
    OrderStatus,
    now_utc,
    payment_transition,
)
from storefront_payments.core.domain.model.payment import map_provider_status
from storefront_payments.core.domain.service.inventory_reconciler import (
    InventoryReconciler,
)
from storefront_payments.core.domain.service.order_updates import apply_order_change
from storefront_payments.core.domain.service.webhook_signature import verify_signature
from storefront_payments.core.ports.inbound.payment_webhook import (
    PaymentNotification,
    PaymentWebhookCommand,
    PaymentWebhookUseCase,
    WebhookAck,
)
from storefront_payments.core.ports.outbound.orders import OrderRepository
from storefront_payments.core.ports.outbound.payment_sessions import (
    PaymentSessionRepository,
)

logger = structlog.get_logger().bind(component="payment_webhook")


@dataclass(frozen=True)
class PaymentWebhookDeps:
    orders: OrderRepository
    reconciler: InventoryReconciler
    sessions: PaymentSessionRepository | None = None
    webhook_secret: str | None = None
    require_signature: bool = False


@dataclass(frozen=True)
class PaymentWebhookService(PaymentWebhookUseCase):
    """
    Server-push path. At-least-once and unordered: every step is safe to repeat.
    Only an unreadable payload or an unknown order fails the call; inventory
    trouble is logged and acknowledged so the provider stops retrying.
    """

    deps: PaymentWebhookDeps

    async def handle_webhook(
        self, command: PaymentWebhookCommand
    ) -> Result[WebhookAck, PaymentFlowError]:
        signed = verify_signature(
            command.body,
            command.signature,
            self.deps.webhook_secret,
            required=self.deps.require_signature,
        )
        if isinstance(signed, Failure):
            logger.warning("webhook_rejected", reason=str(signed.failure()))
            return signed

        parsed = parse_notification(command.body)
        if isinstance(parsed, Failure):
            logger.warning("webhook_unparsable", reason=str(parsed.failure()))
            return parsed
        notification = parsed.unwrap()

        log = logger.bind(
            order_id=notification.order_id.value,
            provider_status=notification.provider_status,
        )
        log.info("webhook_received", transaction_id=notification.transaction_id)

        target = map_provider_status(notification.provider_status)
        received_at = now_utc()

        def record(order: Order) -> Order:
            if ignores_signal(order, target):
                return order.with_payment(webhook_received_at=received_at)
            updated = order.with_payment(
                provider_status=notification.provider_status,
                transaction_id=notification.transaction_id
                or order.payment.transaction_id,
                webhook_received_at=received_at,
            )
            if target is None:
                return updated
            moved = updated.with_payment_status(target)
            if moved.status != order.status and moved.status == OrderStatus.CONFIRMED:
                moved = moved.with_payment(
                    payment_confirmed_at=received_at, confirmed_via="webhook"
                )
            return moved

        saved = await apply_order_change(
            self.deps.orders, notification.order_id, record
        )
        if isinstance(saved, Failure):
            log.error("webhook_order_update_failed", error=str(saved.failure()))
            return saved
        order = saved.unwrap()

        ignored = ignores_signal(order, target)
        if ignored:
            log.info(
                "payment_signal_ignored",
                requested=target.value if target is not None else None,
                current=order.status.value,
            )
        else:
            log.info("order_status_recorded", status=order.status.value)

        inventory_adjusted = order.payment.inventory_adjusted
        if target == OrderStatus.CONFIRMED and order.is_paid:
            reconciled = await self.deps.reconciler.reconcile(order)
            if isinstance(reconciled, Failure):
                log.error(
                    "webhook_inventory_failed", error=str(reconciled.failure())
                )
            else:
                inventory_adjusted = True

        if not ignored:
            await self._track_session(order, notification)

        return Success(
            WebhookAck(
                order_id=order.order_id,
                status=order.status,
                inventory_adjusted=inventory_adjusted,
            )
        )

    async def _track_session(
        self, order: Order, notification: PaymentNotification
    ) -> None:
        sessions = self.deps.sessions
        session_id = order.payment.session_id
        if sessions is None or not session_id or not notification.provider_status:
            return

        got = await sessions.get(session_id)
        if isinstance(got, Failure) or got.unwrap() is None:
            return
        session = got.unwrap()

        saved = await sessions.save(
            replace(
                session,
                status=notification.provider_status.lower(),
                transaction_id=notification.transaction_id or session.transaction_id,
                updated_at=now_utc(),
            )
        )
        if isinstance(saved, Failure):
            logger.warning(
                "payment_session_status_not_recorded",
                session_id=session_id,
                error=str(saved.failure()),
            )


def ignores_signal(order: Order, target: OrderStatus | None) -> bool:
    """A paid order keeps the payment facts that confirmed it."""
    if target is None:
        return order.is_paid
    return payment_transition(order.status, target) != target


def parse_notification(body: bytes) -> Result[PaymentNotification, PaymentFlowError]:
    try:
        payload: Any = json.loads(body)
    except ValueError:
        return Failure(InvalidWebhookPayloadError("body is not valid JSON"))

    if not isinstance(payload, dict):
        return Failure(InvalidWebhookPayloadError("body must be a JSON object"))

    reference = payload.get("shopTransactionId")
    if not isinstance(reference, (str, int)) or not str(reference).strip():
        return Failure(InvalidWebhookPayloadError("shopTransactionId is required"))

    status = payload.get("status")
    transaction_id = payload.get("transactionId")
    return Success(
        PaymentNotification(
            order_id=OrderId(str(reference).strip()),
            provider_status=str(status) if status is not None else None,
            transaction_id=str(transaction_id) if transaction_id is not None else None,
        )
    )
