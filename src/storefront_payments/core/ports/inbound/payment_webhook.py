from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.order import OrderId, OrderStatus


@dataclass(frozen=True)
class PaymentWebhookCommand:
    body: bytes
    signature: str | None = None


@dataclass(frozen=True)
class PaymentNotification:
    order_id: OrderId
    provider_status: str | None
    transaction_id: str | None


@dataclass(frozen=True)
class WebhookAck:
    order_id: OrderId
    status: OrderStatus
    inventory_adjusted: bool


class PaymentWebhookUseCase(Protocol):
    async def handle_webhook(
        self, command: PaymentWebhookCommand
    ) -> Result[WebhookAck, PaymentFlowError]: ...
