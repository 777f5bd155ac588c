from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    PaymentProviderError,
    PaymentProviderResponseError,
)
from storefront_payments.core.domain.model.payment import (
    CONFIRMING_PROVIDER_STATUSES,
    PaymentRequest,
    ProviderSession,
    VerificationOutcome,
)
from storefront_payments.core.ports.outbound.payment_provider import (
    PaymentProviderClient,
)

CHECKOUT_PATH = "/api/xpay/checkout"
BODY_EXCERPT = 500

logger = structlog.get_logger().bind(component="nexi_client")


@dataclass
class NexiXPayClient(PaymentProviderClient):
    """Nexi XPay CEE hosted checkout."""

    api_key: str
    base_url: str
    success_url: str
    cancel_url: str
    callback_url: str
    language: str = "SI"
    create_timeout_seconds: float = 30.0
    verify_timeout_seconds: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None
    name: str = "nexi_xpay_cee"
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"X-Api-Key": self.api_key},
                transport=self.transport,
            )
            logger.info(
                "nexi_client_initialized",
                base_url=self.base_url,
                api_key_prefix=self.api_key[:4] + "...",
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_session(
        self, request: PaymentRequest
    ) -> Result[ProviderSession, PaymentFlowError]:
        payload = {
            "amount": request.amount_minor,
            "currency": request.currency,
            "shopTransactionId": request.order_id.value,
            "callbackUrl": self.callback_url,
            "cancelUrl": self.cancel_url,
            "returnUrl": self.success_url,
            "language": self.language,
            "description": request.description,
            "items": [
                {"name": it.name, "quantity": it.quantity, "amount": it.unit_price_minor}
                for it in request.items
            ],
        }
        try:
            resp = await self._http().post(
                CHECKOUT_PATH,
                json=payload,
                headers={"Idempotency-Key": request.idempotency_key},
                timeout=self.create_timeout_seconds,
            )
        except httpx.TimeoutException:
            return Failure(
                PaymentProviderError(
                    message=f"checkout timed out after {self.create_timeout_seconds}s"
                )
            )
        except httpx.HTTPError as e:
            return Failure(PaymentProviderError(message=str(e) or type(e).__name__))

        data = _json_object(resp)
        if isinstance(data, Failure):
            return data
        body = data.unwrap()

        redirect_url = body.get("redirectUrl")
        if not isinstance(redirect_url, str) or not redirect_url:
            return Failure(
                PaymentProviderResponseError(
                    message="missing redirectUrl in checkout response",
                    status_code=resp.status_code,
                    body=resp.text[:BODY_EXCERPT],
                )
            )

        session_id = body.get("sessionId") or body.get("shopTransactionId")
        if not session_id:
            return Failure(
                PaymentProviderResponseError(
                    message="missing sessionId in checkout response",
                    status_code=resp.status_code,
                    body=resp.text[:BODY_EXCERPT],
                )
            )

        transaction_id = body.get("transactionId")
        return Success(
            ProviderSession(
                session_id=str(session_id),
                redirect_url=redirect_url,
                transaction_id=str(transaction_id) if transaction_id else None,
            )
        )

    async def verify_session(
        self, session_id: str
    ) -> Result[VerificationOutcome, PaymentFlowError]:
        try:
            resp = await self._http().get(
                f"{CHECKOUT_PATH}/{quote(session_id, safe='')}",
                timeout=self.verify_timeout_seconds,
            )
        except httpx.TimeoutException:
            return Failure(
                PaymentProviderError(
                    message=f"verification timed out after {self.verify_timeout_seconds}s"
                )
            )
        except httpx.HTTPError as e:
            return Failure(PaymentProviderError(message=str(e) or type(e).__name__))

        data = _json_object(resp)
        if isinstance(data, Failure):
            return data
        body = data.unwrap()

        status = str(body.get("status") or "").upper()
        if not status:
            return Failure(
                PaymentProviderResponseError(
                    message="missing status in verification response",
                    status_code=resp.status_code,
                    body=resp.text[:BODY_EXCERPT],
                )
            )

        transaction_id = body.get("transactionId")
        return Success(
            VerificationOutcome(
                success=status in CONFIRMING_PROVIDER_STATUSES,
                transaction_id=str(transaction_id) if transaction_id else None,
                raw_status=status,
            )
        )


def _json_object(resp: httpx.Response) -> Result[dict[str, Any], PaymentFlowError]:
    if resp.status_code >= 500 or resp.status_code == 429:
        return Failure(
            PaymentProviderError(
                message="provider unavailable",
                status_code=resp.status_code,
                body=resp.text[:BODY_EXCERPT],
            )
        )
    if not resp.is_success:
        return Failure(
            PaymentProviderResponseError(
                message="provider rejected the request",
                status_code=resp.status_code,
                body=resp.text[:BODY_EXCERPT],
            )
        )

    try:
        body = resp.json()
    except ValueError:
        return Failure(
            PaymentProviderResponseError(
                message="response is not JSON",
                status_code=resp.status_code,
                body=resp.text[:BODY_EXCERPT],
            )
        )
    if not isinstance(body, dict):
        return Failure(
            PaymentProviderResponseError(
                message="response is not a JSON object",
                status_code=resp.status_code,
                body=resp.text[:BODY_EXCERPT],
            )
        )
    return Success(body)
