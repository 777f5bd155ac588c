from __future__ import annotations

import hashlib
import hmac

import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    WebhookSignatureError,
)

logger = structlog.get_logger().bind(component="webhook_signature")


def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(
    body: bytes,
    signature: str | None,
    secret: str | None,
    *,
    required: bool = False,
) -> Result[None, PaymentFlowError]:
    if not signature:
        if required:
            return Failure(WebhookSignatureError(message="signature header missing"))
        logger.warning("webhook_signature_missing")
        return Success(None)

    if not secret:
        logger.warning("webhook_signature_unchecked", reason="no secret configured")
        return Success(None)

    provided = signature.strip().lower()
    if provided.startswith("sha256="):
        provided = provided[len("sha256=") :]

    if not hmac.compare_digest(sign(body, secret), provided):
        return Failure(WebhookSignatureError(message="signature mismatch"))
    return Success(None)
