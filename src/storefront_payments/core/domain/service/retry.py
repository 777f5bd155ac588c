from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import structlog
from returns.result import Failure, Result

from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    PaymentProviderError,
)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

logger = structlog.get_logger().bind(component="retry")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Backoff after the given (1-based) failed attempt."""
        return min(
            self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1))
        )


async def retry_transient(
    operation: Callable[[], Awaitable[Result[T, PaymentFlowError]]],
    policy: RetryPolicy,
    *,
    operation_name: str,
    sleep: Sleep = asyncio.sleep,
) -> Result[T, PaymentFlowError]:
    """
    Re-run `operation` while it fails with PaymentProviderError.
    Any other failure (including PaymentProviderResponseError) is returned as is.
    """
    attempt = 1
    while True:
        result = await operation()
        if not isinstance(result, Failure):
            return result

        err = result.failure()
        if not isinstance(err, PaymentProviderError):
            return result
        if attempt >= policy.max_attempts:
            logger.error(
                "provider_call_exhausted",
                operation=operation_name,
                attempts=attempt,
                error=str(err),
            )
            return result

        delay = policy.delay_for(attempt)
        logger.warning(
            "provider_call_retry",
            operation=operation_name,
            attempt=attempt,
            delay_seconds=delay,
            error=str(err),
        )
        await sleep(delay)
        attempt += 1
