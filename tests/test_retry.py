from __future__ import annotations

from returns.result import Failure, Success

from storefront_payments.core.domain.model.errors import (
    InvalidOrderError,
    PaymentProviderError,
    PaymentProviderResponseError,
)
from storefront_payments.core.domain.service.retry import RetryPolicy, retry_transient


def test_backoff_is_exponential_and_capped() -> None:
    policy = RetryPolicy(max_attempts=6, base_delay_seconds=1.0, max_delay_seconds=8.0)
    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 8.0]


def _scripted(results):
    calls = []

    async def operation():
        calls.append(1)
        return results.pop(0)

    return operation, calls


async def test_retries_transient_until_success(sleep) -> None:
    op, calls = _scripted(
        [Failure(PaymentProviderError(message="x")), Success("ok")]
    )

    result = await retry_transient(
        op, RetryPolicy(max_attempts=3), operation_name="t", sleep=sleep
    )

    assert result.unwrap() == "ok"
    assert len(calls) == 2
    assert sleep.delays == [1.0]


async def test_stops_at_max_attempts(sleep) -> None:
    op, calls = _scripted([Failure(PaymentProviderError(message="x")) for _ in range(5)])

    result = await retry_transient(
        op, RetryPolicy(max_attempts=3), operation_name="t", sleep=sleep
    )

    assert isinstance(result.failure(), PaymentProviderError)
    assert len(calls) == 3


async def test_other_failures_are_not_retried(sleep) -> None:
    for err in (
        PaymentProviderResponseError(message="bad body"),
        InvalidOrderError("nope"),
    ):
        op, calls = _scripted([Failure(err)])
        result = await retry_transient(
            op, RetryPolicy(max_attempts=3), operation_name="t", sleep=sleep
        )
        assert result.failure() is err
        assert len(calls) == 1
    assert sleep.delays == []
