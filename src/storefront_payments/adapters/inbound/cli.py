from __future__ import annotations

from returns.result import Success

from storefront_payments.core.ports.inbound.verify_payment import (
    VerifyPaymentQuery,
    VerifyPaymentUseCase,
)


async def run_verify(usecase: VerifyPaymentUseCase, session_id: str) -> int:
    """
    Prints what the verification endpoint would answer for `session_id`.
    Exit code: 0 paid, 1 not paid or unknown, 2 bad input.
    """
    if not session_id.strip():
        print("invalid_input: session id is empty")
        return 2

    result = await usecase.verify_payment(VerifyPaymentQuery(session_id=session_id))

    if isinstance(result, Success):
        view = result.unwrap()
        print(
            "[ok]" if view.success else "[ng]",
            {
                "success": view.success,
                "transaction_id": view.transaction_id,
                "status": view.status,
                "source": view.source,
            },
        )
        return 0 if view.success else 1

    err = result.failure()
    print("[ng]", str(err))
    return 1
