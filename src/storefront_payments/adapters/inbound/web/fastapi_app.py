from __future__ import annotations

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable
from uuid import uuid4

import structlog
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from returns.result import Success

from storefront_payments.core.domain.model.errors import (
    AuthenticationError,
    InvalidOrderError,
    InvalidWebhookPayloadError,
    OrderNotFoundError,
    PaymentFlowError,
    PaymentProviderError,
    PaymentProviderResponseError,
    PersistenceError,
    WebhookSignatureError,
)
from storefront_payments.core.domain.model.order import CustomerId
from storefront_payments.core.ports.inbound.create_payment_session import (
    CreatePaymentSessionCommand,
    CreatePaymentSessionUseCase,
    PaymentSessionLine,
)
from storefront_payments.core.ports.inbound.payment_return import (
    PaymentReturnCommand,
    PaymentReturnUseCase,
)
from storefront_payments.core.ports.inbound.payment_webhook import (
    PaymentWebhookCommand,
    PaymentWebhookUseCase,
)
from storefront_payments.core.ports.inbound.verify_payment import (
    VerifyPaymentQuery,
    VerifyPaymentUseCase,
)
from storefront_payments.core.ports.outbound.auth import ShopperAuthenticator

Hook = Callable[[], Awaitable[None]]

logger = structlog.get_logger().bind(component="http")

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SessionLineIn(_CamelModel):
    name: str = Field("", examples=["T-shirt"])
    quantity: int = Field(gt=0, examples=[2])
    price: Decimal = Field(ge=0, examples=["12.75"])


class CreateSessionRequest(_CamelModel):
    order_id: str | None = Field(None, alias="orderId", min_length=1)
    total_amount: Decimal | None = Field(None, alias="totalAmount", examples=["25.50"])
    currency: str | None = Field(None, min_length=3, max_length=3, examples=["EUR"])
    line_items: list[SessionLineIn] = Field(default_factory=list, alias="lineItems")


class CreateSessionResponse(_CamelModel):
    redirect_url: str = Field(alias="redirectUrl")
    session_id: str = Field(alias="sessionId")


class WebhookResponse(BaseModel):
    received: bool


class PaymentReturnResponse(_CamelModel):
    payment_succeeded: bool = Field(alias="paymentSucceeded")
    level: str
    code: str
    message: str
    order_id: str | None = Field(None, alias="orderId")
    transaction_id: str | None = Field(None, alias="transactionId")


class VerifyRequest(_CamelModel):
    session_id: str = Field(alias="sessionId")


class VerifyResponse(_CamelModel):
    success: bool
    transaction_id: str | None = Field(None, alias="transactionId")
    status: str | None = None
    error: str | None = None


class ErrorResponse(BaseModel):
    type: str
    message: str
    details: list[dict[str, Any]] | None = None


def _map_error_to_http(err: PaymentFlowError) -> tuple[int, ErrorResponse]:
    if isinstance(err, (InvalidOrderError, InvalidWebhookPayloadError)):
        return 400, ErrorResponse(type=type(err).__name__, message=err.message)

    if isinstance(err, (AuthenticationError, WebhookSignatureError)):
        return 401, ErrorResponse(type=type(err).__name__, message=err.message)

    if isinstance(err, OrderNotFoundError):
        return 404, ErrorResponse(type=type(err).__name__, message=err.message)

    if isinstance(err, (PaymentProviderError, PaymentProviderResponseError)):
        # provider details stay in the logs
        return 502, ErrorResponse(
            type=type(err).__name__, message="payment provider unavailable"
        )

    if isinstance(err, PersistenceError):
        return 500, ErrorResponse(type=type(err).__name__, message="storage failure")

    return 500, ErrorResponse(type=type(err).__name__, message="internal server error")


def create_app(
    create_session_uc: CreatePaymentSessionUseCase,
    webhook_uc: PaymentWebhookUseCase,
    return_uc: PaymentReturnUseCase,
    verify_uc: VerifyPaymentUseCase,
    authenticator: ShopperAuthenticator,
    on_startup: Hook | None = None,
    on_shutdown: Hook | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if on_startup is not None:
            await on_startup()
        try:
            yield
        finally:
            if on_shutdown is not None:
                await on_shutdown()

    app = FastAPI(title="storefront_payments", lifespan=lifespan)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next: Any) -> Any:
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request.headers.get("X-Request-ID") or uuid4().hex,
            path=request.url.path,
        )
        return await call_next(request)

    # --- exception handlers --------------------------------------------------

    @app.exception_handler(PaymentFlowError)
    async def handle_domain_error(_: Request, exc: PaymentFlowError) -> JSONResponse:
        status, body = _map_error_to_http(exc)
        log = logger.error if status >= 500 else logger.warning
        log("request_failed", status_code=status, error=str(exc))
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            message="invalid request",
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                for e in exc.errors()
            ],
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed", error_type=type(exc).__name__)
        body = ErrorResponse(type=type(exc).__name__, message="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    # --- auth ----------------------------------------------------------------

    async def current_customer(
        authorization: str | None = Header(None),
    ) -> CustomerId:
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("missing bearer token")
        result = await authenticator.current_user_id(token.strip())
        if isinstance(result, Success):
            customer = result.unwrap()
            structlog.contextvars.bind_contextvars(customer_id=customer.value)
            return customer
        raise result.failure()

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/payments/sessions",
        response_model=CreateSessionResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
        },
    )
    async def create_payment_session(
        req: CreateSessionRequest,
        customer: CustomerId = Depends(current_customer),
    ) -> Any:
        cmd = CreatePaymentSessionCommand(
            customer_id=customer.value,
            order_id=req.order_id,
            total_amount=req.total_amount,
            currency=req.currency,
            lines=tuple(
                PaymentSessionLine(name=ln.name, quantity=ln.quantity, price=ln.price)
                for ln in req.line_items
            ),
        )

        result = await create_session_uc.create_session(cmd)

        if isinstance(result, Success):
            receipt = result.unwrap()
            return CreateSessionResponse(
                redirect_url=receipt.redirect_url, session_id=receipt.session_id
            )

        raise result.failure()

    @app.post(
        "/payments/webhook",
        response_model=WebhookResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    async def payment_webhook(
        request: Request,
        signature: str | None = Header(None, alias="X-Webhook-Signature"),
    ) -> Any:
        body = await request.body()
        result = await webhook_uc.handle_webhook(
            PaymentWebhookCommand(body=body, signature=signature)
        )

        if isinstance(result, Success):
            return WebhookResponse(received=True)

        raise result.failure()

    @app.get(
        "/payments/success",
        response_model=PaymentReturnResponse,
        responses={401: {"model": ErrorResponse}},
    )
    async def payment_success(
        session_id: str | None = Query(None),
        order_id: str | None = Query(None),
        customer: CustomerId = Depends(current_customer),
    ) -> Any:
        result = await return_uc.handle_return(
            PaymentReturnCommand(
                customer_id=customer.value, session_id=session_id, order_id=order_id
            )
        )

        if isinstance(result, Success):
            outcome = result.unwrap()
            return PaymentReturnResponse(
                payment_succeeded=outcome.payment_succeeded,
                level=outcome.level.value,
                code=outcome.code,
                message=outcome.message,
                order_id=outcome.order_id,
                transaction_id=outcome.transaction_id,
            )

        raise result.failure()

    @app.post(
        "/payments/verify",
        response_model=VerifyResponse,
        response_model_exclude_none=True,
    )
    async def verify_payment(req: VerifyRequest) -> Any:
        result = await verify_uc.verify_payment(VerifyPaymentQuery(session_id=req.session_id))

        if isinstance(result, Success):
            view = result.unwrap()
            return VerifyResponse(
                success=view.success,
                transaction_id=view.transaction_id,
                status=view.status,
            )

        # same body shape as a success, status code from the error
        err = result.failure()
        status, mapped = _map_error_to_http(err)
        logger.warning(
            "payment_verification_failed", status_code=status, error=str(err)
        )
        message = err.message if status < 500 else mapped.message
        body = VerifyResponse(success=False, error=message)
        return JSONResponse(
            status_code=status,
            content=body.model_dump(by_alias=True, exclude_none=True),
        )

    return app
