from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    AuthenticationError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import CustomerId
from storefront_payments.core.ports.outbound.auth import ShopperAuthenticator

logger = structlog.get_logger().bind(component="hosted_auth")


@dataclass
class HostedAuthenticator(ShopperAuthenticator):
    """Asks the hosted auth service which user a bearer token belongs to."""

    auth_url: str
    api_key: str
    timeout_seconds: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.auth_url.rstrip("/"),
                headers={"apikey": self.api_key},
                timeout=self.timeout_seconds,
                transport=self.transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def current_user_id(self, token: str) -> Result[CustomerId, PaymentFlowError]:
        if not token:
            return Failure(AuthenticationError("missing bearer token"))
        try:
            resp = await self._http().get(
                "/user", headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("auth_lookup_failed", error=str(e) or type(e).__name__)
            return Failure(AuthenticationError("authentication service unavailable"))

        if resp.status_code in (401, 403):
            return Failure(AuthenticationError("invalid or expired token"))
        if not resp.is_success:
            logger.warning("auth_lookup_failed", status_code=resp.status_code)
            return Failure(AuthenticationError("authentication service unavailable"))

        try:
            user_id = resp.json().get("id")
        except (ValueError, AttributeError):
            user_id = None
        if not user_id:
            return Failure(AuthenticationError("authentication response has no user id"))
        return Success(CustomerId(str(user_id)))
