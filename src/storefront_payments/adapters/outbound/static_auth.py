from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    AuthenticationError,
    PaymentFlowError,
)
from storefront_payments.core.domain.model.order import CustomerId
from storefront_payments.core.ports.outbound.auth import ShopperAuthenticator


@dataclass(frozen=True)
class StaticTokenAuthenticator(ShopperAuthenticator):
    """Fixed token -> user table. Development and tests only."""

    tokens: Mapping[str, str] = field(default_factory=dict)

    async def current_user_id(self, token: str) -> Result[CustomerId, PaymentFlowError]:
        user_id = self.tokens.get(token)
        if not user_id:
            return Failure(AuthenticationError("invalid or expired token"))
        return Success(CustomerId(user_id))
