from __future__ import annotations

from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError
from storefront_payments.core.domain.model.order import CustomerId


class ShopperAuthenticator(Protocol):
    async def current_user_id(
        self, token: str
    ) -> Result[CustomerId, PaymentFlowError]: ...
