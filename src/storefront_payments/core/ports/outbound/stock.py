from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from returns.result import Result

from storefront_payments.core.domain.model.errors import PaymentFlowError


class StockKind(str, Enum):
    PRODUCT = "product"
    VARIANT = "variant"


@dataclass(frozen=True)
class StockKey:
    kind: StockKind
    id: str

    @staticmethod
    def product(product_id: str) -> "StockKey":
        return StockKey(StockKind.PRODUCT, product_id)

    @staticmethod
    def variant(variant_id: str) -> "StockKey":
        return StockKey(StockKind.VARIANT, variant_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class StockRepository(Protocol):
    async def get(self, key: StockKey) -> Result[int, PaymentFlowError]: ...

    async def decrement_clamped(
        self, key: StockKey, amount: int
    ) -> Result[int, PaymentFlowError]:
        """Atomically `qty = max(0, qty - amount)`; returns the new quantity."""
        ...
