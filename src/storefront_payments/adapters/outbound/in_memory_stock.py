from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Set

from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    PersistenceError,
)
from storefront_payments.core.ports.outbound.stock import (
    StockKey,
    StockKind,
    StockRepository,
)


@dataclass
class InMemoryStockRepository(StockRepository):
    products: Dict[str, int] = field(default_factory=dict)
    variants: Dict[str, int] = field(default_factory=dict)
    failing_keys: Set[str] = field(default_factory=set)  # "product:p1" style
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def _table(self, key: StockKey) -> Dict[str, int]:
        return self.products if key.kind == StockKind.PRODUCT else self.variants

    async def get(self, key: StockKey) -> Result[int, PaymentFlowError]:
        qty = self._table(key).get(key.id)
        if qty is None:
            return Failure(PersistenceError(message=f"no stock record for {key}"))
        return Success(qty)

    async def decrement_clamped(
        self, key: StockKey, amount: int
    ) -> Result[int, PaymentFlowError]:
        if str(key) in self.failing_keys:
            return Failure(PersistenceError(message="stock store is unavailable"))
        if amount < 0:
            return Failure(PersistenceError(message="amount must be >= 0"))

        table = self._table(key)
        async with self._lock:
            current = table.get(key.id)
            if current is None:
                return Failure(PersistenceError(message=f"no stock record for {key}"))
            table[key.id] = max(0, current - amount)
            return Success(table[key.id])
