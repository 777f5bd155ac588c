"""
Pydantic shapes of the JSON columns on `orders`.

Every read and write goes through these models, so a malformed payload is a
PersistenceError at the boundary instead of a half-parsed dict in the domain.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from returns.result import Failure, Result, Success

from storefront_payments.core.domain.model.errors import (
    PaymentFlowError,
    PersistenceError,
)
from storefront_payments.core.domain.model.order import (
    LineItem,
    Money,
    PaymentMetadata,
    SelectedVariant,
)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class LineItemRecord(_Record):
    product_id: str = Field(min_length=1)
    name: str = ""
    quantity: int
    unit_price: Decimal
    final_unit_price: Decimal | None = None
    selected_variant_id: str | None = None


class SelectedVariantRecord(_Record):
    product_id: str
    variant_id: str = Field(min_length=1)
    quantity: int


class PaymentMetadataRecord(_Record):
    session_id: str | None = None
    provider: str | None = None
    session_created_at: datetime | None = None
    checkout_url: str | None = None
    provider_status: str | None = None
    transaction_id: str | None = None
    webhook_received_at: datetime | None = None
    payment_confirmed_at: datetime | None = None
    confirmed_via: Literal["webhook", "return"] | None = None
    inventory_adjusted: bool = False
    inventory_adjusted_at: datetime | None = None
    inventory_failures: tuple[str, ...] = ()


def dump_items(items: tuple[LineItem, ...]) -> list[dict[str, Any]]:
    return [
        LineItemRecord(
            product_id=it.product_id,
            name=it.name,
            quantity=it.quantity,
            unit_price=it.unit_price.amount,
            final_unit_price=(
                it.final_unit_price.amount if it.final_unit_price is not None else None
            ),
            selected_variant_id=it.selected_variant_id,
        ).model_dump(mode="json")
        for it in items
    ]


def dump_variants(variants: tuple[SelectedVariant, ...]) -> list[dict[str, Any]]:
    return [
        SelectedVariantRecord(
            product_id=v.product_id, variant_id=v.variant_id, quantity=v.quantity
        ).model_dump(mode="json")
        for v in variants
    ]


def dump_metadata(meta: PaymentMetadata) -> dict[str, Any]:
    return PaymentMetadataRecord(
        session_id=meta.session_id,
        provider=meta.provider,
        session_created_at=meta.session_created_at,
        checkout_url=meta.checkout_url,
        provider_status=meta.provider_status,
        transaction_id=meta.transaction_id,
        webhook_received_at=meta.webhook_received_at,
        payment_confirmed_at=meta.payment_confirmed_at,
        confirmed_via=meta.confirmed_via,
        inventory_adjusted=meta.inventory_adjusted,
        inventory_adjusted_at=meta.inventory_adjusted_at,
        inventory_failures=meta.inventory_failures,
    ).model_dump(mode="json")


def load_items(
    raw: Any, currency: str
) -> Result[tuple[LineItem, ...], PaymentFlowError]:
    try:
        records = [LineItemRecord.model_validate(x) for x in raw or []]
    except (ValidationError, TypeError) as e:
        return Failure(PersistenceError(message=f"corrupt line_items: {e}"))
    return Success(
        tuple(
            LineItem(
                product_id=r.product_id,
                name=r.name,
                quantity=r.quantity,
                unit_price=Money.of(r.unit_price, currency),
                final_unit_price=(
                    Money.of(r.final_unit_price, currency)
                    if r.final_unit_price is not None
                    else None
                ),
                selected_variant_id=r.selected_variant_id,
            )
            for r in records
        )
    )


def load_variants(
    raw: Any,
) -> Result[tuple[SelectedVariant, ...], PaymentFlowError]:
    try:
        records = [SelectedVariantRecord.model_validate(x) for x in raw or []]
    except (ValidationError, TypeError) as e:
        return Failure(PersistenceError(message=f"corrupt selected_variants: {e}"))
    return Success(
        tuple(
            SelectedVariant(
                product_id=r.product_id, variant_id=r.variant_id, quantity=r.quantity
            )
            for r in records
        )
    )


def load_metadata(raw: Any) -> Result[PaymentMetadata, PaymentFlowError]:
    try:
        r = PaymentMetadataRecord.model_validate(raw or {})
    except (ValidationError, TypeError) as e:
        return Failure(PersistenceError(message=f"corrupt payment_metadata: {e}"))
    return Success(
        PaymentMetadata(
            session_id=r.session_id,
            provider=r.provider,
            session_created_at=r.session_created_at,
            checkout_url=r.checkout_url,
            provider_status=r.provider_status,
            transaction_id=r.transaction_id,
            webhook_received_at=r.webhook_received_at,
            payment_confirmed_at=r.payment_confirmed_at,
            confirmed_via=r.confirmed_via,
            inventory_adjusted=r.inventory_adjusted,
            inventory_adjusted_at=r.inventory_adjusted_at,
            inventory_failures=r.inventory_failures,
        )
    )
