from __future__ import annotations

import pytest

from storefront_payments.adapters.inbound.cli import run_verify
from storefront_payments.core.domain.model.order import OrderStatus
from storefront_payments.core.domain.service.verify_payment_service import (
    VerifyPaymentDeps,
    VerifyPaymentService,
)
from storefront_payments.main import main

from conftest import make_order


@pytest.fixture
def usecase(orders) -> VerifyPaymentService:
    orders.add(make_order(order_id="ord-paid", status=OrderStatus.CONFIRMED))
    return VerifyPaymentService(VerifyPaymentDeps(orders=orders))


async def test_paid_order_exits_zero(usecase, capsys) -> None:
    assert await run_verify(usecase, "ord-paid") == 0
    assert "[ok]" in capsys.readouterr().out


async def test_unpaid_or_unknown_exits_one(usecase, capsys) -> None:
    assert await run_verify(usecase, "ord-1") == 1
    assert await run_verify(usecase, "missing") == 1
    assert "[ng]" in capsys.readouterr().out


async def test_blank_session_is_usage_error(usecase) -> None:
    assert await run_verify(usecase, " ") == 2


def test_main_usage_errors(monkeypatch) -> None:
    assert main([]) == 2
    assert main(["bogus"]) == 2

    monkeypatch.setenv("STOREFRONT_PROVIDER", "stripe")
    assert main(["verify", "sess-1"]) == 2


def test_main_verify_against_demo_store(monkeypatch, capsys) -> None:
    monkeypatch.delenv("STOREFRONT_DATABASE_URL", raising=False)
    monkeypatch.setenv("STOREFRONT_LOG_JSON", "false")

    assert main(["verify", "ord-demo-1"]) == 1
    assert "submitted" in capsys.readouterr().out
