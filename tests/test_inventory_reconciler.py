from __future__ import annotations

import asyncio

from storefront_payments.core.domain.model.order import (
    LineItem,
    Money,
    OrderStatus,
    SelectedVariant,
)

from conftest import make_order, stored


async def test_decrements_once_and_marks_order(orders, stock, reconciler) -> None:
    order = await stored(orders)

    report = (await reconciler.reconcile(order)).unwrap()

    assert report.performed
    assert report.decremented == ("product:p1",)
    assert stock.products["p1"] == 3
    after = await stored(orders)
    assert after.payment.inventory_adjusted
    assert after.payment.inventory_adjusted_at is not None


async def test_repeated_calls_do_not_decrement_again(orders, stock, reconciler) -> None:
    for _ in range(3):
        await reconciler.reconcile(await stored(orders))

    assert stock.products["p1"] == 3


async def test_stale_snapshot_is_still_guarded(orders, stock, reconciler) -> None:
    # both callers read the order before either wrote the marker
    snapshot = await stored(orders)

    first = (await reconciler.reconcile(snapshot)).unwrap()
    second = (await reconciler.reconcile(snapshot)).unwrap()

    assert first.performed
    assert not second.performed
    assert stock.products["p1"] == 3


async def test_concurrent_callers_decrement_once(orders, stock, reconciler) -> None:
    snapshot = await stored(orders)

    reports = await asyncio.gather(
        *(reconciler.reconcile(snapshot) for _ in range(5))
    )

    assert sum(r.unwrap().performed for r in reports) == 1
    assert stock.products["p1"] == 3


async def test_clamps_at_zero(orders, stock, reconciler) -> None:
    stock.products["p1"] = 1
    orders.add(
        make_order(
            order_id="ord-2",
            items=(
                LineItem(
                    product_id="p1", name="T-shirt", quantity=5, unit_price=Money.of("1")
                ),
            ),
            total="5.00",
        )
    )

    await reconciler.reconcile(await stored(orders, "ord-2"))

    assert stock.products["p1"] == 0


async def test_variants_are_decremented_too(orders, stock, reconciler) -> None:
    orders.add(
        make_order(
            order_id="ord-3",
            variants=(SelectedVariant(product_id="p1", variant_id="v1", quantity=2),),
        )
    )

    report = (await reconciler.reconcile(await stored(orders, "ord-3"))).unwrap()

    assert report.decremented == ("product:p1", "variant:v1")
    assert stock.products["p1"] == 3
    assert stock.variants["v1"] == 2


async def test_item_failure_does_not_stop_the_rest(orders, stock, reconciler) -> None:
    stock.failing_keys.add("product:p1")
    orders.add(
        make_order(
            order_id="ord-4",
            items=(
                LineItem(
                    product_id="p1", name="A", quantity=1, unit_price=Money.of("5")
                ),
                LineItem(
                    product_id="p2", name="B", quantity=4, unit_price=Money.of("5")
                ),
            ),
        )
    )

    report = (await reconciler.reconcile(await stored(orders, "ord-4"))).unwrap()

    assert report.failures == ("product:p1",)
    assert stock.products == {"p1": 5, "p2": 6}
    after = await stored(orders, "ord-4")
    assert after.payment.inventory_adjusted
    assert after.payment.inventory_failures == ("product:p1",)

    # no automatic retry of the failed item
    stock.failing_keys.clear()
    await reconciler.reconcile(after)
    assert stock.products["p1"] == 5


async def test_missing_stock_record_is_a_recorded_failure(
    orders, stock, reconciler
) -> None:
    orders.add(
        make_order(
            order_id="ord-5",
            items=(
                LineItem(
                    product_id="ghost", name="?", quantity=1, unit_price=Money.of("5")
                ),
            ),
        )
    )

    report = (await reconciler.reconcile(await stored(orders, "ord-5"))).unwrap()

    assert report.failures == ("product:ghost",)


async def test_status_is_not_touched(orders, reconciler) -> None:
    await reconciler.reconcile(await stored(orders))

    assert (await stored(orders)).status == OrderStatus.SUBMITTED
