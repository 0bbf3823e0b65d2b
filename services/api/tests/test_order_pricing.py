from decimal import Decimal

import pytest
from services.api.app.services.order_base import MenuItemSnapshot, OrderLineInput, ValidationError
from services.api.app.services.order_pricing import PricingPolicy, compute_tax_cents, price_order

MENU = {
    "A": MenuItemSnapshot(id="A", name="Paneer Wrap", price_cents=10000, restaurant_id="r-1"),
    "B": MenuItemSnapshot(id="B", name="Veg Burger", price_cents=5000, restaurant_id="r-1"),
    "C": MenuItemSnapshot(id="C", name="Tea", price_cents=1099, restaurant_id="r-1"),
}


def test_price_order_matches_worked_example() -> None:
    priced = price_order(
        [OrderLineInput("A", 2), OrderLineInput("B", 1)],
        MENU,
        PricingPolicy(),
    )

    assert priced.subtotal_cents == 25000
    assert priced.tax_cents == 1250
    assert priced.delivery_fee_cents == 0
    assert priced.total_cents == 26250
    assert [i.line_total_cents for i in priced.items] == [20000, 5000]


def test_price_order_snapshots_name_and_price() -> None:
    priced = price_order([OrderLineInput("C", 3, "no sugar")], MENU, PricingPolicy())

    line = priced.items[0]
    assert line.name == "Tea"
    assert line.unit_price_cents == 1099
    assert line.quantity == 3
    assert line.line_total_cents == 3297
    assert line.special_instructions == "no sugar"


def test_total_includes_delivery_fee_and_tax() -> None:
    priced = price_order(
        [OrderLineInput("A", 1), OrderLineInput("C", 2)],
        MENU,
        PricingPolicy(tax_rate_percent=Decimal("5"), delivery_fee_cents=1000),
    )

    expected_subtotal = 10000 + 2 * 1099
    assert priced.subtotal_cents == expected_subtotal
    assert priced.total_cents == expected_subtotal + 1000 + priced.tax_cents


@pytest.mark.parametrize(
    ("subtotal", "rate", "expected"),
    [
        (25000, Decimal("5"), 1250),
        (2198, Decimal("5"), 110),  # 109.9
        (1010, Decimal("5"), 51),  # 50.5 rounds half up
        (1030, Decimal("5"), 52),  # 51.5 rounds half up
        (999, Decimal("0"), 0),
        (0, Decimal("5"), 0),
        (12345, Decimal("18"), 2222),  # 2222.1
    ],
)
def test_compute_tax_rounds_half_up(subtotal: int, rate: Decimal, expected: int) -> None:
    assert compute_tax_cents(subtotal, rate) == expected


def test_price_order_rejects_zero_quantity() -> None:
    with pytest.raises(ValidationError, match="Quantity"):
        price_order([OrderLineInput("A", 0)], MENU, PricingPolicy())


def test_price_order_rejects_quantity_above_cap() -> None:
    with pytest.raises(ValidationError, match="between 1 and 100"):
        price_order([OrderLineInput("A", 10**18)], MENU, PricingPolicy())
