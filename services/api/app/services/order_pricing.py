from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from services.api.app.services.order_base import (
    MAX_ITEM_QUANTITY,
    LineItem,
    MenuItemSnapshot,
    OrderLineInput,
    ValidationError,
)


@dataclass(frozen=True, slots=True)
class PricingPolicy:
    tax_rate_percent: Decimal = Decimal("5")
    delivery_fee_cents: int = 0


@dataclass(frozen=True, slots=True)
class PricedOrder:
    items: tuple[LineItem, ...]
    subtotal_cents: int
    delivery_fee_cents: int
    tax_cents: int
    total_cents: int


def compute_tax_cents(subtotal_cents: int, tax_rate_percent: Decimal) -> int:
    """Tax in whole minor units, rounded half up (1234.5 paise -> 1235)."""

    tax = Decimal(subtotal_cents) * tax_rate_percent / Decimal(100)
    return int(tax.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def price_order(
    lines: Sequence[OrderLineInput],
    menu_items: Mapping[str, MenuItemSnapshot],
    policy: PricingPolicy,
) -> PricedOrder:
    """Freeze catalog name/price into line snapshots and compute the totals.

    Every line must already have a resolved menu item; callers check resolution first so
    they can report all unresolved ids at once.
    """

    priced: list[LineItem] = []
    subtotal = 0
    for line in lines:
        if not 1 <= line.quantity <= MAX_ITEM_QUANTITY:
            raise ValidationError(
                f"Quantity must be between 1 and {MAX_ITEM_QUANTITY} for item {line.menu_item_id}"
            )

        item = menu_items[line.menu_item_id]
        if item.price_cents < 0:
            raise ValidationError(f"Menu item {item.id} has a negative price")

        line_total = item.price_cents * line.quantity
        subtotal += line_total
        priced.append(
            LineItem(
                menu_item_id=item.id,
                name=item.name,
                unit_price_cents=item.price_cents,
                quantity=line.quantity,
                line_total_cents=line_total,
                special_instructions=line.special_instructions,
            )
        )

    tax = compute_tax_cents(subtotal, policy.tax_rate_percent)
    return PricedOrder(
        items=tuple(priced),
        subtotal_cents=subtotal,
        delivery_fee_cents=policy.delivery_fee_cents,
        tax_cents=tax,
        total_cents=subtotal + policy.delivery_fee_cents + tax,
    )
