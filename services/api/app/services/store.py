from __future__ import annotations

import threading
from collections.abc import Collection, Iterable
from dataclasses import replace

from packages.shared.schemas.order_v1 import OrderStatusV1
from services.api.app.services.order_base import (
    DuplicateOrderNumberError,
    MenuItemSnapshot,
    OrderFilter,
    OrderRecord,
    RestaurantInfo,
    StatusChange,
)


class InMemoryOrderStore:
    """Thread-safe order store for local tooling and tests.

    Mirrors the SQL store: unique order numbers and a compare-and-swap status update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._orders: dict[str, OrderRecord] = {}
        self._numbers: set[str] = set()

    def insert(self, record: OrderRecord) -> None:
        with self._lock:
            if record.order_number in self._numbers:
                raise DuplicateOrderNumberError(record.order_number)
            self._orders[record.id] = record
            self._numbers.add(record.order_number)

    def get(self, order_id: str) -> OrderRecord | None:
        with self._lock:
            return self._orders.get(order_id)

    def find(
        self, order_filter: OrderFilter, *, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]:
        with self._lock:
            matching = [o for o in self._orders.values() if _matches(o, order_filter)]

        matching.sort(key=lambda o: (o.order_time, o.id), reverse=True)
        return matching[offset : offset + limit], len(matching)

    def update_status(
        self, order_id: str, expected_status: OrderStatusV1, change: StatusChange
    ) -> bool:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None or current.status != expected_status:
                return False
            self._orders[order_id] = replace(current, **change.changed_fields())
            return True


class InMemoryCatalog:
    def __init__(
        self,
        restaurants: Iterable[RestaurantInfo] = (),
        menu_items: Iterable[MenuItemSnapshot] = (),
    ) -> None:
        self._restaurants = {r.id: r for r in restaurants}
        self._menu_items = {m.id: m for m in menu_items}

    def add_restaurant(self, restaurant: RestaurantInfo) -> None:
        self._restaurants[restaurant.id] = restaurant

    def add_menu_item(self, item: MenuItemSnapshot) -> None:
        self._menu_items[item.id] = item

    def get_menu_items(self, menu_item_ids: Collection[str]) -> dict[str, MenuItemSnapshot]:
        return {i: self._menu_items[i] for i in menu_item_ids if i in self._menu_items}

    def get_restaurant(self, restaurant_id: str) -> RestaurantInfo | None:
        return self._restaurants.get(restaurant_id)

    def restaurant_ids_owned_by(self, user_id: str) -> set[str]:
        return {r.id for r in self._restaurants.values() if r.owner_id == user_id}


def _matches(order: OrderRecord, order_filter: OrderFilter) -> bool:
    if order_filter.user_id is not None and order.user_id != order_filter.user_id:
        return False
    if order_filter.restaurant_id is not None and order.restaurant_id != order_filter.restaurant_id:
        return False
    if order_filter.statuses and order.status not in order_filter.statuses:
        return False
    return True
