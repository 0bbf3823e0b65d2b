from __future__ import annotations

import math
from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from packages.shared.schemas.order_v1 import (
    CancelledByV1,
    OrderStatusV1,
    PaymentMethodV1,
    PaymentStatusV1,
    RoleV1,
)

MAX_ITEM_QUANTITY = 100


class OrderError(Exception):
    """Base class for expected order outcomes that callers map to responses."""


class ValidationError(OrderError):
    def __init__(self, message: str, *, unresolved_item_ids: Collection[str] = ()) -> None:
        super().__init__(message)
        self.unresolved_item_ids = sorted(unresolved_item_ids)


class NotFoundError(OrderError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(OrderError):
    pass


class InvalidTransitionError(OrderError):
    def __init__(self, current: OrderStatusV1, requested: OrderStatusV1) -> None:
        super().__init__(
            f"Cannot move order from {current.value} to {requested.value}"
        )
        self.current = current
        self.requested = requested


class ConflictError(OrderError):
    def __init__(self, order_id: str, expected_status: OrderStatusV1) -> None:
        super().__init__(
            f"Order {order_id} changed while applying the update "
            f"(expected status {expected_status.value}). Refetch and retry."
        )
        self.order_id = order_id
        self.expected_status = expected_status


class PersistenceError(OrderError):
    pass


class DuplicateOrderNumberError(PersistenceError):
    def __init__(self, order_number: str) -> None:
        super().__init__(f"Order number already exists: {order_number}")
        self.order_number = order_number


@dataclass(frozen=True, slots=True)
class Principal:
    user_id: str
    role: RoleV1


@dataclass(frozen=True, slots=True)
class OrderLineInput:
    menu_item_id: str
    quantity: int
    special_instructions: str | None = None


@dataclass(frozen=True, slots=True)
class MenuItemSnapshot:
    id: str
    name: str
    price_cents: int
    restaurant_id: str
    category: str = ""
    is_available: bool = True


@dataclass(frozen=True, slots=True)
class RestaurantInfo:
    id: str
    owner_id: str
    status: str
    is_open: bool


@dataclass(frozen=True, slots=True)
class DeliveryAddress:
    street: str
    city: str
    state: str
    zip_code: str
    latitude: float | None = None
    longitude: float | None = None

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }
        if self.latitude is not None and self.longitude is not None:
            data["coordinates"] = {"latitude": self.latitude, "longitude": self.longitude}
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "DeliveryAddress":
        coords = data.get("coordinates") or {}
        return cls(
            street=data["street"],
            city=data["city"],
            state=data["state"],
            zip_code=data["zip_code"],
            latitude=coords.get("latitude"),
            longitude=coords.get("longitude"),
        )


@dataclass(frozen=True, slots=True)
class LineItem:
    menu_item_id: str
    name: str
    unit_price_cents: int
    quantity: int
    line_total_cents: int
    special_instructions: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
            "special_instructions": self.special_instructions,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            menu_item_id=data["menu_item_id"],
            name=data["name"],
            unit_price_cents=int(data["unit_price_cents"]),
            quantity=int(data["quantity"]),
            line_total_cents=int(data["line_total_cents"]),
            special_instructions=data.get("special_instructions"),
        )


@dataclass(frozen=True, slots=True)
class OrderRecord:
    id: str
    order_number: str
    user_id: str
    restaurant_id: str

    items: tuple[LineItem, ...]
    subtotal_cents: int
    delivery_fee_cents: int
    tax_cents: int
    total_cents: int

    status: OrderStatusV1
    payment_method: PaymentMethodV1
    payment_status: PaymentStatusV1

    delivery_address: DeliveryAddress

    order_time: datetime
    estimated_delivery_time: datetime
    created_at: datetime
    updated_at: datetime

    customer_name: str | None = None
    customer_phone: str | None = None
    delivery_instructions: str | None = None

    actual_delivery_time: datetime | None = None
    ready_time: datetime | None = None
    out_for_delivery_time: datetime | None = None

    cancelled_at: datetime | None = None
    cancelled_by: CancelledByV1 | None = None
    cancellation_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatusV1.DELIVERED, OrderStatusV1.CANCELLED)


@dataclass(frozen=True, slots=True)
class StatusChange:
    """Fields written by a single transition. Unset timestamps are left untouched."""

    status: OrderStatusV1
    updated_at: datetime
    ready_time: datetime | None = None
    out_for_delivery_time: datetime | None = None
    actual_delivery_time: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by: CancelledByV1 | None = None
    cancellation_reason: str | None = None

    def changed_fields(self) -> dict[str, Any]:
        values: dict[str, Any] = {"status": self.status, "updated_at": self.updated_at}
        for name in (
            "ready_time",
            "out_for_delivery_time",
            "actual_delivery_time",
            "cancelled_at",
            "cancelled_by",
            "cancellation_reason",
        ):
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values


@dataclass(frozen=True, slots=True)
class OrderFilter:
    user_id: str | None = None
    restaurant_id: str | None = None
    statuses: frozenset[OrderStatusV1] | None = None


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: list[OrderRecord] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class OrderStore(Protocol):
    def insert(self, record: OrderRecord) -> None: ...

    def get(self, order_id: str) -> OrderRecord | None: ...

    def find(
        self, order_filter: OrderFilter, *, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]: ...

    def update_status(
        self, order_id: str, expected_status: OrderStatusV1, change: StatusChange
    ) -> bool: ...


class Catalog(Protocol):
    def get_menu_items(self, menu_item_ids: Collection[str]) -> dict[str, MenuItemSnapshot]: ...

    def get_restaurant(self, restaurant_id: str) -> RestaurantInfo | None: ...

    def restaurant_ids_owned_by(self, user_id: str) -> set[str]: ...
