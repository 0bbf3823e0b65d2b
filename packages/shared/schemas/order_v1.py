"""Shared order schema (v1).

The student app and the restaurant/admin dashboards render these payloads. Dashboards
poll the order endpoints and must use `OrderActionsV1` to decide which status buttons
to show instead of deriving the rules themselves.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class OrderStatusV1(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethodV1(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"


class PaymentStatusV1(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class RoleV1(str, Enum):
    USER = "user"
    RESTAURANT_OWNER = "restaurant_owner"
    ADMIN = "admin"


class CancelledByV1(str, Enum):
    USER = "user"
    RESTAURANT = "restaurant"
    ADMIN = "admin"


class CoordinatesV1(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DeliveryAddressV1(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    coordinates: CoordinatesV1 | None = None


class OrderLineV1(BaseModel):
    menu_item_id: str
    name: str
    unit_price_cents: int
    quantity: int
    special_instructions: str | None = None
    line_total_cents: int


class OrderV1(BaseModel):
    version: str = "1"

    id: str
    order_number: str
    user_id: str
    restaurant_id: str

    items: list[OrderLineV1]
    subtotal_cents: int
    delivery_fee_cents: int
    tax_cents: int
    total_cents: int

    status: OrderStatusV1
    payment_method: PaymentMethodV1
    payment_status: PaymentStatusV1

    customer_name: str | None = None
    customer_phone: str | None = None
    delivery_address: DeliveryAddressV1
    delivery_instructions: str | None = None

    order_time: str
    estimated_delivery_time: str
    actual_delivery_time: str | None = None
    ready_time: str | None = None
    out_for_delivery_time: str | None = None

    cancelled_at: str | None = None
    cancelled_by: CancelledByV1 | None = None
    cancellation_reason: str | None = None

    created_at: str
    updated_at: str


class OrderPageV1(BaseModel):
    orders: list[OrderV1] = Field(default_factory=list)
    page: int
    limit: int
    total: int
    pages: int


class OrderActionsV1(BaseModel):
    """Transitions the calling principal may request right now."""

    order_id: str
    status: OrderStatusV1
    next_statuses: list[OrderStatusV1] = Field(default_factory=list)
