from __future__ import annotations

from packages.shared.schemas.order_v1 import DeliveryAddressV1, OrderStatusV1, PaymentMethodV1
from pydantic import BaseModel, Field
from services.api.app.services.order_base import MAX_ITEM_QUANTITY


class OrderItemInput(BaseModel):
    menu_item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=MAX_ITEM_QUANTITY)
    special_instructions: str | None = None


class OrderCreateRequest(BaseModel):
    # The placer is the authenticated principal, never a body field.
    restaurant_id: str = Field(..., min_length=1)
    items: list[OrderItemInput] = Field(..., min_length=1)
    delivery_address: DeliveryAddressV1
    payment_method: PaymentMethodV1

    customer_name: str | None = None
    customer_phone: str | None = None
    delivery_instructions: str | None = None


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatusV1
    reason: str | None = Field(default=None, max_length=500)
