from __future__ import annotations

import logging
from datetime import datetime
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from packages.shared.schemas.order_v1 import (
    CoordinatesV1,
    DeliveryAddressV1,
    OrderActionsV1,
    OrderLineV1,
    OrderPageV1,
    OrderV1,
    RoleV1,
)
from services.api.app.db.deps import get_order_service, get_principal
from services.api.app.models.order import OrderCreateRequest, OrderStatusUpdateRequest
from services.api.app.services.order_base import (
    ConflictError,
    DeliveryAddress,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderFilter,
    OrderLineInput,
    OrderRecord,
    PersistenceError,
    Principal,
    ValidationError,
)
from services.api.app.services.order_service import OrderService, parse_status_filter

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_order_http_error(e: Exception) -> NoReturn:
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, ForbiddenError):
        raise HTTPException(status_code=403, detail=str(e)) from e

    if isinstance(e, InvalidTransitionError):
        raise HTTPException(status_code=422, detail=str(e)) from e

    if isinstance(e, ConflictError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, PersistenceError):
        raise HTTPException(status_code=503, detail=str(e)) from e

    logger.exception("unexpected order error", exc_info=e)
    raise HTTPException(status_code=500, detail="Internal Server Error") from e


@router.post("/v1/orders", response_model=OrderV1, status_code=201)
def create_order(
    payload: OrderCreateRequest,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderV1:
    address = payload.delivery_address
    try:
        order = service.create_order(
            principal.user_id,
            payload.restaurant_id,
            [
                OrderLineInput(
                    menu_item_id=i.menu_item_id,
                    quantity=i.quantity,
                    special_instructions=i.special_instructions,
                )
                for i in payload.items
            ],
            DeliveryAddress(
                street=address.street,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
                latitude=address.coordinates.latitude if address.coordinates else None,
                longitude=address.coordinates.longitude if address.coordinates else None,
            ),
            payload.payment_method,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            delivery_instructions=payload.delivery_instructions,
        )
    except Exception as e:
        _raise_order_http_error(e)

    return _to_order_v1(order)


@router.get("/v1/orders", response_model=OrderPageV1)
def list_orders(
    user_id: str | None = None,
    restaurant_id: str | None = None,
    status: str | None = Query(default=None, description="Comma separated statuses"),
    page: int = 1,
    limit: int = 10,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderPageV1:
    try:
        order_filter = _authorized_filter(
            service,
            principal,
            OrderFilter(
                user_id=user_id,
                restaurant_id=restaurant_id,
                statuses=parse_status_filter(status),
            ),
        )
        result = service.list_orders(order_filter, page=page, limit=limit)
    except Exception as e:
        _raise_order_http_error(e)

    return OrderPageV1(
        orders=[_to_order_v1(o) for o in result.orders],
        page=result.page,
        limit=result.limit,
        total=result.total,
        pages=result.pages,
    )


@router.get("/v1/orders/{order_id}", response_model=OrderV1)
def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderV1:
    try:
        order = service.get_order(order_id)
        if not service.can_view(order, principal):
            raise ForbiddenError("Access denied")
    except Exception as e:
        _raise_order_http_error(e)

    return _to_order_v1(order)


@router.patch("/v1/orders/{order_id}", response_model=OrderV1)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdateRequest,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderV1:
    try:
        order = service.transition_order(order_id, payload.status, principal, reason=payload.reason)
    except Exception as e:
        _raise_order_http_error(e)

    return _to_order_v1(order)


@router.get("/v1/orders/{order_id}/actions", response_model=OrderActionsV1)
def get_order_actions(
    order_id: str,
    principal: Principal = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderActionsV1:
    try:
        order, next_statuses = service.allowed_actions(order_id, principal)
        if not service.can_view(order, principal):
            raise ForbiddenError("Access denied")
    except Exception as e:
        _raise_order_http_error(e)

    return OrderActionsV1(order_id=order.id, status=order.status, next_statuses=next_statuses)


def _authorized_filter(
    service: OrderService, principal: Principal, requested: OrderFilter
) -> OrderFilter:
    if principal.role == RoleV1.ADMIN:
        return requested

    if principal.role == RoleV1.RESTAURANT_OWNER:
        if requested.restaurant_id is None:
            raise ForbiddenError("restaurant_id is required for restaurant owners")
        if requested.restaurant_id not in service.restaurant_ids_owned_by(principal.user_id):
            raise ForbiddenError("Access denied")
        return requested

    if requested.user_id not in (None, principal.user_id):
        raise ForbiddenError("Access denied")
    return OrderFilter(
        user_id=principal.user_id,
        restaurant_id=requested.restaurant_id,
        statuses=requested.statuses,
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _to_order_v1(order: OrderRecord) -> OrderV1:
    address = order.delivery_address
    coordinates = None
    if address.latitude is not None and address.longitude is not None:
        coordinates = CoordinatesV1(latitude=address.latitude, longitude=address.longitude)

    return OrderV1(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        restaurant_id=order.restaurant_id,
        items=[
            OrderLineV1(
                menu_item_id=i.menu_item_id,
                name=i.name,
                unit_price_cents=i.unit_price_cents,
                quantity=i.quantity,
                special_instructions=i.special_instructions,
                line_total_cents=i.line_total_cents,
            )
            for i in order.items
        ],
        subtotal_cents=order.subtotal_cents,
        delivery_fee_cents=order.delivery_fee_cents,
        tax_cents=order.tax_cents,
        total_cents=order.total_cents,
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        delivery_address=DeliveryAddressV1(
            street=address.street,
            city=address.city,
            state=address.state,
            zip_code=address.zip_code,
            coordinates=coordinates,
        ),
        delivery_instructions=order.delivery_instructions,
        order_time=order.order_time.isoformat(),
        estimated_delivery_time=order.estimated_delivery_time.isoformat(),
        actual_delivery_time=_iso(order.actual_delivery_time),
        ready_time=_iso(order.ready_time),
        out_for_delivery_time=_iso(order.out_for_delivery_time),
        cancelled_at=_iso(order.cancelled_at),
        cancelled_by=order.cancelled_by,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at.isoformat(),
        updated_at=order.updated_at.isoformat(),
    )
