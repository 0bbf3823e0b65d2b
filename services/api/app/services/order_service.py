from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from packages.shared.schemas.order_v1 import (
    CancelledByV1,
    OrderStatusV1,
    PaymentMethodV1,
    PaymentStatusV1,
    RoleV1,
)
from services.api.app.config import Settings
from services.api.app.services.order_base import (
    MAX_ITEM_QUANTITY,
    Catalog,
    ConflictError,
    DeliveryAddress,
    DuplicateOrderNumberError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderFilter,
    OrderLineInput,
    OrderPage,
    OrderRecord,
    OrderStore,
    PersistenceError,
    Principal,
    StatusChange,
    ValidationError,
)
from services.api.app.services.order_lifecycle import allowed_next_statuses, check_transition
from services.api.app.services.order_number import OrderNumberGenerator
from services.api.app.services.order_pricing import PricingPolicy, price_order

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
# Largest OFFSET a 64-bit SQL integer can hold.
_MAX_OFFSET = 2**63 - 1


class OrderService:
    """Order creation, reads and status transitions.

    All money fields and line snapshots are written here, once, at creation. Status
    changes go through `transition_order`, which validates against the status it just
    loaded and writes with a compare-and-swap on that status.
    """

    def __init__(
        self,
        store: OrderStore,
        catalog: Catalog,
        *,
        pricing: PricingPolicy | None = None,
        order_numbers: Callable[[], str] | None = None,
        estimated_delivery: timedelta = timedelta(minutes=30),
        max_number_attempts: int = 3,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._pricing = pricing or PricingPolicy()
        self._order_numbers = order_numbers or OrderNumberGenerator()
        self._estimated_delivery = estimated_delivery
        self._max_number_attempts = max_number_attempts
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(
        cls, settings: Settings, store: OrderStore, catalog: Catalog
    ) -> "OrderService":
        return cls(
            store,
            catalog,
            pricing=PricingPolicy(
                tax_rate_percent=settings.tax_rate_percent,
                delivery_fee_cents=settings.delivery_fee_cents,
            ),
            order_numbers=OrderNumberGenerator(settings.order_number_prefix),
            estimated_delivery=timedelta(minutes=settings.estimated_delivery_minutes),
            max_number_attempts=settings.order_number_max_attempts,
        )

    def create_order(
        self,
        placer_id: str,
        restaurant_id: str,
        lines: Sequence[OrderLineInput],
        delivery_address: DeliveryAddress,
        payment_method: PaymentMethodV1 | str,
        *,
        customer_name: str | None = None,
        customer_phone: str | None = None,
        delivery_instructions: str | None = None,
    ) -> OrderRecord:
        if not lines:
            raise ValidationError("At least one item is required")
        for line in lines:
            if not 1 <= line.quantity <= MAX_ITEM_QUANTITY:
                raise ValidationError(
                    f"Quantity must be between 1 and {MAX_ITEM_QUANTITY} for item {line.menu_item_id}"
                )
        _validate_address(delivery_address)

        try:
            method = PaymentMethodV1(payment_method)
        except ValueError as e:
            raise ValidationError(f"Unsupported payment method: {payment_method}") from e

        restaurant = self._catalog.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant", restaurant_id)
        if restaurant.status != "approved":
            raise ValidationError("Restaurant is not accepting orders")
        if not restaurant.is_open:
            raise ValidationError("Restaurant is closed")

        wanted = list(dict.fromkeys(line.menu_item_id for line in lines))
        menu_items = self._catalog.get_menu_items(wanted)

        unresolved = [
            i for i in wanted if i not in menu_items or menu_items[i].restaurant_id != restaurant_id
        ]
        if unresolved:
            raise ValidationError(
                f"Some menu items not found: {', '.join(unresolved)}",
                unresolved_item_ids=unresolved,
            )

        unavailable = [i for i in wanted if not menu_items[i].is_available]
        if unavailable:
            raise ValidationError(
                f"Some menu items are unavailable: {', '.join(unavailable)}",
                unresolved_item_ids=unavailable,
            )

        priced = price_order(lines, menu_items, self._pricing)

        now = self._clock()
        draft = OrderRecord(
            id=uuid4().hex,
            order_number="",
            user_id=placer_id,
            restaurant_id=restaurant_id,
            items=priced.items,
            subtotal_cents=priced.subtotal_cents,
            delivery_fee_cents=priced.delivery_fee_cents,
            tax_cents=priced.tax_cents,
            total_cents=priced.total_cents,
            status=OrderStatusV1.PENDING,
            payment_method=method,
            payment_status=PaymentStatusV1.PENDING,
            delivery_address=delivery_address,
            customer_name=_clean(customer_name),
            customer_phone=_clean(customer_phone),
            delivery_instructions=_clean(delivery_instructions),
            order_time=now,
            estimated_delivery_time=now + self._estimated_delivery,
            created_at=now,
            updated_at=now,
        )

        for attempt in range(1, self._max_number_attempts + 1):
            record = replace(draft, order_number=self._order_numbers())
            try:
                self._store.insert(record)
            except DuplicateOrderNumberError:
                logger.warning(
                    "order number collision number=%s attempt=%d/%d",
                    record.order_number,
                    attempt,
                    self._max_number_attempts,
                )
                continue

            logger.info(
                "order created order_number=%s user=%s restaurant=%s total_cents=%d",
                record.order_number,
                placer_id,
                restaurant_id,
                record.total_cents,
            )
            return record

        raise PersistenceError(
            f"Could not allocate a unique order number after {self._max_number_attempts} attempts"
        )

    def get_order(self, order_id: str) -> OrderRecord:
        order = self._store.get(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(self, order_filter: OrderFilter, page: int = 1, limit: int = 10) -> OrderPage:
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if (page - 1) * limit > _MAX_OFFSET:
            raise ValidationError("page is out of range")

        orders, total = self._store.find(order_filter, offset=(page - 1) * limit, limit=limit)
        return OrderPage(orders=orders, page=page, limit=limit, total=total)

    def transition_order(
        self,
        order_id: str,
        requested: OrderStatusV1,
        principal: Principal,
        *,
        reason: str | None = None,
    ) -> OrderRecord:
        order = self.get_order(order_id)
        owner_id = self._restaurant_owner_id(order.restaurant_id)

        try:
            check_transition(order, requested, principal, owner_id)
        except (InvalidTransitionError, ForbiddenError) as e:
            logger.warning(
                "transition rejected order_number=%s %s->%s actor=%s role=%s: %s",
                order.order_number,
                order.status.value,
                requested.value,
                principal.user_id,
                principal.role.value,
                type(e).__name__,
            )
            raise

        change = self._status_change(requested, principal, reason)
        if not self._store.update_status(order.id, order.status, change):
            logger.warning(
                "transition conflict order_number=%s expected=%s requested=%s actor=%s",
                order.order_number,
                order.status.value,
                requested.value,
                principal.user_id,
            )
            raise ConflictError(order.id, order.status)

        logger.info(
            "order transitioned order_number=%s %s->%s actor=%s",
            order.order_number,
            order.status.value,
            requested.value,
            principal.user_id,
        )
        return replace(order, **change.changed_fields())

    def allowed_actions(
        self, order_id: str, principal: Principal
    ) -> tuple[OrderRecord, list[OrderStatusV1]]:
        order = self.get_order(order_id)
        owner_id = self._restaurant_owner_id(order.restaurant_id)
        return order, allowed_next_statuses(order, principal, owner_id)

    def can_view(self, order: OrderRecord, principal: Principal) -> bool:
        if principal.role == RoleV1.ADMIN or principal.user_id == order.user_id:
            return True
        if principal.role == RoleV1.RESTAURANT_OWNER:
            return self._restaurant_owner_id(order.restaurant_id) == principal.user_id
        return False

    def restaurant_ids_owned_by(self, user_id: str) -> set[str]:
        return self._catalog.restaurant_ids_owned_by(user_id)

    def _restaurant_owner_id(self, restaurant_id: str) -> str | None:
        restaurant = self._catalog.get_restaurant(restaurant_id)
        return restaurant.owner_id if restaurant is not None else None

    def _status_change(
        self, requested: OrderStatusV1, principal: Principal, reason: str | None
    ) -> StatusChange:
        now = self._clock()
        if requested == OrderStatusV1.READY:
            return StatusChange(status=requested, updated_at=now, ready_time=now)
        if requested == OrderStatusV1.OUT_FOR_DELIVERY:
            return StatusChange(status=requested, updated_at=now, out_for_delivery_time=now)
        if requested == OrderStatusV1.DELIVERED:
            return StatusChange(status=requested, updated_at=now, actual_delivery_time=now)
        if requested == OrderStatusV1.CANCELLED:
            return StatusChange(
                status=requested,
                updated_at=now,
                cancelled_at=now,
                cancelled_by=_cancelled_by(principal),
                cancellation_reason=_clean(reason),
            )
        return StatusChange(status=requested, updated_at=now)


def parse_status_filter(raw: str | None) -> frozenset[OrderStatusV1] | None:
    """Parse `pending,ready,out_for_delivery` into a status set. Blank means no filter."""

    if raw is None or not raw.strip():
        return None

    statuses: set[OrderStatusV1] = set()
    for part in raw.split(","):
        value = part.strip()
        if not value:
            continue
        try:
            statuses.add(OrderStatusV1(value))
        except ValueError as e:
            raise ValidationError(f"Unknown order status: {value}") from e
    return frozenset(statuses) or None


def _validate_address(address: DeliveryAddress) -> None:
    for label, value in (
        ("Street address", address.street),
        ("City", address.city),
        ("State", address.state),
        ("ZIP code", address.zip_code),
    ):
        if not value or not value.strip():
            raise ValidationError(f"{label} is required")


def _cancelled_by(principal: Principal) -> CancelledByV1:
    if principal.role == RoleV1.ADMIN:
        return CancelledByV1.ADMIN
    if principal.role == RoleV1.RESTAURANT_OWNER:
        return CancelledByV1.RESTAURANT
    return CancelledByV1.USER


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
