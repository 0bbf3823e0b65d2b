from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import datetime, timezone

from packages.shared.schemas.order_v1 import (
    CancelledByV1,
    OrderStatusV1,
    PaymentMethodV1,
    PaymentStatusV1,
)
from services.api.app.db.database import Database
from services.api.app.db.models import MenuItem, Order, Restaurant
from services.api.app.services.order_base import (
    DeliveryAddress,
    DuplicateOrderNumberError,
    LineItem,
    MenuItemSnapshot,
    OrderFilter,
    OrderRecord,
    PersistenceError,
    RestaurantInfo,
    StatusChange,
)
from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class SqlOrderStore:
    """Order persistence on SQLAlchemy. One short session per call."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def insert(self, record: OrderRecord) -> None:
        session = self._db.session()
        try:
            session.add(_record_to_row(record))
            session.commit()
        except IntegrityError as e:
            session.rollback()
            if _is_order_number_conflict(e):
                raise DuplicateOrderNumberError(record.order_number) from e
            logger.exception("order insert rejected order_number=%s", record.order_number)
            raise PersistenceError("Failed to save order") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("order insert failed order_number=%s", record.order_number)
            raise PersistenceError("Failed to save order") from e
        finally:
            session.close()

    def get(self, order_id: str) -> OrderRecord | None:
        session = self._db.session()
        try:
            row = session.get(Order, order_id)
            return _row_to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to load order") from e
        finally:
            session.close()

    def find(
        self, order_filter: OrderFilter, *, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]:
        session = self._db.session()
        try:
            query = _apply_filter(select(Order), order_filter)
            count_query = _apply_filter(select(func.count()).select_from(Order), order_filter)

            rows = session.scalars(
                query.order_by(Order.order_time.desc(), Order.id.desc())
                .offset(offset)
                .limit(limit)
            ).all()
            total = session.scalar(count_query) or 0
            return [_row_to_record(r) for r in rows], int(total)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to query orders") from e
        finally:
            session.close()

    def update_status(
        self, order_id: str, expected_status: OrderStatusV1, change: StatusChange
    ) -> bool:
        values = {
            name: value.value if isinstance(value, (OrderStatusV1, CancelledByV1)) else value
            for name, value in change.changed_fields().items()
        }

        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status.value)
            .values(**values)
        )

        session = self._db.session()
        try:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount == 1
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("order status update failed order_id=%s", order_id)
            raise PersistenceError("Failed to update order status") from e
        finally:
            session.close()


class SqlCatalog:
    """Read-only view of restaurants and menu items."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def get_menu_items(self, menu_item_ids: Collection[str]) -> dict[str, MenuItemSnapshot]:
        if not menu_item_ids:
            return {}

        session = self._db.session()
        try:
            rows = session.scalars(select(MenuItem).where(MenuItem.id.in_(set(menu_item_ids)))).all()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to look up menu items") from e
        finally:
            session.close()

        return {
            r.id: MenuItemSnapshot(
                id=r.id,
                name=r.name,
                price_cents=r.price_cents,
                restaurant_id=r.restaurant_id,
                category=r.category,
                is_available=r.is_available,
            )
            for r in rows
        }

    def get_restaurant(self, restaurant_id: str) -> RestaurantInfo | None:
        session = self._db.session()
        try:
            row = session.get(Restaurant, restaurant_id)
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to look up restaurant") from e
        finally:
            session.close()

        if row is None:
            return None
        return RestaurantInfo(id=row.id, owner_id=row.owner_id, status=row.status, is_open=row.is_open)

    def restaurant_ids_owned_by(self, user_id: str) -> set[str]:
        session = self._db.session()
        try:
            ids = session.scalars(select(Restaurant.id).where(Restaurant.owner_id == user_id)).all()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to look up restaurants") from e
        finally:
            session.close()
        return set(ids)


def _apply_filter(query: Select, order_filter: OrderFilter) -> Select:
    if order_filter.user_id is not None:
        query = query.where(Order.user_id == order_filter.user_id)
    if order_filter.restaurant_id is not None:
        query = query.where(Order.restaurant_id == order_filter.restaurant_id)
    if order_filter.statuses:
        query = query.where(Order.status.in_(sorted(s.value for s in order_filter.statuses)))
    return query


def _is_order_number_conflict(e: IntegrityError) -> bool:
    # sqlite: "UNIQUE constraint failed: orders.order_number"
    # postgres: duplicate key value violates unique constraint "orders_order_number_key"
    message = str(e.orig).lower()
    return "order_number" in message and ("unique" in message or "duplicate" in message)


def _utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back; every stored timestamp is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _record_to_row(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        order_number=record.order_number,
        user_id=record.user_id,
        restaurant_id=record.restaurant_id,
        items_json=[item.to_json() for item in record.items],
        subtotal_cents=record.subtotal_cents,
        delivery_fee_cents=record.delivery_fee_cents,
        tax_cents=record.tax_cents,
        total_cents=record.total_cents,
        status=record.status.value,
        payment_method=record.payment_method.value,
        payment_status=record.payment_status.value,
        customer_name=record.customer_name,
        customer_phone=record.customer_phone,
        delivery_address_json=record.delivery_address.to_json(),
        delivery_instructions=record.delivery_instructions,
        order_time=record.order_time,
        estimated_delivery_time=record.estimated_delivery_time,
        actual_delivery_time=record.actual_delivery_time,
        ready_time=record.ready_time,
        out_for_delivery_time=record.out_for_delivery_time,
        cancelled_at=record.cancelled_at,
        cancelled_by=record.cancelled_by.value if record.cancelled_by else None,
        cancellation_reason=record.cancellation_reason,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _row_to_record(row: Order) -> OrderRecord:
    return OrderRecord(
        id=row.id,
        order_number=row.order_number,
        user_id=row.user_id,
        restaurant_id=row.restaurant_id,
        items=tuple(LineItem.from_json(i) for i in row.items_json),
        subtotal_cents=row.subtotal_cents,
        delivery_fee_cents=row.delivery_fee_cents,
        tax_cents=row.tax_cents,
        total_cents=row.total_cents,
        status=OrderStatusV1(row.status),
        payment_method=PaymentMethodV1(row.payment_method),
        payment_status=PaymentStatusV1(row.payment_status),
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        delivery_address=DeliveryAddress.from_json(row.delivery_address_json),
        delivery_instructions=row.delivery_instructions,
        order_time=_utc(row.order_time),
        estimated_delivery_time=_utc(row.estimated_delivery_time),
        actual_delivery_time=_utc(row.actual_delivery_time),
        ready_time=_utc(row.ready_time),
        out_for_delivery_time=_utc(row.out_for_delivery_time),
        cancelled_at=_utc(row.cancelled_at),
        cancelled_by=CancelledByV1(row.cancelled_by) if row.cancelled_by else None,
        cancellation_reason=row.cancellation_reason,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )
