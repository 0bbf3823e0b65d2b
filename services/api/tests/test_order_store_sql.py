from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from packages.shared.schemas.order_v1 import OrderStatusV1, RoleV1
from services.api.app.db.database import Database
from services.api.app.db.init_db import init_db
from services.api.app.db.models import MenuItem
from services.api.app.db.seed import menu_item_id, restaurant_id, seed_sample_data
from services.api.app.services.order_base import (
    ConflictError,
    DeliveryAddress,
    DuplicateOrderNumberError,
    OrderFilter,
    OrderLineInput,
    PersistenceError,
    Principal,
    StatusChange,
)
from services.api.app.services.order_service import OrderService
from services.api.app.services.order_store import SqlCatalog, SqlOrderStore

WRAPCHIK = restaurant_id("Wrapchik")
STUDENT = Principal(user_id="student-1", role=RoleV1.USER)
WRAPCHIK_OWNER = Principal(user_id="owner-1", role=RoleV1.RESTAURANT_OWNER)
ADDRESS = DeliveryAddress(
    "Hostel Block A, Room 101", "Patiala", "Punjab", "147004", latitude=30.35, longitude=76.37
)


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(f"sqlite+pysqlite:///{tmp_path / 'grub_store.db'}")
    init_db(db)
    session = db.session()
    try:
        seed_sample_data(session)
    finally:
        session.close()
    yield db
    db.dispose()


@pytest.fixture()
def service(database: Database) -> OrderService:
    return OrderService(SqlOrderStore(database), SqlCatalog(database))


def _create(service: OrderService):
    return service.create_order(
        STUDENT.user_id,
        WRAPCHIK,
        [
            OrderLineInput(menu_item_id("Paneer Wrap"), 2, "extra mint chutney"),
            OrderLineInput(menu_item_id("Chicken Tikka Roll"), 1),
        ],
        ADDRESS,
        "cash",
    )


def test_sql_round_trip_preserves_the_order(service: OrderService) -> None:
    order = _create(service)
    loaded = service.get_order(order.id)

    assert loaded == order
    assert loaded.order_time.tzinfo is not None
    assert loaded.delivery_address.latitude == 30.35
    assert loaded.items[0].special_instructions == "extra mint chutney"
    assert loaded.subtotal_cents == 2 * 12000 + 14000
    assert loaded.tax_cents == 1900
    assert loaded.total_cents == 39900


def test_sql_snapshot_survives_menu_edit(service: OrderService, database: Database) -> None:
    order = _create(service)

    session = database.session()
    try:
        item = session.get(MenuItem, menu_item_id("Paneer Wrap"))
        item.price_cents = 50000
        item.name = "Paneer Wrap Deluxe"
        session.commit()
    finally:
        session.close()

    loaded = service.get_order(order.id)
    assert loaded.items[0].name == "Paneer Wrap"
    assert loaded.items[0].unit_price_cents == 12000


def test_sql_insert_rejects_duplicate_order_number(database: Database, service: OrderService) -> None:
    order = _create(service)
    store = SqlOrderStore(database)

    with pytest.raises(DuplicateOrderNumberError):
        store.insert(replace(order, id="another-id"))


def test_sql_insert_other_integrity_errors_are_not_retried(
    database: Database, service: OrderService
) -> None:
    order = _create(service)
    store = SqlOrderStore(database)

    # Same primary key, fresh order number.
    with pytest.raises(PersistenceError) as exc:
        store.insert(replace(order, order_number="GCFRESH0001"))
    assert not isinstance(exc.value, DuplicateOrderNumberError)

    numbers = iter(["GCRETRY0001", "GCRETRY0002"])
    fixed_id = OrderService(store, SqlCatalog(database), order_numbers=lambda: next(numbers))
    with patch("services.api.app.services.order_service.uuid4") as uuid4:
        uuid4.return_value.hex = order.id
        with pytest.raises(PersistenceError, match="Failed to save order"):
            _create(fixed_id)
    # Only one number was drawn.
    assert next(numbers) == "GCRETRY0002"


def test_sql_update_status_is_compare_and_swap(database: Database, service: OrderService) -> None:
    order = _create(service)
    store = SqlOrderStore(database)
    now = datetime.now(timezone.utc)

    assert store.update_status(
        order.id, OrderStatusV1.PENDING, StatusChange(OrderStatusV1.READY, now, ready_time=now)
    )
    assert not store.update_status(
        order.id, OrderStatusV1.PENDING, StatusChange(OrderStatusV1.CANCELLED, now)
    )
    assert not store.update_status(
        "missing", OrderStatusV1.PENDING, StatusChange(OrderStatusV1.READY, now)
    )

    loaded = store.get(order.id)
    assert loaded.status == OrderStatusV1.READY
    assert loaded.ready_time is not None


def test_sql_find_filters_by_status_set(service: OrderService) -> None:
    first = _create(service)
    second = _create(service)
    _create(service)
    service.transition_order(first.id, OrderStatusV1.READY, WRAPCHIK_OWNER)
    service.transition_order(second.id, OrderStatusV1.CANCELLED, STUDENT)

    page = service.list_orders(
        OrderFilter(
            restaurant_id=WRAPCHIK,
            statuses=frozenset({OrderStatusV1.PENDING, OrderStatusV1.READY}),
        )
    )
    assert page.total == 2
    assert second.id not in {o.id for o in page.orders}

    mine = service.list_orders(OrderFilter(user_id=STUDENT.user_id), limit=2)
    assert mine.total == 3
    assert mine.pages == 2
    assert mine.orders[0].order_time >= mine.orders[1].order_time


def test_sql_racing_transitions_conflict(database: Database) -> None:
    barrier = threading.Barrier(2)

    class _RacingStore(SqlOrderStore):
        racing = False

        def get(self, order_id: str):
            record = super().get(order_id)
            if self.racing:
                barrier.wait(timeout=5)
            return record

    store = _RacingStore(database)
    service = OrderService(store, SqlCatalog(database))
    order = _create(service)
    store.racing = True

    def attempt(args):
        status, actor = args
        try:
            service.transition_order(order.id, status, actor)
        except ConflictError:
            return "conflict"
        return "ok"

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(
            pool.map(
                attempt,
                [
                    (OrderStatusV1.READY, WRAPCHIK_OWNER),
                    (OrderStatusV1.CANCELLED, STUDENT),
                ],
            )
        )

    assert sorted(outcomes) == ["conflict", "ok"]
