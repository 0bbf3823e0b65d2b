from __future__ import annotations

from datetime import datetime, timezone

import pytest
from packages.shared.schemas.order_v1 import (
    OrderStatusV1,
    PaymentMethodV1,
    PaymentStatusV1,
    RoleV1,
)
from services.api.app.services.order_base import (
    DeliveryAddress,
    ForbiddenError,
    InvalidTransitionError,
    OrderRecord,
    Principal,
)
from services.api.app.services.order_lifecycle import (
    TERMINAL_STATUSES,
    allowed_next_statuses,
    check_transition,
    legal_next_statuses,
)

S = OrderStatusV1
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

STUDENT = Principal(user_id="u-1", role=RoleV1.USER)
OTHER_STUDENT = Principal(user_id="u-2", role=RoleV1.USER)
OWNER = Principal(user_id="owner-1", role=RoleV1.RESTAURANT_OWNER)
OTHER_OWNER = Principal(user_id="owner-2", role=RoleV1.RESTAURANT_OWNER)
ADMIN = Principal(user_id="admin-1", role=RoleV1.ADMIN)

FORWARD = {
    (S.PENDING, S.READY),
    (S.READY, S.OUT_FOR_DELIVERY),
    (S.OUT_FOR_DELIVERY, S.DELIVERED),
}
CANCELLABLE = set(S) - TERMINAL_STATUSES
LEGAL = FORWARD | {(s, S.CANCELLED) for s in CANCELLABLE}


def _order(status: OrderStatusV1, user_id: str = "u-1") -> OrderRecord:
    return OrderRecord(
        id="o-1",
        order_number="GC0001",
        user_id=user_id,
        restaurant_id="r-1",
        items=(),
        subtotal_cents=0,
        delivery_fee_cents=0,
        tax_cents=0,
        total_cents=0,
        status=status,
        payment_method=PaymentMethodV1.CASH,
        payment_status=PaymentStatusV1.PENDING,
        delivery_address=DeliveryAddress("Hostel A", "Patiala", "Punjab", "147004"),
        order_time=NOW,
        estimated_delivery_time=NOW,
        created_at=NOW,
        updated_at=NOW,
    )


def test_table_matches_documented_transitions() -> None:
    for current in S:
        expected = {nxt for (cur, nxt) in LEGAL if cur == current}
        assert legal_next_statuses(current) == expected


@pytest.mark.parametrize(
    ("current", "requested"),
    [(a, b) for a in S for b in S if (a, b) not in LEGAL],
)
def test_every_pair_outside_the_table_is_invalid(
    current: OrderStatusV1, requested: OrderStatusV1
) -> None:
    # Even an admin cannot make a move the table does not list.
    for actor in (STUDENT, OWNER, ADMIN):
        with pytest.raises(InvalidTransitionError):
            check_transition(_order(current), requested, actor, "owner-1")


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_reject_everything(terminal: OrderStatusV1) -> None:
    for requested in S:
        with pytest.raises(InvalidTransitionError):
            check_transition(_order(terminal), requested, ADMIN, "owner-1")


def test_owner_moves_pending_to_ready() -> None:
    check_transition(_order(S.PENDING), S.READY, OWNER, "owner-1")


def test_placer_cannot_mark_ready() -> None:
    with pytest.raises(ForbiddenError):
        check_transition(_order(S.PENDING), S.READY, STUDENT, "owner-1")


def test_owner_of_another_restaurant_is_forbidden() -> None:
    for current, requested in ((S.PENDING, S.READY), (S.READY, S.OUT_FOR_DELIVERY)):
        with pytest.raises(ForbiddenError):
            check_transition(_order(current), requested, OTHER_OWNER, "owner-1")


def test_owner_forbidden_when_restaurant_is_unknown() -> None:
    with pytest.raises(ForbiddenError):
        check_transition(_order(S.PENDING), S.READY, OWNER, None)


def test_only_the_placing_user_confirms_delivery() -> None:
    check_transition(_order(S.OUT_FOR_DELIVERY), S.DELIVERED, STUDENT, "owner-1")

    for actor in (OTHER_STUDENT, OWNER, ADMIN):
        with pytest.raises(ForbiddenError):
            check_transition(_order(S.OUT_FOR_DELIVERY), S.DELIVERED, actor, "owner-1")


def test_skipping_out_for_delivery_is_invalid() -> None:
    with pytest.raises(InvalidTransitionError):
        check_transition(_order(S.READY), S.DELIVERED, STUDENT, "owner-1")


def test_placer_cancels_only_while_pending() -> None:
    check_transition(_order(S.PENDING), S.CANCELLED, STUDENT, "owner-1")

    with pytest.raises(ForbiddenError):
        check_transition(_order(S.READY), S.CANCELLED, STUDENT, "owner-1")
    with pytest.raises(ForbiddenError):
        check_transition(_order(S.PENDING), S.CANCELLED, OTHER_STUDENT, "owner-1")


def test_owner_cannot_cancel_once_out_for_delivery() -> None:
    check_transition(_order(S.READY), S.CANCELLED, OWNER, "owner-1")

    with pytest.raises(ForbiddenError):
        check_transition(_order(S.OUT_FOR_DELIVERY), S.CANCELLED, OWNER, "owner-1")


def test_admin_cancels_any_non_terminal_order() -> None:
    for status in CANCELLABLE:
        check_transition(_order(status), S.CANCELLED, ADMIN, "owner-1")


def test_allowed_next_statuses_per_actor() -> None:
    assert allowed_next_statuses(_order(S.PENDING), OWNER, "owner-1") == [S.READY, S.CANCELLED]
    assert allowed_next_statuses(_order(S.PENDING), STUDENT, "owner-1") == [S.CANCELLED]
    assert allowed_next_statuses(_order(S.PENDING), OTHER_OWNER, "owner-1") == []
    assert allowed_next_statuses(_order(S.OUT_FOR_DELIVERY), STUDENT, "owner-1") == [S.DELIVERED]
    assert allowed_next_statuses(_order(S.OUT_FOR_DELIVERY), ADMIN, "owner-1") == [S.CANCELLED]
    assert allowed_next_statuses(_order(S.DELIVERED), ADMIN, "owner-1") == []
