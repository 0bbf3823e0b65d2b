"""Order status state machine.

This is the only place that decides whether a status change is legal and who may
request it. Routers and dashboards ask `allowed_next_statuses` instead of re-deriving
the table.

    pending -> ready -> out_for_delivery -> delivered
    any non-terminal -> cancelled

`delivered` and `cancelled` are terminal.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from packages.shared.schemas.order_v1 import OrderStatusV1, RoleV1
from services.api.app.services.order_base import (
    ForbiddenError,
    InvalidTransitionError,
    OrderRecord,
    Principal,
)

TERMINAL_STATUSES: frozenset[OrderStatusV1] = frozenset(
    {OrderStatusV1.DELIVERED, OrderStatusV1.CANCELLED}
)


@dataclass(frozen=True, slots=True)
class ActorContext:
    principal: Principal
    order: OrderRecord
    restaurant_owner_id: str | None

    @property
    def is_placer(self) -> bool:
        return self.principal.user_id == self.order.user_id

    @property
    def is_restaurant_owner(self) -> bool:
        return (
            self.principal.role == RoleV1.RESTAURANT_OWNER
            and self.restaurant_owner_id is not None
            and self.principal.user_id == self.restaurant_owner_id
        )

    @property
    def is_admin(self) -> bool:
        return self.principal.role == RoleV1.ADMIN


ActorRule = Callable[[ActorContext], bool]


def _restaurant_owner(ctx: ActorContext) -> bool:
    return ctx.is_restaurant_owner


def _placing_user(ctx: ActorContext) -> bool:
    return ctx.is_placer and ctx.principal.role == RoleV1.USER


_OWNER_CANCELLABLE = frozenset(
    {
        OrderStatusV1.PENDING,
        OrderStatusV1.CONFIRMED,
        OrderStatusV1.PREPARING,
        OrderStatusV1.READY,
    }
)


def _may_cancel(ctx: ActorContext) -> bool:
    if ctx.is_admin:
        return True

    status = ctx.order.status
    if ctx.is_restaurant_owner:
        return status in _OWNER_CANCELLABLE
    if _placing_user(ctx):
        return status == OrderStatusV1.PENDING
    return False


# Forward transitions keyed by current status. Cancellation is added below for every
# non-terminal status.
_FORWARD: dict[OrderStatusV1, dict[OrderStatusV1, ActorRule]] = {
    OrderStatusV1.PENDING: {OrderStatusV1.READY: _restaurant_owner},
    OrderStatusV1.READY: {OrderStatusV1.OUT_FOR_DELIVERY: _restaurant_owner},
    OrderStatusV1.OUT_FOR_DELIVERY: {OrderStatusV1.DELIVERED: _placing_user},
}

TRANSITIONS: dict[OrderStatusV1, dict[OrderStatusV1, ActorRule]] = {
    status: (
        {}
        if status in TERMINAL_STATUSES
        else {**_FORWARD.get(status, {}), OrderStatusV1.CANCELLED: _may_cancel}
    )
    for status in OrderStatusV1
}


def legal_next_statuses(current: OrderStatusV1) -> frozenset[OrderStatusV1]:
    """Statuses reachable from `current` by some actor."""
    return frozenset(TRANSITIONS[current])


def check_transition(
    order: OrderRecord,
    requested: OrderStatusV1,
    principal: Principal,
    restaurant_owner_id: str | None,
) -> None:
    """Raise unless `principal` may move `order` to `requested` right now.

    InvalidTransitionError: no actor could make this move from the current status.
    ForbiddenError: the move is legal, but not for this actor on this order.
    """

    rules = TRANSITIONS[order.status]
    rule = rules.get(requested)
    if rule is None:
        raise InvalidTransitionError(order.status, requested)

    ctx = ActorContext(principal=principal, order=order, restaurant_owner_id=restaurant_owner_id)
    if not rule(ctx):
        raise ForbiddenError(
            f"Role {principal.role.value} may not move this order "
            f"from {order.status.value} to {requested.value}"
        )


def allowed_next_statuses(
    order: OrderRecord,
    principal: Principal,
    restaurant_owner_id: str | None,
) -> list[OrderStatusV1]:
    ctx = ActorContext(principal=principal, order=order, restaurant_owner_id=restaurant_owner_id)
    # Enum order keeps the list stable for clients.
    return [
        status
        for status in OrderStatusV1
        if status in TRANSITIONS[order.status] and TRANSITIONS[order.status][status](ctx)
    ]
