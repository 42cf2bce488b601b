"""Order status graph and who may walk it — pure, no I/O.

    pending -> confirmed -> shipped -> delivered -> completed
    pending | confirmed -> cancelled

Legality is checked before authorization, so an illegal move reports
INVALID_ORDER_STATUS with both statuses regardless of who asked.
"""

from src.mk_common.enums import OrderStatus, UserRole
from src.mk_common.errors import InvalidStatusTransitionError, OrderForbiddenError
from src.mk_order.domain.models import Order

ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING.value: frozenset({OrderStatus.CONFIRMED.value, OrderStatus.CANCELLED.value}),
    OrderStatus.CONFIRMED.value: frozenset({OrderStatus.SHIPPED.value, OrderStatus.CANCELLED.value}),
    OrderStatus.SHIPPED.value: frozenset({OrderStatus.DELIVERED.value}),
    OrderStatus.DELIVERED.value: frozenset({OrderStatus.COMPLETED.value}),
    OrderStatus.COMPLETED.value: frozenset(),
    OrderStatus.CANCELLED.value: frozenset(),
}

BUYER_CANCELLABLE = frozenset({OrderStatus.PENDING.value})
SELLER_CANCELLABLE = frozenset({OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value})

STATUS_TIMESTAMP_FIELD: dict[str, str] = {
    OrderStatus.CONFIRMED.value: "confirmed_at",
    OrderStatus.SHIPPED.value: "shipped_at",
    OrderStatus.DELIVERED.value: "delivered_at",
    OrderStatus.COMPLETED.value: "completed_at",
    OrderStatus.CANCELLED.value: "cancelled_at",
}


def is_terminal(status: str) -> bool:
    return not ORDER_TRANSITIONS.get(status)


def ensure_transition(current: str, target: str) -> None:
    if target not in ORDER_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransitionError(current, target)


def authorize_transition(order: Order, actor_id: str, actor_roles: list[str], target: str) -> None:
    is_buyer = actor_id == order.buyer_id
    is_seller = actor_id == order.seller_id
    is_admin = UserRole.ADMIN.value in actor_roles

    if target == OrderStatus.CANCELLED.value:
        if is_seller and order.status in SELLER_CANCELLABLE:
            return
        if is_buyer and order.status in BUYER_CANCELLABLE:
            return
        if is_buyer:
            raise OrderForbiddenError(
                "CANCEL_NOT_ALLOWED",
                "Order can only be cancelled by the buyer while it is pending",
                order.id,
            )
        raise OrderForbiddenError(
            "ORDER_ACCESS_DENIED", "Only the buyer or seller can cancel this order", order.id
        )

    if not (is_seller or is_admin):
        raise OrderForbiddenError(
            "ORDER_ACCESS_DENIED", "Only the seller can update this order's status", order.id
        )


def validate_transition(order: Order, actor_id: str, actor_roles: list[str], target: str) -> None:
    ensure_transition(order.status, target)
    authorize_transition(order, actor_id, actor_roles, target)
