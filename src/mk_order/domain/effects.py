"""Side effects owed by an order event, as outbox payloads.

Planning is pure; the dispatcher executes them after the status change commits.
"""

from typing import Any

from src.mk_common.enums import NotificationType, OrderStatus, SideEffectType
from src.mk_common.ids import generate_id
from src.mk_common.money import cents_to_display
from src.mk_order.domain.models import Order, SideEffect


def _notice_data(order_id: str, order_number: str, extra: dict[str, Any] | None = None) -> dict:
    return {
        "reference_id": order_id,
        "reference_model": "Order",
        "action_url": f"/orders/{order_id}",
        "extra": {"order_number": order_number, **(extra or {})},
    }


def _notify(order: Order, user_id: str, type_: NotificationType, title: str,
            message: str) -> SideEffect:
    return SideEffect(
        id=generate_id(),
        order_id=order.id,
        effect_type=SideEffectType.NOTIFY.value,
        payload={
            "user_id": user_id,
            "type": type_.value,
            "title": title,
            "message": message,
            "data": _notice_data(order.id, order.order_number),
        },
    )


def earnings_credited_notice(order_id: str, order_number: str, net: int) -> dict[str, Any]:
    """Seller notification sent by the credit handler once the ledger row lands."""
    return {
        "type": NotificationType.PAYOUT_PROCESSED.value,
        "title": "Earnings Credited",
        "message": f"{cents_to_display(net)} credited from order #{order_number}",
        "data": _notice_data(order_id, order_number, {"net": net}),
    }


def effects_for_new_order(order: Order) -> list[SideEffect]:
    total = cents_to_display(order.total_amount)
    return [
        _notify(
            order, order.seller_id, NotificationType.NEW_ORDER_RECEIVED,
            "New Order Received",
            f"{order.buyer.get('username') or 'A buyer'} placed order #{order.order_number} ({total})",
        ),
        _notify(
            order, order.buyer_id, NotificationType.ORDER_PLACED,
            "Order Placed",
            f"Your order #{order.order_number} with {order.seller.get('name', '')} was placed ({total})",
        ),
    ]


def effects_for_transition(
    order: Order, target: str, actor_id: str, platform_fee_bps: int
) -> list[SideEffect]:
    """Effects owed once `order` has moved to `target`.

    Stock restoration on cancel is not listed: it runs inside the status
    transaction itself.
    """
    seller_name = order.seller.get("name", "")
    if target == OrderStatus.CONFIRMED.value:
        return [_notify(
            order, order.buyer_id, NotificationType.ORDER_CONFIRMED, "Order Confirmed",
            f"Your order #{order.order_number} was confirmed by {seller_name}",
        )]
    if target == OrderStatus.SHIPPED.value:
        return [_notify(
            order, order.buyer_id, NotificationType.ORDER_SHIPPED, "Order Shipped",
            f"Your order #{order.order_number} has been shipped by {seller_name}",
        )]
    if target == OrderStatus.DELIVERED.value:
        return [_notify(
            order, order.buyer_id, NotificationType.ORDER_DELIVERED, "Order Delivered",
            f"Your order #{order.order_number} has been delivered. Enjoy your purchase!",
        )]
    if target == OrderStatus.COMPLETED.value:
        return [
            SideEffect(
                id=generate_id(),
                order_id=order.id,
                effect_type=SideEffectType.CREDIT_EARNINGS.value,
                payload={
                    "seller_id": order.seller_id,
                    "order_number": order.order_number,
                    "gross_amount": order.total_amount,
                    "platform_fee_bps": platform_fee_bps,
                },
            ),
            SideEffect(
                id=generate_id(),
                order_id=order.id,
                effect_type=SideEffectType.UPDATE_MERCHANT_METRICS.value,
                payload={
                    "seller_id": order.seller_id,
                    "revenue": order.total_amount,
                    "sales": order.item_quantity,
                },
            ),
        ]
    if target == OrderStatus.CANCELLED.value:
        by_buyer = actor_id == order.buyer_id
        recipient = order.seller_id if by_buyer else order.buyer_id
        who = "the buyer" if by_buyer else seller_name or "the seller"
        return [_notify(
            order, recipient, NotificationType.ORDER_CANCELLED, "Order Cancelled",
            f"Order #{order.order_number} was cancelled by {who}",
        )]
    return []
