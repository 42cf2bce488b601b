"""Tests for the pure order status graph and its authorization rules."""

import pytest

from src.mk_common.errors import InvalidStatusTransitionError, OrderForbiddenError
from src.mk_order.domain.models import Order
from src.mk_order.domain.state_machine import (
    ORDER_TRANSITIONS,
    ensure_transition,
    is_terminal,
    validate_transition,
)


def _order(status: str = "pending") -> Order:
    return Order(
        id="100",
        order_number="ORD-20260101-ABC123",
        buyer_id="b1",
        seller_id="s1",
        buyer={"id": "b1"},
        seller={"id": "s1", "name": "Shop s1"},
        items=[],
        items_total=1000,
        shipping_fee=0,
        total_amount=1000,
        payment_method="cod",
        payment_status="pending",
        delivery_method="self_pickup",
        delivery_address={"type": "pickup"},
        status=status,
    )


class TestGraph:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("pending", "confirmed"),
            ("pending", "cancelled"),
            ("confirmed", "shipped"),
            ("confirmed", "cancelled"),
            ("shipped", "delivered"),
            ("delivered", "completed"),
        ],
    )
    def test_legal(self, current: str, target: str) -> None:
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("pending", "shipped"),
            ("pending", "completed"),
            ("shipped", "cancelled"),
            ("delivered", "cancelled"),
            ("completed", "cancelled"),
            ("cancelled", "pending"),
            ("confirmed", "pending"),
        ],
    )
    def test_illegal(self, current: str, target: str) -> None:
        with pytest.raises(InvalidStatusTransitionError) as exc:
            ensure_transition(current, target)
        assert exc.value.code == "INVALID_ORDER_STATUS"

    def test_terminal_statuses(self) -> None:
        terminal = {s for s in ORDER_TRANSITIONS if is_terminal(s)}
        assert terminal == {"completed", "cancelled"}


class TestAuthorization:
    def test_seller_moves_forward(self) -> None:
        validate_transition(_order("confirmed"), "s1", ["merchant"], "shipped")

    def test_admin_moves_forward(self) -> None:
        validate_transition(_order("shipped"), "root", ["admin"], "delivered")

    def test_admin_cannot_cancel(self) -> None:
        with pytest.raises(OrderForbiddenError) as exc:
            validate_transition(_order(), "root", ["admin"], "cancelled")
        assert exc.value.code == "ORDER_ACCESS_DENIED"

    def test_buyer_cancels_pending_only(self) -> None:
        validate_transition(_order(), "b1", [], "cancelled")
        with pytest.raises(OrderForbiddenError) as exc:
            validate_transition(_order("confirmed"), "b1", [], "cancelled")
        assert exc.value.code == "CANCEL_NOT_ALLOWED"

    def test_seller_cancels_confirmed(self) -> None:
        validate_transition(_order("confirmed"), "s1", [], "cancelled")

    def test_legality_checked_before_identity(self) -> None:
        # a stranger asking for an illegal move learns about the move, not the order
        with pytest.raises(InvalidStatusTransitionError):
            validate_transition(_order("completed"), "nobody", [], "shipped")
