"""Orders REST API — read, status updates, cancellation. All require JWT."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.database import get_db_session
from src.mk_common.enums import OrderStatus
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_order.application.schemas import (
    CancelOrderRequest,
    OrderListResponse,
    OrderResponse,
    OrderRole,
    UpdateOrderStatusRequest,
    cursor_decode,
    cursor_encode,
)
from src.mk_order.application.status_service import OrderStatusStateMachine

router = APIRouter(prefix="/orders", tags=["orders"])

_service = OrderStatusStateMachine()


@router.get("")
async def list_orders(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    role: OrderRole = Query("buyer", description="List orders placed (buyer) or received (seller)"),
    status: OrderStatus | None = Query(None, description="Filter by order status"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
) -> ApiResponse:
    orders, has_more = await _service.list_orders(
        db,
        current_user.id,
        role,
        status.value if status else None,
        cursor_decode(cursor),
        limit,
    )
    data = OrderListResponse(
        items=[OrderResponse.from_order(o) for o in orders],
        next_cursor=cursor_encode(orders[-1].id) if has_more and orders else None,
        has_more=has_more,
    )
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.get(db, order_id, current_user.id, current_user.roles)
    resp = success_response(OrderResponse.from_order(order).model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.update_status(
        db, order_id, current_user.id, current_user.roles, body.status.value, body.note
    )
    resp = success_response(
        OrderResponse.from_order(order).model_dump(mode="json"),
        f"Order status updated to {order.status}",
    )
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.cancel(
        db, order_id, current_user.id, current_user.roles, body.reason, body.description
    )
    resp = success_response(OrderResponse.from_order(order).model_dump(mode="json"), "Order cancelled")
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
