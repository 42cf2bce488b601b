"""Checkout REST API — session lifecycle, payment intent, confirmation. All require JWT."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_checkout.application.schemas import (
    CheckoutSessionResponse,
    CreateDirectSessionRequest,
    PaymentIntentResponse,
    PaymentStatusResponse,
    UpdateSessionRequest,
)
from src.mk_checkout.application.service import CheckoutSessionManager
from src.mk_common.database import get_db_session
from src.mk_common.response import ApiResponse, success_response
from src.mk_gateway.auth.dependencies import CurrentUser, get_current_user
from src.mk_order.application.fulfillment import OrderFulfillmentEngine
from src.mk_order.application.schemas import ConfirmCheckoutResponse, OrderResponse
from src.mk_payment.application.service import PaymentGatewayAdapter

router = APIRouter(prefix="/checkout", tags=["checkout"])

_manager = CheckoutSessionManager()
_payments = PaymentGatewayAdapter()
_engine = OrderFulfillmentEngine()


def _respond(request: Request, data: object, message: str = "success") -> ApiResponse:
    resp = success_response(data, message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/sessions/cart", status_code=201)
async def create_session_from_cart(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await _manager.create_from_cart(db, current_user.id)
    data = CheckoutSessionResponse.from_session(session).model_dump(mode="json")
    return _respond(request, data, "Checkout session created")


@router.post("/sessions/direct", status_code=201)
async def create_session_direct(
    body: CreateDirectSessionRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await _manager.create_from_direct(
        db, current_user.id, body.listing_id, body.quantity, body.variant_id
    )
    data = CheckoutSessionResponse.from_session(session).model_dump(mode="json")
    return _respond(request, data, "Checkout session created")


@router.get("/sessions/active")
async def get_active_session(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await _manager.get_active(db, current_user.id)
    if session is None:
        return _respond(request, None, "No active checkout session")
    return _respond(request, CheckoutSessionResponse.from_session(session).model_dump(mode="json"))


@router.patch("/sessions/{session_id}")
async def update_session(
    session_id: str,
    body: UpdateSessionRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await _manager.update(
        db,
        session_id,
        current_user.id,
        delivery_method=body.delivery_method.value if body.delivery_method else None,
        delivery_address=body.delivery_address,
        payment_method=body.payment_method.value if body.payment_method else None,
        address_id=body.address_id,
    )
    data = CheckoutSessionResponse.from_session(session).model_dump(mode="json")
    return _respond(request, data, "Checkout session updated")


@router.post("/sessions/{session_id}/cancel")
async def cancel_session(
    session_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await _manager.cancel(db, session_id, current_user.id)
    data = CheckoutSessionResponse.from_session(session).model_dump(mode="json")
    return _respond(request, data, "Checkout session cancelled")


@router.post("/sessions/{session_id}/payment-intent")
async def create_payment_intent(
    session_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    created = await _payments.create_intent(db, session_id, current_user.id)
    data = PaymentIntentResponse(
        payment_intent_id=created.payment_intent_id,
        client_secret=created.client_secret,
        amount=created.amount,
        currency=created.currency,
        publishable_key=created.publishable_key,
        status=created.status,
    )
    return _respond(request, data.model_dump())


@router.get("/sessions/{session_id}/payment-status")
async def get_payment_status(
    session_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    status = await _payments.get_status(db, session_id, current_user.id)
    return _respond(request, PaymentStatusResponse(session_id=session_id, status=status).model_dump())


@router.post("/sessions/{session_id}/confirm", status_code=201)
async def confirm_session(
    session_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _engine.confirm(db, session_id, current_user.id)
    data = ConfirmCheckoutResponse(
        session_id=result.session.id,
        orders=[OrderResponse.from_order(o) for o in result.orders],
        failures=result.failures,
        partial=bool(result.failures),
    )
    message = (
        f"{len(result.orders)} order(s) created, {len(result.failures)} seller(s) failed"
        if result.failures
        else f"{len(result.orders)} order(s) created"
    )
    return _respond(request, data.model_dump(mode="json"), message)
