"""OrderFulfillmentEngine — turns a checkout session into one order per seller group.

Flow of confirm():
  1. Guard the session (owner, live, delivery details, payment method).
  2. Online payment: read the intent status. succeeded -> paid; processing or
     requires_action -> pending; canceled or requires_payment_method -> PAYMENT_FAILED.
     An unreachable gateway leaves the payment pending.
  3. Move the session to processing with a versioned save; a second concurrent
     confirm loses here.
  4. Each seller group is created in its own savepoint and committed on its own.
     A failed group is reported, the others go ahead.
  5. No order at all -> session back to its previous status, ORDER_CREATION_FAILED.
     Otherwise the session completes and only the ordered listings leave the cart.
     If anything after step 3 raises, leaving processing is retried once; a session
     still stuck is settled later by CheckoutSessionManager.settle_processing.

Within one group the guarded stock decrement, the order insert and the outbox
rows share a savepoint: a lost stock race fails exactly that group.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_cart.domain.repository import CartRepositoryProtocol
from src.mk_cart.infrastructure.persistence import CartRepository
from src.mk_catalog.application.stock_service import StockReservationService
from src.mk_catalog.domain.models import RequestedItem
from src.mk_checkout.application.deliverability import find_non_deliverable_sellers
from src.mk_checkout.application.delivery_fee_resolver import DeliveryFeeResolver
from src.mk_checkout.domain.fees import is_online_payment
from src.mk_checkout.domain.models import CheckoutSession, SellerGroup
from src.mk_checkout.domain.repository import CheckoutSessionRepositoryProtocol
from src.mk_checkout.infrastructure.persistence import CheckoutSessionRepository
from src.mk_common.datetime_utils import utc_now
from src.mk_common.enums import (
    CANCELLABLE_SESSION_STATUSES,
    FeeCategory,
    OrderStatus,
    PaymentStatus,
    SessionStatus,
    SessionType,
)
from src.mk_common.errors import (
    AppError,
    BuyerProfileIncompleteError,
    CampusNotDeliverableError,
    DeliveryDetailsRequiredError,
    DeliveryMethodUnavailableError,
    ItemsUnavailableError,
    MultipleSellersError,
    OrderCreationFailedError,
    PaymentFailedError,
    PaymentIntentRequiredError,
    PaymentMethodRequiredError,
    SessionAlreadyCompletedError,
    SessionExpiredError,
    SessionNotFoundError,
    SessionNotModifiableError,
    UserNotFoundError,
    VersionConflictError,
)
from src.mk_common.ids import generate_id, generate_order_number
from src.mk_order.application.side_effects import SideEffectDispatcher
from src.mk_order.domain.effects import effects_for_new_order
from src.mk_order.domain.models import Order, StatusChange
from src.mk_order.domain.repository import OrderRepositoryProtocol, SideEffectRepositoryProtocol
from src.mk_order.infrastructure.persistence import OrderRepository
from src.mk_order.infrastructure.side_effect_persistence import SideEffectRepository
from src.mk_payment.application.service import PaymentGatewayAdapter
from src.mk_payment.domain.gateway import IntentStatus
from src.mk_user.domain.models import UserProfile
from src.mk_user.domain.repository import UserRepositoryProtocol
from src.mk_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)

_PENDING_INTENT_STATUSES = frozenset({IntentStatus.PROCESSING, IntentStatus.REQUIRES_ACTION})
_FAILED_INTENT_STATUSES = frozenset(
    {IntentStatus.CANCELED, IntentStatus.REQUIRES_PAYMENT_METHOD}
)


@dataclass
class FulfillmentResult:
    session: CheckoutSession
    orders: list[Order]
    failures: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class _Payment:
    status: str
    details: dict[str, Any]


class OrderFulfillmentEngine:
    def __init__(
        self,
        session_repo: CheckoutSessionRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        outbox: SideEffectRepositoryProtocol | None = None,
        cart_repo: CartRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        stock: StockReservationService | None = None,
        fee_resolver: DeliveryFeeResolver | None = None,
        payments: PaymentGatewayAdapter | None = None,
        dispatcher: SideEffectDispatcher | None = None,
    ) -> None:
        self._sessions: CheckoutSessionRepositoryProtocol = (
            session_repo or CheckoutSessionRepository()
        )
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._outbox: SideEffectRepositoryProtocol = outbox or SideEffectRepository()
        self._carts: CartRepositoryProtocol = cart_repo or CartRepository()
        self._users: UserRepositoryProtocol = user_repo or UserRepository()
        self._stock = stock or StockReservationService()
        self._fees = fee_resolver or DeliveryFeeResolver(self._users)
        self._payments = payments or PaymentGatewayAdapter(session_repo=self._sessions)
        self._dispatcher = dispatcher or SideEffectDispatcher(
            outbox=self._outbox, user_repo=self._users
        )

    async def confirm(
        self, db: AsyncSession, session_id: str, buyer_id: str
    ) -> FulfillmentResult:
        session = await self._load_confirmable(db, session_id, buyer_id)
        payment = await self._verify_payment(session)

        previous_status = session.status
        session.status = SessionStatus.PROCESSING.value
        try:
            if not await self._sessions.save(db, session):
                raise VersionConflictError(session.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        orders: list[Order] = []
        failures: list[dict[str, Any]] = []
        effect_ids: list[str] = []
        try:
            buyer = await self._users.get_by_id(db, buyer_id)
            for group in session.seller_groups:
                try:
                    order, ids = await self._create_order(db, session, group, buyer, payment)
                    await db.commit()
                except Exception as e:
                    await db.rollback()
                    failures.append(self._failure(group, e))
                    continue
                orders.append(order)
                effect_ids.extend(ids)
                logger.info(
                    "Order created order=%s number=%s session=%s seller=%s total=%d",
                    order.id, order.order_number, session.id, order.seller_id,
                    order.total_amount,
                )
            await self._leave_processing(db, session, previous_status, orders)
        except Exception:
            recovered = await self._retry_leave_processing(db, session, previous_status, orders)
            if not (recovered and orders):
                raise
            logger.warning("Session %s completed on the second write attempt", session.id)

        if not orders:
            logger.warning(
                "Order creation failed for every seller session=%s failures=%d",
                session.id, len(failures),
            )
            raise OrderCreationFailedError(session.id, failures)

        await self._dispatch(db, effect_ids)
        logger.info(
            "Checkout confirmed session=%s orders=%d failed_sellers=%d",
            session.id, len(orders), len(failures),
        )
        return FulfillmentResult(session=session, orders=orders, failures=failures)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _leave_processing(
        self,
        db: AsyncSession,
        session: CheckoutSession,
        previous_status: str,
        orders: list[Order],
    ) -> None:
        """Complete with the created orders, or go back to previous_status if none."""
        version = session.version
        if orders:
            session.status = SessionStatus.COMPLETED.value
            session.created_orders = [o.id for o in orders]
        else:
            session.status = previous_status
        try:
            if not await self._sessions.save(db, session):
                raise VersionConflictError(session.id)
            if orders and session.session_type == SessionType.CART.value:
                await self._clear_cart(db, session.user_id, orders)
            await db.commit()
        except Exception:
            await db.rollback()
            # The rolled-back write may already have bumped the version.
            session.version = version
            raise

    async def _retry_leave_processing(
        self,
        db: AsyncSession,
        session: CheckoutSession,
        previous_status: str,
        orders: list[Order],
    ) -> bool:
        """Second attempt after a failure. False leaves the session in processing."""
        try:
            await db.rollback()
            await self._leave_processing(db, session, previous_status, orders)
        except Exception:
            logger.exception(
                "Session %s left in processing with %d order(s); "
                "the maintenance sweep settles it after the processing timeout",
                session.id, len(orders),
            )
            return False
        return True

    async def _load_confirmable(
        self, db: AsyncSession, session_id: str, buyer_id: str
    ) -> CheckoutSession:
        session = await self._sessions.get_by_id(db, session_id)
        if session is None or session.user_id != buyer_id:
            raise SessionNotFoundError(session_id)
        if session.status == SessionStatus.COMPLETED.value:
            raise SessionAlreadyCompletedError(session.id)
        if session.status == SessionStatus.EXPIRED.value or (
            session.status in CANCELLABLE_SESSION_STATUSES and session.is_expired(utc_now())
        ):
            raise SessionExpiredError(session.id)
        if session.status not in CANCELLABLE_SESSION_STATUSES:
            raise SessionNotModifiableError(session.status)
        if not session.delivery_method or not session.delivery_address:
            raise DeliveryDetailsRequiredError(session.id)
        if not session.payment_method:
            raise PaymentMethodRequiredError(session.id)
        return session

    async def _verify_payment(self, session: CheckoutSession) -> _Payment:
        if not is_online_payment(session.payment_method):
            return _Payment(PaymentStatus.PENDING.value, {})
        if not session.payment_intent_id:
            raise PaymentIntentRequiredError(session.id)

        intent_id = session.payment_intent_id
        details: dict[str, Any] = {"payment_intent_id": intent_id}
        try:
            intent = await self._payments.retrieve_intent(intent_id)
        except AppError as e:
            logger.warning(
                "Payment verification unavailable session=%s intent=%s: %s, leaving pending",
                session.id, intent_id, e.message,
            )
            return _Payment(PaymentStatus.PENDING.value, details)

        if intent.status == IntentStatus.SUCCEEDED:
            details.update(paid_at=utc_now().isoformat(), transaction_id=intent.id)
            return _Payment(PaymentStatus.PAID.value, details)
        if intent.status in _FAILED_INTENT_STATUSES:
            raise PaymentFailedError(intent.id, intent.status)
        if intent.status not in _PENDING_INTENT_STATUSES:
            logger.info("Intent %s in status %s, payment left pending", intent.id, intent.status)
        return _Payment(PaymentStatus.PENDING.value, details)

    async def _create_order(
        self,
        db: AsyncSession,
        session: CheckoutSession,
        group: SellerGroup,
        buyer: UserProfile | None,
        payment: _Payment,
    ) -> tuple[Order, list[str]]:
        if buyer is None:
            raise UserNotFoundError(session.user_id, "Buyer")
        if not buyer.phone:
            raise BuyerProfileIncompleteError("phone")
        if not buyer.username:
            raise BuyerProfileIncompleteError("username")

        validation = await self._stock.validate_items(
            db,
            [
                RequestedItem(listing_id=i.listing_id, quantity=i.quantity, variant_id=i.variant_id)
                for i in group.items
            ],
        )
        if not validation.valid:
            raise ItemsUnavailableError(validation.errors)
        items = validation.validated_items

        seller_ids = sorted({i.seller_id for i in items})
        if len(seller_ids) > 1:
            raise MultipleSellersError(seller_ids)
        seller_id = seller_ids[0]
        seller = await self._users.get_by_id(db, seller_id)
        if seller is None:
            raise UserNotFoundError(seller_id, "Seller")

        address = session.delivery_address or {}
        if address.get("type") == FeeCategory.CAMPUS.value:
            campus = (address.get("campus_address") or {}).get("campus")
            if campus:
                invalid = await find_non_deliverable_sellers(
                    db, self._users, [(seller_id, group.seller_name)], campus
                )
                if invalid:
                    raise CampusNotDeliverableError(campus, invalid)

        # Priced from the live listing, not the session snapshot.
        items_total = sum(i.line_total for i in items)
        shipping_fee = await self._fees.resolve(
            db, session.delivery_method, seller_id, items_total
        )
        if shipping_fee is None:
            raise DeliveryMethodUnavailableError(session.delivery_method, [seller_id])

        now = utc_now()
        order = Order(
            id=generate_id(),
            order_number=generate_order_number(now),
            buyer_id=buyer.id,
            seller_id=seller_id,
            buyer={
                "id": buyer.id,
                "username": buyer.username,
                "email": buyer.email,
                "phone": buyer.phone,
            },
            seller={
                "id": seller.id,
                "name": seller.display_name or group.seller_name,
                "email": seller.email,
                "phone": seller.phone,
            },
            items=items,
            items_total=items_total,
            shipping_fee=shipping_fee,
            total_amount=items_total + shipping_fee,
            payment_method=session.payment_method,
            payment_status=payment.status,
            payment_details=dict(payment.details),
            delivery_method=session.delivery_method,
            delivery_address=dict(address),
            status=OrderStatus.PENDING.value,
            status_history=[StatusChange(OrderStatus.PENDING.value, "Order placed", buyer.id, now)],
            checkout_session_id=session.id,
        )
        effects = effects_for_new_order(order)

        async with db.begin_nested():
            await self._stock.deduct(db, items)
            await self._orders.insert(db, order)
            await self._outbox.enqueue(db, effects)
        return order, [e.id for e in effects]

    async def _clear_cart(self, db: AsyncSession, buyer_id: str, orders: list[Order]) -> None:
        listing_ids = list(dict.fromkeys(i.listing_id for o in orders for i in o.items))
        try:
            async with db.begin_nested():
                removed = await self._carts.remove_items(db, buyer_id, listing_ids)
            logger.info("Removed %d cart line(s) for buyer=%s", removed, buyer_id)
        except Exception:
            logger.exception("Cart cleanup failed buyer=%s listings=%s", buyer_id, listing_ids)

    async def _dispatch(self, db: AsyncSession, effect_ids: list[str]) -> None:
        if not effect_ids:
            return
        try:
            await self._dispatcher.dispatch(db, effect_ids)
        except Exception:
            logger.exception("Immediate side-effect dispatch failed, left for retry")

    @staticmethod
    def _failure(group: SellerGroup, error: Exception) -> dict[str, Any]:
        if isinstance(error, AppError):
            logger.warning(
                "Order creation failed seller=%s code=%s: %s",
                group.seller_id, error.code, error.message,
            )
            return {
                "seller_id": group.seller_id,
                "seller_name": group.seller_name,
                "code": error.code,
                "message": error.message,
                "details": error.details,
            }
        logger.exception("Order creation failed seller=%s", group.seller_id)
        return {
            "seller_id": group.seller_id,
            "seller_name": group.seller_name,
            "code": "SERVICE_ERROR",
            "message": "Unexpected error while creating the order",
            "details": {},
        }
