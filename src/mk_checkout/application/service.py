"""CheckoutSessionManager — lifecycle of a buyer's checkout session.

    pending -> payment_intent_created -> processing -> completed
    pending | payment_intent_created -> cancelled | expired
    processing (abandoned) -> completed | cancelled | expired

Only a pending session accepts delivery/payment changes. Seller groups and
pricing are recomputed from the item snapshots on every method change.

Writes are optimistic: save() compares `version`. A losing update re-reads
the session and reapplies its own fields exactly once before surfacing
VERSION_CONFLICT. Expiry is lazy (checked when the session is read), with a
periodic sweep in the maintenance task as a backstop.

A processing session belongs to a running confirm. Once it has been idle for
CHECKOUT_PROCESSING_TIMEOUT_SECONDS it is treated as abandoned and settled:
completed if orders were written for it, otherwise closed.
"""

import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_cart.domain.repository import CartRepositoryProtocol
from src.mk_cart.infrastructure.persistence import CartRepository
from src.mk_catalog.application.stock_service import StockReservationService
from src.mk_catalog.domain.models import ItemSnapshot, RequestedItem
from src.mk_checkout.application.deliverability import find_non_deliverable_sellers
from src.mk_checkout.application.delivery_fee_resolver import DeliveryFeeResolver
from src.mk_checkout.domain.address import DeliveryAddress, validate_delivery_address
from src.mk_checkout.domain.fees import (
    DEFAULT_FEE_SCHEDULE,
    FeeSchedule,
    compute_fees,
    is_online_payment,
)
from src.mk_checkout.domain.models import CheckoutSession, PricingSummary, SellerGroup
from src.mk_checkout.domain.repository import CheckoutSessionRepositoryProtocol
from src.mk_checkout.infrastructure.persistence import CheckoutSessionRepository
from src.mk_common.datetime_utils import expires_after, utc_now
from src.mk_common.enums import (
    CANCELLABLE_SESSION_STATUSES,
    DeliveryMethod,
    FeeCategory,
    PaymentMethod,
    SessionStatus,
    SessionType,
)
from src.mk_common.errors import (
    CampusNotDeliverableError,
    CartEmptyError,
    DeliveryMethodUnavailableError,
    InvalidDeliveryAddressError,
    ItemsUnavailableError,
    PaymentMethodNotAllowedError,
    SessionAlreadyCompletedError,
    SessionExpiredError,
    SessionNotFoundError,
    SessionNotModifiableError,
    VersionConflictError,
)
from src.mk_common.ids import generate_id
from src.mk_common.money import cents_to_display
from src.mk_payment.application.service import PaymentGatewayAdapter
from src.mk_user.domain.repository import UserRepositoryProtocol
from src.mk_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)

_INITIAL_DELIVERY_METHOD = DeliveryMethod.DELIVERY.value
_INITIAL_PAYMENT_METHOD = PaymentMethod.COD.value


class CheckoutSessionManager:
    def __init__(
        self,
        session_repo: CheckoutSessionRepositoryProtocol | None = None,
        cart_repo: CartRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        stock: StockReservationService | None = None,
        fee_resolver: DeliveryFeeResolver | None = None,
        payments: PaymentGatewayAdapter | None = None,
        fee_schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    ) -> None:
        self._sessions: CheckoutSessionRepositoryProtocol = (
            session_repo or CheckoutSessionRepository()
        )
        self._carts: CartRepositoryProtocol = cart_repo or CartRepository()
        self._users: UserRepositoryProtocol = user_repo or UserRepository()
        self._stock = stock or StockReservationService()
        self._fees = fee_resolver or DeliveryFeeResolver(self._users)
        self._payments = payments or PaymentGatewayAdapter(session_repo=self._sessions)
        self._schedule = fee_schedule

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_from_cart(self, db: AsyncSession, buyer_id: str) -> CheckoutSession:
        cart = await self._carts.find_by_buyer(db, buyer_id)
        if cart is None or cart.is_empty:
            raise CartEmptyError()
        requested = [
            RequestedItem(listing_id=i.listing_id, quantity=i.quantity, variant_id=i.variant_id)
            for i in cart.items
        ]
        return await self._create(db, buyer_id, SessionType.CART.value, requested)

    async def create_from_direct(
        self,
        db: AsyncSession,
        buyer_id: str,
        listing_id: str,
        quantity: int,
        variant_id: str | None = None,
    ) -> CheckoutSession:
        requested = [RequestedItem(listing_id=listing_id, quantity=quantity, variant_id=variant_id)]
        return await self._create(db, buyer_id, SessionType.DIRECT.value, requested)

    async def _create(
        self,
        db: AsyncSession,
        buyer_id: str,
        session_type: str,
        requested: list[RequestedItem],
    ) -> CheckoutSession:
        validation = await self._stock.validate_items(db, requested)
        if not validation.valid:
            raise ItemsUnavailableError(validation.errors)

        items = validation.validated_items
        groups = await self.build_seller_groups(
            db, items, _INITIAL_DELIVERY_METHOD, _INITIAL_PAYMENT_METHOD, strict=False
        )
        session = CheckoutSession(
            id=generate_id(),
            user_id=buyer_id,
            session_type=session_type,
            items=items,
            seller_groups=groups,
            pricing=PricingSummary.from_groups(groups),
            expires_at=expires_after(settings.CHECKOUT_SESSION_TTL_SECONDS),
            stock_reservations=self._stock.reserve(items),
        )

        active = await self._sessions.get_active_for_user(db, buyer_id)
        if active is not None and self._is_stuck_processing(active):
            await self.settle_processing(db, active)

        # Cancel-then-insert in one transaction; the partial unique index
        # rejects a concurrent second insert with ACTIVE_SESSION_EXISTS.
        try:
            replaced = await self._sessions.cancel_active_for_user(db, buyer_id)
            await self._sessions.insert(db, session)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        for old in replaced:
            await self._after_termination(old)

        logger.info(
            "Checkout session created session=%s buyer=%s type=%s sellers=%d total=%d",
            session.id, buyer_id, session_type, len(groups), session.pricing.total_amount,
        )
        return session

    async def build_seller_groups(
        self,
        db: AsyncSession,
        items: list[ItemSnapshot],
        delivery_method: str,
        payment_method: str,
        strict: bool = True,
    ) -> list[SellerGroup]:
        """Partition items by seller and price each partition.

        strict: a seller that disabled the delivery category fails the whole
        call with DELIVERY_METHOD_UNAVAILABLE. Otherwise the group is kept with
        a zero fee and delivery_available=False.
        """
        by_seller: OrderedDict[str, list[ItemSnapshot]] = OrderedDict()
        for item in items:
            by_seller.setdefault(item.seller_id, []).append(item)

        groups: list[SellerGroup] = []
        unavailable: list[str] = []
        for seller_id, seller_items in by_seller.items():
            subtotal = sum(i.line_total for i in seller_items)
            fee = await self._fees.resolve(db, delivery_method, seller_id, subtotal)
            available = fee is not None
            if not available:
                unavailable.append(seller_id)
            breakdown = compute_fees(subtotal, fee or 0, payment_method, self._schedule)
            groups.append(
                SellerGroup(
                    seller_id=seller_id,
                    seller_name=seller_items[0].seller_name,
                    items=seller_items,
                    subtotal=subtotal,
                    delivery_fee=breakdown.shipping_fee,
                    platform_fee=breakdown.platform_fee,
                    platform_fee_percentage=str(breakdown.platform_fee_percentage),
                    processor_fee=breakdown.processor_fee,
                    total_amount=breakdown.total_amount,
                    seller_receives=breakdown.seller_receives,
                    allow_online_payment=breakdown.allow_online_payment,
                    tier=breakdown.tier,
                    delivery_available=available,
                )
            )

        if strict and unavailable:
            raise DeliveryMethodUnavailableError(delivery_method, unavailable)
        return groups

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_active(self, db: AsyncSession, buyer_id: str) -> CheckoutSession | None:
        session = await self._sessions.get_active_for_user(db, buyer_id)
        if session is None:
            return None
        if session.status in CANCELLABLE_SESSION_STATUSES and session.is_expired(utc_now()):
            await self._expire(db, session)
            return None
        return session

    async def get(self, db: AsyncSession, session_id: str, buyer_id: str) -> CheckoutSession:
        session = await self._load_owned(db, session_id, buyer_id)
        if session.status in CANCELLABLE_SESSION_STATUSES and session.is_expired(utc_now()):
            await self._expire(db, session)
        return session

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def update(
        self,
        db: AsyncSession,
        session_id: str,
        buyer_id: str,
        delivery_method: str | None = None,
        delivery_address: dict[str, Any] | None = None,
        payment_method: str | None = None,
        address_id: str | None = None,
    ) -> CheckoutSession:
        session = await self._load_owned(db, session_id, buyer_id)
        await self._ensure_modifiable(db, session)

        changes = {
            "delivery_method": delivery_method,
            "delivery_address": delivery_address,
            "payment_method": payment_method,
            "address_id": address_id,
        }
        try:
            await self._apply_update(db, session, **changes)
            if not await self._sessions.save(db, session):
                logger.warning(
                    "Version conflict on session=%s, retrying with fresh copy", session.id
                )
                fresh = await self._sessions.get_by_id(db, session.id)
                if fresh is None or fresh.status != SessionStatus.PENDING.value:
                    raise VersionConflictError(session.id)
                await self._apply_update(db, fresh, **changes)
                if not await self._sessions.save(db, fresh):
                    raise VersionConflictError(session.id)
                session = fresh
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Checkout session updated session=%s delivery=%s payment=%s total=%d",
            session.id, session.delivery_method, session.payment_method,
            session.pricing.total_amount,
        )
        return session

    async def _apply_update(
        self,
        db: AsyncSession,
        session: CheckoutSession,
        delivery_method: str | None,
        delivery_address: dict[str, Any] | None,
        payment_method: str | None,
        address_id: str | None,
    ) -> None:
        method = delivery_method or session.delivery_method

        address: DeliveryAddress | None = None
        if delivery_address is not None:
            if method is None:
                raise InvalidDeliveryAddressError("unset")
            address = validate_delivery_address(method, delivery_address)
        elif delivery_method is not None and session.delivery_address is not None:
            try:
                address = validate_delivery_address(method, session.delivery_address)
            except InvalidDeliveryAddressError:
                # Previous address does not fit the new method; buyer must supply one.
                session.delivery_address = None

        if address is not None and address.type == FeeCategory.CAMPUS and address.campus:
            invalid = await find_non_deliverable_sellers(
                db,
                self._users,
                [(g.seller_id, g.seller_name) for g in session.seller_groups],
                address.campus,
            )
            if invalid:
                raise CampusNotDeliverableError(address.campus, invalid)

        new_payment = payment_method or session.payment_method
        if delivery_method is not None or payment_method is not None:
            groups = await self.build_seller_groups(
                db,
                session.items,
                method or _INITIAL_DELIVERY_METHOD,
                new_payment or _INITIAL_PAYMENT_METHOD,
                strict=method is not None,
            )
            pricing = PricingSummary.from_groups(groups)
            if new_payment is not None and is_online_payment(new_payment):
                self._ensure_online_allowed(new_payment, pricing.total_amount)
            session.seller_groups = groups
            session.pricing = pricing

        if delivery_method is not None:
            session.delivery_method = delivery_method
        if address is not None:
            snapshot = address.model_dump(mode="json", exclude_none=True)
            snapshot["address_id"] = address_id or address.address_id
            session.delivery_address = snapshot
        if payment_method is not None:
            session.payment_method = payment_method

    def _ensure_online_allowed(self, payment_method: str, total_amount: int) -> None:
        if not compute_fees(total_amount, 0, payment_method, self._schedule).allow_online_payment:
            minimum = cents_to_display(self._schedule.online_minimum)
            raise PaymentMethodNotAllowedError(
                payment_method,
                f"Online payment requires minimum amount of {minimum}",
                total_amount,
            )

    async def cancel(self, db: AsyncSession, session_id: str, buyer_id: str) -> CheckoutSession:
        session = await self._load_owned(db, session_id, buyer_id)
        if session.status == SessionStatus.COMPLETED.value:
            raise SessionAlreadyCompletedError(session.id)
        if session.is_terminal:
            return session
        if session.status == SessionStatus.PROCESSING.value:
            if not self._is_stuck_processing(session):
                raise SessionNotModifiableError(session.status)
            if not await self.settle_processing(db, session, SessionStatus.CANCELLED.value):
                raise VersionConflictError(session.id)
            if session.status == SessionStatus.COMPLETED.value:
                raise SessionAlreadyCompletedError(session.id)
            return session

        session.status = SessionStatus.CANCELLED.value
        try:
            if not await self._sessions.save(db, session):
                raise VersionConflictError(session.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._after_termination(session)
        logger.info("Checkout session cancelled session=%s buyer=%s", session.id, buyer_id)
        return session

    async def expire_stale(self, db: AsyncSession, limit: int = 100) -> int:
        """Sweep sessions past their expiry that nobody has read since, and
        settle abandoned processing sessions. Returns how many were closed."""
        expired = 0
        for session in await self._sessions.list_expired(db, limit):
            if await self._expire(db, session):
                expired += 1
        cutoff = utc_now() - timedelta(seconds=settings.CHECKOUT_PROCESSING_TIMEOUT_SECONDS)
        for session in await self._sessions.list_stuck_processing(db, cutoff, limit):
            if await self.settle_processing(db, session):
                expired += 1
        return expired

    async def settle_processing(
        self,
        db: AsyncSession,
        session: CheckoutSession,
        abandoned_status: str = SessionStatus.EXPIRED.value,
    ) -> bool:
        """Close a processing session whose confirm never finished.

        Orders already committed for the session win: it completes with them
        and their listings leave the cart. With no orders it ends as
        `abandoned_status`. Returns False when another writer got there first.
        """
        refs = await self._sessions.list_orders_for_session(db, session.id)
        if refs:
            session.status = SessionStatus.COMPLETED.value
            session.created_orders = [order_id for order_id, _ in refs]
        else:
            session.status = abandoned_status
        try:
            saved = await self._sessions.save(db, session)
            if saved and refs and session.session_type == SessionType.CART.value:
                await self._prune_cart(db, session, {seller_id for _, seller_id in refs})
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if not saved:
            logger.info("Session %s changed before it could be settled", session.id)
            return False
        if not refs:
            await self._after_termination(session)
        logger.warning(
            "Settled abandoned processing session=%s status=%s orders=%d",
            session.id, session.status, len(refs),
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_owned(
        self, db: AsyncSession, session_id: str, buyer_id: str
    ) -> CheckoutSession:
        session = await self._sessions.get_by_id(db, session_id)
        if session is None or session.user_id != buyer_id:
            raise SessionNotFoundError(session_id)
        return session

    async def _ensure_modifiable(self, db: AsyncSession, session: CheckoutSession) -> None:
        if session.status == SessionStatus.COMPLETED.value:
            raise SessionAlreadyCompletedError(session.id)
        if session.status in CANCELLABLE_SESSION_STATUSES and session.is_expired(utc_now()):
            await self._expire(db, session)
            raise SessionExpiredError(session.id)
        if session.status != SessionStatus.PENDING.value:
            raise SessionNotModifiableError(session.status)

    async def _expire(self, db: AsyncSession, session: CheckoutSession) -> bool:
        session.status = SessionStatus.EXPIRED.value
        try:
            saved = await self._sessions.save(db, session)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not saved:
            logger.info("Session %s changed before it could be expired", session.id)
            return False
        await self._after_termination(session)
        logger.info("Checkout session expired session=%s", session.id)
        return True

    @staticmethod
    def _is_stuck_processing(session: CheckoutSession) -> bool:
        if session.status != SessionStatus.PROCESSING.value or session.updated_at is None:
            return False
        idle = utc_now() - session.updated_at
        return idle >= timedelta(seconds=settings.CHECKOUT_PROCESSING_TIMEOUT_SECONDS)

    async def _prune_cart(
        self, db: AsyncSession, session: CheckoutSession, ordered_sellers: set[str]
    ) -> None:
        listing_ids = list(dict.fromkeys(
            i.listing_id
            for g in session.seller_groups if g.seller_id in ordered_sellers
            for i in g.items
        ))
        try:
            async with db.begin_nested():
                await self._carts.remove_items(db, session.user_id, listing_ids)
        except Exception:
            logger.exception(
                "Cart cleanup failed buyer=%s listings=%s", session.user_id, listing_ids
            )

    async def _after_termination(self, session: CheckoutSession) -> None:
        self._stock.release(session.stock_reservations, session.id)
        if session.payment_intent_id:
            await self._payments.cancel_intent(session.payment_intent_id)

