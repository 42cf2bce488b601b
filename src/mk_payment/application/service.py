"""PaymentGatewayAdapter — payment intents bound to checkout sessions.

Idempotent per session: while the session holds an intent that is not
canceled, create_intent returns that intent instead of making another.
Cash-on-delivery checkouts never reach this component.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mk_checkout.domain.fees import is_online_payment
from src.mk_checkout.domain.models import CheckoutSession
from src.mk_checkout.domain.repository import CheckoutSessionRepositoryProtocol
from src.mk_checkout.infrastructure.persistence import CheckoutSessionRepository
from src.mk_common.datetime_utils import utc_now
from src.mk_common.enums import CANCELLABLE_SESSION_STATUSES, SessionStatus
from src.mk_common.errors import (
    AmountBelowMinimumError,
    AppError,
    GatewayNotConfiguredError,
    InvalidPaymentMethodError,
    PaymentAlreadyCompletedError,
    SessionAlreadyCompletedError,
    SessionExpiredError,
    SessionNotFoundError,
    SessionNotModifiableError,
    VersionConflictError,
)
from src.mk_payment.domain.gateway import IntentStatus, PaymentGatewayProtocol, PaymentIntent
from src.mk_payment.infrastructure.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


@dataclass
class CreatedIntent:
    payment_intent_id: str
    client_secret: str | None
    amount: int
    currency: str
    publishable_key: str
    status: str


class PaymentGatewayAdapter:
    def __init__(
        self,
        gateway: PaymentGatewayProtocol | None = None,
        session_repo: CheckoutSessionRepositoryProtocol | None = None,
    ) -> None:
        self._gateway: PaymentGatewayProtocol = gateway or StripeGateway()
        self._sessions: CheckoutSessionRepositoryProtocol = (
            session_repo or CheckoutSessionRepository()
        )

    async def create_intent(
        self, db: AsyncSession, session_id: str, buyer_id: str
    ) -> CreatedIntent:
        session = await self._load_owned(db, session_id, buyer_id)
        if session.status == SessionStatus.COMPLETED.value:
            raise SessionAlreadyCompletedError(session.id)
        if session.status not in CANCELLABLE_SESSION_STATUSES:
            raise SessionNotModifiableError(session.status)
        if session.is_expired(utc_now()):
            raise SessionExpiredError(session.id)
        if not is_online_payment(session.payment_method):
            raise InvalidPaymentMethodError(session.payment_method)
        if not self._gateway.is_configured:
            raise GatewayNotConfiguredError()

        if session.payment_intent_id:
            existing = await self._gateway.retrieve_intent(session.payment_intent_id)
            if existing.status == IntentStatus.SUCCEEDED:
                raise PaymentAlreadyCompletedError(existing.id)
            if existing.status != IntentStatus.CANCELED:
                logger.info(
                    "Reusing payment intent session=%s intent=%s", session.id, existing.id
                )
                return self._created(existing)

        amount = session.pricing.total_amount
        if amount < settings.STRIPE_MINIMUM_AMOUNT_CENTS:
            raise AmountBelowMinimumError(amount, settings.STRIPE_MINIMUM_AMOUNT_CENTS)

        intent = await self._gateway.create_intent(
            amount=amount,
            currency=settings.STRIPE_CURRENCY,
            metadata={"checkout_session_id": session.id, "buyer_id": buyer_id},
            idempotency_key=f"checkout-{session.id}-v{session.version}",
        )

        session.payment_intent_id = intent.id
        session.status = SessionStatus.PAYMENT_INTENT_CREATED.value
        try:
            if not await self._sessions.save(db, session):
                fresh = await self._sessions.get_by_id(db, session.id)
                if fresh is None or fresh.payment_intent_id != intent.id:
                    raise VersionConflictError(session.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Payment intent created session=%s intent=%s amount=%d",
            session.id, intent.id, amount,
        )
        return self._created(intent)

    async def get_status(self, db: AsyncSession, session_id: str, buyer_id: str) -> str:
        """Processor status of the session's intent, or one of the two sentinels."""
        session = await self._load_owned(db, session_id, buyer_id)
        if not session.payment_intent_id:
            return IntentStatus.NO_PAYMENT_INTENT
        if not self._gateway.is_configured:
            return IntentStatus.GATEWAY_UNAVAILABLE
        try:
            intent = await self._gateway.retrieve_intent(session.payment_intent_id)
        except AppError as e:
            logger.warning(
                "Payment status unavailable session=%s intent=%s: %s",
                session.id, session.payment_intent_id, e.message,
            )
            return IntentStatus.GATEWAY_UNAVAILABLE
        return intent.status

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        return await self._gateway.retrieve_intent(intent_id)

    async def confirm_intent(self, intent_id: str) -> PaymentIntent:
        return await self._gateway.confirm_intent(intent_id)

    async def cancel_intent(self, intent_id: str) -> None:
        """Best effort: failures are logged, never raised."""
        if not self._gateway.is_configured:
            return
        try:
            await self._gateway.cancel_intent(intent_id)
            logger.info("Payment intent cancelled intent=%s", intent_id)
        except Exception:
            logger.warning("Payment intent cancel failed intent=%s", intent_id, exc_info=True)

    async def _load_owned(
        self, db: AsyncSession, session_id: str, buyer_id: str
    ) -> CheckoutSession:
        session = await self._sessions.get_by_id(db, session_id)
        if session is None or session.user_id != buyer_id:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def _created(intent: PaymentIntent) -> CreatedIntent:
        return CreatedIntent(
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
            status=intent.status,
        )
