"""Stripe implementation of PaymentGatewayProtocol.

The stripe SDK is synchronous; every call runs in a worker thread so the
event loop never blocks. Transient Stripe failures (rate limit, connection,
5xx API errors) are retried with exponential backoff; anything else is
surfaced as GatewayError.
"""

import asyncio
import logging
from typing import Any

import stripe
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config.settings import settings
from src.mk_common.errors import GatewayError, GatewayNotConfiguredError
from src.mk_payment.domain.gateway import PaymentIntent

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    stripe.RateLimitError,
    stripe.APIConnectionError,
    stripe.APIError,
)


def _to_intent(obj: Any) -> PaymentIntent:
    return PaymentIntent(
        id=obj["id"],
        status=obj["status"],
        amount=obj["amount"],
        currency=obj["currency"],
        client_secret=obj.get("client_secret"),
        metadata=dict(obj.get("metadata") or {}),
    )


class StripeGateway:
    def __init__(self, secret_key: str | None = None) -> None:
        self._secret_key = settings.STRIPE_SECRET_KEY if secret_key is None else secret_key
        if not self._secret_key:
            logger.warning("STRIPE_SECRET_KEY not configured, online payment disabled")

    @property
    def is_configured(self) -> bool:
        return bool(self._secret_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True,
    )
    def _call(self, fn: Any, **kwargs: Any) -> Any:
        return fn(api_key=self._secret_key, **kwargs)

    async def _run(self, action: str, fn: Any, **kwargs: Any) -> PaymentIntent:
        if not self.is_configured:
            raise GatewayNotConfiguredError()
        try:
            obj = await asyncio.to_thread(self._call, fn, **kwargs)
        except stripe.StripeError as e:
            logger.error("Stripe %s failed: %s", action, e.user_message or str(e))
            raise GatewayError(e.user_message or type(e).__name__) from e
        return _to_intent(obj)

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        kwargs: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if idempotency_key:
            kwargs["idempotency_key"] = idempotency_key
        return await self._run("create_intent", stripe.PaymentIntent.create, **kwargs)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        return await self._run("retrieve_intent", stripe.PaymentIntent.retrieve, id=intent_id)

    async def confirm_intent(self, intent_id: str) -> PaymentIntent:
        return await self._run("confirm_intent", stripe.PaymentIntent.confirm, intent=intent_id)

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        return await self._run("cancel_intent", stripe.PaymentIntent.cancel, intent=intent_id)
