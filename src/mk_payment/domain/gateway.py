"""Payment gateway contract — what the checkout flow needs from a card processor."""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class PaymentIntent:
    id: str
    status: str  # processor status, e.g. requires_payment_method / succeeded / canceled
    amount: int  # minor units
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class IntentStatus:
    """Processor intent statuses the checkout flow branches on."""

    SUCCEEDED = "succeeded"
    PROCESSING = "processing"
    REQUIRES_ACTION = "requires_action"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    CANCELED = "canceled"

    # Sentinels returned by the adapter, never by the processor
    NO_PAYMENT_INTENT = "no_payment_intent"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"


class PaymentGatewayProtocol(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent: ...

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent: ...

    async def confirm_intent(self, intent_id: str) -> PaymentIntent: ...

    async def cancel_intent(self, intent_id: str) -> PaymentIntent: ...
