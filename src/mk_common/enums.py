"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class ListingType(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"


class SessionType(str, Enum):
    CART = "cart"
    DIRECT = "direct"


class SessionStatus(str, Enum):
    PENDING = "pending"
    PAYMENT_INTENT_CREATED = "payment_intent_created"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


NON_TERMINAL_SESSION_STATUSES = (
    SessionStatus.PENDING.value,
    SessionStatus.PAYMENT_INTENT_CREATED.value,
    SessionStatus.PROCESSING.value,
)

# A processing session is mid-confirmation; only an abandoned one (idle past
# CHECKOUT_PROCESSING_TIMEOUT_SECONDS) is closed from outside.
CANCELLABLE_SESSION_STATUSES = (
    SessionStatus.PENDING.value,
    SessionStatus.PAYMENT_INTENT_CREATED.value,
)


class DeliveryMethod(str, Enum):
    DELIVERY = "delivery"  # home / personal address
    CAMPUS_DELIVERY = "campus_delivery"
    ROOM_DELIVERY = "room_delivery"
    SELF_PICKUP = "self_pickup"
    MEETUP = "meetup"


class FeeCategory(str, Enum):
    """Delivery fee category; doubles as the delivery address type."""
    PERSONAL = "personal"
    CAMPUS = "campus"
    PICKUP = "pickup"


class PaymentMethod(str, Enum):
    COD = "cod"
    CREDIT_CARD = "credit_card"
    ONLINE_BANKING = "online_banking"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UserRole(str, Enum):
    CONSUMER = "consumer"
    MERCHANT = "merchant"
    ADMIN = "admin"


class NotificationType(str, Enum):
    ORDER_PLACED = "order_placed"
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    NEW_ORDER_RECEIVED = "new_order_received"
    PAYOUT_PROCESSED = "payout_processed"


class SideEffectType(str, Enum):
    NOTIFY = "NOTIFY"
    CREDIT_EARNINGS = "CREDIT_EARNINGS"
    UPDATE_MERCHANT_METRICS = "UPDATE_MERCHANT_METRICS"


class SideEffectStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"
