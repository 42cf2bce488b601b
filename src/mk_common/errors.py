"""Unified error taxonomy and custom exceptions.

Every error carries:
  - kind: coarse category used for HTTP mapping
      VALIDATION=400, NOT_FOUND=404, FORBIDDEN=403, CONFLICT=409,
      EXTERNAL_DEPENDENCY=503, SERVICE_ERROR=500
  - code: machine-readable reason surfaced verbatim to the caller
  - details: optional structured payload (offending ids, limits, failures)
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    EXTERNAL_DEPENDENCY = "EXTERNAL_DEPENDENCY"
    SERVICE_ERROR = "SERVICE_ERROR"


_HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.EXTERNAL_DEPENDENCY: 503,
    ErrorKind.SERVICE_ERROR: 500,
}


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: str,
        message: str,
        kind: ErrorKind = ErrorKind.SERVICE_ERROR,
        details: dict[str, Any] | None = None,
        http_status: int | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.kind = kind
        self.details = details or {}
        self.http_status = http_status or _HTTP_STATUS[kind]
        super().__init__(message)


class ValidationError(AppError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, ErrorKind.VALIDATION, details)


class NotFoundError(AppError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, ErrorKind.NOT_FOUND, details)


class ForbiddenError(AppError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, ErrorKind.FORBIDDEN, details)


class ConflictError(AppError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, ErrorKind.CONFLICT, details)


class ExternalDependencyError(AppError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, ErrorKind.EXTERNAL_DEPENDENCY, details)


# --- Catalog / stock ---

class ItemsUnavailableError(ValidationError):
    def __init__(self, errors: list[str], code: str = "ITEMS_UNAVAILABLE") -> None:
        super().__init__(code, "Some items are no longer available", {"errors": errors})


class InsufficientStockError(ValidationError):
    def __init__(
        self,
        listing_id: str,
        requested: int,
        available: int | None,
        variant_id: str | None = None,
    ) -> None:
        left = f", only {available} left" if available is not None else ""
        super().__init__(
            "INSUFFICIENT_STOCK",
            f"Insufficient stock for listing {listing_id}{left}",
            {
                "listing_id": listing_id,
                "variant_id": variant_id,
                "requested": requested,
                "available": available,
            },
        )


class MultipleSellersError(ValidationError):
    def __init__(self, seller_ids: list[str]) -> None:
        super().__init__(
            "MULTIPLE_SELLERS",
            "All items must belong to the same seller",
            {"seller_ids": seller_ids},
        )


# --- Users / cart ---

class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str, role: str = "User") -> None:
        super().__init__(f"{role.upper()}_NOT_FOUND", f"{role} not found: {user_id}", {"user_id": user_id})


class BuyerProfileIncompleteError(ValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(
            f"BUYER_{field.upper()}_REQUIRED",
            f"Buyer {field} is required. Please update your profile.",
            {"field": field},
        )


class CartEmptyError(ValidationError):
    def __init__(self) -> None:
        super().__init__("CART_EMPTY", "Your cart is empty")


# --- Checkout session ---

class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        super().__init__("SESSION_NOT_FOUND", f"Checkout session not found: {session_id}")


class SessionExpiredError(ValidationError):
    def __init__(self, session_id: str) -> None:
        super().__init__("SESSION_EXPIRED", "Checkout session has expired", {"session_id": session_id})


class SessionNotModifiableError(ValidationError):
    def __init__(self, status: str) -> None:
        super().__init__(
            "SESSION_NOT_MODIFIABLE",
            f"Checkout session in status {status} cannot be modified",
            {"status": status},
        )


class SessionAlreadyCompletedError(ValidationError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            "SESSION_ALREADY_COMPLETED",
            "Checkout session is already completed",
            {"session_id": session_id},
        )


class InvalidDeliveryAddressError(ValidationError):
    def __init__(self, delivery_method: str) -> None:
        super().__init__(
            "INVALID_DELIVERY_ADDRESS",
            f"Delivery address does not match delivery method {delivery_method}",
            {"delivery_method": delivery_method},
        )


class DeliveryMethodUnavailableError(ValidationError):
    def __init__(self, delivery_method: str, seller_ids: list[str]) -> None:
        super().__init__(
            "DELIVERY_METHOD_UNAVAILABLE",
            f"Delivery method {delivery_method} is not offered by every seller",
            {"delivery_method": delivery_method, "seller_ids": seller_ids},
        )


class CampusNotDeliverableError(ValidationError):
    def __init__(self, campus: str, invalid_sellers: list[dict[str, Any]]) -> None:
        names = ", ".join(str(s.get("seller_name") or s.get("seller_id")) for s in invalid_sellers)
        super().__init__(
            "CAMPUS_NOT_DELIVERABLE",
            f"The following seller(s) do not deliver to this campus: {names}",
            {"campus": campus, "invalid_sellers": invalid_sellers},
        )


class PaymentMethodNotAllowedError(ValidationError):
    def __init__(self, payment_method: str, reason: str, total_amount: int) -> None:
        super().__init__(
            "PAYMENT_METHOD_NOT_ALLOWED",
            reason,
            {"payment_method": payment_method, "total_amount": total_amount},
        )


class DeliveryDetailsRequiredError(ValidationError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            "DELIVERY_DETAILS_REQUIRED",
            "Delivery method and address are required",
            {"session_id": session_id},
        )


class PaymentMethodRequiredError(ValidationError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            "PAYMENT_METHOD_REQUIRED", "Payment method is required", {"session_id": session_id}
        )


class VersionConflictError(ConflictError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            "VERSION_CONFLICT",
            "Checkout session was modified concurrently, please retry",
            {"session_id": session_id},
        )


class ActiveSessionConflictError(ConflictError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            "ACTIVE_SESSION_EXISTS",
            "Another checkout session was started concurrently",
            {"user_id": user_id},
        )


# --- Payment ---

class GatewayNotConfiguredError(ExternalDependencyError):
    def __init__(self) -> None:
        super().__init__(
            "GATEWAY_NOT_CONFIGURED",
            "Online payment is currently unavailable. Please use Cash on Delivery.",
        )


class GatewayError(ExternalDependencyError):
    def __init__(self, detail: str) -> None:
        super().__init__("GATEWAY_ERROR", f"Payment gateway error: {detail}")


class AmountBelowMinimumError(ValidationError):
    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(
            "AMOUNT_BELOW_MINIMUM",
            f"Amount below minimum. Minimum payment amount is {minimum} cents",
            {"amount": amount, "minimum": minimum},
        )


class InvalidPaymentMethodError(ValidationError):
    def __init__(self, payment_method: str | None) -> None:
        super().__init__(
            "INVALID_PAYMENT_METHOD",
            "Cannot create a payment intent for this payment method",
            {"payment_method": payment_method},
        )


class PaymentAlreadyCompletedError(ValidationError):
    def __init__(self, intent_id: str) -> None:
        super().__init__(
            "PAYMENT_ALREADY_COMPLETED",
            "Payment already completed for this session",
            {"intent_id": intent_id},
        )


class PaymentIntentRequiredError(ValidationError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            "PAYMENT_INTENT_REQUIRED",
            "Online payment has not been started for this session",
            {"session_id": session_id},
        )


class PaymentFailedError(ValidationError):
    def __init__(self, intent_id: str, status: str) -> None:
        super().__init__(
            "PAYMENT_FAILED",
            f"Payment was not successful (status: {status})",
            {"intent_id": intent_id, "status": status},
        )


# --- Orders ---

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__("ORDER_NOT_FOUND", f"Order not found: {order_id}")


class OrderCreationFailedError(ValidationError):
    def __init__(self, session_id: str, failures: list[dict[str, Any]]) -> None:
        super().__init__(
            "ORDER_CREATION_FAILED",
            "Failed to create orders. Please check that all items are still available "
            "and your delivery address is complete.",
            {"session_id": session_id, "failed_count": len(failures), "failures": failures},
        )


class InvalidStatusTransitionError(ValidationError):
    def __init__(self, current: str, attempted: str) -> None:
        super().__init__(
            "INVALID_ORDER_STATUS",
            f"Invalid status transition from {current} to {attempted}",
            {"current_status": current, "attempted_status": attempted},
        )


class OrderForbiddenError(ForbiddenError):
    def __init__(self, code: str, message: str, order_id: str) -> None:
        super().__init__(code, message, {"order_id": order_id})


class OrderStatusConflictError(ConflictError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            "ORDER_STATUS_CONFLICT",
            "Order status was changed concurrently, please reload",
            {"order_id": order_id},
        )


# --- System ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(
            "INVALID_TOKEN", "Invalid or expired token", ErrorKind.FORBIDDEN, http_status=401
        )


class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__("RATE_LIMITED", "Rate limit exceeded", ErrorKind.VALIDATION, http_status=429)
