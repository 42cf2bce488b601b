"""In-memory stand-ins for the repositories, gateway and database session.

Every fake keeps its rows in `self.data`; FakeDB snapshots those dicts on
commit and savepoint entry and restores them on rollback, so transactional
behaviour (a failed seller group leaving no trace) is observable in tests.
Reads hand out deep copies, like rows freshly mapped from SQL.
"""

import copy
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator

from src.mk_cart.domain.models import Cart, CartItem
from src.mk_catalog.domain.models import Listing, ListingVariant
from src.mk_checkout.domain.models import CheckoutSession
from src.mk_common.datetime_utils import utc_now
from src.mk_common.enums import (
    CANCELLABLE_SESSION_STATUSES,
    NON_TERMINAL_SESSION_STATUSES,
    SessionStatus,
)
from src.mk_common.errors import ActiveSessionConflictError, GatewayError
from src.mk_order.domain.models import Order, SideEffect
from src.mk_payment.domain.gateway import IntentStatus, PaymentIntent
from src.mk_user.domain.models import (
    DeliveryFeeConfig,
    DeliveryFeeSettings,
    MerchantDetails,
    UserProfile,
)


class FakeDB:
    def __init__(self, *stores: Any) -> None:
        self._stores = stores
        self._committed = self._snapshot()
        self.commits = 0
        self.rollbacks = 0

    def _snapshot(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(s.data) for s in self._stores]

    def _restore(self, snapshot: list[dict[str, Any]]) -> None:
        for store, data in zip(self._stores, snapshot):
            store.data.clear()
            store.data.update(copy.deepcopy(data))

    async def commit(self) -> None:
        self.commits += 1
        self._committed = self._snapshot()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self._restore(self._committed)

    @asynccontextmanager
    async def begin_nested(self) -> AsyncIterator[None]:
        savepoint = self._snapshot()
        try:
            yield
        except Exception:
            self._restore(savepoint)
            raise


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_listing(
    listing_id: str,
    seller_id: str,
    price: int,
    stock: int = 10,
    type: str = "product",
    name: str | None = None,
    seller_name: str | None = None,
    is_available: bool = True,
    variants: list[ListingVariant] | None = None,
) -> Listing:
    return Listing(
        id=listing_id,
        seller_id=seller_id,
        seller_name=seller_name or f"Shop {seller_id}",
        name=name or f"Listing {listing_id}",
        price=price,
        stock=stock,
        type=type,
        is_available=is_available,
        variants={v.id: v for v in variants or []},
    )


def make_buyer(user_id: str = "buyer-1", phone: str | None = "0123456789") -> UserProfile:
    return UserProfile(
        id=user_id, username=f"user_{user_id}", email=f"{user_id}@uni.edu", phone=phone,
        roles=["consumer"],
    )


def make_merchant(
    user_id: str,
    fees: dict[str, DeliveryFeeConfig] | None = None,
    free_delivery_for_all: bool = False,
    campuses: list[str] | None = None,
) -> UserProfile:
    return UserProfile(
        id=user_id,
        username=f"seller_{user_id}",
        email=f"{user_id}@uni.edu",
        phone="0198765432",
        roles=["consumer", "merchant"],
        merchant=MerchantDetails(
            shop_name=f"Shop {user_id}",
            delivery_fees=DeliveryFeeSettings(free_delivery_for_all, dict(fees or {})),
            deliverable_campuses=list(campuses or []),
        ),
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class FakeListingRepo:
    def __init__(self, *listings: Listing) -> None:
        self.data: dict[str, Any] = {"listings": {lst.id: lst for lst in listings}}

    def stock_of(self, listing_id: str, variant_id: str | None = None) -> int:
        listing = self.data["listings"][listing_id]
        return listing.variants[variant_id].stock if variant_id else listing.stock

    async def find_by_id(self, db: Any, listing_id: str) -> Listing | None:
        return copy.deepcopy(self.data["listings"].get(listing_id))

    async def find_many(self, db: Any, listing_ids: list[str]) -> dict[str, Listing]:
        return {
            i: copy.deepcopy(self.data["listings"][i])
            for i in listing_ids
            if i in self.data["listings"]
        }

    async def increment_stock(self, db: Any, listing_id: str, delta: int) -> int | None:
        listing = self.data["listings"].get(listing_id)
        if listing is None or listing.stock + delta < 0:
            return None
        listing.stock += delta
        return listing.stock

    async def increment_variant_stock(
        self, db: Any, listing_id: str, variant_id: str, delta: int
    ) -> int | None:
        listing = self.data["listings"].get(listing_id)
        variant = listing.variants.get(variant_id) if listing else None
        if variant is None or variant.stock + delta < 0:
            return None
        variant.stock += delta
        return variant.stock


class FakeCartRepo:
    def __init__(self, carts: dict[str, list[CartItem]] | None = None) -> None:
        self.data: dict[str, Any] = {"carts": dict(carts or {})}

    async def find_by_buyer(self, db: Any, buyer_id: str) -> Cart | None:
        items = self.data["carts"].get(buyer_id)
        if not items:
            return None
        return Cart(buyer_id=buyer_id, items=copy.deepcopy(items))

    async def remove_items(self, db: Any, buyer_id: str, listing_ids: list[str]) -> int:
        items = self.data["carts"].get(buyer_id, [])
        kept = [i for i in items if i.listing_id not in listing_ids]
        self.data["carts"][buyer_id] = kept
        return len(items) - len(kept)


class FakeUserRepo:
    def __init__(self, *users: UserProfile) -> None:
        self.data: dict[str, Any] = {"users": {u.id: u for u in users}}
        self.fail_lookups = False

    async def get_by_id(self, db: Any, user_id: str) -> UserProfile | None:
        if self.fail_lookups:
            raise RuntimeError("users table unavailable")
        return copy.deepcopy(self.data["users"].get(user_id))

    async def increment_shop_metrics(
        self, db: Any, seller_id: str, revenue: int, sales: int
    ) -> None:
        merchant = self.data["users"][seller_id].merchant
        merchant.total_revenue += revenue
        merchant.total_sales += sales


class FakeSessionRepo:
    def __init__(self, orders: "FakeOrderRepo | None" = None) -> None:
        self.data: dict[str, Any] = {"sessions": {}}
        self.orders = orders
        self.conflicts_to_inject = 0
        self.fail_save_for_status: str | None = None

    def stored(self, session_id: str) -> CheckoutSession:
        return self.data["sessions"][session_id]

    async def insert(self, db: Any, session: CheckoutSession) -> None:
        for existing in self.data["sessions"].values():
            if existing.user_id == session.user_id and existing.status in NON_TERMINAL_SESSION_STATUSES:
                raise ActiveSessionConflictError(session.user_id)
        session.created_at = session.updated_at = utc_now()
        self.data["sessions"][session.id] = copy.deepcopy(session)

    async def get_by_id(self, db: Any, session_id: str) -> CheckoutSession | None:
        return copy.deepcopy(self.data["sessions"].get(session_id))

    async def get_active_for_user(self, db: Any, user_id: str) -> CheckoutSession | None:
        for s in self.data["sessions"].values():
            if s.user_id == user_id and s.status in NON_TERMINAL_SESSION_STATUSES:
                return copy.deepcopy(s)
        return None

    async def save(self, db: Any, session: CheckoutSession) -> bool:
        if session.status == self.fail_save_for_status:
            raise RuntimeError("connection lost")
        stored = self.data["sessions"].get(session.id)
        if self.conflicts_to_inject and stored is not None:
            # Simulate another writer landing first.
            self.conflicts_to_inject -= 1
            stored.version += 1
        if stored is None or stored.version != session.version:
            return False
        session.version += 1
        session.updated_at = utc_now()
        self.data["sessions"][session.id] = copy.deepcopy(session)
        return True

    async def cancel_active_for_user(self, db: Any, user_id: str) -> list[CheckoutSession]:
        cancelled = []
        for s in self.data["sessions"].values():
            if s.user_id == user_id and s.status in CANCELLABLE_SESSION_STATUSES:
                s.status = SessionStatus.CANCELLED.value
                s.version += 1
                cancelled.append(copy.deepcopy(s))
        return cancelled

    async def list_expired(self, db: Any, limit: int) -> list[CheckoutSession]:
        now = utc_now()
        return [
            copy.deepcopy(s)
            for s in self.data["sessions"].values()
            if s.status in CANCELLABLE_SESSION_STATUSES and s.expires_at <= now
        ][:limit]

    async def list_stuck_processing(
        self, db: Any, updated_before: datetime, limit: int
    ) -> list[CheckoutSession]:
        return [
            copy.deepcopy(s)
            for s in self.data["sessions"].values()
            if s.status == SessionStatus.PROCESSING.value and s.updated_at <= updated_before
        ][:limit]

    async def list_orders_for_session(self, db: Any, session_id: str) -> list[tuple[str, str]]:
        if self.orders is None:
            return []
        rows = [o for o in self.orders.all() if o.checkout_session_id == session_id]
        return [(o.id, o.seller_id) for o in sorted(rows, key=lambda o: int(o.id))]

    def backdate(self, session_id: str, seconds: int = 1) -> None:
        self.data["sessions"][session_id].expires_at = utc_now() - timedelta(seconds=seconds)

    def idle(self, session_id: str, seconds: int) -> None:
        """Pretend the session was last written `seconds` ago."""
        self.data["sessions"][session_id].updated_at = utc_now() - timedelta(seconds=seconds)


class FakeOrderRepo:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {"orders": {}}
        self.fail_insert_for_seller: str | None = None

    def all(self) -> list[Order]:
        return list(self.data["orders"].values())

    async def insert(self, db: Any, order: Order) -> None:
        if order.seller_id == self.fail_insert_for_seller:
            raise RuntimeError("insert failed")
        order.created_at = order.updated_at = utc_now()
        self.data["orders"][order.id] = copy.deepcopy(order)

    async def get_by_id(self, db: Any, order_id: str) -> Order | None:
        return copy.deepcopy(self.data["orders"].get(order_id))

    async def list_for_user(
        self,
        db: Any,
        user_id: str,
        role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        key = "seller_id" if role == "seller" else "buyer_id"
        rows = [
            o for o in self.data["orders"].values()
            if getattr(o, key) == user_id
            and (status is None or o.status == status)
            and (cursor_id is None or int(o.id) < int(cursor_id))
        ]
        rows.sort(key=lambda o: int(o.id), reverse=True)
        return copy.deepcopy(rows[:limit])

    async def update_status(
        self, db: Any, order: Order, expected_status: str, timestamp_field: str | None
    ) -> bool:
        stored = self.data["orders"].get(order.id)
        if stored is None or stored.status != expected_status:
            return False
        stored.status = order.status
        stored.status_history = copy.deepcopy(order.status_history)
        if timestamp_field:
            setattr(stored, timestamp_field, utc_now())
        return True


class FakeOutbox:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {"effects": {}}

    def by_type(self, effect_type: str) -> list[SideEffect]:
        return [e for e in self.data["effects"].values() if e.effect_type == effect_type]

    def pending(self) -> list[SideEffect]:
        return [e for e in self.data["effects"].values() if e.status == "pending"]

    async def enqueue(self, db: Any, effects: list[SideEffect]) -> None:
        for e in effects:
            self.data["effects"][e.id] = copy.deepcopy(e)

    async def list_pending(
        self, db: Any, limit: int, effect_ids: list[str] | None = None
    ) -> list[SideEffect]:
        rows = [
            e for e in self.data["effects"].values()
            if e.status == "pending" and (effect_ids is None or e.id in effect_ids)
        ]
        rows.sort(key=lambda e: int(e.id))
        return copy.deepcopy(rows[:limit])

    async def mark_done(self, db: Any, effect_id: str) -> None:
        effect = self.data["effects"][effect_id]
        effect.status = "done"
        effect.attempts += 1
        effect.last_error = None
        effect.processed_at = utc_now()

    async def mark_failed(self, db: Any, effect_id: str, error: str, give_up: bool) -> None:
        effect = self.data["effects"][effect_id]
        effect.status = "failed" if give_up else "pending"
        effect.attempts += 1
        effect.last_error = error[:500]


class FakeNotifier:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {"sent": []}
        self.fail = False

    async def notify(
        self,
        db: Any,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> str:
        if self.fail:
            raise RuntimeError("notification insert failed")
        self.data["sent"].append({"user_id": user_id, "type": type, "title": title, "data": data})
        return f"n-{len(self.data['sent'])}"


class FakeLedger:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {"credits": {}}

    async def credit_earnings(
        self, db: Any, seller_id: str, order_id: str, gross_amount: int, platform_fee_bps: int
    ) -> bool:
        if order_id in self.data["credits"]:
            return False
        self.data["credits"][order_id] = (seller_id, gross_amount, platform_fee_bps)
        return True


class FakeGateway:
    def __init__(self, configured: bool = True) -> None:
        self.configured = configured
        self.intents: dict[str, PaymentIntent] = {}
        self.create_calls: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self.fail_retrieve = False
        self.fail_cancel = False

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        self.create_calls.append(
            {"amount": amount, "currency": currency, "metadata": metadata,
             "idempotency_key": idempotency_key}
        )
        intent = PaymentIntent(
            id=f"pi_{len(self.create_calls)}",
            status=IntentStatus.REQUIRES_PAYMENT_METHOD,
            amount=amount,
            currency=currency,
            client_secret=f"pi_{len(self.create_calls)}_secret",
            metadata=dict(metadata),
        )
        self.intents[intent.id] = intent
        return intent

    def set_status(self, intent_id: str, status: str) -> None:
        self.intents[intent_id].status = status

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        if self.fail_retrieve:
            raise GatewayError("connection reset")
        return copy.deepcopy(self.intents[intent_id])

    async def confirm_intent(self, intent_id: str) -> PaymentIntent:
        self.intents[intent_id].status = IntentStatus.SUCCEEDED
        return copy.deepcopy(self.intents[intent_id])

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        if self.fail_cancel:
            raise GatewayError("cancel failed")
        self.cancelled.append(intent_id)
        self.intents[intent_id].status = IntentStatus.CANCELED
        return copy.deepcopy(self.intents[intent_id])
