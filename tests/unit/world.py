"""Services wired to in-memory fakes, plus shared test data."""

from dataclasses import dataclass

from src.mk_catalog.application.stock_service import StockReservationService
from src.mk_checkout.application.delivery_fee_resolver import DeliveryFeeResolver
from src.mk_checkout.application.service import CheckoutSessionManager
from src.mk_order.application.fulfillment import OrderFulfillmentEngine
from src.mk_order.application.side_effects import SideEffectDispatcher
from src.mk_order.application.status_service import OrderStatusStateMachine
from src.mk_payment.application.service import PaymentGatewayAdapter
from tests.unit.fakes import (
    FakeCartRepo,
    FakeDB,
    FakeGateway,
    FakeLedger,
    FakeListingRepo,
    FakeNotifier,
    FakeOrderRepo,
    FakeOutbox,
    FakeSessionRepo,
    FakeUserRepo,
)

BUYER = "buyer-1"

CAMPUS_ADDRESS = {
    "type": "campus",
    "recipient_name": "Aisha",
    "recipient_phone": "0123456789",
    "campus_address": {"campus": "Main", "building": "Block A", "floor": "3", "room": "3-12"},
}

PERSONAL_ADDRESS = {
    "type": "personal",
    "recipient_name": "Aisha",
    "personal_address": {
        "address_line1": "12 Jalan Universiti",
        "city": "Petaling Jaya",
        "state": "Selangor",
        "postcode": "46200",
    },
}

PICKUP_ADDRESS = {"type": "pickup", "pickup_details": {"location": "Library entrance"}}


@dataclass
class World:
    listings: FakeListingRepo
    carts: FakeCartRepo
    users: FakeUserRepo
    sessions: FakeSessionRepo
    orders: FakeOrderRepo
    outbox: FakeOutbox
    notifier: FakeNotifier
    ledger: FakeLedger
    gateway: FakeGateway
    db: FakeDB
    stock: StockReservationService
    payments: PaymentGatewayAdapter
    manager: CheckoutSessionManager
    dispatcher: SideEffectDispatcher
    engine: OrderFulfillmentEngine
    status: OrderStatusStateMachine

    def reset_db(self) -> None:
        """Take a fresh commit baseline after a test mutates fakes directly."""
        self.db = FakeDB(
            self.listings, self.carts, self.users, self.sessions,
            self.orders, self.outbox, self.notifier, self.ledger,
        )


def build_world(
    listings: FakeListingRepo,
    users: FakeUserRepo,
    carts: FakeCartRepo | None = None,
    gateway: FakeGateway | None = None,
) -> World:
    carts = carts or FakeCartRepo()
    gateway = gateway or FakeGateway()
    orders = FakeOrderRepo()
    sessions = FakeSessionRepo(orders)
    outbox = FakeOutbox()
    notifier = FakeNotifier()
    ledger = FakeLedger()

    stock = StockReservationService(listings)
    fees = DeliveryFeeResolver(users)
    payments = PaymentGatewayAdapter(gateway, sessions)
    manager = CheckoutSessionManager(sessions, carts, users, stock, fees, payments)
    dispatcher = SideEffectDispatcher(outbox, notifier, ledger, users)
    engine = OrderFulfillmentEngine(
        sessions, orders, outbox, carts, users, stock, fees, payments, dispatcher
    )
    status = OrderStatusStateMachine(orders, outbox, stock, dispatcher)
    db = FakeDB(listings, carts, users, sessions, orders, outbox, notifier, ledger)
    return World(
        listings, carts, users, sessions, orders, outbox, notifier, ledger, gateway, db,
        stock, payments, manager, dispatcher, engine, status,
    )

