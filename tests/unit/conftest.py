"""Unit-test fixtures: services wired to in-memory fakes.

Default world: two merchants, s1 sells a product (L1, RM 20.00, 5 in stock),
s2 sells a service (L2, RM 15.00). buyer-1 has L1 x2 and L2 x1 in the cart.
"""

import pytest

from src.mk_cart.domain.models import CartItem
from tests.unit.fakes import (
    FakeCartRepo,
    FakeListingRepo,
    FakeUserRepo,
    make_buyer,
    make_listing,
    make_merchant,
)
from tests.unit.world import BUYER, World, build_world


@pytest.fixture
def world() -> World:
    listings = FakeListingRepo(
        make_listing("L1", "s1", price=2000, stock=5),
        make_listing("L2", "s2", price=1500, stock=0, type="service"),
    )
    users = FakeUserRepo(make_buyer(BUYER), make_merchant("s1"), make_merchant("s2"))
    carts = FakeCartRepo(
        {
            BUYER: [
                CartItem(listing_id="L1", quantity=2),
                CartItem(listing_id="L2", quantity=1),
            ]
        }
    )
    return build_world(listings, users, carts)
