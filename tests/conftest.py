"""
Shared fixtures: an in-memory state seeded with the demo network, and a fixed clock.
"""
from datetime import datetime, timezone

import pytest

from tradedesk.models import DiscountScheme, PriceItem
from tradedesk.services.demo_data import load_demo_data
from tradedesk.store import AppState


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def state(now):
    s = AppState()
    load_demo_data(s, now=now)
    return s


@pytest.fixture
def empty_state():
    return AppState()


@pytest.fixture
def fridge():
    """LG March batch: 82000 basic, 5000 upfront, 3000 backend, 18% GST."""
    return PriceItem(
        id="p-fridge",
        manufacturer="LG",
        model="650L Side-by-Side Ref",
        category="Refrigerator",
        mrp=95000,
        basic_price=82000,
        discount_schemes=(
            DiscountScheme("Trade", 5000, False),
            DiscountScheme("Target", 3000, True),
        ),
        gst_rate=18,
        batch_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
