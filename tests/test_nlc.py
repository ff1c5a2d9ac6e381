import io
from datetime import datetime, timezone

import pytest

from tradedesk.errors import NotFoundError, ValidationError
from tradedesk.services.costing import final_nlc
from tradedesk.services.nlc import (
    brands,
    ingest_price_items,
    latest_for_model,
    models_for_brand,
    parse_discounts,
    price_deck,
    read_price_deck,
    set_min_margin,
)

DECK_CSV = """Manufacturer,Model,Category,MRP,Basic Price,GST Rate,Upfront Discounts,Backend Discounts
LG,650L Side-by-Side Ref,Refrigerator,96000,83000,18,Trade:5000,Target:3000; Display:500
Voltas,1 Ton 3-Star AC,Air Conditioner,36000,30000,,2000,
"""


def test_parse_discounts_named_and_bare():
    schemes = parse_discounts("Trade:5000; Festive: 1500", is_backend=False)
    assert [(s.name, s.amount, s.is_backend) for s in schemes] == [("Trade", 5000.0, False), ("Festive", 1500.0, False)]

    bare = parse_discounts("750", is_backend=True)
    assert bare[0].amount == 750 and bare[0].is_backend


def test_parse_discounts_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_discounts("Trade:lots", is_backend=False)


def test_read_price_deck_normalizes_columns():
    records = read_price_deck(io.StringIO(DECK_CSV))
    assert len(records) == 2
    assert records[0]["manufacturer"] == "LG"
    assert records[0]["basic_price"] == 83000


def test_read_price_deck_requires_core_columns():
    with pytest.raises(ValidationError, match="basic_price"):
        read_price_deck(io.StringIO("Manufacturer,Model\nLG,X\n"))


def test_ingest_creates_new_batch_and_keeps_old(state):
    before = len(state.price_items())
    batch = datetime(2026, 10, 1, tzinfo=timezone.utc)
    created = ingest_price_items(state, read_price_deck(io.StringIO(DECK_CSV)), batch_date=batch)

    assert len(created) == 2
    assert len(state.price_items()) == before + 2
    assert state.price_item("n1-mar") is not None

    lg = created[0]
    assert lg.batch_date == batch
    # (83000 - 5000) * 1.18 - 3500
    assert final_nlc(lg) == pytest.approx(88540)
    assert latest_for_model(state, "650L Side-by-Side Ref").id == lg.id

    voltas = created[1]
    assert voltas.gst_rate == 18
    assert voltas.min_margin_percent == 10
    assert [d.amount for d in voltas.discount_schemes] == [2000]


def test_ingest_rejects_empty_deck(empty_state):
    with pytest.raises(ValidationError):
        ingest_price_items(empty_state, [])


def test_latest_for_model_picks_most_recent_batch(state):
    assert latest_for_model(state, "650L Side-by-Side Ref").id == "n1-mar"
    assert latest_for_model(state, "1.5 Ton 5-Star AC").id == "n2-mar"
    assert latest_for_model(state, "No Such Model") is None


def test_brand_and_model_lists(state):
    assert brands(state) == ["LG", "Samsung", "Sony", "Whirlpool", "Daikin"]
    assert models_for_brand(state, "LG") == ["650L Side-by-Side Ref"]


def test_set_min_margin(state):
    updated = set_min_margin(state, "n3", 15)
    assert updated.min_margin_percent == 15
    assert state.price_item("n3").min_margin_percent == 15


@pytest.mark.parametrize("margin", [-1, 100, 150])
def test_set_min_margin_bounds(state, margin):
    with pytest.raises(ValidationError):
        set_min_margin(state, "n3", margin)


def test_set_min_margin_unknown_item(state):
    with pytest.raises(NotFoundError):
        set_min_margin(state, "nope", 12)


def test_price_deck_filters_and_sorts(state):
    rows = price_deck(state, brand="Samsung", sort_key="final_nlc", descending=True)
    assert [r["id"] for r in rows] == ["n2-mar", "n2-feb"]
    assert rows[0]["final_nlc"] == pytest.approx(54820)
    assert rows[0]["msp"] == pytest.approx(54820 / 0.9)

    assert [r["id"] for r in price_deck(state, search="bravia")] == ["n3"]


@pytest.mark.parametrize("margin", [-5, 100, 140])
def test_ingest_rejects_out_of_range_margin(state, margin):
    before = len(state.price_items())
    records = read_price_deck(io.StringIO(DECK_CSV))
    records[1]["min_margin_percent"] = margin

    with pytest.raises(ValidationError, match="1 Ton 3-Star AC"):
        ingest_price_items(state, records)
    # the valid first row is not stored either
    assert len(state.price_items()) == before
