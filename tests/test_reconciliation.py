from datetime import timedelta

import pytest

from tradedesk.models import InventoryStatus, InventoryUnit
from tradedesk.services.orders import receive_order
from tradedesk.services.reconciliation import UNTAGGED, reconciliation_log


def _group(groups, key):
    return next(g for g in groups if g.key == key)


def test_store_view_counts_only_its_own_receipts(state):
    g = _group(reconciliation_log(state, "r1"), "B-INV-8000")
    assert g.brand == "LG"
    assert g.master_po_id == "M-PO-LG-MAR-0"
    assert g.retailer_req_ids == {"REQ-LG-R1-1000"}
    assert g.received_units == 5
    assert g.invoice_value == pytest.approx(5 * 89680)


def test_store_view_orders_span_the_master_po(state):
    # M-PO-LG-MAR-0 covers five locations of 5 units each.
    g = _group(reconciliation_log(state, "r1"), "B-INV-8000")
    assert g.ordered_units == 25
    assert g.po_value == pytest.approx(25 * 89680)
    assert g.mapping_percent == pytest.approx(20)


def test_network_view_merges_shared_brand_invoice(state):
    g = _group(reconciliation_log(state), "B-INV-8000")
    assert (g.ordered_units, g.received_units) == (25, 25)
    assert g.mapping_percent == pytest.approx(100)
    assert len(g.retailer_req_ids) == 5


def test_short_receipt_against_shared_master_po(state, now):
    serials = "\n".join(f"SAM-X{i}" for i in range(7))
    receive_order(state, "REQ-NEW-SAM-R1", {"n2-mar": serials}, "B-INV-APR", now=now)

    store = reconciliation_log(state, "r1")[0]
    network = _group(reconciliation_log(state), "B-INV-APR")

    assert store.key == "B-INV-APR"
    assert store.received_units == 7
    assert store.invoice_value == pytest.approx(7 * 54820)
    # M-PO-SAM-APR-22 carries 10 units for each of the four stores.
    assert store.ordered_units == network.ordered_units == 40
    assert store.mapping_percent == pytest.approx(17.5)
    assert store.po_value == pytest.approx(40 * 54820)


def test_untagged_units_have_zero_mapping(state, now):
    state.add_units(
        [
            InventoryUnit(
                id="loose-1",
                serial_number="LOOSE-1",
                price_item_id="n3",
                status=InventoryStatus.IN_STOCK,
                date_received=now - timedelta(days=1),
                retailer_id="r4",
            )
        ]
    )
    g = _group(reconciliation_log(state, "r4"), UNTAGGED)
    assert g.master_po_id == "-" and g.brand_invoice == "-"
    assert g.ordered_units == 0
    assert g.mapping_percent == 0
    assert g.as_row()["retailer_requests"] == "-"


def test_newest_first(state):
    dates = [g.date for g in reconciliation_log(state, "r2")]
    assert dates == sorted(dates, reverse=True)
