import pytest

from tradedesk.errors import NotFoundError, ValidationError
from tradedesk.models import UserRole
from tradedesk.services.retailers import (
    areas,
    cities,
    filter_retailers,
    monthly_ledger,
    retailer_financials,
    update_retailer,
)


def test_financials(state):
    f = retailer_financials(state, "r1")
    assert f["revenue"] == pytest.approx(1072380)
    assert f["cost"] == pytest.approx(957480)
    assert f["gross_margin"] == pytest.approx(114900)
    assert f["gm_percent"] == pytest.approx(114900 / 1072380 * 100)


def test_hub_has_no_sales(state):
    f = retailer_financials(state, "admin_central")
    assert f["revenue"] == 0 and f["gm_percent"] == 0


def test_monthly_ledger_splits_net_margin(state):
    months = monthly_ledger(state, "r1")
    assert [m["month"] for m in months] == ["October 2026"]

    october = months[0]
    assert len(october["lines"]) == 12
    assert october["sell_value"] == pytest.approx(1072380)
    assert october["gross_margin"] == pytest.approx(114900)
    assert october["retailer_share"] == pytest.approx(october["net_margin"] * 0.75)
    assert october["retailer_share"] + october["hub_share"] == pytest.approx(october["net_margin"])

    lg = next(line for line in october["lines"] if line["serial_number"] == "LG-SN-r1-100-0")
    # net = gm - (output tax - input tax); input tax on (80000 - 4000)
    output_tax = 100442 - 100442 / 1.18
    assert lg["net_margin"] == pytest.approx((100442 - 89680) - (output_tax - 76000 * 0.18))
    assert lg["master_po_id"] == "M-PO-LG-MAR-0"


def test_ledger_unknown_retailer(state):
    with pytest.raises(NotFoundError):
        monthly_ledger(state, "r99")


def test_filters_exclude_hub(state):
    assert cities(state) == ["Bangalore", "Kolkata", "Mumbai", "New Delhi"]
    assert areas(state, "Bangalore") == ["Indiranagar"]
    assert len(filter_retailers(state)) == 4
    assert [r.id for r in filter_retailers(state, city="Mumbai")] == ["r3"]
    assert filter_retailers(state, city="Mumbai", area="Salt Lake") == []


def test_retailer_sees_own_store_only(state):
    rows = filter_retailers(state, city="Mumbai", role=UserRole.RETAILER, active_retailer_id="r1")
    assert [r.id for r in rows] == ["r1"]


def test_update_retailer(state):
    updated = update_retailer(state, "r2", credit_limit="13000000", partner_share_percent=85)
    assert updated.credit_limit == 13000000
    assert state.retailer("r2").partner_share_percent == 85
    assert updated.available_credit == 13000000 - 7200000


@pytest.mark.parametrize(
    "changes",
    [
        {"credit_limit": -1},
        {"used_credit": -5},
        {"partner_share_percent": 101},
        {"partner_share_percent": "lots"},
        {"name": "  "},
        {"id": "r9"},
    ],
)
def test_update_retailer_rejects_bad_values(state, changes):
    before = state.retailer("r2")
    with pytest.raises(ValidationError):
        update_retailer(state, "r2", **changes)
    assert state.retailer("r2") == before
