from dataclasses import replace

import pytest

from tradedesk.errors import DomainError, ErrorKind
from tradedesk.models import DiscountScheme
from tradedesk.services.costing import cost_breakdown, final_nlc, input_tax, msp


def test_final_nlc_applies_upfront_before_gst_and_backend_after(fridge):
    cb = cost_breakdown(fridge)
    assert cb.upfront_total == 5000
    assert cb.net_basic == 77000
    assert cb.invoice_amount == pytest.approx(90860)
    assert cb.backend_total == 3000
    assert final_nlc(fridge) == pytest.approx(87860)


def test_final_nlc_is_stable(fridge):
    assert final_nlc(fridge) == final_nlc(fridge)


def test_input_tax_is_gst_on_net_basic(fridge):
    assert input_tax(fridge) == pytest.approx(77000 * 0.18)


def test_missing_item_costs_nothing():
    assert final_nlc(None) == 0
    assert input_tax(None) == 0
    assert msp(None) == 0


def test_no_discounts():
    from tradedesk.services.demo_data import DEFAULT_PRICE_DECK

    washer = next(p for p in DEFAULT_PRICE_DECK if p.id == "n4")
    plain = replace(washer, discount_schemes=())
    assert final_nlc(plain) == pytest.approx(32000 * 1.18)


def test_msp_uses_item_margin_by_default(fridge):
    assert msp(fridge) == pytest.approx(87860 / 0.9)


@pytest.mark.parametrize("margin", [0.5, 10, 25, 60, 99])
def test_msp_never_below_cost(fridge, margin):
    assert msp(fridge, margin) >= final_nlc(fridge)


@pytest.mark.parametrize("margin", [100, 120])
def test_msp_rejects_margin_of_100_or_more(fridge, margin):
    with pytest.raises(DomainError) as exc:
        msp(fridge, margin)
    assert exc.value.kind == ErrorKind.VALIDATION_FAILED


def test_several_backend_schemes_are_summed(fridge):
    extra = replace(fridge, discount_schemes=fridge.discount_schemes + (DiscountScheme("Display", 1000, True),))
    assert final_nlc(extra) == pytest.approx(86860)
