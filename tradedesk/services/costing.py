from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tradedesk.errors import DomainError
from tradedesk.models import PriceItem


@dataclass(frozen=True)
class CostBreakdown:
    upfront_total: float
    net_basic: float
    gst_amount: float
    invoice_amount: float
    backend_total: float
    final: float


def cost_breakdown(item: Optional[PriceItem]) -> CostBreakdown:
    """
    Landed cost of one unit.

    Upfront discounts reduce the taxable basic price, GST is charged on the
    remainder, and backend discounts come off the invoice amount afterwards.
    No rounding here; presentation layers round.
    A missing item is a normal condition (dangling reference) and costs 0.
    """
    if item is None:
        return CostBreakdown(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    upfront = sum(float(d.amount) for d in item.discount_schemes if not d.is_backend)
    backend = sum(float(d.amount) for d in item.discount_schemes if d.is_backend)
    net_basic = float(item.basic_price) - upfront
    gst = net_basic * (float(item.gst_rate) / 100)
    invoice_amt = net_basic + gst
    return CostBreakdown(
        upfront_total=upfront,
        net_basic=net_basic,
        gst_amount=gst,
        invoice_amount=invoice_amt,
        backend_total=backend,
        final=invoice_amt - backend,
    )


def final_nlc(item: Optional[PriceItem]) -> float:
    return cost_breakdown(item).final


def input_tax(item: Optional[PriceItem]) -> float:
    return cost_breakdown(item).gst_amount


def msp(item: Optional[PriceItem], margin_percent: Optional[float] = None) -> float:
    """Mandatory selling price: final NLC grossed up to keep `margin_percent` margin."""
    if margin_percent is None:
        margin_percent = item.min_margin_percent if item is not None else 0.0
    denominator = 1 - (float(margin_percent) / 100)
    if denominator <= 0:
        raise DomainError(f"Margin of {margin_percent}% leaves no room for cost; it must be below 100%.")
    return final_nlc(item) / denominator
