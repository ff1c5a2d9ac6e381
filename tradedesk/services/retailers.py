from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from tradedesk.errors import ValidationError
from tradedesk.models import HUB_RETAILER_ID, RetailerProfile, UNKNOWN, UserRole
from tradedesk.services.costing import final_nlc, input_tax
from tradedesk.store import AppState
from tradedesk.utils import as_utc, month_label, safe_div

logger = logging.getLogger(__name__)

# Output GST is taken as 18% included in the selling price.
OUTPUT_GST_FACTOR = 1.18

EDITABLE_FIELDS = {
    "name",
    "city",
    "area",
    "pincode",
    "showroom_address",
    "godown_address",
    "credit_limit",
    "used_credit",
    "partner_share_percent",
}


def retailer_financials(state: AppState, retailer_id: str) -> dict:
    revenue = 0.0
    cost = 0.0
    for sale in state.sales():
        if sale.retailer_id != retailer_id:
            continue
        revenue += sale.total_amount
        for item in sale.items:
            unit = state.unit(item.inventory_id)
            if unit is not None:
                cost += final_nlc(state.price_item(unit.price_item_id))
    gross_margin = revenue - cost
    return {
        "revenue": revenue,
        "cost": cost,
        "gross_margin": gross_margin,
        "gm_percent": safe_div(gross_margin, revenue) * 100.0,
    }


def monthly_ledger(state: AppState, retailer_id: str) -> list[dict]:
    """
    Month-by-month profit sharing ledger for one store.

    Per sold unit: net margin = gross margin - (output tax - input tax), split
    between store and hub by the store's partner share. Lines whose price
    item is gone are listed but add nothing to the totals.
    """
    retailer = state.require_retailer(retailer_id)
    share = float(retailer.partner_share_percent) / 100.0

    months: dict[str, dict] = {}
    for sale in sorted(state.sales(), key=lambda s: as_utc(s.date)):
        if sale.retailer_id != retailer_id:
            continue
        label = month_label(as_utc(sale.date))
        month = months.setdefault(
            label,
            {"month": label, "sell_value": 0.0, "gross_margin": 0.0, "net_margin": 0.0,
             "retailer_share": 0.0, "hub_share": 0.0, "lines": []},
        )
        for item in sale.items:
            unit = state.unit(item.inventory_id)
            p = state.price_item(unit.price_item_id) if unit else None
            line = {
                "date": sale.date,
                "invoice_number": sale.invoice_number,
                "customer_name": sale.customer_name,
                "serial_number": unit.serial_number if unit else "-",
                "model": p.model if p else UNKNOWN,
                "retailer_po_id": (unit.retailer_po_id if unit else None) or "-",
                "master_po_id": (unit.master_po_id if unit else None) or "-",
                "brand_invoice_id": (unit.brand_invoice_id if unit else None) or "-",
                "sell_price": item.net_price,
                "final_nlc": None,
                "gross_margin": None,
                "net_margin": None,
            }
            if p is not None:
                sell = item.net_price
                nlc = final_nlc(p)
                gm = sell - nlc
                out_tax = sell - sell / OUTPUT_GST_FACTOR
                net = gm - (out_tax - input_tax(p))
                line.update(final_nlc=nlc, gross_margin=gm, net_margin=net)
                month["sell_value"] += sell
                month["gross_margin"] += gm
                month["net_margin"] += net
                month["retailer_share"] += net * share
                month["hub_share"] += net * (1 - share)
            month["lines"].append(line)

    return list(months.values())


def _stores(state: AppState) -> list[RetailerProfile]:
    return [r for r in state.retailers() if r.id != HUB_RETAILER_ID]


def filter_retailers(
    state: AppState,
    *,
    city: str = "ALL",
    area: str = "ALL",
    role: UserRole = UserRole.ADMIN,
    active_retailer_id: Optional[str] = None,
) -> list[RetailerProfile]:
    """Retailers see only their own store; admins filter by city and area."""
    if role == UserRole.RETAILER:
        return [r for r in _stores(state) if r.id == active_retailer_id]
    return [
        r
        for r in _stores(state)
        if (city == "ALL" or r.city == city) and (area == "ALL" or r.area == area)
    ]


def cities(state: AppState) -> list[str]:
    return sorted({r.city for r in _stores(state)})


def areas(state: AppState, city: str = "ALL") -> list[str]:
    return sorted({r.area for r in _stores(state) if city == "ALL" or r.city == city})


def update_retailer(state: AppState, retailer_id: str, **changes) -> RetailerProfile:
    current = state.require_retailer(retailer_id)

    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown retailer field(s): {', '.join(sorted(unknown))}.")

    for key in ("credit_limit", "used_credit", "partner_share_percent"):
        if key in changes:
            try:
                changes[key] = float(changes[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key.replace('_', ' ').capitalize()} must be a number.")
    if changes.get("credit_limit", 0) < 0:
        raise ValidationError("Credit limit cannot be negative.")
    if changes.get("used_credit", 0) < 0:
        raise ValidationError("Used credit cannot be negative.")
    if not 0 <= changes.get("partner_share_percent", current.partner_share_percent) <= 100:
        raise ValidationError("Partner share must be between 0 and 100.")
    if "name" in changes and not str(changes["name"]).strip():
        raise ValidationError("Retailer name is required.")

    updated = state.replace_retailer(replace(current, **changes))
    logger.info("Updated retailer %s (%s)", retailer_id, ", ".join(sorted(changes)))
    return updated
