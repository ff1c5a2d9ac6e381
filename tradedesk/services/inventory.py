from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from tradedesk.models import HUB_NAME, HUB_RETAILER_ID, InventoryStatus, InventoryUnit, UNKNOWN
from tradedesk.services.costing import final_nlc
from tradedesk.store import AppState
from tradedesk.utils import age_in_days, sort_records, utcnow

HUB_ADDRESS = "RETO HQ, Indiranagar, Bangalore"


@dataclass
class StockGroup:
    key: tuple[str, str]
    price_item_id: str
    retailer_id: str
    model: str
    brand: str
    unit_nlc: float
    quantity: int = 0
    units: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total_value(self) -> float:
        return self.unit_nlc * self.quantity

    def as_row(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "brand": self.brand,
            "retailer_id": self.retailer_id,
            "quantity": self.quantity,
            "unit_nlc": self.unit_nlc,
            "total_value": self.total_value,
        }


def location_name(state: AppState, retailer_id: Optional[str]) -> str:
    if retailer_id == HUB_RETAILER_ID:
        return HUB_NAME
    r = state.retailer(retailer_id)
    return r.name if r else "Unknown Location"


def location_address(state: AppState, retailer_id: Optional[str]) -> str:
    if retailer_id == HUB_RETAILER_ID:
        return HUB_ADDRESS
    r = state.retailer(retailer_id)
    return f"{r.showroom_address}, {r.city}" if r else "Unknown Address"


def _matches(state: AppState, unit: InventoryUnit, query: str) -> bool:
    if not query:
        return True
    p = state.price_item(unit.price_item_id)
    if p is None:
        return False
    return query in p.model.lower() or query in p.manufacturer.lower() or query in unit.serial_number.lower()


def in_stock_units(state: AppState, retailer_id: Optional[str] = None) -> list[InventoryUnit]:
    return [
        u
        for u in state.inventory()
        if u.status == InventoryStatus.IN_STOCK and (retailer_id in (None, "ALL") or u.retailer_id == retailer_id)
    ]


def stock_groups(
    state: AppState,
    *,
    retailer_id: str = "ALL",
    search: str = "",
    sort_key: str = "model",
    descending: bool = False,
    now: Optional[datetime] = None,
) -> list[StockGroup]:
    """
    In-stock units grouped by (price item, location).

    Units whose price item no longer resolves are left out of the stock view.
    Each unit row carries its age in whole days.
    """
    now = now or utcnow()
    query = (search or "").strip().lower()
    groups: dict[tuple[str, str], StockGroup] = {}

    for u in in_stock_units(state, retailer_id):
        p = state.price_item(u.price_item_id)
        if p is None or not _matches(state, u, query):
            continue
        key = (u.price_item_id, u.retailer_id)
        g = groups.get(key)
        if g is None:
            g = StockGroup(
                key=key,
                price_item_id=u.price_item_id,
                retailer_id=u.retailer_id,
                model=p.model or UNKNOWN,
                brand=p.manufacturer or UNKNOWN,
                unit_nlc=final_nlc(p),
            )
            groups[key] = g
        g.quantity += 1
        g.units.append(
            {
                "id": u.id,
                "serial_number": u.serial_number,
                "date_received": u.date_received,
                "age_days": age_in_days(u.date_received, now),
                "retailer_po_id": u.retailer_po_id,
                "master_po_id": u.master_po_id,
                "brand_invoice_id": u.brand_invoice_id,
            }
        )

    rows = [dict(g.as_row(), group=g) for g in groups.values()]
    return [r["group"] for r in sort_records(rows, sort_key, descending)]


def stock_count(state: AppState, retailer_id: Optional[str] = None) -> int:
    return len(in_stock_units(state, retailer_id))


def stock_value(state: AppState, retailer_id: Optional[str] = None) -> float:
    return sum(final_nlc(state.price_item(u.price_item_id)) for u in in_stock_units(state, retailer_id))


def unit_lifecycle(state: AppState, unit: InventoryUnit) -> dict[str, Any]:
    """Supply trace of one unit, from retailer request to customer invoice."""
    p = state.price_item(unit.price_item_id)
    return {
        "serial_number": unit.serial_number,
        "model": p.model if p else UNKNOWN,
        "batch": p.batch_date.strftime("%b %y") if p else "-",
        "location": location_name(state, unit.retailer_id),
        "retailer_po_id": unit.retailer_po_id or "-",
        "master_po_id": unit.master_po_id or "-",
        "brand_invoice_id": unit.brand_invoice_id or "-",
        "status": unit.status.value,
        "customer_invoice": unit.sale_invoice_number or "-",
        "sale_date": unit.sale_date,
    }
