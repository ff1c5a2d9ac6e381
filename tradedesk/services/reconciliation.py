from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from tradedesk.models import InventoryUnit, UNKNOWN
from tradedesk.services.costing import final_nlc
from tradedesk.store import AppState
from tradedesk.utils import as_utc, safe_div

UNTAGGED = "UNTAGGED"


@dataclass
class ReconGroup:
    key: str
    date: datetime
    brand: str
    master_po_id: str
    brand_invoice: str
    retailer_req_ids: set[str] = field(default_factory=set)
    units: list[InventoryUnit] = field(default_factory=list)
    ordered_units: int = 0
    po_value: float = 0.0
    invoice_value: float = 0.0

    @property
    def received_units(self) -> int:
        return len(self.units)

    @property
    def mapping_percent(self) -> float:
        # 0 when nothing traceable was ordered (e.g. the untagged bucket).
        return safe_div(self.received_units, self.ordered_units) * 100.0

    def as_row(self) -> dict:
        return {
            "date": self.date,
            "brand": self.brand,
            "master_po_id": self.master_po_id,
            "retailer_requests": ", ".join(sorted(self.retailer_req_ids)) or "-",
            "brand_invoice": self.brand_invoice,
            "ordered_units": self.ordered_units,
            "received_units": self.received_units,
            "po_value": self.po_value,
            "invoice_value": self.invoice_value,
            "mapping_percent": self.mapping_percent,
        }


def reconciliation_log(state: AppState, retailer_id: str = "ALL") -> list[ReconGroup]:
    """
    One group per receiving event, keyed by brand invoice, else retailer PO,
    else UNTAGGED. Ordered totals come from every order sharing the group's
    master PO or named by one of its retailer requests; received totals come
    from the units actually inwarded. Newest first.
    """
    groups: dict[str, ReconGroup] = {}
    for unit in state.inventory():
        if retailer_id != "ALL" and unit.retailer_id != retailer_id:
            continue
        key = unit.brand_invoice_id or unit.retailer_po_id or UNTAGGED
        g = groups.get(key)
        if g is None:
            p = state.price_item(unit.price_item_id)
            g = ReconGroup(
                key=key,
                date=as_utc(unit.date_received),
                brand=p.manufacturer if p else UNKNOWN,
                master_po_id=unit.master_po_id or "-",
                brand_invoice=unit.brand_invoice_id or "-",
            )
            groups[key] = g
        if unit.retailer_po_id:
            g.retailer_req_ids.add(unit.retailer_po_id)
        g.units.append(unit)

    # Only the receiving side is narrowed to one store; ordered totals span the network.
    orders = state.orders()
    for g in groups.values():
        related = [
            o
            for o in orders
            if (g.master_po_id != "-" and o.master_po_id == g.master_po_id) or o.id in g.retailer_req_ids
        ]
        for o in related:
            for line in o.items:
                g.ordered_units += line.quantity
                g.po_value += final_nlc(state.price_item(line.price_item_id)) * line.quantity
        g.invoice_value = sum(final_nlc(state.price_item(u.price_item_id)) for u in g.units)

    return sorted(groups.values(), key=lambda g: g.date, reverse=True)
