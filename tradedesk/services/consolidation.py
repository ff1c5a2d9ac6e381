from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tradedesk.errors import PreconditionError, ValidationError
from tradedesk.models import OrderStatus, PurchaseOrder, UNKNOWN
from tradedesk.services.costing import final_nlc
from tradedesk.services.inventory import location_name
from tradedesk.services.orders import transition
from tradedesk.store import AppState
from tradedesk.utils import as_utc, utcnow

logger = logging.getLogger(__name__)

# (order id, price item id)
LineKey = tuple[str, str]


@dataclass
class ConsolidationSelection:
    """
    Order lines staged for one master PO.

    All staged lines share a brand; a line of another brand is refused and the
    selection is left as it was.
    """

    keys: set[LineKey] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.keys)

    def __contains__(self, key: LineKey) -> bool:
        return key in self.keys

    def brand(self, state: AppState) -> Optional[str]:
        for order_id, _ in self.keys:
            order = state.order(order_id)
            if order is not None:
                return order.manufacturer
        return None

    def order_ids(self) -> set[str]:
        return {order_id for order_id, _ in self.keys}

    def toggle(self, state: AppState, key: LineKey) -> bool:
        """Add or remove `key`; returns True when the line is now selected."""
        if key in self.keys:
            self.keys.discard(key)
            return False

        order = state.require_order(key[0])
        if order.status != OrderStatus.APPROVED:
            raise PreconditionError(f"Order {order.id} is {order.status.label}; only approved requests can be consolidated.")
        if not any(line.price_item_id == key[1] for line in order.items):
            raise ValidationError(f"Order {order.id} has no line for {key[1]}.")

        current = self.brand(state)
        if current is not None and current != order.manufacturer:
            logger.warning("Refused %s line in a %s consolidation", order.manufacturer, current)
            raise ValidationError("Consolidation must be for the same brand.")

        self.keys.add(key)
        return True

    def clear(self) -> None:
        self.keys.clear()


def consolidation_candidates(state: AppState, brand: str = "ALL") -> list[dict]:
    rows: list[dict] = []
    for order in state.orders():
        if order.status != OrderStatus.APPROVED:
            continue
        if brand != "ALL" and order.manufacturer != brand:
            continue
        for line in order.items:
            p = state.price_item(line.price_item_id)
            rows.append(
                {
                    "key": (order.id, line.price_item_id),
                    "order_id": order.id,
                    "retailer": location_name(state, order.retailer_id),
                    "brand": order.manufacturer,
                    "model": p.model if p else UNKNOWN,
                    "units": line.quantity,
                    "line_value": final_nlc(p) * line.quantity,
                }
            )
    return rows


def approved_brands(state: AppState) -> list[str]:
    return list(dict.fromkeys(o.manufacturer for o in state.orders() if o.status == OrderStatus.APPROVED))


def master_po_preview(state: AppState, selection: ConsolidationSelection) -> dict:
    """Per-SKU totals of the staged lines, as the brand would receive them."""
    per_item: dict[str, dict] = {}
    for order_id, price_item_id in sorted(selection.keys):
        order = state.order(order_id)
        if order is None:
            continue
        qty = sum(line.quantity for line in order.items if line.price_item_id == price_item_id)
        p = state.price_item(price_item_id)
        row = per_item.setdefault(
            price_item_id,
            {"price_item_id": price_item_id, "model": p.model if p else UNKNOWN, "quantity": 0, "value": 0.0},
        )
        row["quantity"] += qty
        row["value"] += final_nlc(p) * qty

    lines = list(per_item.values())
    return {
        "brand": selection.brand(state),
        "lines": lines,
        "total_units": sum(r["quantity"] for r in lines),
        "total_value": sum(r["value"] for r in lines),
    }


def _master_po_id(state: AppState, brand: str, now: datetime) -> str:
    base = f"M-PO-{brand.upper()}-{now.strftime('%y%m%d%H%M%S')}"
    taken = {o.master_po_id for o in state.orders() if o.master_po_id}
    candidate, n = base, 1
    while candidate in taken:
        n += 1
        candidate = f"{base}-{n}"
    return candidate


def generate_master_po(
    state: AppState,
    selection: ConsolidationSelection,
    *,
    place_order: bool = True,
    now: Optional[datetime] = None,
) -> tuple[str, list[PurchaseOrder]]:
    """
    Stamp every selected order with one master PO id and advance it to
    MASTER_ORDERED (or CONSOLIDATED when the brand order is not placed yet).
    All orders are checked before any is changed.
    """
    if not selection.keys:
        raise ValidationError("Select at least one approved request to consolidate.")

    orders = [state.require_order(oid) for oid in sorted(selection.order_ids())]
    brand_names = {o.manufacturer for o in orders}
    if len(brand_names) != 1:
        raise ValidationError("Consolidation must be for the same brand.")
    brand = brand_names.pop()

    target = OrderStatus.MASTER_ORDERED if place_order else OrderStatus.CONSOLIDATED
    master_po_id = _master_po_id(state, brand, as_utc(now or utcnow()))
    updated = [transition(o, target, master_po_id=master_po_id) for o in orders]

    state.replace_orders(updated)
    selection.clear()
    logger.info("Master PO %s generated for %d order(s) (%s)", master_po_id, len(updated), target.value)
    return master_po_id, updated


def place_master_order(state: AppState, master_po_id: str) -> list[PurchaseOrder]:
    """Move every CONSOLIDATED order of `master_po_id` to MASTER_ORDERED."""
    orders = [o for o in state.orders() if o.master_po_id == master_po_id and o.status == OrderStatus.CONSOLIDATED]
    if not orders:
        raise PreconditionError(f"No consolidated orders waiting under {master_po_id}.")
    updated = [transition(o, OrderStatus.MASTER_ORDERED) for o in orders]
    state.replace_orders(updated)
    logger.info("Brand order placed for %s (%d order(s))", master_po_id, len(updated))
    return updated
