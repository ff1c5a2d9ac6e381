from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Mapping, Optional, Union

from tradedesk.errors import IllegalTransitionError, NotFoundError, PreconditionError, ValidationError
from tradedesk.models import (
    HUB_RETAILER_ID,
    INWARDABLE_STATUSES,
    InventoryStatus,
    InventoryUnit,
    MappingLine,
    OrderLine,
    OrderStatus,
    PurchaseOrder,
    UserRole,
)
from tradedesk.services.costing import final_nlc
from tradedesk.services.nlc import latest_for_model
from tradedesk.store import AppState
from tradedesk.utils import as_utc, split_serials, utcnow

logger = logging.getLogger(__name__)


def transition(order: PurchaseOrder, target: OrderStatus, **changes) -> PurchaseOrder:
    """Return `order` moved to `target`; illegal moves raise IllegalTransitionError."""
    if not order.status.can_move_to(target):
        raise IllegalTransitionError(f"Order {order.id}", order.status.value, target.value)
    return replace(order, status=target, **changes)


def set_status(state: AppState, order_id: str, target: OrderStatus) -> PurchaseOrder:
    order = state.require_order(order_id)
    try:
        updated = transition(order, target)
    except IllegalTransitionError:
        logger.warning("Rejected status change %s: %s -> %s", order_id, order.status.value, target.value)
        raise
    state.replace_orders([updated])
    logger.info("Order %s: %s -> %s", order_id, order.status.value, target.value)
    return updated


def approve(state: AppState, order_id: str) -> PurchaseOrder:
    return set_status(state, order_id, OrderStatus.APPROVED)


def hold(state: AppState, order_id: str) -> PurchaseOrder:
    return set_status(state, order_id, OrderStatus.ON_HOLD)


def reject(state: AppState, order_id: str) -> PurchaseOrder:
    return set_status(state, order_id, OrderStatus.REJECTED)


def mark_shipped(state: AppState, order_id: str) -> PurchaseOrder:
    return set_status(state, order_id, OrderStatus.SHIPPED)


def create_order(
    state: AppState,
    *,
    brand: str,
    quantities: Mapping[str, int],
    user_role: UserRole,
    retailer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PurchaseOrder:
    """
    Raise a procurement request for `brand`.

    Each model is priced at its most recent NLC batch. Admin orders are
    direct hub imports and start APPROVED; retailer requests start REQUESTED.
    """
    brand = str(brand or "").strip()
    if not brand:
        raise ValidationError("Brand is required.")

    lines: list[OrderLine] = []
    for model, qty in quantities.items():
        if int(qty) <= 0:
            continue
        latest = latest_for_model(state, model)
        if latest is None:
            raise NotFoundError(f"No NLC entry found for model {model}.")
        if latest.manufacturer != brand:
            raise ValidationError(f"Model {model} is not a {brand} product.")
        lines.append(OrderLine(price_item_id=latest.id, quantity=int(qty)))

    if not lines:
        raise ValidationError("Enter a quantity for at least one model.")

    if user_role == UserRole.ADMIN:
        status, owner = OrderStatus.APPROVED, HUB_RETAILER_ID
    else:
        if not retailer_id:
            raise ValidationError("A retailer is required for a procurement request.")
        state.require_retailer(retailer_id)
        status, owner = OrderStatus.REQUESTED, retailer_id

    order = PurchaseOrder(
        id=state.next_id(f"REQ-{brand[:2].upper()}", width=4),
        manufacturer=brand,
        date=as_utc(now or utcnow()),
        status=status,
        retailer_id=owner,
        items=tuple(lines),
    )
    state.add_order(order)
    logger.info("Created order %s (%s, %d line(s), %s)", order.id, brand, len(lines), status.value)
    return order


def order_value(state: AppState, order: PurchaseOrder) -> float:
    return sum(final_nlc(state.price_item(line.price_item_id)) * line.quantity for line in order.items)


def order_units(order: PurchaseOrder) -> int:
    return sum(line.quantity for line in order.items)


def pending_requests(state: AppState) -> list[PurchaseOrder]:
    return [
        o
        for o in state.orders()
        if o.status in (OrderStatus.REQUESTED, OrderStatus.ON_HOLD) and o.retailer_id != HUB_RETAILER_ID
    ]


def order_history(state: AppState) -> list[PurchaseOrder]:
    return [
        o
        for o in state.orders()
        if o.status not in (OrderStatus.REQUESTED, OrderStatus.ON_HOLD) and o.retailer_id != HUB_RETAILER_ID
    ]


def hub_orders(state: AppState) -> list[PurchaseOrder]:
    return [o for o in state.orders() if o.retailer_id == HUB_RETAILER_ID]


def retailer_orders(state: AppState, retailer_id: str) -> list[PurchaseOrder]:
    return [o for o in state.orders() if o.retailer_id == retailer_id]


def inwardable_orders(state: AppState, retailer_id: str = "ALL") -> list[PurchaseOrder]:
    return [
        o
        for o in state.orders()
        if o.status in INWARDABLE_STATUSES and (retailer_id == "ALL" or o.retailer_id == retailer_id)
    ]


def sort_orders(
    state: AppState,
    orders: Iterable[PurchaseOrder],
    *,
    key: str = "date",
    descending: bool = True,
) -> list[PurchaseOrder]:
    if key == "value":
        return sorted(orders, key=lambda o: order_value(state, o), reverse=descending)
    return sorted(orders, key=lambda o: as_utc(o.date), reverse=descending)


def receive_order(
    state: AppState,
    order_id: str,
    serials_by_item: Mapping[str, Union[str, Iterable[str]]],
    brand_invoice_ref: Optional[str],
    *,
    now: Optional[datetime] = None,
) -> list[InventoryUnit]:
    """
    Inward stock against an order.

    One IN_STOCK unit is created per supplied serial, stamped with the order,
    its master PO and the brand invoice. The received count is NOT checked
    against the ordered quantity; the order becomes RECEIVED either way.
    """
    order = state.require_order(order_id)
    if order.status not in INWARDABLE_STATUSES:
        raise PreconditionError(
            f"Order {order.id} is {order.status.label}; only shipped or consolidated orders can be inwarded."
        )

    ordered = {line.price_item_id: line.quantity for line in order.items}
    unknown = [k for k in serials_by_item if k not in ordered]
    if unknown:
        raise ValidationError(f"Order {order.id} has no line for: {', '.join(unknown)}.")

    received_at = as_utc(now or utcnow())
    invoice_ref = str(brand_invoice_ref or "").strip() or None

    mapping: list[MappingLine] = []
    new_units: list[InventoryUnit] = []
    for price_item_id, qty in ordered.items():
        raw = serials_by_item.get(price_item_id, "")
        serials = split_serials(raw) if isinstance(raw, str) else [s.strip() for s in raw if str(s).strip()]
        for sn in serials:
            new_units.append(
                InventoryUnit(
                    id=state.next_id("UNIT"),
                    serial_number=sn,
                    price_item_id=price_item_id,
                    status=InventoryStatus.IN_STOCK,
                    date_received=received_at,
                    retailer_id=order.retailer_id,
                    retailer_po_id=order.id,
                    master_po_id=order.master_po_id,
                    brand_invoice_id=invoice_ref,
                )
            )
        mapping.append(
            MappingLine(
                price_item_id=price_item_id,
                ordered_qty=qty,
                received_qty=len(serials),
                serial_numbers=tuple(serials),
            )
        )
        if len(serials) != qty:
            logger.warning("Order %s line %s: ordered %d, received %d", order.id, price_item_id, qty, len(serials))

    updated = transition(order, OrderStatus.RECEIVED, brand_invoice_number=invoice_ref, mapping=tuple(mapping))
    state.add_units(new_units)
    state.replace_orders([updated])
    logger.info("Inwarded %d unit(s) against %s (invoice %s)", len(new_units), order.id, invoice_ref or "-")
    return new_units


async def suggest_serials(
    state: AppState,
    order: PurchaseOrder,
    *,
    rng: Optional[random.Random] = None,
) -> dict[str, str]:
    """
    Serial auto-mapping for the inward form: one "<BR>-<6 digits>" serial per
    ordered unit, newline-joined per line item.
    """
    rng = rng or random.Random()
    out: dict[str, str] = {}
    for line in order.items:
        await asyncio.sleep(0)
        p = state.price_item(line.price_item_id)
        prefix = p.manufacturer[:2].upper() if p else "SN"
        out[line.price_item_id] = "\n".join(
            f"{prefix}-{rng.randint(100000, 999999)}" for _ in range(line.quantity)
        )
    return out
