from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from tradedesk.errors import DomainError, NotFoundError, PreconditionError, ValidationError
from tradedesk.models import (
    InventoryStatus,
    InventoryUnit,
    InvoiceSettings,
    PaymentMode,
    Sale,
    SaleLine,
    UNKNOWN,
)
from tradedesk.services.costing import msp
from tradedesk.services.inventory import in_stock_units, location_address, location_name
from tradedesk.store import AppState
from tradedesk.utils import as_utc, utcnow

logger = logging.getLogger(__name__)


def _normalize_customer(customer: Optional[str]) -> Optional[str]:
    if customer is None:
        return None
    s = str(customer).strip()
    return s if s else None


def _money(v, label: str) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.")
    if f < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return f


def available_stock(state: AppState, retailer_id: str, search: str = "") -> list[dict]:
    """
    Sellable units at one location, as rows for the point-of-sale picker.
    Units whose price item no longer resolves are not sellable.
    """
    query = (search or "").strip().lower()
    rows: list[dict] = []
    for u in in_stock_units(state, retailer_id):
        p = state.price_item(u.price_item_id)
        if p is None:
            continue
        if query and not (
            query in p.model.lower() or query in p.manufacturer.lower() or query in u.serial_number.lower()
        ):
            continue
        rows.append(
            {
                "unit_id": u.id,
                "serial_number": u.serial_number,
                "brand": p.manufacturer,
                "model": p.model,
                "category": p.category,
                "mrp": p.mrp,
                "default_price": _default_price(state, u),
            }
        )
    return rows


def _default_price(state: AppState, unit: InventoryUnit) -> float:
    p = state.price_item(unit.price_item_id)
    if p is None:
        return 0.0
    try:
        return round(msp(p), 2)
    except DomainError:
        return float(p.basic_price)


@dataclass
class CartLine:
    unit_id: str
    price_item_id: str
    selling_price: float
    discount: float = 0.0

    @property
    def net_price(self) -> float:
        return self.selling_price - self.discount


@dataclass
class Cart:
    """Units staged for one customer invoice. A unit appears at most once."""

    lines: list[CartLine] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lines)

    def __contains__(self, unit_id: str) -> bool:
        return any(line.unit_id == unit_id for line in self.lines)

    def add_unit(self, state: AppState, unit_id: str) -> CartLine:
        if unit_id in self:
            raise ValidationError("This unit is already in the cart.")
        unit = state.require_unit(unit_id)
        if unit.status != InventoryStatus.IN_STOCK:
            raise PreconditionError(f"Unit {unit.serial_number} is not in stock.")
        line = CartLine(
            unit_id=unit.id,
            price_item_id=unit.price_item_id,
            selling_price=_default_price(state, unit),
        )
        self.lines.append(line)
        return line

    def remove(self, unit_id: str) -> None:
        self.lines = [line for line in self.lines if line.unit_id != unit_id]

    def update_line(
        self,
        unit_id: str,
        *,
        selling_price: Optional[float] = None,
        discount: Optional[float] = None,
    ) -> CartLine:
        line = next((ln for ln in self.lines if ln.unit_id == unit_id), None)
        if line is None:
            raise NotFoundError(f"Unit {unit_id} is not in the cart.")
        if selling_price is not None:
            line.selling_price = _money(selling_price, "Selling price")
        if discount is not None:
            line.discount = _money(discount, "Discount")
        return line

    def subtotal(self) -> float:
        return sum(line.selling_price for line in self.lines)

    def total_discount(self) -> float:
        return sum(line.discount for line in self.lines)

    def grand_total(self) -> float:
        return self.subtotal() - self.total_discount()

    def clear(self) -> None:
        self.lines.clear()


def finalize_sale(
    state: AppState,
    cart: Cart,
    customer_name: Optional[str],
    retailer_id: str,
    payment_mode: PaymentMode = PaymentMode.UPI,
    now: Optional[datetime] = None,
) -> Sale:
    """
    Record the sale and mark every cart unit SOLD against one invoice.

    All units are checked before any record changes, so a rejected sale
    leaves stock and the cart as they were.
    """
    customer = _normalize_customer(customer_name)
    if customer is None:
        raise ValidationError("Customer name is required.")
    if not cart.lines:
        raise ValidationError("Cart is empty.")

    units: list[InventoryUnit] = []
    seen: set[str] = set()
    for line in cart.lines:
        if line.unit_id in seen:
            raise ValidationError(f"Unit {line.unit_id} appears more than once in the cart.")
        seen.add(line.unit_id)
        unit = state.require_unit(line.unit_id)
        if unit.status != InventoryStatus.IN_STOCK:
            raise PreconditionError(f"Unit {unit.serial_number} has already been sold.")
        if unit.retailer_id != retailer_id:
            raise PreconditionError(f"Unit {unit.serial_number} is not held at {location_name(state, retailer_id)}.")
        units.append(unit)

    sold_at = as_utc(now or utcnow())
    invoice_number = state.next_invoice_number(sold_at.year)
    sale = Sale(
        id=state.next_id("SALE"),
        invoice_number=invoice_number,
        date=sold_at,
        customer_name=customer,
        retailer_id=retailer_id,
        payment_mode=PaymentMode(payment_mode),
        items=tuple(
            SaleLine(inventory_id=line.unit_id, selling_price=line.selling_price, additional_discount=line.discount)
            for line in cart.lines
        ),
        total_amount=cart.grand_total(),
    )

    state.replace_units(
        replace(u, status=InventoryStatus.SOLD, sale_invoice_number=invoice_number, sale_date=sold_at) for u in units
    )
    state.add_sale(sale)
    cart.clear()
    logger.info("Sale %s (%s): %d unit(s), total %.2f", sale.id, invoice_number, len(sale.items), sale.total_amount)
    return sale


def invoice_preview(state: AppState, sale: Sale, settings: Optional[InvoiceSettings] = None) -> dict:
    """Printable invoice: company header, billed-from location, lines and totals."""
    settings = settings or state.invoice_settings
    lines = []
    for item in sale.items:
        unit = state.unit(item.inventory_id)
        p = state.price_item(unit.price_item_id) if unit else None
        lines.append(
            {
                "model": p.model if p else UNKNOWN,
                "brand": p.manufacturer if p else UNKNOWN,
                "serial_number": unit.serial_number if unit else "-",
                "price": item.selling_price,
                "discount": item.additional_discount,
                "net": item.net_price,
            }
        )

    sub_total = sum(r["price"] for r in lines)
    total_discount = sum(r["discount"] for r in lines)
    return {
        "company": {
            "name": settings.company_name,
            "address": [s for s in (settings.address_line1, settings.address_line2, settings.city_state_zip) if s],
            "gstin": settings.gstin,
            "logo_url": settings.logo_url,
        },
        "invoice_number": sale.invoice_number,
        "date": sale.date,
        "customer_name": sale.customer_name,
        "payment_mode": sale.payment_mode.value,
        "location": location_name(state, sale.retailer_id),
        "location_address": location_address(state, sale.retailer_id),
        "lines": lines,
        "sub_total": sub_total,
        "total_discount": total_discount,
        "grand_total": sub_total - total_discount,
        "terms_and_conditions": settings.terms_and_conditions,
        "bank_details": settings.bank_details,
    }
