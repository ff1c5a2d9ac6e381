from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from tradedesk.models import (
    HUB_RETAILER_ID,
    HUB_NAME,
    AllowedUser,
    DiscountScheme,
    InventoryStatus,
    InventoryUnit,
    InvoiceSettings,
    MappingLine,
    OrderLine,
    OrderStatus,
    PaymentMode,
    PriceItem,
    PurchaseOrder,
    RetailerProfile,
    RetailerRole,
    Sale,
    SaleLine,
    User,
    UserRole,
)
from tradedesk.services.costing import final_nlc
from tradedesk.store import AppState
from tradedesk.utils import as_utc, utcnow

logger = logging.getLogger(__name__)

DEMO_BRANDS = ["LG", "Samsung", "Sony", "Daikin"]
UNITS_PER_DEMO_ORDER = 5
SOLD_PER_DEMO_ORDER = 3
# Demo sales are priced 12% over landed cost.
DEMO_MARKUP = 1.12

DEFAULT_RETAILERS = [
    RetailerProfile("r1", "Ravi Corporation", "Bangalore", "Indiranagar", "560038",
                    "No. 45, 100ft Road, Indiranagar, Bangalore", "Plot 22, Whitefield Industrial Area, Bangalore",
                    15000000, 8500000, 75),
    RetailerProfile("r2", "Sales Corner", "New Delhi", "Lajpat Nagar", "110024",
                    "Plot 12, Main Market, Lajpat Nagar, Delhi", "Shed 5, Okhla Phase III, Delhi",
                    12000000, 7200000, 80),
    RetailerProfile("r3", "Electronics World", "Mumbai", "Andheri West", "400053",
                    "G-12, Crystal Plaza, Andheri West, Mumbai", "Warehouse B, MIDC Marol, Mumbai",
                    18000000, 9100000, 75),
    RetailerProfile("r4", "Kolkata Digitech", "Kolkata", "Salt Lake", "700091",
                    "Block CF-1, Salt Lake Sector 1, Kolkata", "Rajarhat Main Road, New Town, Kolkata",
                    10000000, 4500000, 70),
    RetailerProfile(HUB_RETAILER_ID, HUB_NAME, "Bangalore", "Indiranagar", "560038",
                    "RETO HQ, Tech Park, Bangalore", "RETO Central Godown, Hosur Road, Bangalore",
                    999999999, 0, 100),
]


def _utc(y: int, m: int, d: int) -> datetime:
    return datetime(y, m, d, tzinfo=timezone.utc)


def _schemes(*items: tuple[str, float, bool]) -> tuple[DiscountScheme, ...]:
    return tuple(DiscountScheme(name, amount, backend) for name, amount, backend in items)


DEFAULT_PRICE_DECK = [
    PriceItem("n1-mar", "LG", "650L Side-by-Side Ref", "Refrigerator", 95000, 82000,
              _schemes(("Trade", 5000, False), ("Target", 3000, True)), 18, _utc(2024, 3, 1)),
    PriceItem("n2-mar", "Samsung", "1.5 Ton 5-Star AC", "Air Conditioner", 55000, 48000,
              _schemes(("Summer", 4000, False), ("Early Bird", 1500, True)), 28, _utc(2024, 3, 1)),
    PriceItem("n1-feb", "LG", "650L Side-by-Side Ref", "Refrigerator", 93000, 80000,
              _schemes(("Trade", 4000, False)), 18, _utc(2024, 2, 1)),
    PriceItem("n2-feb", "Samsung", "1.5 Ton 5-Star AC", "Air Conditioner", 52000, 45000,
              _schemes(("Winter Clear", 5000, False)), 28, _utc(2024, 2, 1)),
    PriceItem("n3", "Sony", 'Bravia 55" 4K OLED', "Television", 125000, 110000,
              _schemes(("Festival", 10000, False), ("Volume", 5000, True)), 18, _utc(2024, 1, 1)),
    PriceItem("n4", "Whirlpool", "8kg Front Load WM", "Washing Machine", 38000, 32000,
              _schemes(("Promo", 2000, False)), 18, _utc(2024, 1, 1)),
    PriceItem("n5", "Daikin", "FTKF 1.5 Ton AC", "Air Conditioner", 62000, 54000,
              _schemes(("Standard", 3000, False)), 28, _utc(2024, 1, 1)),
]

DEFAULT_INVOICE_SETTINGS = InvoiceSettings(
    company_name="RETO Electronics",
    address_line1="123, Tech Park",
    address_line2="Indiranagar Phase 1",
    city_state_zip="Bangalore, 560038",
    gstin="29ABCDE1234F1Z5",
    logo_url="",
    terms_and_conditions=(
        "1. Goods once sold will not be taken back.\n"
        "2. Warranty as per manufacturer policy.\n"
        "3. All disputes subject to Bangalore jurisdiction."
    ),
    bank_details="HDFC Bank, A/C: 50200012345678, IFSC: HDFC0001234",
)


def upsert_reference_data(state: AppState, *, now: datetime) -> None:
    for r in DEFAULT_RETAILERS:
        state.add_retailer(r)
    for p in DEFAULT_PRICE_DECK:
        state.add_price_item(p)

    state.add_allowed_user(AllowedUser("admin@reto.ai", UserRole.ADMIN, now))
    state.add_allowed_user(AllowedUser("ravi@ravi.com", UserRole.RETAILER, now, "r1", RetailerRole.OWNER))
    state.add_user(User("u1", "admin@reto.ai", "Admin User", UserRole.ADMIN))
    state.add_user(User("u2", "ravi@ravi.com", "Ravi (Owner)", UserRole.RETAILER, "r1", RetailerRole.OWNER))

    state.set_invoice_settings(DEFAULT_INVOICE_SETTINGS)


def _demo_price_item(brand: str) -> PriceItem:
    # Received history uses the February batch where the brand has one.
    same_brand = [p for p in DEFAULT_PRICE_DECK if p.manufacturer == brand]
    return next((p for p in same_brand if "feb" in p.id), same_brand[0])


def _load_history(state: AppState, retailer: RetailerProfile, *, now: datetime) -> None:
    is_hub = retailer.id == HUB_RETAILER_ID
    rid = retailer.id.upper()

    for idx, brand in enumerate(DEMO_BRANDS):
        received = now - timedelta(days=30 + idx * 5)
        p = _demo_price_item(brand)
        po_id = f"REQ-{brand[:2].upper()}-{rid}-{1000 + idx}"
        master_po = f"M-PO-{brand.upper()}-MAR-{idx}"
        brand_invoice = f"B-INV-{8000 + idx}"
        serials = [f"{brand}-SN-{retailer.id}-{100 + idx}-{i}" for i in range(UNITS_PER_DEMO_ORDER)]

        state.add_order(
            PurchaseOrder(
                id=po_id,
                manufacturer=brand,
                date=received,
                status=OrderStatus.RECEIVED,
                retailer_id=retailer.id,
                items=(OrderLine(p.id, UNITS_PER_DEMO_ORDER),),
                master_po_id=master_po,
                brand_invoice_number=brand_invoice,
                mapping=(MappingLine(p.id, UNITS_PER_DEMO_ORDER, UNITS_PER_DEMO_ORDER, tuple(serials)),),
            )
        )

        for s_idx, sn in enumerate(serials):
            sold = s_idx < SOLD_PER_DEMO_ORDER and not is_hub
            unit_id = f"INV-{sn}"
            sale_date = now - timedelta(days=10 + s_idx)
            invoice = f"C-INV-{retailer.city[:3].upper()}-{2000 + idx * 10 + s_idx}"

            state.add_units(
                [
                    InventoryUnit(
                        id=unit_id,
                        serial_number=sn,
                        price_item_id=p.id,
                        status=InventoryStatus.SOLD if sold else InventoryStatus.IN_STOCK,
                        date_received=received,
                        retailer_id=retailer.id,
                        retailer_po_id=po_id,
                        master_po_id=master_po,
                        brand_invoice_id=brand_invoice,
                        sale_invoice_number=invoice if sold else None,
                        sale_date=sale_date if sold else None,
                    )
                ]
            )
            if sold:
                price = float(round(final_nlc(p) * DEMO_MARKUP))
                state.add_sale(
                    Sale(
                        id=f"SALE-{unit_id}",
                        invoice_number=invoice,
                        date=sale_date,
                        customer_name=f"Customer {s_idx + 1}",
                        retailer_id=retailer.id,
                        payment_mode=PaymentMode.CASH,
                        items=(SaleLine(unit_id, price, 0.0),),
                        total_amount=price,
                    )
                )

    if is_hub:
        return

    # One delivery on its way and one approved request waiting for consolidation.
    state.add_order(
        PurchaseOrder(
            id=f"REQ-NEW-SAM-{rid}",
            manufacturer="Samsung",
            date=now - timedelta(days=2),
            status=OrderStatus.SHIPPED,
            retailer_id=retailer.id,
            items=(OrderLine("n2-mar", 10),),
            master_po_id="M-PO-SAM-APR-22",
            brand_invoice_number="B-INV-LOG-999",
        )
    )
    state.add_order(
        PurchaseOrder(
            id=f"REQ-PENDING-LG-{rid}",
            manufacturer="LG",
            date=now - timedelta(days=1),
            status=OrderStatus.APPROVED,
            retailer_id=retailer.id,
            items=(OrderLine("n1-mar", 8),),
        )
    )


def load_demo_data(state: AppState, *, now: Optional[datetime] = None) -> None:
    now = as_utc(now or utcnow())
    upsert_reference_data(state, now=now)
    for retailer in DEFAULT_RETAILERS:
        _load_history(state, retailer, now=now)
    logger.info("Loaded demo data: %s", state.counts())
