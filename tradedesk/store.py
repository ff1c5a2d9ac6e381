from __future__ import annotations

import logging
from typing import Iterable, Optional

import streamlit as st

from tradedesk.errors import NotFoundError
from tradedesk.models import (
    AllowedUser,
    InventoryUnit,
    InvoiceSettings,
    PriceItem,
    PurchaseOrder,
    RetailerProfile,
    Sale,
    User,
)
from tradedesk.utils import norm_email

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "tradedesk_state"


class AppState:
    """
    In-memory application state.

    One id-indexed map per collection. Entities are frozen dataclasses, so every
    mutation is a replacement of the stored record; readers never observe a
    half-updated entity. Selectors return lists (copies of the index order).
    """

    def __init__(self) -> None:
        self._price_items: dict[str, PriceItem] = {}
        self._inventory: dict[str, InventoryUnit] = {}
        self._orders: dict[str, PurchaseOrder] = {}
        self._sales: dict[str, Sale] = {}
        self._retailers: dict[str, RetailerProfile] = {}
        self._users: dict[str, User] = {}
        self._allowed: dict[str, AllowedUser] = {}
        self._sequences: dict[str, int] = {}
        self.invoice_settings = InvoiceSettings()

    # -------------------------
    # Id generation
    # -------------------------

    def _id_taken(self, candidate: str) -> bool:
        return any(
            candidate in coll
            for coll in (self._price_items, self._inventory, self._orders, self._sales, self._retailers, self._users)
        ) or any(s.invoice_number == candidate for s in self._sales.values())

    def next_seq(self, name: str) -> int:
        n = self._sequences.get(name, 0) + 1
        self._sequences[name] = n
        return n

    def next_id(self, prefix: str, *, width: int = 5) -> str:
        """Monotonic, collision-free id: PREFIX-00001, PREFIX-00002, ..."""
        while True:
            candidate = f"{prefix}-{self.next_seq(prefix):0{width}d}"
            if not self._id_taken(candidate):
                return candidate

    def next_invoice_number(self, year: int) -> str:
        return self.next_id(f"INV-{int(year)}")

    # -------------------------
    # Price items (NLC deck)
    # -------------------------

    def add_price_item(self, item: PriceItem) -> PriceItem:
        self._price_items[item.id] = item
        return item

    def replace_price_item(self, item: PriceItem) -> PriceItem:
        self.require_price_item(item.id)
        self._price_items[item.id] = item
        return item

    def price_item(self, item_id: Optional[str]) -> Optional[PriceItem]:
        if not item_id:
            return None
        return self._price_items.get(item_id)

    def require_price_item(self, item_id: str) -> PriceItem:
        item = self.price_item(item_id)
        if item is None:
            raise NotFoundError(f"Price item {item_id} not found.")
        return item

    def price_items(self) -> list[PriceItem]:
        return list(self._price_items.values())

    # -------------------------
    # Inventory
    # -------------------------

    def add_units(self, units: Iterable[InventoryUnit]) -> list[InventoryUnit]:
        added = []
        for u in units:
            self._inventory[u.id] = u
            added.append(u)
        return added

    def replace_units(self, units: Iterable[InventoryUnit]) -> None:
        units = list(units)
        for u in units:
            self.require_unit(u.id)
        for u in units:
            self._inventory[u.id] = u

    def unit(self, unit_id: Optional[str]) -> Optional[InventoryUnit]:
        if not unit_id:
            return None
        return self._inventory.get(unit_id)

    def require_unit(self, unit_id: str) -> InventoryUnit:
        u = self.unit(unit_id)
        if u is None:
            raise NotFoundError(f"Inventory unit {unit_id} not found.")
        return u

    def inventory(self) -> list[InventoryUnit]:
        return list(self._inventory.values())

    # -------------------------
    # Purchase orders
    # -------------------------

    def add_order(self, order: PurchaseOrder) -> PurchaseOrder:
        self._orders[order.id] = order
        return order

    def replace_orders(self, orders: Iterable[PurchaseOrder]) -> None:
        orders = list(orders)
        for o in orders:
            self.require_order(o.id)
        for o in orders:
            self._orders[o.id] = o

    def order(self, order_id: Optional[str]) -> Optional[PurchaseOrder]:
        if not order_id:
            return None
        return self._orders.get(order_id)

    def require_order(self, order_id: str) -> PurchaseOrder:
        o = self.order(order_id)
        if o is None:
            raise NotFoundError(f"Purchase order {order_id} not found.")
        return o

    def orders(self) -> list[PurchaseOrder]:
        return list(self._orders.values())

    # -------------------------
    # Sales
    # -------------------------

    def add_sale(self, sale: Sale) -> Sale:
        self._sales[sale.id] = sale
        return sale

    def sale(self, sale_id: Optional[str]) -> Optional[Sale]:
        if not sale_id:
            return None
        return self._sales.get(sale_id)

    def sales(self) -> list[Sale]:
        return list(self._sales.values())

    # -------------------------
    # Retailers
    # -------------------------

    def add_retailer(self, retailer: RetailerProfile) -> RetailerProfile:
        self._retailers[retailer.id] = retailer
        return retailer

    def replace_retailer(self, retailer: RetailerProfile) -> RetailerProfile:
        self.require_retailer(retailer.id)
        self._retailers[retailer.id] = retailer
        return retailer

    def retailer(self, retailer_id: Optional[str]) -> Optional[RetailerProfile]:
        if not retailer_id:
            return None
        return self._retailers.get(retailer_id)

    def require_retailer(self, retailer_id: str) -> RetailerProfile:
        r = self.retailer(retailer_id)
        if r is None:
            raise NotFoundError(f"Retailer {retailer_id} not found.")
        return r

    def retailers(self) -> list[RetailerProfile]:
        return list(self._retailers.values())

    # -------------------------
    # Users and allow-list
    # -------------------------

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def user_by_email(self, email: Optional[str]) -> Optional[User]:
        key = norm_email(email)
        return next((u for u in self._users.values() if norm_email(u.email) == key), None)

    def users(self) -> list[User]:
        return list(self._users.values())

    def add_allowed_user(self, entry: AllowedUser) -> AllowedUser:
        self._allowed[norm_email(entry.email)] = entry
        return entry

    def remove_allowed_user(self, email: str) -> bool:
        return self._allowed.pop(norm_email(email), None) is not None

    def allowed_user(self, email: Optional[str]) -> Optional[AllowedUser]:
        return self._allowed.get(norm_email(email))

    def allowed_users(self) -> list[AllowedUser]:
        return list(self._allowed.values())

    # -------------------------
    # Settings
    # -------------------------

    def set_invoice_settings(self, settings: InvoiceSettings) -> InvoiceSettings:
        self.invoice_settings = settings
        return settings

    def counts(self) -> dict[str, int]:
        return {
            "price_items": len(self._price_items),
            "inventory": len(self._inventory),
            "orders": len(self._orders),
            "sales": len(self._sales),
            "retailers": len(self._retailers),
            "users": len(self._users),
            "allowed_users": len(self._allowed),
        }


def get_state() -> AppState:
    """Per-session state; seeded with demo data on first access."""
    if SESSION_STATE_KEY not in st.session_state:
        from tradedesk.services.demo_data import load_demo_data

        state = AppState()
        load_demo_data(state)
        st.session_state[SESSION_STATE_KEY] = state
        logger.info("Initialized session state with demo data")
    return st.session_state[SESSION_STATE_KEY]


def reset_state(*, with_demo_data: bool = True) -> AppState:
    from tradedesk.services.demo_data import load_demo_data

    state = AppState()
    if with_demo_data:
        load_demo_data(state)
    st.session_state[SESSION_STATE_KEY] = state
    logger.info("Session state reset (demo data: %s)", with_demo_data)
    return state
