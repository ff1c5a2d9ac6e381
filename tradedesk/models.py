from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

HUB_RETAILER_ID = "admin_central"
HUB_NAME = "RETO Central Hub"
UNKNOWN = "Unknown"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    RETAILER = "RETAILER"


class RetailerRole(str, Enum):
    OWNER = "OWNER"
    FLOOR_MANAGER = "FLOOR_MANAGER"
    ACCOUNTANT = "ACCOUNTANT"
    SALES_REP = "SALES_REP"


class PaymentMode(str, Enum):
    UPI = "UPI"
    CARD = "CARD"
    CASH = "CASH"
    NET_BANKING = "NET_BANKING"
    POS_TERMINAL = "POS_TERMINAL"


class AppView(str, Enum):
    DASHBOARD = "DASHBOARD"
    INVENTORY = "INVENTORY"
    NLC_UPLOAD = "NLC_UPLOAD"
    PURCHASE_ORDERS = "PURCHASE_ORDERS"
    SALES = "SALES"
    AI_INSIGHTS = "AI_INSIGHTS"
    MANAGE_RETAILERS = "MANAGE_RETAILERS"
    USER_MANAGEMENT = "USER_MANAGEMENT"
    RETAILER_UAM = "RETAILER_UAM"
    SETTINGS = "SETTINGS"
    LOGIN = "LOGIN"
    SIGNUP = "SIGNUP"


class OrderStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    ON_HOLD = "ON_HOLD"
    REJECTED = "REJECTED"
    CONSOLIDATED = "CONSOLIDATED"
    MASTER_ORDERED = "MASTER_ORDERED"
    SHIPPED = "SHIPPED"
    RECEIVED = "RECEIVED"

    @property
    def label(self) -> str:
        return _ORDER_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return not ORDER_TRANSITIONS[self]

    def can_move_to(self, target: "OrderStatus") -> bool:
        return target in ORDER_TRANSITIONS[self]


_ORDER_LABELS = {
    OrderStatus.REQUESTED: "Pending Approval",
    OrderStatus.APPROVED: "Approved / Pending Consolidation",
    OrderStatus.ON_HOLD: "On Hold",
    OrderStatus.REJECTED: "Rejected",
    OrderStatus.CONSOLIDATED: "Consolidated / Order Not Placed",
    OrderStatus.MASTER_ORDERED: "Consolidated & Order Placed",
    OrderStatus.SHIPPED: "Order Placed / Delivery Pending",
    OrderStatus.RECEIVED: "Order Received",
}

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.REQUESTED: frozenset({OrderStatus.APPROVED, OrderStatus.ON_HOLD, OrderStatus.REJECTED}),
    OrderStatus.APPROVED: frozenset(
        {OrderStatus.ON_HOLD, OrderStatus.REJECTED, OrderStatus.CONSOLIDATED, OrderStatus.MASTER_ORDERED}
    ),
    OrderStatus.ON_HOLD: frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED}),
    OrderStatus.CONSOLIDATED: frozenset({OrderStatus.MASTER_ORDERED, OrderStatus.RECEIVED}),
    OrderStatus.MASTER_ORDERED: frozenset({OrderStatus.SHIPPED, OrderStatus.RECEIVED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.RECEIVED}),
    OrderStatus.RECEIVED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

# Statuses from which stock can be inwarded against the order.
INWARDABLE_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.CONSOLIDATED, OrderStatus.MASTER_ORDERED})


class InventoryStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    SOLD = "SOLD"

    def can_move_to(self, target: "InventoryStatus") -> bool:
        return target in INVENTORY_TRANSITIONS[self]


INVENTORY_TRANSITIONS: dict[InventoryStatus, frozenset[InventoryStatus]] = {
    InventoryStatus.IN_STOCK: frozenset({InventoryStatus.SOLD}),
    InventoryStatus.SOLD: frozenset(),
}


@dataclass(frozen=True)
class DiscountScheme:
    name: str
    amount: float
    is_backend: bool = False


@dataclass(frozen=True)
class PriceItem:
    """One NLC deck row. A new batch is a new record; only the margin is editable."""

    id: str
    manufacturer: str
    model: str
    category: str
    mrp: float
    basic_price: float
    discount_schemes: tuple[DiscountScheme, ...]
    gst_rate: float
    batch_date: datetime
    min_margin_percent: float = 10.0


@dataclass(frozen=True)
class InventoryUnit:
    id: str
    serial_number: str
    price_item_id: str
    status: InventoryStatus
    date_received: datetime
    retailer_id: str
    retailer_po_id: Optional[str] = None
    master_po_id: Optional[str] = None
    brand_invoice_id: Optional[str] = None
    sale_invoice_number: Optional[str] = None
    sale_date: Optional[datetime] = None


@dataclass(frozen=True)
class OrderLine:
    price_item_id: str
    quantity: int


@dataclass(frozen=True)
class MappingLine:
    price_item_id: str
    ordered_qty: int
    received_qty: int
    serial_numbers: tuple[str, ...] = ()


@dataclass(frozen=True)
class PurchaseOrder:
    id: str
    manufacturer: str
    date: datetime
    status: OrderStatus
    retailer_id: str
    items: tuple[OrderLine, ...]
    master_po_id: Optional[str] = None
    brand_invoice_number: Optional[str] = None
    mapping: tuple[MappingLine, ...] = ()


@dataclass(frozen=True)
class SaleLine:
    inventory_id: str
    selling_price: float
    additional_discount: float = 0.0

    @property
    def net_price(self) -> float:
        return float(self.selling_price) - float(self.additional_discount)


@dataclass(frozen=True)
class Sale:
    id: str
    invoice_number: str
    date: datetime
    customer_name: str
    retailer_id: str
    payment_mode: PaymentMode
    items: tuple[SaleLine, ...]
    total_amount: float


@dataclass(frozen=True)
class RetailerProfile:
    id: str
    name: str
    city: str
    area: str
    pincode: str
    showroom_address: str
    godown_address: str
    credit_limit: float
    used_credit: float
    partner_share_percent: float

    @property
    def available_credit(self) -> float:
        return float(self.credit_limit) - float(self.used_credit)


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: str
    role: UserRole
    retailer_id: Optional[str] = None
    retailer_role: Optional[RetailerRole] = None


@dataclass(frozen=True)
class AllowedUser:
    email: str
    role: UserRole
    added_on: datetime
    retailer_id: Optional[str] = None
    retailer_role: Optional[RetailerRole] = None


@dataclass(frozen=True)
class InvoiceSettings:
    company_name: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city_state_zip: str = ""
    gstin: str = ""
    logo_url: str = ""
    terms_and_conditions: str = ""
    bank_details: str = ""


@dataclass
class TaskResult:
    """Outcome of an asynchronous external call."""

    ok: bool
    value: object = None
    error: Optional[str] = None
    cancelled: bool = False


@dataclass(frozen=True)
class AIReport:
    id: str
    timestamp: str
    content: str
    meta: dict = field(default_factory=dict)
