from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from tradedesk.errors import NotFoundError, PreconditionError, ValidationError
from tradedesk.models import AllowedUser, AppView, RetailerRole, User, UserRole
from tradedesk.store import AppState
from tradedesk.utils import as_utc, norm_email, utcnow

logger = logging.getLogger(__name__)

NAV_LABELS = {
    AppView.DASHBOARD: "Dashboard",
    AppView.INVENTORY: "Inventory Status",
    AppView.NLC_UPLOAD: "Manage NLC",
    AppView.PURCHASE_ORDERS: "Purchase Orders",
    AppView.SALES: "Sales & Invoice",
    AppView.MANAGE_RETAILERS: "Retailer Performance",
    AppView.USER_MANAGEMENT: "User Access (UAM)",
    AppView.RETAILER_UAM: "Store Team",
    AppView.AI_INSIGHTS: "Reto AI Assistant",
    AppView.SETTINGS: "Doc Settings",
}

ROLE_SCOPES = {
    RetailerRole.OWNER: "Full Access",
    RetailerRole.FLOOR_MANAGER: "Full Access",
    RetailerRole.ACCOUNTANT: "Create POs, Invoices, View Reports",
    RetailerRole.SALES_REP: "View Inventory, Create Invoice Drafts, Incentives",
}


def _new_user_id() -> str:
    return f"u-{uuid.uuid4().hex[:9]}"


def _require_email(email: Optional[str]) -> str:
    e = norm_email(email)
    if not e or "@" not in e:
        raise ValidationError("A valid email is required.")
    return e


# -------------------------
# Sign-in
# -------------------------

def login(state: AppState, email: str, password: str) -> User:
    # Mock credentials: any non-empty password for a known user.
    user = state.user_by_email(email)
    if user is None or not password:
        logger.info("Failed login for %s", norm_email(email))
        raise ValidationError("Invalid credentials or user does not exist.")
    logger.info("User %s logged in", user.email)
    return user


def _user_from_allow_list(state: AppState, entry: AllowedUser, name: str) -> User:
    user = User(
        id=_new_user_id(),
        email=entry.email,
        name=name,
        role=entry.role,
        retailer_id=entry.retailer_id,
        retailer_role=entry.retailer_role,
    )
    state.add_user(user)
    logger.info("Signed up %s as %s", user.email, user.role.value)
    return user


def signup(state: AppState, name: str, email: str, password: str) -> User:
    """Only allow-listed emails can register; role and store come from the allow-list entry."""
    if state.user_by_email(email) is not None:
        raise ValidationError("User already exists. Please login.")
    entry = state.allowed_user(email)
    if entry is None:
        raise ValidationError("Access Denied. Your email is not whitelisted by the Administrator.")
    if not str(name or "").strip():
        raise ValidationError("Name is required.")
    if not password:
        raise ValidationError("Password is required.")
    return _user_from_allow_list(state, entry, str(name).strip())


def sso_login(state: AppState, email: str) -> User:
    email = _require_email(email)
    existing = state.user_by_email(email)
    if existing is not None:
        return existing
    entry = state.allowed_user(email)
    if entry is None:
        raise ValidationError(f"Google Account ({email}) is not authorized. Contact Admin.")
    return _user_from_allow_list(state, entry, email.split("@")[0])


# -------------------------
# Allow-list management
# -------------------------

def grant_access(
    state: AppState,
    email: str,
    role: UserRole,
    retailer_id: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> AllowedUser:
    if not str(email or "").strip():
        raise ValidationError("Email is required")
    email = _require_email(email)
    role = UserRole(role)
    if role == UserRole.RETAILER:
        if not retailer_id:
            raise ValidationError("Please select a Retailer ID to link this user to.")
        state.require_retailer(retailer_id)
    if state.allowed_user(email) is not None:
        raise ValidationError("User already in Allowed List.")

    entry = AllowedUser(
        email=email,
        role=role,
        added_on=as_utc(now or utcnow()),
        retailer_id=retailer_id if role == UserRole.RETAILER else None,
        # A store login granted by the hub administers that store.
        retailer_role=RetailerRole.OWNER if role == UserRole.RETAILER else None,
    )
    state.add_allowed_user(entry)
    logger.info("Access granted to %s (%s)", email, role.value)
    return entry


def add_team_member(
    state: AppState,
    owner_retailer_id: str,
    email: str,
    retailer_role: RetailerRole,
    *,
    now: Optional[datetime] = None,
) -> AllowedUser:
    email = _require_email(email)
    state.require_retailer(owner_retailer_id)
    retailer_role = RetailerRole(retailer_role)
    if retailer_role == RetailerRole.OWNER:
        raise ValidationError("A store has one owner; pick another team role.")
    if state.allowed_user(email) is not None:
        raise ValidationError("User already exists")

    entry = AllowedUser(
        email=email,
        role=UserRole.RETAILER,
        added_on=as_utc(now or utcnow()),
        retailer_id=owner_retailer_id,
        retailer_role=retailer_role,
    )
    state.add_allowed_user(entry)
    logger.info("Added %s access for %s at %s", entry.retailer_role.value, email, owner_retailer_id)
    return entry


def revoke_access(state: AppState, email: str, *, acting_email: Optional[str] = None) -> None:
    if acting_email is not None and norm_email(acting_email) == norm_email(email):
        raise PreconditionError("You cannot revoke your own access.")
    if not state.remove_allowed_user(email):
        raise NotFoundError(f"{email} is not in the allowed list.")
    logger.info("Access revoked for %s", norm_email(email))


def remove_team_member(state: AppState, retailer_id: str, email: str, *, acting_email: Optional[str] = None) -> None:
    """Store owners manage their own team; the owner entry itself stays."""
    entry = state.allowed_user(email)
    if entry is None or entry.retailer_id != retailer_id:
        raise NotFoundError(f"{email} is not on this store's team.")
    if entry.retailer_role == RetailerRole.OWNER:
        raise PreconditionError("The store owner cannot be removed.")
    revoke_access(state, email, acting_email=acting_email)


def team_members(state: AppState, retailer_id: str) -> list[AllowedUser]:
    return [u for u in state.allowed_users() if u.retailer_id == retailer_id and u.role == UserRole.RETAILER]


# -------------------------
# Navigation rules
# -------------------------

def effective_retailer_role(user: User) -> RetailerRole:
    # Store logins without an explicit role act as owners.
    return user.retailer_role or RetailerRole.OWNER


def has_access(user: User, roles: Iterable[RetailerRole]) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    rr = effective_retailer_role(user)
    if rr in (RetailerRole.OWNER, RetailerRole.FLOOR_MANAGER):
        return True
    return rr in set(roles)


def can_view(user: User, view: AppView) -> bool:
    is_admin = user.role == UserRole.ADMIN
    is_retailer = user.role == UserRole.RETAILER
    if view in (AppView.DASHBOARD, AppView.INVENTORY, AppView.NLC_UPLOAD, AppView.AI_INSIGHTS):
        return True
    if view == AppView.PURCHASE_ORDERS:
        return is_admin or has_access(user, [RetailerRole.ACCOUNTANT, RetailerRole.OWNER])
    if view == AppView.SALES:
        return is_retailer and has_access(user, [RetailerRole.ACCOUNTANT, RetailerRole.SALES_REP, RetailerRole.OWNER])
    if view == AppView.MANAGE_RETAILERS:
        return is_admin or effective_retailer_role(user) == RetailerRole.OWNER
    if view == AppView.USER_MANAGEMENT:
        return is_admin
    if view == AppView.RETAILER_UAM:
        return is_retailer and effective_retailer_role(user) == RetailerRole.OWNER
    if view == AppView.SETTINGS:
        return is_admin or (is_retailer and has_access(user, [RetailerRole.ACCOUNTANT, RetailerRole.OWNER]))
    return False


def visible_views(user: User) -> list[AppView]:
    return [v for v in NAV_LABELS if can_view(user, v)]


def nav_label(user: User, view: AppView) -> str:
    if view == AppView.PURCHASE_ORDERS and user.role != UserRole.ADMIN:
        return "My Orders"
    return NAV_LABELS[view]
