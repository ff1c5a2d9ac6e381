from __future__ import annotations

import logging
from typing import Optional

import streamlit as st

from tradedesk.models import HUB_RETAILER_ID, AppView, User, UserRole
from tradedesk.services.access import can_view

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "tradedesk_user"


def current_user() -> Optional[User]:
    return st.session_state.get(SESSION_USER_KEY)


def sign_in(user: User) -> None:
    st.session_state[SESSION_USER_KEY] = user


def sign_out() -> None:
    user = st.session_state.pop(SESSION_USER_KEY, None)
    if user is not None:
        logger.info("User %s logged out", user.email)


def active_retailer_id(user: User) -> str:
    """Admins work from the central hub; store users from their own store."""
    if user.role == UserRole.ADMIN:
        return HUB_RETAILER_ID
    return user.retailer_id or HUB_RETAILER_ID


def require_view(view: AppView) -> User:
    """Stop rendering unless someone is signed in and may open `view`."""
    user = current_user()
    if user is None:
        st.info("Please sign in to continue.")
        st.stop()
    if not can_view(user, view):
        st.error("You do not have access to this page.")
        st.stop()
    return user


def money(value: float, currency: str = "INR") -> str:
    symbol = "₹" if currency == "INR" else f"{currency} "
    return f"{symbol}{value:,.0f}"
