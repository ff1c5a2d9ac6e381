from __future__ import annotations

import streamlit as st

from tradedesk.config import get_settings
from tradedesk.logs import configure_logging
from tradedesk.models import AppView
from tradedesk.services.access import nav_label, visible_views
from tradedesk.ui import current_user

st.set_page_config(page_title="RETO Trade Desk", page_icon="🏬", layout="wide")

configure_logging(get_settings())

PAGE_FILES = {
    AppView.DASHBOARD: ("home.py", "📊"),
    AppView.INVENTORY: ("pages/1_📦_Inventory.py", "📦"),
    AppView.NLC_UPLOAD: ("pages/2_📑_NLC_Deck.py", "📑"),
    AppView.PURCHASE_ORDERS: ("pages/3_🚚_Purchase_Orders.py", "🚚"),
    AppView.SALES: ("pages/4_🛒_Sales.py", "🛒"),
    AppView.MANAGE_RETAILERS: ("pages/5_📈_Retailer_Performance.py", "📈"),
    AppView.USER_MANAGEMENT: ("pages/8_🛡️_User_Access.py", "🛡️"),
    AppView.RETAILER_UAM: ("pages/9_🔒_Store_Team.py", "🔒"),
    AppView.AI_INSIGHTS: ("pages/6_🤖_AI_Insights.py", "🤖"),
    AppView.SETTINGS: ("pages/7_⚙️_Doc_Settings.py", "⚙️"),
}

user = current_user()
if user is None:
    pages = [st.Page("login.py", title="Sign in", icon="🔐")]
else:
    pages = [
        st.Page(PAGE_FILES[v][0], title=nav_label(user, v), icon=PAGE_FILES[v][1], default=(v == AppView.DASHBOARD))
        for v in visible_views(user)
    ]

st.navigation(pages).run()
