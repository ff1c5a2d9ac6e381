from __future__ import annotations

import streamlit as st
import pandas as pd

from tradedesk.config import get_settings
from tradedesk.models import AppView, UserRole
from tradedesk.services import analytics
from tradedesk.services.insights import check_backend
from tradedesk.services.inventory import location_name
from tradedesk.services.retailers import areas, cities
from tradedesk.store import get_state
from tradedesk.ui import active_retailer_id, money, require_view, sign_out
from tradedesk.utils import utcnow

st.set_page_config(page_title="RETO Trade Desk", page_icon="🏬", layout="wide")

settings = get_settings()
state = get_state()
user = require_view(AppView.DASHBOARD)
is_admin = user.role == UserRole.ADMIN
retailer_id = active_retailer_id(user)

st.title("📊 Dashboard")
st.caption(f"Signed in as **{user.name}** • {location_name(state, retailer_id)}")

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**API base URL:** `{settings.api_base_url or 'not set'}`")
    if st.button("Check backend"):
        if check_backend(settings.api_base_url):
            st.success("Backend reachable.")
        else:
            st.warning("Backend not reachable (see logs).")
    st.divider()
    if st.button("Log out"):
        sign_out()
        st.rerun()

period = st.radio(
    "Period",
    options=[analytics.DAY, analytics.WEEK, analytics.MONTH, analytics.CUSTOM],
    format_func=lambda p: analytics.PERIOD_LABELS[p],
    index=2,
    horizontal=True,
)
start = end = None
if period == analytics.CUSTOM:
    c1, c2 = st.columns(2)
    start = c1.date_input("From", value=utcnow().date())
    end = c2.date_input("To", value=utcnow().date())

all_sales = state.sales()
my_sales = all_sales if is_admin else [s for s in all_sales if s.retailer_id == retailer_id]
period_sales = analytics.filter_sales_by_period(my_sales, period, start=start, end=end)

k = analytics.kpis(state, period_sales, None if is_admin else retailer_id)
c1, c2, c3, c4 = st.columns(4)
c1.metric(f"Revenue ({analytics.PERIOD_LABELS[period]})", money(k["revenue"], settings.currency))
c2.metric("Gross profit", money(k["gross_profit"], settings.currency), f"{k['margin_percent']:.1f}%")
c3.metric("Units in stock", f"{k['stock_count']}")
c4.metric("Stock value (NLC)", money(k["stock_value"], settings.currency))

tab_trend, tab_recent, tab_extra = st.tabs(
    ["Sales trend", "Recent sales", "Retailer performance" if is_admin else "Store analytics"]
)

with tab_trend:
    frame = analytics.sales_frame(state, period_sales)
    if frame.empty:
        st.info("No sales in this period.")
    else:
        by_date = analytics.revenue_by_date(frame)
        st.bar_chart(by_date.set_index("day")[["revenue", "gm"]])
        st.subheader("By brand")
        st.dataframe(analytics.revenue_by_brand(frame), use_container_width=True, hide_index=True)

with tab_recent:
    f1, f2, f3 = st.columns(3)
    date_q = f1.text_input("Date contains (YYYY-MM-DD)", key="recent_date")
    retailer_q = f2.text_input("Store contains", key="recent_retailer")
    model_q = f3.text_input("Model contains", key="recent_model")
    rows = analytics.recent_sales(state, period_sales, date_q, retailer_q, model_q)
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.caption("No matching sales.")

with tab_extra:
    if is_admin:
        f1, f2 = st.columns(2)
        city = f1.selectbox("City", options=["ALL"] + cities(state))
        area = f2.selectbox("Area", options=["ALL"] + areas(state, city))
        perf = analytics.filter_sales_by_period(all_sales, period, start=start, end=end)
        st.dataframe(
            pd.DataFrame(analytics.retailer_performance(state, perf, city=city, area=area)),
            use_container_width=True,
            hide_index=True,
        )
    else:
        window = st.radio("Window", options=[analytics.WEEK, analytics.MONTH, analytics.QUARTER], index=1, horizontal=True)
        rolling = analytics.filter_sales_by_period(my_sales, window, rolling=True)
        rframe = analytics.sales_frame(state, rolling)
        if rframe.empty:
            st.info("No sales in this window.")
        else:
            st.line_chart(analytics.revenue_by_date(rframe).set_index("day")[["revenue", "gm"]])
            st.dataframe(analytics.revenue_by_brand(rframe), use_container_width=True, hide_index=True)
