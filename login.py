from __future__ import annotations

import streamlit as st

from tradedesk.services.access import login, signup, sso_login
from tradedesk.store import get_state
from tradedesk.ui import sign_in

st.title("🏬 RETO Trade Desk")
st.caption("Procurement, inventory and retail sales across the hub and partner stores.")

state = get_state()

tab_login, tab_signup = st.tabs(["Login", "Sign up"])

with tab_login:
    with st.form("login_form"):
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_password")
        submitted = st.form_submit_button("Login", type="primary")
    if submitted:
        try:
            sign_in(login(state, email, password))
            st.rerun()
        except Exception as e:
            st.error(str(e))

    st.divider()
    sso_email = st.text_input("Continue with Google (enter your Google email)", key="sso_email")
    if st.button("Continue with Google"):
        try:
            sign_in(sso_login(state, sso_email))
            st.rerun()
        except Exception as e:
            st.error(str(e))

with tab_signup:
    st.caption("Only emails on the administrator's allowed list can create an account.")
    with st.form("signup_form"):
        name = st.text_input("Full name", key="signup_name")
        email_s = st.text_input("Email", key="signup_email")
        password_s = st.text_input("Password", type="password", key="signup_password")
        submitted_s = st.form_submit_button("Create account", type="primary")
    if submitted_s:
        try:
            sign_in(signup(state, name, email_s, password_s))
            st.rerun()
        except Exception as e:
            st.error(str(e))

st.info("Demo logins: **admin@reto.ai** (hub admin) or **ravi@ravi.com** (store owner), any password.", icon="ℹ️")
