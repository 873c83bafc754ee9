from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Feel Good Farm Stall", page_icon="🥕", layout="wide")

pages = [
    st.Page("home.py", title="Dashboard", icon="🏠"),
    st.Page("pages/1_⚖️_Weighing.py", title="Weighing", icon="⚖️"),
    st.Page("pages/2_📦_Inventory.py", title="Inventory", icon="📦"),
    st.Page("pages/3_🏪_Farm_Stall.py", title="Farm Stall", icon="🏪"),
    st.Page("pages/4_📊_Reports.py", title="Reports", icon="📊"),
    st.Page("pages/5_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
