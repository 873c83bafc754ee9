from __future__ import annotations

import streamlit as st

from farmstall.services.reports import TIMEFRAMES, dashboard_totals, group_by_type, items_frame, sales_time_series
from farmstall.session import bootstrap

st.set_page_config(page_title="Feel Good Farm Stall", page_icon="🥕", layout="wide")

st.title("🥕 Feel Good Farm Stall")
st.caption("Produce intake, storage, farm stall display and sales at a glance.")

ctx = bootstrap()
cur = ctx.settings.currency
inventory = ctx.inventory

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{ctx.settings.data_dir}`")
    st.write(f"**Database:** `{ctx.settings.db_path.name}`")
    batch = ctx.workflow.batch
    if batch is not None:
        st.warning(f"Batch in progress: **{batch.type}**", icon="⚖️")

labels = {"week": "This week", "month": "This month", "all": "All time"}
timeframe = st.radio(
    "Timeframe",
    options=list(TIMEFRAMES),
    format_func=lambda t: labels[t],
    horizontal=True,
)

totals = dashboard_totals(inventory.inventory, inventory.sales, timeframe)

c1, c2, c3, c4 = st.columns(4)
c1.metric("Total Sales", f"{cur}{totals.total_sales:,.2f}", help=labels[timeframe])
c2.metric("Profit", f"{cur}{totals.profit:,.2f}", help=labels[timeframe])
c3.metric("Items Sold", f"{totals.items_sold}", help=labels[timeframe])
c4.metric("Current Inventory", f"{totals.inventory_count}", help=f"Value {cur}{totals.inventory_value:,.2f}")

st.subheader("Sales Overview")
series = sales_time_series(inventory.sales, timeframe)
if series.empty:
    st.info("No sales data available for this period.")
else:
    st.bar_chart(series.set_index("date")[["sales", "profit"]], stack=False)

st.divider()
st.subheader("Farm Stall Inventory")
stall = inventory.farm_stall_items
if stall:
    df = items_frame(stall)[["type", "weight", "sale_price", "cost_price", "date"]]
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption("By type")
    st.dataframe(group_by_type(stall), use_container_width=True, hide_index=True)
else:
    st.info("No items currently in farm stall.")

st.subheader("Storage")
storage = inventory.storage_items
if storage:
    st.dataframe(group_by_type(storage), use_container_width=True, hide_index=True)
else:
    st.caption("No items in storage.")
