from __future__ import annotations

import streamlit as st
import pandas as pd

from pos_core.services.products import get_low_stock_products
from pos_core.services.sales import get_sales, get_total_sales_amount
from pos_core.services.maintenance import table_counts
from pos_core.session import open_database

st.set_page_config(page_title="POS Invoicing", page_icon="🧾", layout="wide")

st.title("🧾 POS Invoicing")
st.caption("Products, customers and invoices in a local database. Stock moves with every sale.")

settings, db = open_database()

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

counts = table_counts(db)
c1, c2, c3, c4 = st.columns(4)
c1.metric("Products", counts["products"])
c2.metric("Customers", counts["customers"])
c3.metric("Invoices", counts["sales"])
c4.metric("Revenue", f"{get_total_sales_amount(db):,.2f} {settings.currency}")

st.subheader(f"Low stock (≤ {settings.low_stock_threshold})")
low = get_low_stock_products(db, settings.low_stock_threshold)
if low:
    st.dataframe(
        pd.DataFrame([{"name": p.name, "price": p.price, "stock_qty": p.stock_qty} for p in low]),
        use_container_width=True,
        hide_index=True,
    )
else:
    st.caption("No products at or below the threshold.")

recent = get_sales(db)[:5]
if recent:
    st.subheader("Latest invoices")
    for s in recent:
        st.write(f"**#{s.invoice_number}** • {s.customer.name} • {s.total:,.2f}")
