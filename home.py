from __future__ import annotations

import streamlit as st

from grainplan.config import get_settings
from grainplan.db import get_conn, ensure_schema
from grainplan.services.demo_data import upsert_reference_data

st.title("🌾 Grain Marketing Scenarios")
st.caption(
    "Build what-if marketing plans against a production estimate, log virtual sales, "
    "set selling targets, and score how well the plan captured the market."
)

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

st.info(
    "Start with **🧪 Data Management** to load demo prices, then create a plan in **Scenarios**, "
    "record sales and targets in **Sales & Targets**, and score it in **Evaluation**.",
    icon="ℹ️",
)
