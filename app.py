from __future__ import annotations

import streamlit as st

from grainplan.config import setup_logging

setup_logging()

st.set_page_config(page_title="Grain Marketing Scenarios", page_icon="🌾", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_📋_Scenarios.py", title="Scenarios", icon="📋"),
    st.Page("pages/2_🌾_Sales_&_Targets.py", title="Sales & Targets", icon="🌾"),
    st.Page("pages/3_📈_Evaluation.py", title="Evaluation", icon="📈"),
    st.Page("pages/4_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
