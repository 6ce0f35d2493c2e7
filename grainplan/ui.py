from __future__ import annotations

import sqlite3

import pandas as pd
import streamlit as st

from grainplan.config import get_settings, get_tuning, Tuning
from grainplan.db import get_conn, ensure_schema, q
from grainplan.services.validation import ValidationResult, SEVERITY_WARNING

ACTOR_KEY = "grainplan_actor"


def page_conn() -> tuple[sqlite3.Connection, Tuning]:
    settings = get_settings()
    conn = get_conn(settings.db_path)
    ensure_schema(conn)
    return conn, get_tuning()


def actor_id() -> str:
    # No login here: whoever is named in the sidebar is recorded on every change.
    with st.sidebar:
        name = st.text_input("Your name", value=st.session_state.get(ACTOR_KEY, "advisor"), key="actor_name")
    st.session_state[ACTOR_KEY] = name.strip() or "advisor"
    return st.session_state[ACTOR_KEY]


def show_validation(result: ValidationResult) -> None:
    for e in result.errors:
        if e.severity == SEVERITY_WARNING:
            st.warning(f"**{e.field}**: {e.message}")
        else:
            st.error(f"**{e.field}**: {e.message}")


def lookup(conn, table: str) -> dict[str, int]:
    rows = q(conn, f"SELECT id, name FROM {table} ORDER BY name")
    return {str(r["name"]): int(r["id"]) for r in rows}


def pick_optional(label: str, options: dict[str, int], key: str):
    choice = st.selectbox(label, options=["(any)"] + list(options), index=0, key=key)
    return options.get(choice)


def pick_scenario(summaries, key: str = "scenario_pick"):
    if not summaries:
        return None
    labels = {f"#{s.scenario.id} {s.scenario.name} [{s.scenario.status}]": s for s in summaries}
    choice = st.selectbox("Scenario", options=list(labels), key=key)
    return labels[choice]


def records_frame(records) -> pd.DataFrame:
    return pd.DataFrame([r.__dict__ if hasattr(r, "__dict__") else dict(r) for r in records])
