from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "GRAINPLAN_DATA_DIR"
ENV_LOG_LEVEL = "GRAINPLAN_LOG_LEVEL"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "CAD"


@dataclass(frozen=True)
class Tuning:
    """
    Engine constants that are policy, not domain law.
    Any field can be overridden from the "tuning" section of settings.json.
    """

    # Validation sanity bounds
    max_production_estimate: float = 10_000_000.0
    max_cash_price: float = 1000.0
    max_sale_to_production_ratio: float = 2.0
    max_cumulative_sold_ratio: float = 1.5

    # Timeline health band (percentage points either side of target)
    on_track_tolerance_pct: float = 5.0

    # Evaluation
    opportunity_percentile: float = 90.0
    price_weight: float = 0.7
    adherence_weight: float = 0.3
    notes_variance_threshold_pct: float = 15.0

    # Readiness for evaluation
    ready_sold_pct: float = 80.0


DEFAULT_TUNING = Tuning()


def _default_data_dir() -> Path:
    return Path.home() / ".grainplan"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable settings file %s", cfg)
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = _load_persisted_settings(data_dir)
    payload["data_dir"] = str(data_dir)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state["grainplan_data_dir"] = str(data_dir)


def tuning_from_dict(overrides: dict | None) -> Tuning:
    """Build a Tuning from a plain dict, ignoring unknown keys."""
    if not overrides:
        return DEFAULT_TUNING
    known = {f.name for f in fields(Tuning)}
    clean = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning("Unknown tuning key ignored: %s", key)
            continue
        clean[key] = float(value)
    return replace(DEFAULT_TUNING, **clean)


def load_tuning(data_dir: Path) -> Tuning:
    return tuning_from_dict(_load_persisted_settings(data_dir).get("tuning"))


def resolve_data_dir() -> Path:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if "grainplan_data_dir" in st.session_state:
        return Path(st.session_state["grainplan_data_dir"]).expanduser().resolve()
    if os.getenv(ENV_DATA_DIR):
        return Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    default_dir = _default_data_dir()
    persisted = _load_persisted_settings(default_dir)
    return Path(persisted.get("data_dir", default_dir)).expanduser().resolve()


@st.cache_resource
def get_settings() -> Settings:
    data_dir = resolve_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "app.db"
    return Settings(data_dir=data_dir, db_path=db_path)


@st.cache_resource
def get_tuning() -> Tuning:
    return load_tuning(get_settings().data_dir)


def setup_logging() -> None:
    level = os.getenv(ENV_LOG_LEVEL, "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
