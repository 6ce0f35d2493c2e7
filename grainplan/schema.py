SCHEMA_SQL = r"""
-- Reference data (maintained outside the scenario engine)
CREATE TABLE IF NOT EXISTS crops (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS crop_classes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  crop_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  UNIQUE (crop_id, name),
  FOREIGN KEY (crop_id) REFERENCES crops(id)
);

CREATE TABLE IF NOT EXISTS regions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS towns (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  region_id INTEGER,
  FOREIGN KEY (region_id) REFERENCES regions(id)
);

CREATE TABLE IF NOT EXISTS elevators (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);

-- Daily price observations (read-only time series for the engine)
CREATE TABLE IF NOT EXISTS grain_entries (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  entry_date TEXT NOT NULL,              -- ISO date
  crop_id INTEGER NOT NULL,
  class_id INTEGER,
  elevator_id INTEGER,
  town_id INTEGER,
  cash_price REAL,                       -- per bushel
  futures_price REAL,
  basis REAL,                            -- cash - futures when not supplied
  contract_month TEXT,
  FOREIGN KEY (crop_id) REFERENCES crops(id),
  FOREIGN KEY (class_id) REFERENCES crop_classes(id),
  FOREIGN KEY (elevator_id) REFERENCES elevators(id),
  FOREIGN KEY (town_id) REFERENCES towns(id)
);

CREATE INDEX IF NOT EXISTS ix_grain_entries_date ON grain_entries(entry_date);

-- Marketing scenarios
CREATE TABLE IF NOT EXISTS scenarios (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  description TEXT,

  crop_id INTEGER,
  class_id INTEGER,
  region_id INTEGER,
  town_id INTEGER,
  elevator_id INTEGER,

  start_date TEXT NOT NULL,
  end_date TEXT NOT NULL,
  production_estimate REAL NOT NULL,     -- bushels

  status TEXT NOT NULL DEFAULT 'planning',  -- planning / active / closed / evaluated
  risk_tolerance TEXT,                   -- conservative / moderate / aggressive
  market_assumptions TEXT,
  notes TEXT,

  created_by TEXT NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  deleted_at TEXT,                       -- soft delete when evaluations exist

  FOREIGN KEY (crop_id) REFERENCES crops(id),
  FOREIGN KEY (class_id) REFERENCES crop_classes(id),
  FOREIGN KEY (region_id) REFERENCES regions(id),
  FOREIGN KEY (town_id) REFERENCES towns(id),
  FOREIGN KEY (elevator_id) REFERENCES elevators(id)
);

-- Virtual (hypothetical) sales
CREATE TABLE IF NOT EXISTS scenario_sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  scenario_id INTEGER NOT NULL,
  sale_date TEXT NOT NULL,
  volume_bushels REAL NOT NULL,
  percentage_of_production REAL NOT NULL,

  price_type TEXT NOT NULL,              -- manual / grain_entry / current_market
  cash_price REAL,
  futures_price REAL,
  basis REAL,
  grain_entry_id INTEGER,

  elevator_id INTEGER,
  town_id INTEGER,
  contract_month TEXT,
  notes TEXT,

  created_by TEXT NOT NULL,
  created_at TEXT NOT NULL,

  FOREIGN KEY (scenario_id) REFERENCES scenarios(id) ON DELETE CASCADE,
  FOREIGN KEY (grain_entry_id) REFERENCES grain_entries(id),
  FOREIGN KEY (elevator_id) REFERENCES elevators(id),
  FOREIGN KEY (town_id) REFERENCES towns(id)
);

-- Target-selling timeline
CREATE TABLE IF NOT EXISTS scenario_recommendations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  scenario_id INTEGER NOT NULL,
  target_date TEXT NOT NULL,
  target_percentage_sold REAL NOT NULL,
  notes TEXT,
  created_by TEXT NOT NULL,
  created_at TEXT NOT NULL,
  UNIQUE (scenario_id, target_date),
  FOREIGN KEY (scenario_id) REFERENCES scenarios(id) ON DELETE CASCADE
);

-- Immutable performance snapshots
CREATE TABLE IF NOT EXISTS scenario_evaluations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  scenario_id INTEGER NOT NULL,
  evaluation_date TEXT NOT NULL,

  percentage_sold REAL NOT NULL,
  total_volume_sold REAL NOT NULL,
  average_price_achieved REAL NOT NULL,
  market_average_price REAL NOT NULL,
  market_high_price REAL NOT NULL,
  market_low_price REAL NOT NULL,
  performance_score REAL NOT NULL,
  variance_from_recommendation REAL NOT NULL,
  opportunities_missed INTEGER NOT NULL DEFAULT 0,
  total_revenue REAL NOT NULL,
  unrealized_value REAL NOT NULL,
  evaluation_notes TEXT,

  is_final INTEGER NOT NULL DEFAULT 0,
  created_by TEXT NOT NULL,
  created_at TEXT NOT NULL,

  FOREIGN KEY (scenario_id) REFERENCES scenarios(id) ON DELETE CASCADE
);

-- At most one final evaluation per scenario
CREATE UNIQUE INDEX IF NOT EXISTS ux_scenario_final_evaluation
  ON scenario_evaluations(scenario_id) WHERE is_final = 1;
"""
