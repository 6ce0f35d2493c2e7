"""Tests for input validation rules."""

from datetime import date

import pytest

from grainplan.config import tuning_from_dict
from grainplan.services.validation import (
    SEVERITY_WARNING,
    validate_recommendation,
    validate_recommendation_sequence,
    validate_sale,
    validate_scenario,
)


@pytest.fixture
def good_scenario():
    return {
        "name": "Canola fall plan",
        "crop_id": 1,
        "start_date": "2024-09-01",
        "end_date": "2025-03-31",
        "production_estimate": 20000,
    }


@pytest.fixture
def good_sale():
    return {
        "sale_date": "2024-10-15",
        "volume_bushels": 2000,
        "price_type": "manual",
        "cash_price": 14.25,
    }


class TestValidateScenario:
    def test_valid(self, good_scenario):
        result = validate_scenario(good_scenario)
        assert result.is_valid
        assert result.errors == []

    def test_all_errors_collected(self):
        result = validate_scenario({"name": "  ", "start_date": "2024-05-01", "end_date": "2024-05-01"})

        assert not result.is_valid
        assert result.fields() == {"name", "end_date", "production_estimate", "granularity"}

    def test_name_too_long(self, good_scenario):
        good_scenario["name"] = "x" * 201
        assert validate_scenario(good_scenario).fields() == {"name"}

    def test_name_length_ignores_surrounding_whitespace(self, good_scenario):
        good_scenario["name"] = "  " + "x" * 200 + "  "
        assert validate_scenario(good_scenario).is_valid

        good_scenario["name"] = " " + "x" * 201 + " "
        assert validate_scenario(good_scenario).fields() == {"name"}

    def test_end_before_start(self, good_scenario):
        good_scenario["end_date"] = "2024-08-01"
        assert validate_scenario(good_scenario).fields() == {"end_date"}

    def test_bad_date_string(self, good_scenario):
        good_scenario["start_date"] = "not-a-date"
        assert "start_date" in validate_scenario(good_scenario).fields()

    @pytest.mark.parametrize("estimate", [0, -5, 10_000_001])
    def test_production_estimate_bounds(self, good_scenario, estimate):
        good_scenario["production_estimate"] = estimate
        assert validate_scenario(good_scenario).fields() == {"production_estimate"}

    def test_production_ceiling_is_tunable(self, good_scenario):
        good_scenario["production_estimate"] = 10_000_001
        tuning = tuning_from_dict({"max_production_estimate": 50_000_000})
        assert validate_scenario(good_scenario, tuning=tuning).is_valid

    def test_any_single_scope_is_enough(self, good_scenario):
        del good_scenario["crop_id"]
        good_scenario["town_id"] = 3
        assert validate_scenario(good_scenario).is_valid

    @pytest.mark.parametrize("key", ["crop_id", "class_id", "region_id", "town_id", "elevator_id"])
    def test_non_numeric_scope_id(self, good_scenario, key):
        good_scenario[key] = "abc"
        result = validate_scenario(good_scenario)

        assert result.fields() == {key}
        assert "valid id" in result.summary()

    def test_unknown_risk_tolerance(self, good_scenario):
        good_scenario["risk_tolerance"] = "reckless"
        assert validate_scenario(good_scenario).fields() == {"risk_tolerance"}


class TestValidateSale:
    def test_valid(self, good_sale):
        assert validate_sale(good_sale, 20000, []).is_valid

    @pytest.mark.parametrize("volume", [0, -10])
    def test_volume_must_be_positive(self, good_sale, volume):
        good_sale["volume_bushels"] = volume
        assert validate_sale(good_sale, 20000, []).fields() == {"volume_bushels"}

    def test_volume_above_twice_production(self, good_sale):
        good_sale["volume_bushels"] = 40001
        assert "volume_bushels" in validate_sale(good_sale, 20000, []).fields()

    def test_cumulative_oversell_blocks(self, good_sale, make_sale):
        existing = [make_sale(29000, 14.0)]
        good_sale["volume_bushels"] = 1001

        result = validate_sale(good_sale, 20000, existing)
        assert not result.is_valid
        assert "150%" in result.summary()

    def test_cumulative_at_limit_is_allowed(self, good_sale, make_sale):
        existing = [make_sale(29000, 14.0)]
        good_sale["volume_bushels"] = 1000
        assert validate_sale(good_sale, 20000, existing).is_valid

    def test_manual_requires_cash_price(self, good_sale):
        del good_sale["cash_price"]
        assert validate_sale(good_sale, 20000, []).fields() == {"cash_price"}

    def test_grain_entry_requires_reference(self, good_sale):
        good_sale["price_type"] = "grain_entry"
        assert validate_sale(good_sale, 20000, []).fields() == {"grain_entry_id"}

    def test_non_numeric_grain_entry_id(self, good_sale):
        good_sale["price_type"] = "grain_entry"
        good_sale["grain_entry_id"] = "abc"
        assert validate_sale(good_sale, 20000, []).fields() == {"grain_entry_id"}

    def test_unknown_price_type(self, good_sale):
        good_sale["price_type"] = "barter"
        assert validate_sale(good_sale, 20000, []).fields() == {"price_type"}

    def test_price_bounds(self, good_sale):
        good_sale["cash_price"] = 1000.01
        good_sale["futures_price"] = -1
        assert validate_sale(good_sale, 20000, []).fields() == {"cash_price", "futures_price"}

    def test_sale_outside_window(self, good_sale):
        window = (date(2024, 11, 1), date(2024, 12, 31))
        assert validate_sale(good_sale, 20000, [], window=window).fields() == {"sale_date"}

    def test_missing_sale_date(self, good_sale):
        del good_sale["sale_date"]
        assert validate_sale(good_sale, 20000, []).fields() == {"sale_date"}


class TestValidateRecommendation:
    start = date(2024, 1, 1)
    end = date(2024, 6, 30)

    def test_valid_on_window_edges(self):
        assert validate_recommendation({"target_date": self.start, "target_percentage_sold": 0}, self.start, self.end).is_valid
        assert validate_recommendation({"target_date": self.end, "target_percentage_sold": 100}, self.start, self.end).is_valid

    def test_date_outside_window(self):
        result = validate_recommendation({"target_date": "2024-07-01", "target_percentage_sold": 50}, self.start, self.end)
        assert result.fields() == {"target_date"}

    @pytest.mark.parametrize("pct", [-1, 100.5, None])
    def test_percentage_bounds(self, pct):
        result = validate_recommendation({"target_date": "2024-03-01", "target_percentage_sold": pct}, self.start, self.end)
        assert result.fields() == {"target_percentage_sold"}


class TestRecommendationSequence:
    def test_increasing_is_clean(self, make_point):
        pts = [make_point(date(2024, 2, 1), 20), make_point(date(2024, 3, 1), 40)]
        result = validate_recommendation_sequence(pts)
        assert result.is_valid
        assert result.errors == []

    def test_decrease_is_warning_only(self, make_point):
        pts = [
            make_point(date(2024, 3, 1), 60),
            make_point(date(2024, 2, 1), 40),
            make_point(date(2024, 4, 1), 50),
        ]
        result = validate_recommendation_sequence(pts)

        assert result.is_valid
        assert len(result.warnings) == 1
        assert result.warnings[0].severity == SEVERITY_WARNING
        assert "2024-04-01" in result.warnings[0].message

    def test_duplicate_dates_are_errors(self):
        pts = [
            {"target_date": "2024-02-01", "target_percentage_sold": 20},
            {"target_date": "2024-02-01", "target_percentage_sold": 30},
        ]
        result = validate_recommendation_sequence(pts)
        assert not result.is_valid
        assert result.fields() == {"recommendations"}
