"""Tests for fiscal and calendar month keys."""
import pytest

from wisdom_bi.forecast.months import generate_month_keys, month_name_to_key


class TestGenerateMonthKeys:
    """Tests for generate_month_keys."""

    def test_fy_runs_july_to_june(self, fy_months):
        """FY2026 covers July 2025 to June 2026."""
        assert generate_month_keys(2026, "FY") == fy_months

    def test_fy_is_the_default(self):
        assert generate_month_keys(2026) == generate_month_keys(2026, "FY")

    def test_cy_runs_january_to_december(self):
        keys = generate_month_keys(2026, "CY")
        assert keys[0] == "2026-01"
        assert keys[-1] == "2026-12"

    @pytest.mark.parametrize("year", [1999, 2024, 2026, 2100])
    @pytest.mark.parametrize("year_type", ["FY", "CY"])
    def test_twelve_unique_ordered_keys(self, year, year_type):
        """Always twelve unique keys in chronological order."""
        keys = generate_month_keys(year, year_type)
        assert len(keys) == 12
        assert len(set(keys)) == 12
        assert keys == sorted(keys)


class TestMonthNameToKey:
    """Tests for converting spoken month names."""

    def test_second_half_of_fy_uses_label_year(self):
        assert month_name_to_key("February", 2026, "FY") == "2026-02"

    def test_first_half_of_fy_uses_previous_year(self):
        assert month_name_to_key("september", 2026, "FY") == "2025-09"

    def test_calendar_year(self):
        assert month_name_to_key("September", 2026, "CY") == "2026-09"

    def test_existing_key_passes_through(self):
        assert month_name_to_key("2026-03", 2026) == "2026-03"
