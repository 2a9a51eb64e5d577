"""Tests for the P&L line assembler."""
import pytest

from wisdom_bi.forecast.assembler import (
    generate_employees,
    generate_employees_from_decisions,
    generate_pl_lines,
    generate_pl_lines_from_decisions,
)
from wisdom_bi.forecast.assumptions import ForecastAssumptions, create_empty_assumptions
from wisdom_bi.forecast.schemas import ForecastSummary
from wisdom_bi.wizard.responder import parse_cfo_reply
from wisdom_bi.wizard.schemas import WizardDecision


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def summary():
    return ForecastSummary.model_validate({"year1": {"revenue": 120000, "teamCosts": 240000}})


@pytest.fixture
def full_assumptions():
    """Assumptions covering every category, in the wizard's camelCase."""
    return ForecastAssumptions.model_validate({
        "revenue": {
            "lines": [
                {"accountId": "4000", "accountName": "Services", "priorYearTotal": 100000, "growthPct": 10},
            ],
            "seasonalityPattern": [1] * 12,
        },
        "cogs": {
            "lines": [
                {"accountId": "5000", "accountName": "Materials", "costBehavior": "variable", "percentOfRevenue": 30},
                {"accountId": "5010", "accountName": "Subcontractors", "costBehavior": "fixed", "monthlyAmount": 1000},
            ],
        },
        "opex": {
            "lines": [
                {"accountName": "Rent", "costBehavior": "fixed", "monthlyAmount": 4000},
                {"accountName": "Merchant Fees", "costBehavior": "variable", "percentOfRevenue": 2},
                {"accountName": "Legal", "costBehavior": "adhoc", "expectedAnnualAmount": 6000,
                 "expectedMonths": ["2025-10", "2026-04"]},
                {"accountName": "Repairs", "costBehavior": "adhoc", "expectedAnnualAmount": 1200},
                {"accountName": "Sundry", "priorYearTotal": 2400},
            ],
        },
        "capex": {
            "items": [{"name": "Van", "amount": 50000, "month": "2025-09"}],
        },
    })


def _line(lines, name):
    return next(line for line in lines if line.account_name == name)


# =============================================================================
# Revenue
# =============================================================================

class TestRevenueLines:
    """Tests for revenue line generation."""

    def test_fallback_line_with_flat_ones_pattern(self, fy_months):
        """No revenue lines and 120k summary revenue gives 10k every month."""
        assumptions = ForecastAssumptions.model_validate(
            {"revenue": {"lines": [], "seasonalityPattern": [1] * 12}}
        )
        summary = ForecastSummary.model_validate({"year1": {"revenue": 120000}})

        lines = generate_pl_lines(assumptions, summary, fy_months)

        revenue = [line for line in lines if line.category == "Revenue"]
        assert len(revenue) == 1
        assert revenue[0].account_name == "Sales Revenue"
        assert revenue[0].account_code == "4000"
        assert list(revenue[0].forecast_months) == fy_months
        assert all(v == 10000 for v in revenue[0].forecast_months.values())

    @pytest.mark.parametrize("revenue", [1, 99999.99, 250000, 1234567.89])
    def test_fallback_line_sums_to_summary(self, fy_months, revenue):
        summary = ForecastSummary.model_validate({"year1": {"revenue": revenue}})
        lines = generate_pl_lines(create_empty_assumptions(), summary, fy_months)

        revenue_lines = [line for line in lines if line.category == "Revenue"]
        assert len(revenue_lines) == 1
        assert abs(revenue_lines[0].annual_total - revenue) <= 0.12

    def test_no_fallback_without_summary_revenue(self, fy_months):
        lines = generate_pl_lines(create_empty_assumptions(), ForecastSummary(), fy_months)
        assert lines == []

    def test_growth_applied_to_prior_year(self, full_assumptions, summary, fy_months):
        lines = generate_pl_lines(full_assumptions, summary, fy_months)
        services = _line(lines, "Services")

        assert services.annual_total == pytest.approx(110000, abs=0.12)
        assert services.sort_order == 1
        assert services.is_from_xero is True
        assert services.forecast_method["method"] == "growth_rate"
        assert not any(line.account_name == "Sales Revenue" for line in lines)


# =============================================================================
# Costs
# =============================================================================

class TestCostLines:
    """Tests for COGS, wages and OpEx lines."""

    def test_variable_cogs_tracks_revenue(self, full_assumptions, summary, fy_months):
        lines = generate_pl_lines(full_assumptions, summary, fy_months)
        materials = _line(lines, "Materials")

        assert materials.category == "Cost of Sales"
        assert set(materials.forecast_months.values()) == {3000.0}
        assert materials.forecast_method["method"] == "driver_based"

    def test_fixed_cogs_is_even(self, full_assumptions, summary, fy_months):
        lines = generate_pl_lines(full_assumptions, summary, fy_months)
        assert set(_line(lines, "Subcontractors").forecast_months.values()) == {1000.0}

    def test_wages_line(self, full_assumptions, summary, fy_months):
        lines = generate_pl_lines(full_assumptions, summary, fy_months)
        wages = _line(lines, "Salaries & Wages")

        assert wages.account_code == "6100"
        assert wages.sort_order == 200
        assert wages.is_from_payroll is True
        assert wages.forecast_method["includes_super"] is True
        assert set(wages.forecast_months.values()) == {20000.0}

    def test_opex_cost_behaviours(self, full_assumptions, summary, fy_months):
        lines = generate_pl_lines(full_assumptions, summary, fy_months)

        assert set(_line(lines, "Rent").forecast_months.values()) == {4000.0}
        assert set(_line(lines, "Merchant Fees").forecast_months.values()) == {200.0}
        assert set(_line(lines, "Repairs").forecast_months.values()) == {100.0}
        assert set(_line(lines, "Sundry").forecast_months.values()) == {200.0}

        legal = _line(lines, "Legal").forecast_months
        assert legal["2025-10"] == 3000.0
        assert legal["2026-04"] == 3000.0
        assert sum(legal.values()) == 6000.0

    def test_sort_order_groups_categories(self, full_assumptions, summary, fy_months):
        lines = generate_pl_lines(full_assumptions, summary, fy_months)
        orders = {line.account_name: line.sort_order for line in lines}

        assert orders["Services"] < orders["Materials"] < orders["Salaries & Wages"]
        assert 100 < orders["Materials"] < 200
        assert 300 < orders["Rent"] < 400
        assert orders["CapEx - Van"] == 400


# =============================================================================
# CapEx
# =============================================================================

class TestCapExLines:
    """Tests for one-time CapEx lines."""

    def test_van_lands_in_its_month(self, fy_months):
        assumptions = ForecastAssumptions.model_validate(
            {"capex": {"items": [{"name": "Van", "amount": 50000, "month": "2025-09"}]}}
        )
        lines = generate_pl_lines(assumptions, ForecastSummary(), fy_months)

        assert len(lines) == 1
        van = lines[0]
        assert van.account_name == "CapEx - Van"
        assert van.account_code == "CAPEX-1"
        assert van.forecast_method["method"] == "one_time"
        assert van.forecast_months["2025-09"] == 50000
        assert [m for m, v in van.forecast_months.items() if v != 0] == ["2025-09"]
        assert len(van.forecast_months) == 12

    def test_month_outside_year_is_all_zero(self, fy_months):
        assumptions = ForecastAssumptions.model_validate(
            {"capex": {"items": [{"name": "Fitout", "amount": 20000, "month": "2027-01"}]}}
        )
        lines = generate_pl_lines(assumptions, ForecastSummary(), fy_months)
        assert set(lines[0].forecast_months.values()) == {0}


# =============================================================================
# Employees
# =============================================================================

class TestGenerateEmployees:
    """Tests for forecast employees."""

    def test_existing_team_and_hires(self):
        assumptions = ForecastAssumptions.model_validate({
            "team": {
                "existingTeam": [
                    {"name": "Sam", "role": "Plumber", "currentSalary": 80000, "salaryIncreasePct": 5,
                     "classification": "cogs", "isFromXero": True},
                    {"name": "Jo", "currentSalary": 60000, "includeInForecast": False},
                ],
                "plannedHires": [{"role": "Estimator", "salary": 90000, "startMonth": "2026-02"}],
            },
        })

        employees = generate_employees(assumptions)

        assert [e.employee_name for e in employees] == ["Sam", "Estimator"]
        assert employees[0].annual_salary == pytest.approx(84000)
        assert employees[0].classification == "cogs"
        assert employees[0].is_from_xero is True
        assert employees[1].start_date == "2026-02"
        assert employees[1].classification == "opex"

    def test_empty_team(self):
        assert generate_employees(create_empty_assumptions()) == []


# =============================================================================
# Decision-based generation
# =============================================================================

@pytest.fixture
def decisions():
    return [
        WizardDecision(
            decision_type="new_hire",
            decision_data={"role": "Project Manager", "annual_salary": 95000, "start_month": "February"},
            user_reasoning="Need someone to run jobs",
        ),
        WizardDecision(decision_type="cost_changed", decision_data={"adjustment_percent": 10}),
        WizardDecision(
            decision_type="investment",
            decision_data={"description": "Work vehicle", "amount": 55000, "type": "capex"},
        ),
        WizardDecision(decision_type="investment", decision_data={"description": "Nothing", "amount": 0}),
    ]


class TestGenerateFromDecisions:
    """Tests for the conversational wizard's assembler."""

    def test_revenue_and_cogs_ratio(self, wizard_context, decisions, fy_months):
        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)

        assert _line(lines, "Sales Revenue").annual_total == pytest.approx(1200000)
        # Prior year COGS was 40% of revenue
        assert _line(lines, "Cost of Goods Sold").annual_total == pytest.approx(480000)

    def test_default_cogs_ratio_without_history(self, wizard_context, fy_months):
        context = wizard_context.model_copy(update={"historical_pl": None})
        lines = generate_pl_lines_from_decisions(context, [], fy_months)
        assert _line(lines, "Cost of Goods Sold").annual_total == pytest.approx(420000)

    def test_wages_include_super(self, wizard_context, decisions, fy_months):
        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)

        direct = _line(lines, "Wages - Direct")
        admin = _line(lines, "Wages - Admin")
        assert direct.annual_total == pytest.approx(89600, abs=0.12)
        assert direct.account_code == "5100"
        assert admin.annual_total == pytest.approx(78400, abs=0.12)
        assert admin.sort_order == 200

    def test_hire_starts_in_named_month(self, wizard_context, decisions, fy_months):
        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)
        hire = _line(lines, "Wages - Project Manager")

        assert hire.account_code == "6101"
        assert hire.sort_order == 210
        assert hire.notes == "Need someone to run jobs"
        assert hire.forecast_months["2026-01"] == 0
        assert hire.forecast_months["2026-02"] > 0
        assert hire.annual_total == pytest.approx(95000 * 1.12, abs=0.12)

    def test_opex_excludes_wage_accounts_and_applies_adjustment(self, wizard_context, decisions, fy_months):
        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)
        opex_names = [line.account_name for line in lines if line.forecast_method["method"] == "seasonal_pattern"]

        assert opex_names == ["Rent", "Marketing"]
        assert set(_line(lines, "Rent").forecast_months.values()) == {4400.0}

    def test_investments(self, wizard_context, decisions, fy_months):
        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)
        vehicle = _line(lines, "Capital Investment - Work vehicle")

        assert vehicle.category == "Other Expenses"
        assert vehicle.forecast_method["method"] == "manual"
        assert vehicle.sort_order == 400
        assert not any("Nothing" in line.account_name for line in lines)

    def test_employees_from_decisions(self, wizard_context, decisions):
        employees = generate_employees_from_decisions(wizard_context, decisions)

        assert [e.employee_name for e in employees] == ["Sam Lee", "Alex Kim", "Project Manager"]
        assert employees[2].annual_salary == 95000
        assert employees[2].start_date == "February"


class TestDecisionValuesFromModelOutput:
    """Decision data parsed from a model reply may carry numbers as strings."""

    def test_string_numbers_are_coerced(self, wizard_context, fy_months):
        reply = (
            "Locked in.\n```json\n"
            '{"decision_type": "new_hire", "decision_data": '
            '{"role": "Estimator", "annual_salary": "95000", "start_month": "July"}}\n```'
        )
        hire = parse_cfo_reply(reply).decision
        decisions = [
            hire,
            WizardDecision(decision_type="cost_changed", decision_data={"adjustment_percent": "10"}),
            WizardDecision(decision_type="investment", decision_data={"description": "Ute", "amount": "$15,000"}),
        ]

        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)

        assert _line(lines, "Wages - Estimator").annual_total == pytest.approx(95000 * 1.12, abs=0.12)
        assert set(_line(lines, "Rent").forecast_months.values()) == {4400.0}
        assert _line(lines, "Strategic Investment - Ute").annual_total == pytest.approx(15000, abs=0.12)
        assert generate_employees_from_decisions(wizard_context, decisions)[2].annual_salary == 95000

    @pytest.mark.parametrize("bad", ["lots", "", None, "nan", [], {"v": 1}, True])
    def test_unusable_values_fall_back(self, wizard_context, fy_months, bad):
        decisions = [
            WizardDecision(decision_type="new_hire", decision_data={"role": "Helper", "annual_salary": bad}),
            WizardDecision(decision_type="cost_changed", decision_data={"adjustment_percent": bad}),
            WizardDecision(decision_type="investment", decision_data={"description": "Odd", "amount": bad}),
        ]

        lines = generate_pl_lines_from_decisions(wizard_context, decisions, fy_months)

        assert _line(lines, "Wages - Helper").annual_total == pytest.approx(80000 * 1.12, abs=0.12)
        assert set(_line(lines, "Rent").forecast_months.values()) == {4000.0}
        assert not any("Odd" in line.account_name for line in lines)
