"""
P&L line assembler - turns forecast inputs into P&L lines and employees.

Two entry points:
- generate_pl_lines / generate_employees: the assumptions-based wizard
- generate_pl_lines_from_decisions / generate_employees_from_decisions: the
  conversational wizard, working from its context and recorded decisions

These are pure functions - no database access. Incomplete input is normal for
a planning tool, so missing or zero values produce zero-valued lines instead
of errors.
"""
import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from wisdom_bi.forecast.assumptions import (
    CostBehavior,
    ForecastAssumptions,
    OpExLineAssumption,
)
from wisdom_bi.forecast.distribution import (
    MonthlyAmounts,
    distribute_evenly,
    distribute_from_month,
    distribute_to_specific_months,
    distribute_with_seasonality,
    zero_months,
)
from wisdom_bi.forecast.months import month_name_to_key
from wisdom_bi.forecast.schemas import ForecastSummary
from wisdom_bi.wizard.schemas import DecisionType, WizardContext, WizardDecision

logger = logging.getLogger(__name__)

# Superannuation on-cost applied to wages in the conversational wizard
SUPER_MULTIPLIER = 1.12
DEFAULT_HIRE_SALARY = 80000
DEFAULT_COGS_RATIO = 0.35
WAGE_ACCOUNT_KEYWORDS = ("wages", "salary", "payroll", "super")

# Sort order bands keep categories grouped in the P&L table
COGS_SORT_BASE = 100
WAGES_SORT_ORDER = 200
OPEX_SORT_BASE = 300
CAPEX_SORT_BASE = 400


@dataclass
class PLLine:
    """One row of the forecast P&L (computed, not yet stored)."""
    account_name: str
    category: str
    account_type: str
    forecast_months: MonthlyAmounts
    forecast_method: Dict[str, Any]
    sort_order: int
    account_code: Optional[str] = None
    actual_months: MonthlyAmounts = field(default_factory=dict)
    is_from_xero: bool = False
    is_from_payroll: bool = False
    notes: Optional[str] = None

    @property
    def annual_total(self) -> float:
        return sum(self.forecast_months.values())

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ForecastEmployee:
    """A team member carried into the forecast (computed, not yet stored)."""
    employee_name: str
    classification: str
    annual_salary: float
    position: Optional[str] = None
    start_date: Optional[str] = None
    is_active: bool = True
    is_from_xero: bool = False

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Assumptions-based generation
# =============================================================================

CostPolicy = Callable[[OpExLineAssumption, float, List[float], List[str]], Tuple[float, MonthlyAmounts]]


def _fixed_cost(line, total_revenue, seasonality, months):
    annual = (line.monthly_amount or 0) * 12
    return annual, distribute_evenly(annual, months)


def _variable_cost(line, total_revenue, seasonality, months):
    annual = total_revenue * ((line.percent_of_revenue or 0) / 100)
    return annual, distribute_with_seasonality(annual, seasonality, months)


def _adhoc_cost(line, total_revenue, seasonality, months):
    annual = line.expected_annual_amount or 0
    if line.expected_months:
        return annual, distribute_to_specific_months(annual, line.expected_months, months)
    return annual, distribute_evenly(annual, months)


def _prior_year_cost(line, total_revenue, seasonality, months):
    annual = line.prior_year_total or 0
    return annual, distribute_evenly(annual, months)


OPEX_POLICIES: Dict[Optional[CostBehavior], CostPolicy] = {
    CostBehavior.FIXED: _fixed_cost,
    CostBehavior.VARIABLE: _variable_cost,
    CostBehavior.ADHOC: _adhoc_cost,
}


def _method_name(behavior: Optional[CostBehavior]) -> str:
    return "driver_based" if behavior == CostBehavior.VARIABLE else "straight_line"


def generate_pl_lines(
    assumptions: ForecastAssumptions,
    summary: ForecastSummary,
    months: List[str],
) -> List[PLLine]:
    """
    Convert wizard assumptions into P&L lines for one forecast year.

    Args:
        assumptions: Revenue, COGS, team, OpEx and CapEx assumptions
        summary: Client-computed yearly totals (revenue drives variable costs)
        months: The twelve month keys of the year

    Returns:
        Lines in display order: revenue, COGS, wages, OpEx, CapEx
    """
    lines: List[PLLine] = []
    sort_order = 1
    seasonality = assumptions.revenue.seasonality_pattern
    total_revenue = summary.year1.revenue

    # 1. Revenue
    for line in assumptions.revenue.lines:
        annual = line.prior_year_total * (1 + (line.growth_pct or 0) / 100)
        lines.append(PLLine(
            account_name=line.account_name,
            account_code=line.account_id,
            category="Revenue",
            account_type="REVENUE",
            forecast_months=distribute_with_seasonality(annual, seasonality, months),
            forecast_method={
                "method": "growth_rate" if line.growth_type == "percentage" else "fixed_growth",
                "growth_pct": line.growth_pct,
                "fixed_growth": line.fixed_growth_amount,
                "seasonality_source": assumptions.revenue.seasonality_source,
            },
            is_from_xero=True,
            sort_order=sort_order,
        ))
        sort_order += 1

    # Never leave the P&L without revenue when the wizard has a total
    if not assumptions.revenue.lines and total_revenue > 0:
        lines.append(PLLine(
            account_name="Sales Revenue",
            account_code="4000",
            category="Revenue",
            account_type="REVENUE",
            forecast_months=distribute_with_seasonality(total_revenue, seasonality, months),
            forecast_method={"method": "straight_line"},
            sort_order=sort_order,
        ))
        sort_order += 1

    # 2. COGS - variable lines track revenue seasonality
    for line in assumptions.cogs.lines:
        is_variable = line.cost_behavior == CostBehavior.VARIABLE
        if is_variable:
            annual = total_revenue * ((line.percent_of_revenue or 0) / 100)
            distribution = distribute_with_seasonality(annual, seasonality, months)
        else:
            annual = (line.monthly_amount or 0) * 12
            distribution = distribute_evenly(annual, months)

        lines.append(PLLine(
            account_name=line.account_name,
            account_code=line.account_id,
            category="Cost of Sales",
            account_type="COGS",
            forecast_months=distribution,
            forecast_method={
                "method": _method_name(line.cost_behavior),
                "driver_percentage": line.percent_of_revenue,
                "cost_behavior": line.cost_behavior.value,
            },
            is_from_xero=True,
            sort_order=COGS_SORT_BASE + sort_order,
        ))
        sort_order += 1

    # 3. Team costs as a single payroll line
    total_team_cost = summary.year1.team_costs
    if total_team_cost > 0:
        lines.append(PLLine(
            account_name="Salaries & Wages",
            account_code="6100",
            category="Operating Expenses",
            account_type="EXPENSE",
            forecast_months=distribute_evenly(total_team_cost, months),
            forecast_method={
                "method": "straight_line",
                "base_amount": total_team_cost / 12,
                "includes_super": True,
            },
            is_from_payroll=True,
            sort_order=WAGES_SORT_ORDER,
        ))

    # 4. OpEx by cost behaviour
    for line in assumptions.opex.lines:
        policy = OPEX_POLICIES.get(line.cost_behavior, _prior_year_cost)
        _, distribution = policy(line, total_revenue, seasonality, months)

        lines.append(PLLine(
            account_name=line.account_name,
            account_code=line.account_id,
            category="Operating Expenses",
            account_type="EXPENSE",
            forecast_months=distribution,
            forecast_method={
                "method": _method_name(line.cost_behavior),
                "cost_behavior": line.cost_behavior.value if line.cost_behavior else None,
                "driver_percentage": line.percent_of_revenue,
                "annual_increase_pct": line.annual_increase_pct,
                "is_subscription": line.is_subscription,
            },
            is_from_xero=True,
            sort_order=OPEX_SORT_BASE + sort_order,
        ))
        sort_order += 1

    # 5. CapEx lands in its purchase month only
    for idx, item in enumerate(assumptions.capex.items):
        distribution = zero_months(months)
        if item.month in distribution:
            distribution[item.month] = item.amount

        lines.append(PLLine(
            account_name=f"CapEx - {item.name}",
            account_code=f"CAPEX-{idx + 1}",
            category="Capital Expenditure",
            account_type="CAPEX",
            forecast_months=distribution,
            forecast_method={
                "method": "one_time",
                "category": item.category,
            },
            sort_order=CAPEX_SORT_BASE + idx,
        ))

    return lines


def generate_employees(assumptions: ForecastAssumptions) -> List[ForecastEmployee]:
    """Existing team (with salary increases) followed by planned hires."""
    employees: List[ForecastEmployee] = []

    for member in assumptions.team.existing_team:
        if not member.include_in_forecast:
            continue
        employees.append(ForecastEmployee(
            employee_name=member.name,
            position=member.role,
            classification=member.classification,
            annual_salary=member.current_salary * (1 + member.salary_increase_pct / 100),
            is_from_xero=member.is_from_xero,
        ))

    for hire in assumptions.team.planned_hires:
        employees.append(ForecastEmployee(
            employee_name=hire.role,
            position=hire.role,
            classification=hire.classification,
            annual_salary=hire.salary,
            start_date=hire.start_month,
        ))

    return employees


# =============================================================================
# Decision-based generation (conversational wizard)
# =============================================================================

def _decisions_of(decisions: List[WizardDecision], decision_type: DecisionType) -> List[WizardDecision]:
    return [d for d in decisions if d.decision_type == decision_type]


def _as_number(value: Any, default: float = 0) -> float:
    """Numeric decision value; model output may send numbers as strings."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(str(value).replace(",", "").replace("$", "").strip())
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _hire_details(hire: WizardDecision) -> Dict[str, Any]:
    data = hire.decision_data or {}
    return {
        "role": data.get("role") or "New Hire",
        "salary": _as_number(data.get("annual_salary")) or DEFAULT_HIRE_SALARY,

        "classification": data.get("classification") or "opex",
        "start_month": str(data.get("start_month") or ""),
    }


def generate_pl_lines_from_decisions(
    context: WizardContext,
    decisions: List[WizardDecision],
    months: List[str],
) -> List[PLLine]:
    """
    Build P&L lines from the conversational wizard's context and decisions.

    Revenue comes from the goals target, COGS from the prior-year ratio,
    wages from the current team plus hire decisions, OpEx from the top
    historical categories adjusted by cost decisions, and one line per
    investment decision.
    """
    lines: List[PLLine] = []
    goals = context.goals
    prior_fy = context.historical_pl.prior_fy if context.historical_pl else None

    # 1. Revenue
    revenue_target = (goals.revenue_target if goals else None) or 0
    if revenue_target > 0:
        lines.append(PLLine(
            account_name="Sales Revenue",
            account_code="4000",
            category="Revenue",
            account_type="REVENUE",
            forecast_months=distribute_from_month(revenue_target, months),
            forecast_method={"method": "straight_line", "base_amount": revenue_target / 12},
            sort_order=1,
        ))

    # 2. COGS at the historical ratio
    cogs_ratio = DEFAULT_COGS_RATIO
    if prior_fy and prior_fy.total_revenue > 0:
        cogs_ratio = prior_fy.total_cogs / prior_fy.total_revenue

    cogs_amount = revenue_target * cogs_ratio
    if cogs_amount > 0:
        lines.append(PLLine(
            account_name="Cost of Goods Sold",
            account_code="5000",
            category="Cost of Sales",
            account_type="COGS",
            forecast_months=distribute_from_month(cogs_amount, months),
            forecast_method={"method": "driver_based", "driver_percentage": cogs_ratio},
            sort_order=COGS_SORT_BASE,
        ))

    # 3. Current team wages, split by classification
    cogs_wages = sum(
        (e.annual_salary or 0) * SUPER_MULTIPLIER
        for e in context.current_team if e.classification == "cogs"
    )
    opex_wages = sum(
        (e.annual_salary or 0) * SUPER_MULTIPLIER
        for e in context.current_team if e.classification == "opex"
    )

    if cogs_wages > 0:
        lines.append(PLLine(
            account_name="Wages - Direct",
            account_code="5100",
            category="Cost of Sales",
            account_type="COGS",
            forecast_months=distribute_from_month(cogs_wages, months),
            forecast_method={"method": "straight_line", "base_amount": cogs_wages / 12},
            is_from_payroll=True,
            sort_order=110,
        ))

    if opex_wages > 0:
        lines.append(PLLine(
            account_name="Wages - Admin",
            account_code="6100",
            category="Operating Expenses",
            account_type="EXPENSE",
            forecast_months=distribute_from_month(opex_wages, months),
            forecast_method={"method": "straight_line", "base_amount": opex_wages / 12},
            is_from_payroll=True,
            sort_order=WAGES_SORT_ORDER,
        ))

    # 4. Planned hires from their start month
    for index, hire in enumerate(_decisions_of(decisions, DecisionType.NEW_HIRE)):
        details = _hire_details(hire)
        salary_with_super = details["salary"] * SUPER_MULTIPLIER
        is_cogs = details["classification"] == "cogs"
        start_key = month_name_to_key(
            details["start_month"] or months[0],
            context.fiscal_year,
            context.year_type,
        )

        lines.append(PLLine(
            account_name=f"Wages - {details['role']}",
            account_code=f"510{index + 1}" if is_cogs else f"610{index + 1}",
            category="Cost of Sales" if is_cogs else "Operating Expenses",
            account_type="COGS" if is_cogs else "EXPENSE",
            forecast_months=distribute_from_month(salary_with_super, months, start_key),
            forecast_method={"method": "straight_line", "base_amount": salary_with_super / 12},
            is_from_payroll=True,
            notes=hire.user_reasoning,
            sort_order=120 + index if is_cogs else 210 + index,
        ))

    # 5. Historical OpEx, adjusted by cost decisions and net of wages
    base_opex = prior_fy.operating_expenses if prior_fy else 0
    opex_adjustment = 1.0
    for decision in _decisions_of(decisions, DecisionType.COST_CHANGED):
        adjustment = _as_number((decision.decision_data or {}).get("adjustment_percent"))
        opex_adjustment *= 1 + adjustment / 100

    # Wages were already counted above; historical OpEx includes most of them
    historical_team_cost = (opex_wages + cogs_wages) * 0.9
    non_wage_opex = max(0, base_opex * opex_adjustment - historical_team_cost)

    if non_wage_opex > 0 and prior_fy:
        categories = [
            cat for cat in prior_fy.operating_expenses_by_category
            if not any(w in cat.account_name.lower() for w in WAGE_ACCOUNT_KEYWORDS)
        ]
        for index, cat in enumerate(categories[:10]):
            lines.append(PLLine(
                account_name=cat.account_name,
                category="Operating Expenses",
                account_type="EXPENSE",
                forecast_months=distribute_from_month(cat.total * opex_adjustment, months),
                forecast_method={
                    "method": "seasonal_pattern",
                    "percentage_increase": opex_adjustment - 1,
                    "base_amount": cat.monthly_average,
                },
                is_from_xero=True,
                sort_order=OPEX_SORT_BASE + index,
            ))

    # 6. Investments
    for index, investment in enumerate(_decisions_of(decisions, DecisionType.INVESTMENT)):
        data = investment.decision_data or {}
        amount = _as_number(data.get("amount"))
        description = data.get("description") or "Investment"
        is_capex = data.get("type") == "capex"
        if amount <= 0:
            continue

        lines.append(PLLine(
            account_name=(
                f"Capital Investment - {description}" if is_capex
                else f"Strategic Investment - {description}"
            ),
            category="Other Expenses" if is_capex else "Operating Expenses",
            account_type="EXPENSE",
            forecast_months=distribute_from_month(amount, months),
            forecast_method={"method": "manual"},
            notes=investment.user_reasoning,
            sort_order=CAPEX_SORT_BASE + index,
        ))

    return lines


def generate_employees_from_decisions(
    context: WizardContext,
    decisions: List[WizardDecision],
) -> List[ForecastEmployee]:
    """Current team as-is followed by one employee per hire decision."""
    employees = [
        ForecastEmployee(
            employee_name=member.full_name,
            position=member.job_title,
            classification=member.classification or "opex",
            annual_salary=member.annual_salary or 0,
            start_date=member.start_date,
            is_active=member.is_active,
        )
        for member in context.current_team
    ]

    for hire in _decisions_of(decisions, DecisionType.NEW_HIRE):
        details = _hire_details(hire)
        employees.append(ForecastEmployee(
            employee_name=details["role"],
            position=details["role"],
            classification=details["classification"],
            annual_salary=details["salary"],
            start_date=details["start_month"] or None,
        ))

    return employees
