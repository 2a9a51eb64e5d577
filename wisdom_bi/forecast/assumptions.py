"""
Forecast assumptions - the inputs a forecast is generated from.

The wizard submits the whole bundle on every save and it is stored verbatim on
the forecast row, so scenarios can be replayed from inputs rather than from
generated output. Payloads arrive in camelCase; attributes are snake_case.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase JSON and snake_case kwargs."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================

class CostBehavior(str, Enum):
    """How a cost line moves through the year."""
    FIXED = "fixed"          # monthly amount x 12, spread evenly
    VARIABLE = "variable"    # percent of revenue, follows revenue seasonality
    ADHOC = "adhoc"          # annual amount landing in specific months
    SEASONAL = "seasonal"    # prior year pattern (treated as prior-year total)


WageClassification = Literal["opex", "cogs"]
EmploymentType = Literal["full-time", "part-time", "casual", "contractor"]
CapExCategory = Literal["equipment", "vehicle", "leasehold", "technology", "furniture", "other"]


class QuarterlyAmounts(CamelModel):
    q1: float = 0
    q2: float = 0
    q3: float = 0
    q4: float = 0


# =============================================================================
# REVENUE / COGS
# =============================================================================

class RevenueLineAssumption(CamelModel):
    account_id: str = ""
    account_name: str
    prior_year_total: float = 0
    growth_type: Literal["percentage", "fixed_amount"] = "percentage"
    growth_pct: Optional[float] = None  # 15 = 15% growth
    fixed_growth_amount: Optional[float] = None
    notes: Optional[str] = None
    year1_monthly: Optional[Dict[str, float]] = None
    year2_quarterly: Optional[QuarterlyAmounts] = None
    year3_quarterly: Optional[QuarterlyAmounts] = None


class RevenueAssumptions(CamelModel):
    lines: List[RevenueLineAssumption] = Field(default_factory=list)
    # 12 relative weights, usually summing to ~100
    seasonality_pattern: List[float] = Field(default_factory=lambda: [8.33] * 12)
    seasonality_source: Literal["xero", "manual", "industry_default"] = "industry_default"


class COGSLineAssumption(CamelModel):
    account_id: str = ""
    account_name: str
    prior_year_total: float = 0
    cost_behavior: CostBehavior = CostBehavior.FIXED
    percent_of_revenue: Optional[float] = None  # 32 = 32% of revenue
    monthly_amount: Optional[float] = None
    notes: Optional[str] = None
    year1_monthly: Optional[Dict[str, float]] = None
    year2_quarterly: Optional[QuarterlyAmounts] = None
    year3_quarterly: Optional[QuarterlyAmounts] = None


class COGSAssumptions(CamelModel):
    lines: List[COGSLineAssumption] = Field(default_factory=list)
    overall_cogs_pct: Optional[float] = None


# =============================================================================
# TEAM
# =============================================================================

class ExistingTeamMember(CamelModel):
    employee_id: str = ""
    name: str
    role: str = ""
    employment_type: EmploymentType = "full-time"
    current_salary: float = 0
    hours_per_week: Optional[float] = None
    salary_increase_pct: float = 0  # 3 = 3% increase
    increase_month: Optional[str] = None
    include_in_forecast: bool = True
    is_from_xero: bool = False
    classification: WageClassification = "opex"


class PlannedHire(CamelModel):
    id: str = ""
    role: str
    employment_type: EmploymentType = "full-time"
    salary: float = 0
    hours_per_week: Optional[float] = None
    hourly_rate: Optional[float] = None
    weeks_per_year: Optional[float] = None
    start_month: Optional[str] = None  # "2026-03"
    notes: Optional[str] = None
    classification: WageClassification = "opex"


class PlannedDeparture(CamelModel):
    id: str = ""
    team_member_id: str
    end_month: str
    notes: Optional[str] = None


class PlannedBonus(CamelModel):
    id: str = ""
    team_member_id: str
    amount: float = 0
    month: int = 1  # 1-12, month of the fiscal year
    notes: Optional[str] = None


class PlannedCommission(CamelModel):
    id: str = ""
    team_member_id: str
    revenue_line_id: str
    percent_of_revenue: float = 0
    timing: Literal["monthly", "quarterly", "annual"] = "monthly"
    notes: Optional[str] = None


class TeamAssumptions(CamelModel):
    existing_team: List[ExistingTeamMember] = Field(default_factory=list)
    planned_hires: List[PlannedHire] = Field(default_factory=list)
    departures: List[PlannedDeparture] = Field(default_factory=list)
    bonuses: List[PlannedBonus] = Field(default_factory=list)
    commissions: List[PlannedCommission] = Field(default_factory=list)
    superannuation_pct: float = 12
    work_cover_pct: float = 1.5
    payroll_tax_pct: float = 4.85
    payroll_tax_threshold: Optional[float] = 1200000


# =============================================================================
# OPEX / CAPEX / SUBSCRIPTIONS
# =============================================================================

class OpExLineAssumption(CamelModel):
    account_id: str = ""
    account_name: str
    prior_year_total: float = 0
    cost_behavior: Optional[CostBehavior] = None
    monthly_amount: Optional[float] = None
    annual_increase_pct: Optional[float] = None
    percent_of_revenue: Optional[float] = None
    seasonal_growth_pct: Optional[float] = None
    seasonal_target_amount: Optional[float] = None
    expected_annual_amount: Optional[float] = None
    expected_months: Optional[List[str]] = None
    is_subscription: Optional[bool] = None
    notes: Optional[str] = None


class OpExAssumptions(CamelModel):
    lines: List[OpExLineAssumption] = Field(default_factory=list)


class CapExItem(CamelModel):
    id: str = ""
    name: str
    amount: float = 0
    month: str  # "2026-08"
    category: CapExCategory = "other"
    notes: Optional[str] = None


class CapExAssumptions(CamelModel):
    items: List[CapExItem] = Field(default_factory=list)


class SubscriptionAuditSummary(CamelModel):
    audited_at: str
    accounts_included: List[str] = Field(default_factory=list)
    vendor_count: int = 0
    total_annual: float = 0
    essential_annual: float = 0
    review_annual: float = 0
    reduce_annual: float = 0
    cancel_annual: float = 0
    potential_savings: float = 0  # reduce + cancel
    cost_per_employee: Optional[float] = None


class YearlyGoalsAssumption(CamelModel):
    revenue: float = 0
    gross_profit_pct: float = 0
    net_profit_pct: float = 0


class GoalsAssumption(CamelModel):
    year1: YearlyGoalsAssumption
    year2: Optional[YearlyGoalsAssumption] = None
    year3: Optional[YearlyGoalsAssumption] = None


class ForecastAssumptions(CamelModel):
    """The full input bundle stored in financial_forecasts.assumptions."""
    version: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    industry: Optional[str] = None
    employee_count: Optional[int] = None
    fiscal_year_start: str = "07"

    goals: Optional[GoalsAssumption] = None

    revenue: RevenueAssumptions = Field(default_factory=RevenueAssumptions)
    cogs: COGSAssumptions = Field(default_factory=COGSAssumptions)
    team: TeamAssumptions = Field(default_factory=TeamAssumptions)
    opex: OpExAssumptions = Field(default_factory=OpExAssumptions)
    capex: CapExAssumptions = Field(default_factory=CapExAssumptions)

    subscriptions: Optional[SubscriptionAuditSummary] = None


def create_empty_assumptions() -> ForecastAssumptions:
    """Blank assumptions with Australian defaults (July FY, 12% super)."""
    now = datetime.utcnow().isoformat()
    return ForecastAssumptions(created_at=now, updated_at=now)


# =============================================================================
# SCENARIO OVERRIDES
# =============================================================================

class TeamScenarioChanges(CamelModel):
    additional_hires: Optional[List[PlannedHire]] = None
    removed_hire_ids: Optional[List[str]] = None
    salary_adjustment_pct: Optional[float] = None
    remove_existing_employee_ids: Optional[List[str]] = None


class CapExScenarioChanges(CamelModel):
    additional_items: Optional[List[CapExItem]] = None
    removed_item_ids: Optional[List[str]] = None
    delay_months: Optional[int] = None


class ScenarioOverrides(CamelModel):
    revenue_growth_multiplier: Optional[float] = None  # 1.5 = 50% more growth
    revenue_growth_add_pct: Optional[float] = None     # 5 = +5 points on every line
    cogs_adjustment_pct: Optional[float] = None        # 2 = +2 points on COGS %
    team_changes: Optional[TeamScenarioChanges] = None
    opex_adjustment_pct: Optional[float] = None        # -5 = cut OpEx by 5%
    opex_fixed_adjustment_pct: Optional[float] = None
    opex_variable_adjustment_pct: Optional[float] = None
    capex_changes: Optional[CapExScenarioChanges] = None


def _shift_month(month_key: str, months: int) -> str:
    """Move a "YYYY-MM" key by a number of months."""
    shifted = datetime.strptime(f"{month_key}-01", "%Y-%m-%d") + relativedelta(months=months)
    return shifted.strftime("%Y-%m")


def merge_scenario_overrides(
    base: ForecastAssumptions,
    overrides: ScenarioOverrides,
) -> ForecastAssumptions:
    """
    Apply a scenario's overrides to a copy of the base assumptions.

    The base is never mutated.
    """
    merged = base.model_copy(deep=True)
    merged.updated_at = datetime.utcnow().isoformat()

    if overrides.revenue_growth_multiplier:
        for line in merged.revenue.lines:
            if line.growth_pct is not None:
                line.growth_pct *= overrides.revenue_growth_multiplier

    if overrides.revenue_growth_add_pct:
        for line in merged.revenue.lines:
            if line.growth_pct is not None:
                line.growth_pct += overrides.revenue_growth_add_pct

    if overrides.cogs_adjustment_pct:
        for line in merged.cogs.lines:
            if line.percent_of_revenue is not None:
                line.percent_of_revenue += overrides.cogs_adjustment_pct
        if merged.cogs.overall_cogs_pct is not None:
            merged.cogs.overall_cogs_pct += overrides.cogs_adjustment_pct

    tc = overrides.team_changes
    if tc:
        if tc.additional_hires:
            merged.team.planned_hires.extend(h.model_copy(deep=True) for h in tc.additional_hires)

        if tc.removed_hire_ids:
            merged.team.planned_hires = [
                h for h in merged.team.planned_hires if h.id not in tc.removed_hire_ids
            ]

        if tc.remove_existing_employee_ids:
            merged.team.existing_team = [
                e for e in merged.team.existing_team
                if e.employee_id not in tc.remove_existing_employee_ids
            ]

        if tc.salary_adjustment_pct:
            factor = 1 + tc.salary_adjustment_pct / 100
            for member in merged.team.existing_team:
                member.current_salary *= factor
            for hire in merged.team.planned_hires:
                hire.salary *= factor

    if overrides.opex_adjustment_pct:
        factor = 1 + overrides.opex_adjustment_pct / 100
        for line in merged.opex.lines:
            if line.monthly_amount is not None:
                line.monthly_amount *= factor
            if line.percent_of_revenue is not None:
                line.percent_of_revenue *= factor
            if line.expected_annual_amount is not None:
                line.expected_annual_amount *= factor

    if overrides.opex_fixed_adjustment_pct:
        factor = 1 + overrides.opex_fixed_adjustment_pct / 100
        for line in merged.opex.lines:
            if line.cost_behavior == CostBehavior.FIXED and line.monthly_amount is not None:
                line.monthly_amount *= factor

    if overrides.opex_variable_adjustment_pct:
        factor = 1 + overrides.opex_variable_adjustment_pct / 100
        for line in merged.opex.lines:
            if line.cost_behavior == CostBehavior.VARIABLE and line.percent_of_revenue is not None:
                line.percent_of_revenue *= factor

    cc = overrides.capex_changes
    if cc:
        if cc.additional_items:
            merged.capex.items.extend(i.model_copy(deep=True) for i in cc.additional_items)

        if cc.removed_item_ids:
            merged.capex.items = [i for i in merged.capex.items if i.id not in cc.removed_item_ids]

        if cc.delay_months:
            for item in merged.capex.items:
                item.month = _shift_month(item.month, cc.delay_months)

    return merged
