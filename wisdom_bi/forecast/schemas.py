"""Forecast generation request/response schemas."""
from pydantic import Field
from typing import List, Literal, Optional

from wisdom_bi.forecast.assumptions import CamelModel, ForecastAssumptions, ScenarioOverrides
from wisdom_bi.wizard.schemas import WizardContext, WizardDecision


class YearlySummary(CamelModel):
    """Totals the wizard computed client-side for one forecast year."""
    revenue: float = 0
    cogs: float = 0
    gross_profit: float = 0
    gross_profit_pct: float = 0
    team_costs: float = 0
    opex: float = 0
    depreciation: float = 0
    other_expenses: float = 0
    net_profit: float = 0
    net_profit_pct: float = 0


class ForecastSummary(CamelModel):
    year1: YearlySummary = Field(default_factory=YearlySummary)
    year2: Optional[YearlySummary] = None
    year3: Optional[YearlySummary] = None


class GenerateV4Request(CamelModel):
    """Save a forecast from the assumptions-based wizard."""
    business_id: Optional[str] = None
    fiscal_year: Optional[int] = None
    year_type: Literal["FY", "CY"] = "FY"
    forecast_duration: Literal[1, 2, 3] = 1
    forecast_id: Optional[str] = Field(None, description="Update this forecast instead of the active one")
    forecast_name: Optional[str] = None
    create_new: bool = Field(False, description="Always create a new forecast (Save As)")
    is_draft: bool = Field(False, description="Autosave; do not mark the forecast complete")
    assumptions: Optional[ForecastAssumptions] = None
    scenario_overrides: Optional[ScenarioOverrides] = Field(
        None, description="What-if changes applied on top of the assumptions before generating"
    )
    summary: ForecastSummary = Field(default_factory=ForecastSummary)


class GenerateRequest(CamelModel):
    """Save a forecast from the conversational wizard's decisions."""
    business_id: Optional[str] = None
    fiscal_year: Optional[int] = None
    context: Optional[WizardContext] = None
    decisions: List[WizardDecision] = Field(default_factory=list)
    years_selected: List[int] = Field(default_factory=lambda: [1])


class GenerateSummary(CamelModel):
    pl_lines_count: int
    employees_count: int
    forecast_duration: Optional[int] = None
    decisions_count: Optional[int] = None
    years_selected: Optional[List[int]] = None


class GenerateResponse(CamelModel):
    success: bool = True
    forecast_id: str
    summary: GenerateSummary
