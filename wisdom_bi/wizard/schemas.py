"""CFO wizard Pydantic schemas for request/response validation."""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional, Literal
from datetime import datetime
from enum import Enum


class WizardStep(str, Enum):
    """Wizard steps, in the order they are worked through."""
    SETUP = "setup"
    TEAM = "team"
    COSTS = "costs"
    INVESTMENTS = "investments"
    PROJECTIONS = "projections"
    REVIEW = "review"


class DecisionType(str, Enum):
    """Kinds of user choices recorded during the wizard."""
    NEW_HIRE = "new_hire"
    INVESTMENT = "investment"
    COST_CHANGED = "cost_changed"


# ============================================================================
# WIZARD CONTEXT
# ============================================================================

class WizardGoals(BaseModel):
    """Targets carried over from the Goals & Targets wizard."""
    revenue_target: Optional[float] = None
    profit_target: Optional[float] = None
    gross_profit_target: Optional[float] = None
    gross_margin_percent: Optional[float] = None
    year_type: Literal["FY", "CY"] = "FY"
    revenue_year2: Optional[float] = None
    revenue_year3: Optional[float] = None
    net_profit_year2: Optional[float] = None
    net_profit_year3: Optional[float] = None
    key_objectives: List[str] = Field(default_factory=list)


class ExpenseCategoryTotal(BaseModel):
    """One operating expense account from the prior year."""
    account_name: str
    total: float = 0
    monthly_average: float = 0


class PriorYearPL(BaseModel):
    """Prior fiscal year profit & loss (the baseline year)."""
    period_label: str = ""
    start_month: Optional[str] = None
    end_month: Optional[str] = None
    months_count: int = 12
    total_revenue: float = 0
    total_cogs: float = 0
    gross_profit: float = 0
    gross_margin_percent: float = 0
    operating_expenses: float = 0
    net_profit: float = 0
    net_margin_percent: float = 0
    operating_expenses_by_category: List[ExpenseCategoryTotal] = Field(default_factory=list)


class CurrentYTD(BaseModel):
    """Current year to date with annualised run rates."""
    period_label: str = ""
    start_month: Optional[str] = None
    end_month: Optional[str] = None
    months_count: int = 0
    total_revenue: float = 0
    operating_expenses: float = 0
    net_profit: float = 0
    run_rate_revenue: float = 0
    run_rate_opex: float = 0
    run_rate_net_profit: float = 0
    revenue_vs_prior_percent: float = 0
    opex_vs_prior_percent: float = 0


class ForecastPeriod(BaseModel):
    start_month: str
    end_month: str
    months_remaining: int


class HistoricalPL(BaseModel):
    """Historical P&L snapshot pulled from Xero."""
    has_xero_data: bool = False
    prior_fy: Optional[PriorYearPL] = None
    current_ytd: Optional[CurrentYTD] = None
    forecast_period: Optional[ForecastPeriod] = None


class TeamMember(BaseModel):
    """An existing employee (usually synced from Xero payroll)."""
    employee_id: Optional[str] = None
    full_name: str
    job_title: Optional[str] = None
    annual_salary: Optional[float] = None
    classification: Optional[Literal["opex", "cogs"]] = None
    start_date: Optional[str] = None
    is_active: bool = True


class StrategicInitiative(BaseModel):
    """An initiative from the client's annual plan."""
    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    quarter_assigned: Optional[str] = None


class StepProgress(BaseModel):
    completed: bool = False
    completed_at: Optional[str] = None
    time_spent_seconds: int = 0


class SessionProgress(BaseModel):
    """Progress through the wizard as seen by the assistant."""
    years_selected: List[int] = Field(default_factory=lambda: [1])
    steps_completed: Dict[str, StepProgress] = Field(default_factory=dict)


class WizardDecision(BaseModel):
    """
    One confirmed user choice (a hire, an investment, a cost change).

    Created once when the user confirms the data and never changed afterwards;
    decisions are persisted as an audit trail when the forecast is generated.
    """
    model_config = ConfigDict(frozen=True)

    decision_type: str = Field(..., description="One of DecisionType")
    decision_data: Dict[str, Any] = Field(default_factory=dict)
    user_reasoning: Optional[str] = None
    linked_initiative_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class WizardContext(BaseModel):
    """
    Accumulated state for a wizard session.

    Built once when the session starts. The only mutation during a session is
    appending decisions.
    """
    business_id: str
    business_name: Optional[str] = None
    industry: Optional[str] = None
    fiscal_year: int
    goals: Optional[WizardGoals] = None
    xero_connected: bool = False
    historical_pl: Optional[HistoricalPL] = None
    current_team: List[TeamMember] = Field(default_factory=list)
    strategic_initiatives: List[StrategicInitiative] = Field(default_factory=list)
    session: Optional[SessionProgress] = None
    decisions_made: List[WizardDecision] = Field(default_factory=list)

    @property
    def year_type(self) -> str:
        return self.goals.year_type if self.goals else "FY"

    def record_decision(self, decision: WizardDecision) -> None:
        """Append a confirmed decision to the session."""
        self.decisions_made.append(decision)


# ============================================================================
# CHAT REQUEST/RESPONSE
# ============================================================================

class CFOMessage(BaseModel):
    """A single message in the wizard conversation."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    role: Literal["user", "assistant", "cfo", "system"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    timestamp: Optional[datetime] = Field(None, description="When message was sent")
    step: Optional[WizardStep] = None


class ChatRequest(BaseModel):
    """A user turn in the wizard conversation."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(None, description="User's message; empty asks for the step greeting")
    step: Optional[WizardStep] = Field(None, description="Current wizard step")
    context: Optional[WizardContext] = Field(None, description="Accumulated wizard context")
    conversation_history: List[CFOMessage] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Previous messages in this conversation"
    )
    session_id: Optional[str] = Field(None, alias="sessionId", description="Wizard session, for interaction logging")


class ChatResponse(BaseModel):
    """Assistant reply plus parsed markers and the step outcome."""
    model_config = ConfigDict(populate_by_name=True)

    response: CFOMessage
    suggestions: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    data_extracted: Optional[Dict[str, Any]] = Field(None, alias="dataExtracted")
    step_complete: bool = Field(False, alias="stepComplete")
    next_step: Optional[WizardStep] = Field(None, alias="nextStep")
    decision: Optional[WizardDecision] = None


# ============================================================================
# SESSIONS
# ============================================================================

class WizardSessionOut(BaseModel):
    """A persisted wizard session."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    business_id: str
    forecast_id: Optional[str] = None
    mode: str
    current_step: str
    steps_completed: Dict[str, Any] = Field(default_factory=dict)
    years_selected: List[int] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session: WizardSessionOut
    is_new: Optional[bool] = Field(None, alias="isNew")


class SessionUpdate(BaseModel):
    """Progress update for a wizard session."""
    session_id: Optional[str] = None
    current_step: Optional[WizardStep] = None
    step_completed: Optional[WizardStep] = None
    years_selected: Optional[List[int]] = None
    mode: Optional[str] = None
    forecast_id: Optional[str] = None


class SessionComplete(BaseModel):
    session_id: Optional[str] = None
    forecast_id: Optional[str] = None


class SessionCompleteResponse(BaseModel):
    success: bool = True
    session: WizardSessionOut


# ============================================================================
# REVIEW
# ============================================================================

class ValidationConcern(BaseModel):
    """Something the review step should raise with the user."""
    severity: Literal["error", "warning", "info"]
    category: str
    message: str
    suggestion: Optional[str] = None


class ReviewSummary(BaseModel):
    """Rolled-up numbers presented at the review step."""
    revenue: Dict[str, float]
    costs: Dict[str, float]
    profit: Dict[str, float]
    headcount: Dict[str, int]
    key_decisions: List[str] = Field(default_factory=list)


class ReviewRequest(BaseModel):
    context: WizardContext


class ReviewResponse(BaseModel):
    concerns: List[ValidationConcern] = Field(default_factory=list)
    summary: ReviewSummary
