"""Forecast models - saved forecasts, their P&L lines, employees and decisions."""
from sqlalchemy import Column, String, DateTime, Boolean, Integer, Numeric, Text, ForeignKey
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from wisdom_bi.database import Base
from wisdom_bi.ids import generate_id


class FinancialForecast(Base):
    """A saved forecast for one business and fiscal year."""

    __tablename__ = "financial_forecasts"

    id = Column(String, primary_key=True, default=lambda: generate_id("fcst"))
    business_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    fiscal_year = Column(Integer, nullable=False)
    year_type = Column(String, nullable=False, default="FY")
    name = Column(String, nullable=True)
    forecast_type = Column(String, nullable=False, default="forecast")
    forecast_duration = Column(Integer, nullable=False, default=1)

    # Period covered, as "YYYY-MM" keys
    actual_start_month = Column(String, nullable=True)
    actual_end_month = Column(String, nullable=True)
    forecast_start_month = Column(String, nullable=True)
    forecast_end_month = Column(String, nullable=True)

    # Year-one targets and where they came from (wizard_v4 | goals_wizard)
    revenue_goal = Column(Numeric(14, 2), nullable=True)
    gross_profit_goal = Column(Numeric(14, 2), nullable=True)
    net_profit_goal = Column(Numeric(14, 2), nullable=True)
    goal_source = Column(String, nullable=True)

    # Wizard inputs, stored as submitted
    assumptions = Column(JSONB, nullable=True)
    goals = Column(JSONB, nullable=True)
    years_selected = Column(JSONB, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    wizard_completed_at = Column(DateTime(timezone=True), nullable=True)
    wizard_session_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    pl_lines = relationship("ForecastPLLine", back_populates="forecast", cascade="all, delete-orphan")
    employees = relationship("ForecastEmployeeRow", back_populates="forecast", cascade="all, delete-orphan")
    decisions = relationship("ForecastDecisionRecord", back_populates="forecast", cascade="all, delete-orphan")


class ForecastPLLine(Base):
    """One P&L account line with its twelve monthly amounts."""

    __tablename__ = "forecast_pl_lines"

    id = Column(String, primary_key=True, default=lambda: generate_id("pll"))
    forecast_id = Column(String, ForeignKey("financial_forecasts.id", ondelete="CASCADE"), nullable=False, index=True)
    account_name = Column(String, nullable=False)
    account_code = Column(String, nullable=True)
    category = Column(String, nullable=False)
    account_type = Column(String, nullable=True)
    forecast_months = Column(JSONB, nullable=False, default=dict)
    actual_months = Column(JSONB, nullable=False, default=dict)
    forecast_method = Column(JSONB, nullable=True)
    is_from_xero = Column(Boolean, nullable=False, default=False)
    is_from_payroll = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    forecast = relationship("FinancialForecast", back_populates="pl_lines")


class ForecastEmployeeRow(Base):
    """A team member included in a forecast."""

    __tablename__ = "forecast_employees"

    id = Column(String, primary_key=True, default=lambda: generate_id("femp"))
    forecast_id = Column(String, ForeignKey("financial_forecasts.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_name = Column(String, nullable=False)
    position = Column(String, nullable=True)
    classification = Column(String, nullable=False, default="opex")  # opex | cogs
    annual_salary = Column(Numeric(14, 2), nullable=False, default=0)
    start_date = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_from_xero = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    forecast = relationship("FinancialForecast", back_populates="employees")


class ForecastDecisionRecord(Base):
    """Audit trail of a decision made in the conversational wizard."""

    __tablename__ = "forecast_decisions"

    id = Column(String, primary_key=True, default=lambda: generate_id("fdec"))
    forecast_id = Column(String, ForeignKey("financial_forecasts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=True)
    business_id = Column(String, nullable=True, index=True)
    decision_type = Column(String, nullable=False)
    decision_data = Column(JSONB, nullable=False, default=dict)
    user_reasoning = Column(Text, nullable=True)
    linked_initiative_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    forecast = relationship("FinancialForecast", back_populates="decisions")


class SubscriptionAudit(Base):
    """Latest subscription audit results for a business."""

    __tablename__ = "subscription_audits"

    id = Column(String, primary_key=True, default=lambda: generate_id("saud"))
    business_id = Column(String, nullable=False, unique=True, index=True)
    forecast_id = Column(String, nullable=True)
    audited_at = Column(String, nullable=True)
    summary = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
