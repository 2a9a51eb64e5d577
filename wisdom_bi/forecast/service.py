"""
Forecast persistence - saves generated forecasts.

The forecast row is the primary write: if it fails the request fails. P&L
lines and employees are replaced per table (delete then insert) and a failure
there is logged without failing the request. Audit tables (decisions,
subscription audits) are best-effort.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from wisdom_bi.forecast import models
from wisdom_bi.forecast.assembler import (
    ForecastEmployee,
    PLLine,
    generate_employees,
    generate_employees_from_decisions,
    generate_pl_lines,
    generate_pl_lines_from_decisions,
)
from wisdom_bi.forecast.assumptions import SubscriptionAuditSummary, merge_scenario_overrides
from wisdom_bi.forecast.months import generate_month_keys
from wisdom_bi.forecast.schemas import (
    GenerateRequest,
    GenerateResponse,
    GenerateSummary,
    GenerateV4Request,
)
from wisdom_bi.wizard.schemas import WizardDecision

logger = logging.getLogger(__name__)


class ForecastPersistenceError(Exception):
    """The forecast row itself could not be written."""
    pass


# =============================================================================
# Table helpers
# =============================================================================

async def find_forecast(
    db: AsyncSession,
    business_id: str,
    fiscal_year: int,
    forecast_id: Optional[str] = None,
) -> Optional[models.FinancialForecast]:
    """Find a forecast by id, or the active one for the business and year."""
    if forecast_id:
        result = await db.execute(
            select(models.FinancialForecast).where(
                models.FinancialForecast.id == forecast_id,
                models.FinancialForecast.business_id == business_id,
            )
        )
        return result.scalar_one_or_none()

    result = await db.execute(
        select(models.FinancialForecast)
        .where(
            models.FinancialForecast.business_id == business_id,
            models.FinancialForecast.fiscal_year == fiscal_year,
            models.FinancialForecast.is_active == True,  # noqa: E712
        )
        .order_by(models.FinancialForecast.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_forecast(
    db: AsyncSession,
    *,
    business_id: str,
    fiscal_year: int,
    values: dict,
    forecast_id: Optional[str] = None,
    create_new: bool = False,
) -> models.FinancialForecast:
    """
    Update the target forecast or create one.

    With create_new the previously active forecast for the year is
    deactivated so there is a single active forecast per business and year.

    Raises:
        ForecastPersistenceError: if the write fails
    """
    try:
        forecast = None
        if not create_new:
            forecast = await find_forecast(db, business_id, fiscal_year, forecast_id)

        if forecast:
            for key, value in values.items():
                setattr(forecast, key, value)
        else:
            if create_new:
                await db.execute(
                    update(models.FinancialForecast)
                    .where(
                        models.FinancialForecast.business_id == business_id,
                        models.FinancialForecast.fiscal_year == fiscal_year,
                        models.FinancialForecast.is_active == True,  # noqa: E712
                    )
                    .values(is_active=False)
                )
            forecast = models.FinancialForecast(
                business_id=business_id,
                fiscal_year=fiscal_year,
                is_active=True,
                **values,
            )
            db.add(forecast)

        await db.commit()
        await db.refresh(forecast)
        return forecast

    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to save forecast for business {business_id} FY{fiscal_year}: {e}")
        raise ForecastPersistenceError("Failed to save forecast") from e


async def replace_pl_lines(db: AsyncSession, forecast_id: str, lines: List[PLLine]) -> bool:
    """Delete the forecast's P&L lines and insert the new set."""
    try:
        await db.execute(
            delete(models.ForecastPLLine).where(models.ForecastPLLine.forecast_id == forecast_id)
        )
        db.add_all([models.ForecastPLLine(forecast_id=forecast_id, **line.to_row()) for line in lines])
        await db.commit()
        return True
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to save P&L lines for forecast {forecast_id}: {e}")
        return False


async def replace_employees(db: AsyncSession, forecast_id: str, employees: List[ForecastEmployee]) -> bool:
    """Delete the forecast's employees and insert the new set."""
    try:
        await db.execute(
            delete(models.ForecastEmployeeRow).where(models.ForecastEmployeeRow.forecast_id == forecast_id)
        )
        db.add_all([models.ForecastEmployeeRow(forecast_id=forecast_id, **emp.to_row()) for emp in employees])
        await db.commit()
        return True
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to save employees for forecast {forecast_id}: {e}")
        return False


async def record_decisions(
    db: AsyncSession,
    forecast_id: str,
    user_id: Optional[str],
    business_id: Optional[str],
    decisions: List[WizardDecision],
) -> None:
    """Store wizard decisions as an audit trail (best-effort)."""
    if not decisions:
        return
    try:
        db.add_all([
            models.ForecastDecisionRecord(
                forecast_id=forecast_id,
                user_id=user_id,
                business_id=business_id,
                decision_type=d.decision_type,
                decision_data=d.decision_data,
                user_reasoning=d.user_reasoning,
                linked_initiative_id=d.linked_initiative_id,
                created_at=d.created_at,
            )
            for d in decisions
        ])
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.warning(f"Failed to record decisions for forecast {forecast_id}: {e}")


async def save_subscription_audit(
    db: AsyncSession,
    business_id: str,
    forecast_id: str,
    audit: SubscriptionAuditSummary,
) -> None:
    """Upsert the latest subscription audit for the business (best-effort)."""
    try:
        result = await db.execute(
            select(models.SubscriptionAudit).where(models.SubscriptionAudit.business_id == business_id)
        )
        row = result.scalar_one_or_none()
        summary = audit.model_dump(mode="json", by_alias=True)

        if row:
            row.forecast_id = forecast_id
            row.audited_at = audit.audited_at
            row.summary = summary
        else:
            db.add(models.SubscriptionAudit(
                business_id=business_id,
                forecast_id=forecast_id,
                audited_at=audit.audited_at,
                summary=summary,
            ))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.warning(f"Failed to save subscription audit for business {business_id}: {e}")


# =============================================================================
# Generate flows
# =============================================================================

def _period_end(fiscal_year: int, year_type: str, duration: int) -> str:
    return generate_month_keys(fiscal_year + duration - 1, year_type)[-1]


async def save_assumptions_forecast(
    db: AsyncSession,
    user_id: Optional[str],
    request: GenerateV4Request,
) -> GenerateResponse:
    """
    Generate and save a forecast from the assumptions-based wizard.

    Args:
        db: Database session
        user_id: Authenticated user
        request: Validated request; business_id, fiscal_year and assumptions are present

    Returns:
        Forecast id with line and employee counts
    """
    assumptions = request.assumptions
    months = generate_month_keys(request.fiscal_year, request.year_type)
    now = datetime.now(timezone.utc)
    year1 = request.summary.year1
    stored_assumptions = assumptions.model_dump(mode="json", by_alias=True)
    if request.scenario_overrides:
        # Lines come from the scenario; the base assumptions are kept alongside its overrides
        stored_assumptions["scenarioOverrides"] = request.scenario_overrides.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
        assumptions = merge_scenario_overrides(assumptions, request.scenario_overrides)

    values = {
        "user_id": user_id,
        "year_type": request.year_type,
        "name": request.forecast_name or f"{request.year_type}{request.fiscal_year} Forecast",
        "forecast_duration": request.forecast_duration,
        "actual_start_month": months[0],
        "actual_end_month": months[0],
        "forecast_start_month": months[0],
        "forecast_end_month": _period_end(request.fiscal_year, request.year_type, request.forecast_duration),
        "assumptions": stored_assumptions,
        "revenue_goal": year1.revenue,
        "gross_profit_goal": year1.gross_profit,
        "net_profit_goal": year1.net_profit,
        "goal_source": "wizard_v4",
    }
    if not request.is_draft:
        values["is_completed"] = True
        values["completed_at"] = now

    forecast = await upsert_forecast(
        db,
        business_id=request.business_id,
        fiscal_year=request.fiscal_year,
        values=values,
        forecast_id=request.forecast_id,
        create_new=request.create_new,
    )

    pl_lines = generate_pl_lines(assumptions, request.summary, months)
    await replace_pl_lines(db, forecast.id, pl_lines)

    employees = generate_employees(assumptions)
    await replace_employees(db, forecast.id, employees)

    if assumptions.subscriptions:
        await save_subscription_audit(db, request.business_id, forecast.id, assumptions.subscriptions)

    logger.info(
        f"Saved forecast {forecast.id} for business {request.business_id}: "
        f"{len(pl_lines)} P&L lines, {len(employees)} employees"
    )

    return GenerateResponse(
        forecast_id=forecast.id,
        summary=GenerateSummary(
            pl_lines_count=len(pl_lines),
            employees_count=len(employees),
            forecast_duration=request.forecast_duration,
        ),
    )


async def save_decision_forecast(
    db: AsyncSession,
    user_id: Optional[str],
    request: GenerateRequest,
) -> GenerateResponse:
    """Generate and save a forecast from the conversational wizard's decisions."""
    context = request.context
    year_type = context.year_type
    goals = context.goals
    months = generate_month_keys(request.fiscal_year, year_type)
    decisions = request.decisions or context.decisions_made
    years_selected = request.years_selected or [1]
    duration = max(years_selected)

    values = {
        "user_id": user_id,
        "year_type": year_type,
        "name": f"{year_type}{request.fiscal_year} Forecast",
        "forecast_duration": duration,
        "actual_start_month": months[0],
        "actual_end_month": months[0],
        "forecast_start_month": months[0],
        "forecast_end_month": _period_end(request.fiscal_year, year_type, duration),
        "goals": goals.model_dump(mode="json") if goals else None,
        "revenue_goal": goals.revenue_target if goals else None,
        "gross_profit_goal": goals.gross_profit_target if goals else None,
        "net_profit_goal": goals.profit_target if goals else None,
        "goal_source": "goals_wizard",
        "years_selected": years_selected,
        "is_completed": True,
        "completed_at": datetime.now(timezone.utc),
    }

    forecast = await upsert_forecast(
        db,
        business_id=request.business_id,
        fiscal_year=request.fiscal_year,
        values=values,
    )

    pl_lines = generate_pl_lines_from_decisions(context, decisions, months)
    await replace_pl_lines(db, forecast.id, pl_lines)

    employees = generate_employees_from_decisions(context, decisions)
    await replace_employees(db, forecast.id, employees)

    await record_decisions(db, forecast.id, user_id, request.business_id, decisions)

    logger.info(
        f"Saved wizard forecast {forecast.id} for business {request.business_id}: "
        f"{len(pl_lines)} P&L lines, {len(employees)} employees, {len(decisions)} decisions"
    )

    return GenerateResponse(
        forecast_id=forecast.id,
        summary=GenerateSummary(
            pl_lines_count=len(pl_lines),
            employees_count=len(employees),
            decisions_count=len(decisions),
            years_selected=years_selected,
        ),
    )
