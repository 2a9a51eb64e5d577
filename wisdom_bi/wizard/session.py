"""Wizard session tracking and AI interaction logging."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wisdom_bi.forecast.models import FinancialForecast
from wisdom_bi.wizard import models
from wisdom_bi.wizard.schemas import SessionUpdate, WizardStep
from wisdom_bi.wizard.steps import WizardStepMachine

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """No session with that id belongs to the user."""
    pass


async def get_or_create_session(
    db: AsyncSession,
    user_id: str,
    business_id: str,
    forecast_id: Optional[str] = None,
) -> Tuple[models.WizardSession, bool]:
    """
    Return the business's open session, or start a new one.

    Returns:
        (session, is_new)
    """
    result = await db.execute(
        select(models.WizardSession)
        .where(
            models.WizardSession.business_id == business_id,
            models.WizardSession.completed_at.is_(None),
        )
        .order_by(models.WizardSession.created_at.desc())
        .limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing, False

    session = models.WizardSession(
        user_id=user_id,
        business_id=business_id,
        forecast_id=forecast_id,
        mode="guided",
        current_step=WizardStep.SETUP.value,
        steps_completed={},
        years_selected=[1],
        started_at=datetime.now(timezone.utc),
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)

    logger.info(f"Started wizard session {session.id} for business {business_id}")
    return session, True


async def _load_user_session(db: AsyncSession, user_id: str, session_id: str) -> models.WizardSession:
    result = await db.execute(
        select(models.WizardSession).where(
            models.WizardSession.id == session_id,
            models.WizardSession.user_id == user_id,
        )
    )
    session = result.scalar_one_or_none()
    if not session:
        raise SessionNotFoundError(session_id)
    return session


async def update_session(db: AsyncSession, user_id: str, data: SessionUpdate) -> models.WizardSession:
    """Apply a progress update; marking a step completed records when."""
    session = await _load_user_session(db, user_id, data.session_id)

    if data.current_step:
        session.current_step = WizardStepMachine.navigate(data.current_step).value
    if data.mode:
        session.mode = data.mode
    if data.years_selected:
        session.years_selected = data.years_selected
    if data.forecast_id:
        session.forecast_id = data.forecast_id

    if data.step_completed:
        # Reassign so the JSONB change is detected
        steps: Dict[str, Any] = dict(session.steps_completed or {})
        steps[data.step_completed.value] = {
            "completed": True,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "time_spent_seconds": 0,
        }
        session.steps_completed = steps

    session.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(session)
    return session


async def complete_session(
    db: AsyncSession,
    user_id: str,
    session_id: str,
    forecast_id: Optional[str] = None,
) -> models.WizardSession:
    """Close the session and stamp the forecast it produced."""
    session = await _load_user_session(db, user_id, session_id)
    now = datetime.now(timezone.utc)

    session.completed_at = now
    session.forecast_id = forecast_id
    session.updated_at = now

    if forecast_id:
        await db.execute(
            update(FinancialForecast)
            .where(FinancialForecast.id == forecast_id)
            .values(wizard_completed_at=now, wizard_session_id=session_id)
        )

    await db.commit()
    await db.refresh(session)

    logger.info(f"Completed wizard session {session_id} (forecast={forecast_id})")
    return session


async def log_ai_interaction(
    db: AsyncSession,
    *,
    session_id: str,
    user_id: str,
    business_id: Optional[str],
    step: str,
    user_message: str,
    ai_response: str,
    suggestions: Optional[List[str]] = None,
    warnings: Optional[List[str]] = None,
    data_extracted: Optional[Dict[str, Any]] = None,
) -> None:
    """Store the exchange for analytics; never fails the request."""
    try:
        db.add(models.AIInteraction(
            session_id=session_id,
            user_id=user_id,
            business_id=business_id,
            step_context=step,
            prompt=user_message,
            response=ai_response,
            context_type="forecast_wizard",
            conversation_context={
                "suggestions": suggestions,
                "warnings": warnings,
                "data_extracted": data_extracted,
            },
        ))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.warning(f"Failed to log AI interaction for session {session_id}: {e}")
