"""CFO Wizard API Routes.

Endpoints:
- POST /forecast-wizard/chat - One conversational turn (or the step greeting)
- GET /forecast-wizard/session - Get or create the open wizard session
- PATCH /forecast-wizard/session - Update session progress
- POST /forecast-wizard/session - Complete the session
- POST /forecast-wizard/review - Review concerns and summary
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession

from wisdom_bi.auth.dependencies import get_current_user_id
from wisdom_bi.database import get_db
from wisdom_bi.middleware.rate_limit import AI_RATE_LIMIT, limiter
from wisdom_bi.wizard import orchestrator, schemas, session as session_service
from wisdom_bi.wizard.responder import CFOAgentError, get_openai_client
from wisdom_bi.wizard.review import generate_forecast_summary, validate_forecast

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# CHAT ENDPOINT
# ============================================================================

@router.post("/forecast-wizard/chat", response_model=schemas.ChatResponse, response_model_exclude_none=True)
@limiter.limit(AI_RATE_LIMIT)
async def chat_with_cfo(
    request: Request,
    body: schemas.ChatRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    client: AsyncOpenAI = Depends(get_openai_client),
):
    """
    Send a message to the AI CFO for the current wizard step.

    With no message the step greeting and quick suggestions are returned
    without calling the model. The response says whether the step is
    complete and which step comes next.
    """
    if not body.step or not body.context:
        raise HTTPException(status_code=400, detail="step and context are required")

    try:
        return await orchestrator.chat(db, client, user_id, body)
    except HTTPException:
        raise
    except CFOAgentError as e:
        logger.error(f"CFO chat failed for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process your message. Please try again.")
    except Exception as e:
        logger.error(f"Unexpected error in CFO chat for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process your message. Please try again.")


# ============================================================================
# SESSION ENDPOINTS
# ============================================================================

@router.get("/forecast-wizard/session", response_model=schemas.SessionResponse)
async def get_session(
    business_id: Optional[str] = Query(None),
    forecast_id: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the open wizard session for a business, creating one if needed."""
    if not business_id:
        raise HTTPException(status_code=400, detail="business_id is required")

    try:
        wizard_session, is_new = await session_service.get_or_create_session(
            db, user_id, business_id, forecast_id
        )
        return schemas.SessionResponse(
            session=schemas.WizardSessionOut.model_validate(wizard_session),
            is_new=is_new,
        )
    except Exception as e:
        logger.error(f"Failed to load wizard session for business {business_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch session")


@router.patch("/forecast-wizard/session", response_model=schemas.SessionResponse, response_model_exclude_none=True)
async def update_session(
    data: schemas.SessionUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Update wizard progress (current step, completed step, years, mode)."""
    if not data.session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    try:
        wizard_session = await session_service.update_session(db, user_id, data)
        return schemas.SessionResponse(session=schemas.WizardSessionOut.model_validate(wizard_session))
    except session_service.SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to update wizard session {data.session_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update session")


@router.post("/forecast-wizard/session", response_model=schemas.SessionCompleteResponse)
async def complete_session(
    data: schemas.SessionComplete,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark the wizard session complete and link the generated forecast."""
    if not data.session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    try:
        wizard_session = await session_service.complete_session(
            db, user_id, data.session_id, data.forecast_id
        )
        return schemas.SessionCompleteResponse(session=schemas.WizardSessionOut.model_validate(wizard_session))
    except session_service.SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to complete wizard session {data.session_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to complete session")


# ============================================================================
# REVIEW ENDPOINT
# ============================================================================

@router.post("/forecast-wizard/review", response_model=schemas.ReviewResponse)
async def review_forecast(
    data: schemas.ReviewRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Deterministic concerns and headline numbers for the review step."""
    return schemas.ReviewResponse(
        concerns=validate_forecast(data.context),
        summary=generate_forecast_summary(data.context),
    )
