"""Forecast generation API routes.

Endpoints:
- POST /forecast-wizard-v4/generate - Save a forecast from wizard assumptions
- POST /forecast-wizard/generate - Save a forecast from CFO wizard decisions
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from wisdom_bi.auth.dependencies import get_current_user_id
from wisdom_bi.database import get_db
from wisdom_bi.forecast import schemas, service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/forecast-wizard-v4/generate",
    response_model=schemas.GenerateResponse,
    response_model_exclude_none=True,
)
async def generate_forecast_v4(
    request: schemas.GenerateV4Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Generate a forecast from the assumptions wizard and save it.

    Replaces the P&L lines and employees of the target forecast. With
    createNew a new forecast is always created; with isDraft the forecast
    is saved without being marked complete.
    """
    if not request.business_id or not request.fiscal_year or not request.assumptions:
        raise HTTPException(status_code=400, detail="Missing required fields: businessId, fiscalYear, assumptions")

    try:
        return await service.save_assumptions_forecast(db, user_id, request)
    except HTTPException:
        raise
    except service.ForecastPersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Forecast generation failed for business {request.business_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/forecast-wizard/generate",
    response_model=schemas.GenerateResponse,
    response_model_exclude_none=True,
)
async def generate_forecast_from_decisions(
    request: schemas.GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Generate a forecast from the CFO wizard's context and decisions."""
    if not request.business_id or not request.fiscal_year or not request.context:
        raise HTTPException(status_code=400, detail="Missing required fields: businessId, fiscalYear, context")

    try:
        return await service.save_decision_forecast(db, user_id, request)
    except HTTPException:
        raise
    except service.ForecastPersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Wizard forecast generation failed for business {request.business_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
