"""Wizard models - sessions and the AI interaction log."""
from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from wisdom_bi.database import Base
from wisdom_bi.ids import generate_id


class WizardSession(Base):
    """Progress of one user through the forecast wizard."""

    __tablename__ = "forecast_wizard_sessions"

    id = Column(String, primary_key=True, default=lambda: generate_id("wsess"))
    user_id = Column(String, nullable=False, index=True)
    business_id = Column(String, nullable=False, index=True)
    forecast_id = Column(String, nullable=True)
    mode = Column(String, nullable=False, default="guided")  # guided | quick
    current_step = Column(String, nullable=False, default="setup")
    steps_completed = Column(JSONB, nullable=False, default=dict)
    years_selected = Column(JSONB, nullable=False, default=lambda: [1])
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class AIInteraction(Base):
    """One assistant exchange, kept for analytics."""

    __tablename__ = "ai_interactions"

    id = Column(String, primary_key=True, default=lambda: generate_id("aint"))
    session_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    business_id = Column(String, nullable=True)
    context_type = Column(String, nullable=False, default="forecast_wizard")
    step_context = Column(String, nullable=True)
    prompt = Column(Text, nullable=False)
    response = Column(Text, nullable=True)
    conversation_context = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
