"""CFO Orchestrator - Runs one turn of the forecast wizard conversation.

The orchestrator:
1. Returns the step greeting when there is no user message
2. Sanitises the message and history, logging suspected injection
3. Builds the system prompt and calls the model
4. Parses markers, applies guardrails and records any decision
5. Lets the step machine decide whether the step is complete
6. Logs the interaction when a session is given
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession

from wisdom_bi.wizard.greetings import get_step_greeting, get_suggestions_for_step
from wisdom_bi.wizard.guardrails import (
    check_guardrails,
    detect_prompt_injection,
    log_suspicious_input,
    sanitize_ai_input,
    sanitize_conversation_history,
)
from wisdom_bi.wizard.prompts import build_messages, build_system_prompt
from wisdom_bi.wizard.responder import call_cfo_model, model_for_step, parse_cfo_reply
from wisdom_bi.wizard.schemas import ChatRequest, ChatResponse, CFOMessage, WizardStep
from wisdom_bi.wizard.session import log_ai_interaction
from wisdom_bi.wizard.steps import STEP_COMPLETE_MARKER, WizardStepMachine

logger = logging.getLogger(__name__)

CHAT_ENDPOINT = "/api/forecast-wizard/chat"


def _greeting_response(request: ChatRequest, machine: WizardStepMachine) -> ChatResponse:
    greeting, _ = get_step_greeting(request.step, request.context)
    suggestions = get_suggestions_for_step(request.step, request.context)

    # Some greetings close their step straight away (single-year projections)
    step_complete = STEP_COMPLETE_MARKER in greeting.content
    next_step = None
    if step_complete:
        greeting = greeting.model_copy(update={
            "content": greeting.content.replace(STEP_COMPLETE_MARKER, "").strip()
        })
        next_step = machine.next_step(request.step)

    return ChatResponse(
        response=greeting,
        suggestions=suggestions,
        step_complete=step_complete,
        next_step=next_step,
    )


async def chat(
    db: AsyncSession,
    client: AsyncOpenAI,
    user_id: str,
    request: ChatRequest,
    machine: Optional[WizardStepMachine] = None,
) -> ChatResponse:
    """
    Handle one wizard chat turn.

    Args:
        db: Database session (interaction logging only)
        client: OpenAI client
        user_id: Authenticated user
        request: Turn request; step and context are present
        machine: Step machine, defaulting to marker-based completion

    Raises:
        CFOAgentError: if the model call fails; the step does not advance
    """
    machine = machine or WizardStepMachine()
    step = WizardStep(request.step)
    context = request.context

    if not request.message:
        return _greeting_response(request, machine)

    message = sanitize_ai_input(request.message)
    injection = detect_prompt_injection(request.message)
    if injection:
        log_suspicious_input(CHAT_ENDPOINT, user_id, request.message, injection)

    history = sanitize_conversation_history(request.conversation_history)
    messages = build_messages(build_system_prompt(step, context), history, message)

    reply = await call_cfo_model(client, messages, model_for_step(step))
    parsed = parse_cfo_reply(reply, step)
    warnings = check_guardrails(parsed.message)
    outcome = machine.apply_turn(step, message, reply)

    if parsed.decision:
        context.record_decision(parsed.decision)
        logger.info(f"Recorded {parsed.decision.decision_type} decision for business {context.business_id}")

    if request.session_id:
        await log_ai_interaction(
            db,
            session_id=request.session_id,
            user_id=user_id,
            business_id=context.business_id,
            step=step.value,
            user_message=message,
            ai_response=parsed.message,
            suggestions=parsed.suggestions,
            warnings=warnings,
            data_extracted=parsed.data_extracted,
        )

    now = datetime.now(timezone.utc)
    return ChatResponse(
        response=CFOMessage(
            id=f"msg-{int(now.timestamp() * 1000)}",
            role="assistant",
            content=parsed.message,
            timestamp=now,
            step=step,
        ),
        suggestions=parsed.suggestions,
        warnings=warnings,
        data_extracted=parsed.data_extracted,
        step_complete=outcome.step_complete,
        next_step=outcome.next_step,
        decision=parsed.decision,
    )
