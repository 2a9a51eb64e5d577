"""CFO Responder - Calls OpenAI and parses the assistant's reply.

Replies carry inline markers:
- [STEP_COMPLETE] when the user said they are done with the step
- [SUGGEST] <text> for each quick-reply suggestion
- an optional ```json block describing a confirmed decision
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from wisdom_bi.config import settings
from wisdom_bi.wizard.schemas import DecisionType, WizardDecision, WizardStep
from wisdom_bi.wizard.steps import STEP_COMPLETE_MARKER

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3
MAX_SUGGESTION_CHARS = 50

SUGGEST_PATTERN = re.compile(r"\[SUGGEST\]\s*(.+?)(?=\[SUGGEST\]|$|\n)")
STEP_COMPLETE_PATTERN = re.compile(r"[ \t]*\[STEP_COMPLETE\][ \t]*")
BLANK_LINES_PATTERN = re.compile(r"\n[ \t]*\n\s*")
JSON_BLOCK_PATTERN = re.compile(r"```json\n?([\s\S]*?)\n?```")
AMOUNT_PATTERN = re.compile(r"\$(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)")
PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%")


class CFOAgentError(Exception):
    """The language model could not produce a reply."""
    pass


@dataclass
class ParsedReply:
    message: str
    step_complete: bool
    suggestions: List[str] = field(default_factory=list)
    data_extracted: Optional[Dict[str, Any]] = None
    decision: Optional[WizardDecision] = None


def get_openai_client() -> AsyncOpenAI:
    """FastAPI dependency providing the OpenAI client."""
    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY)


def model_for_step(step: WizardStep) -> str:
    """The review step uses the stronger review model."""
    if WizardStep(step) == WizardStep.REVIEW:
        return settings.OPENAI_MODEL_REVIEW
    return settings.OPENAI_MODEL


async def call_cfo_model(
    client: AsyncOpenAI,
    messages: List[Dict[str, Any]],
    model: str,
) -> str:
    """
    Send one completion request.

    Raises:
        CFOAgentError: if the API key is missing, the call fails or the
            reply is empty. No retries.
    """
    if not settings.OPENAI_API_KEY:
        raise CFOAgentError("OpenAI API key is not configured")

    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=settings.OPENAI_MAX_TOKENS,
        )
    except Exception as e:
        logger.error(f"CFO model call failed ({model}): {e}")
        raise CFOAgentError("Failed to get a response from the AI CFO") from e

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise CFOAgentError("No response from the AI CFO")
    return content


def extract_suggestions(reply: str) -> List[str]:
    """Suggestions from [SUGGEST] markers, short ones only, at most three."""
    suggestions = []
    for match in SUGGEST_PATTERN.finditer(reply):
        suggestion = match.group(1).strip()
        if suggestion and len(suggestion) < MAX_SUGGESTION_CHARS:
            suggestions.append(suggestion)
    return suggestions[:MAX_SUGGESTIONS]


def strip_markers(reply: str) -> str:
    """The reply text without markers or the decision block."""
    cleaned = STEP_COMPLETE_PATTERN.sub(" ", reply)
    cleaned = SUGGEST_PATTERN.sub("", cleaned)
    cleaned = cleaned.replace("[SUGGEST]", "")
    cleaned = JSON_BLOCK_PATTERN.sub("", cleaned)
    cleaned = BLANK_LINES_PATTERN.sub("\n\n", cleaned)
    return cleaned.strip()


def extract_data(reply: str, step: Optional[WizardStep] = None) -> Optional[Dict[str, Any]]:
    """
    Structured data from the reply.

    A fenced JSON block wins; otherwise amounts or percentages mentioned in
    the team, costs and projections steps are collected.
    """
    match = JSON_BLOCK_PATTERN.search(reply)
    if match:
        try:
            data = json.loads(match.group(1))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            logger.debug("Ignoring malformed JSON block in CFO reply")

    if step == WizardStep.TEAM:
        amounts = AMOUNT_PATTERN.findall(reply)
        if amounts:
            return {"mentioned_salaries": [float(a.replace(",", "")) for a in amounts]}
    elif step == WizardStep.COSTS:
        amounts = AMOUNT_PATTERN.findall(reply)
        if amounts:
            return {"mentioned_costs": [float(a.replace(",", "")) for a in amounts]}
    elif step == WizardStep.PROJECTIONS:
        rates = PERCENT_PATTERN.findall(reply)
        if rates:
            return {"mentioned_growth_rates": [float(r) for r in rates]}

    return None


def decision_from_data(data: Optional[Dict[str, Any]]) -> Optional[WizardDecision]:
    """A decision record when the extracted data describes one."""
    if not data:
        return None

    decision_type = data.get("decision_type")
    decision_data = data.get("decision_data")
    if decision_type not in {t.value for t in DecisionType} or not isinstance(decision_data, dict):
        return None

    return WizardDecision(
        decision_type=decision_type,
        decision_data=decision_data,
        user_reasoning=data.get("user_reasoning"),
        linked_initiative_id=data.get("linked_initiative_id"),
    )


def parse_cfo_reply(reply: str, step: Optional[WizardStep] = None) -> ParsedReply:
    """Split a raw model reply into display text, markers and extracted data."""
    data = extract_data(reply, step)
    return ParsedReply(
        message=strip_markers(reply),
        step_complete=STEP_COMPLETE_MARKER in reply,
        suggestions=extract_suggestions(reply),
        data_extracted=data,
        decision=decision_from_data(data),
    )
