"""Tests for CFO reply parsing and the model call."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wisdom_bi.config import settings
from wisdom_bi.wizard.responder import (
    CFOAgentError,
    call_cfo_model,
    extract_data,
    extract_suggestions,
    model_for_step,
    parse_cfo_reply,
)
from wisdom_bi.wizard.schemas import WizardStep


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_completion("Sounds good."))
    return client


# ============================================================================
# PARSING
# ============================================================================

class TestParseCfoReply:
    """Tests for marker parsing."""

    def test_plain_reply(self):
        parsed = parse_cfo_reply("What salary are you thinking?")

        assert parsed.message == "What salary are you thinking?"
        assert parsed.step_complete is False
        assert parsed.suggestions == []
        assert parsed.decision is None

    def test_step_complete_marker_is_stripped(self):
        parsed = parse_cfo_reply("Great, team is sorted. [STEP_COMPLETE]")

        assert parsed.step_complete is True
        assert parsed.message == "Great, team is sorted."

    @pytest.mark.parametrize("reply,expected", [
        ("Great.[STEP_COMPLETE] Next we look at costs.", "Great. Next we look at costs."),
        ("Great. [STEP_COMPLETE]Next we look at costs.", "Great. Next we look at costs."),
        ("Team done.\n\n[STEP_COMPLETE]\n\nOn to costs.", "Team done.\n\nOn to costs."),
    ])
    def test_marker_inside_text_keeps_words_apart(self, reply, expected):
        assert parse_cfo_reply(reply).message == expected

    def test_suggestions_extracted_and_stripped(self):
        reply = "Any other hires?\n[SUGGEST] Add another hire\n[SUGGEST] No more hires"
        parsed = parse_cfo_reply(reply)

        assert parsed.suggestions == ["Add another hire", "No more hires"]
        assert "[SUGGEST]" not in parsed.message
        assert parsed.message == "Any other hires?"

    def test_suggestions_capped_at_three(self):
        reply = "Pick one\n" + "\n".join(f"[SUGGEST] Option {i}" for i in range(5))
        assert extract_suggestions(reply) == ["Option 0", "Option 1", "Option 2"]

    def test_long_suggestions_dropped(self):
        reply = "[SUGGEST] " + "x" * 60 + "\n[SUGGEST] Short one"
        assert extract_suggestions(reply) == ["Short one"]

    def test_json_decision_block(self):
        reply = (
            "Locked in the new project manager.\n"
            "```json\n"
            '{"decision_type": "new_hire", "decision_data": {"role": "Project Manager", '
            '"salary": 95000, "start_month": "February"}, "user_reasoning": "Growth"}\n'
            "```\n"
            "[SUGGEST] Add another hire"
        )
        parsed = parse_cfo_reply(reply, WizardStep.TEAM)

        assert parsed.decision is not None
        assert parsed.decision.decision_type == "new_hire"
        assert parsed.decision.decision_data["salary"] == 95000
        assert parsed.decision.user_reasoning == "Growth"
        assert "```" not in parsed.message
        assert parsed.data_extracted["decision_data"]["role"] == "Project Manager"

    def test_unknown_decision_type_ignored(self):
        reply = '```json\n{"decision_type": "holiday", "decision_data": {}}\n```'
        assert parse_cfo_reply(reply).decision is None

    def test_malformed_json_ignored(self):
        parsed = parse_cfo_reply("```json\n{not json}\n```\nOk.")
        assert parsed.decision is None
        assert parsed.data_extracted is None


class TestExtractData:
    """Tests for step-specific extraction."""

    def test_team_salaries(self):
        data = extract_data("A $95,000 salary plus $1,200.50 in allowances", WizardStep.TEAM)
        assert data == {"mentioned_salaries": [95000.0, 1200.5]}

    def test_costs_amounts(self):
        data = extract_data("Rent is $4,000 a month", WizardStep.COSTS)
        assert data == {"mentioned_costs": [4000.0]}

    def test_projection_rates(self):
        data = extract_data("Growth of 15% then 12.5 %", WizardStep.PROJECTIONS)
        assert data == {"mentioned_growth_rates": [15.0, 12.5]}

    def test_other_steps_extract_nothing(self):
        assert extract_data("$95,000", WizardStep.SETUP) is None


# ============================================================================
# MODEL CALL
# ============================================================================

class TestCallCfoModel:
    """Tests for call_cfo_model."""

    @pytest.mark.asyncio
    async def test_returns_content(self, openai_client):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"):
            reply = await call_cfo_model(openai_client, [{"role": "user", "content": "hi"}], "gpt-4o")

        assert reply == "Sounds good."
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == settings.OPENAI_MAX_TOKENS

    @pytest.mark.asyncio
    async def test_missing_api_key(self, openai_client):
        with patch.object(settings, "OPENAI_API_KEY", ""):
            with pytest.raises(CFOAgentError):
                await call_cfo_model(openai_client, [], "gpt-4o")

        openai_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_failure(self, openai_client):
        openai_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("timeout"))

        with patch.object(settings, "OPENAI_API_KEY", "sk-test"):
            with pytest.raises(CFOAgentError):
                await call_cfo_model(openai_client, [], "gpt-4o")

    @pytest.mark.asyncio
    async def test_empty_reply(self, openai_client):
        openai_client.chat.completions.create = AsyncMock(return_value=_completion(""))

        with patch.object(settings, "OPENAI_API_KEY", "sk-test"):
            with pytest.raises(CFOAgentError):
                await call_cfo_model(openai_client, [], "gpt-4o")

    def test_review_uses_review_model(self):
        assert model_for_step(WizardStep.REVIEW) == settings.OPENAI_MODEL_REVIEW
        assert model_for_step(WizardStep.TEAM) == settings.OPENAI_MODEL
