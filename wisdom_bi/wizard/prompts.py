"""CFO Prompt Builder - Compiles personality, step instructions and context.

The system prompt sent for every wizard turn has four parts:
- The CFO personality and conversation rules
- Today's date and the current financial year
- Instructions for the current wizard step
- The wizard context rendered as plain text
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from wisdom_bi.config import settings
from wisdom_bi.wizard.schemas import CFOMessage, WizardContext, WizardStep

# Only the most recent turns are sent to the model
MAX_HISTORY_MESSAGES = 20
MAX_CONTEXT_DECISIONS = 10


CFO_PERSONALITY = """You are CFO Copilot, an AI financial advisor helping business owners build their financial forecasts. You have decades of experience with Australian small and medium businesses and you care about their success.

## CORE PRINCIPLES
1. The user controls the pace. They decide when to move on.
2. Focus on one item at a time. Confirm it before asking about the next.
3. After each entry, ask whether they would like to add another.
4. Only finish a step when the user clearly says they are done.

## CONVERSATION STYLE
- Warm, professional and patient, like a trusted advisor in a face-to-face meeting
- Reference actual numbers from their data
- Keep responses concise (80-150 words typically)
- Use Australian English and AUD currency

## YEAR TYPE AWARENESS
- FY = Financial Year (July to June). FY26 = July 2025 to June 2026
- CY = Calendar Year (January to December)
- Always use the year type from their context

## STEP COMPLETION
- Only add [STEP_COMPLETE] when the user explicitly indicates they are done
- Phrases that mean done: "that's all", "I'm done", "no more", "let's move on", "next step", "nothing else", "all good", "done"
- Phrases that mean continue: "yes", "add another", "one more", or any new data
- When in doubt, ask: "Shall we move on to the next section, or would you like to add more?"
- Never assume they are done just because they answered one question

## RECORDING DECISIONS
When the user confirms a hire, an investment or a cost change, include a fenced JSON block:
```json
{"decision_type": "new_hire", "decision_data": {"role": "Project Manager", "annual_salary": 95000, "start_month": "February", "classification": "opex"}}
```
- decision_type is one of new_hire, investment, cost_changed
- investment data: {"description", "amount", "type": "capex" | "opex"}
- cost_changed data: {"description", "adjustment_percent"}

## SUGGESTED RESPONSES
End every message with 2-3 suggested replies, each on a new line starting with [SUGGEST].
- Each suggestion must lead to a different outcome
- Keep them under 6 words
- Examples: [SUGGEST] Add another [SUGGEST] That's everything
"""


STEP_PROMPTS: Dict[WizardStep, str] = {
    WizardStep.SETUP: """SETUP STEP - Establish forecast parameters

GOAL: Confirm the revenue target and how many years to forecast.

FLOW:
1. Greet the user and acknowledge their revenue target if set (goals.revenue_target)
2. Recommend a forecast duration: growing business 1 year, established 2 years, strategic planning 3 years
3. Wait for their confirmation
4. Ask if anything about the targets needs adjusting
5. When they confirm all is good, add [STEP_COMPLETE]""",

    WizardStep.TEAM: """TEAM STEP - Plan people costs

GOAL: Review the existing team and collect every planned hire.

FLOW:
1. Summarise the existing team if present (headcount, total wages, COGS vs OpEx split)
2. Ask about planned hires
3. Collect each hire one at a time: role, salary, start month, classification
   (COGS for delivery roles, OpEx for admin and support)
4. After each hire ask: "Would you like to add another hire, or is that all for now?"
5. Only when they say they are done, add [STEP_COMPLETE]

Do not complete the step after a single hire.""",

    WizardStep.COSTS: """COSTS STEP - Set the operating expenses baseline

GOAL: Establish the OpEx baseline and any adjustments.

FLOW:
1. With Xero data: show prior year OpEx, the top 3-4 categories and the current run rate, then recommend a baseline
2. Without Xero data: ask for estimated monthly OpEx excluding wages
3. Collect adjustments (inflation, categories changing significantly)
4. Ask: "Anything else to adjust, or are we good on costs?"
5. When they confirm, add [STEP_COMPLETE]""",

    WizardStep.INVESTMENTS: """INVESTMENTS STEP - Plan strategic investments

GOAL: Capture every planned investment that supports their strategy.

FLOW:
1. With strategic initiatives: reference them by name, suggest typical ranges, ask which need funding
2. Without initiatives: suggest common categories (technology, marketing, team development, equipment)
3. Collect each investment one at a time: description, amount, type, timing
4. After each one ask: "Any other investments planned?"
5. Only when they are done, add [STEP_COMPLETE]

CLASSIFICATION:
- CapEx: equipment, vehicles, fitout, technology hardware
- OpEx: marketing campaigns, training, consulting, software""",

    WizardStep.PROJECTIONS: """PROJECTIONS STEP - Confirm multi-year targets

GOAL: Confirm or set Year 2-3 targets for a multi-year forecast.

FLOW:
1. If only Year 1 is selected, move on quickly
2. With existing Year 2/3 goals: show them, calculate implied growth, ask for confirmation
3. Without them: suggest typical growth (10-20% established, 20-40% growth phase) and ask what they are targeting
4. Confirm and add [STEP_COMPLETE]

Keep this step brief.""",

    WizardStep.REVIEW: """REVIEW STEP - Final validation and approval

GOAL: Present a clear summary and get sign-off.

FLOW:
1. Present a scannable summary: revenue target, team costs (existing + new hires), operating costs, strategic investments, projected profit and margin
2. Highlight concerns: margin under 10%, costs high relative to revenue, missing components
3. Ask: "Does this look right? Ready to finalise?"
4. Address any concerns they raise
5. On final approval, add [STEP_COMPLETE]""",
}


def _money(value: Optional[float]) -> str:
    return f"${value or 0:,.0f}"


def year_label(context: WizardContext) -> str:
    return f"{context.year_type}{context.fiscal_year}"


def year_period(context: WizardContext) -> str:
    if context.year_type == "CY":
        return f"January to December {context.fiscal_year}"
    return f"July {context.fiscal_year - 1} to June {context.fiscal_year}"


def build_context_string(context: WizardContext) -> str:
    """Render the wizard context as plain text for the system prompt."""
    parts: List[str] = []

    parts.append("=== BUSINESS CONTEXT ===")
    parts.append(f"Business: {context.business_name or 'Unknown'}")
    if context.industry:
        parts.append(f"Industry: {context.industry}")
    parts.append(f"Year Type: {context.year_type} ({year_period(context)})")
    parts.append(f"Planning Period: {year_label(context)}")

    goals = context.goals
    if goals:
        parts.append("\n=== TARGETS ===")
        if goals.revenue_target:
            parts.append(f"Revenue Target: {_money(goals.revenue_target)}")
        if goals.profit_target:
            parts.append(f"Net Profit Target: {_money(goals.profit_target)}")
        if goals.gross_margin_percent:
            parts.append(f"Target Gross Margin: {goals.gross_margin_percent}%")
        if goals.revenue_year2:
            parts.append(f"Year 2 Revenue Target: {_money(goals.revenue_year2)}")
        if goals.revenue_year3:
            parts.append(f"Year 3 Revenue Target: {_money(goals.revenue_year3)}")

    pl = context.historical_pl
    if context.xero_connected and pl and pl.has_xero_data:
        parts.append("\n=== XERO HISTORICAL DATA ===")

        if pl.prior_fy:
            fy = pl.prior_fy
            parts.append(f"\nPRIOR YEAR ({fy.period_label}):")
            parts.append(f"  Revenue: {_money(fy.total_revenue)}")
            parts.append(f"  COGS: {_money(fy.total_cogs)}")
            parts.append(f"  Gross Profit: {_money(fy.gross_profit)} ({fy.gross_margin_percent:.1f}%)")
            parts.append(f"  OpEx: {_money(fy.operating_expenses)}")
            parts.append(f"  Net Profit: {_money(fy.net_profit)} ({fy.net_margin_percent:.1f}%)")

            if fy.operating_expenses_by_category:
                parts.append("\n  Top OpEx Categories:")
                for cat in fy.operating_expenses_by_category[:5]:
                    parts.append(f"    - {cat.account_name}: {_money(cat.total)}/yr")

        if pl.current_ytd and pl.current_ytd.months_count > 0:
            ytd = pl.current_ytd
            parts.append(f"\nCURRENT YTD ({ytd.period_label}, {ytd.months_count} months):")
            parts.append(f"  Revenue YTD: {_money(ytd.total_revenue)}")
            parts.append(f"  OpEx YTD: {_money(ytd.operating_expenses)}")
            parts.append(f"  Run Rate Revenue: {_money(ytd.run_rate_revenue)}/yr")
            parts.append(f"  Run Rate OpEx: {_money(ytd.run_rate_opex)}/yr")
    else:
        parts.append("\n=== NO XERO DATA ===")
        parts.append("Xero not connected. Will need manual input.")

    if context.current_team:
        team = context.current_team
        total_wages = sum(e.annual_salary or 0 for e in team)
        cogs_count = len([e for e in team if e.classification == "cogs"])
        opex_count = len([e for e in team if e.classification == "opex"])

        parts.append("\n=== CURRENT TEAM ===")
        parts.append(f"Total: {len(team)} people, {_money(total_wages)}/yr")
        parts.append(f"  COGS (delivery): {cogs_count} people")
        parts.append(f"  OpEx (operations): {opex_count} people")
        parts.append("\n  Team Members:")
        for emp in team:
            salary = _money(emp.annual_salary) if emp.annual_salary else "TBD"
            parts.append(
                f"    - {emp.full_name}: {emp.job_title or 'No title'} "
                f"({salary}, {emp.classification or 'unclassified'})"
            )

    if context.strategic_initiatives:
        parts.append("\n=== STRATEGIC INITIATIVES ===")
        for i, init in enumerate(context.strategic_initiatives):
            quarter = f" ({init.quarter_assigned})" if init.quarter_assigned else ""
            parts.append(f"{i + 1}. {init.title}{quarter}")
            if init.description:
                parts.append(f"   {init.description[:100]}")

    if context.session:
        parts.append("\n=== SESSION ===")
        years = ", ".join(str(y) for y in context.session.years_selected) or "1"
        parts.append(f"Years Selected: {years}")
        completed = [step for step, progress in context.session.steps_completed.items() if progress.completed]
        if completed:
            parts.append(f"Completed Steps: {', '.join(completed)}")

    if context.decisions_made:
        parts.append("\n=== DECISIONS MADE THIS SESSION ===")
        for decision in context.decisions_made[-MAX_CONTEXT_DECISIONS:]:
            data = json.dumps(decision.decision_data, default=str)[:100]
            parts.append(f"- {decision.decision_type}: {data}")

    return "\n".join(parts)


def current_financial_year(now: datetime) -> int:
    """Australian financial year (July-June) containing the given date."""
    return now.year + 1 if now.month >= 7 else now.year


def build_system_prompt(
    step: WizardStep,
    context: WizardContext,
    now: Optional[datetime] = None,
) -> str:
    """Build the complete system prompt for one wizard turn."""
    now = now or datetime.now(ZoneInfo(settings.BUSINESS_TIMEZONE))
    step = WizardStep(step)
    today = f"{now:%A}, {now.day} {now:%B %Y}"

    parts = [
        CFO_PERSONALITY,
        f"TODAY'S DATE: {today}",
        "Use this date for all time-based references. "
        f"We are currently in FY{current_financial_year(now)} (Australian financial year runs July-June).",
        "",
        f"=== CURRENT STEP: {step.value.upper()} ===",
        STEP_PROMPTS[step],
        "",
        "=== CONTEXT ===",
        build_context_string(context),
    ]
    return "\n".join(parts)


def build_messages(
    system_prompt: str,
    conversation_history: List[CFOMessage],
    user_message: str,
) -> List[Dict[str, Any]]:
    """
    Build the OpenAI message list for a turn.

    Only the last MAX_HISTORY_MESSAGES are sent; any non-user role is sent
    as the assistant.
    """
    messages = [{"role": "system", "content": system_prompt}]

    for msg in conversation_history[-MAX_HISTORY_MESSAGES:]:
        messages.append({
            "role": "user" if msg.role == "user" else "assistant",
            "content": msg.content,
        })

    messages.append({"role": "user", "content": user_message})
    return messages
