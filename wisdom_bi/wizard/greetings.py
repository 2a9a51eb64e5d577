"""Opening messages and quick suggestions for each wizard step.

Greetings are built from the context alone, so entering a step never calls
the language model.
"""
from datetime import datetime, timezone
from typing import List, Tuple

from wisdom_bi.wizard.prompts import year_label, year_period
from wisdom_bi.wizard.schemas import CFOMessage, WizardContext, WizardStep
from wisdom_bi.wizard.steps import STEP_COMPLETE_MARKER


def _has_xero_history(context: WizardContext) -> bool:
    return bool(context.xero_connected and context.historical_pl and context.historical_pl.has_xero_data)


def _setup_greeting(context: WizardContext) -> Tuple[str, List[str]]:
    goals = context.goals
    revenue = goals.revenue_target if goals else None
    profit = goals.profit_target if goals else None

    if not revenue:
        return (
            f"Welcome! Let's build your forecast for {year_label(context)} ({year_period(context)}). "
            "First, what's your revenue target for the year?",
            ["Enter revenue target"],
        )

    message = f"Welcome! I can see your revenue target is ${revenue:,.0f} for {year_label(context)}."
    if profit:
        message += f" With a profit target of ${profit:,.0f} ({profit / revenue * 100:.0f}% margin)."
    message += (
        "\n\nI'd recommend we build a detailed 1-year forecast first - it gives you the most "
        "actionable plan. Would you like to add Year 2-3 projections as well?"
    )
    return message, ["1 year is perfect", "Include Years 2-3"]


def _team_greeting(context: WizardContext) -> Tuple[str, List[str]]:
    team = context.current_team
    if not team:
        return (
            "Now let's plan your team costs. I don't see team data from Xero connected.\n\n"
            "Would you like to add team members manually, or skip this step for now?",
            ["Add team members", "Skip for now"],
        )

    total_wages = sum(e.annual_salary or 0 for e in team)
    cogs_count = len([e for e in team if e.classification == "cogs"])
    opex_count = len([e for e in team if e.classification == "opex"])
    return (
        f"Great, let's look at your team. I found {len(team)} team members from Xero with "
        f"${total_wages:,.0f} in annual wages.\n\n"
        f"Current split: {cogs_count} in delivery (COGS), {opex_count} in operations (OpEx).\n\n"
        "Do you have any new hires planned for the forecast period?",
        ["Yes, I have planned hires", "No new hires this year"],
    )


def _costs_greeting(context: WizardContext) -> Tuple[str, List[str]]:
    suggestions = (
        ["Use prior year baseline", "I need to adjust some categories"]
        if context.xero_connected else ["Enter monthly estimate"]
    )
    prior = context.historical_pl.prior_fy if _has_xero_history(context) else None
    if not prior:
        return (
            "Let's set your operating costs baseline. "
            "What's your estimated monthly OpEx (excluding wages)?",
            suggestions,
        )

    categories = ", ".join(
        f"{c.account_name} (${round(c.total / 1000)}k)"
        for c in prior.operating_expenses_by_category[:3]
    )
    message = "Let's set your operating costs baseline. Looking at your Xero data:\n\n"
    message += f"**Prior Year OpEx:** ${prior.operating_expenses:,.0f}\n"
    message += f"**Top categories:** {categories}\n"

    ytd = context.historical_pl.current_ytd
    if ytd and ytd.months_count > 0:
        change = ytd.opex_vs_prior_percent
        sign = "+" if change >= 0 else ""
        message += f"**Current run rate:** ${ytd.run_rate_opex:,.0f}/year ({sign}{change:.0f}% vs last year)\n"

    message += "\nI'd recommend using the prior year as your baseline. Would you like to apply any adjustments?"
    return message, suggestions


def _investments_greeting(context: WizardContext) -> Tuple[str, List[str]]:
    initiatives = context.strategic_initiatives
    if initiatives:
        listing = "\n".join(f"{i + 1}. {init.title}" for i, init in enumerate(initiatives[:5]))
        return (
            f"Now let's plan investments for your strategic initiatives:\n\n{listing}\n\n"
            "Would you like to allocate budgets for any of these? We can go through them one at a time.",
            ["Yes, let's allocate budgets", "No investments planned"],
        )

    return (
        "Let's plan any strategic investments for the year. Common areas include:\n\n"
        "• **Technology**: CRM, automation, systems ($10-50k)\n"
        "• **Marketing**: Website, campaigns, brand ($10-40k)\n"
        "• **Team Development**: Training, coaching ($5-20k)\n"
        "• **Equipment**: Vehicles, tools, fitout ($10-100k)\n\n"
        "Do you have any major investments planned?",
        ["Yes, I have investments", "No major investments"],
    )


def _projections_greeting(context: WizardContext) -> Tuple[str, List[str]]:
    suggestions = ["Use these targets", "Adjust growth rates"]
    years_selected = context.session.years_selected if context.session else [1]

    # Single-year forecasts have nothing to project
    if len(years_selected) <= 1:
        return (
            "Since we're focusing on Year 1, we can skip the multi-year projections. "
            f"Ready to review your forecast? {STEP_COMPLETE_MARKER}",
            suggestions,
        )

    goals = context.goals
    rev1 = (goals.revenue_target if goals else None) or 0
    rev2 = (goals.revenue_year2 if goals else None) or 0
    rev3 = (goals.revenue_year3 if goals else None) or 0

    if rev2 <= 0 and rev3 <= 0:
        return (
            "For your multi-year forecast, what growth rate are you targeting? Typical ranges "
            "are 10-20% for established businesses, 20-40% for growth phase.",
            suggestions,
        )

    message = "I see you've already set multi-year goals:\n\n"
    message += f"**Year 1**: ${rev1:,.0f}\n"
    if rev2 > 0:
        growth = round((rev2 - rev1) / rev1 * 100) if rev1 > 0 else 0
        message += f"**Year 2**: ${rev2:,.0f} (+{growth}%)\n"
    if rev3 > 0:
        growth = round((rev3 - rev2) / rev2 * 100) if rev2 > 0 else 0
        message += f"**Year 3**: ${rev3:,.0f} (+{growth}%)\n"
    message += "\nShall we use these targets?"
    return message, suggestions


def _review_greeting(context: WizardContext) -> Tuple[str, List[str]]:
    return (
        "Excellent! Let me pull together everything we've discussed and give you a summary to review...",
        ["Generate summary"],
    )


GREETINGS = {
    WizardStep.SETUP: _setup_greeting,
    WizardStep.TEAM: _team_greeting,
    WizardStep.COSTS: _costs_greeting,
    WizardStep.INVESTMENTS: _investments_greeting,
    WizardStep.PROJECTIONS: _projections_greeting,
    WizardStep.REVIEW: _review_greeting,
}


def get_step_greeting(step: WizardStep, context: WizardContext) -> Tuple[CFOMessage, List[str]]:
    """Opening message for a step and the suggestions shown under it."""
    step = WizardStep(step)
    now = datetime.now(timezone.utc)
    content, suggestions = GREETINGS[step](context)

    message = CFOMessage(
        id=f"greeting-{step.value}-{int(now.timestamp() * 1000)}",
        role="cfo",
        content=content,
        timestamp=now,
        step=step,
    )
    return message, suggestions


def get_suggestions_for_step(step: WizardStep, context: WizardContext) -> List[str]:
    """Quick-reply buttons shown when a step opens."""
    step = WizardStep(step)

    if step == WizardStep.SETUP:
        return ["Forecast 1 year (monthly detail)", "Forecast 2 years", "Forecast 3 years"]

    if step == WizardStep.TEAM:
        if context.current_team:
            return ["Review current team", "Add a planned hire", "Classify team members"]
        return ["Add team members manually", "Skip team for now"]

    if step == WizardStep.COSTS:
        if _has_xero_history(context):
            return [
                "Use prior year as baseline",
                "Apply 5% increase to all",
                "Adjust specific categories",
                "Start fresh",
            ]
        return ["Add operating costs", "Review by category"]

    if step == WizardStep.INVESTMENTS:
        if context.strategic_initiatives:
            return [
                "Go through each initiative",
                "Only specific initiatives need investment",
                "No investments needed",
            ]
        return ["Add an investment", "No investments planned"]

    if step == WizardStep.PROJECTIONS:
        return ["Conservative (10% growth)", "Moderate (20% growth)", "Aggressive (30%+ growth)"]

    return ["Finalize forecast", "Go back to edit", "Flag for coach review"]
