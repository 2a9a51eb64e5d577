"""Deterministic checks and roll-ups for the wizard's review step."""
import json
from typing import List

from wisdom_bi.wizard.schemas import (
    DecisionType,
    ReviewSummary,
    ValidationConcern,
    WizardContext,
)

SUPER_MULTIPLIER = 1.12
# Rough planning ratios used until real cost data is in the forecast
ESTIMATED_OPERATIONS_RATIO = 0.15
ESTIMATED_COGS_RATIO = 0.30
TEAM_COST_WARNING_PCT = 60


def validate_forecast(context: WizardContext) -> List[ValidationConcern]:
    """Concerns to raise with the user before the forecast is finalised."""
    concerns: List[ValidationConcern] = []
    revenue_target = (context.goals.revenue_target if context.goals else None) or 0

    if not revenue_target:
        concerns.append(ValidationConcern(
            severity="error",
            category="Goals",
            message="No revenue target set",
            suggestion="Set a revenue target in Goals & Targets",
        ))

    team_total = sum(e.annual_salary or 0 for e in context.current_team)
    team_cost_ratio = team_total / revenue_target * 100 if revenue_target > 0 else 0
    if team_cost_ratio > TEAM_COST_WARNING_PCT:
        concerns.append(ValidationConcern(
            severity="warning",
            category="Team Costs",
            message=f"Team costs are {team_cost_ratio:.1f}% of revenue target",
            suggestion="Consider if revenue target is achievable with current team investment",
        ))

    unclassified = [e for e in context.current_team if not e.classification]
    if unclassified:
        concerns.append(ValidationConcern(
            severity="warning",
            category="Team",
            message=f"{len(unclassified)} team member(s) without classification",
            suggestion="Classify all team members for accurate cost categorization",
        ))

    funded = {
        d.linked_initiative_id for d in context.decisions_made
        if d.decision_type == DecisionType.INVESTMENT and d.linked_initiative_id
    }
    unfunded = [i for i in context.strategic_initiatives if i.id not in funded]
    if unfunded:
        concerns.append(ValidationConcern(
            severity="info",
            category="Investments",
            message=f"{len(unfunded)} strategic initiative(s) have no planned investments",
            suggestion="Consider if investments are needed to achieve these initiatives",
        ))

    return concerns


def generate_forecast_summary(context: WizardContext) -> ReviewSummary:
    """Headline numbers for the review step, estimated from the context."""
    revenue_target = (context.goals.revenue_target if context.goals else None) or 0
    team_costs = sum((e.annual_salary or 0) * SUPER_MULTIPLIER for e in context.current_team)

    investments = 0.0
    planned_hires = 0
    for decision in context.decisions_made:
        if decision.decision_type == DecisionType.INVESTMENT:
            amount = decision.decision_data.get("amount")
            if isinstance(amount, (int, float)) and not isinstance(amount, bool):
                investments += amount
        elif decision.decision_type == DecisionType.NEW_HIRE:
            planned_hires += 1

    operations = revenue_target * ESTIMATED_OPERATIONS_RATIO
    total_costs = team_costs + operations + investments
    gross_profit = revenue_target - revenue_target * ESTIMATED_COGS_RATIO
    net_profit = gross_profit - total_costs
    margin = net_profit / revenue_target * 100 if revenue_target > 0 else 0

    current = len(context.current_team)
    return ReviewSummary(
        revenue={"year1": revenue_target},
        costs={
            "team": team_costs,
            "operations": operations,
            "investments": investments,
            "total": total_costs,
        },
        profit={"gross": gross_profit, "net": net_profit, "margin": margin},
        headcount={"current": current, "planned": planned_hires, "end_of_year": current + planned_hires},
        key_decisions=[
            f"{d.decision_type}: {json.dumps(d.decision_data, default=str)[:50]}"
            for d in context.decisions_made[-5:]
        ],
    )
