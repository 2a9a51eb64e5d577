"""
Distribution engine - spreads an annual amount across month keys.

Every policy returns a dict with one entry per month key. Amounts are rounded
to cents independently per month; the parts are not reconciled back to the
total, so a year can drift from the input by up to a cent per month.
"""
import math
from typing import Dict, List, Optional, Sequence

# Weight used for a month the seasonality pattern does not cover (100 / 12)
DEFAULT_MONTH_WEIGHT = 8.33

MonthlyAmounts = Dict[str, float]


def round_cents(value: float) -> float:
    """Round half-up to two decimals (no banker's rounding)."""
    return math.floor(value * 100 + 0.5) / 100


def zero_months(months: Sequence[str]) -> MonthlyAmounts:
    """Every month present, every amount zero."""
    return {m: 0.0 for m in months}


def distribute_evenly(annual_amount: float, months: Sequence[str]) -> MonthlyAmounts:
    """Same amount in every month."""
    if not months:
        return {}
    monthly = round_cents(annual_amount / len(months))
    return {m: monthly for m in months}


def distribute_with_seasonality(
    annual_amount: float,
    seasonality_pattern: Optional[Sequence[float]],
    months: Sequence[str],
) -> MonthlyAmounts:
    """
    Weight each month by the pattern: share = annual * weight[i] / sum(pattern).

    Missing (or zero) weights fall back to DEFAULT_MONTH_WEIGHT. The divisor is
    the sum of the pattern as supplied; only when that is zero are the
    substituted weights summed instead.
    """
    pattern = list(seasonality_pattern or [])
    weights = [
        (pattern[i] if i < len(pattern) and pattern[i] else DEFAULT_MONTH_WEIGHT)
        for i in range(len(months))
    ]

    total_weight = sum(pattern)
    if not total_weight:
        total_weight = sum(weights)
    if not total_weight:
        return zero_months(months)

    return {
        m: round_cents(annual_amount * weights[i] / total_weight)
        for i, m in enumerate(months)
    }


def distribute_to_specific_months(
    total_amount: float,
    target_months: Optional[Sequence[str]],
    months: Sequence[str],
) -> MonthlyAmounts:
    """
    Split the total equally across the targeted months, zero elsewhere.

    Targets outside the year are ignored. No valid target leaves every month
    at zero.
    """
    result = zero_months(months)

    valid_targets = [m for m in (target_months or []) if m in result]
    if not valid_targets:
        return result

    per_month = round_cents(total_amount / len(valid_targets))
    for m in valid_targets:
        result[m] = per_month
    return result


def distribute_from_month(
    annual_amount: float,
    months: List[str],
    start_month: Optional[str] = None,
) -> MonthlyAmounts:
    """
    Split the amount equally across the months from start_month onward.

    Months before the first key >= start_month are zero. When no key
    qualifies, the whole year is active.
    """
    result = zero_months(months)
    if not months:
        return result

    start_index = 0
    if start_month:
        start_index = next(
            (i for i, m in enumerate(months) if m >= start_month),
            0,
        )

    active = months[start_index:]
    monthly = round_cents(annual_amount / len(active))
    for m in active:
        result[m] = monthly
    return result
