"""Month keys for fiscal (July-June) and calendar years."""
from typing import List

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]


def generate_month_keys(fiscal_year: int, year_type: str = "FY") -> List[str]:
    """
    Return the twelve "YYYY-MM" keys of a planning year, in order.

    FY2026 runs 2025-07 .. 2026-06; CY2026 runs 2026-01 .. 2026-12.
    """
    if year_type == "CY":
        return [f"{fiscal_year}-{month:02d}" for month in range(1, 13)]

    keys = [f"{fiscal_year - 1}-{month:02d}" for month in range(7, 13)]
    keys.extend(f"{fiscal_year}-{month:02d}" for month in range(1, 7))
    return keys


def month_name_to_key(value: str, fiscal_year: int, year_type: str = "FY") -> str:
    """
    Convert a spoken month ("February") into its key inside the planning year.

    Anything that is not a month name (usually an existing "YYYY-MM" key) is
    returned unchanged.
    """
    try:
        index = MONTH_NAMES.index(value.strip().lower())
    except ValueError:
        return value

    if year_type == "CY":
        year = fiscal_year
    else:
        # Jul-Dec belong to the calendar year before the FY label
        year = fiscal_year - 1 if index >= 6 else fiscal_year
    return f"{year}-{index + 1:02d}"
