"""Shared test fixtures and configuration for Wisdom BI forecast tests."""
import pytest

from wisdom_bi.wizard.schemas import (
    ExpenseCategoryTotal,
    HistoricalPL,
    PriorYearPL,
    SessionProgress,
    StrategicInitiative,
    TeamMember,
    WizardContext,
    WizardGoals,
)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


@pytest.fixture
def fy_months():
    """FY2026 month keys (July 2025 - June 2026)."""
    return [
        "2025-07", "2025-08", "2025-09", "2025-10", "2025-11", "2025-12",
        "2026-01", "2026-02", "2026-03", "2026-04", "2026-05", "2026-06",
    ]


@pytest.fixture
def wizard_context():
    """A business with Xero history, a small team and two initiatives."""
    return WizardContext(
        business_id="biz_test123",
        business_name="Acme Plumbing",
        industry="Trades",
        fiscal_year=2026,
        goals=WizardGoals(revenue_target=1200000, profit_target=120000, year_type="FY"),
        xero_connected=True,
        historical_pl=HistoricalPL(
            has_xero_data=True,
            prior_fy=PriorYearPL(
                period_label="FY25",
                total_revenue=1000000,
                total_cogs=400000,
                gross_profit=600000,
                gross_margin_percent=60,
                operating_expenses=450000,
                net_profit=150000,
                net_margin_percent=15,
                operating_expenses_by_category=[
                    ExpenseCategoryTotal(account_name="Wages and Salaries", total=300000, monthly_average=25000),
                    ExpenseCategoryTotal(account_name="Rent", total=48000, monthly_average=4000),
                    ExpenseCategoryTotal(account_name="Marketing", total=36000, monthly_average=3000),
                ],
            ),
        ),
        current_team=[
            TeamMember(full_name="Sam Lee", job_title="Plumber", annual_salary=80000, classification="cogs"),
            TeamMember(full_name="Alex Kim", job_title="Office Manager", annual_salary=70000, classification="opex"),
        ],
        strategic_initiatives=[
            StrategicInitiative(id="init_1", title="New CRM System", quarter_assigned="Q1"),
            StrategicInitiative(id="init_2", title="Brand Refresh", description="Website and signage"),
        ],
        session=SessionProgress(years_selected=[1]),
    )
