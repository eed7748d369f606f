"""Shared fixtures: catalog snapshots and sample investor/target profiles."""

from __future__ import annotations

from unittest.mock import MagicMock, Mock

import pytest

from dealmatch.import_validation.catalogs import Country, ReferenceData
from dealmatch.similarity.industry import CatalogEntry


@pytest.fixture()
def industry_catalog() -> list[CatalogEntry]:
    return [
        CatalogEntry(id="1", name="Logistics & Transportation"),
        CatalogEntry(id="2", name="Financial Technology"),
        CatalogEntry(id="3", name="Healthcare"),
        CatalogEntry(id="4", name="Software"),
        CatalogEntry(id="5", name="Manufacturing"),
        CatalogEntry(id="6", name="Real Estate"),
    ]


@pytest.fixture()
def reference_data(industry_catalog) -> ReferenceData:
    """A small snapshot with regions, countries, industries and currencies."""
    countries = [
        Country(id=1, name="Japan", alpha_2_code="JP"),
        Country(id=2, name="Indonesia", alpha_2_code="ID"),
        Country(id=3, name="Malaysia", alpha_2_code="MY"),
        Country(id=4, name="Singapore", alpha_2_code="SG"),
        Country(id=5, name="Germany", alpha_2_code="DE"),
        Country(id=100, name="East Asia", is_region=True),
        Country(id=101, name="ASEAN", is_region=True),
        Country(id=102, name="GCC", is_region=True),
    ]
    return ReferenceData.build(
        countries=countries,
        industries=industry_catalog,
        currencies=["IDR", "JPY", "SGD", "USD"],
    )


@pytest.fixture()
def investor_profile() -> dict:
    """Investor looking for Japanese/Singaporean logistics targets."""
    return {
        "id": 10,
        "company_overview": {
            "main_industry_operations": [{"id": 1, "name": "Logistics & Transportation"}],
            "target_countries": [{"id": 1}, {"id": 4}],
            "investment_budget": {"min": 1_000_000, "max": 5_000_000},
            "investment_condition": ["Majority (51–99%)"],
        },
        "target_preferences": {
            "emp_count_range": "50-200",
            "years_in_biz": "5+",
            "company_type": "Private Limited",
            "timeline": "Within 6 months",
        },
        "financial_details": {
            "is_negotiable": False,
            "ebitda_range": [200_000, 800_000],
            "revenue_range": "2M-10M",
        },
    }


@pytest.fixture()
def target_profile() -> dict:
    """Japanese logistics company that fits the sample investor."""
    return {
        "id": 20,
        "company_overview": {
            "industry_ops": [{"id": 1, "name": "Logistics & Transportation"}],
            "hq_country": {"id": 1, "name": "Japan"},
            "operating_countries": [{"id": 4}],
            "emp_count": "80-120",
            "year_founded": 2012,
            "company_type": "Private Limited",
            "txn_timeline": "Within 6 months",
        },
        "financial_details": {
            "expected_investment_amount": {"min": 2_000_000, "max": 3_000_000},
            "ebitda_value": {"min": 400_000, "max": 500_000},
            "annual_revenue": "5M",
            "maximum_investor_shareholding_percentage": 80,
            "investment_condition": ["Majority (51–99%)"],
        },
    }


@pytest.fixture()
def mock_conn() -> MagicMock:
    """Mock psycopg connection with cursor and transaction context managers."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__ = Mock(return_value=cursor)
    conn.cursor.return_value.__exit__ = Mock(return_value=False)
    conn.transaction.return_value.__enter__ = Mock(return_value=None)
    conn.transaction.return_value.__exit__ = Mock(return_value=False)
    conn.cursor_mock = cursor
    return conn
