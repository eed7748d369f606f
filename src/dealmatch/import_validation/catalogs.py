"""Option catalogs and import column definitions.

Static option lists are module constants (tuples, never mutated).  Data
that lives in the database -- countries, industries, currencies -- is
carried in a frozen :class:`ReferenceData` snapshot taken once per
import batch.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from dealmatch.similarity.industry import CatalogEntry
from dealmatch.similarity.resolver import REGION_ALIASES

EntityType = Literal["investor", "target"]
ColumnType = Literal["text", "dropdown", "comma_separated", "number"]

ENTITY_TYPES: tuple[str, ...] = ("investor", "target")

# ---------------------------------------------------------------------------
# Static option lists
# ---------------------------------------------------------------------------

INVESTOR_MNA_PURPOSES: tuple[str, ...] = (
    "Strategic Expansion",
    "Market Entry",
    "Talent Acquisition",
    "Diversification",
    "Technology Acquisition",
    "Financial Investment",
    "Other",
)

TARGET_REASONS_MA: tuple[str, ...] = (
    "Owner's Retirement",
    "Business Succession",
    "Full Exit",
    "Partial Exit",
    "Capital Raising",
    "Strategic Partnership",
    "Growth Acceleration",
    "Debt Restructuring",
    "Risk Mitigation",
    "Non-Core Divestment",
    "Market Expansion",
    "Technology Integration",
    "Cross-Border Expansion",
)

INVESTMENT_CONDITIONS: tuple[str, ...] = (
    "Minority (<50%)",
    "Significant minority (25–49%)",
    "Joint control (51/49)",
    "Majority (51–99%)",
    "Full acquisition (100%)",
    "Flexible",
)

CHANNELS: tuple[str, ...] = ("TCF", "Partner", "Website", "Social Media")
RANKS: tuple[str, ...] = ("A", "B", "C")
STATUSES: tuple[str, ...] = ("Active", "Draft")

# Unresolved labels in these fields pass through as ad-hoc catalog candidates.
FLEXIBLE_FIELDS: frozenset[str] = frozenset({"company_industry", "target_industries"})

PROJECT_CODE_FIELD = "project_code"


# ---------------------------------------------------------------------------
# Column definitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnDefinition:
    """One import column and how its cells are validated."""

    key: str
    label: str
    required: bool = False
    type: ColumnType = "text"
    options: str | None = None  # catalog for dropdown columns
    match_against: str | None = None  # catalog for comma_separated columns

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "required": self.required,
            "type": self.type,
        }
        if self.options:
            data["options"] = self.options
        if self.match_against:
            data["match_against"] = self.match_against
        return data


def _col(key: str, label: str, type: ColumnType = "text", **kwargs: Any) -> ColumnDefinition:
    return ColumnDefinition(key=key, label=label, type=type, **kwargs)


_CONTACT_COLUMNS: tuple[ColumnDefinition, ...] = (
    _col("internal_pic", "Internal PIC", "comma_separated"),
    _col("financial_advisor", "Financial Advisor", "comma_separated"),
    _col("contact_name", "Contact Name"),
    _col("contact_email", "Contact Email"),
    _col("contact_phone", "Contact Phone"),
    _col("contact_designation", "Contact Designation"),
)

INVESTOR_COLUMNS: tuple[ColumnDefinition, ...] = (
    _col(PROJECT_CODE_FIELD, "Project Code"),
    _col("rank", "Rank", "dropdown", required=True, options="ranks"),
    _col("company_name", "Company Name", required=True),
    _col("origin_country", "Origin Country", "dropdown", required=True, options="countries"),
    _col("website", "Website"),
    _col("hq_address", "HQ Address"),
    _col("company_industry", "Company Industry", "comma_separated", match_against="industries"),
    _col("target_industries", "Target Industries", "comma_separated", match_against="industries"),
    _col("target_countries", "Target Countries", "comma_separated", match_against="countries"),
    _col("purpose_mna", "Purpose of M&A", "comma_separated", match_against="investor_mna_purposes"),
    _col("budget_min", "Budget Min", "number"),
    _col("budget_max", "Budget Max", "number"),
    _col("budget_currency", "Budget Currency", "dropdown", options="currencies"),
    _col(
        "investment_condition", "Investment Condition", "comma_separated",
        match_against="investment_conditions",
    ),
    _col("project_details", "Project Details"),
    _col("channel", "Channel", "dropdown", options="channels"),
    _col("investor_profile_link", "Investor Profile Link"),
    *_CONTACT_COLUMNS,
)

TARGET_COLUMNS: tuple[ColumnDefinition, ...] = (
    _col(PROJECT_CODE_FIELD, "Project Code"),
    _col("rank", "Rank", "dropdown", required=True, options="ranks"),
    _col("company_name", "Company Name", required=True),
    _col("origin_country", "Origin Country", "dropdown", required=True, options="countries"),
    _col("status", "Status", "dropdown", options="statuses"),
    _col("target_industries", "Target Industries", "comma_separated", match_against="industries"),
    _col("niche_tags", "Niche Tags"),
    _col("project_details", "Project Details"),
    _col("reason_for_ma", "Reason for M&A", "comma_separated", match_against="target_reasons_ma"),
    _col("desired_investment_min", "Desired Investment Min", "number"),
    _col("desired_investment_max", "Desired Investment Max", "number"),
    _col("investment_currency", "Investment Currency", "dropdown", options="currencies"),
    _col(
        "investment_condition", "Investment Condition", "comma_separated",
        match_against="investment_conditions",
    ),
    _col("ebitda_min", "EBITDA Min", "number"),
    _col("ebitda_max", "EBITDA Max", "number"),
    _col("ebitda_times", "EBITDA Times"),
    _col("ebitda_details", "EBITDA Details"),
    _col("channel", "Channel", "dropdown", options="channels"),
    _col("website", "Website"),
    _col("teaser_link", "Teaser Link"),
    *_CONTACT_COLUMNS,
)


def columns_for(entity_type: str) -> tuple[ColumnDefinition, ...]:
    """Return the column definitions for *entity_type* (``investor`` or ``target``)."""
    if entity_type == "investor":
        return INVESTOR_COLUMNS
    if entity_type == "target":
        return TARGET_COLUMNS
    raise ValueError(f"Unknown entity type: {entity_type!r}")


# ---------------------------------------------------------------------------
# Reference data snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Country:
    """A country or synthetic region (regions carry no alpha-2 code)."""

    id: Any
    name: str
    alpha_2_code: str | None = None
    is_region: bool = False


@dataclass(frozen=True)
class ReferenceData:
    """Immutable snapshot of the database-backed catalogs for one batch."""

    countries: tuple[Country, ...] = ()
    industries: tuple[CatalogEntry, ...] = ()
    currencies: tuple[str, ...] = ()

    def _option_lists(self) -> dict[str, tuple[str, ...]]:
        return {
            "countries": tuple(c.name for c in self.countries),
            "industries": tuple(i.name for i in self.industries),
            "currencies": tuple(self.currencies),
            "ranks": RANKS,
            "channels": CHANNELS,
            "statuses": STATUSES,
            "investor_mna_purposes": INVESTOR_MNA_PURPOSES,
            "target_reasons_ma": TARGET_REASONS_MA,
            "investment_conditions": INVESTMENT_CONDITIONS,
        }

    @classmethod
    def build(
        cls,
        countries: Sequence[Country] = (),
        industries: Sequence[CatalogEntry] = (),
        currencies: Sequence[str] = (),
    ) -> ReferenceData:
        """Build a snapshot, ordering countries regions first then by name."""
        ordered = sorted(countries, key=lambda c: (not c.is_region, c.name))
        return cls(
            countries=tuple(ordered),
            industries=tuple(industries),
            currencies=tuple(currencies),
        )

    def options(self, catalog: str) -> tuple[str, ...]:
        """Display names of *catalog*; unknown catalogs are empty."""
        return self._option_lists().get(catalog, ())

    def as_options(self) -> dict[str, list[str]]:
        """Every option list keyed by catalog name, for template generation."""
        return {key: list(values) for key, values in self._option_lists().items()}

    def country_by_name(self, name: str) -> Country | None:
        wanted = name.strip().lower()
        for country in self.countries:
            if country.name.lower() == wanted:
                return country
        return None

    def country_by_alpha2(self, code: str) -> Country | None:
        wanted = code.strip().upper()
        for country in self.countries:
            if country.alpha_2_code and country.alpha_2_code.upper() == wanted:
                return country
        return None

    def resolve_country_id(self, name: str) -> Any:
        """Country id for *name* by exact name, then by region alias."""
        country = self.country_by_name(name)
        if country is None:
            alias = REGION_ALIASES.get(name.strip().lower())
            if alias is not None:
                country = self.country_by_name(alias)
        return country.id if country else None

    def resolve_industry_id(self, name: str) -> Any:
        """Industry id for *name* (exact, case-insensitive)."""
        wanted = name.strip().lower()
        for industry in self.industries:
            if industry.name.lower() == wanted:
                return industry.id
        return None
