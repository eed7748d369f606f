"""Boundary normalisation of loosely-typed investor/target profiles.

Stored profiles are nested mappings whose fields may be missing, scalars,
delimited strings, JSON strings, lists of names, lists of ``{"id", "name"}``
objects, or numeric ranges in several encodings.  Everything is converted
here, once, into :class:`InvestorView` / :class:`TargetView` so that the
dimension scorers never branch on shape.

Investor profile sections and the fields read from them::

    company_overview    main_industry_operations, company_industry,
                        target_countries, investment_budget,
                        investment_condition, txn_timeline
    target_preferences  b_ind_prefs, n_ind_prefs, target_countries,
                        emp_count_range, years_in_biz, company_type,
                        timeline, ebitda, revenue, acquisition_percentage
    financial_details   investment_budget, ebitda_range, revenue_range,
                        is_negotiable, ownership_type,
                        acquisition_percentage, default_currency,
                        register_currency

Target profile sections::

    company_overview    industry_ops, industries, hq_country,
                        operating_countries, emp_count, year_founded,
                        company_type, txn_timeline
    financial_details   expected_investment_amount, ebitda_value,
                        annual_revenue, investment_condition,
                        maximum_investor_shareholding_percentage,
                        default_currency

Monetary ranges (budget, expected amount, EBITDA, revenue) are converted
to USD with an ``exchange_rates`` snapshot, so both sides compare in one
unit.  A currency with no known rate is taken at face value.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

INFINITY = math.inf

_MULTIPLIERS = {
    "k": 1e3, "thousand": 1e3,
    "m": 1e6, "mn": 1e6, "mil": 1e6, "million": 1e6,
    "b": 1e9, "bn": 1e9, "billion": 1e9,
}
_NUMBER = re.compile(
    r"(\d[\d,]*(?:\.\d+)?|\.\d+)\s*"
    r"((?:thousand|million|billion|mil|mn|bn|k|m|b)(?![a-z]))?",
    re.IGNORECASE,
)
_UPPER_MARKERS = ("<", "under", "below", "less than", "up to", "upto", "max")
_LOWER_MARKERS = (">", "over", "above", "more than", "at least", "min")


@dataclass(frozen=True)
class Range:
    """Closed numeric interval; ``high`` may be infinite."""

    low: float
    high: float

    def contains(self, other: Range) -> bool:
        return self.low <= other.low and other.high <= self.high

    def overlaps(self, other: Range) -> bool:
        return self.low <= other.high and other.low <= self.high

    def gap(self, other: Range) -> float:
        """Distance between the nearest edges (0.0 when overlapping)."""
        if self.overlaps(other):
            return 0.0
        return min(abs(other.low - self.high), abs(other.high - self.low))

    @property
    def width(self) -> float:
        return self.high - self.low

    def widened(self, fraction: float) -> Range:
        """Stretch both edges outward by *fraction* of their own magnitude."""
        return Range(self.low - abs(self.low) * fraction, self.high + abs(self.high) * fraction)


@dataclass(frozen=True)
class LabeledItem:
    """One entry of a multi-valued profile field."""

    id: str | None
    name: str

    @property
    def key(self) -> str:
        """Identity used for set comparisons: the id when known, else the name."""
        return self.id if self.id is not None else self.name.strip().lower()


# ---------------------------------------------------------------------------
# Scalar parsing
# ---------------------------------------------------------------------------

def _decode_json(value: str) -> Any:
    text = value.strip()
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            return value
    return value


def _numbers_in(text: str) -> list[float]:
    numbers = []
    for digits, suffix in _NUMBER.findall(text):
        number = float(digits.replace(",", ""))
        if suffix:
            number *= _MULTIPLIERS[suffix.lower()]
        numbers.append(number)
    return numbers


def parse_number(value: Any) -> float | None:
    """First number in *value* (``"49%"`` -> 49.0, ``"$2.5M"`` -> 2500000.0)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str):
        text = value.strip()
        numbers = _numbers_in(text)
        if not numbers:
            return None
        return -numbers[0] if text.startswith("-") else numbers[0]
    return None


def _ordered(low: float, high: float) -> Range:
    return Range(low, high) if low <= high else Range(high, low)


def _from_bounds(low: float | None, high: float | None, open_ended: bool) -> Range | None:
    if low is None and high is None:
        return None
    if low is None:
        return _ordered(0.0, high)
    if high is None:
        return Range(low, INFINITY) if open_ended else Range(low, low)
    return _ordered(low, high)


def _bare(number: float) -> Range:
    return _ordered(0.5 * number, 1.5 * number)


def _parse_range_text(text: str, open_ended: bool) -> Range | None:
    lowered = text.strip().lower()
    numbers = _numbers_in(lowered)
    if not numbers:
        return None
    if len(numbers) >= 2:
        return _ordered(numbers[0], numbers[1])

    number = numbers[0]
    if lowered.endswith("+") or lowered.startswith(_LOWER_MARKERS):
        return Range(number, INFINITY)
    if lowered.startswith(_UPPER_MARKERS):
        return Range(0.0, number)
    if lowered.startswith("-"):
        number = -number
    return _bare(number)


def parse_range(value: Any, *, open_ended: bool = False) -> Range | None:
    """Parse any of the stored range encodings into a :class:`Range`.

    Accepted shapes:
      - ``{"min": a, "max": b}`` mappings (also ``from``/``to``),
      - ``[a, b]`` / ``(a, b)`` pairs (a single element is a minimum),
      - text: ``"50-200"``, ``"100+"``, ``">100"``, ``"<100"``, ``"up to 5M"``,
      - a bare number, which becomes ``[0.5n, 1.5n]``.

    A missing maximum becomes unbounded when *open_ended* is set (used for
    preferences such as budgets) and collapses to the minimum otherwise.
    Returns ``None`` when nothing parseable is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = _decode_json(value)
        if isinstance(value, str):
            return _parse_range_text(value, open_ended) if value.strip() else None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else _bare(float(value))
    if isinstance(value, Mapping):
        low = parse_number(value.get("min", value.get("from")))
        high = parse_number(value.get("max", value.get("to")))
        return _from_bounds(low, high, open_ended)
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        low = parse_number(value[0])
        high = parse_number(value[1]) if len(value) > 1 else None
        return _from_bounds(low, high, open_ended)
    return None


# ---------------------------------------------------------------------------
# Multi-valued fields
# ---------------------------------------------------------------------------

def _item(value: Any) -> LabeledItem | None:
    if isinstance(value, Mapping):
        raw_id = value.get("id", value.get("country_id"))
        name = value.get("name") or ""
        item_id = None if raw_id in (None, "") else str(raw_id)
        if item_id is None and not str(name).strip():
            return None
        return LabeledItem(id=item_id, name=str(name).strip())
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return LabeledItem(id=str(int(value)) if float(value).is_integer() else str(value), name="")
    text = str(value).strip()
    return LabeledItem(id=None, name=text) if text else None


def labeled_items(value: Any) -> list[LabeledItem]:
    """Normalise a multi-valued field into a list of :class:`LabeledItem`."""
    if value is None:
        return []
    if isinstance(value, str):
        decoded = _decode_json(value)
        if decoded is not value:
            return labeled_items(decoded)
        return [LabeledItem(id=None, name=part.strip()) for part in re.split(r"[,;]", value) if part.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        items = []
        for element in value:
            item = _item(element)
            if item is not None:
                items.append(item)
        return items
    item = _item(value)
    return [item] if item is not None else []


def text_values(value: Any) -> list[str]:
    """Names of a multi-valued text field (conditions, purposes)."""
    return [item.name for item in labeled_items(value) if item.name]


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (Mapping, list, tuple, bool)):
        return None
    text = str(value).strip()
    return text or None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, "", [], {}):
            return value
    return None


def profile_section(profile: Mapping, name: str) -> Mapping:
    section = profile.get(name)
    if isinstance(section, str):
        section = _decode_json(section)
    return section if isinstance(section, Mapping) else {}


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------

BASE_CURRENCY = "USD"

ExchangeRates = Mapping[str, float]


def currency_code(*values: Any) -> str:
    """First usable ISO currency code among *values*, else USD.

    Accepts plain codes and ``{"currency_code": ...}`` / ``{"code": ...}``
    objects as stored by the currency picker.
    """
    for value in values:
        if isinstance(value, Mapping):
            value = value.get("currency_code", value.get("code"))
        if isinstance(value, str) and value.strip():
            return value.strip().upper()
    return BASE_CURRENCY


def to_usd(amount: float, currency: str, rates: ExchangeRates | None) -> float:
    """Convert *amount* into USD; unknown currencies convert 1:1."""
    if math.isinf(amount) or currency == BASE_CURRENCY or not rates:
        return amount
    rate = rates.get(currency)
    return amount if rate is None else amount * rate


def range_to_usd(value: Range | None, currency: str, rates: ExchangeRates | None) -> Range | None:
    if value is None:
        return None
    return _ordered(to_usd(value.low, currency, rates), to_usd(value.high, currency, rates))


def _money_currency(value: Any) -> Any:
    if isinstance(value, str):
        value = _decode_json(value)
    return value.get("currency") if isinstance(value, Mapping) else None


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InvestorView:
    """Canonical investor fields used by the match scorer."""

    id: Any
    industries: tuple[LabeledItem, ...] = ()
    countries: frozenset[str] = frozenset()
    budget: Range | None = None
    ebitda: Range | None = None
    revenue: Range | None = None
    employee_range: Range | None = None
    years_in_business: Range | None = None
    company_type: str | None = None
    timeline: str | None = None
    negotiable: bool = False
    ownership_conditions: tuple[str, ...] = ()
    acquisition_percentage: Range | None = None
    currency: str = BASE_CURRENCY


@dataclass(frozen=True)
class TargetView:
    """Canonical target fields used by the match scorer."""

    id: Any
    industries: tuple[LabeledItem, ...] = ()
    hq_country: str | None = None
    operating_countries: frozenset[str] = frozenset()
    expected_amount: Range | None = None
    ebitda: Range | None = None
    revenue: Range | None = None
    employee_count: Range | None = None
    years_in_business: float | None = None
    company_type: str | None = None
    timeline: str | None = None
    max_investor_percentage: float | None = None
    investment_conditions: tuple[str, ...] = ()
    currency: str = BASE_CURRENCY


def _require_mapping(profile: Any, kind: str) -> Mapping:
    if not isinstance(profile, Mapping):
        raise TypeError(f"{kind} profile must be a mapping, got {type(profile).__name__}")
    return profile


def _country_keys(*values: Any) -> frozenset[str]:
    keys: set[str] = set()
    for value in values:
        keys.update(item.key for item in labeled_items(value))
    return frozenset(keys)


def normalize_investor(profile: Mapping, *, rates: ExchangeRates | None = None) -> InvestorView:
    """Build an :class:`InvestorView` from a stored investor profile.

    Budget, EBITDA and revenue preferences are converted to USD with
    *rates* (currency code -> USD per unit); without rates they keep their
    stored units.
    """
    profile = _require_mapping(profile, "Investor")
    overview = profile_section(profile, "company_overview")
    prefs = profile_section(profile, "target_preferences")
    financial = profile_section(profile, "financial_details")

    industries: list[LabeledItem] = []
    for value in (
        overview.get("main_industry_operations"),
        overview.get("company_industry"),
        prefs.get("b_ind_prefs"),
        prefs.get("n_ind_prefs"),
    ):
        industries.extend(labeled_items(value))

    budget = _first(overview.get("investment_budget"), financial.get("investment_budget"))
    currency = currency_code(
        _money_currency(budget),
        financial.get("default_currency"),
        financial.get("register_currency"),
    )

    def money(value: Any) -> Range | None:
        return range_to_usd(parse_range(value, open_ended=True), currency, rates)

    return InvestorView(
        id=profile.get("id"),
        industries=tuple(industries),
        countries=_country_keys(overview.get("target_countries"), prefs.get("target_countries")),
        budget=money(budget),
        ebitda=money(_first(financial.get("ebitda_range"), prefs.get("ebitda"))),
        revenue=money(_first(financial.get("revenue_range"), prefs.get("revenue"))),
        employee_range=parse_range(prefs.get("emp_count_range"), open_ended=True),
        years_in_business=parse_range(prefs.get("years_in_biz"), open_ended=True),
        company_type=_text(prefs.get("company_type")),
        timeline=_text(_first(prefs.get("timeline"), overview.get("txn_timeline"))),
        negotiable=_truthy(financial.get("is_negotiable")),
        ownership_conditions=tuple(
            text_values(overview.get("investment_condition"))
            + text_values(financial.get("ownership_type"))
        ),
        acquisition_percentage=parse_range(
            _first(financial.get("acquisition_percentage"), prefs.get("acquisition_percentage")),
            open_ended=True,
        ),
        currency=currency,
    )


def _years_since(founded: Any, as_of: date) -> float | None:
    year = parse_number(founded)
    if year is None or year <= 0 or year > as_of.year:
        return None
    return float(as_of.year - int(year))


def normalize_target(
    profile: Mapping,
    *,
    as_of: date | None = None,
    rates: ExchangeRates | None = None,
) -> TargetView:
    """Build a :class:`TargetView` from a stored target profile.

    *as_of* fixes the date used to derive years in business from the
    founding year (today when omitted).  Monetary values are converted to
    USD with *rates*, as in :func:`normalize_investor`.
    """
    profile = _require_mapping(profile, "Target")
    overview = profile_section(profile, "company_overview")
    financial = profile_section(profile, "financial_details")
    as_of = as_of or date.today()

    industries = labeled_items(overview.get("industry_ops")) + labeled_items(overview.get("industries"))
    hq = labeled_items(overview.get("hq_country"))

    expected = financial.get("expected_investment_amount")
    currency = currency_code(_money_currency(expected), financial.get("default_currency"))

    def money(value: Any) -> Range | None:
        return range_to_usd(parse_range(value), currency, rates)

    return TargetView(
        id=profile.get("id"),
        industries=tuple(industries),
        hq_country=hq[0].key if hq else None,
        operating_countries=_country_keys(overview.get("operating_countries")),
        expected_amount=money(expected),
        ebitda=money(financial.get("ebitda_value")),
        revenue=money(financial.get("annual_revenue")),
        employee_count=parse_range(overview.get("emp_count")),
        years_in_business=_years_since(
            _first(overview.get("year_founded"), overview.get("established_year")), as_of,
        ),
        company_type=_text(overview.get("company_type")),
        timeline=_text(overview.get("txn_timeline")),
        max_investor_percentage=parse_number(
            financial.get("maximum_investor_shareholding_percentage")
        ),
        investment_conditions=tuple(text_values(financial.get("investment_condition"))),
        currency=currency,
    )
