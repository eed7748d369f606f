"""Six-dimension investor/target compatibility scoring.

Each dimension scorer takes the normalised views and returns
``(score, explanation)`` with ``score`` in ``[0.0, 1.0]``.  Missing data
is scored explicitly per dimension (0.5 is "neutral") so that sparse
profiles are not sunk by fields nobody filled in.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from dealmatch.matching.profiles import (
    BASE_CURRENCY,
    ExchangeRates,
    InvestorView,
    Range,
    TargetView,
    normalize_investor,
    normalize_target,
)
from dealmatch.similarity.industry import CatalogEntry, suggest
from dealmatch.similarity.text import fold, jaccard, normalize, text_similarity

WEIGHTS: dict[str, float] = {
    "industry": 0.25,
    "geography": 0.20,
    "financial": 0.20,
    "profile": 0.15,
    "timeline": 0.10,
    "ownership": 0.10,
}

if abs(sum(WEIGHTS.values()) - 1.0) > 1e-9:
    raise ValueError("Match weights must sum to 1.0")

NEUTRAL = 0.5

DimensionResult = tuple[float, str]

TIERS: tuple[tuple[int, str, str], ...] = (
    (90, "excellent", "Excellent Match"),
    (80, "strong", "Strong Match"),
    (70, "good", "Good Match"),
    (60, "fair", "Fair Match"),
    (0, "low", "Low Match"),
)


@dataclass
class MatchScore:
    """Aggregate and per-dimension compatibility of one investor/target pair."""

    total: int
    industry: float
    geography: float
    financial: float
    profile: float
    timeline: float
    ownership: float
    explanations: dict[str, str] = field(default_factory=dict)

    def dimensions(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in WEIGHTS}

    @property
    def tier(self) -> str:
        return match_tier(self.total)


def match_tier(total: int) -> str:
    """Tier key for an aggregate score (``excellent`` ... ``low``)."""
    for floor, key, _ in TIERS:
        if total >= floor:
            return key
    return "low"


def tier_label(total: int) -> str:
    for floor, _, label in TIERS:
        if total >= floor:
            return label
    return "Low Match"


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


# ---------------------------------------------------------------------------
# Industry
# ---------------------------------------------------------------------------

def score_industry(
    investor: InvestorView,
    target: TargetView,
    catalog: Sequence[CatalogEntry] | None = None,
) -> DimensionResult:
    if not investor.industries:
        return NEUTRAL, "Investor has no industry preference"
    if not target.industries:
        return 0.3, "Target industry unknown"

    investor_ids = {item.id for item in investor.industries if item.id is not None}
    target_ids = {item.id for item in target.industries if item.id is not None}
    if investor_ids and target_ids:
        overlap = jaccard(investor_ids, target_ids)
        if overlap > 0:
            return min(1.0, overlap + 0.2), "Industry match on catalog entries"

    investor_names = {item.name.strip().lower() for item in investor.industries if item.name.strip()}
    target_names = {item.name.strip().lower() for item in target.industries if item.name.strip()}
    if not investor_names:
        return NEUTRAL, "Investor industries have no names to compare"
    if not target_names:
        return 0.3, "Target industries have no names to compare"

    overlap = jaccard(investor_names, target_names)
    if overlap > 0:
        return min(1.0, overlap + 0.2), "Direct industry overlap"

    if not catalog:
        catalog = [CatalogEntry(id=item.id, name=item.name) for item in investor.industries if item.name]
    investor_normalized = {normalize(name): name for name in investor_names}

    best = 0.0
    for target_name in target_names:
        for suggestion in suggest(target_name, catalog):
            if normalize(suggestion.name) in investor_normalized:
                best = max(best, suggestion.score / 100.0)
        for investor_name in investor_names:
            best = max(best, text_similarity(target_name, investor_name))

    best = _clamp(best)
    if best >= 0.7:
        return best, "Closely related industries"
    if best >= 0.4:
        return best, "Partially related industries"
    return best, "Industries differ"


# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------

def score_geography(investor: InvestorView, target: TargetView) -> DimensionResult:
    if not investor.countries:
        return NEUTRAL, "Investor has no country preference"
    if target.hq_country is None and not target.operating_countries:
        return 0.3, "Target location unknown"

    if target.hq_country is not None and target.hq_country in investor.countries:
        return 1.0, "HQ country is a preferred market"
    if investor.countries & target.operating_countries:
        return 0.8, "Operates in a preferred market"
    return 0.0, "No preferred market overlap"


# ---------------------------------------------------------------------------
# Interval fits
# ---------------------------------------------------------------------------

def interval_fit(
    wanted: Range | None,
    actual: Range | None,
    no_overlap: Callable[[Range, Range], float],
) -> float | None:
    """Shared containment/overlap rule for two parsed intervals.

    ``None`` when both sides are missing, 0.4 when only one is present.
    """
    if wanted is None and actual is None:
        return None
    if wanted is None or actual is None:
        return 0.4
    if wanted.contains(actual) or actual.contains(wanted):
        return 1.0
    if wanted.overlaps(actual):
        return 0.7
    return no_overlap(wanted, actual)


def _budget_proximity(budget: Range, expected: Range) -> float:
    span = max(budget.width, 1.0)
    return max(0.0, 1.0 - budget.gap(expected) / span) * 0.5


def _revenue_tolerance(wanted: Range, actual: Range) -> float:
    return 0.7 if wanted.widened(0.3).overlaps(actual) else 0.3


def _average(values: Sequence[float | None]) -> float | None:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def score_financial(investor: InvestorView, target: TargetView) -> DimensionResult:
    fits = {
        "budget": interval_fit(investor.budget, target.expected_amount, _budget_proximity),
        "ebitda": interval_fit(investor.ebitda, target.ebitda, lambda a, b: 0.2),
        "revenue": interval_fit(investor.revenue, target.revenue, _revenue_tolerance),
    }
    average = _average(list(fits.values()))
    if average is None:
        return NEUTRAL, "No financial data to compare"
    compared = ", ".join(f"{name} {value:.2f}" for name, value in fits.items() if value is not None)
    if investor.currency != target.currency:
        return average, f"Financial fit in {BASE_CURRENCY} ({compared})"
    return average, f"Financial fit ({compared})"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def _company_type_fit(wanted: str | None, actual: str | None) -> float | None:
    if wanted is None and actual is None:
        return None
    if wanted is None or actual is None:
        return 0.4
    a, b = fold(wanted), fold(actual)
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    return text_similarity(wanted, actual)


def score_profile(investor: InvestorView, target: TargetView) -> DimensionResult:
    years = None if target.years_in_business is None else Range(
        target.years_in_business, target.years_in_business,
    )
    fits = {
        "employees": interval_fit(investor.employee_range, target.employee_count, lambda a, b: 0.2),
        "years": interval_fit(investor.years_in_business, years, lambda a, b: 0.3),
        "company type": _company_type_fit(investor.company_type, target.company_type),
    }
    average = _average(list(fits.values()))
    if average is None:
        return NEUTRAL, "No company profile data to compare"
    compared = ", ".join(f"{name} {value:.2f}" for name, value in fits.items() if value is not None)
    return average, f"Profile fit ({compared})"


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

_TIMELINE_LEXICON: dict[int, tuple[str, ...]] = {
    0: ("flexible", "negotiable", "open", "no rush", "anytime", "any time"),
    1: (
        "immediate", "immediately", "asap", "urgent", "right away",
        "0-3 month", "1-3 month", "within 3 month", "less than 3 month",
        "1 month", "2 month", "3 month",
    ),
    2: ("short", "short term", "short-term", "3-6 month", "4-6 month", "within 6 month", "6 month"),
    3: (
        "medium", "mid", "medium term", "medium-term", "6-12 month", "within 12 month",
        "12 month", "within 1 year", "within a year", "1 year",
    ),
    4: (
        "long", "long term", "long-term", "1-2 year", "2-3 year", "1+ year",
        "over 1 year", "more than 1 year", "2 year", "3 year", "beyond",
    ),
}

# Longest phrases first so "6-12 months" wins over "12 month".
_TIMELINE_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = tuple(
    (re.compile(r"(?<![a-z0-9])" + re.escape(phrase) + r"s?(?![a-z0-9])"), bucket)
    for phrase, bucket in sorted(
        ((phrase, bucket) for bucket, phrases in _TIMELINE_LEXICON.items() for phrase in phrases),
        key=lambda pair: len(pair[0]),
        reverse=True,
    )
)

_BUCKET_DISTANCE_SCORES = {0: 1.0, 1: 0.7, 2: 0.4}


def timeline_bucket(text: str) -> int | None:
    """Bucket of a free-text timeline: 0 flexible, 1 immediate ... 4 long-term."""
    folded = fold(text)
    for pattern, bucket in _TIMELINE_PATTERNS:
        if pattern.search(folded):
            return bucket
    return None


def score_timeline(investor: InvestorView, target: TargetView) -> DimensionResult:
    if not investor.timeline or not target.timeline:
        return NEUTRAL, "Timeline not specified"
    if fold(investor.timeline) == fold(target.timeline):
        return 1.0, "Same timeline"

    wanted, actual = timeline_bucket(investor.timeline), timeline_bucket(target.timeline)
    if wanted == 0 or actual == 0:
        return 0.8, "Flexible timeline"
    if wanted is not None and actual is not None:
        score = _BUCKET_DISTANCE_SCORES.get(abs(wanted - actual), 0.2)
        return score, "Timelines compared by horizon"
    return text_similarity(investor.timeline, target.timeline), "Timelines compared as text"


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------

def has_majority(conditions: Sequence[str]) -> bool:
    return any(
        "majority" in c.lower() or "full acquisition" in c.lower() or "51" in c
        for c in conditions
    )


def has_minority(conditions: Sequence[str]) -> bool:
    return any("minority" in c.lower() or "<50" in c for c in conditions)


def is_flexible(conditions: Sequence[str]) -> bool:
    return any(
        word in c.lower() for c in conditions for word in ("flexible", "negotiable", "open")
    )


def _conditions_text_fit(wanted: Sequence[str], offered: Sequence[str]) -> float:
    if {fold(c) for c in wanted} & {fold(c) for c in offered}:
        return 1.0
    if is_flexible(wanted) or is_flexible(offered):
        return 0.9
    if has_majority(wanted) and has_majority(offered):
        return 0.9
    if has_minority(wanted) and has_minority(offered):
        return 0.9
    if (has_majority(wanted) and has_minority(offered)) or (has_minority(wanted) and has_majority(offered)):
        return 0.2
    return max(text_similarity(a, b) for a in wanted for b in offered) * 0.7


def score_ownership(investor: InvestorView, target: TargetView) -> DimensionResult:
    if investor.negotiable:
        return 0.85, "Investor is flexible on ownership"

    allowance = target.max_investor_percentage
    conditions = investor.ownership_conditions

    if allowance is not None:
        if has_majority(conditions):
            if allowance >= 50:
                return 1.0, "Target allows a majority stake"
            return 0.3, "Target caps investors below majority"
        if has_minority(conditions):
            if allowance > 0:
                return 1.0, "Target allows a minority stake"
            return 0.1, "Target allows no outside shareholding"
        wanted = investor.acquisition_percentage
        if wanted is not None:
            if allowance >= wanted.high:
                return 1.0, "Desired stake within allowed shareholding"
            if allowance >= wanted.low:
                return 0.7, "Desired stake partially above allowed shareholding"
            return 0.3, "Desired stake exceeds allowed shareholding"

    if conditions and target.investment_conditions:
        return _conditions_text_fit(conditions, target.investment_conditions), "Ownership terms compared"
    return NEUTRAL, "Ownership terms not specified"


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def score_match(
    investor: InvestorView | Mapping[str, Any],
    target: TargetView | Mapping[str, Any],
    *,
    catalog: Sequence[CatalogEntry] | None = None,
    as_of: date | None = None,
    rates: ExchangeRates | None = None,
) -> MatchScore:
    """Score one investor against one target.

    Parameters
    ----------
    investor, target:
        Stored profiles (nested mappings) or already-normalised views.
    catalog:
        Industry catalog snapshot used by the fuzzy industry fallback.
        Defaults to the investor's own industry labels.
    as_of:
        Reference date for deriving years in business.
    rates:
        ``exchange_rates`` snapshot (currency code -> USD per unit) used to
        bring both sides' monetary ranges into USD.

    Returns
    -------
    MatchScore with ``total`` in 0-100 and every dimension in 0.0-1.0.
    """
    if not isinstance(investor, InvestorView):
        investor = normalize_investor(investor, rates=rates)
    if not isinstance(target, TargetView):
        target = normalize_target(target, as_of=as_of, rates=rates)

    results: dict[str, DimensionResult] = {
        "industry": score_industry(investor, target, catalog),
        "geography": score_geography(investor, target),
        "financial": score_financial(investor, target),
        "profile": score_profile(investor, target),
        "timeline": score_timeline(investor, target),
        "ownership": score_ownership(investor, target),
    }
    dimensions = {name: round(_clamp(score), 4) for name, (score, _) in results.items()}

    weighted = sum(WEIGHTS[name] * dimensions[name] for name in WEIGHTS)
    total = min(100, max(0, int(weighted * 100 + 0.5)))

    return MatchScore(
        total=total,
        explanations={name: text for name, (_, text) in results.items()},
        **dimensions,
    )
