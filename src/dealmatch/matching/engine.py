"""Batch orchestration of investor/target match scoring.

Every pair is scored independently.  A pair whose scoring or persistence
fails becomes a :class:`ScoreError` in the run's :class:`MatchReport`
and the batch carries on.  Pairs at or above the admission threshold are
upserted; review status on existing records is left untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import psycopg
import structlog

from dealmatch.matching import store
from dealmatch.matching.profiles import INFINITY, ExchangeRates, normalize_investor, profile_section
from dealmatch.matching.scorer import MatchScore, score_match
from dealmatch.similarity.industry import CatalogEntry

logger = structlog.get_logger(__name__)

MIN_SCORE = 30
STRONG_SCORE = 70


@dataclass
class ScoreError:
    """A pair that could not be scored or stored."""

    investor_id: Any
    target_id: Any
    error: str


@dataclass
class MatchOutcome:
    """A qualifying pair and the state of its stored record."""

    investor_id: Any
    target_id: Any
    score: MatchScore
    status: str
    created: bool
    computed_at: datetime | None = None


@dataclass
class MatchReport:
    """Result of one orchestrator run."""

    succeeded: list[MatchOutcome] = field(default_factory=list)
    skipped: list[ScoreError] = field(default_factory=list)
    below_threshold: int = 0
    cancelled: bool = False
    strong_score: int = STRONG_SCORE

    @property
    def qualifying(self) -> int:
        return len(self.succeeded)

    @property
    def strong(self) -> int:
        return sum(1 for outcome in self.succeeded if outcome.score.total >= self.strong_score)

    @property
    def attempted(self) -> int:
        return self.qualifying + self.below_threshold + len(self.skipped)

    def summary(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "qualifying": self.qualifying,
            "strong": self.strong,
            "below_threshold": self.below_threshold,
            "skipped": len(self.skipped),
            "cancelled": self.cancelled,
        }


def _profile_id(profile: Any) -> Any:
    if isinstance(profile, Mapping):
        return profile.get("id")
    return getattr(profile, "id", None)


def score_pair(
    investor: Any,
    target: Any,
    *,
    catalog: Sequence[CatalogEntry] | None = None,
    rates: ExchangeRates | None = None,
    as_of: date | None = None,
) -> MatchScore | ScoreError:
    """Score one pair, returning a :class:`ScoreError` instead of raising."""
    try:
        return score_match(investor, target, catalog=catalog, rates=rates, as_of=as_of)
    except Exception as e:
        error = ScoreError(_profile_id(investor), _profile_id(target), f"{type(e).__name__}: {e!s}")
        logger.warning(
            "match_scoring_failed",
            investor_id=error.investor_id,
            target_id=error.target_id,
            error=error.error,
        )
        return error


def _persist(conn: psycopg.Connection, investor_id: Any, target_id: Any, score: MatchScore) -> MatchOutcome:
    # One savepoint per pair; a failed write must not poison the outer transaction.
    with conn.transaction():
        row = store.upsert_match(conn, investor_id, target_id, score)
    return MatchOutcome(
        investor_id=investor_id,
        target_id=target_id,
        score=score,
        status=row["status"],
        created=bool(row["created"]),
        computed_at=row.get("computed_at"),
    )


def run_pairs(
    conn: psycopg.Connection,
    pairs: Iterable[tuple[Any, Any]],
    *,
    catalog: Sequence[CatalogEntry] | None = None,
    rates: ExchangeRates | None = None,
    min_score: int = MIN_SCORE,
    strong_score: int = STRONG_SCORE,
    should_stop: Callable[[], bool] | None = None,
    as_of: date | None = None,
) -> MatchReport:
    """Score and persist each ``(investor, target)`` pair.

    Parameters
    ----------
    pairs:
        Investor/target profiles (mappings or normalised views).
    rates:
        Exchange-rate snapshot applied to every pair.
    min_score:
        Admission threshold; pairs below it are counted but not stored.
    should_stop:
        Checked before each pair; returning True ends the run early with
        ``cancelled`` set on the report.
    """
    report = MatchReport(strong_score=strong_score)

    for investor, target in pairs:
        if should_stop is not None and should_stop():
            report.cancelled = True
            logger.info("match_run_cancelled", attempted=report.attempted)
            break

        result = score_pair(investor, target, catalog=catalog, rates=rates, as_of=as_of)
        if isinstance(result, ScoreError):
            report.skipped.append(result)
            continue

        if result.total < min_score:
            report.below_threshold += 1
            continue

        investor_id, target_id = _profile_id(investor), _profile_id(target)
        try:
            report.succeeded.append(_persist(conn, investor_id, target_id, result))
        except Exception as e:
            error = ScoreError(investor_id, target_id, f"{type(e).__name__}: {e!s}")
            logger.warning(
                "match_persist_failed",
                investor_id=investor_id,
                target_id=target_id,
                error=error.error,
            )
            report.skipped.append(error)

    logger.info("match_run_complete", **report.summary())
    return report


def _catalog(conn: psycopg.Connection, catalog: Sequence[CatalogEntry] | None) -> Sequence[CatalogEntry]:
    return store.fetch_industry_catalog(conn) if catalog is None else catalog


def _rates(conn: psycopg.Connection, rates: ExchangeRates | None) -> ExchangeRates:
    return store.fetch_exchange_rates(conn) if rates is None else rates


def compute_matches_for_investor(
    conn: psycopg.Connection,
    investor: Mapping[str, Any],
    *,
    targets: Sequence[Mapping[str, Any]] | None = None,
    catalog: Sequence[CatalogEntry] | None = None,
    rates: ExchangeRates | None = None,
    min_score: int = MIN_SCORE,
    strong_score: int = STRONG_SCORE,
) -> MatchReport:
    """Score one investor against every active target."""
    if targets is None:
        targets = store.fetch_active_targets(conn)
    logger.info("investor_match_started", investor_id=_profile_id(investor), targets=len(targets))
    return run_pairs(
        conn,
        ((investor, target) for target in targets),
        catalog=_catalog(conn, catalog),
        rates=_rates(conn, rates),
        min_score=min_score,
        strong_score=strong_score,
    )


def compute_matches_for_target(
    conn: psycopg.Connection,
    target: Mapping[str, Any],
    *,
    investors: Sequence[Mapping[str, Any]] | None = None,
    catalog: Sequence[CatalogEntry] | None = None,
    rates: ExchangeRates | None = None,
    min_score: int = MIN_SCORE,
    strong_score: int = STRONG_SCORE,
) -> MatchReport:
    """Score one target against every active investor."""
    if investors is None:
        investors = store.fetch_active_investors(conn)
    logger.info("target_match_started", target_id=_profile_id(target), investors=len(investors))
    return run_pairs(
        conn,
        ((investor, target) for investor in investors),
        catalog=_catalog(conn, catalog),
        rates=_rates(conn, rates),
        min_score=min_score,
        strong_score=strong_score,
    )


def full_rescan(
    conn: psycopg.Connection,
    *,
    investors: Sequence[Mapping[str, Any]] | None = None,
    targets: Sequence[Mapping[str, Any]] | None = None,
    catalog: Sequence[CatalogEntry] | None = None,
    rates: ExchangeRates | None = None,
    min_score: int = MIN_SCORE,
    strong_score: int = STRONG_SCORE,
    should_stop: Callable[[], bool] | None = None,
) -> MatchReport:
    """Score the full active investor x target cross-product.

    Profiles, the industry catalog and exchange rates are read once up
    front, so the whole run scores against one consistent snapshot.
    """
    if investors is None:
        investors = store.fetch_active_investors(conn)
    if targets is None:
        targets = store.fetch_active_targets(conn)
    logger.info("full_rescan_started", investors=len(investors), targets=len(targets))
    return run_pairs(
        conn,
        ((investor, target) for investor in investors for target in targets),
        catalog=_catalog(conn, catalog),
        rates=_rates(conn, rates),
        min_score=min_score,
        strong_score=strong_score,
        should_stop=should_stop,
    )


# ---------------------------------------------------------------------------
# Ad-hoc criteria
# ---------------------------------------------------------------------------

@dataclass
class RankedMatch:
    """A target scored against query-time criteria (never persisted)."""

    target_id: Any
    score: MatchScore


def apply_criteria(investor: Mapping[str, Any], criteria: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *investor* with its preferences overridden by *criteria*.

    Recognised keys: ``industries``, ``target_countries``, ``budget_min``,
    ``budget_max``, ``ebitda_min``, ``ownership_condition``.  Keys that are
    absent or empty leave the stored preference in place.
    """
    overview = dict(profile_section(investor, "company_overview"))
    prefs = dict(profile_section(investor, "target_preferences"))
    financial = dict(profile_section(investor, "financial_details"))

    if criteria.get("industries"):
        overview["main_industry_operations"] = list(criteria["industries"])
        overview.pop("company_industry", None)
        prefs.pop("b_ind_prefs", None)
        prefs.pop("n_ind_prefs", None)

    if criteria.get("target_countries"):
        overview["target_countries"] = list(criteria["target_countries"])
        prefs.pop("target_countries", None)

    budget_min, budget_max = criteria.get("budget_min"), criteria.get("budget_max")
    if budget_min is not None or budget_max is not None:
        stored = normalize_investor({"company_overview": overview, "financial_details": financial}).budget
        if budget_min is None and stored is not None:
            budget_min = stored.low
        if budget_max is None and stored is not None and stored.high != INFINITY:
            budget_max = stored.high
        budget: dict[str, Any] = {"min": budget_min, "max": budget_max}
        stored_value = overview.get("investment_budget") or financial.get("investment_budget")
        if isinstance(stored_value, Mapping) and stored_value.get("currency"):
            budget["currency"] = stored_value["currency"]
        overview["investment_budget"] = budget
        financial.pop("investment_budget", None)

    if criteria.get("ebitda_min") is not None:
        financial["ebitda_range"] = {"min": criteria["ebitda_min"]}
        prefs.pop("ebitda", None)

    if criteria.get("ownership_condition"):
        overview["investment_condition"] = [criteria["ownership_condition"]]
        financial.pop("ownership_type", None)
        financial["is_negotiable"] = False

    return {
        **investor,
        "company_overview": overview,
        "target_preferences": prefs,
        "financial_details": financial,
    }


def score_with_criteria(
    investor: Mapping[str, Any],
    criteria: Mapping[str, Any],
    targets: Iterable[Mapping[str, Any]],
    *,
    catalog: Sequence[CatalogEntry] | None = None,
    rates: ExchangeRates | None = None,
    min_score: int = MIN_SCORE,
    as_of: date | None = None,
) -> list[RankedMatch]:
    """Rank *targets* for *investor* under query-time *criteria*, best first.

    Criteria amounts are in the investor's own currency.
    """
    overridden = normalize_investor(apply_criteria(investor, criteria), rates=rates)

    ranked = []
    for target in targets:
        result = score_pair(overridden, target, catalog=catalog, rates=rates, as_of=as_of)
        if isinstance(result, ScoreError) or result.total < min_score:
            continue
        ranked.append(RankedMatch(target_id=_profile_id(target), score=result))

    ranked.sort(key=lambda m: m.score.total, reverse=True)
    return ranked
