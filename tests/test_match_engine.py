"""Tests for match orchestration and match-record persistence.

All database interactions are mocked; no real PostgreSQL needed.
"""

from __future__ import annotations

import copy
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from dealmatch.matching import (
    MatchScore,
    apply_criteria,
    compute_matches_for_investor,
    compute_matches_for_target,
    full_rescan,
    score_with_criteria,
)
from dealmatch.matching.store import (
    fetch_active_targets,
    fetch_exchange_rates,
    fetch_industry_catalog,
    fetch_investor,
    fetch_target,
    upsert_match,
)


def _score(total: int) -> MatchScore:
    return MatchScore(
        total=total, industry=0.5, geography=0.5, financial=0.5,
        profile=0.5, timeline=0.5, ownership=0.5,
    )


class FakeMatchTable:
    """In-memory stand-in for the matches table's upsert semantics."""

    def __init__(self, existing: dict | None = None):
        self.records = dict(existing or {})

    def upsert(self, conn, investor_id, target_id, score):
        key = (investor_id, target_id)
        created = key not in self.records
        if created:
            self.records[key] = {"status": "pending"}
        self.records[key]["total"] = score.total
        return {"status": self.records[key]["status"], "created": created, "computed_at": None}


def _investors(base: dict, count: int) -> list[dict]:
    investors = []
    for i in range(count):
        investor = copy.deepcopy(base)
        investor["id"] = 100 + i
        investors.append(investor)
    return investors


# =========================================================================
# Admission threshold and status
# =========================================================================


class TestAdmission:
    """Tests for the minimum-score gate and status preservation."""

    def test_below_threshold_not_persisted(self, mock_conn, investor_profile, target_profile):
        with patch("dealmatch.matching.engine.score_match", return_value=_score(29)), \
                patch("dealmatch.matching.store.upsert_match") as mock_upsert:
            report = compute_matches_for_investor(
                mock_conn, investor_profile, targets=[target_profile], catalog=[],
            )
        mock_upsert.assert_not_called()
        assert report.qualifying == 0
        assert report.below_threshold == 1

    def test_threshold_score_is_persisted(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        with patch("dealmatch.matching.engine.score_match", return_value=_score(30)), \
                patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = compute_matches_for_investor(
                mock_conn, investor_profile, targets=[target_profile], catalog=[],
            )
        assert report.qualifying == 1
        assert table.records[(10, 20)]["total"] == 30

    def test_custom_threshold(self, mock_conn, investor_profile, target_profile):
        with patch("dealmatch.matching.engine.score_match", return_value=_score(40)), \
                patch("dealmatch.matching.store.upsert_match") as mock_upsert:
            compute_matches_for_investor(
                mock_conn, investor_profile, targets=[target_profile], catalog=[], min_score=50,
            )
        mock_upsert.assert_not_called()

    def test_reviewed_status_preserved(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable({(10, 20): {"status": "reviewed", "total": 12}})
        new_target = {**target_profile, "id": 21}
        with patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = compute_matches_for_investor(
                mock_conn, investor_profile, targets=[target_profile, new_target], catalog=[],
            )

        by_target = {o.target_id: o for o in report.succeeded}
        assert by_target[20].status == "reviewed"
        assert by_target[20].created is False
        assert table.records[(10, 20)]["total"] == by_target[20].score.total
        assert by_target[21].status == "pending"
        assert by_target[21].created is True

    def test_strong_matches_counted(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        with patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = compute_matches_for_investor(
                mock_conn, investor_profile, targets=[target_profile], catalog=[],
            )
        assert report.strong == 1
        assert report.summary()["qualifying"] == 1


# =========================================================================
# Entry points
# =========================================================================


class TestEntryPoints:
    """Tests for the investor, target and full-rescan drivers."""

    def test_investor_loads_active_targets(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        with patch("dealmatch.matching.store.fetch_active_targets", return_value=[target_profile]) as mock_targets, \
                patch("dealmatch.matching.store.fetch_industry_catalog", return_value=[]), \
                patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = compute_matches_for_investor(mock_conn, investor_profile)
        mock_targets.assert_called_once_with(mock_conn)
        assert report.qualifying == 1

    def test_target_scores_every_investor(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        investors = _investors(investor_profile, 3)
        with patch("dealmatch.matching.store.fetch_active_investors", return_value=investors), \
                patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = compute_matches_for_target(mock_conn, target_profile, catalog=[])
        assert set(table.records) == {(100, 20), (101, 20), (102, 20)}
        assert report.qualifying == 3

    def test_full_rescan_cross_product(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        targets = [target_profile, {**target_profile, "id": 21}]
        with patch("dealmatch.matching.store.fetch_active_investors", return_value=_investors(investor_profile, 2)), \
                patch("dealmatch.matching.store.fetch_active_targets", return_value=targets), \
                patch("dealmatch.matching.store.fetch_industry_catalog", return_value=[]) as mock_catalog, \
                patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = full_rescan(mock_conn)
        mock_catalog.assert_called_once()
        assert report.qualifying == 4
        assert len(table.records) == 4

    def test_rates_loaded_once_and_applied(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        yen_target = copy.deepcopy(target_profile)
        yen_target["id"] = 21
        yen_target["financial_details"]["default_currency"] = "JPY"
        with patch("dealmatch.matching.store.fetch_exchange_rates", return_value={"JPY": 0.0067}) as mock_rates, \
                patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = full_rescan(
                mock_conn,
                investors=_investors(investor_profile, 2),
                targets=[target_profile, yen_target],
                catalog=[],
            )
        mock_rates.assert_called_once_with(mock_conn)
        scores = {(o.investor_id, o.target_id): o.score for o in report.succeeded}
        assert scores[(100, 20)].financial == 1.0
        assert scores[(100, 21)].financial < 0.5
        assert "USD" in scores[(100, 21)].explanations["financial"]

    def test_full_rescan_cancellation(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        should_stop = MagicMock(side_effect=[False, False, True])
        with patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert):
            report = full_rescan(
                mock_conn,
                investors=_investors(investor_profile, 2),
                targets=[target_profile, {**target_profile, "id": 21}],
                catalog=[],
                should_stop=should_stop,
            )
        assert report.cancelled is True
        assert report.attempted == 2
        assert len(table.records) == 2


# =========================================================================
# Failure isolation
# =========================================================================


class TestFailureIsolation:
    """A bad pair is reported and skipped; the batch always completes."""

    def test_malformed_profile_skipped(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()
        investors = _investors(investor_profile, 49)
        investors.insert(17, SimpleNamespace(id=999))

        with patch("dealmatch.matching.store.upsert_match", side_effect=table.upsert), \
                patch("dealmatch.matching.engine.logger") as mock_logger:
            report = full_rescan(mock_conn, investors=investors, targets=[target_profile], catalog=[])

        assert report.attempted == 50
        assert report.qualifying + report.below_threshold == 49
        assert len(report.skipped) == 1
        assert report.skipped[0].investor_id == 999
        assert report.skipped[0].target_id == 20
        assert "TypeError" in report.skipped[0].error

        warnings = [c for c in mock_logger.warning.call_args_list if c.args[0] == "match_scoring_failed"]
        assert len(warnings) == 1
        assert warnings[0].kwargs["investor_id"] == 999

    def test_persist_failure_skipped(self, mock_conn, investor_profile, target_profile):
        table = FakeMatchTable()

        def flaky_upsert(conn, investor_id, target_id, score):
            if investor_id == 101:
                raise psycopg.OperationalError("connection reset")
            return table.upsert(conn, investor_id, target_id, score)

        with patch("dealmatch.matching.store.upsert_match", side_effect=flaky_upsert):
            report = full_rescan(
                mock_conn,
                investors=_investors(investor_profile, 3),
                targets=[target_profile],
                catalog=[],
            )
        assert report.qualifying == 2
        assert [(e.investor_id, e.target_id) for e in report.skipped] == [(101, 20)]
        assert mock_conn.transaction.call_count == 3


# =========================================================================
# Criteria scoring
# =========================================================================


class TestCriteria:
    """Tests for query-time preference overrides."""

    def test_apply_criteria_overrides_without_mutating(self, investor_profile):
        original = copy.deepcopy(investor_profile)
        overridden = apply_criteria(investor_profile, {
            "industries": ["Healthcare"],
            "budget_min": 2_000_000,
            "ownership_condition": "Minority (<50%)",
        })
        assert investor_profile == original
        overview = overridden["company_overview"]
        assert overview["main_industry_operations"] == ["Healthcare"]
        assert overview["investment_budget"] == {"min": 2_000_000, "max": 5_000_000.0}
        assert overview["investment_condition"] == ["Minority (<50%)"]
        assert overridden["financial_details"]["is_negotiable"] is False

    def test_budget_override_keeps_currency(self, investor_profile):
        investor = copy.deepcopy(investor_profile)
        investor["company_overview"]["investment_budget"]["currency"] = "JPY"
        overridden = apply_criteria(investor, {"budget_max": 9_000_000})
        assert overridden["company_overview"]["investment_budget"] == {
            "min": 1_000_000.0, "max": 9_000_000, "currency": "JPY",
        }

    def test_empty_criteria_keep_stored_preferences(self, investor_profile):
        overridden = apply_criteria(investor_profile, {"industries": [], "budget_min": None})
        assert overridden["company_overview"] == investor_profile["company_overview"]

    def test_ranked_best_first(self, investor_profile, target_profile):
        healthcare = copy.deepcopy(target_profile)
        healthcare["id"] = 21
        healthcare["company_overview"]["industry_ops"] = [{"id": 3, "name": "Healthcare"}]

        ranked = score_with_criteria(
            investor_profile, {"industries": ["Healthcare"]}, [target_profile, healthcare],
        )
        assert ranked[0].target_id == 21
        totals = [m.score.total for m in ranked]
        assert totals == sorted(totals, reverse=True)

    def test_threshold_applies(self, investor_profile, target_profile):
        assert score_with_criteria(investor_profile, {}, [target_profile], min_score=101) == []

    def test_bad_target_skipped(self, investor_profile, target_profile):
        ranked = score_with_criteria(investor_profile, {}, ["garbage", target_profile])
        assert [m.target_id for m in ranked] == [20]


# =========================================================================
# Store
# =========================================================================


class TestMatchStore:
    """Tests for the raw-SQL match store."""

    def test_upsert_never_rewrites_status(self):
        conn = MagicMock()
        with patch(
            "dealmatch.matching.store.fetch_one",
            return_value={"status": "reviewed", "created": False, "computed_at": None},
        ) as mock_fetch:
            row = upsert_match(conn, 10, 20, _score(75))

        sql, params = mock_fetch.call_args[0][1], mock_fetch.call_args[0][2]
        assert "ON CONFLICT (buyer_id, seller_id) DO UPDATE" in sql
        update_clause = sql.split("DO UPDATE SET")[1].split("RETURNING")[0]
        assert "status" not in update_clause
        assert "computed_at" in update_clause
        assert params[:3] == (10, 20, 75)
        assert params[-1] == "pending"
        assert row["status"] == "reviewed"

    def test_upsert_without_row_raises(self):
        with patch("dealmatch.matching.store.fetch_one", return_value=None):
            with pytest.raises(RuntimeError):
                upsert_match(MagicMock(), 10, 20, _score(75))

    def test_exchange_rates_keyed_by_upper_code(self):
        conn = MagicMock()
        rows = [
            {"currency_code": "jpy ", "rate_to_usd": "0.0067"},
            {"currency_code": "SGD", "rate_to_usd": 0.74},
            {"currency_code": "EUR", "rate_to_usd": None},
        ]
        with patch("dealmatch.matching.store.execute_query", return_value=rows) as mock_eq:
            rates = fetch_exchange_rates(conn)
        assert rates == {"JPY": 0.0067, "SGD": 0.74}
        assert "FROM exchange_rates" in mock_eq.call_args[0][1]

    def test_fetch_active_targets(self):
        conn = MagicMock()
        with patch("dealmatch.matching.store.execute_query", return_value=[{"id": 20}]) as mock_eq:
            assert fetch_active_targets(conn) == [{"id": 20}]
        assert "FROM sellers" in mock_eq.call_args[0][1]

    def test_industry_catalog_ids_are_strings(self):
        conn = MagicMock()
        with patch(
            "dealmatch.matching.store.execute_query",
            return_value=[{"id": 3, "name": "Healthcare"}],
        ):
            catalog = fetch_industry_catalog(conn)
        assert catalog[0].id == "3"
        assert catalog[0].name == "Healthcare"

    def test_fetch_single_profiles(self):
        conn = MagicMock()
        with patch("dealmatch.matching.store.fetch_one", return_value={"id": 10}) as mock_fetch:
            assert fetch_investor(conn, 10) == {"id": 10}
            assert "FROM buyers" in mock_fetch.call_args[0][1]
            assert mock_fetch.call_args[0][2] == (10,)
            fetch_target(conn, 20)
            assert "FROM sellers" in mock_fetch.call_args[0][1]
