"""Profile loading and match-record persistence.

Profiles live on the ``buyers`` (investors) and ``sellers`` (targets)
tables with one JSONB column per profile section.  Match records are
keyed by ``(buyer_id, seller_id)``; the upsert below refreshes scores on
every rescore and never touches a reviewer-assigned status.
"""

from __future__ import annotations

from typing import Any

import psycopg

from dealmatch.db import execute_query, fetch_one
from dealmatch.matching.scorer import MatchScore
from dealmatch.similarity.industry import CatalogEntry

DEFAULT_STATUS = "pending"
MATCH_STATUSES: tuple[str, ...] = ("pending", "reviewed", "dismissed", "converted")

_INVESTOR_COLUMNS = "id, buyer_id, company_overview, target_preferences, financial_details"
_TARGET_COLUMNS = "id, seller_id, company_overview, financial_details"
_ACTIVE = "status = 'active'"


def fetch_active_investors(conn: psycopg.Connection) -> list[dict]:
    return execute_query(
        conn, f"SELECT {_INVESTOR_COLUMNS} FROM buyers WHERE {_ACTIVE} ORDER BY id",
    )


def fetch_active_targets(conn: psycopg.Connection) -> list[dict]:
    return execute_query(
        conn, f"SELECT {_TARGET_COLUMNS} FROM sellers WHERE {_ACTIVE} ORDER BY id",
    )


def fetch_investor(conn: psycopg.Connection, investor_id: Any) -> dict | None:
    return fetch_one(conn, f"SELECT {_INVESTOR_COLUMNS} FROM buyers WHERE id = %s", (investor_id,))


def fetch_target(conn: psycopg.Connection, target_id: Any) -> dict | None:
    return fetch_one(conn, f"SELECT {_TARGET_COLUMNS} FROM sellers WHERE id = %s", (target_id,))


def fetch_industry_catalog(conn: psycopg.Connection) -> list[CatalogEntry]:
    """Active industries, read once per scoring run."""
    rows = execute_query(conn, "SELECT id, name FROM industries WHERE status = 'active' ORDER BY id")
    return [CatalogEntry(id=str(r["id"]), name=r["name"]) for r in rows]


def fetch_exchange_rates(conn: psycopg.Connection) -> dict[str, float]:
    """Currency code -> USD per unit, read once per scoring run."""
    rows = execute_query(conn, "SELECT currency_code, rate_to_usd FROM exchange_rates")
    return {
        r["currency_code"].strip().upper(): float(r["rate_to_usd"])
        for r in rows
        if r["currency_code"] and r["rate_to_usd"] is not None
    }


_UPSERT_MATCH = """
    INSERT INTO matches (
        buyer_id, seller_id, total_score,
        industry_score, geography_score, financial_score,
        profile_score, timeline_score, ownership_score,
        status, computed_at
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, now())
    ON CONFLICT (buyer_id, seller_id) DO UPDATE SET
        total_score = EXCLUDED.total_score,
        industry_score = EXCLUDED.industry_score,
        geography_score = EXCLUDED.geography_score,
        financial_score = EXCLUDED.financial_score,
        profile_score = EXCLUDED.profile_score,
        timeline_score = EXCLUDED.timeline_score,
        ownership_score = EXCLUDED.ownership_score,
        computed_at = EXCLUDED.computed_at
    RETURNING status, computed_at, (xmax = 0) AS created
"""


def upsert_match(
    conn: psycopg.Connection,
    investor_id: Any,
    target_id: Any,
    score: MatchScore,
) -> dict:
    """Insert or refresh the match record for one pair.

    New records start as ``pending``; existing records keep their status.

    Returns
    -------
    dict with ``status``, ``computed_at`` and ``created``.
    """
    row = fetch_one(
        conn,
        _UPSERT_MATCH,
        (
            investor_id,
            target_id,
            score.total,
            score.industry,
            score.geography,
            score.financial,
            score.profile,
            score.timeline,
            score.ownership,
            DEFAULT_STATUS,
        ),
    )
    if row is None:
        raise RuntimeError(f"Upsert returned no row for pair ({investor_id}, {target_id})")
    return row
