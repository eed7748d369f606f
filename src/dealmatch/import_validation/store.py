"""Catalog snapshot loading and project-code lookups for imports.

All database interaction uses raw SQL via psycopg3.
"""

from __future__ import annotations

import psycopg

from dealmatch.db import execute_query, fetch_one
from dealmatch.import_validation.catalogs import Country, ReferenceData
from dealmatch.import_validation.validator import CodeLookup
from dealmatch.similarity.industry import CatalogEntry

# Project codes are stored as buyer_id / seller_id on the prospect tables.
_CODE_COLUMNS: dict[str, tuple[str, str]] = {
    "investor": ("buyers", "buyer_id"),
    "target": ("sellers", "seller_id"),
}


def load_reference_data(conn: psycopg.Connection) -> ReferenceData:
    """Read countries, active industries and currency codes in one snapshot."""
    countries = execute_query(
        conn,
        """
        SELECT id, name, alpha_2_code, COALESCE(is_region, false) AS is_region
        FROM countries
        ORDER BY is_region DESC, name
        """,
    )
    industries = execute_query(
        conn,
        "SELECT id, name FROM industries WHERE status = 'active' ORDER BY id",
    )
    currencies = execute_query(
        conn,
        "SELECT currency_code FROM currencies ORDER BY currency_code",
    )

    return ReferenceData.build(
        countries=[
            Country(
                id=r["id"],
                name=r["name"],
                alpha_2_code=r.get("alpha_2_code"),
                is_region=bool(r.get("is_region")),
            )
            for r in countries
        ],
        industries=[CatalogEntry(id=r["id"], name=r["name"]) for r in industries],
        currencies=[r["currency_code"] for r in currencies],
    )


def project_code_exists(conn: psycopg.Connection, entity_type: str, code: str) -> bool:
    """Return True when *code* is already used by a stored investor/target."""
    try:
        table, column = _CODE_COLUMNS[entity_type]
    except KeyError:
        raise ValueError(f"Unknown entity type: {entity_type!r}") from None

    row = fetch_one(
        conn,
        f"SELECT 1 AS found FROM {table} WHERE {column} = %s LIMIT 1",
        (code,),
    )
    return row is not None


def make_code_lookup(conn: psycopg.Connection, entity_type: str) -> CodeLookup:
    """Bind *conn* and *entity_type* into a ``code -> exists`` callable."""
    if entity_type not in _CODE_COLUMNS:
        raise ValueError(f"Unknown entity type: {entity_type!r}")

    def lookup(code: str) -> bool:
        return project_code_exists(conn, entity_type, code)

    return lookup
