#!/usr/bin/env python3
"""CLI script to validate a buyer/seller import file before it is committed."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import structlog
import typer

from dealmatch.config import get_settings
from dealmatch.db import connect
from dealmatch.import_validation import (
    columns_for,
    load_reference_data,
    make_code_lookup,
    validate_all_rows,
)

logger = structlog.get_logger(__name__)
app = typer.Typer()


def _header_map(entity_type: str) -> dict[str, str]:
    """Accept either the column key or its display label as a CSV header."""
    mapping = {}
    for col in columns_for(entity_type):
        mapping[col.key] = col.key
        mapping[col.label.strip().lower()] = col.key
    return mapping


def read_import_rows(csv_path: Path, entity_type: str) -> list[dict]:
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    headers = _header_map(entity_type)

    df.columns = [c.strip().lower() for c in df.columns]
    df = df.rename(columns={c: headers[c] for c in df.columns if c in headers})
    df = df.loc[:, ~df.columns.duplicated()]

    return df.to_dict(orient="records")


@app.command()
def main(
    csv_path: Path = typer.Argument(help="CSV export of the import spreadsheet"),
    entity_type: str = typer.Option("investor", "--type", help="investor or target"),
    fail_on_errors: bool = typer.Option(False, help="Exit with status 1 if any row has errors"),
) -> None:
    """Validate every row of an import file and print the JSON report."""
    rows = read_import_rows(csv_path, entity_type)
    logger.info("import_rows_loaded", path=str(csv_path), rows=len(rows), entity_type=entity_type)

    with connect(get_settings()) as conn:
        reference = load_reference_data(conn)
        report = validate_all_rows(
            rows,
            entity_type,
            reference,
            code_exists=make_code_lookup(conn, entity_type),
        )

    typer.echo(json.dumps(report.to_dict(), indent=2, default=str))

    if fail_on_errors and report.summary["errors"]:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
