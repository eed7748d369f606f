#!/usr/bin/env python3
"""CLI script to recompute investor/target matches."""

from __future__ import annotations

import structlog
import typer

from dealmatch.config import get_settings
from dealmatch.db import connect
from dealmatch.matching import (
    compute_matches_for_investor,
    compute_matches_for_target,
    full_rescan,
)
from dealmatch.matching.store import fetch_investor, fetch_target

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    investor_id: int | None = typer.Option(None, "--investor-id", help="Rescore one investor"),
    target_id: int | None = typer.Option(None, "--target-id", help="Rescore one target"),
) -> None:
    """Rescore one investor, one target, or the full active cross-product."""
    if investor_id is not None and target_id is not None:
        raise typer.BadParameter("Pass at most one of --investor-id / --target-id")

    settings = get_settings()
    thresholds = {
        "min_score": settings.min_match_score,
        "strong_score": settings.strong_match_score,
    }

    with connect(settings) as conn:
        if investor_id is not None:
            investor = fetch_investor(conn, investor_id)
            if investor is None:
                logger.error("investor_not_found", investor_id=investor_id)
                raise typer.Exit(code=1)
            report = compute_matches_for_investor(conn, investor, **thresholds)
        elif target_id is not None:
            target = fetch_target(conn, target_id)
            if target is None:
                logger.error("target_not_found", target_id=target_id)
                raise typer.Exit(code=1)
            report = compute_matches_for_target(conn, target, **thresholds)
        else:
            report = full_rescan(conn, **thresholds)

    logger.info("match_rescan_complete", **report.summary())


if __name__ == "__main__":
    app()
