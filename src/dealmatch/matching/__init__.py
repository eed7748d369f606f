"""Investor/target compatibility scoring and match orchestration."""

from dealmatch.matching.engine import (
    MIN_SCORE,
    MatchOutcome,
    MatchReport,
    RankedMatch,
    ScoreError,
    apply_criteria,
    compute_matches_for_investor,
    compute_matches_for_target,
    full_rescan,
    score_pair,
    score_with_criteria,
)
from dealmatch.matching.profiles import (
    InvestorView,
    LabeledItem,
    Range,
    TargetView,
    labeled_items,
    normalize_investor,
    normalize_target,
    parse_range,
)
from dealmatch.matching.scorer import WEIGHTS, MatchScore, match_tier, score_match, tier_label

__all__ = [
    "MIN_SCORE",
    "WEIGHTS",
    "InvestorView",
    "LabeledItem",
    "MatchOutcome",
    "MatchReport",
    "MatchScore",
    "Range",
    "RankedMatch",
    "ScoreError",
    "TargetView",
    "apply_criteria",
    "compute_matches_for_investor",
    "compute_matches_for_target",
    "full_rescan",
    "labeled_items",
    "match_tier",
    "normalize_investor",
    "normalize_target",
    "parse_range",
    "score_match",
    "score_pair",
    "score_with_criteria",
    "tier_label",
]
