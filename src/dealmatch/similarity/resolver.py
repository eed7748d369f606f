"""Resolve free-typed values against a controlled vocabulary.

Resolution order (first hit wins):
  1. Exact match (case-insensitive, dash-normalised).
  2. Region alias (``"APAC"`` -> ``"East Asia"``), only if the alias
     target is itself one of the options.
  3. Substring containment in either direction.

When nothing matches, the three options closest by edit distance are
returned as suggestions.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from dealmatch.similarity.text import fold, levenshtein

MAX_SUGGESTIONS = 3

# Lowercase informal region name -> canonical catalog display name.
REGION_ALIASES: dict[str, str] = {
    # Asia Pacific
    "apac": "East Asia",
    "asia pacific": "East Asia",
    "asia-pacific": "East Asia",
    "asiapacific": "East Asia",
    "ap": "East Asia",
    # Southeast Asia
    "sea": "ASEAN",
    "southeast asia": "ASEAN",
    "south east asia": "ASEAN",
    # Europe
    "eu": "Europe",
    "emea": "Europe",
    # Middle East
    "mena": "Middle East",
    "me": "Middle East",
    "mideast": "Middle East",
    "mid east": "Middle East",
    # Americas
    "americas": "North America",
    "us": "North America",
    "usa": "North America",
    "united states": "North America",
    "na": "North America",
    "latam": "South America",
    "latin america": "South America",
    # Gulf
    "gulf": "GCC",
    "gulf states": "GCC",
    # Nordic
    "nordics": "Nordic Countries",
    "nordic": "Nordic Countries",
    "scandinavia": "Nordic Countries",
    # Oceania
    "anz": "Oceania",
    "australasia": "Oceania",
    "australia & nz": "Oceania",
    # Broader
    "worldwide": "Global",
    "international": "Global",
    "all": "Global",
}


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of resolving one value against one option list."""

    matched: str | None
    suggestions: list[str] = field(default_factory=list)
    method: str | None = None  # "exact" | "alias" | "substring"
    near_match: str | None = None  # closest option within the edit threshold

    @property
    def confidence(self) -> int:
        return 100 if self.matched is not None else 0


def near_match_threshold(folded_input: str) -> int:
    """Largest edit distance still treated as a usable near-match."""
    return max(3, int(len(folded_input) * 0.4))


def _exact(folded_input: str, options: Sequence[str]) -> str | None:
    for option in options:
        if fold(option) == folded_input:
            return option
    return None


def resolve(value: str, options: Sequence[str]) -> ResolveResult:
    """Resolve *value* against *options*.

    Returns a :class:`ResolveResult` whose ``matched`` is the canonical
    option (original spelling) or ``None``.  ``suggestions`` holds up to
    three options ordered by ascending edit distance and is only filled
    when nothing matched.
    """
    folded = fold(value)
    if not folded:
        return ResolveResult(matched=None)

    candidates = [option for option in options if option and option.strip()]

    exact = _exact(folded, candidates)
    if exact is not None:
        return ResolveResult(matched=exact, method="exact")

    alias_target = REGION_ALIASES.get(value.strip().lower())
    if alias_target is not None:
        aliased = _exact(fold(alias_target), candidates)
        if aliased is not None:
            return ResolveResult(matched=aliased, method="alias")

    for option in candidates:
        folded_option = fold(option)
        if folded in folded_option or folded_option in folded:
            return ResolveResult(matched=option, method="substring")

    distances = [(levenshtein(folded, fold(option)), option) for option in candidates]
    ranked = sorted(distances, key=lambda pair: pair[0])

    near_match = None
    if ranked and ranked[0][0] <= near_match_threshold(folded):
        near_match = ranked[0][1]

    return ResolveResult(
        matched=None,
        suggestions=[option for _, option in ranked[:MAX_SUGGESTIONS]],
        near_match=near_match,
    )
