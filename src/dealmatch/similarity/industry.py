"""Industry similarity: map ad-hoc industry labels onto the canonical catalog.

Four independent strategies are blended into one confidence score (0-100):

1. **Edit distance**   (30%) -- catches typos.
2. **Token Jaccard**   (35%) -- catches reordered words
   ("Logistics & Transportation" vs "Transportation Logistics").
3. **Substring**       (20%) -- catches partial labels.
4. **Phonetic**        (15%) -- catches sound-alike misspellings.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from dealmatch.similarity.text import (
    edit_similarity,
    jaccard,
    normalize,
    phonetic_codes,
    tokenize,
)

WEIGHTS: dict[str, float] = {
    "edit": 0.30,
    "token": 0.35,
    "substring": 0.20,
    "phonetic": 0.15,
}

if abs(sum(WEIGHTS.values()) - 1.0) > 1e-9:
    raise ValueError("Industry similarity weights must sum to 1.0")

MIN_SCORE = 40
MAX_SUGGESTIONS = 3


@dataclass(frozen=True)
class CatalogEntry:
    """One canonical catalog item."""

    id: Any
    name: str


@dataclass(frozen=True)
class IndustrySuggestion:
    """A catalog entry proposed for an ad-hoc label, with its 0-100 score."""

    id: Any
    name: str
    score: int


def as_catalog_entry(item: CatalogEntry | Mapping | str) -> CatalogEntry:
    """Coerce a catalog item given as entry, ``{"id", "name"}`` mapping or bare name."""
    if isinstance(item, CatalogEntry):
        return item
    if isinstance(item, Mapping):
        return CatalogEntry(id=item.get("id"), name=str(item.get("name") or ""))
    return CatalogEntry(id=None, name=str(item))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def substring_score(a: str, b: str) -> float:
    """Containment score between two normalised strings.

    Full containment scores ``len(shorter) / len(longer)``.  Otherwise each
    token of the shorter string (3+ characters) found inside the longer one
    counts towards a partial score capped at 0.8.
    """
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if not shorter or not longer:
        return 0.0

    if shorter in longer:
        return len(shorter) / len(longer)

    short_tokens = shorter.split(" ")
    found = sum(1 for token in short_tokens if len(token) >= 3 and token in longer)
    return (found / len(short_tokens)) * 0.8


@dataclass(frozen=True)
class _Prepared:
    normalized: str
    sorted_tokens: str
    tokens: tuple[str, ...]
    phonetics: tuple[str, ...]


def _prepare(name: str) -> _Prepared:
    tokens = tokenize(name)
    return _Prepared(
        normalized=normalize(name),
        sorted_tokens=" ".join(sorted(tokens)),
        tokens=tuple(tokens),
        phonetics=tuple(phonetic_codes(tokens)),
    )


def edit_score(a: _Prepared, b: _Prepared) -> float:
    """Edit similarity of the normal forms, or of the sorted token forms if higher."""
    return max(
        edit_similarity(a.normalized, b.normalized),
        edit_similarity(a.sorted_tokens, b.sorted_tokens),
    )


def _blend(a: _Prepared, b: _Prepared) -> int:
    total = (
        edit_score(a, b) * WEIGHTS["edit"]
        + jaccard(a.tokens, b.tokens) * WEIGHTS["token"]
        + substring_score(a.normalized, b.normalized) * WEIGHTS["substring"]
        + jaccard(a.phonetics, b.phonetics) * WEIGHTS["phonetic"]
    )
    # Half-up rounding, matching how scores are displayed elsewhere.
    return int(total * 100 + 0.5)


def similarity_score(a: str, b: str) -> int:
    """Blended 0-100 similarity between two labels (100 for equal normal forms)."""
    prepared_a, prepared_b = _prepare(a), _prepare(b)
    if prepared_a.normalized == prepared_b.normalized:
        return 100
    return _blend(prepared_a, prepared_b)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def suggest(
    adhoc_name: str,
    catalog: Sequence[CatalogEntry | Mapping | str],
) -> list[IndustrySuggestion]:
    """Return up to three catalog entries resembling *adhoc_name*.

    An entry whose normal form equals the ad-hoc name short-circuits the
    search and is returned alone with score 100.  Otherwise every entry is
    scored and those at or above :data:`MIN_SCORE` are returned best-first.
    """
    if not adhoc_name or not adhoc_name.strip():
        return []

    entries = [as_catalog_entry(item) for item in catalog]
    adhoc = _prepare(adhoc_name)

    prepared = [(entry, _prepare(entry.name)) for entry in entries]
    for entry, candidate in prepared:
        if candidate.normalized == adhoc.normalized:
            return [IndustrySuggestion(id=entry.id, name=entry.name, score=100)]

    results = []
    for entry, candidate in prepared:
        score = _blend(adhoc, candidate)
        if score >= MIN_SCORE:
            results.append(IndustrySuggestion(id=entry.id, name=entry.name, score=score))

    results.sort(key=lambda s: s.score, reverse=True)
    return results[:MAX_SUGGESTIONS]


def suggest_batch(
    adhoc_names: Iterable[str],
    catalog: Sequence[CatalogEntry | Mapping | str],
) -> dict[str, list[IndustrySuggestion]]:
    """Run :func:`suggest` for each name against one shared catalog snapshot."""
    snapshot = tuple(as_catalog_entry(item) for item in catalog)
    return {name: suggest(name, snapshot) for name in adhoc_names}
