"""Text normalisation, catalog resolution and industry similarity scoring."""

from __future__ import annotations

from dealmatch.similarity.industry import (
    CatalogEntry,
    IndustrySuggestion,
    similarity_score,
    suggest,
    suggest_batch,
)
from dealmatch.similarity.resolver import REGION_ALIASES, ResolveResult, resolve
from dealmatch.similarity.text import (
    normalize,
    normalize_dashes,
    phonetic_code,
    text_similarity,
    tokenize,
)

__all__ = [
    "CatalogEntry",
    "IndustrySuggestion",
    "REGION_ALIASES",
    "ResolveResult",
    "normalize",
    "normalize_dashes",
    "phonetic_code",
    "resolve",
    "similarity_score",
    "suggest",
    "suggest_batch",
    "text_similarity",
    "tokenize",
]
