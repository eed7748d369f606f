"""Text normalisation, tokenisation and primitive string similarities.

Every function here is pure.  Two normalisation levels are used across
the package:

* :func:`normalize` -- the aggressive form used for similarity scoring
  (ASCII, lowercase, ``&`` spelled out, punctuation removed).
* :func:`fold` -- the light form used for catalog resolution
  (lowercase, typographic dashes replaced, nothing else removed) so that
  labels such as ``"Significant minority (25-49%)"`` keep their symbols.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import jellyfish
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein
from unidecode import unidecode

STOP_WORDS: frozenset[str] = frozenset(
    {"and", "&", "the", "of", "for", "in", "on", "at", "to", "a", "an"}
)

_DASHES = str.maketrans({"–": "-", "—": "-"})
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_dashes(text: str) -> str:
    """Replace en-dash and em-dash with an ASCII hyphen."""
    return text.translate(_DASHES)


def fold(text: str) -> str:
    """Trim, lowercase and dash-normalise *text* for catalog comparisons."""
    return normalize_dashes(text.strip()).lower()


def normalize(text: str) -> str:
    """Normalise a label for similarity scoring.

    Steps:
      1. Transliterate Unicode to ASCII (e.g. é -> e).
      2. Trim and lowercase.
      3. Replace ``&`` with ``and``.
      4. Remove everything outside ``[a-z0-9 ]``.
      5. Collapse whitespace.
    """
    text = unidecode(text).strip().lower()
    text = text.replace("&", "and")
    text = _NON_ALNUM.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> list[str]:
    """Split *text* into meaningful words, dropping stop words and 1-char tokens."""
    return [
        word
        for word in normalize(text).split(" ")
        if len(word) >= 2 and word not in STOP_WORDS
    ]


def phonetic_code(token: str) -> str:
    """Coarse Metaphone key for *token* (may be empty for digit-only tokens)."""
    if not token:
        return ""
    return jellyfish.metaphone(token)


def phonetic_codes(tokens: Iterable[str]) -> list[str]:
    """Metaphone keys of *tokens*, empty keys dropped."""
    return [code for code in (phonetic_code(t) for t in tokens) if code]


# ---------------------------------------------------------------------------
# Primitive similarities
# ---------------------------------------------------------------------------

def levenshtein(a: str, b: str) -> int:
    """Plain Levenshtein edit distance."""
    return Levenshtein.distance(a, b)


def edit_similarity(a: str, b: str) -> float:
    """``1 - levenshtein / max_len``; 1.0 when both strings are empty."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / max_len


def jaccard(a: Iterable, b: Iterable) -> float:
    """Set Jaccard similarity; 1.0 when both are empty, 0.0 when one is."""
    set_a, set_b = set(a), set(b)
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def text_similarity(a: str, b: str) -> float:
    """Normalised InDel similarity (0.0-1.0) between two free-text values.

    Used by the match scorer for loose label comparisons (industry
    fallback, timeline, company type, ownership text).  Both inputs go
    through :func:`normalize` first.
    """
    norm_a, norm_b = normalize(a), normalize(b)
    if not norm_a and not norm_b:
        return 1.0
    return fuzz.ratio(norm_a, norm_b) / 100.0
