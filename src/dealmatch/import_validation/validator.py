"""Row validation for bulk investor/target imports.

Each row is checked field-by-field against the entity type's column
definitions, catalog values are resolved with the fuzzy resolver, and the
project code is checked for grammar, type letter, country prefix and
uniqueness.  A batch post-pass flags project codes repeated within the
same file.

Nothing here raises on bad data: every problem becomes a
:class:`FieldError` on its row and the batch always completes.
"""

from __future__ import annotations

import math
import re
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from dealmatch.import_validation.catalogs import (
    FLEXIBLE_FIELDS,
    PROJECT_CODE_FIELD,
    ColumnDefinition,
    ReferenceData,
    columns_for,
)
from dealmatch.similarity.industry import IndustrySuggestion, suggest_batch
from dealmatch.similarity.resolver import resolve

logger = structlog.get_logger(__name__)

BLANK_VALUES: frozenset[str] = frozenset({"", "n/a", "na", "-", "null", "undefined"})

PROJECT_CODE_PATTERN = re.compile(r"^[A-Z]{2}-[BS]-\d{1,5}$")
DUPLICATE_IN_FILE = "Duplicate in file"

_TYPE_LETTER = {"investor": "B", "target": "S"}
_TYPE_LABEL = {"investor": "Investor (B = Buyer)", "target": "Target (S = Seller)"}
_LETTER_OWNER = {"B": "Investor (Buyer)", "S": "Target (Seller)"}
_NUMBER_CHARS = re.compile(r"[^0-9+\-.]")

CodeLookup = Callable[[str], bool]


@dataclass
class FieldError:
    """A single field-level problem on one row."""

    field: str
    label: str
    value: Any
    message: str
    suggestions: list[str] = field(default_factory=list)


@dataclass
class RowResult:
    """Validation outcome for one import row."""

    row_index: int
    status: str  # "valid" | "error"
    data: dict[str, Any]
    errors: list[FieldError] = field(default_factory=list)
    adhoc: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "status": self.status,
            "data": self.data,
            "errors": [asdict(e) for e in self.errors],
            "adhoc": self.adhoc,
        }


@dataclass
class ValidationReport:
    """Validation outcome for a whole import batch."""

    summary: dict[str, int]
    rows: list[RowResult]
    columns: list[dict[str, Any]]
    adhoc_industries: dict[str, list[IndustrySuggestion]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": dict(self.summary),
            "rows": [r.to_dict() for r in self.rows],
            "columns": self.columns,
            "adhoc_industries": {
                name: [asdict(s) for s in suggestions]
                for name, suggestions in self.adhoc_industries.items()
            },
        }


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def sanitize_value(value: Any) -> str | None:
    """Trim a raw cell; placeholders such as ``N/A`` or ``-`` become ``None``."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    trimmed = str(value).strip()
    if trimmed.lower() in BLANK_VALUES:
        return None
    return trimmed


def parse_comma_separated(value: str | None) -> list[str]:
    """Split on ``,`` or ``;``, trim each item and drop empties."""
    if value is None or not value.strip():
        return []
    return [item.strip() for item in re.split(r"[,;]", value) if item.strip()]


def parse_number(value: str) -> float | None:
    """Strip everything but digits, sign and decimal point, then parse."""
    cleaned = _NUMBER_CHARS.sub("", value)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------

def _error(col: ColumnDefinition, value: Any, message: str, suggestions=None) -> FieldError:
    return FieldError(
        field=col.key,
        label=col.label,
        value=value,
        message=message,
        suggestions=list(suggestions or []),
    )


def _validate_dropdown(col, raw, reference, data, errors) -> None:
    result = resolve(raw, reference.options(col.options or ""))
    if result.matched is not None:
        data[col.key] = result.matched
    else:
        errors.append(_error(col, raw, f"'{raw}' not found in system", result.suggestions))


def _validate_comma_separated(col, raw, reference, data, errors, adhoc) -> None:
    items = parse_comma_separated(raw)
    if not col.match_against:
        return

    options = reference.options(col.match_against)
    flexible = col.key in FLEXIBLE_FIELDS
    accepted: list[str] = []
    unresolved: list[str] = []
    suggestions: list[str] = []

    for item in items:
        result = resolve(item, options)
        if result.matched is not None:
            accepted.append(result.matched)
        elif flexible:
            accepted.append(item)
            adhoc.setdefault(col.key, []).append(item)
        else:
            unresolved.append(item)
            suggestions.extend(s for s in result.suggestions if s not in suggestions)

    data[col.key] = ", ".join(accepted)

    if unresolved:
        names = ", ".join(unresolved)
        errors.append(_error(col, names, f"Unrecognized: {names}", suggestions))


def _validate_number(col, raw, data, errors) -> None:
    number = parse_number(raw)
    if number is None:
        errors.append(_error(col, raw, f"'{raw}' is not a valid number"))
    else:
        data[col.key] = number


def _project_code_error(code: str, message: str, suggestions=None) -> FieldError:
    return FieldError(
        field=PROJECT_CODE_FIELD,
        label="Project Code",
        value=code,
        message=message,
        suggestions=list(suggestions or []),
    )


def validate_project_code(
    code: str,
    entity_type: str,
    origin_country: str | None,
    reference: ReferenceData,
    code_exists: CodeLookup | None = None,
) -> list[FieldError]:
    """Check a project code (already upper-cased) for one row.

    Order of checks: ``XX-B-NNN`` / ``XX-S-NNN`` grammar, type letter
    matching *entity_type*, alpha-2 prefix matching the origin country
    (regions exempt), and finally uniqueness against the stored codes.
    """
    letter = _TYPE_LETTER[entity_type]

    if not PROJECT_CODE_PATTERN.match(code):
        return [_project_code_error(
            code,
            f"Invalid format. Expected: XX-{letter}-NNN (e.g., JP-{letter}-001).",
        )]

    errors: list[FieldError] = []
    alpha2, code_letter, number = code.split("-")

    if code_letter != letter:
        fixed = f"{alpha2}-{letter}-{number}"
        errors.append(_project_code_error(
            code,
            f"Type mismatch: '{code_letter}' is for {_LETTER_OWNER[code_letter]}, "
            f"but you are importing {_TYPE_LABEL[entity_type]}. "
            f"The code must use '{letter}' (e.g., {fixed}).",
            [fixed],
        ))

    country = reference.country_by_name(origin_country) if origin_country else None
    if country is not None and country.alpha_2_code and not country.is_region:
        expected = country.alpha_2_code.upper()
        if alpha2 != expected:
            owner = reference.country_by_alpha2(alpha2)
            owner_name = owner.name if owner else "unknown country"
            fixed = f"{expected}-{letter}-{number}"
            errors.append(_project_code_error(
                code,
                f"Country code mismatch: '{alpha2}' refers to {owner_name}, "
                f"but Origin Country is '{origin_country}' ({expected}). "
                f"The code should start with '{expected}' (e.g., {fixed}).",
                [fixed],
            ))

    if code_exists is not None and code_exists(code):
        errors.append(_project_code_error(
            code,
            f"Duplicate: Project code '{code}' already exists in the system. "
            "Please use a different number.",
        ))

    return errors


def validate_row(
    row: Mapping[str, Any],
    entity_type: str,
    row_index: int,
    reference: ReferenceData,
    *,
    code_exists: CodeLookup | None = None,
) -> RowResult:
    """Validate one import row against the column definitions of *entity_type*."""
    columns = columns_for(entity_type)

    data: dict[str, Any] = {}
    errors: list[FieldError] = []
    adhoc: dict[str, list[str]] = {}

    for col in columns:
        raw = sanitize_value(row.get(col.key))
        data[col.key] = raw

        if raw is None:
            if col.required:
                errors.append(_error(col, raw, f"{col.label} is required"))
            continue

        if col.type == "dropdown":
            _validate_dropdown(col, raw, reference, data, errors)
        elif col.type == "comma_separated":
            _validate_comma_separated(col, raw, reference, data, errors, adhoc)
        elif col.type == "number":
            _validate_number(col, raw, data, errors)
        elif col.type != "text":
            raise ValueError(f"Unknown column type: {col.type!r}")

    code = data.get(PROJECT_CODE_FIELD)
    if code:
        code = code.strip().upper()
        data[PROJECT_CODE_FIELD] = code
        errors.extend(validate_project_code(
            code,
            entity_type,
            data.get("origin_country"),
            reference,
            code_exists,
        ))

    return RowResult(
        row_index=row_index,
        status="error" if errors else "valid",
        data=data,
        errors=errors,
        adhoc=adhoc,
    )


# ---------------------------------------------------------------------------
# Batch validation
# ---------------------------------------------------------------------------

def flag_duplicate_codes(results: Sequence[RowResult], summary: dict[str, int]) -> None:
    """Append a "duplicate in file" error to every row sharing a project code.

    Rows flipped from valid to error adjust *summary* in place.  Rows that
    already carry the error are left alone, so the pass is idempotent.
    """
    by_code: dict[str, list[RowResult]] = defaultdict(list)
    for result in results:
        code = result.data.get(PROJECT_CODE_FIELD)
        if code:
            by_code[str(code).upper()].append(result)

    for code, sharing in by_code.items():
        if len(sharing) < 2:
            continue
        row_numbers = [r.row_index for r in sharing]
        for result in sharing:
            if any(
                e.field == PROJECT_CODE_FIELD and e.message.startswith(DUPLICATE_IN_FILE)
                for e in result.errors
            ):
                continue
            others = ", ".join(str(n) for n in row_numbers if n != result.row_index)
            result.errors.append(_project_code_error(
                code,
                f"{DUPLICATE_IN_FILE}: Project code '{code}' also appears in row(s) "
                f"{others}. Each project code must be unique.",
            ))
            if result.status == "valid":
                result.status = "error"
                summary["valid"] -= 1
                summary["errors"] += 1


def _collect_adhoc(results: Iterable[RowResult]) -> list[str]:
    seen: dict[str, None] = {}
    for result in results:
        for labels in result.adhoc.values():
            for label in labels:
                seen.setdefault(label, None)
    return list(seen)


def validate_all_rows(
    rows: Sequence[Mapping[str, Any]],
    entity_type: str,
    reference: ReferenceData,
    *,
    code_exists: CodeLookup | None = None,
    first_row: int = 2,
) -> ValidationReport:
    """Validate a parsed import file.

    Parameters
    ----------
    rows:
        Column-key to raw-cell mappings, in file order.
    entity_type:
        ``investor`` or ``target``.
    reference:
        Catalog snapshot used for every row of the batch.
    code_exists:
        Optional lookup telling whether a project code is already stored.
    first_row:
        Row number reported for the first data row (row 1 is the header).

    Returns
    -------
    ValidationReport
        Summary counters, per-row results, the column definitions used
        and suggestions for every ad-hoc industry label that passed
        through unresolved.
    """
    columns = columns_for(entity_type)
    summary = {"total": len(rows), "valid": 0, "errors": 0}
    results: list[RowResult] = []

    for offset, row in enumerate(rows):
        result = validate_row(
            row, entity_type, offset + first_row, reference, code_exists=code_exists,
        )
        summary["valid" if result.status == "valid" else "errors"] += 1
        results.append(result)

    flag_duplicate_codes(results, summary)

    adhoc_names = _collect_adhoc(results)
    adhoc_industries = suggest_batch(adhoc_names, reference.industries) if adhoc_names else {}

    logger.info(
        "import_validated",
        entity_type=entity_type,
        adhoc_industries=len(adhoc_industries),
        **summary,
    )

    return ValidationReport(
        summary=summary,
        rows=results,
        columns=[c.to_dict() for c in columns],
        adhoc_industries=adhoc_industries,
    )
