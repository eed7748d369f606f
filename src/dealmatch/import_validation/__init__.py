"""Bulk import validation: catalog resolution, field rules and project codes."""

from __future__ import annotations

from dealmatch.import_validation.catalogs import (
    INVESTOR_COLUMNS,
    TARGET_COLUMNS,
    ColumnDefinition,
    Country,
    ReferenceData,
    columns_for,
)
from dealmatch.import_validation.store import (
    load_reference_data,
    make_code_lookup,
    project_code_exists,
)
from dealmatch.import_validation.validator import (
    FieldError,
    RowResult,
    ValidationReport,
    parse_comma_separated,
    sanitize_value,
    validate_all_rows,
    validate_project_code,
    validate_row,
)

__all__ = [
    "INVESTOR_COLUMNS",
    "TARGET_COLUMNS",
    "ColumnDefinition",
    "Country",
    "FieldError",
    "ReferenceData",
    "RowResult",
    "ValidationReport",
    "columns_for",
    "load_reference_data",
    "make_code_lookup",
    "parse_comma_separated",
    "project_code_exists",
    "sanitize_value",
    "validate_all_rows",
    "validate_project_code",
    "validate_row",
]
