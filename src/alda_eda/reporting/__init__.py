"""Reporting module for per-entity summaries and coefficient tables.

- summary: Coefficient and derived-statistic extraction, one row per entity
- tables: Coefficient tables with intervals, CSV/LaTeX export
"""

from alda_eda.reporting.summary import (
    DERIVED_STATISTICS,
    build_summary_table,
    extract_coefficients,
    extract_derived,
    fitted_trajectories,
    summary_statistics,
)
from alda_eda.reporting.tables import (
    COEFFICIENT_COLUMNS,
    create_coefficient_table,
    export_table,
)

__all__ = [
    # Summary
    "DERIVED_STATISTICS",
    "build_summary_table",
    "extract_coefficients",
    "extract_derived",
    "fitted_trajectories",
    "summary_statistics",
    # Tables
    "COEFFICIENT_COLUMNS",
    "create_coefficient_table",
    "export_table",
]
