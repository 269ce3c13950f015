"""Descriptive statistics for person-level and person-period tables.

These are the exploratory tables that precede any model fitting: wave
means and spreads, the between-wave correlation matrix of the person-level
table, and per-entity summaries of the person-period table.
"""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd

__all__ = [
    "describe_by_time",
    "describe_entities",
    "wave_correlations",
]


def describe_by_time(
    long: pd.DataFrame,
    time_column: str,
    value_column: str,
) -> pd.DataFrame:
    """Per-time summary of the outcome.

    Returns:
        DataFrame indexed by time with columns n, mean, sd, min, max.
        ``sd`` is the sample standard deviation (ddof=1).
    """
    grouped = long.groupby(time_column, sort=True)[value_column]
    return pd.DataFrame(
        {
            "n": grouped.count(),
            "mean": grouped.mean(),
            "sd": grouped.std(ddof=1),
            "min": grouped.min(),
            "max": grouped.max(),
        }
    )


def describe_entities(
    long: pd.DataFrame,
    id_column: str,
    value_column: str,
) -> pd.DataFrame:
    """Per-entity count, mean and sample standard deviation of the outcome."""
    grouped = long.groupby(id_column, sort=True)[value_column]
    return pd.DataFrame(
        {
            "n": grouped.count(),
            "mean": grouped.mean(),
            "sd": grouped.std(ddof=1),
        }
    )


def wave_correlations(
    wide: pd.DataFrame,
    value_columns: Sequence[str],
    decimals: int | None = 2,
) -> pd.DataFrame:
    """Pearson correlation matrix between waves of a person-level table.

    Pairwise-complete observations are used, so entities missing a wave
    still contribute to the other cells.

    Args:
        wide: Person-level table.
        value_columns: Wave columns, in the order they should appear.
        decimals: Round to this many places (None keeps full precision).
    """
    corr = wide[list(value_columns)].astype(float).corr(method="pearson")
    if decimals is not None:
        corr = corr.round(decimals)
    return corr
