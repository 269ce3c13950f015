"""Conversion between person-level (wide) and person-period (long) tables.

A person-level table has one row per entity and one value column per wave,
named by a prefix plus an integer time token (``tol11`` ... ``tol15``). The
person-period table has one row per (entity, time) pair. The two functions
here are mutual inverses up to column order:

    >>> long = to_long(wide, "id", ["male", "exposure"], "tol", time_base=11)
    >>> back = to_wide(long, "id", "time", "tol", "tol", time_base=11)

Entity order in both directions is first-appearance order of the input.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from alda_eda.pipelines.errors import (
    DataValidationError,
    DuplicateTimeForEntity,
    MalformedColumnName,
)

if TYPE_CHECKING:
    from alda_eda.config.schema import TableSchemaConfig

__all__ = [
    "ValueColumnPattern",
    "TableReshaper",
    "to_long",
    "to_wide",
]

_TIME_TOKEN = re.compile(r"\d+", re.ASCII)

# Scratch column used to keep first-appearance entity order through melt
_ROW_ORDER = "__row_order__"


@dataclass(frozen=True)
class ValueColumnPattern:
    """Naming scheme for wave columns: ``f"{prefix}{time}"``.

    Attributes:
        prefix: Literal prefix shared by every value column (e.g. "tol").
    """

    prefix: str

    def matches(self, column: str) -> bool:
        return isinstance(column, str) and column.startswith(self.prefix) and column != self.prefix

    def parse(self, column: str) -> int:
        """Extract the integer time token from a matching column name.

        Raises:
            MalformedColumnName: If the suffix is not a non-negative integer.
        """
        suffix = column[len(self.prefix):]
        if not _TIME_TOKEN.fullmatch(suffix):
            raise MalformedColumnName(column, self.prefix)
        return int(suffix)

    def format(self, time: int) -> str:
        return f"{self.prefix}{int(time)}"


def _as_pattern(pattern: str | ValueColumnPattern) -> ValueColumnPattern:
    if isinstance(pattern, ValueColumnPattern):
        return pattern
    if not pattern:
        raise ValueError("value column pattern needs a non-empty prefix")
    return ValueColumnPattern(prefix=pattern)


def _require_columns(df: pd.DataFrame, columns: Iterable[str], table: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataValidationError(
            f"{table} table is missing required columns: {missing}",
            stage="reshape",
        )


def to_long(
    wide: pd.DataFrame,
    id_column: str,
    fixed_columns: Sequence[str],
    value_column_pattern: str | ValueColumnPattern,
    time_column: str = "time",
    value_column: str | None = None,
    time_base: int = 0,
) -> pd.DataFrame:
    """Convert a person-level table into a person-period table.

    Every column (other than the id and fixed columns) whose name starts
    with the pattern prefix is treated as a wave. Columns that match
    neither role are dropped.

    Args:
        wide: One row per entity.
        id_column: Entity identifier column; must be unique and non-null.
        fixed_columns: Time-invariant covariates repeated on every long row.
        value_column_pattern: Prefix string or ValueColumnPattern.
        time_column: Name of the derived time column.
        value_column: Name of the outcome column (defaults to the prefix).
        time_base: Subtracted from the parsed time token, so ``tol11`` with
            ``time_base=11`` becomes time 0.

    Returns:
        Columns ``[id_column, time_column, *fixed_columns, value_column]``,
        rows ordered by entity (input order) then time.

    Raises:
        MalformedColumnName: A prefixed column has a non-integer suffix.
        DataValidationError: Missing columns, duplicate or null ids, no
            wave columns, two value columns parsing to the same time, or
            output names colliding with fixed columns.
    """
    pattern = _as_pattern(value_column_pattern)
    fixed = list(fixed_columns)
    value_column = value_column or pattern.prefix

    _require_columns(wide, [id_column, *fixed], "wide")
    if wide[id_column].isna().any():
        raise DataValidationError(f"Null values in id column '{id_column}'", stage="reshape")
    duplicated = wide[id_column][wide[id_column].duplicated()].unique().tolist()
    if duplicated:
        raise DataValidationError(
            f"Wide table must have one row per entity; repeated ids: {duplicated[:5]}",
            stage="reshape",
        )
    clashes = {time_column, value_column} & {id_column, *fixed}
    if clashes:
        raise DataValidationError(
            f"Long column names {sorted(clashes)} collide with id/fixed columns",
            stage="reshape",
        )

    reserved = {id_column, *fixed}
    wave_columns = [c for c in wide.columns if c not in reserved and pattern.matches(c)]
    if not wave_columns:
        raise DataValidationError(
            f"No value columns with prefix '{pattern.prefix}' in wide table",
            stage="reshape",
        )
    wave_times = {c: pattern.parse(c) for c in wave_columns}
    by_time: dict[int, list[str]] = {}
    for column, t in wave_times.items():
        by_time.setdefault(t, []).append(column)
    same_time = {t: cols for t, cols in by_time.items() if len(cols) > 1}
    if same_time:
        t, cols = next(iter(same_time.items()))
        raise DataValidationError(
            f"Value columns {cols} map to the same time {t}", stage="reshape"
        )

    frame = wide[[id_column, *fixed, *wave_columns]].copy()
    frame[_ROW_ORDER] = np.arange(len(frame))
    long = frame.melt(
        id_vars=[_ROW_ORDER, id_column, *fixed],
        value_vars=wave_columns,
        var_name="__wave__",
        value_name=value_column,
    )
    long[time_column] = long["__wave__"].map(wave_times).astype("int64") - time_base
    long = long.sort_values([_ROW_ORDER, time_column], kind="stable")

    return long[[id_column, time_column, *fixed, value_column]].reset_index(drop=True)


def _duplicate_pairs(long: pd.DataFrame, id_column: str, time_column: str) -> list[tuple[Any, Any]]:
    dup_mask = long.duplicated([id_column, time_column], keep="first")
    dups = long.loc[dup_mask, [id_column, time_column]].drop_duplicates()
    return list(dups.itertuples(index=False, name=None))


def to_wide(
    long: pd.DataFrame,
    id_column: str,
    time_column: str,
    value_column: str,
    value_column_pattern: str | ValueColumnPattern,
    time_base: int = 0,
    fixed_columns: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Convert a person-period table back into a person-level table.

    Args:
        long: One row per (entity, time).
        id_column: Entity identifier column.
        time_column: Integer time column.
        value_column: Outcome column spread into one column per time.
        value_column_pattern: Prefix string or ValueColumnPattern used to
            name the wave columns as ``pattern.format(time + time_base)``.
        time_base: Added back to each time value when naming columns.
        fixed_columns: Covariates carried back (first value per entity).
            Defaults to every column that is not id, time or value.

    Returns:
        Columns ``[id_column, *fixed_columns, <wave columns ascending>]``,
        one row per entity in first-appearance order. Entities missing a
        wave get NaN in that column.

    Raises:
        DuplicateTimeForEntity: An (id, time) pair appears more than once.
        DataValidationError: Required columns are missing.
    """
    pattern = _as_pattern(value_column_pattern)
    _require_columns(long, [id_column, time_column, value_column], "long")
    if fixed_columns is None:
        fixed = [c for c in long.columns if c not in (id_column, time_column, value_column)]
    else:
        fixed = list(fixed_columns)
        _require_columns(long, fixed, "long")

    pairs = _duplicate_pairs(long, id_column, time_column)
    if pairs:
        raise DuplicateTimeForEntity(pairs)

    entity_order = pd.unique(long[id_column])
    values = long.pivot(index=id_column, columns=time_column, values=value_column)
    values = values.reindex(index=entity_order)
    times = sorted(values.columns)
    values = values[times]
    values.columns = [pattern.format(int(t) + time_base) for t in times]

    if fixed:
        covariates = long.groupby(id_column, sort=False)[fixed].first().reindex(entity_order)
        wide = covariates.join(values)
    else:
        wide = values
    wide.index.name = id_column
    return wide.reset_index()


@dataclass(frozen=True)
class TableReshaper:
    """Reshaper bound to one table layout.

    Attributes:
        id_column: Entity identifier column.
        fixed_columns: Time-invariant covariates.
        pattern: Wave-column naming scheme.
        time_column: Long-format time column name.
        value_column: Long-format outcome column name (defaults to prefix).
        time_base: Offset subtracted from the wave-name time token.
    """

    id_column: str
    pattern: ValueColumnPattern
    fixed_columns: tuple[str, ...] = field(default_factory=tuple)
    time_column: str = "time"
    value_column: str | None = None
    time_base: int = 0

    @classmethod
    def from_config(cls, cfg: TableSchemaConfig) -> TableReshaper:
        return cls(
            id_column=cfg.id_column,
            pattern=ValueColumnPattern(cfg.value_prefix),
            fixed_columns=tuple(cfg.fixed_columns),
            time_column=cfg.time_column,
            value_column=cfg.long_value_column,
            time_base=cfg.time_base,
        )

    @property
    def outcome_column(self) -> str:
        return self.value_column or self.pattern.prefix

    def to_long(self, wide: pd.DataFrame) -> pd.DataFrame:
        return to_long(
            wide,
            self.id_column,
            self.fixed_columns,
            self.pattern,
            time_column=self.time_column,
            value_column=self.outcome_column,
            time_base=self.time_base,
        )

    def to_wide(self, long: pd.DataFrame) -> pd.DataFrame:
        return to_wide(
            long,
            self.id_column,
            self.time_column,
            self.outcome_column,
            self.pattern,
            time_base=self.time_base,
            fixed_columns=self.fixed_columns,
        )
