"""Schema validation for person-level input tables."""

from __future__ import annotations

import pandas as pd
import pandera.pandas as pa

from alda_eda.config.schema import TableSchemaConfig
from alda_eda.data.reshape import ValueColumnPattern
from alda_eda.pipelines.errors import DataValidationError


def value_columns(df: pd.DataFrame, cfg: TableSchemaConfig) -> list[str]:
    """Wave columns of a person-level table, in table order."""
    pattern = ValueColumnPattern(cfg.value_prefix)
    reserved = {cfg.id_column, *cfg.fixed_columns}
    return [c for c in df.columns if c not in reserved and pattern.matches(c)]


def build_person_level_schema(
    cfg: TableSchemaConfig,
    wave_columns: list[str],
) -> pa.DataFrameSchema:
    """Build the pandera schema for a person-level table.

    The id column must be unique and non-null; wave values must coerce to
    float (missing waves allowed). Fixed covariates only need to exist.
    """
    columns = {
        cfg.id_column: pa.Column(nullable=False, unique=True),
    }
    for name in cfg.fixed_columns:
        columns[name] = pa.Column(nullable=True)
    for name in wave_columns:
        columns[name] = pa.Column(float, nullable=True, coerce=True)

    return pa.DataFrameSchema(
        columns,
        strict=False,  # Allow unrelated extra columns
    )


def validate_person_level(df: pd.DataFrame, cfg: TableSchemaConfig) -> pd.DataFrame:
    """
    Validate a person-level DataFrame against the configured layout.

    Args:
        df: DataFrame loaded from the raw source
        cfg: Table layout (id column, fixed columns, value prefix)

    Returns:
        Validated DataFrame (wave columns coerced to float)

    Raises:
        DataValidationError: If columns are missing, ids repeat, or wave
            values are non-numeric. The message lists the first failures.
    """
    waves = value_columns(df, cfg)
    if not waves:
        raise DataValidationError(
            f"No wave columns with prefix '{cfg.value_prefix}'", stage="validate"
        )
    schema = build_person_level_schema(cfg, waves)
    try:
        return schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as e:
        cases = e.failure_cases
        preview = cases[["column", "check", "failure_case"]].head(10).to_dict("records")
        raise DataValidationError(
            f"{len(cases)} schema failures in person-level table: {preview}",
            stage="validate",
        ) from None
