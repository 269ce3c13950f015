"""Model specifications as plain data.

A regression is described by a response column, an ordered list of
predictor columns and a list of pairwise interactions. The design matrix
always starts with an ``Intercept`` column; an interaction between ``a``
and ``b`` becomes the product column ``a:b``.

    >>> spec = ModelSpec("tol", ("time",))
    >>> spec.coefficient_names
    ['Intercept', 'time']
    >>> ModelSpec("tol", ("time", "male"), (("time", "male"),)).coefficient_names
    ['Intercept', 'time', 'male', 'time:male']
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from alda_eda.pipelines.errors import DataValidationError

__all__ = [
    "INTERCEPT",
    "DesignMatrix",
    "ModelSpec",
    "build_design_matrix",
    "interaction_name",
]

INTERCEPT = "Intercept"


def interaction_name(a: str, b: str) -> str:
    return f"{a}:{b}"


@dataclass(frozen=True)
class ModelSpec:
    """Linear model specification.

    Attributes:
        response: Outcome column.
        predictors: Main-effect columns, in coefficient order.
        interactions: Pairs of columns whose product enters the model.
    """

    response: str
    predictors: tuple[str, ...] = ()
    interactions: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept lists from config and normalize to hashable tuples
        object.__setattr__(self, "predictors", tuple(self.predictors))
        object.__setattr__(
            self, "interactions", tuple((str(a), str(b)) for a, b in self.interactions)
        )
        if self.response in self.predictors:
            raise ValueError(f"Response '{self.response}' cannot also be a predictor")

    @property
    def coefficient_names(self) -> list[str]:
        return [
            INTERCEPT,
            *self.predictors,
            *(interaction_name(a, b) for a, b in self.interactions),
        ]

    @property
    def n_coefficients(self) -> int:
        return 1 + len(self.predictors) + len(self.interactions)

    @property
    def required_columns(self) -> list[str]:
        cols = [self.response, *self.predictors]
        for a, b in self.interactions:
            cols.extend([a, b])
        return list(dict.fromkeys(cols))

    def describe(self) -> str:
        """Render as an R-style formula string, for logs and summaries."""
        terms = [*self.predictors, *(interaction_name(a, b) for a, b in self.interactions)]
        return f"{self.response} ~ {' + '.join(terms) if terms else '1'}"


@dataclass(frozen=True)
class DesignMatrix:
    """Numeric arrays for one model fit.

    Attributes:
        X: Design matrix, shape (n_obs, n_coefficients), intercept first.
        y: Response vector, shape (n_obs,).
        columns: Coefficient names matching the columns of X.
        n_dropped: Rows dropped for missing values in used columns.
    """

    X: np.ndarray
    y: np.ndarray
    columns: list[str]
    n_dropped: int = 0

    @property
    def n_obs(self) -> int:
        return int(self.X.shape[0])


def _predictor_block(df: pd.DataFrame, spec: ModelSpec) -> np.ndarray:
    blocks = [np.ones(len(df))]
    for name in spec.predictors:
        blocks.append(df[name].to_numpy(dtype=float))
    for a, b in spec.interactions:
        blocks.append(df[a].to_numpy(dtype=float) * df[b].to_numpy(dtype=float))
    return np.column_stack(blocks)


def build_design_matrix(
    df: pd.DataFrame,
    spec: ModelSpec,
    require_response: bool = True,
) -> DesignMatrix:
    """Build X and y for a specification.

    Rows with a missing value in any used column are dropped.

    Args:
        df: Table holding the response and predictor columns.
        spec: Model specification.
        require_response: If False the response column may be absent (for
            prediction); y is then empty.

    Raises:
        DataValidationError: If a required column is missing or a used
            column is not numeric.
    """
    needed = spec.required_columns if require_response else [
        c for c in spec.required_columns if c != spec.response
    ]
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise DataValidationError(
            f"Columns {missing} required by '{spec.describe()}' are missing", stage="fit"
        )

    frame = df[needed]
    try:
        frame = frame.apply(pd.to_numeric)
    except (TypeError, ValueError) as e:
        raise DataValidationError(f"Non-numeric model column: {e}", stage="fit") from e

    complete = frame.dropna()
    X = _predictor_block(complete, spec)
    y = complete[spec.response].to_numpy(dtype=float) if require_response else np.empty(0)
    return DesignMatrix(
        X=X,
        y=y,
        columns=spec.coefficient_names,
        n_dropped=len(frame) - len(complete),
    )
