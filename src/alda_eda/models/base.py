"""Common interface for fitted regression models.

Per-entity and pooled fits are consumed through ``FittedModel`` regardless of
whether they came from MCMC or least squares, so the summary code never needs
to know which fitter produced a handle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import pandas as pd

from alda_eda.models.formula import ModelSpec, build_design_matrix
from alda_eda.pipelines.errors import UnknownCoefficient

__all__ = [
    "CoefficientEstimate",
    "FitFn",
    "FittedModel",
]


@dataclass(frozen=True)
class CoefficientEstimate:
    """Point estimate with a measure of spread.

    Attributes:
        estimate: Posterior mean (Bayesian) or least-squares estimate (OLS).
        spread: Posterior standard deviation (Bayesian) or standard error (OLS).
    """

    estimate: float
    spread: float


class FittedModel(ABC):
    """A fitted linear model for one table.

    Subclasses store the coefficient vector in ``spec.coefficient_names``
    order and implement the estimator-specific queries.
    """

    kind: str = "model"

    def __init__(self, spec: ModelSpec, n_obs: int) -> None:
        self.spec = spec
        self.n_obs = n_obs

    @property
    def coefficient_names(self) -> list[str]:
        return self.spec.coefficient_names

    def _index_of(self, name: str) -> int:
        try:
            return self.coefficient_names.index(name)
        except ValueError:
            raise UnknownCoefficient(name, self.coefficient_names) from None

    @abstractmethod
    def coefficient(self, name: str) -> CoefficientEstimate:
        """Estimate and spread of one coefficient.

        Raises:
            UnknownCoefficient: If ``name`` is not in the model.
        """

    def coefficient_draws(self, name: str) -> np.ndarray | None:
        """Posterior draws of a coefficient, or None for point estimators."""
        self._index_of(name)
        return None

    @abstractmethod
    def point_coefficients(self) -> np.ndarray:
        """Coefficient vector used for prediction."""

    @abstractmethod
    def r2(self) -> float:
        """Goodness of fit in [0, 1]."""

    def r2_draws(self) -> np.ndarray | None:
        return None

    @abstractmethod
    def residual_variance(self) -> float:
        """Squared residual-scale estimate (non-negative)."""

    @abstractmethod
    def summary_text(self) -> str:
        """Human-readable fit summary."""

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Fitted values for the rows of ``df`` (NaN where a predictor is missing)."""
        out = np.full(len(df), np.nan)
        predictors = [c for c in self.spec.required_columns if c != self.spec.response]
        complete = df[predictors].notna().all(axis=1).to_numpy()
        if complete.any():
            design = build_design_matrix(df.loc[complete], self.spec, require_response=False)
            out[complete] = design.X @ self.point_coefficients()
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.spec.describe()!r}, n_obs={self.n_obs})"


FitFn = Callable[[pd.DataFrame], FittedModel]
