"""Ordinary least squares fits.

Used for the exploratory per-entity trajectories and as a fast, exact
stand-in for the Bayesian fitter in tests. Standard errors use the usual
``sigma^2 (X'X)^-1`` covariance with ``sigma^2 = RSS / (n - p)``.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from alda_eda.models.base import CoefficientEstimate, FitFn, FittedModel
from alda_eda.models.formula import ModelSpec, build_design_matrix
from alda_eda.pipelines.errors import InsufficientData, ModelFitFailure

__all__ = [
    "OLSFittedModel",
    "fit_ols",
    "make_ols_fitter",
]

logger = logging.getLogger(__name__)


class OLSFittedModel(FittedModel):
    """Least-squares fit with classical standard errors."""

    kind = "ols"

    def __init__(
        self,
        spec: ModelSpec,
        coefficients: np.ndarray,
        std_errors: np.ndarray,
        rss: float,
        tss: float,
        n_obs: int,
    ) -> None:
        super().__init__(spec, n_obs)
        self.coefficients = coefficients
        self.std_errors = std_errors
        self.rss = rss
        self.tss = tss

    @property
    def df_resid(self) -> int:
        return self.n_obs - self.spec.n_coefficients

    def coefficient(self, name: str) -> CoefficientEstimate:
        i = self._index_of(name)
        return CoefficientEstimate(float(self.coefficients[i]), float(self.std_errors[i]))

    def point_coefficients(self) -> np.ndarray:
        return self.coefficients

    def r2(self) -> float:
        # A constant outcome leaves nothing to explain
        if self.tss <= 0:
            return 0.0
        return float(np.clip(1.0 - self.rss / self.tss, 0.0, 1.0))

    def residual_variance(self) -> float:
        return max(self.rss / self.df_resid, 0.0)

    def summary_text(self) -> str:
        table = pd.DataFrame(
            {"Estimate": self.coefficients, "Std. Error": self.std_errors},
            index=self.coefficient_names,
        )
        lines = [
            f"OLS: {self.spec.describe()}",
            f"n = {self.n_obs}, residual df = {self.df_resid}",
            table.to_string(float_format=lambda v: f"{v:.4f}"),
            f"Residual variance: {self.residual_variance():.4f}",
            f"R-squared: {self.r2():.4f}",
        ]
        return "\n".join(lines)


def fit_ols(df: pd.DataFrame, spec: ModelSpec) -> OLSFittedModel:
    """Fit ``spec`` to ``df`` by least squares.

    Raises:
        InsufficientData: Fewer than ``p + 1`` complete rows (no residual df).
        ModelFitFailure: Rank-deficient design (e.g. a predictor constant
            within the table).
    """
    design = build_design_matrix(df, spec)
    n, p = design.X.shape
    if n < p + 1:
        raise InsufficientData(n, p + 1)

    coefficients, _, rank, _ = np.linalg.lstsq(design.X, design.y, rcond=None)
    if rank < p:
        raise ModelFitFailure(
            f"Design matrix for '{spec.describe()}' is rank deficient (rank {rank} < {p})"
        )

    residuals = design.y - design.X @ coefficients
    rss = float(residuals @ residuals)
    tss = float(((design.y - design.y.mean()) ** 2).sum())
    sigma2 = rss / (n - p)
    cov = sigma2 * np.linalg.inv(design.X.T @ design.X)
    std_errors = np.sqrt(np.clip(np.diag(cov), 0.0, None))

    logger.debug(f"OLS fit {spec.describe()}: n={n}, rss={rss:.4f}")
    return OLSFittedModel(spec, coefficients, std_errors, rss, tss, n)


def make_ols_fitter(spec: ModelSpec) -> FitFn:
    """Bind a specification into a table -> handle fit function."""

    def fit_fn(rows: pd.DataFrame) -> OLSFittedModel:
        return fit_ols(rows, spec)

    return fit_fn
