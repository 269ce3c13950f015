"""Bayesian regression handles and the per-table fit function.

``fit_bayes`` runs NUTS on one table and wraps the draws in a
``BayesFittedModel`` whose posterior variables are named after the model's
coefficients (``Intercept``, ``time``, ``time:male`` ...) plus ``sigma``.

Estimator policy for derived statistics: whenever a per-draw distribution
exists, the posterior median is reported. This applies to Bayesian
R-squared (often skewed near the [0, 1] bounds) and to the residual
variance, whose median is the square of sigma's median.
"""

from __future__ import annotations

import logging

import arviz as az
import jax.numpy as jnp
import numpy as np
import pandas as pd

from alda_eda.models.base import CoefficientEstimate, FitFn, FittedModel
from alda_eda.models.bayes.diagnostics import ConvergenceDiagnostics, check_convergence
from alda_eda.models.bayes.fit import FitResult, MCMCConfig, fit_model
from alda_eda.models.bayes.model import linear_regression_model
from alda_eda.models.bayes.priors import PriorConfig, get_default_priors, resolve_prior_scales
from alda_eda.models.formula import ModelSpec, build_design_matrix
from alda_eda.pipelines.errors import ConvergenceError, InsufficientData, ModelFitFailure

__all__ = [
    "BayesFittedModel",
    "bayesian_r2_draws",
    "fit_bayes",
    "make_bayes_fitter",
]

logger = logging.getLogger(__name__)

SIGMA = "sigma"


def bayesian_r2_draws(mu: np.ndarray, sigma: np.ndarray) -> np.ndarray:
    """Per-draw Bayesian R-squared (Gelman, Goodrich, Gabry & Vehtari 2019).

    Parameters
    ----------
    mu : np.ndarray
        Linear predictor draws, shape (..., n_obs).
    sigma : np.ndarray
        Residual sd draws, shape (...).

    Returns
    -------
    np.ndarray
        ``var(mu) / (var(mu) + sigma^2)`` per draw, in [0, 1].
    """
    var_fit = np.var(mu, axis=-1, ddof=1)
    var_res = np.square(sigma)
    return var_fit / (var_fit + var_res)


class BayesFittedModel(FittedModel):
    """Posterior draws of a linear regression.

    Attributes:
        idata: InferenceData with one posterior variable per coefficient
            plus ``sigma``, shaped (chain, draw).
        diagnostics: Convergence summary of the run.
        runtime_seconds: Sampling wall-clock time.
    """

    kind = "bayes"

    def __init__(
        self,
        spec: ModelSpec,
        idata: az.InferenceData,
        r2_samples: np.ndarray,
        n_obs: int,
        diagnostics: ConvergenceDiagnostics,
        runtime_seconds: float = 0.0,
        hdi_prob: float = 0.94,
    ) -> None:
        super().__init__(spec, n_obs)
        self.idata = idata
        self._r2_samples = r2_samples
        self.diagnostics = diagnostics
        self.runtime_seconds = runtime_seconds
        self.hdi_prob = hdi_prob

    @classmethod
    def from_fit(
        cls,
        result: FitResult,
        spec: ModelSpec,
        n_obs: int,
        hdi_prob: float = 0.94,
    ) -> BayesFittedModel:
        """Rename raw sampler sites to coefficient names.

        Raises:
            ModelFitFailure: If any draw is non-finite.
        """
        posterior = result.idata.posterior
        names = spec.coefficient_names
        named = {names[0]: np.asarray(posterior["Intercept"].values)}
        if len(names) > 1:
            beta = np.asarray(posterior["beta"].values)
            for j, name in enumerate(names[1:]):
                named[name] = beta[..., j]
        sigma = np.asarray(posterior[SIGMA].values)
        named[SIGMA] = sigma

        if not all(np.isfinite(v).all() for v in named.values()):
            raise ModelFitFailure(f"Non-finite posterior draws for '{spec.describe()}'")

        r2 = bayesian_r2_draws(np.asarray(posterior["mu"].values), sigma)

        sample_stats = {}
        if "sample_stats" in result.idata.groups() and "diverging" in result.idata.sample_stats:
            sample_stats["diverging"] = np.asarray(result.idata.sample_stats["diverging"].values)
        idata = az.from_dict(posterior=named, sample_stats=sample_stats or None)
        diagnostics = check_convergence(idata, var_names=[*names, SIGMA])

        return cls(
            spec,
            idata,
            r2,
            n_obs,
            diagnostics,
            runtime_seconds=result.runtime_seconds,
            hdi_prob=hdi_prob,
        )

    def _draws(self, name: str) -> np.ndarray:
        return np.asarray(self.idata.posterior[name].values).ravel()

    def coefficient(self, name: str) -> CoefficientEstimate:
        self._index_of(name)
        draws = self._draws(name)
        return CoefficientEstimate(float(draws.mean()), float(draws.std(ddof=1)))

    def coefficient_draws(self, name: str) -> np.ndarray:
        self._index_of(name)
        return self._draws(name)

    def point_coefficients(self) -> np.ndarray:
        return np.array([self._draws(name).mean() for name in self.coefficient_names])

    def r2_draws(self) -> np.ndarray:
        return self._r2_samples.ravel()

    def r2(self) -> float:
        return float(np.clip(np.median(self.r2_draws()), 0.0, 1.0))

    def residual_variance(self) -> float:
        return float(np.median(np.square(self._draws(SIGMA))))

    def summary_text(self) -> str:
        table = az.summary(
            self.idata,
            var_names=[*self.coefficient_names, SIGMA],
            kind="stats",
            hdi_prob=self.hdi_prob,
            round_to=4,
        )
        lines = [
            f"Bayesian linear regression: {self.spec.describe()}",
            f"n = {self.n_obs}, draws = {self.r2_draws().size}, {self.diagnostics!r}",
            table.to_string(),
            f"Residual variance (median sigma^2): {self.residual_variance():.4f}",
            f"Bayesian R-squared (median): {self.r2():.4f}",
        ]
        return "\n".join(lines)


def fit_bayes(
    df: pd.DataFrame,
    spec: ModelSpec,
    config: MCMCConfig | None = None,
    priors: PriorConfig | None = None,
    min_observations: int | None = None,
    allow_divergences: bool = True,
    hdi_prob: float = 0.94,
) -> BayesFittedModel:
    """Fit ``spec`` to ``df`` with NUTS.

    Args:
        df: Table holding the response and predictor columns.
        spec: Model specification.
        config: MCMC settings (defaults to MCMCConfig()).
        priors: Prior hyperparameters (defaults to get_default_priors()).
        min_observations: Minimum complete rows; defaults to the number of
            coefficients plus one so that a residual scale is identified.
        allow_divergences: If False, any divergent transition raises
            ConvergenceError.
        hdi_prob: Interval mass used by summaries.

    Raises:
        InsufficientData: Too few complete rows.
        ConvergenceError: Divergences with ``allow_divergences=False``.
        ModelFitFailure: Non-finite draws.
    """
    config = config or MCMCConfig()
    priors = priors or get_default_priors()
    design = build_design_matrix(df, spec)
    needed = min_observations if min_observations is not None else spec.n_coefficients + 1
    if design.n_obs < needed:
        raise InsufficientData(design.n_obs, needed)

    scales = resolve_prior_scales(design.X, design.y, priors)
    model_args = {
        "X": jnp.asarray(design.X),
        "intercept_loc": scales.intercept_loc,
        "intercept_scale": scales.intercept_scale,
        "beta_scale": jnp.asarray(scales.beta_scale),
        "sigma_scale": scales.sigma_scale,
        "y": jnp.asarray(design.y),
    }
    result = fit_model(linear_regression_model, model_args, config=config)
    handle = BayesFittedModel.from_fit(result, spec, design.n_obs, hdi_prob=hdi_prob)

    if not allow_divergences and handle.diagnostics.divergences > 0:
        raise ConvergenceError(
            f"{handle.diagnostics.divergences} divergent transitions for '{spec.describe()}'"
        )
    if not handle.diagnostics.passed:
        logger.warning(f"Convergence check failed for '{spec.describe()}': {handle.diagnostics!r}")
    return handle


def make_bayes_fitter(
    spec: ModelSpec,
    config: MCMCConfig | None = None,
    priors: PriorConfig | None = None,
    **kwargs,
) -> FitFn:
    """Bind a specification and sampler settings into a fit function."""

    def fit_fn(rows: pd.DataFrame) -> BayesFittedModel:
        return fit_bayes(rows, spec, config=config, priors=priors, **kwargs)

    return fit_fn
