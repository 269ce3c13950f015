"""Bayesian linear regression via NumPyro and ArviZ."""

from alda_eda.models.bayes.diagnostics import ConvergenceDiagnostics, check_convergence
from alda_eda.models.bayes.fit import FitResult, MCMCConfig, fit_model, get_device_info
from alda_eda.models.bayes.model import linear_regression_model
from alda_eda.models.bayes.posterior import (
    BayesFittedModel,
    bayesian_r2_draws,
    fit_bayes,
    make_bayes_fitter,
)
from alda_eda.models.bayes.priors import PriorConfig, get_default_priors

__all__ = [
    # Priors
    "PriorConfig",
    "get_default_priors",
    # Model
    "linear_regression_model",
    # Fitting
    "fit_model",
    "MCMCConfig",
    "FitResult",
    "get_device_info",
    # Handles
    "BayesFittedModel",
    "bayesian_r2_draws",
    "fit_bayes",
    "make_bayes_fitter",
    # Diagnostics
    "ConvergenceDiagnostics",
    "check_convergence",
]
