"""Prior configuration for the Bayesian linear regression.

Prior roles:
- Intercept: Normal centered on the response mean
- Slopes: independent zero-centered Normals, one per design column
- sigma: HalfNormal on the residual scale

With ``autoscale`` enabled the scales are multiplied by the sample standard
deviation of the response (and divided by each predictor's standard
deviation for the slopes), so the same defaults are weakly informative
whatever the measurement units. This matches the default behaviour of
common applied-regression packages.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class PriorConfig:
    """Hyperparameters for the regression priors.

    Attributes:
        intercept_scale: Scale of the Normal prior on the intercept.
        beta_scale: Scale of the Normal priors on slopes.
        sigma_scale: Scale of the HalfNormal prior on the residual sd.
        autoscale: Rescale by response/predictor standard deviations.
    """

    intercept_scale: float = 2.5
    beta_scale: float = 2.5
    sigma_scale: float = 1.0
    autoscale: bool = True


def get_default_priors() -> PriorConfig:
    """Return default prior configuration.

    Example:
        >>> get_default_priors().beta_scale
        2.5
    """
    return PriorConfig()


@dataclass(frozen=True)
class PriorScales:
    """Concrete prior parameters for one design matrix."""

    intercept_loc: float
    intercept_scale: float
    beta_scale: np.ndarray
    sigma_scale: float


def _safe_sd(values: np.ndarray) -> float:
    sd = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
    return sd if np.isfinite(sd) and sd > 0 else 1.0


def resolve_prior_scales(X: np.ndarray, y: np.ndarray, priors: PriorConfig) -> PriorScales:
    """Turn a PriorConfig into numeric scales for ``X`` (intercept first) and ``y``."""
    n_slopes = X.shape[1] - 1
    if not priors.autoscale:
        return PriorScales(
            intercept_loc=0.0,
            intercept_scale=priors.intercept_scale,
            beta_scale=np.full(n_slopes, priors.beta_scale),
            sigma_scale=priors.sigma_scale,
        )

    sd_y = _safe_sd(y)
    sd_x = np.array([_safe_sd(X[:, j]) for j in range(1, X.shape[1])])
    return PriorScales(
        intercept_loc=float(np.mean(y)) if y.size else 0.0,
        intercept_scale=priors.intercept_scale * sd_y,
        beta_scale=priors.beta_scale * sd_y / sd_x if n_slopes else np.zeros(0),
        sigma_scale=priors.sigma_scale * sd_y,
    )
