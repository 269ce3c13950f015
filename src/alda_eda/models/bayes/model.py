"""NumPyro linear regression model.

    y_i ~ Normal(mu_i, sigma)
    mu_i = Intercept + X_i[1:] @ beta

    Intercept ~ Normal(intercept_loc, intercept_scale)
    beta_k ~ Normal(0, beta_scale_k)
    sigma ~ HalfNormal(sigma_scale)

The linear predictor is recorded as the deterministic site ``mu`` so that
Bayesian R-squared can be computed per draw after sampling.
"""

import jax.numpy as jnp
import numpyro
import numpyro.distributions as dist

__all__ = ["linear_regression_model"]


def linear_regression_model(
    X: jnp.ndarray,
    intercept_loc: float,
    intercept_scale: float,
    beta_scale: jnp.ndarray,
    sigma_scale: float,
    y: jnp.ndarray | None = None,
) -> None:
    """Linear regression with independent Normal coefficient priors.

    Parameters
    ----------
    X : jnp.ndarray
        Design matrix of shape (n_obs, p); column 0 is the intercept.
    intercept_loc, intercept_scale : float
        Normal prior parameters for the intercept.
    beta_scale : jnp.ndarray
        Prior scales for the p - 1 slopes.
    sigma_scale : float
        HalfNormal scale for the residual sd.
    y : jnp.ndarray, optional
        Observed response; None samples from the prior predictive.
    """
    intercept = numpyro.sample("Intercept", dist.Normal(intercept_loc, intercept_scale))
    mu = intercept * X[:, 0]
    if X.shape[1] > 1:
        beta = numpyro.sample(
            "beta",
            dist.Normal(jnp.zeros(X.shape[1] - 1), beta_scale).to_event(1),
        )
        mu = mu + X[:, 1:] @ beta
    mu = numpyro.deterministic("mu", mu)
    sigma = numpyro.sample("sigma", dist.HalfNormal(sigma_scale))
    numpyro.sample("obs", dist.Normal(mu, sigma), obs=y)
