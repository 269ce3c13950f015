"""MCMC fitting orchestration.

This module provides the infrastructure for fitting NumPyro models using
NUTS. Key features:
- Configurable chain_method (sequential default for stability)
- Device logging for reproducibility
- Divergence tracking (logged but not failing)
- ArviZ InferenceData conversion
"""

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

import arviz as az
import jax
from jax import random
from numpyro.infer import MCMC, NUTS

__all__ = [
    "MCMCConfig",
    "FitResult",
    "fit_model",
    "get_device_info",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MCMCConfig:
    """MCMC configuration for reproducibility.

    Attributes:
        num_warmup: Number of warmup (burn-in) iterations per chain.
        num_samples: Number of post-warmup samples per chain.
        num_chains: Number of chains. Four is standard for R-hat.
        chain_method: "sequential" (default, most stable), "vectorized"
            or "parallel".
        seed: Random seed for reproducibility.
        max_tree_depth: Maximum tree depth for NUTS.
        target_accept_prob: Target acceptance probability for adaptation.
            Increase to 0.9-0.95 if divergences occur.
    """

    num_warmup: int = 1000
    num_samples: int = 1000
    num_chains: int = 4
    chain_method: str = "sequential"
    seed: int = 0
    max_tree_depth: int = 10
    target_accept_prob: float = 0.8

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class FitResult:
    """Result container for MCMC fitting.

    Attributes:
        mcmc: NumPyro MCMC object with samples and extra fields.
        idata: ArviZ InferenceData with posterior and observed_data groups.
        divergences: Total count of divergent transitions across all chains.
        runtime_seconds: Total wall-clock time for fitting.
    """

    mcmc: MCMC
    idata: az.InferenceData
    divergences: int
    runtime_seconds: float


def get_device_info() -> str:
    """Describe the JAX devices in use, e.g. "cpu x1" or "gpu x2"."""
    counts: dict[str, int] = {}
    for device in jax.devices():
        counts[device.platform] = counts.get(device.platform, 0) + 1
    return ", ".join(f"{platform} x{n}" for platform, n in sorted(counts.items()))


def fit_model(
    model: Callable,
    model_args: dict,
    config: MCMCConfig | None = None,
    progress_bar: bool = False,
) -> FitResult:
    """Fit a NumPyro model via NUTS.

    Parameters
    ----------
    model : Callable
        NumPyro model function to fit (e.g., linear_regression_model).
    model_args : dict
        Keyword arguments passed to the model, including the observed ``y``.
    config : MCMCConfig, optional
        MCMC configuration. If None, uses default MCMCConfig().
    progress_bar : bool, default False
        Whether to display NumPyro's progress bar. Off by default because
        per-entity runs fit many small models.

    Returns
    -------
    FitResult
        Container with MCMC object, InferenceData, divergence count and
        runtime.

    Notes
    -----
    Divergences are logged but do not cause failure; convergence is judged
    separately by ``check_convergence``.
    """
    if config is None:
        config = MCMCConfig()

    kernel = NUTS(
        model,
        max_tree_depth=config.max_tree_depth,
        target_accept_prob=config.target_accept_prob,
    )
    mcmc = MCMC(
        kernel,
        num_warmup=config.num_warmup,
        num_samples=config.num_samples,
        num_chains=config.num_chains,
        chain_method=config.chain_method,
        progress_bar=progress_bar,
    )

    rng_key = random.key(config.seed)

    logger.debug(f"Starting MCMC on {get_device_info()} with {config.to_dict()}")
    start_time = time.perf_counter()

    mcmc.run(rng_key, extra_fields=("diverging",), **model_args)

    runtime_seconds = time.perf_counter() - start_time

    diverging = mcmc.get_extra_fields()["diverging"]
    divergences = int(diverging.sum())

    logger.debug(f"MCMC completed in {runtime_seconds:.2f}s")
    if divergences > 0:
        logger.warning(
            f"Found {divergences} divergent transitions. "
            "Consider increasing target_accept_prob or checking model specification."
        )

    idata = az.from_numpyro(mcmc)

    return FitResult(
        mcmc=mcmc,
        idata=idata,
        divergences=divergences,
        runtime_seconds=runtime_seconds,
    )
