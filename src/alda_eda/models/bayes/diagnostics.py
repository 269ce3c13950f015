"""Convergence diagnostics for MCMC samples using ArviZ.

Thresholds follow current practice: rank-normalized split R-hat below 1.01
and no divergent transitions. R-hat needs at least two chains; with a
single chain it is reported as NaN and not used for the pass/fail verdict.
"""

from dataclasses import dataclass, field

import arviz as az
import numpy as np

__all__ = [
    "ConvergenceDiagnostics",
    "check_convergence",
]


@dataclass(frozen=True)
class ConvergenceDiagnostics:
    """Container for convergence diagnostic results.

    Attributes:
        rhat_max: Maximum R-hat across parameters (NaN with one chain).
        ess_bulk_min: Minimum bulk effective sample size.
        divergences: Total divergent transitions across all chains.
        passed: True if R-hat (when available) and divergences are fine.
        failing_params: Parameters whose R-hat is at or above threshold.
    """

    rhat_max: float
    ess_bulk_min: float
    divergences: int
    passed: bool
    failing_params: list[str] = field(default_factory=list)

    def __repr__(self) -> str:
        status = "PASSED" if self.passed else "FAILED"
        return (
            f"ConvergenceDiagnostics({status}: "
            f"rhat_max={self.rhat_max:.4f}, "
            f"ess_bulk_min={self.ess_bulk_min:.0f}, "
            f"divergences={self.divergences})"
        )


def check_convergence(
    idata: az.InferenceData,
    var_names: list[str] | None = None,
    rhat_threshold: float = 1.01,
    allow_divergences: bool = False,
) -> ConvergenceDiagnostics:
    """Check MCMC convergence using ArviZ diagnostics.

    Parameters
    ----------
    idata : az.InferenceData
        InferenceData with a posterior group. Divergences are read from
        ``sample_stats.diverging`` when present.
    var_names : list[str], optional
        Parameters to check. Defaults to all posterior variables.
    rhat_threshold : float, default 1.01
        Parameters with R-hat >= threshold are flagged.
    allow_divergences : bool, default False
        If True, divergences do not cause overall failure.

    Raises
    ------
    ValueError
        If idata has no posterior group.
    """
    if "posterior" not in idata.groups():
        raise ValueError("InferenceData must have 'posterior' group")

    num_chains = idata.posterior.sizes.get("chain", 1)
    ess = az.ess(idata, var_names=var_names, method="bulk")
    ess_bulk_min = float(min(float(ess[v].min()) for v in ess.data_vars))

    failing_params: list[str] = []
    if num_chains >= 2:
        rhat = az.rhat(idata, var_names=var_names)
        per_param = {v: float(rhat[v].max()) for v in rhat.data_vars}
        rhat_max = max(per_param.values())
        failing_params = [v for v, r in per_param.items() if r >= rhat_threshold]
    else:
        rhat_max = float("nan")

    if "sample_stats" in idata.groups() and "diverging" in idata.sample_stats:
        divergences = int(idata.sample_stats["diverging"].sum().values)
    else:
        divergences = 0

    rhat_ok = not failing_params and (num_chains < 2 or np.isfinite(rhat_max))
    divergences_ok = divergences == 0 or allow_divergences

    return ConvergenceDiagnostics(
        rhat_max=rhat_max,
        ess_bulk_min=ess_bulk_min,
        divergences=divergences,
        passed=rhat_ok and divergences_ok,
        failing_params=failing_params,
    )
