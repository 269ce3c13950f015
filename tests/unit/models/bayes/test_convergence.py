"""Unit tests for convergence diagnostics on synthetic draws."""

import arviz as az
import numpy as np
import pytest

from alda_eda.models.bayes.diagnostics import ConvergenceDiagnostics, check_convergence

# =============================================================================
# Test Fixtures
# =============================================================================


def make_idata(
    n_chains: int = 4,
    n_draws: int = 500,
    shift_chain: bool = False,
    n_divergences: int = 0,
) -> az.InferenceData:
    """Build InferenceData with well-mixed normal draws.

    ``shift_chain`` offsets the first chain to produce a large R-hat for
    ``time``.
    """
    rng = np.random.default_rng(0)
    intercept = rng.normal(1.0, 0.1, size=(n_chains, n_draws))
    time = rng.normal(0.2, 0.05, size=(n_chains, n_draws))
    if shift_chain:
        time[0] += 5.0
    sigma = np.abs(rng.normal(0.3, 0.02, size=(n_chains, n_draws)))

    diverging = np.zeros((n_chains, n_draws), dtype=bool)
    diverging.flat[:n_divergences] = True

    return az.from_dict(
        posterior={"Intercept": intercept, "time": time, "sigma": sigma},
        sample_stats={"diverging": diverging},
    )


class TestCheckConvergence:
    """Tests for check_convergence."""

    def test_well_mixed_chains_pass(self):
        """Independent draws across four chains pass every check."""
        diag = check_convergence(make_idata())

        assert isinstance(diag, ConvergenceDiagnostics)
        assert diag.passed
        assert diag.rhat_max < 1.01
        assert diag.ess_bulk_min > 100
        assert diag.divergences == 0
        assert diag.failing_params == []

    def test_shifted_chain_fails_rhat(self):
        """A chain stuck elsewhere is reported by name."""
        diag = check_convergence(make_idata(shift_chain=True))
        assert not diag.passed
        assert diag.failing_params == ["time"]

    def test_divergences_fail_by_default(self):
        """Divergent transitions fail unless explicitly allowed."""
        idata = make_idata(n_divergences=3)

        strict = check_convergence(idata)
        assert strict.divergences == 3
        assert not strict.passed

        relaxed = check_convergence(idata, allow_divergences=True)
        assert relaxed.passed

    def test_single_chain_reports_nan_rhat(self):
        """With one chain R-hat is unavailable and not used for the verdict."""
        diag = check_convergence(make_idata(n_chains=1))
        assert np.isnan(diag.rhat_max)
        assert diag.passed

    def test_var_names_restrict_check(self):
        """Only the requested parameters are checked."""
        diag = check_convergence(make_idata(shift_chain=True), var_names=["Intercept", "sigma"])
        assert diag.passed

    def test_missing_posterior(self):
        """InferenceData without a posterior is rejected."""
        idata = az.from_dict(observed_data={"y": np.zeros(3)})
        with pytest.raises(ValueError, match="posterior"):
            check_convergence(idata)

    def test_repr_shows_status(self):
        """repr leads with PASSED or FAILED."""
        assert "PASSED" in repr(check_convergence(make_idata()))
