"""Unit tests for coefficient tables and export."""

import arviz as az
import numpy as np
import pandas as pd
import pytest

from alda_eda.models.bayes.diagnostics import check_convergence
from alda_eda.models.bayes.posterior import BayesFittedModel
from alda_eda.models.formula import ModelSpec
from alda_eda.models.ols import fit_ols
from alda_eda.pipelines.errors import UnknownCoefficient
from alda_eda.reporting.tables import (
    COEFFICIENT_COLUMNS,
    _format_with_precision,
    create_coefficient_table,
    export_table,
)

SPEC = ModelSpec("y", ("time",))

# =============================================================================
# Test Fixtures
# =============================================================================


def make_bayes_handle(n_chains: int = 2, n_draws: int = 400) -> BayesFittedModel:
    """BayesFittedModel built from synthetic draws (no sampling)."""
    rng = np.random.default_rng(3)
    posterior = {
        "Intercept": rng.normal(1.0, 0.1, size=(n_chains, n_draws)),
        "time": rng.normal(0.25, 0.05, size=(n_chains, n_draws)),
        "sigma": np.abs(rng.normal(0.3, 0.03, size=(n_chains, n_draws))),
    }
    idata = az.from_dict(posterior=posterior)
    r2 = rng.uniform(0.4, 0.8, size=(n_chains, n_draws))
    return BayesFittedModel(SPEC, idata, r2, n_obs=5, diagnostics=check_convergence(idata))


@pytest.fixture
def ols_handle():
    """OLS fit on five noisy points."""
    df = pd.DataFrame({"time": [0, 1, 2, 3, 4], "y": [1.0, 1.4, 1.3, 2.1, 2.0]})
    return fit_ols(df, SPEC)


class TestFormatWithPrecision:
    """Tests for _format_with_precision."""

    def test_small_uncertainty(self):
        """Decimals follow two significant figures of the uncertainty."""
        assert _format_with_precision(1.234, 0.05) == "1.234"

    def test_large_uncertainty_uses_minimum(self):
        """At least min_decimals places are kept."""
        assert _format_with_precision(100.5, 10.0) == "100.50"

    def test_zero_uncertainty(self):
        """Zero uncertainty falls back to min_decimals."""
        assert _format_with_precision(3.14159, 0.0) == "3.14"

    def test_non_finite_value(self):
        """NaN is returned as text."""
        assert _format_with_precision(float("nan"), 0.1) == "nan"


class TestCreateCoefficientTable:
    """Tests for create_coefficient_table."""

    def test_ols_interval(self, ols_handle):
        """OLS rows use estimate +/- z * SE."""
        table = create_coefficient_table(ols_handle, hdi_prob=0.95)

        assert list(table.columns) == COEFFICIENT_COLUMNS
        assert list(table.index) == ["Intercept", "time"]
        assert table.index.name == "coefficient"
        row = table.loc["time"]
        assert row["CI Upper"] - row["Estimate"] == pytest.approx(1.959964 * row["SE"], rel=1e-5)

    def test_bayes_hdi(self):
        """Bayesian rows take mean, sd and HDI bounds from ArviZ."""
        handle = make_bayes_handle()
        table = create_coefficient_table(handle, ["time"], hdi_prob=0.9)

        row = table.loc["time"]
        draws = handle.coefficient_draws("time")
        assert row["Estimate"] == pytest.approx(draws.mean())
        assert row["CI Lower"] < row["Estimate"] < row["CI Upper"]
        assert row["SE"] == pytest.approx(draws.std(), rel=0.01)

    def test_requested_order(self, ols_handle):
        """Rows follow the requested coefficient order."""
        table = create_coefficient_table(ols_handle, ["time", "Intercept"])
        assert list(table.index) == ["time", "Intercept"]

    def test_unknown_coefficient(self, ols_handle):
        """Unknown names raise UnknownCoefficient."""
        with pytest.raises(UnknownCoefficient):
            create_coefficient_table(ols_handle, ["age"])

    def test_apply_precision_returns_strings(self, ols_handle):
        """With apply_precision every cell is formatted text."""
        table = create_coefficient_table(ols_handle, apply_precision=True)
        assert all(isinstance(v, str) for v in table.to_numpy().ravel())


class TestBayesHandleWithoutSampling:
    """Bayesian handle queries on synthetic draws."""

    def test_r2_is_median(self):
        """R-squared reports the median of the stored draws."""
        handle = make_bayes_handle()
        assert handle.r2() == pytest.approx(np.median(handle.r2_draws()))

    def test_residual_variance_is_median_sigma_squared(self):
        """sigma2 is the posterior median of sigma^2."""
        handle = make_bayes_handle()
        sigma = handle.idata.posterior["sigma"].values.ravel()
        assert handle.residual_variance() == pytest.approx(np.median(sigma**2))


class TestExportTable:
    """Tests for export_table."""

    def test_csv(self, tmp_path, ols_handle):
        """CSV export keeps the coefficient index."""
        table = create_coefficient_table(ols_handle)
        paths = export_table(table, tmp_path / "nested" / "pooled")

        assert paths == [tmp_path / "nested" / "pooled.csv"]
        back = pd.read_csv(paths[0], index_col="coefficient")
        assert list(back.index) == ["Intercept", "time"]

    def test_tex(self, tmp_path, ols_handle):
        """LaTeX export writes a table with caption and default label."""
        table = create_coefficient_table(ols_handle, apply_precision=True)
        paths = export_table(table, tmp_path / "pooled", formats=("tex",), caption="Pooled")

        text = paths[0].read_text(encoding="utf-8")
        assert "\\caption{Pooled}" in text
        assert "tab:pooled" in text
