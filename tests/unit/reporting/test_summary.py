"""Unit tests for per-entity summary extraction."""

import numpy as np
import pandas as pd
import pytest

from alda_eda.models.formula import ModelSpec
from alda_eda.models.ols import make_ols_fitter
from alda_eda.pipelines.errors import UnknownCoefficient
from alda_eda.pipelines.grouped import run_per_entity
from alda_eda.reporting.summary import (
    build_summary_table,
    extract_coefficients,
    extract_derived,
    fitted_trajectories,
    summary_statistics,
)

SPEC = ModelSpec("y", ("time",))


@pytest.fixture
def noisy_fits(noisy_long):
    """OLS fits for the three noisy entities."""
    return run_per_entity(noisy_long, "id", make_ols_fitter(SPEC)).fits


class TestExtractors:
    """Tests for extract_coefficients and extract_derived."""

    def test_extract_coefficients(self, noisy_fits):
        """Requested coefficients are returned in order with spreads."""
        coefs = extract_coefficients(noisy_fits[10], ["time", "Intercept"])
        assert list(coefs) == ["time", "Intercept"]
        assert coefs["time"].spread > 0

    def test_unknown_coefficient(self, noisy_fits):
        """A name outside the model raises UnknownCoefficient."""
        with pytest.raises(UnknownCoefficient):
            extract_coefficients(noisy_fits[10], ["age"])

    def test_derived_bounds(self, noisy_fits):
        """R-squared is in [0, 1] and residual variance is non-negative."""
        for fit in noisy_fits.values():
            assert 0.0 <= extract_derived(fit, "r2") <= 1.0
            assert extract_derived(fit, "sigma2") >= 0.0

    def test_unsupported_statistic(self, noisy_fits):
        """Unknown derived statistics are rejected."""
        with pytest.raises(ValueError, match="Unsupported"):
            extract_derived(noisy_fits[10], "aic")


class TestBuildSummaryTable:
    """Tests for build_summary_table."""

    def test_column_layout(self, noisy_fits):
        """id, then coefficient/spread pairs, then derived statistics."""
        table = build_summary_table(noisy_fits, ["Intercept", "time"])
        assert list(table.columns) == [
            "id",
            "Intercept",
            "Intercept_sd",
            "time",
            "time_sd",
            "r2",
            "sigma2",
        ]

    def test_rows_ascending_regardless_of_input_order(self, noisy_fits):
        """Row order is ascending id whatever order the fits arrive in."""
        reversed_fits = dict(reversed(list(noisy_fits.items())))
        table = build_summary_table(reversed_fits, ["time"])
        assert table["id"].tolist() == [10, 20, 30]
        assert table["id"].is_monotonic_increasing

    def test_values_match_handles(self, noisy_fits):
        """Cells hold the handle's estimates."""
        table = build_summary_table(noisy_fits, ["time"], ["r2"], id_column="person")
        row = table.set_index("person").loc[20]
        assert row["time"] == noisy_fits[20].coefficient("time").estimate
        assert row["r2"] == noisy_fits[20].r2()

    def test_interaction_names_verbatim(self, noisy_long):
        """Coefficient names containing ':' are kept as column names."""
        df = noisy_long.assign(male=(noisy_long["time"] % 2))
        spec = ModelSpec("y", ("time", "male"), (("time", "male"),))
        fits = run_per_entity(df, "id", make_ols_fitter(spec)).fits
        table = build_summary_table(fits, ["time:male"], [])
        assert list(table.columns) == ["id", "time:male", "time:male_sd"]

    def test_empty(self):
        """No handles gives an empty table with the documented columns."""
        table = build_summary_table({}, ["time"])
        assert table.empty
        assert list(table.columns) == ["id", "time", "time_sd", "r2", "sigma2"]


class TestFittedTrajectories:
    """Tests for fitted_trajectories."""

    def test_exact_line(self, linear_long):
        """Fitted values reproduce an exact line per entity."""
        fits = run_per_entity(linear_long, "id", make_ols_fitter(SPEC)).fits
        traj = fitted_trajectories(fits, linear_long, "id", "time")

        assert list(traj.columns) == ["id", "time", "fitted"]
        assert len(traj) == 15
        np.testing.assert_allclose(traj["fitted"], linear_long["y"], atol=1e-10)

    def test_entities_without_fit_skipped(self, linear_long):
        """Only entities with a handle are included."""
        fits = run_per_entity(linear_long, "id", make_ols_fitter(SPEC)).fits
        del fits[2]
        traj = fitted_trajectories(fits, linear_long, "id", "time")
        assert traj["id"].unique().tolist() == [1, 3]


class TestSummaryStatistics:
    """Tests for summary_statistics."""

    def test_mean_and_sd(self):
        """Across-entity mean, sd and count per column."""
        summary = pd.DataFrame({"id": [1, 2, 3], "time": [0.1, 0.3, 0.5]})
        stats = summary_statistics(summary, ["time"])
        assert stats.loc["time", "mean"] == pytest.approx(0.3)
        assert stats.loc["time", "sd"] == pytest.approx(0.2)
        assert stats.loc["time", "n"] == 3
