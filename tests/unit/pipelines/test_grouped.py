"""Unit tests for the per-entity and pooled runners.

Tests cover:
- Partition completeness and ordering
- Isolation of a failing entity
- Deterministic collection order (sequential and threaded)
- Timeout handling, counted from each fit's start
- Pooled fit error propagation
"""

import threading
import time

import pandas as pd
import pytest

from alda_eda.models.formula import ModelSpec
from alda_eda.models.ols import make_ols_fitter
from alda_eda.pipelines.errors import (
    DataValidationError,
    InsufficientData,
    ModelFitFailure,
)
from alda_eda.pipelines.grouped import (
    PerEntityResult,
    partition_by_entity,
    run_per_entity,
    run_pooled,
    sorted_entity_ids,
)

SPEC = ModelSpec("y", ("time",))

# =============================================================================
# Test Fixtures
# =============================================================================


def failing_for(bad_id, exc=None):
    """OLS fitter that raises for one entity."""
    ols = make_ols_fitter(SPEC)

    def fit_fn(rows):
        if rows["id"].iloc[0] == bad_id:
            raise exc or RuntimeError("sampler crashed")
        return ols(rows)

    return fit_fn


@pytest.fixture
def shuffled_long(linear_long):
    """The linear fixture with entities appearing in order 3, 1, 2."""
    order = {3: 0, 1: 1, 2: 2}
    return linear_long.sort_values("id", key=lambda s: s.map(order), kind="stable")


class TestPartitionByEntity:
    """Tests for partition_by_entity."""

    def test_one_partition_per_id(self, linear_long):
        """Every distinct id gets exactly one partition."""
        parts = partition_by_entity(linear_long, "id")
        assert sorted(parts) == [1, 2, 3]
        assert all(len(rows) == 5 for rows in parts.values())

    def test_union_is_input(self, noisy_long):
        """Concatenated partitions reproduce the input rows exactly once."""
        parts = partition_by_entity(noisy_long, "id")
        union = pd.concat(parts.values()).sort_index()
        pd.testing.assert_frame_equal(union, noisy_long)

    def test_first_appearance_order(self, shuffled_long):
        """Keys follow first appearance in the table."""
        assert list(partition_by_entity(shuffled_long, "id")) == [3, 1, 2]

    def test_partitions_are_copies(self, linear_long):
        """Mutating a partition leaves the input untouched."""
        parts = partition_by_entity(linear_long, "id")
        parts[1]["y"] = 0.0
        assert (linear_long.loc[linear_long["id"] == 1, "y"] != 0.0).any()

    def test_missing_id_column(self, linear_long):
        """The id column must exist."""
        with pytest.raises(DataValidationError):
            partition_by_entity(linear_long, "person")

    def test_null_id(self, linear_long):
        """Null ids are rejected."""
        df = linear_long.astype({"id": float})
        df.loc[0, "id"] = float("nan")
        with pytest.raises(DataValidationError, match="Null"):
            partition_by_entity(df, "id")


class TestSortedEntityIds:
    """Tests for sorted_entity_ids."""

    def test_numeric(self):
        """Numeric ids sort numerically."""
        assert sorted_entity_ids([1105, 9, 45]) == [9, 45, 1105]

    def test_mixed_types_fall_back_to_string(self):
        """Mixed-type ids sort by their string form."""
        assert sorted_entity_ids(["b", 2, "a"]) == [2, "a", "b"]


class TestRunPerEntity:
    """Tests for run_per_entity."""

    def test_all_entities_fitted(self, linear_long):
        """Each entity gets its own slope."""
        result = run_per_entity(linear_long, "id", make_ols_fitter(SPEC))

        assert isinstance(result, PerEntityResult)
        assert result.n_entities == 3
        assert result.failures == []
        slopes = {eid: fit.coefficient("time").estimate for eid, fit in result.fits.items()}
        assert slopes == pytest.approx({1: 0.1, 2: 0.3, 3: 0.5})

    def test_fits_sorted_by_id(self, shuffled_long):
        """Fits are collected in ascending id order regardless of input order."""
        result = run_per_entity(shuffled_long, "id", make_ols_fitter(SPEC))
        assert list(result.fits) == [1, 2, 3]

    def test_failure_is_isolated(self, linear_long):
        """One failing entity does not stop the others."""
        result = run_per_entity(linear_long, "id", failing_for(2))

        assert list(result.fits) == [1, 3]
        assert result.failed_ids == [2]
        error = result.failures[0][1]
        assert isinstance(error, ModelFitFailure)
        assert isinstance(error.__cause__, RuntimeError)
        assert "entity 2" in str(error)

    def test_insufficient_data_surfaced_unchanged(self, linear_long):
        """InsufficientData from the fit function is reported as raised."""
        raised = InsufficientData(1, 3)
        result = run_per_entity(linear_long, "id", failing_for(3, raised))
        assert result.failures == [(3, raised)]

    def test_short_entity_reported(self, linear_long):
        """An entity with too few rows is reported, not fatal."""
        short = pd.concat(
            [linear_long, pd.DataFrame({"id": [4, 4], "time": [0, 1], "y": [1.0, 2.0]})],
            ignore_index=True,
        )
        result = run_per_entity(short, "id", make_ols_fitter(SPEC))

        assert list(result.fits) == [1, 2, 3]
        assert isinstance(result.failures[0][1], InsufficientData)

    def test_thread_pool_matches_sequential(self, noisy_long):
        """Threaded fitting yields the same ordered results."""
        fit_fn = make_ols_fitter(SPEC)
        sequential = run_per_entity(noisy_long, "id", fit_fn)
        threaded = run_per_entity(noisy_long, "id", fit_fn, max_workers=3)

        assert list(threaded.fits) == list(sequential.fits) == [10, 20, 30]
        for eid in sequential.fits:
            assert threaded.fits[eid].coefficient("time").estimate == pytest.approx(
                sequential.fits[eid].coefficient("time").estimate
            )

    def test_thread_pool_isolates_failures(self, linear_long):
        """Failures on worker threads are collected like sequential ones."""
        result = run_per_entity(linear_long, "id", failing_for(1), max_workers=2)
        assert list(result.fits) == [2, 3]
        assert result.failed_ids == [1]

    def test_timeout_becomes_fit_failure(self, linear_long):
        """A fit exceeding the timeout is reported as ModelFitFailure."""
        release = threading.Event()
        ols = make_ols_fitter(SPEC)

        def slow_for_two(rows):
            if rows["id"].iloc[0] == 2:
                release.wait(5)
            return ols(rows)

        try:
            result = run_per_entity(linear_long, "id", slow_for_two, max_workers=3, timeout=0.2)
        finally:
            release.set()

        assert result.failed_ids == [2]
        assert "timeout" in str(result.failures[0][1])
        assert list(result.fits) == [1, 3]

    def test_stuck_fit_does_not_starve_queue(self, linear_long):
        """With one worker, entities queued behind a stuck fit still run."""
        release = threading.Event()
        ols = make_ols_fitter(SPEC)

        def stuck_for_one(rows):
            if rows["id"].iloc[0] == 1:
                release.wait(5)
            return ols(rows)

        try:
            result = run_per_entity(linear_long, "id", stuck_for_one, max_workers=1, timeout=0.3)
        finally:
            release.set()

        assert list(result.fits) == [2, 3]
        assert result.failed_ids == [1]
        assert "timeout" in str(result.failures[0][1])

    def test_timeout_counts_from_fit_start(self, linear_long):
        """Time spent queued does not count against a fit's timeout."""
        ols = make_ols_fitter(SPEC)

        def slowish(rows):
            # three fits back to back outlast one timeout
            time.sleep(0.15)
            return ols(rows)

        result = run_per_entity(linear_long, "id", slowish, max_workers=1, timeout=0.35)

        assert result.failures == []
        assert list(result.fits) == [1, 2, 3]


class TestRunPooled:
    """Tests for run_pooled."""

    def test_single_fit(self, linear_long):
        """The pooled fit sees every row."""
        fit = run_pooled(linear_long, make_ols_fitter(SPEC))
        assert fit.n_obs == 15

    def test_pipeline_error_propagates(self):
        """Pipeline errors abort the pooled fit unchanged."""
        tiny = pd.DataFrame({"id": [1], "time": [0], "y": [1.0]})
        with pytest.raises(InsufficientData):
            run_pooled(tiny, make_ols_fitter(SPEC))

    def test_other_errors_wrapped(self, linear_long):
        """Unexpected exceptions become ModelFitFailure in the pooled stage."""

        def broken(rows):
            raise ZeroDivisionError("bad")

        with pytest.raises(ModelFitFailure) as exc_info:
            run_pooled(linear_long, broken, label="tol ~ time")
        assert exc_info.value.stage == "pooled"
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)
