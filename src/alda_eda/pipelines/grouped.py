"""Per-entity and pooled model fitting over a person-period table.

The long table is split into one owned sub-table per entity id (first
appearance order) and the fit function is applied to each independently.
A failing entity never aborts the batch: its error is recorded next to the
successful fits. Results are always collected in ascending entity id order,
whether the fits ran sequentially or on a thread pool.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Hashable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
import structlog

from alda_eda.models.base import FitFn, FittedModel
from alda_eda.pipelines.errors import DataValidationError, ModelFitFailure, PipelineError

__all__ = [
    "PerEntityResult",
    "partition_by_entity",
    "run_per_entity",
    "run_pooled",
    "sorted_entity_ids",
]

log = structlog.get_logger()


@dataclass
class PerEntityResult:
    """Outcome of a per-entity fitting batch.

    Attributes:
        fits: Entity id -> fitted handle, ascending by id.
        failures: (entity id, error) pairs, ascending by id.
    """

    fits: dict[Hashable, FittedModel] = field(default_factory=dict)
    failures: list[tuple[Hashable, PipelineError]] = field(default_factory=list)

    @property
    def n_entities(self) -> int:
        return len(self.fits) + len(self.failures)

    @property
    def failed_ids(self) -> list[Hashable]:
        return [eid for eid, _ in self.failures]


def sorted_entity_ids(ids: Iterable[Hashable]) -> list[Hashable]:
    """Ascending entity ids; mixed-type ids fall back to string order."""
    ids = list(ids)
    try:
        return sorted(ids)
    except TypeError:
        return sorted(ids, key=str)


def partition_by_entity(long: pd.DataFrame, id_column: str) -> dict[Hashable, pd.DataFrame]:
    """Split a long table into one sub-table per entity.

    Each partition is a copy keeping the original row index, so the union of
    partitions is exactly the input. Keys follow first-appearance order.

    Raises:
        DataValidationError: If the id column is missing or has nulls.
    """
    if id_column not in long.columns:
        raise DataValidationError(f"Long table has no id column '{id_column}'", stage="fit")
    if long[id_column].isna().any():
        raise DataValidationError(f"Null values in id column '{id_column}'", stage="fit")
    return {eid: rows.copy() for eid, rows in long.groupby(id_column, sort=False, observed=True)}


def _as_failure(eid: Hashable, exc: Exception) -> PipelineError:
    if isinstance(exc, PipelineError):
        return exc
    failure = ModelFitFailure(f"entity {eid!r}: {type(exc).__name__}: {exc}")
    failure.__cause__ = exc
    return failure


def _fit_one(eid: Hashable, rows: pd.DataFrame, fit_fn: FitFn) -> FittedModel | PipelineError:
    try:
        return fit_fn(rows)
    except Exception as exc:  # isolate the entity; reported in failures
        return _as_failure(eid, exc)


def _run_threaded(
    partitions: dict[Hashable, pd.DataFrame],
    fit_fn: FitFn,
    max_workers: int,
    timeout: float | None,
) -> dict[Hashable, FittedModel | PipelineError]:
    """Fit partitions on worker threads, at most ``max_workers`` at a time.

    Work is only submitted when a slot is free, so a fit starts as soon as it
    is submitted and its deadline runs from its own start time. A fit that
    overruns is abandoned: its thread cannot be interrupted, so the executor
    holding it is retired and the remaining entities go to a fresh one.
    Abandoned threads finish in the background.
    """
    outcomes: dict[Hashable, FittedModel | PipelineError] = {}
    pending = deque(partitions.items())
    running: dict[Future, Hashable] = {}
    started: dict[Hashable, float] = {}

    def timed_fit(eid: Hashable, rows: pd.DataFrame) -> FittedModel:
        started[eid] = time.monotonic()
        return fit_fn(rows)

    pool = ThreadPoolExecutor(max_workers=max_workers)
    try:
        while pending or running:
            while pending and len(running) < max_workers:
                eid, rows = pending.popleft()
                running[pool.submit(timed_fit, eid, rows)] = eid

            wait_for = None
            if timeout is not None:
                now = time.monotonic()
                wait_for = max(
                    0.0,
                    min(started.get(eid, now) + timeout - now for eid in running.values()),
                )
            done, _ = wait(running, timeout=wait_for, return_when=FIRST_COMPLETED)

            for future in done:
                eid = running.pop(future)
                try:
                    outcomes[eid] = future.result()
                except Exception as exc:  # isolate the entity; reported in failures
                    outcomes[eid] = _as_failure(eid, exc)

            if timeout is None:
                continue
            now = time.monotonic()
            expired = [
                future
                for future, eid in running.items()
                if eid in started and now - started[eid] >= timeout
            ]
            for future in expired:
                eid = running.pop(future)
                future.cancel()
                outcomes[eid] = ModelFitFailure(f"entity {eid!r}: fit exceeded {timeout}s timeout")
                log.warning("entity_fit_abandoned", entity=eid, timeout=timeout)
            if expired:
                pool.shutdown(wait=False)
                pool = ThreadPoolExecutor(max_workers=max_workers)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
    return outcomes


def run_per_entity(
    long: pd.DataFrame,
    id_column: str,
    fit_fn: FitFn,
    max_workers: int = 1,
    timeout: float | None = None,
) -> PerEntityResult:
    """Fit one model per entity.

    Args:
        long: Person-period table.
        id_column: Entity identifier column.
        fit_fn: Table -> FittedModel. Raises InsufficientData for tables
            that are too small; that error is reported unchanged.
        max_workers: Fits running at once. 1 without a timeout runs
            sequentially in-process.
        timeout: Seconds each fit may run, counted from the moment it
            starts; expiry is recorded as ModelFitFailure. Setting it
            always uses worker threads.

    Returns:
        PerEntityResult with successful fits and (id, error) failures.
    """
    partitions = partition_by_entity(long, id_column)
    outcomes: dict[Hashable, FittedModel | PipelineError] = {}

    log.info(
        "per_entity_fit_started",
        entities=len(partitions),
        rows=len(long),
        max_workers=max_workers,
    )

    if max_workers == 1 and timeout is None:
        for eid, rows in partitions.items():
            outcomes[eid] = _fit_one(eid, rows, fit_fn)
    else:
        outcomes = _run_threaded(partitions, fit_fn, max_workers, timeout)

    result = PerEntityResult()
    for eid in sorted_entity_ids(outcomes):
        outcome = outcomes[eid]
        if isinstance(outcome, PipelineError):
            log.warning("entity_fit_failed", entity=eid, error=str(outcome))
            result.failures.append((eid, outcome))
        else:
            result.fits[eid] = outcome

    log.info(
        "per_entity_fit_finished",
        fitted=len(result.fits),
        failed=len(result.failures),
    )
    return result


def run_pooled(long: pd.DataFrame, fit_fn: FitFn, label: Any = "pooled") -> FittedModel:
    """Fit one model on the whole table.

    Raises:
        PipelineError: Errors from ``fit_fn`` propagate; non-pipeline
            exceptions are wrapped in ModelFitFailure.
    """
    log.info("pooled_fit_started", model=label, rows=len(long))
    try:
        handle = fit_fn(long)
    except PipelineError:
        raise
    except Exception as exc:
        raise ModelFitFailure(f"{label}: {type(exc).__name__}: {exc}", stage="pooled") from exc
    log.info("pooled_fit_finished", model=label, n_obs=handle.n_obs)
    return handle
