"""Posterior summaries of fitted models, one row per entity.

Summary table layout (stable):

    <id_column> | <coef> | <coef>_sd | ... | r2 | sigma2

``<coef>`` is the posterior mean (Bayesian) or least-squares estimate (OLS)
and ``<coef>_sd`` its posterior standard deviation or standard error.
Coefficients appear in the requested order, followed by the requested
derived statistics. Rows are sorted by entity id ascending.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence

import pandas as pd

from alda_eda.models.base import CoefficientEstimate, FittedModel
from alda_eda.pipelines.grouped import sorted_entity_ids

__all__ = [
    "DERIVED_STATISTICS",
    "build_summary_table",
    "extract_coefficients",
    "extract_derived",
    "fitted_trajectories",
    "summary_statistics",
]

DERIVED_STATISTICS = ("r2", "sigma2")

SPREAD_SUFFIX = "_sd"


def extract_coefficients(
    handle: FittedModel,
    coefficient_names: Sequence[str],
) -> dict[str, CoefficientEstimate]:
    """Point estimate and spread for each requested coefficient.

    Raises:
        UnknownCoefficient: If a name is not in the model. This signals a
            mismatch between the requested names and the model specification.
    """
    return {name: handle.coefficient(name) for name in coefficient_names}


def extract_derived(handle: FittedModel, statistic: str) -> float:
    """Model-level statistic.

    Supported statistics:
        ``r2``: Goodness of fit in [0, 1]. Bayesian handles report the
            posterior median of the per-draw R-squared; OLS handles the
            classical R-squared.
        ``sigma2``: Residual variance (squared residual scale), >= 0.

    Raises:
        ValueError: For an unsupported statistic name.
    """
    if statistic == "r2":
        return handle.r2()
    if statistic == "sigma2":
        return handle.residual_variance()
    raise ValueError(
        f"Unsupported derived statistic '{statistic}'; choose from {list(DERIVED_STATISTICS)}"
    )


def build_summary_table(
    entity_handles: Mapping[Hashable, FittedModel],
    coefficient_names: Sequence[str],
    derived_statistics: Sequence[str] = DERIVED_STATISTICS,
    id_column: str = "id",
) -> pd.DataFrame:
    """Join coefficient and derived-statistic extractions into one table.

    Args:
        entity_handles: Entity id -> fitted handle (any order).
        coefficient_names: Coefficients to report.
        derived_statistics: Model-level statistics to report.
        id_column: Name of the entity id column in the output.

    Returns:
        One row per entity, ascending by id, columns as described in the
        module docstring.
    """
    columns = [id_column]
    for name in coefficient_names:
        columns.extend([name, f"{name}{SPREAD_SUFFIX}"])
    columns.extend(derived_statistics)

    rows = []
    for eid in sorted_entity_ids(entity_handles):
        handle = entity_handles[eid]
        row: dict = {id_column: eid}
        for name, coef in extract_coefficients(handle, coefficient_names).items():
            row[name] = coef.estimate
            row[f"{name}{SPREAD_SUFFIX}"] = coef.spread
        for statistic in derived_statistics:
            row[statistic] = extract_derived(handle, statistic)
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def fitted_trajectories(
    entity_handles: Mapping[Hashable, FittedModel],
    long: pd.DataFrame,
    id_column: str,
    time_column: str,
    fitted_column: str = "fitted",
) -> pd.DataFrame:
    """Fitted value of each entity's own model at each of its observed times.

    Returns:
        Columns ``[id_column, time_column, fitted_column]``, sorted by id then
        time. Entities without a handle are omitted.
    """
    pieces = []
    for eid in sorted_entity_ids(entity_handles):
        rows = long[long[id_column] == eid]
        if rows.empty:
            continue
        frame = rows[[id_column, time_column]].copy()
        frame[fitted_column] = entity_handles[eid].predict(rows)
        pieces.append(frame.sort_values(time_column, kind="stable"))
    if not pieces:
        return pd.DataFrame(columns=[id_column, time_column, fitted_column])
    return pd.concat(pieces, ignore_index=True)


def summary_statistics(summary: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Across-entity mean and sd of summary columns (e.g. the fitted slopes)."""
    values = summary[list(columns)].astype(float)
    return pd.DataFrame(
        {"mean": values.mean(), "sd": values.std(ddof=1), "n": values.notna().sum()}
    )
