"""Coefficient tables for fitted models.

Tables use adaptive precision (matching decimal places to uncertainty
magnitude) and export to CSV and LaTeX.

Usage:
    >>> from alda_eda.reporting.tables import create_coefficient_table, export_table
    >>> coef_df = create_coefficient_table(pooled, hdi_prob=0.94)
    >>> export_table(coef_df, "outputs/pooled_coefficients", caption="Pooled model")
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from statistics import NormalDist

import arviz as az
import numpy as np
import pandas as pd
from uncertainties import ufloat

from alda_eda.models.base import FittedModel
from alda_eda.models.bayes.posterior import BayesFittedModel

__all__ = [
    "COEFFICIENT_COLUMNS",
    "create_coefficient_table",
    "export_table",
]

COEFFICIENT_COLUMNS = ["Estimate", "SE", "CI Lower", "CI Upper"]


def _format_with_precision(
    value: float,
    uncertainty: float,
    min_decimals: int = 2,
    max_decimals: int = 6,
) -> str:
    """Format a value with adaptive precision based on uncertainty magnitude.

    Rounds the uncertainty to 2 significant figures and matches the value's
    decimal places to it.

    Examples
    --------
    >>> _format_with_precision(1.234, 0.05)
    '1.234'
    >>> _format_with_precision(100.5, 10.0)
    '100.50'
    """
    if not np.isfinite(value):
        return str(value)
    if not np.isfinite(uncertainty) or uncertainty == 0:
        return f"{value:.{min_decimals}f}"

    try:
        formatted = f"{ufloat(value, uncertainty):.2uS}"
        val_str = formatted.split("(")[0].strip()
        decimals = len(val_str.split(".")[-1]) if "." in val_str else 0
        decimals = max(min_decimals, min(decimals, max_decimals))
        return f"{value:.{decimals}f}"
    except (ValueError, OverflowError):
        return f"{value:.{min_decimals}f}"


def _bayes_rows(handle: BayesFittedModel, names: list[str], hdi_prob: float) -> pd.DataFrame:
    summary = az.summary(
        handle.idata,
        var_names=names,
        kind="stats",
        hdi_prob=hdi_prob,
        round_to="none",
    )
    # ArviZ labels bounds by tail mass, e.g. "hdi_3%" / "hdi_97%"
    hdi_cols = sorted(
        (c for c in summary.columns if c.startswith("hdi_")),
        key=lambda c: float(c.replace("hdi_", "").replace("%", "")),
    )
    if len(hdi_cols) != 2:
        raise ValueError(f"Expected 2 HDI columns, found: {hdi_cols}")
    lower_col, upper_col = hdi_cols
    result = summary[["mean", "sd", lower_col, upper_col]].copy()
    result.columns = COEFFICIENT_COLUMNS
    return result.loc[names]


def _point_rows(handle: FittedModel, names: list[str], interval_prob: float) -> pd.DataFrame:
    z = NormalDist().inv_cdf(0.5 + interval_prob / 2)
    records = {}
    for name in names:
        coef = handle.coefficient(name)
        records[name] = [
            coef.estimate,
            coef.spread,
            coef.estimate - z * coef.spread,
            coef.estimate + z * coef.spread,
        ]
    return pd.DataFrame.from_dict(records, orient="index", columns=COEFFICIENT_COLUMNS)


def create_coefficient_table(
    handle: FittedModel,
    coefficient_names: Sequence[str] | None = None,
    hdi_prob: float = 0.94,
    apply_precision: bool = False,
) -> pd.DataFrame:
    """Coefficient estimates with intervals for one fitted model.

    Parameters
    ----------
    handle : FittedModel
        Bayesian or OLS fit.
    coefficient_names : Sequence[str], optional
        Coefficients to include, in order. Defaults to all.
    hdi_prob : float, default 0.94
        Interval mass: highest density interval for Bayesian handles,
        normal-approximation interval (estimate +/- z * SE) for OLS.
    apply_precision : bool, default False
        If True, return strings with adaptive precision instead of floats.

    Returns
    -------
    pd.DataFrame
        Columns Estimate, SE, CI Lower, CI Upper; index is coefficient name.

    Raises
    ------
    UnknownCoefficient
        If a requested name is not in the model.
    """
    names = list(coefficient_names) if coefficient_names is not None else handle.coefficient_names
    if not names:
        return pd.DataFrame(columns=COEFFICIENT_COLUMNS)
    for name in names:
        handle.coefficient(name)

    if isinstance(handle, BayesFittedModel):
        result = _bayes_rows(handle, names, hdi_prob)
    else:
        result = _point_rows(handle, names, hdi_prob)
    result.index.name = "coefficient"

    if apply_precision:
        result = result.astype(object)
        for idx in result.index:
            est = float(result.loc[idx, "Estimate"])
            se = float(result.loc[idx, "SE"])
            est_formatted = _format_with_precision(est, se)
            n_decimals = len(est_formatted.split(".")[-1]) if "." in est_formatted else 2
            result.loc[idx, "Estimate"] = est_formatted
            result.loc[idx, "SE"] = _format_with_precision(se, se)
            result.loc[idx, "CI Lower"] = f"{float(result.loc[idx, 'CI Lower']):.{n_decimals}f}"
            result.loc[idx, "CI Upper"] = f"{float(result.loc[idx, 'CI Upper']):.{n_decimals}f}"

    return result


def export_table(
    df: pd.DataFrame,
    output_path: str | Path,
    formats: tuple[str, ...] = ("csv",),
    caption: str | None = None,
    label: str | None = None,
    index: bool = True,
) -> list[Path]:
    """Export a table to CSV and/or LaTeX.

    Parameters
    ----------
    df : pd.DataFrame
        Table to export.
    output_path : str | Path
        Base path without extension; ``.csv`` / ``.tex`` are appended.
    formats : tuple[str, ...], default ("csv",)
        Any of "csv", "tex".
    caption, label : str, optional
        LaTeX caption and label (label defaults to ``tab:<stem>``).
    index : bool, default True
        Whether to write the index.

    Returns
    -------
    list[Path]
        Paths of the created files.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    created_files = []

    if "csv" in formats:
        csv_path = output_path.with_suffix(".csv")
        df.to_csv(csv_path, index=index)
        created_files.append(csv_path)

    if "tex" in formats:
        tex_path = output_path.with_suffix(".tex")
        latex_str = df.to_latex(
            index=index,
            escape=True,
            caption=caption,
            label=label or f"tab:{output_path.stem}",
            position="htbp",
        )
        tex_path.write_text(latex_str, encoding="utf-8")
        created_files.append(tex_path)

    return created_files
