"""End-to-end analysis: person-level table to per-entity summary.

Stages run in order, each logged with its stage name:

1. load      - read and validate the person-level table
2. reshape   - person-level -> person-period
3. describe  - wave descriptives and correlations
4. entities  - one fit per entity (failures isolated)
5. pooled    - one fit on the whole person-period table
6. summarize - summary table and pooled coefficients
7. write     - CSV / LaTeX outputs (optional)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
import structlog

from alda_eda.config.schema import AppConfig, ModelConfig
from alda_eda.data.descriptives import describe_by_time, wave_correlations
from alda_eda.data.ingest import LoadMetadata, load_person_level
from alda_eda.data.reshape import TableReshaper
from alda_eda.data.validation import value_columns
from alda_eda.io.writers import write_csv
from alda_eda.models.base import FitFn, FittedModel
from alda_eda.models.bayes.fit import MCMCConfig
from alda_eda.models.bayes.posterior import make_bayes_fitter
from alda_eda.models.bayes.priors import PriorConfig
from alda_eda.models.formula import ModelSpec
from alda_eda.models.ols import make_ols_fitter
from alda_eda.pipelines.errors import StageError
from alda_eda.pipelines.grouped import PerEntityResult, run_per_entity, run_pooled
from alda_eda.reporting.summary import build_summary_table
from alda_eda.reporting.tables import create_coefficient_table, export_table

__all__ = [
    "AnalysisResult",
    "entity_spec",
    "make_fit_fn",
    "mcmc_config",
    "pooled_spec",
    "run_analysis",
]

log = structlog.get_logger()


@dataclass
class AnalysisResult:
    """Everything produced by one analysis run."""

    wide: pd.DataFrame
    long: pd.DataFrame
    metadata: LoadMetadata
    by_time: pd.DataFrame
    correlations: pd.DataFrame
    per_entity: PerEntityResult
    pooled: FittedModel
    summary: pd.DataFrame
    pooled_coefficients: pd.DataFrame
    written: list[Path] = field(default_factory=list)

    @property
    def failures(self) -> pd.DataFrame:
        """Failed entities as a table (id, error type, message)."""
        return pd.DataFrame(
            [
                {"entity": eid, "error": type(err).__name__, "message": err.message}
                for eid, err in self.per_entity.failures
            ],
            columns=["entity", "error", "message"],
        )


def entity_spec(cfg: ModelConfig) -> ModelSpec:
    return ModelSpec(cfg.response, tuple(cfg.predictors), tuple(cfg.interactions))


def pooled_spec(cfg: ModelConfig) -> ModelSpec:
    """Pooled model; falls back to the per-entity terms when not configured."""
    predictors = cfg.pooled_predictors if cfg.pooled_predictors is not None else cfg.predictors
    interactions = (
        cfg.pooled_interactions if cfg.pooled_interactions is not None else cfg.interactions
    )
    return ModelSpec(cfg.response, tuple(predictors), tuple(interactions))


def mcmc_config(cfg: ModelConfig) -> MCMCConfig:
    """NUTS settings from the model section."""
    return MCMCConfig(
        num_warmup=cfg.num_warmup,
        num_samples=cfg.num_samples,
        num_chains=cfg.num_chains,
        chain_method=cfg.chain_method,
        seed=cfg.seed,
        max_tree_depth=cfg.max_tree_depth,
        target_accept_prob=cfg.target_accept,
    )


def make_fit_fn(cfg: ModelConfig, spec: ModelSpec, hdi_prob: float = 0.94) -> FitFn:
    """Build the configured fitter (NumPyro NUTS or OLS) for ``spec``."""
    if cfg.fitter == "ols":
        return make_ols_fitter(spec)
    priors = PriorConfig(**cfg.priors.model_dump())
    return make_bayes_fitter(spec, config=mcmc_config(cfg), priors=priors, hdi_prob=hdi_prob)


def run_analysis(
    config: AppConfig,
    output_dir: str | Path | None = None,
    write: bool = True,
) -> AnalysisResult:
    """Run the full analysis described by ``config``.

    Args:
        config: Validated application config.
        output_dir: Overrides ``config.outputs.run_dir``.
        write: If False, nothing is written to disk.

    Returns:
        AnalysisResult with all intermediate tables and fits.

    Raises:
        DataValidationError: Invalid input table (including reshape errors).
        ModelFitFailure: The pooled fit failed.
        StageError: Output files could not be written or the input
            could not be read.
    """
    reshaper = TableReshaper.from_config(config.table)
    id_column = config.table.id_column

    log.info("stage_started", stage="load", source=config.dataset.source)
    wide, metadata = load_person_level(config.dataset, config.table)

    log.info("stage_started", stage="reshape")
    long = reshaper.to_long(wide)
    log.info("reshaped", entities=len(wide), person_periods=len(long))

    log.info("stage_started", stage="describe")
    by_time = describe_by_time(long, reshaper.time_column, reshaper.outcome_column)
    correlations = wave_correlations(wide, value_columns(wide, config.table))

    log.info("stage_started", stage="entities")
    spec = entity_spec(config.model)
    per_entity = run_per_entity(
        long,
        id_column,
        make_fit_fn(config.model, spec, config.summary.hdi_prob),
        max_workers=config.runner.max_workers,
        timeout=config.runner.timeout_seconds,
    )

    log.info("stage_started", stage="pooled")
    pooled_model_spec = pooled_spec(config.model)
    pooled = run_pooled(
        long,
        make_fit_fn(config.model, pooled_model_spec, config.summary.hdi_prob),
        label=pooled_model_spec.describe(),
    )

    log.info("stage_started", stage="summarize")
    summary = build_summary_table(
        per_entity.fits,
        config.summary.coefficients,
        config.summary.derived,
        id_column=id_column,
    )
    pooled_coefficients = create_coefficient_table(pooled, hdi_prob=config.summary.hdi_prob)

    result = AnalysisResult(
        wide=wide,
        long=long,
        metadata=metadata,
        by_time=by_time,
        correlations=correlations,
        per_entity=per_entity,
        pooled=pooled,
        summary=summary,
        pooled_coefficients=pooled_coefficients,
    )

    if write:
        run_dir = Path(output_dir) if output_dir is not None else Path(config.outputs.run_dir)
        log.info("stage_started", stage="write", run_dir=str(run_dir))
        formats = tuple(config.outputs.formats)
        try:
            result.written = [write_csv(long, run_dir / config.outputs.long_csv)]
            result.written += export_table(
                summary,
                run_dir / config.outputs.summary_csv,
                formats=formats,
                caption="Per-entity fits",
                index=False,
            )
            result.written += export_table(
                pooled_coefficients,
                run_dir / config.outputs.pooled_csv,
                formats=formats,
                caption=f"Pooled model: {pooled_model_spec.describe()}",
            )
            if per_entity.failures:
                result.written.append(write_csv(result.failures, run_dir / "failures.csv"))
        except OSError as e:
            raise StageError(f"Could not write outputs to {run_dir}: {e}", stage="write") from e

    log.info(
        "analysis_finished",
        fitted=len(per_entity.fits),
        failed=len(per_entity.failures),
        pooled_r2=round(pooled.r2(), 4),
    )
    return result
