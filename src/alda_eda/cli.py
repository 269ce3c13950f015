"""Command-line interface for the longitudinal EDA pipeline.

Usage:
    alda-eda run --config configs/tolerance.yaml
    alda-eda run --config base.yaml --config local.yaml --fitter ols -v
    alda-eda reshape --config configs/tolerance.yaml --output person_period.csv
    alda-eda describe --config configs/tolerance.yaml
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from alda_eda import __version__

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    help="Exploratory analysis and per-entity regression for longitudinal data.",
    invoke_without_command=True,
)

ConfigOption = Annotated[
    list[Path],
    typer.Option(
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML config file (repeat to layer overrides)",
    ),
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")
]


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
    ),
) -> None:
    """Longitudinal EDA pipeline."""
    if version:
        typer.echo(f"alda-eda version {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _load(config_paths: list[Path], verbose: bool, log_file: Optional[Path] = None):
    from alda_eda.config.loader import load_config
    from alda_eda.utils.logging import setup_pipeline_logging

    setup_pipeline_logging(verbose=verbose, log_file=log_file)
    return load_config(config_paths)


@app.command("run")
def run(
    config: ConfigOption,
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Override outputs.run_dir"
    ),
    fitter: Optional[str] = typer.Option(
        None, "--fitter", help="Override model.fitter ('bayes' or 'ols')"
    ),
    num_chains: Annotated[Optional[int], typer.Option(min=1, help="Override MCMC chains")] = None,
    num_samples: Annotated[
        Optional[int], typer.Option(min=10, help="Override post-warmup samples per chain")
    ] = None,
    num_warmup: Annotated[
        Optional[int], typer.Option(min=10, help="Override warmup iterations per chain")
    ] = None,
    max_workers: Annotated[
        Optional[int], typer.Option(min=1, help="Fit entities on this many threads")
    ] = None,
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="JSON log file"),
    verbose: VerboseOption = False,
) -> None:
    """Fit per-entity and pooled models and write the summary tables."""
    from alda_eda.config.schema import ModelConfig, RunnerConfig
    from alda_eda.pipelines.analysis import run_analysis
    from alda_eda.pipelines.errors import PipelineError
    from alda_eda.reporting.tables import create_coefficient_table

    model_overrides = {
        "fitter": fitter,
        "num_chains": num_chains,
        "num_samples": num_samples,
        "num_warmup": num_warmup,
    }
    model_overrides = {k: v for k, v in model_overrides.items() if v is not None}
    try:
        cfg = _load(config, verbose, log_file)
        if model_overrides:
            model = ModelConfig.model_validate({**cfg.model.model_dump(), **model_overrides})
            cfg = cfg.model_copy(update={"model": model})
        if max_workers is not None:
            runner = RunnerConfig.model_validate({**cfg.runner.model_dump(), "max_workers": max_workers})
            cfg = cfg.model_copy(update={"runner": runner})
    except (OSError, ValueError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1)

    try:
        result = run_analysis(cfg, output_dir=output_dir)
    except PipelineError as e:
        logger.error(str(e))
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    typer.echo(
        f"Fitted {len(result.per_entity.fits)} entities "
        f"({len(result.per_entity.failures)} failed)"
    )
    typer.echo(f"Pooled model: {result.pooled.spec.describe()} (n={result.pooled.n_obs})")
    table = create_coefficient_table(
        result.pooled, hdi_prob=cfg.summary.hdi_prob, apply_precision=True
    )
    typer.echo(table.to_string())
    if verbose:
        typer.echo(result.pooled.summary_text())
    for path in result.written:
        typer.echo(f"  wrote {path}")


@app.command("reshape")
def reshape(
    config: ConfigOption,
    output: Path = typer.Option(..., "--output", "-o", help="Person-period CSV to write"),
    verbose: VerboseOption = False,
) -> None:
    """Convert the configured person-level table to person-period format."""
    from alda_eda.data.ingest import load_person_level
    from alda_eda.data.reshape import TableReshaper
    from alda_eda.io.writers import write_csv
    from alda_eda.pipelines.errors import PipelineError, StageError

    try:
        cfg = _load(config, verbose)
    except (OSError, ValueError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1)
    try:
        wide, _ = load_person_level(cfg.dataset, cfg.table)
        long = TableReshaper.from_config(cfg.table).to_long(wide)
        try:
            write_csv(long, output)
        except OSError as e:
            raise StageError(f"Could not write {output}: {e}", stage="write") from e
    except PipelineError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=e.exit_code)
    typer.echo(f"Wrote {len(long)} person-period rows to {output}")


@app.command("describe")
def describe(
    config: ConfigOption,
    verbose: VerboseOption = False,
) -> None:
    """Print per-wave descriptives and the between-wave correlation matrix."""
    from alda_eda.data.descriptives import describe_by_time, wave_correlations
    from alda_eda.data.ingest import load_person_level
    from alda_eda.data.reshape import TableReshaper
    from alda_eda.data.validation import value_columns
    from alda_eda.pipelines.errors import PipelineError

    try:
        cfg = _load(config, verbose)
    except (OSError, ValueError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1)
    try:
        wide, _ = load_person_level(cfg.dataset, cfg.table)
        reshaper = TableReshaper.from_config(cfg.table)
        long = reshaper.to_long(wide)
    except PipelineError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    typer.echo(describe_by_time(long, reshaper.time_column, reshaper.outcome_column).to_string())
    typer.echo("")
    typer.echo(wave_correlations(wide, value_columns(wide, cfg.table)).to_string())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
