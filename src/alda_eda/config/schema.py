"""Config schema definitions."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class DatasetConfig(BaseModel):
    source: str
    delimiter: str = ","
    encoding: str = "utf-8-sig"


class TableSchemaConfig(BaseModel):
    """Column layout of the person-level (wide) table."""

    id_column: str = "id"
    fixed_columns: list[str] = Field(default_factory=list)
    value_prefix: str = "tol"
    time_base: int = 0
    time_column: str = "time"
    value_column: str | None = None

    @model_validator(mode="after")
    def validate_columns(self) -> "TableSchemaConfig":
        """Reject schemas whose id column doubles as a covariate."""
        if self.id_column in self.fixed_columns:
            raise ValueError(
                f"id_column '{self.id_column}' must not be listed in fixed_columns"
            )
        if not self.value_prefix:
            raise ValueError("value_prefix must be a non-empty string")
        return self

    @property
    def long_value_column(self) -> str:
        return self.value_column or self.value_prefix


class PriorsConfig(BaseModel):
    intercept_scale: float = 2.5
    beta_scale: float = 2.5
    sigma_scale: float = 1.0
    autoscale: bool = True


class ModelConfig(BaseModel):
    fitter: Literal["bayes", "ols"] = "bayes"
    response: str = "tol"
    predictors: list[str] = Field(default_factory=lambda: ["time"])
    interactions: list[tuple[str, str]] = Field(default_factory=list)
    pooled_predictors: list[str] | None = None
    pooled_interactions: list[tuple[str, str]] | None = None
    num_warmup: int = 1000
    num_samples: int = 1000
    num_chains: int = 4
    seed: int = 0
    target_accept: float = 0.8
    max_tree_depth: int = 10
    chain_method: Literal["sequential", "vectorized", "parallel"] = "sequential"
    priors: PriorsConfig = PriorsConfig()


class SummaryConfig(BaseModel):
    coefficients: list[str] = Field(default_factory=lambda: ["Intercept", "time"])
    derived: list[Literal["r2", "sigma2"]] = Field(default_factory=lambda: ["r2", "sigma2"])
    hdi_prob: float = 0.94


class RunnerConfig(BaseModel):
    max_workers: int = Field(default=1, ge=1)
    timeout_seconds: float | None = None


class OutputsConfig(BaseModel):
    run_dir: str = "outputs"
    summary_csv: str = "per_entity_summary.csv"
    pooled_csv: str = "pooled_coefficients.csv"
    long_csv: str = "person_period.csv"
    # summary and pooled tables; the person-period table is always CSV
    formats: list[Literal["csv", "tex"]] = Field(default_factory=lambda: ["csv"], min_length=1)


class AppConfig(BaseModel):
    dataset: DatasetConfig
    table: TableSchemaConfig = TableSchemaConfig()
    model: ModelConfig = ModelConfig()
    summary: SummaryConfig = SummaryConfig()
    runner: RunnerConfig = RunnerConfig()
    outputs: OutputsConfig = OutputsConfig()
