"""Pipeline exception hierarchy for error handling and exit codes.

This module defines a hierarchy of exceptions for analysis failures, each
with a specific exit code for CLI integration. Reshape errors abort the
whole reshape call; per-entity fit errors are collected by the grouped
runner rather than raised; UnknownCoefficient is a contract violation and
is never caught by the pipeline.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base exception for pipeline failures.

    All pipeline-specific errors inherit from this class, enabling
    consistent error handling and exit codes.

    Attributes:
        message: Human-readable error description.
        stage: Name of the pipeline stage where error occurred (optional).
        exit_code: Process exit code for CLI integration.

    Example:
        >>> raise PipelineError("Something went wrong", stage="reshape")
        PipelineError: [reshape] Something went wrong
    """

    def __init__(
        self,
        message: str,
        stage: str = "",
        exit_code: int = 1,
    ) -> None:
        self.message = message
        self.stage = stage
        self.exit_code = exit_code
        super().__init__(str(self))

    def __str__(self) -> str:
        """Format error with stage prefix if available."""
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ModelFitFailure(PipelineError):
    """External model-fitting collaborator failed.

    Raised when a fit function cannot produce a handle:
    - Sampler or solver raised an exception
    - Fit exceeded the caller-supplied timeout
    - Non-finite estimates

    Exit code: 2
    """

    def __init__(self, message: str, stage: str = "fit", exit_code: int = 2) -> None:
        super().__init__(message, stage=stage, exit_code=exit_code)


class ConvergenceError(ModelFitFailure):
    """MCMC convergence failure (R-hat, divergences).

    Exit code: 2
    """


class DataValidationError(PipelineError):
    """Input data validation failure.

    Raised when input data fails validation checks:
    - Missing required columns
    - Duplicate entity ids in the person-level table
    - Non-numeric wave values

    Exit code: 3
    """

    def __init__(self, message: str, stage: str = "", exit_code: int = 3) -> None:
        super().__init__(message, stage=stage, exit_code=exit_code)


class MalformedColumnName(DataValidationError):
    """A value column matched the prefix but its suffix is not a time index."""

    def __init__(self, column: str, prefix: str) -> None:
        self.column = column
        self.prefix = prefix
        super().__init__(
            f"Column '{column}' matches prefix '{prefix}' but suffix "
            f"'{column[len(prefix):]}' is not an integer time index",
            stage="reshape",
        )


class DuplicateTimeForEntity(DataValidationError):
    """The same (entity id, time) pair appears more than once in a long table."""

    def __init__(self, pairs: list[tuple[Any, Any]]) -> None:
        self.pairs = pairs
        shown = ", ".join(f"({eid!r}, {t!r})" for eid, t in pairs[:5])
        more = f" and {len(pairs) - 5} more" if len(pairs) > 5 else ""
        super().__init__(
            f"Duplicate (id, time) pairs in long table: {shown}{more}",
            stage="reshape",
        )


class InsufficientData(DataValidationError):
    """A partition has fewer usable observations than the model requires."""

    def __init__(self, n_obs: int, n_required: int, entity: Any = None) -> None:
        self.n_obs = n_obs
        self.n_required = n_required
        self.entity = entity
        who = f"entity {entity!r}: " if entity is not None else ""
        super().__init__(
            f"{who}{n_obs} usable observations, model needs at least {n_required}",
            stage="fit",
        )


class StageError(PipelineError):
    """General stage execution error.

    Raised for stage-specific failures that don't fit other categories:
    - File I/O errors during stage
    - Pooled model failure

    Exit code: 4
    """

    def __init__(self, message: str, stage: str = "") -> None:
        super().__init__(message, stage=stage, exit_code=4)


class UnknownCoefficient(PipelineError, KeyError):
    """Requested coefficient is absent from the fitted model.

    This is a programmer error (asking for a coefficient the model
    specification never contained), not an input-data problem.

    Exit code: 5
    """

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Unknown coefficient '{name}'; model has {self.available}",
            stage="summary",
            exit_code=5,
        )
