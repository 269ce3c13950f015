"""Analysis pipelines and the shared error hierarchy.

Only the error types are re-exported here; import the grouped runner and
the end-to-end analysis from their modules.
"""

from alda_eda.pipelines.errors import (
    ConvergenceError,
    DataValidationError,
    DuplicateTimeForEntity,
    InsufficientData,
    MalformedColumnName,
    ModelFitFailure,
    PipelineError,
    StageError,
    UnknownCoefficient,
)

__all__ = [
    "PipelineError",
    "ModelFitFailure",
    "ConvergenceError",
    "DataValidationError",
    "MalformedColumnName",
    "DuplicateTimeForEntity",
    "InsufficientData",
    "StageError",
    "UnknownCoefficient",
]
