"""Raw data ingestion with validation and metadata."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pandas as pd
import structlog

from alda_eda.config.schema import DatasetConfig, TableSchemaConfig
from alda_eda.data.validation import validate_person_level
from alda_eda.io.readers import read_table
from alda_eda.pipelines.errors import StageError
from alda_eda.utils.hashing import hash_dataframe

log = structlog.get_logger()


@dataclass
class LoadMetadata:
    """Metadata about the loaded dataset."""

    source: str
    content_hash: str
    load_timestamp: str
    row_count: int
    column_count: int


def load_person_level(
    dataset: DatasetConfig,
    table: TableSchemaConfig,
    validate: bool = True,
) -> tuple[pd.DataFrame, LoadMetadata]:
    """
    Load the person-level table from a file path or URL.

    Args:
        dataset: Source location and parsing options
        table: Column layout used for validation
        validate: Whether to validate against the person-level schema

    Returns:
        Tuple of (DataFrame, LoadMetadata). The hash is computed from the
        parsed contents so remote sources are covered too.

    Raises:
        StageError: If the source cannot be read or parsed (stage "load")
        DataValidationError: If validation fails
    """
    try:
        df = read_table(dataset.source, delimiter=dataset.delimiter, encoding=dataset.encoding)
    except (OSError, pd.errors.ParserError) as e:
        raise StageError(f"Could not read {dataset.source}: {e}", stage="load") from e

    if validate:
        df = validate_person_level(df, table)

    metadata = LoadMetadata(
        source=dataset.source,
        content_hash=hash_dataframe(df),
        load_timestamp=datetime.now().isoformat(),
        row_count=len(df),
        column_count=len(df.columns),
    )
    log.info(
        "person_level_loaded",
        source=metadata.source,
        rows=metadata.row_count,
        columns=metadata.column_count,
        hash=metadata.content_hash[:12],
    )
    return df, metadata
