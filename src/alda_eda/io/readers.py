"""Input readers for data loading."""

from pathlib import Path

import pandas as pd


def read_table(
    source: str | Path,
    delimiter: str = ",",
    encoding: str = "utf-8-sig",
    **kwargs,
) -> pd.DataFrame:
    """
    Read a delimited-text table from a local path or URL.

    Args:
        source: File path or http(s) URL (pandas fetches URLs directly)
        delimiter: Field separator (default comma)
        encoding: Encoding to use (default utf-8-sig handles BOM)
        **kwargs: Additional arguments passed to pd.read_csv

    Returns:
        DataFrame with data from the source
    """
    return pd.read_csv(source, sep=delimiter, encoding=encoding, **kwargs)
