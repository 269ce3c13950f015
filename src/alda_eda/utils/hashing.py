"""Content hashing for loaded tables."""

import hashlib

import pandas as pd


def hash_dataframe(df: pd.DataFrame, index: bool = True) -> str:
    """SHA256 of a DataFrame's column names and values.

    Row values go through ``pd.util.hash_pandas_object`` so NaN and dtypes
    hash consistently; column names are hashed too, so renaming a wave
    column changes the digest. Remote sources have no local file to hash,
    which is why the parsed table is used.

    Example:
        >>> len(hash_dataframe(pd.DataFrame({"a": [1, 2, 3]})))
        64
    """
    digest = hashlib.sha256()
    digest.update("\x1f".join(map(str, df.columns)).encode("utf-8"))
    digest.update(pd.util.hash_pandas_object(df, index=index).to_numpy().tobytes())
    return digest.hexdigest()
