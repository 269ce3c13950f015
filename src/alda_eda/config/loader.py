"""Layered YAML config loading.

Files are merged left to right (later files win, nested sections merge key
by key), then ``$VAR`` / ``${VAR}`` references are expanded from the
environment and the result is validated into ``AppConfig``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from .schema import AppConfig

_UNRESOLVED = re.compile(r"\$\{?([A-Za-z_][A-Za-z0-9_]*)\}?")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _expand_env_vars(value: Any, unresolved: set[str]) -> Any:
    """Expand environment references in strings, collecting unset names."""
    if isinstance(value, dict):
        return {k: _expand_env_vars(v, unresolved) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(v, unresolved) for v in value]
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        # expandvars leaves unknown references in place
        unresolved.update(_UNRESOLVED.findall(expanded))
        return expanded
    return value


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def load_config(paths: str | Path | list[str | Path]) -> AppConfig:
    """Load one or more YAML files, later files overriding earlier ones.

    Raises:
        FileNotFoundError: A config file does not exist.
        ValueError: A file is not a mapping, an environment variable is
            unset, or validation fails (pydantic ``ValidationError``).
    """
    path_list = [paths] if isinstance(paths, (str, Path)) else list(paths)

    data: dict[str, Any] = {}
    for path in path_list:
        data = _deep_merge(data, _read_yaml(Path(path)))

    unresolved: set[str] = set()
    data = _expand_env_vars(data, unresolved)
    if unresolved:
        raise ValueError(f"Unset environment variables in config: {sorted(unresolved)}")
    return AppConfig(**data)
