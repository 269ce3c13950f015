"""Configuration schema and YAML loading."""

from alda_eda.config.loader import load_config
from alda_eda.config.schema import AppConfig

__all__ = ["AppConfig", "load_config"]
