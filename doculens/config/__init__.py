"""Configuration module: exports Settings and load_config."""

from doculens.config.loader import load_config
from doculens.config.settings import Settings

__all__ = ["Settings", "load_config"]
