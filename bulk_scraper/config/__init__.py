"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, read_url_list
from .models import (
    DEFAULT_STRIP_TAGS,
    ExtractConfig,
    FetchConfig,
    GlobalConfig,
    OutputConfig,
    PoolConfig,
)

__all__ = [
    "DEFAULT_STRIP_TAGS",
    "ConfigLocator",
    "ConfigRepository",
    "ExtractConfig",
    "FetchConfig",
    "GlobalConfig",
    "OutputConfig",
    "PoolConfig",
    "read_url_list",
]
