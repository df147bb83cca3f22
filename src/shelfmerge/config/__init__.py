"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_float, optional_env_var
from .errors import ConfigurationError
from .merge import MergeConfig, get_merge_config
from .storage import StorageConfig, get_storage_config

__all__ = [
    "ConfigurationError",
    "MergeConfig",
    "StorageConfig",
    "env_flag",
    "env_float",
    "get_merge_config",
    "get_storage_config",
    "optional_env_var",
]
