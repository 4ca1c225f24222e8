"""Configuration management."""

from .loader import get_config, reload_config, ConfigLoader
from .schema import Config, LoggingConfig, PipelineConfig

__all__ = [
    "get_config",
    "reload_config",
    "ConfigLoader",
    "Config",
    "LoggingConfig",
    "PipelineConfig",
]
