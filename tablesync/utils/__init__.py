"""Shared utilities for configuration and logging"""

from tablesync.utils.config_loader import ConfigLoader, ConfigurationError
from tablesync.utils.logging_config import configure_logging, get_logger

__all__ = ["ConfigLoader", "ConfigurationError", "configure_logging", "get_logger"]
