"""
Operations package for the School Zone Explorer

This package centralizes the operational pieces around the analytics engine:
- Configuration management
- Logging setup
- The feature cache service
- The command-line interface

The Config class is exposed at the package level for convenient imports:
    from zone_ops import Config
"""

from .config_loader import Config
from .logging_config import configure_logging

__all__ = ["Config", "configure_logging"]
