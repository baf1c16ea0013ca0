"""
Configuration Loader for the School Zone Explorer

This module provides a centralized way to load and access configuration
settings from a config.yaml file, falling back to built-in defaults for
anything the file does not set.

Usage:
    from zone_ops import Config

    config = Config()
    aliases = config.get_zip_aliases()
    top_n = config.get_engine_setting('rank_top_n')
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger


class Config:
    """Configuration manager for the school zone explorer."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "grouping": {"zip_aliases": ["Zip", "ZIP", "zipcode"]},
        "fields": {
            "female": "Female",
            "male": "Male",
            "population": "pop",
            "school_count": "Schl_Cn",
            "ratio": "Stdnt_R",
            "grades": ["Pre_K", "KG", "Grade_1", "Grade_2", "Grade_3", "Grade_4", "Grade_5"],
        },
        "engine": {"rank_top_n": 10, "page_size": 10, "batch_size": 1000},
        "cache": {"path": "data/cache/zone_explorer.sqlite", "max_age_hours": 24},
        "data": {"directory": "data", "base_name": "TXelementary"},
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable ZONE_EXPLORER_CONFIG
                        2. config.yaml in current directory
                        and otherwise runs on DEFAULTS alone.
            project_root_override: Directory relative paths are resolved against
        """
        if config_file is None:
            env_config = os.environ.get("ZONE_EXPLORER_CONFIG")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
                logger.debug("Using config.yaml from current directory")

        self.data: Dict[str, Any] = {}
        self.config_path: Optional[Path] = None

        if config_file is not None:
            self.config_path = Path(config_file).resolve()
            if not self.config_path.exists():
                raise FileNotFoundError(f"Config file not found: {self.config_path}")

            logger.debug(f"Loading config from: {self.config_path}")
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        else:
            logger.debug("No config.yaml found, using built-in defaults")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
        elif self.config_path is not None:
            self.project_root = self.config_path.parent
        else:
            self.project_root = Path.cwd()

        logger.debug(f"Project root: {self.project_root}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with intelligent defaults.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        # Try to get from config first
        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        # If not found in config, try defaults
        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return value

    def get_zip_aliases(self) -> List[str]:
        """Get the ordered ZIP alias keys used for grouping."""
        aliases = self.get("grouping.zip_aliases")
        if not isinstance(aliases, list) or not aliases:
            raise ValueError("grouping.zip_aliases must be a non-empty list")
        return [str(alias) for alias in aliases]

    def get_field_name(self, field_key: str) -> str:
        """Get a core attribute name (female, male, population, ...)."""
        result = self.get(f"fields.{field_key}")
        if isinstance(result, str):
            return result
        raise ValueError(f"Field name not found or not a string: {field_key}")

    def get_engine_setting(self, setting_key: str) -> Any:
        """Get engine setting with intelligent defaults."""
        return self.get(f"engine.{setting_key}")

    def get_cache_path(self) -> Path:
        """Get absolute path to the SQLite feature cache."""
        return self.project_root / self.get("cache.path")

    def get_cache_max_age_hours(self) -> float:
        """Get the cache freshness window in hours."""
        return float(self.get("cache.max_age_hours"))

    def get_data_path(self, suffix: str) -> Path:
        """Get path to a dataset component, e.g. get_data_path('.shp')."""
        directory = self.project_root / self.get("data.directory")
        return directory / f"{self.get('data.base_name')}{suffix}"

    def print_config_summary(self) -> None:
        """Log a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Config file: {self.config_path or 'built-in defaults'}")
        logger.debug(f"Project root: {self.project_root}")
        logger.debug(f"ZIP aliases: {self.get_zip_aliases()}")
        logger.debug(f"Rank top N: {self.get_engine_setting('rank_top_n')}")
        logger.debug(f"Page size: {self.get_engine_setting('page_size')}")
        logger.debug(f"Cache: {self.get_cache_path()} ({self.get_cache_max_age_hours()}h)")


# Convenience function for easy importing
def load_config(config_file: Optional[str] = None) -> Config:
    """
    Load configuration from file.

    Args:
        config_file: Path to configuration file

    Returns:
        Config instance
    """
    return Config(config_file)
