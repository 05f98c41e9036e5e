"""
Configuration Loader for the KML Metrics Overlay

This module provides a centralized way to load and access configuration
settings from the config.yaml file. Every setting has a built-in default,
so a missing config file is not an error.

Usage:
    from ops.config_loader import Config

    config = Config()
    zoom = config.get_map_setting('zoom')
    theme = config.get_theme('positron')
    output = config.get_output_path('html')
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from processing.errors import ConfigurationError

CONFIG_ENV_VAR = "OVERLAY_CONFIG_PATH"
PACKAGE_CONFIG = Path(__file__).parent / "config.yaml"

CARTO_ATTRIBUTION = (
    '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors '
    '&copy; <a href="https://carto.com/attributions">CARTO</a>'
)


class Config:
    """Configuration manager for the overlay engine and its map shell."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "project_name": "KML Metrics Overlay",
        "description": "KML features colored by CSV revenue or cost",
        "metrics": {"default": "revenue"},
        "tabular": {"strict_duplicates": False},
        "map": {
            "center": [47.5316, 21.6273],  # Debrecen
            "zoom": 13,
            "min_zoom": 1,
            "max_zoom": 20,
            "theme": "positron",
        },
        "themes": {
            "positron": {
                "name": "Positron (Light)",
                "url": "https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png",
                "attribution": CARTO_ATTRIBUTION,
            },
            "darkMatter": {
                "name": "Dark Matter",
                "url": "https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}{r}.png",
                "attribution": CARTO_ATTRIBUTION,
            },
            "voyager": {
                "name": "Voyager",
                "url": "https://{s}.basemaps.cartocdn.com/rastertiles/voyager/{z}/{x}/{y}{r}.png",
                "attribution": CARTO_ATTRIBUTION,
            },
            "osm": {
                "name": "OpenStreetMap",
                "url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
                "attribution": '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors',
            },
        },
        "output": {"html": "html/overlay_map.html"},
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
                        1. Environment variable OVERLAY_CONFIG_PATH
                        2. config.yaml in current directory
                        3. ops/config.yaml next to this module
                        Built-in defaults are used when none exists.
            project_root_override: Override project root detection
        """
        if config_file is None:
            env_config = os.environ.get(CONFIG_ENV_VAR)
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif PACKAGE_CONFIG.exists():
                config_file = PACKAGE_CONFIG
                logger.debug("Using ops/config.yaml")
        elif not Path(config_file).exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        self.config_path: Optional[Path] = Path(config_file).resolve() if config_file else None

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        if self.config_path is None:
            logger.debug("No config.yaml found, using built-in defaults")
            self.data: Dict[str, Any] = {}
        else:
            logger.debug(f"Loading config from: {self.config_path}")
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}

        logger.debug(f"Project root: {self.project_root}")

    def _find_project_root(self) -> Path:
        """If config is in ops/, project root is its parent; otherwise the config directory."""
        if self.config_path is None:
            return Path.cwd()
        if self.config_path.parent.name == "ops":
            return self.config_path.parent.parent
        return self.config_path.parent

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with built-in defaults.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found anywhere

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return value

    def get_input_path(self, filename_key: str) -> Optional[Path]:
        """Full path to an input file listed under `input_files`, None if not configured."""
        relative_path = self.get(f"input_files.{filename_key}")
        if not relative_path:
            return None
        return self.project_root / relative_path

    def get_output_path(self, filename_key: str) -> Path:
        """Full path to an output file listed under `output`."""
        relative_path = self.get(f"output.{filename_key}")
        if not relative_path:
            raise ConfigurationError(f"Output file '{filename_key}' not found in config: output")
        return self.project_root / relative_path

    def get_map_setting(self, setting_key: str) -> Any:
        return self.get(f"map.{setting_key}")

    def get_default_metric(self) -> str:
        return str(self.get("metrics.default", "revenue"))

    def strict_duplicates(self) -> bool:
        return bool(self.get("tabular.strict_duplicates", False))

    def theme_keys(self) -> List[str]:
        return list(self.get("themes", {}).keys())

    def get_theme(self, theme_key: str) -> Dict[str, str]:
        """Tile theme settings (name, url, attribution)."""
        themes = self.get("themes", {})
        if theme_key not in themes:
            raise ConfigurationError(
                f"Unknown map theme '{theme_key}'; expected one of {', '.join(themes)}"
            )
        return themes[theme_key]

    def print_config_summary(self) -> None:
        """Log a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Description: {self.get('description', 'No description')}")
        logger.debug(f"Config file: {self.config_path or '<built-in defaults>'}")
        logger.debug(f"Default metric: {self.get_default_metric()}")
        logger.debug(f"Map center: {self.get_map_setting('center')} zoom {self.get_map_setting('zoom')}")
        logger.debug(f"Themes: {', '.join(self.theme_keys())}")
