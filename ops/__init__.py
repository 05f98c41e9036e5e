"""
Operations package for the KML Metrics Overlay

This package centralizes the stateful shell around the engine:
- Configuration management
- Application state (loaded datasets, selected metric, map view)
- The command line entry point

The Config and AppState classes are exposed at the package level:
    from ops import AppState, Config
"""

from .app_state import AppState, DatasetSnapshot
from .config_loader import Config

__all__ = ["AppState", "Config", "DatasetSnapshot"]
