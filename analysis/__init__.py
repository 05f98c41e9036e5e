"""
Analysis package for the KML Metrics Overlay

Map rendering on top of the processing engine.
"""

from .map_overlay import render_overlay_map, save_overlay_map

__all__ = ["render_overlay_map", "save_overlay_map"]
