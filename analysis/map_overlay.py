#!/usr/bin/env python3
"""
Interactive Overlay Map

Renders the loaded KML features on a Folium map, styled and annotated by the
presentation decisions of the engine. This module only draws: matching and
coloring are decided in `processing.presentation`.

Map contents:
- Tile layer from the selected theme
- One GeoJSON layer per feature with its style and popup
- View fitted to the bounds of the loaded features
- A small legend naming the metric driving the colors
"""

from pathlib import Path
from typing import Optional, Union

import folium
from loguru import logger
from shapely.geometry import mapping

from ops.app_state import AppState
from processing.classifier import DARK_ANCHOR, LIGHT_ANCHOR, NEUTRAL_COLOR

LEGEND_TEMPLATE = """
<div style="position: absolute; top: 12px; right: 12px; z-index: 1000;
            background: rgba(17, 24, 39, 0.9); color: #f9fafb; padding: 6px 10px;
            border-radius: 6px; font-size: 12px; box-shadow: 0 4px 10px rgba(0,0,0,0.25);">
    <div style="font-weight: 500; margin-bottom: 2px;">Color scheme</div>
    <div><span style="text-transform: capitalize;">{metric}</span>
         <span style="opacity: 0.8;">&middot; purple scale</span></div>
    <div style="height: 8px; margin-top: 4px; border-radius: 2px;
                background: linear-gradient(to right, {light}, {dark});"></div>
    <div style="margin-top: 4px; opacity: 0.8;">
        <span style="display: inline-block; width: 8px; height: 8px; background: {neutral};"></span>
        no data
    </div>
</div>
"""


def render_overlay_map(state: AppState) -> folium.Map:
    """
    Build a Folium map from the current application state.

    Args:
        state: Application state with the datasets and view settings

    Returns:
        folium.Map ready to save
    """
    logger.info("🗺️ Creating overlay map...")

    theme = state.config.get_theme(state.theme)
    m = folium.Map(
        location=list(state.center),
        zoom_start=state.zoom,
        tiles=None,
        prefer_canvas=True,
    )
    folium.TileLayer(tiles=theme["url"], attr=theme["attribution"], name=theme["name"]).add_to(m)

    snapshot = state.snapshot
    if snapshot.collection is not None:
        layer = folium.FeatureGroup(name="KML features")
        matched = 0
        for feature, presentation in zip(snapshot.collection, state.present()):
            style = presentation.style.to_leaflet()
            folium.GeoJson(
                data={
                    "type": "Feature",
                    "geometry": mapping(feature.geometry),
                    "properties": {"name": presentation.popup.feature_name},
                },
                style_function=lambda _feature, style=style: style,
                popup=folium.Popup(presentation.popup.to_html(), max_width=320),
            ).add_to(layer)
            matched += presentation.popup.matched
        layer.add_to(m)
        logger.debug(f"  📍 {matched}/{len(snapshot.collection)} features matched a CSV row")

        bounds = snapshot.collection.bounds()
        if bounds is not None:
            minx, miny, maxx, maxy = bounds
            m.fit_bounds([[miny, minx], [maxy, maxx]])
            logger.debug(f"  📍 Fitted view to bounds: {bounds}")

    if snapshot.has_records:
        legend = LEGEND_TEMPLATE.format(
            metric=state.selected_metric,
            light=LIGHT_ANCHOR.to_hex(),
            dark=DARK_ANCHOR.to_hex(),
            neutral=NEUTRAL_COLOR.to_hex(),
        )
        m.get_root().html.add_child(folium.Element(legend))

    return m


def save_overlay_map(state: AppState, output_path: Optional[Union[str, Path]] = None) -> Path:
    """Render and save the overlay map; defaults to the configured HTML output."""
    output_path = Path(output_path) if output_path else state.config.get_output_path("html")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    m = render_overlay_map(state)
    m.save(str(output_path))
    logger.success(f"  ✅ Overlay map saved: {output_path}")
    return output_path
