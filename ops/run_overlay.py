#!/usr/bin/env python3
"""
KML Metrics Overlay - Command Line Entry Point

Loads a KML document and a CSV metrics file, joins them by identifier and
writes an interactive HTML map where every feature is colored by the
selected metric.

Usage:
    python -m ops.run_overlay --kml regions.kml --csv metrics.csv
    python -m ops.run_overlay --kml regions.kml --csv metrics.csv --metric cost
    python -m ops.run_overlay --kml regions.kml --center 47.53 21.63 --zoom 11 --theme voyager
    python -m ops.run_overlay --kml regions.kml --csv metrics.csv --verbose
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from loguru import logger

from analysis.map_overlay import save_overlay_map
from ops.app_state import AppState
from ops.config_loader import Config
from processing.errors import ConfigurationError, ParseError, ParseErrorKind
from processing.join_resolver import summarize_matches

DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
COMPACT_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"

# Level of the active stderr sink, set by setup_logging
_log_level = "INFO"


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> str:
    """
    Replace the loguru sinks with one stderr sink at the requested level.

    Args:
        verbose: If True, log at DEBUG
        enable_trace: If True, log at TRACE with backtraces and variable dumps

    Returns:
        The level name that is now active
    """
    global _log_level
    _log_level = "TRACE" if enable_trace else ("DEBUG" if verbose else "INFO")

    logger.remove()
    logger.add(
        sys.stderr,
        format=DETAILED_FORMAT if (verbose or enable_trace) else COMPACT_FORMAT,
        level=_log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    if _log_level != "INFO":
        logger.debug(f"🔧 Logging at {_log_level} level")
    return _log_level


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Log a fatal error, with the full traceback in TRACE mode.

    Args:
        error: The exception that occurred
        context: Additional context about where the error occurred
    """
    if _log_level == "TRACE":
        logger.opt(exception=error).trace(f"💥 Error context: {context}")

    logger.critical(f"💥 {context}")
    logger.critical(f"{type(error).__name__}: {error}")


def _read_text(path: Path) -> str:
    logger.debug(f"  📄 Reading {path}")
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(ParseErrorKind.MALFORMED, f"{path.name} is not UTF-8 text ({e.reason})") from e


@click.command()
@click.option("--kml", "kml_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="KML document with placemarks")
@click.option("--csv", "csv_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="CSV with id, revenue and cost columns")
@click.option("--metric", type=click.Choice(["revenue", "cost"]), help="Metric driving the colors (default from config)")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output HTML file (default from config)")
@click.option("--center", nargs=2, type=float, metavar="LAT LNG", help="Initial map center")
@click.option("--zoom", type=float, help="Initial zoom level")
@click.option("--theme", type=str, help="Tile theme key (positron, darkMatter, voyager, osm)")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="Configuration file path")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option("--trace", is_flag=True, help="Enable TRACE level logging for deep debugging")
@click.option("--log-file", type=str, help="Also log to specified file")
def cli(
    kml_path: Optional[Path],
    csv_path: Optional[Path],
    metric: Optional[str],
    output: Optional[Path],
    center: Optional[Tuple[float, float]],
    zoom: Optional[float],
    theme: Optional[str],
    config_file: Optional[str],
    verbose: bool,
    trace: bool,
    log_file: Optional[str],
) -> None:
    """
    Color KML features by CSV metrics and save an interactive map.

    \b
    Examples:
      python -m ops.run_overlay --kml regions.kml --csv metrics.csv
      python -m ops.run_overlay --kml regions.kml --csv metrics.csv --metric cost -o cost.html
    """
    log_level = setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    logger.info("🗺️ KML Metrics Overlay")

    try:
        config = Config(config_file)
        config.print_config_summary()
        state = AppState(config)
    except (OSError, ConfigurationError) as e:
        handle_critical_error(e, "Configuration error")
        sys.exit(1)

    kml_path = kml_path or config.get_input_path("kml")
    csv_path = csv_path or config.get_input_path("csv")
    if kml_path is None:
        logger.critical("❌ No KML document given (use --kml or input_files.kml)")
        sys.exit(1)

    try:
        state.load_kml(_read_text(kml_path))
        if csv_path is not None:
            state.load_csv(_read_text(csv_path))
        if metric:
            state.select_metric(metric)
        if center:
            state.set_center(*center)
        if zoom is not None:
            state.set_zoom(zoom)
        if theme:
            state.select_theme(theme)
    except ParseError as e:
        handle_critical_error(e, f"Could not parse input ({e.kind.name})")
        sys.exit(1)
    except (OSError, ConfigurationError) as e:
        handle_critical_error(e, "Invalid input")
        sys.exit(1)

    snapshot = state.snapshot
    if snapshot.has_records:
        coverage = summarize_matches(snapshot.collection, snapshot.index)
        logger.info(
            f"🔗 Matched {len(coverage['matched'])} of {len(snapshot.collection)} features "
            f"({len(coverage['unused_records'])} CSV rows unused)"
        )
        logger.info(f"🎨 Coloring by {state.selected_metric}, range: {state.metric_range()}")

    saved = save_overlay_map(state, output)
    logger.success(f"🎉 Done: {saved}")


if __name__ == "__main__":
    cli()
