"""Shared fixtures: small KML and CSV documents."""

import sys

import pytest
import yaml
from loguru import logger

from ops.config_loader import Config

KML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n<kml xmlns="http://www.opengis.net/kml/2.2"><Document>'
KML_FOOTER = "</Document></kml>"


def kml_document(*placemarks: str, extra: str = "") -> str:
    return KML_HEADER + extra + "".join(placemarks) + KML_FOOTER


def placemark(name=None, pid=None, geometry=None, body: str = "") -> str:
    attr = f' id="{pid}"' if pid else ""
    name_xml = f"<name>{name}</name>" if name is not None else ""
    if geometry is None:
        geometry = "<Point><coordinates>21.62,47.53,0</coordinates></Point>"
    return f"<Placemark{attr}>{name_xml}{body}{geometry}</Placemark>"


@pytest.fixture
def north_south_kml() -> str:
    """North has no id but shares its name with a geometry-less placemark S1."""
    return kml_document(
        placemark(
            name="North",
            geometry="<Polygon><outerBoundaryIs><LinearRing><coordinates>"
            "21.60,47.54 21.64,47.54 21.64,47.56 21.60,47.54"
            "</coordinates></LinearRing></outerBoundaryIs></Polygon>",
        ),
        placemark(
            name="South",
            pid="S2",
            geometry="<LineString><coordinates>21.60,47.50 21.65,47.51</coordinates></LineString>",
        ),
        '<Placemark id="S1"><name>North</name></Placemark>',
    )


@pytest.fixture
def metrics_csv() -> str:
    return "id,revenue,cost\nS1,100,40\nS2,200,150"


@pytest.fixture
def config(tmp_path) -> Config:
    """Config backed by a temporary YAML file so outputs land in tmp_path."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump({"project_name": "Test Overlay", "output": {"html": "out/map.html"}})
    )
    return Config(str(config_path))


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI replaces loguru sinks; restore a plain stderr sink afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")
