"""
Pytest configuration and shared fixtures for the test suite.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src/ to Python path so the package imports without installation
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))


@pytest.fixture(autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.WARNING,  # Reduce noise during tests
        format="%(name)s - %(levelname)s - %(message)s",
    )


@pytest.fixture
def square_basin() -> dict:
    """A roughly 2 km by 2 km basin FeatureCollection around (40, -80)."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [
                        [[-80.01, 39.99], [-80.01, 40.01], [-79.99, 40.01], [-79.99, 39.99], [-80.01, 39.99]]
                    ],
                },
                "properties": {"source": "nldi", "comid": "4487566"},
            }
        ],
    }
