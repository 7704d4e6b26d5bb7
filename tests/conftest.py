import os
from pathlib import Path

import pytest

# Test directory -> marker applied to every test collected from it
_LAYER_MARKERS = {
    "domain": "domain",
    "application": "application",
    "bdd": "application",
    "integration": "integration",
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Sets PROTEAN_ENV before the settlement domain is imported, so logging
    and settings pick up the test environment. Log files are never written
    during a test run.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.pop("SETTLEMENT_LOG_DIR", None)


def pytest_collection_modifyitems(config, items):
    """Mark tests by the layer directory they live in."""
    for item in items:
        parts = Path(item.fspath).parts
        layer = next((_LAYER_MARKERS[p] for p in parts if p in _LAYER_MARKERS), None)
        if layer is None:
            continue

        item.add_marker(getattr(pytest.mark, layer))
        # API round trips are the slowest part of the suite
        if layer == "integration" and not any(m.name == "fast" for m in item.iter_markers()):
            item.add_marker(pytest.mark.slow)
