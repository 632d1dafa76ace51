"""
Shared pytest fixtures for the helm-pusher test suite.

Provides a small chart directory on disk (laid out like ``helm create``
output, with one sub-chart), the template loaded from it, and a factory for
run configurations pointed at a non-routable registry URL. Nothing here
touches the network or needs the helm binary.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from helm_pusher.chart import ChartTemplate, load_template
from helm_pusher.config import FailurePolicy, PusherConfig
from tests.helpers import REGISTRY_URL, write_chart


@pytest.fixture
def chart_dir(tmp_path) -> Path:
    """A chart directory with templates, schema, lock file and one sub-chart."""
    return write_chart(tmp_path)


@pytest.fixture
def template(chart_dir) -> ChartTemplate:
    """The chart template loaded from ``chart_dir``."""
    return load_template(chart_dir)


@pytest.fixture
def make_config():
    """
    Factory fixture for run configurations.

    Defaults are small and fast: a short report interval so the progress
    thread exits quickly, and a fixed seed for reproducible identities.

    Example:
        def test_something(make_config):
            config = make_config(versions=10, routines=2)
    """

    def _make_config(**overrides) -> PusherConfig:
        values = {
            "url": REGISTRY_URL,
            "charts": 10,
            "versions": 50,
            "routines": 5,
            "policy": FailurePolicy.FAIL_FAST,
            "report_interval": 0.05,
            "seed": 1234,
        }
        values.update(overrides)
        return PusherConfig(**values)

    return _make_config
