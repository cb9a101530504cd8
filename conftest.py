"""
Pytest configuration for the LEGv8 simulator test suite.

    python -m pytest                 # everything
    python -m pytest -m "not slow"   # skip the exhaustive bit-field sweeps
"""

import os
import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers",
        "slow: exhaustive sweeps over field widths and values")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Sessions read their defaults from the environment; keep tests hermetic
    for name in ("LEGSIM_MEM_WORDS", "LEGSIM_MAX_STEPS"):
        if name in os.environ:
            monkeypatch.delenv(name)
