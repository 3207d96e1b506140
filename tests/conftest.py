"""
Pytest fixtures for the analyst tests. External services are replaced by the
in-memory fakes from helpers.py; nothing here touches the network.
"""

from __future__ import annotations

import pytest

from helpers import FakeChain, FakeDirectory, FakeOwnership

from safe_analyst.config import get_settings
from safe_analyst.engine import RiskEngine
from safe_analyst.sdk import get_engine


@pytest.fixture
def make_engine():
    """Factory building a RiskEngine around fakes; unspecified collaborators get defaults."""

    def _make(transactions=(), *, directory=None, chain=None, ownership=None, **kwargs):
        return RiskEngine(
            directory or FakeDirectory(transactions),
            chain or FakeChain(),
            ownership or FakeOwnership(),
            **kwargs,
        )

    return _make


@pytest.fixture(autouse=True)
def _clear_caches():
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()
