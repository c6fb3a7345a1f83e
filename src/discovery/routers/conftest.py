import os
from unittest.mock import patch

import pytest

from ..config import Settings
from ..lib.cache import CacheManager, MemoryCacheStore
from ..main import app
from ..metrics import MetricsCollector

API_KEY = "testkey"


@pytest.fixture(autouse=True)
def app_state(sources):
    """Point the app at fresh in-process stores and a known API key."""
    metrics = MetricsCollector()
    app.state.settings = Settings()
    app.state.metrics = metrics
    app.state.sources = sources
    app.state.cache = CacheManager(MemoryCacheStore(), metrics)
    with patch.dict(os.environ, {"API_KEY": API_KEY}):
        yield app.state
    for name in ("settings", "metrics", "sources", "cache"):
        try:
            delattr(app.state, name)
        except AttributeError:
            pass
