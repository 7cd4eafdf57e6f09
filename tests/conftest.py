"""
Pytest configuration and fixtures for VectoDB tests
"""

import numpy as np
import pytest

from vectodb.core.config.settings import Settings
from vectodb.storage.monitoring import index_monitor

DIM = 8


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Test settings with temporary paths and small buffers"""
    return Settings(
        ENVIRONMENT="testing",
        WORK_DIR=str(tmp_path / "settings_db"),
        VECTOR_DIMENSION=DIM,
        INITIAL_CAPACITY=16,
        EXHAUST_THRESHOLD=10,
        BUILD_INTERVAL_SEC=0.01,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def make_vectors(rng):
    """Factory for random float32 batches of the test dimension"""

    def _make(n: int, dim: int = DIM) -> np.ndarray:
        return rng.random((n, dim), dtype=np.float32)

    return _make


@pytest.fixture
def work_dir(tmp_path):
    """Store directory for a single test"""
    path = tmp_path / "db"
    yield path
    index_monitor.reset_metrics(str(path.absolute()))
