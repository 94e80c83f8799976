from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure(config):
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
