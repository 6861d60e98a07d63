"""Shared fixtures; keeps the package importable when run from a checkout."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
PARENT = ROOT.parent
path_str = str(PARENT)
if path_str not in sys.path:
    sys.path.insert(0, path_str)

import numpy as np
import pytest

from paramsim.config import EngineConfig
from paramsim.resolution import make_context


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(random_seed=7, use_parallel=False)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


@pytest.fixture
def context(rng, config):
    return make_context(rng, config)
