"""Pytest configuration for repository-relative imports."""

import os
import sys

import numpy as np
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

X_TOY = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
Y_TOY = np.array([1.1, 2.0, 2.9, 4.2, 4.8])


@pytest.fixture
def toy_xy():
    return X_TOY.copy(), Y_TOY.copy()


@pytest.fixture
def rng():
    return np.random.default_rng(20240101)
