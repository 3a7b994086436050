import os
import sys

import numpy as np
import pytest

# Flat layout: make the project root importable for local runs
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


@pytest.fixture
def energies() -> np.ndarray:
    """Small energy grid with points inside and outside the gap."""
    return np.array([0.5, 2.0])


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


def random_spin(rng: np.random.Generator, scale: float, shape=()) -> np.ndarray:
    """Random complex 2x2 matrices with entries of magnitude ~scale."""
    size = tuple(shape) + (2, 2)
    return scale * (rng.standard_normal(size) + 1j * rng.standard_normal(size))
