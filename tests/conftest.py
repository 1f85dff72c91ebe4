import os
import sys

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from symalg.alg_types import Symbol, symbols  # noqa: E402
from symalg.alg_simplify import SymbolicSimplifier  # noqa: E402
from symalg.policy import AlgorithmPolicy  # noqa: E402


@pytest.fixture
def x():
    return Symbol.scalar("x")


@pytest.fixture
def xy():
    return symbols("x y")


@pytest.fixture
def matrices():
    return Symbol.matrix("A"), Symbol.matrix("B")


@pytest.fixture
def simplifier():
    return SymbolicSimplifier()


@pytest.fixture
def policy():
    return AlgorithmPolicy()


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)
