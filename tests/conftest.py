"""
Pytest configuration and shared fixtures for mhensemble tests.
"""

import pytest
import numpy as np

# Import the package before jax so 64-bit mode is configured first
import mhensemble  # noqa: F401
from mhensemble.registry import register_target, _REGISTRY
from mhensemble import test_targets


@pytest.fixture
def rng_seed():
    """Default RNG seed for reproducible tests."""
    return 42


@pytest.fixture
def basic_run_config():
    """Basic sampler configuration for tests."""
    return {
        'iterations': 1000,
        'warm_up': 200,
        'n_chains': 4,
        'step_size': 1.0,
        'rng_seed': 42,
    }


@pytest.fixture
def island_run_config():
    """Configuration for the island-hopping ring."""
    return {
        'iterations': 1000,
        'warm_up': 200,
        'n_chains': 4,
        'proposal': 'circular',
        'low': 1,
        'high': 10,
        'density_mode': 'ratio',
        'rng_seed': 7,
    }


@pytest.fixture
def register_test_targets():
    """
    Fixture to register test targets and clean up after test.

    Usage:
        def test_something(register_test_targets):
            # Test targets are now registered
            ...
    """
    original_registrations = {}
    for name, config in test_targets.TEST_TARGETS.items():
        if name in _REGISTRY:
            original_registrations[name] = _REGISTRY.pop(name)
        register_target(name, config)

    yield

    for name in test_targets.TEST_TARGETS.keys():
        if name in original_registrations:
            _REGISTRY[name] = original_registrations[name]
        elif name in _REGISTRY:
            del _REGISTRY[name]


class ScriptedRandomSource:
    """
    RandomSource stand-in that replays fixed draws.

    Lets a test dictate the proposal direction/noise and the acceptance
    uniform of every step.
    """

    def __init__(self, uniforms=(), normals=(), signs=()):
        self.uniforms = list(uniforms)
        self.normals = list(normals)
        self.signs = list(signs)

    def uniform(self):
        return self.uniforms.pop(0)

    def normal(self, size):
        out = np.array(self.normals[:size], dtype=np.float64)
        del self.normals[:size]
        return out

    def sign(self):
        return self.signs.pop(0)


def ar1_chains(n_chains, n_draws, phi, seed=0):
    """Stationary AR(1) chains, shape (n_draws, n_chains)."""
    rng = np.random.default_rng(seed)
    x = np.zeros((n_draws, n_chains))
    x[0] = rng.normal(size=n_chains) / np.sqrt(1 - phi ** 2)
    noise = rng.normal(size=(n_draws, n_chains))
    for t in range(1, n_draws):
        x[t] = phi * x[t - 1] + noise[t]
    return x


@pytest.fixture
def scripted_source():
    """The ScriptedRandomSource class, for tests that script every draw."""
    return ScriptedRandomSource


@pytest.fixture
def make_ar1():
    """The ar1_chains generator."""
    return ar1_chains
