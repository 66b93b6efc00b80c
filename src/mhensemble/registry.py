"""
Target Registration System

This module provides a registry for target densities that the sampler can
run against. The modeling layer compiles its likelihood and prior
statements into a closure once, registers it here, and the sampler only
ever calls that closure.

Example usage:
    from mhensemble import register_target

    def my_log_density(state):
        return -0.5 * float(state @ state)

    register_target('my_model', {
        'density': my_log_density,
        'initial_state': lambda rng_seed: [0.0, 0.0],
        # optional:
        'density_mode': 'log',   # or 'ratio' for unnormalized densities
    })
"""

from .mcmc.types import DensityMode

_REGISTRY = {}


def register_target(name, config):
    """
    Register a target density with the sampler.

    Args:
        name: Unique target identifier string (e.g., 'islands_10')
        config: Dict containing target functions with keys:

            Required:
                density: fn(state) -> float
                    Log density (mode 'log') or unnormalized density
                    (mode 'ratio'). Must return -inf / 0 outside the
                    support rather than raise.

                initial_state: fn(rng_seed) -> sequence of float
                    Starting state for a chain.

            Optional:
                density_mode: 'log' (default) or 'ratio'

    Raises:
        ValueError: If required keys are missing or name is already registered.
    """
    if name in _REGISTRY:
        raise ValueError(f"Target '{name}' is already registered")

    required_keys = ['density', 'initial_state']
    missing = [k for k in required_keys if k not in config]
    if missing:
        raise ValueError(f"Missing required keys for target '{name}': {missing}")

    config = dict(config)
    config['density_mode'] = DensityMode(config.get('density_mode', 'log'))
    _REGISTRY[name] = config


def get_target(name):
    """
    Get a registered target configuration by name.

    Raises:
        KeyError: If the target is not registered
    """
    if name not in _REGISTRY:
        available = list(_REGISTRY.keys())
        raise KeyError(f"Unknown target '{name}'. Available: {available}")
    return _REGISTRY[name]


def list_targets():
    """List all registered target names."""
    return list(_REGISTRY.keys())


def clear_registry():
    """
    Clear all registered targets. Primarily for testing.
    """
    _REGISTRY.clear()
