"""
Sampler Configuration and Initialization.

This module handles setting up and validating run configurations:
- configure_run: Validate a config dict and freeze it into RunParams
- build_kernel: Construct the proposal kernel a config describes
- gen_rng_keys: Split a seed into independent per-chain JAX keys
- make_random_sources: Per-chain RandomSource objects for a run

All config keys use lowercase with underscores (e.g., 'n_chains', 'warm_up').
"""

from typing import Any, Dict, List, Tuple

import jax
import jax.random as random

from .types import DensityMode, RunParams
from .utils import clean_config
from ..error_handling import validate_run_config
from ..proposals import build_proposal
from ..random_source import RandomSource


def gen_rng_keys(rng_seed: int, n_chains: int) -> Tuple[Any, Any]:
    """Generate JAX random keys from seed.

    Returns:
        (master_key, chain_keys): master key and an (n_chains, 2) key array
    """
    mkey = jax.random.PRNGKey(rng_seed)
    master_key, chains_key = random.split(mkey, 2)
    chain_keys = random.split(chains_key, n_chains)
    return master_key, chain_keys


def make_random_sources(rng_seed: int, n_chains: int) -> List[RandomSource]:
    """One independent RandomSource per chain, reproducible from the seed."""
    _, chain_keys = gen_rng_keys(rng_seed, n_chains)
    return [RandomSource(chain_keys[i]) for i in range(n_chains)]


def configure_run(run_config: Dict[str, Any]) -> Tuple[Dict[str, Any], RunParams]:
    """
    Configure a sampler run.

    Args:
        run_config: Input configuration dict with keys like 'iterations',
            'warm_up', 'n_chains', 'step_size', 'rng_seed'

    Returns:
        user_config: Clean config dict with defaults filled in
        run_params: Frozen RunParams

    Raises:
        ConfigurationError: If any value is invalid
    """
    user_config = clean_config(run_config)
    validate_run_config(user_config)

    threshold = user_config['divergence_threshold']
    run_params = RunParams(
        ITERATIONS=int(user_config['iterations']),
        WARM_UP=int(user_config['warm_up']),
        N_CHAINS=int(user_config['n_chains']),
        RNG_SEED=int(user_config['rng_seed']),
        DENSITY_MODE=DensityMode(str(user_config['density_mode']).lower()),
        DIVERGENCE_THRESHOLD=None if threshold is None else float(threshold),
        MAX_WORKERS=user_config['max_workers'],
        RHAT_THRESHOLD=float(user_config['rhat_threshold']),
    )
    return user_config, run_params


def build_kernel(user_config: Dict[str, Any]):
    """Proposal kernel described by a cleaned config."""
    return build_proposal(str(user_config['proposal']).lower(), user_config)
