"""
MCMC Subpackage - Core Metropolis-Hastings implementation.

This package contains the core sampling logic:
- backend: Multi-chain orchestrator (ChainRunner)
- sampling: Acceptance ratio and the single-chain Chain loop
- config: Configuration, kernels and per-chain random sources
- diagnostics: Convergence diagnostics (R-hat, ESS, divergences)
- types: Core data structures (State, RunParams, DiagnosticReport)
- utils: Config defaults
"""

# Import types first (needed by other modules)
from .types import State, make_state, DensityMode, RunParams, DiagnosticReport

from .sampling import Chain, acceptance_ratio, evaluate_target
from .backend import ChainRunner
from .config import (
    configure_run,
    build_kernel,
    gen_rng_keys,
    make_random_sources,
)
from .diagnostics import (
    evaluate,
    compute_rhat,
    compute_ess,
    print_rhat_summary,
    print_acceptance_summary,
)

__all__ = [
    # Main entry points
    'ChainRunner',
    'Chain',
    # Types
    'State',
    'make_state',
    'DensityMode',
    'RunParams',
    'DiagnosticReport',
    # Sampling
    'acceptance_ratio',
    'evaluate_target',
    # Config
    'configure_run',
    'build_kernel',
    'gen_rng_keys',
    'make_random_sources',
    # Diagnostics
    'evaluate',
    'compute_rhat',
    'compute_ess',
    'print_rhat_summary',
    'print_acceptance_summary',
]
