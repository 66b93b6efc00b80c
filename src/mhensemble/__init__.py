"""
mhensemble - Metropolis-Hastings Sampling and Weighted Model Ensembles

Public API:
    Sampling:
        ChainRunner - Run N independent chains against one target
        Chain - One Metropolis-Hastings trajectory
        RandomSource - Reproducible per-chain random stream
        RandomWalkProposal - Gaussian random-walk kernel
        CircularStepProposal - +/-1 step on an integer ring
        DensityMode - Target returns a log density or a raw density

    Diagnostics:
        evaluate - DiagnosticReport (ESS, R-hat, divergences) for chains
        compute_rhat - Gelman-Rubin R-hat on a stacked history
        compute_ess - Effective sample size on a stacked history

    Ensembles:
        combine - Merge per-model sample matrices by weight
        EnsembleCombiner / ModelWeight / EnsembleSample
        information_criterion_weights - Akaike-style weights from WAIC-like scores

    Targets:
        register_target - Register a target density
        get_target - Retrieve a registered target
        list_targets - List all registered targets

    Errors:
        ConfigurationError, InvalidWeightError, ShapeMismatchError,
        InsufficientChainsError

Example:
    from mhensemble import ChainRunner, CircularStepProposal, DensityMode, evaluate

    runner = ChainRunner(lambda s: s[0], CircularStepProposal(1, 10),
                         density_mode=DensityMode.RATIO, rng_seed=1)
    chains = runner.run(n_chains=4, iterations=1000, warm_up=200,
                        starts=[[10.0]] * 4)
    report = evaluate(chains)
"""
# CRITICAL: Import jax_config FIRST to set environment variables before JAX loads
from . import jax_config  # noqa: F401

from .error_handling import (
    MHEnsembleError,
    ConfigurationError,
    InvalidWeightError,
    ShapeMismatchError,
    InsufficientChainsError,
)
from .random_source import RandomSource
from .mcmc import (
    ChainRunner,
    Chain,
    State,
    make_state,
    DensityMode,
    RunParams,
    DiagnosticReport,
    acceptance_ratio,
    configure_run,
    evaluate,
    compute_rhat,
    compute_ess,
)
from .proposals import RandomWalkProposal, CircularStepProposal, ProposalType, build_proposal
from .ensemble import (
    combine,
    EnsembleCombiner,
    EnsembleSample,
    ModelWeight,
    information_criterion_weights,
)
from .history_processing import (
    stack_histories,
    pooled_samples,
    apply_burnin,
    summarize_samples,
)
from .registry import register_target, get_target, list_targets
