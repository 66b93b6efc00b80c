"""
MCMC Backend - Multi-chain Orchestration.

This module provides ChainRunner, which creates N independent chains, runs
them (optionally on a thread pool), and hands back the finished chains in
chain-id order. The implementation is split across several modules:

- types: Data structures (State, RunParams, DiagnosticReport)
- config: Configuration, kernels and per-chain random sources
- sampling: Acceptance ratio and the Chain transition loop
- diagnostics: Convergence diagnostics
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import build_kernel, configure_run, make_random_sources
from .sampling import Chain
from .types import DensityMode, make_state
from ..error_handling import ConfigurationError, _is_int, diagnose_sampler_issues, print_diagnostics
from ..history_processing import stack_histories

import logging
logger = logging.getLogger('mhensemble')

__all__ = [
    'ChainRunner',
    'validate_run_inputs',
]


def validate_run_inputs(n_chains: int, iterations: int, warm_up: int, starts: Sequence) -> None:
    """
    Validate run() arguments before any chain is created.

    Starting states must each be a scalar or a 1-D sequence, all of the same
    length.

    Raises:
        ConfigurationError: Naming the first offending argument
    """
    for field, value in (('n_chains', n_chains), ('iterations', iterations), ('warm_up', warm_up)):
        if not _is_int(value):
            raise ConfigurationError(f"{field} must be an integer, got {value!r}", field=field)
    if n_chains < 1:
        raise ConfigurationError(f"n_chains must be >= 1, got {n_chains}", field='n_chains')
    if iterations <= 0:
        raise ConfigurationError(f"iterations must be > 0, got {iterations}", field='iterations')
    if warm_up < 0:
        raise ConfigurationError(f"warm_up must be >= 0, got {warm_up}", field='warm_up')
    if warm_up >= iterations:
        raise ConfigurationError(
            f"warm_up ({warm_up}) must be < iterations ({iterations})", field='warm_up'
        )
    if len(starts) != n_chains:
        raise ConfigurationError(
            f"Expected {n_chains} starting states, got {len(starts)}", field='starts'
        )

    dim = None
    for i, start in enumerate(starts):
        try:
            values = np.asarray(start, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Starting state {i} is not numeric: {e}", field='starts') from e
        if values.ndim > 1:
            raise ConfigurationError(
                f"Starting state {i} must be a scalar or 1-D, got shape {values.shape}", field='starts'
            )
        if dim is None:
            dim = values.size
        elif values.size != dim:
            raise ConfigurationError(
                f"Starting state {i} has {values.size} parameters, expected {dim}", field='starts'
            )


class ChainRunner:
    """
    Runs independent Metropolis-Hastings chains against one target.

    Each chain gets its own RandomSource derived from `rng_seed`, so a run is
    reproducible regardless of thread scheduling. Chains never share mutable
    state; the only synchronization point is the join after all of them
    finish.

    Args:
        target_fn: fn(state) -> float, log or raw density per `density_mode`
        kernel: Proposal kernel shared by all chains (kernels are stateless)
        density_mode: DensityMode.LOG or DensityMode.RATIO
        divergence_threshold: Log-target jump that flags an iteration
        rng_seed: Seed for the per-chain random sources
        max_workers: Thread pool size; 1 runs chains sequentially, None lets
            the executor decide
    """

    def __init__(self, target_fn, kernel, density_mode=DensityMode.LOG,
                 divergence_threshold: Optional[float] = None,
                 rng_seed: int = 42, max_workers: Optional[int] = None):
        self.target_fn = target_fn
        self.kernel = kernel
        self.density_mode = DensityMode(density_mode)
        self.divergence_threshold = divergence_threshold
        self.rng_seed = rng_seed
        self.max_workers = max_workers
        # One event per run() call; cancel() reaches every run in progress
        self._lock = threading.Lock()
        self._active_events = set()
        self._last_event = None

    @classmethod
    def from_config(cls, run_config: Dict[str, Any], target_fn) -> 'ChainRunner':
        """
        Build a runner from a configuration dict.

        The iteration settings ('iterations', 'warm_up', 'n_chains') are
        validated here too, but still passed explicitly to run().
        """
        user_config, run_params = configure_run(run_config)
        return cls(
            target_fn,
            build_kernel(user_config),
            density_mode=run_params.DENSITY_MODE,
            divergence_threshold=run_params.DIVERGENCE_THRESHOLD,
            rng_seed=run_params.RNG_SEED,
            max_workers=run_params.MAX_WORKERS,
        )

    def cancel(self) -> None:
        """Ask every chain of the active run(s) to stop before its next iteration."""
        with self._lock:
            for event in self._active_events:
                event.set()

    @property
    def cancelled(self) -> bool:
        """Whether the most recently started run was cancelled."""
        with self._lock:
            return self._last_event is not None and self._last_event.is_set()

    def _build_chains(self, n_chains: int, warm_up: int, starts: Sequence) -> List[Chain]:
        states = [make_state(s) for s in starts]
        sources = make_random_sources(self.rng_seed, n_chains)
        return [
            Chain(
                chain_id=i,
                target_fn=self.target_fn,
                kernel=self.kernel,
                rng=sources[i],
                start=states[i],
                density_mode=self.density_mode,
                divergence_threshold=self.divergence_threshold,
                warm_up=warm_up,
            )
            for i in range(n_chains)
        ]

    def run(self, n_chains: int, iterations: int, warm_up: int, starts: Sequence) -> List[Chain]:
        """
        Run `n_chains` chains for `iterations` steps each.

        Args:
            n_chains: Number of independent chains
            iterations: Transitions per chain (warm-up included)
            warm_up: Leading states excluded from each chain's samples
            starts: One starting state per chain

        Returns:
            Chains ordered by chain id (0, 1, 2, ...)

        Raises:
            ConfigurationError: If the arguments are inconsistent or the
                starting states differ in dimensionality
        """
        validate_run_inputs(n_chains, iterations, warm_up, starts)

        # Registered before construction so cancel() during start-up is kept
        cancel_event = threading.Event()
        with self._lock:
            self._active_events.add(cancel_event)
            self._last_event = cancel_event

        try:
            chains = self._build_chains(n_chains, warm_up, starts)

            logger.info(f"--- MCMC RUN: {n_chains} chain(s) x {iterations} iterations "
                        f"({warm_up} warm-up) ---")
            start_time = time.perf_counter()

            def run_one(chain):
                return chain.run(iterations, cancel_event=cancel_event)

            if self.max_workers == 1 or n_chains == 1:
                for chain in chains:
                    run_one(chain)
            else:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    futures = [executor.submit(run_one, chain) for chain in chains]
                    # result() re-raises anything the target function raised
                    chains = [future.result() for future in futures]
        finally:
            with self._lock:
                self._active_events.discard(cancel_event)

        wall_time = time.perf_counter() - start_time
        self._log_summary(chains, wall_time)
        return chains

    def _log_summary(self, chains: List[Chain], wall_time: float) -> None:
        rates = np.array([c.acceptance_rate for c in chains])
        logger.info("--- MCMC Run Summary ---")
        logger.info(f"  Total Wall Time: {timedelta(seconds=int(wall_time))} ({wall_time:.2f}s)")
        logger.info(f"  Acceptance Mean: {np.mean(rates):.1%}  Min: {np.min(rates):.1%}  "
                    f"Max: {np.max(rates):.1%}")
        n_cancelled = sum(c.cancelled for c in chains)
        if n_cancelled:
            logger.warning(f"  {n_cancelled} chain(s) cancelled; partial histories returned")

        print_diagnostics(diagnose_sampler_issues(stack_histories(chains), rates))
