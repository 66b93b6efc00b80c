"""
Error Handling and Validation Utilities for the Sampler and Ensemble Combiner

This module provides the exception taxonomy, run-configuration validation,
and post-run diagnostic tools for MCMC sampling.

Structural problems (bad configuration, bad weights, bad shapes) fail fast
with one of the exceptions below. Per-iteration numerical anomalies never
raise; the sampling loop absorbs them as rejected steps.
"""

from typing import Any, Dict, Optional, Sequence

import numpy as np

import logging
logger = logging.getLogger('mhensemble')

# Acceptance rates below this are reported as a warning
LOW_ACCEPTANCE_RATE = 0.10


class MHEnsembleError(Exception):
    """Base class for all errors raised by mhensemble."""


class ConfigurationError(MHEnsembleError, ValueError):
    """Invalid run parameters, raised before any simulation starts."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidWeightError(MHEnsembleError, ValueError):
    """Ensemble weight vector is negative, non-finite, or all zero."""

    def __init__(self, message: str, model_index: Optional[int] = None,
                 weight: Optional[float] = None):
        super().__init__(message)
        self.model_index = model_index
        self.weight = weight


class ShapeMismatchError(MHEnsembleError, ValueError):
    """Sample matrices or states disagree on their dimensionality."""

    def __init__(self, message: str, model_index: Optional[int] = None):
        super().__init__(message)
        self.model_index = model_index


class InsufficientChainsError(MHEnsembleError):
    """
    R-hat was requested with fewer than two chains.

    The effective sample size is still well defined, so the partially filled
    DiagnosticReport (with r_hat=None) is attached as `partial_report`.
    """

    def __init__(self, message: str, n_chains: int, partial_report=None):
        super().__init__(message)
        self.n_chains = n_chains
        self.partial_report = partial_report


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def validate_run_config(run_config: Dict[str, Any]) -> None:
    """
    Validates that a sampler run configuration is sensible.

    Every problem is collected so the user sees all of them at once; the
    first offending key is stored on the raised error as `field`.

    Args:
        run_config: Configuration dictionary (lowercase keys)

    Raises:
        ConfigurationError: If configuration is invalid
    """
    errors = []
    fields = []

    def fail(field, message):
        fields.append(field)
        errors.append(message)

    required_keys = ['iterations', 'warm_up', 'n_chains']
    for key in required_keys:
        if key not in run_config:
            fail(key, f"Missing required config key: '{key}'")

    iterations = run_config.get('iterations')
    if iterations is not None:
        if not _is_int(iterations):
            fail('iterations', f"iterations must be an integer, got {iterations!r}")
        elif iterations <= 0:
            fail('iterations', f"iterations must be > 0, got {iterations}")

    warm_up = run_config.get('warm_up')
    if warm_up is not None:
        if not _is_int(warm_up):
            fail('warm_up', f"warm_up must be an integer, got {warm_up!r}")
        elif warm_up < 0:
            fail('warm_up', f"warm_up must be >= 0, got {warm_up}")
        elif _is_int(iterations) and warm_up >= iterations:
            fail('warm_up', f"warm_up ({warm_up}) must be < iterations ({iterations})")

    n_chains = run_config.get('n_chains')
    if n_chains is not None:
        if not _is_int(n_chains):
            fail('n_chains', f"n_chains must be an integer, got {n_chains!r}")
        elif n_chains < 1:
            fail('n_chains', f"n_chains must be >= 1, got {n_chains}")

    if 'step_size' in run_config:
        step = np.asarray(run_config['step_size'], dtype=float)
        if step.size == 0 or not np.all(np.isfinite(step)) or np.any(step <= 0):
            fail('step_size', f"step_size must be > 0, got {run_config['step_size']!r}")

    threshold = run_config.get('divergence_threshold')
    if threshold is not None:
        if not np.isfinite(threshold) or threshold <= 0:
            fail('divergence_threshold',
                 f"divergence_threshold must be > 0, got {threshold!r}")

    if 'density_mode' in run_config:
        if str(run_config['density_mode']).lower() not in ('log', 'ratio'):
            fail('density_mode',
                 f"density_mode must be 'log' or 'ratio', got {run_config['density_mode']!r}")

    if 'proposal' in run_config:
        proposal = str(run_config['proposal']).lower()
        if proposal not in ('random_walk', 'circular'):
            fail('proposal',
                 f"proposal must be 'random_walk' or 'circular', got {run_config['proposal']!r}")
        elif proposal == 'circular':
            low, high = run_config.get('low'), run_config.get('high')
            if not (_is_int(low) and _is_int(high)):
                fail('low', "circular proposal requires integer 'low' and 'high'")
            elif low >= high:
                fail('low', f"low ({low}) must be < high ({high})")

    if 'rng_seed' in run_config and not _is_int(run_config['rng_seed']):
        fail('rng_seed', f"rng_seed must be an integer, got {run_config['rng_seed']!r}")

    max_workers = run_config.get('max_workers')
    if max_workers is not None and (not _is_int(max_workers) or max_workers < 1):
        fail('max_workers', f"max_workers must be a positive integer, got {max_workers!r}")

    rhat_threshold = run_config.get('rhat_threshold')
    if rhat_threshold is not None and not rhat_threshold >= 1.0:
        fail('rhat_threshold', f"rhat_threshold must be >= 1, got {rhat_threshold!r}")

    if errors:
        raise ConfigurationError(
            "Invalid run configuration:\n  " + "\n  ".join(errors),
            field=fields[0],
        )


def diagnose_sampler_issues(history: np.ndarray,
                            acceptance_rates: Optional[Sequence[float]] = None,
                            diagnostics: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Analyzes stacked chain history to identify common issues.

    Args:
        history: History array (n_draws, n_chains, n_params)
        acceptance_rates: Per-chain MH acceptance rates; NaN entries are skipped
        diagnostics: Existing diagnostics dict to extend. Entries already in
            its 'issues', 'warnings' and 'info' lists are kept.

    Returns:
        diagnostics: Dictionary with issues, warnings, and info
    """
    diagnostics = dict(diagnostics or {})
    for key in ('issues', 'warnings', 'info'):
        diagnostics[key] = list(diagnostics.get(key, []))

    history = np.asarray(history)
    if history.size == 0:
        diagnostics['issues'].append("History is empty - no post-warm-up draws recorded")
        return diagnostics

    if not np.all(np.isfinite(history)):
        diagnostics['issues'].append(
            "History contains NaN or Inf values - target returned non-finite states"
        )

    # A chain that repeated one state for every draw never moved
    stuck = np.flatnonzero(np.all(np.ptp(history, axis=0) == 0, axis=1))
    if stuck.size > 0:
        diagnostics['warnings'].append(
            f"{stuck.size} chain(s) appear stuck (no accepted moves): {stuck.tolist()}"
        )

    if acceptance_rates is not None:
        rates = np.asarray(acceptance_rates, dtype=np.float64)
        low = np.flatnonzero(np.isfinite(rates) & (rates < LOW_ACCEPTANCE_RATE))
        for i in low:
            diagnostics['warnings'].append(
                f"Chain {i}: acceptance rate {rates[i]:.1%} is below {LOW_ACCEPTANCE_RATE:.0%}"
            )

    diagnostics['info'].append(f"Total samples: {history.shape[0] * history.shape[1]}")
    diagnostics['info'].append(f"Number of chains: {history.shape[1]}")
    diagnostics['info'].append(f"Number of parameters: {history.shape[2]}")

    return diagnostics


def print_diagnostics(diagnostics: Dict[str, Any]) -> None:
    """Log diagnostics from diagnose_sampler_issues."""
    if diagnostics['issues']:
        logger.error("[ERROR] ISSUES:")
        for issue in diagnostics['issues']:
            logger.error(f"  - {issue}")

    if diagnostics['warnings']:
        logger.warning("[WARN] WARNINGS:")
        for warning in diagnostics['warnings']:
            logger.warning(f"  - {warning}")

    if diagnostics['info']:
        logger.info("[INFO] INFO:")
        for info in diagnostics['info']:
            logger.info(f"  - {info}")

    if not diagnostics['issues'] and not diagnostics['warnings']:
        logger.info("[OK] No issues detected")
