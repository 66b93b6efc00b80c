"""
MCMC Data Structures and Type Definitions.

This module contains the core data structures shared by the sampler,
diagnostics and ensemble combiner:
- State / make_state: Read-only parameter vector
- DensityMode: How the target function is interpreted
- RunParams: Immutable run parameters
- DiagnosticReport: Convergence summary derived from a set of chains
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..error_handling import ShapeMismatchError

# A State is a read-only 1-D float64 array
State = np.ndarray


def make_state(values, dim: Optional[int] = None) -> State:
    """
    Build an immutable State from a scalar or sequence.

    Args:
        values: Scalar or 1-D sequence of parameter values
        dim: Expected dimensionality; checked when given

    Returns:
        Read-only float64 array of shape (dim,)

    Raises:
        ShapeMismatchError: If values are not 1-D or do not have `dim` entries
    """
    state = np.array(values, dtype=np.float64, copy=True)
    if state.ndim == 0:
        state = state.reshape(1)
    if state.ndim != 1:
        raise ShapeMismatchError(f"State must be 1-D, got shape {state.shape}")
    if dim is not None and state.shape[0] != dim:
        raise ShapeMismatchError(
            f"State dimensionality changed: expected {dim}, got {state.shape[0]}"
        )
    state.setflags(write=False)
    return state


class DensityMode(Enum):
    """
    Interpretation of the target function's return value.

    LOG:   f(state) = log p(state), -inf outside the support
    RATIO: f(state) = unnormalized p(state), 0 outside the support
    """
    LOG = 'log'
    RATIO = 'ratio'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class RunParams:
    """
    Immutable run parameters produced by configure_run().
    """
    ITERATIONS: int
    WARM_UP: int
    N_CHAINS: int
    RNG_SEED: int
    DENSITY_MODE: DensityMode = DensityMode.LOG
    DIVERGENCE_THRESHOLD: Optional[float] = None
    MAX_WORKERS: Optional[int] = None
    RHAT_THRESHOLD: float = 1.01

    @property
    def num_samples(self) -> int:
        """Post-warm-up rows each chain exposes."""
        return self.ITERATIONS - self.WARM_UP


@dataclass(frozen=True)
class DiagnosticReport:
    """
    Convergence summary for a set of chains.

    r_hat is None when fewer than two chains were supplied (only attached to
    InsufficientChainsError.partial_report in that case).
    """
    effective_sample_size: np.ndarray   # (n_params,) in [1, n_chains * n_draws]
    r_hat: Optional[np.ndarray]         # (n_params,) >= 1, inf for disjoint stuck chains
    divergence_count: int
    n_chains: int
    n_draws: int                        # Post-warm-up draws per chain used
    acceptance_rates: np.ndarray        # (n_chains,), NaN for bare sample matrices
    rhat_threshold: float = 1.01
    warnings: Tuple[str, ...] = ()

    @property
    def converged(self) -> bool:
        """True when every R-hat is finite and below the threshold."""
        if self.r_hat is None:
            return False
        return bool(np.all(np.isfinite(self.r_hat)) and np.all(self.r_hat <= self.rhat_threshold))

    def __eq__(self, other):
        if not isinstance(other, DiagnosticReport):
            return NotImplemented
        same_rhat = (
            (self.r_hat is None and other.r_hat is None)
            or (self.r_hat is not None and other.r_hat is not None
                and np.array_equal(self.r_hat, other.r_hat))
        )
        return (
            same_rhat
            and np.array_equal(self.effective_sample_size, other.effective_sample_size)
            and self.divergence_count == other.divergence_count
            and self.n_chains == other.n_chains
            and self.n_draws == other.n_draws
            and np.array_equal(self.acceptance_rates, other.acceptance_rates, equal_nan=True)
            and self.rhat_threshold == other.rhat_threshold
            and self.warnings == other.warnings
        )

    __hash__ = None
