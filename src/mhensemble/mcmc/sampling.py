"""
MCMC Sampling Functions.

Core sampling pieces for the Metropolis-Hastings sampler:
- evaluate_target: Call the target and map undefined values to "outside support"
- acceptance_ratio: r = exp(L(p) - L(c)) or f(p) / f(c)
- Chain: One Metropolis-Hastings trajectory with its own random source
"""

import math
from collections import namedtuple
from typing import Optional, Tuple

import numpy as np

from .types import DensityMode, State, make_state

import logging
logger = logging.getLogger('mhensemble')


# Outcome of one transition, before it is recorded into a chain
StepResult = namedtuple('StepResult', ['state', 'accepted', 'density', 'diverging'])


def evaluate_target(target_fn, state: State, mode: DensityMode) -> float:
    """
    Evaluate the target, sanitizing undefined values.

    NaN and +inf log densities become -inf; NaN, infinite or negative raw
    densities become 0. Either way the state is treated as outside the
    support and any move into it is rejected.
    """
    value = float(target_fn(state))
    if mode == DensityMode.LOG:
        if math.isnan(value) or value == math.inf:
            return -math.inf
        return value
    if not math.isfinite(value) or value < 0.0:
        return 0.0
    return value


def acceptance_ratio(proposed: float, current: float, mode: DensityMode) -> float:
    """
    Metropolis acceptance ratio for a symmetric proposal.

    Args:
        proposed: Sanitized target value at the proposal
        current: Sanitized target value at the current state
        mode: DensityMode.LOG (values are log densities) or
              DensityMode.RATIO (values are unnormalized densities)

    Returns:
        r in [0, inf]. 0 when the proposal is outside the support; inf when
        only the current state is.
    """
    if mode == DensityMode.LOG:
        if proposed == -math.inf:
            return 0.0
        if current == -math.inf:
            return math.inf
        with np.errstate(over='ignore'):
            return float(np.exp(proposed - current))

    if proposed <= 0.0:
        return 0.0
    if current <= 0.0:
        return math.inf
    return proposed / current


def log_density_change(proposed: float, current: float, mode: DensityMode) -> Optional[float]:
    """Log-scale change of the target between two states, None if undefined."""
    if mode == DensityMode.LOG:
        if math.isfinite(proposed) and math.isfinite(current):
            return proposed - current
        return None
    if proposed > 0.0 and current > 0.0:
        return math.log(proposed) - math.log(current)
    return None


class Chain:
    """
    One Metropolis-Hastings trajectory.

    The chain holds its current state, an append-only history of every
    recorded state (warm-up included), per-iteration divergence flags and
    target values, and acceptance statistics. Only its own sampling loop
    mutates it.

    Args:
        chain_id: Position of this chain in its run
        target_fn: fn(state) -> float, log or raw density per `density_mode`
        kernel: Proposal kernel with propose(state, rng)
        rng: RandomSource owned exclusively by this chain
        start: Initial state
        density_mode: DensityMode.LOG or DensityMode.RATIO
        divergence_threshold: Flag an iteration when the proposal changes the
            log target by more than this; None disables detection
        warm_up: Number of leading recorded states excluded from `samples`
    """

    def __init__(self, chain_id: int, target_fn, kernel, rng, start,
                 density_mode: DensityMode = DensityMode.LOG,
                 divergence_threshold: Optional[float] = None,
                 warm_up: int = 0):
        self.chain_id = chain_id
        self.target_fn = target_fn
        self.kernel = kernel
        self.rng = rng
        self.density_mode = DensityMode(density_mode)
        self.divergence_threshold = divergence_threshold
        self.warm_up = warm_up

        self.current = make_state(start)
        self.dim = self.current.shape[0]
        self.current_density = evaluate_target(target_fn, self.current, self.density_mode)

        self._history = []
        self._diverging = []
        self._densities = []
        self.acceptance_count = 0
        self.iteration_count = 0
        self.cancelled = False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, current: State, current_density: float) -> StepResult:
        proposal = make_state(self.kernel.propose(current, self.rng), dim=self.dim)
        proposal_density = evaluate_target(self.target_fn, proposal, self.density_mode)

        r = acceptance_ratio(proposal_density, current_density, self.density_mode)
        u = self.rng.uniform()
        # NaN compares False, so it rejects
        accepted = u < min(1.0, r)

        diverging = False
        if self.divergence_threshold is not None:
            change = log_density_change(proposal_density, current_density, self.density_mode)
            diverging = change is not None and abs(change) > self.divergence_threshold

        if accepted:
            return StepResult(proposal, True, proposal_density, diverging)
        return StepResult(current, False, current_density, diverging)

    def step(self, current: State) -> Tuple[State, bool]:
        """
        One Metropolis-Hastings transition from `current`.

        Does not record anything; see advance() for the recording step.

        Returns:
            (next_state, accepted)
        """
        current = make_state(current, dim=self.dim)
        if np.array_equal(current, self.current):
            density = self.current_density
        else:
            density = evaluate_target(self.target_fn, current, self.density_mode)
        result = self._transition(current, density)
        return result.state, result.accepted

    def advance(self) -> bool:
        """
        Transition from the current state and record the result.

        Returns:
            True if the proposal was accepted
        """
        result = self._transition(self.current, self.current_density)
        self.current = result.state
        self.current_density = result.density
        self._history.append(result.state)
        self._diverging.append(result.diverging)
        self._densities.append(result.density)
        self.iteration_count += 1
        if result.accepted:
            self.acceptance_count += 1
        return result.accepted

    def run(self, iterations: int, warm_up: Optional[int] = None, cancel_event=None) -> 'Chain':
        """
        Simulate `iterations` steps.

        Warm-up steps are simulated and recorded like any other, but are
        excluded from `samples`. The cancel event is checked before every
        iteration; a cancelled chain keeps what it already recorded.

        Args:
            iterations: Number of transitions to run
            warm_up: Leading recorded states to exclude (defaults to the
                value given at construction)
            cancel_event: Object with is_set(), e.g. threading.Event

        Returns:
            self
        """
        if warm_up is not None:
            self.warm_up = warm_up
        for _ in range(iterations):
            if cancel_event is not None and cancel_event.is_set():
                self.cancelled = True
                logger.debug(f"Chain {self.chain_id} cancelled after {self.iteration_count} iterations")
                break
            self.advance()
        return self

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def history(self) -> Tuple[State, ...]:
        """Every recorded state, warm-up included, in order."""
        return tuple(self._history)

    @property
    def samples(self) -> np.ndarray:
        """Post-warm-up SampleMatrix (n_draws, dim)."""
        kept = self._history[self.warm_up:]
        if not kept:
            return np.empty((0, self.dim), dtype=np.float64)
        return np.stack(kept)

    @property
    def diverging(self) -> np.ndarray:
        """Per-iteration divergence flags, warm-up included."""
        return np.array(self._diverging, dtype=bool)

    @property
    def sample_diverging(self) -> np.ndarray:
        """Divergence flags aligned with `samples`."""
        return np.array(self._diverging[self.warm_up:], dtype=bool)

    @property
    def log_densities(self) -> np.ndarray:
        """Sanitized target value of every recorded state."""
        return np.array(self._densities, dtype=np.float64)

    @property
    def acceptance_rate(self) -> float:
        if self.iteration_count == 0:
            return 0.0
        return self.acceptance_count / self.iteration_count

    def __repr__(self):
        return (f"Chain(id={self.chain_id}, iterations={self.iteration_count}, "
                f"warm_up={self.warm_up}, acceptance={self.acceptance_rate:.1%})")
