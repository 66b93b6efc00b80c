"""
Random Walk Proposal for MCMC Sampling

Isotropic (or axis-scaled) Gaussian random walk for continuous parameter
spaces.

Proposal: x' ~ N(x_current, diag(step_size^2))
where:
    - step_size is a scalar or a per-coordinate vector, all > 0

Hastings ratio: 0 (symmetric proposal, q(x'|x) = q(x|x'))

Useful as:
    - The default kernel for low-dimensional continuous targets
    - A baseline when tuning more elaborate kernels
"""

import numpy as np

from ..mcmc.types import State, make_state


class RandomWalkProposal:
    """
    Gaussian random walk: perturb every coordinate with independent noise.

    Args:
        step_size: Noise standard deviation, scalar or one per coordinate
    """

    log_hastings_ratio = 0.0

    def __init__(self, step_size=1.0):
        step = np.array(step_size, dtype=np.float64)
        if step.ndim > 1 or step.size == 0:
            raise ValueError(f"step_size must be a scalar or 1-D, got shape {step.shape}")
        if not np.all(np.isfinite(step)) or np.any(step <= 0):
            raise ValueError(f"step_size must be > 0, got {step_size!r}")
        step.setflags(write=False)
        self.step_size = step

    def propose(self, current: State, rng) -> State:
        """
        Draw a candidate state centered on `current`.

        Args:
            current: Current state (dim,)
            rng: RandomSource owned by the calling chain

        Returns:
            Proposed state (dim,)
        """
        noise = rng.normal(current.shape[0])
        return make_state(current + noise * self.step_size)

    def __repr__(self):
        return f"RandomWalkProposal(step_size={self.step_size.tolist()})"
