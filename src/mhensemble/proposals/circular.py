"""
Circular Step Proposal for MCMC Sampling

Discrete nearest-neighbour move on a ring of integer positions
[low, low + 1, ..., high].

Proposal: x' = wrap(x + s), s = +1 or -1 with probability 1/2 each
where:
    - wrap(high + 1) = low and wrap(low - 1) = high

Hastings ratio: 0 (symmetric proposal on the ring)

This is the kernel of the classic island-hopping example: a walker moves
one island clockwise or counter-clockwise and the last island neighbours
the first.
"""

from ..mcmc.types import State, make_state


class CircularStepProposal:
    """
    +/-1 step on the integer ring [low, high].

    Args:
        low: Smallest position (inclusive)
        high: Largest position (inclusive), must be > low
    """

    log_hastings_ratio = 0.0

    def __init__(self, low: int = 1, high: int = 10):
        if int(low) != low or int(high) != high:
            raise ValueError(f"low and high must be integers, got {low!r}, {high!r}")
        if low >= high:
            raise ValueError(f"low ({low}) must be < high ({high})")
        self.low = int(low)
        self.high = int(high)

    @property
    def n_positions(self) -> int:
        return self.high - self.low + 1

    def wrap(self, value: float) -> float:
        """Map any integer position back onto the ring."""
        return float((int(round(value)) - self.low) % self.n_positions + self.low)

    def step_from(self, position: float, direction: int) -> float:
        """Position reached from `position` after one step in `direction` (+1/-1)."""
        return self.wrap(position + direction)

    def propose(self, current: State, rng) -> State:
        """
        Move the scalar position one step left or right on the ring.

        Args:
            current: Current state of shape (1,)
            rng: RandomSource owned by the calling chain

        Returns:
            Proposed state of shape (1,)
        """
        if current.shape != (1,):
            raise ValueError(f"CircularStepProposal expects a scalar state, got shape {current.shape}")
        return make_state(self.step_from(current[0], rng.sign()))

    def __repr__(self):
        return f"CircularStepProposal(low={self.low}, high={self.high})"
