"""
Proposal Kernels for Metropolis-Hastings Sampling

Every kernel exposes the same interface:

    kernel.propose(current_state, rng) -> proposed_state
    kernel.log_hastings_ratio          -> 0.0 for symmetric kernels

Kernels own no mutable state beyond their parameters (step size, domain
bounds); all randomness comes from the RandomSource passed by the chain.

To add a new proposal:
1. Create a new file in proposals/ with the kernel class
2. Add an enum value to ProposalType in dispatch.py
3. Add it to PROPOSAL_REGISTRY and build_proposal()
4. Export from this __init__.py
"""

from .rand_walk import RandomWalkProposal
from .circular import CircularStepProposal
from .dispatch import ProposalType, PROPOSAL_REGISTRY, build_proposal

__all__ = [
    'RandomWalkProposal',
    'CircularStepProposal',
    'ProposalType',
    'PROPOSAL_REGISTRY',
    'build_proposal',
]
