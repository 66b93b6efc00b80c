"""
Proposal Dispatch

Maps ProposalType values to kernel classes and builds kernels from the
lowercase settings used in run configurations.
"""

from enum import Enum

from .rand_walk import RandomWalkProposal
from .circular import CircularStepProposal


class ProposalType(Enum):
    """Available proposal kernels."""
    RANDOM_WALK = 'random_walk'   # Gaussian noise on every coordinate
    CIRCULAR = 'circular'         # +/-1 step on an integer ring

    def __str__(self):
        return self.value.replace('_', ' ').title()


PROPOSAL_REGISTRY = {
    ProposalType.RANDOM_WALK: RandomWalkProposal,
    ProposalType.CIRCULAR: CircularStepProposal,
}


def build_proposal(proposal_type, settings=None):
    """
    Construct a proposal kernel.

    Args:
        proposal_type: ProposalType or its string value
        settings: Dict of kernel settings. Recognized keys:
            random_walk: 'step_size'
            circular: 'low', 'high'
            Unknown keys are ignored.

    Returns:
        Proposal kernel instance
    """
    proposal_type = ProposalType(proposal_type)
    settings = settings or {}

    if proposal_type == ProposalType.CIRCULAR:
        return CircularStepProposal(low=settings.get('low', 1), high=settings.get('high', 10))
    return RandomWalkProposal(step_size=settings.get('step_size', 1.0))
