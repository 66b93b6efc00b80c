"""
History processing utilities for MCMC output.

This module provides functions for:
- Stacking per-chain sample matrices into one (n_draws, n_chains, n_params) array
- Pooling every chain's post-warm-up rows into one SampleMatrix
- Applying additional burn-in to a stacked history
- Summarizing posterior draws (mean, sd, central interval)
"""

from typing import Dict, Sequence

import numpy as np

from .error_handling import ShapeMismatchError

import logging
logger = logging.getLogger('mhensemble')


def chain_samples(chain) -> np.ndarray:
    """SampleMatrix of a Chain, or the array itself if one is passed."""
    samples = chain.samples if hasattr(chain, 'samples') else np.asarray(chain, dtype=np.float64)
    if samples.ndim != 2:
        raise ShapeMismatchError(f"Sample matrix must be 2-D, got shape {samples.shape}")
    return samples


def stack_histories(chains: Sequence) -> np.ndarray:
    """
    Stack post-warm-up samples into the layout diagnostics use.

    Chains of unequal length (e.g. after cancellation) are truncated to the
    shortest one.

    Args:
        chains: Chains or 2-D sample matrices (n_draws, n_params)

    Returns:
        history: (n_draws, n_chains, n_params)

    Raises:
        ShapeMismatchError: If the chains disagree on the parameter count
    """
    if not chains:
        raise ValueError("No chains provided")

    matrices = [chain_samples(c) for c in chains]
    n_params = matrices[0].shape[1]
    for i, m in enumerate(matrices):
        if m.shape[1] != n_params:
            raise ShapeMismatchError(
                f"Chain {i} has {m.shape[1]} parameters, expected {n_params}",
                model_index=i,
            )

    n_draws = min(m.shape[0] for m in matrices)
    if any(m.shape[0] != n_draws for m in matrices):
        logger.info(f"Truncating chains to common length {n_draws}")

    return np.stack([m[:n_draws] for m in matrices], axis=1)


def pooled_samples(chains: Sequence) -> np.ndarray:
    """
    Concatenate every chain's post-warm-up rows in chain order.

    Returns:
        SampleMatrix (total_draws, n_params)
    """
    if not chains:
        raise ValueError("No chains provided")
    return np.concatenate([chain_samples(c) for c in chains], axis=0)


def apply_burnin(history: np.ndarray, n_discard: int) -> np.ndarray:
    """
    Drop the first `n_discard` draws of a stacked history.

    Args:
        history: (n_draws, n_chains, n_params)
        n_discard: Leading draws to drop

    Returns:
        Filtered history (same structure, fewer draws)
    """
    if n_discard < 0:
        raise ValueError(f"n_discard must be >= 0, got {n_discard}")
    if n_discard >= history.shape[0]:
        raise ValueError(
            f"n_discard ({n_discard}) would drop every draw ({history.shape[0]} available)"
        )
    logger.info(f"Burn-in: dropped {n_discard} draws, kept {history.shape[0] - n_discard}")
    return history[n_discard:]


def summarize_samples(samples: np.ndarray, prob: float = 0.89) -> Dict[str, np.ndarray]:
    """
    Per-parameter posterior summary.

    Args:
        samples: SampleMatrix (n_draws, n_params)
        prob: Mass of the central interval

    Returns:
        Dict with 'mean', 'sd', 'lower', 'upper' arrays of shape (n_params,)
    """
    if not 0.0 < prob < 1.0:
        raise ValueError(f"prob must be in (0, 1), got {prob}")
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim != 2 or samples.shape[0] < 2:
        raise ShapeMismatchError(f"Need a 2-D matrix with >= 2 rows, got shape {samples.shape}")

    tail = (1.0 - prob) / 2.0
    lower, upper = np.quantile(samples, [tail, 1.0 - tail], axis=0)
    return {
        'mean': np.mean(samples, axis=0),
        'sd': np.std(samples, axis=0, ddof=1),
        'lower': lower,
        'upper': upper,
    }
