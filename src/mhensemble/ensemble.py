"""
Ensemble Combination of Posterior Predictive Samples

Merges sample matrices from K independently fit models into one matrix whose
row composition follows a weight vector. Rows are not resampled at random:
the n output rows are partitioned into contiguous, weight-proportional
blocks in model order and each block is filled from its model's matrix.
The result is fully reproducible.

Allocation:
    count_i = round(w_i * n)
    model i fills rows [start_i, start_i + count_i)
    the last model with non-zero weight ends exactly at row n, absorbing
    any rounding surplus or deficit
    output row start_i + k is row (k mod rows_i) of model i's matrix, so a
    matrix wraps only when it is shorter than its block

Weights usually come from an information criterion (WAIC, PSIS-LOO);
information_criterion_weights() turns such scores into Akaike-style weights.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .error_handling import ConfigurationError, InvalidWeightError, ShapeMismatchError

import logging
logger = logging.getLogger('mhensemble')

# Weights whose sum is further than this from 1 are renormalized
WEIGHT_SUM_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ModelWeight:
    """Weight of one model in an ensemble."""
    model_id: str
    weight: float

    def __post_init__(self):
        if not np.isfinite(self.weight) or self.weight < 0:
            raise InvalidWeightError(
                f"Weight for model '{self.model_id}' must be finite and >= 0, got {self.weight}",
                weight=self.weight,
            )


@dataclass(frozen=True)
class EnsembleSample:
    """
    Combined posterior predictive samples.

    Fields:
        samples: (n, n_cols) read-only matrix
        model_ids: Model identifiers in input order
        weights: Normalized weights used for the allocation
        row_counts: Rows contributed by each model (sums to n)
        row_sources: Model index each output row was copied from
    """
    samples: np.ndarray
    model_ids: Tuple[str, ...]
    weights: np.ndarray
    row_counts: Tuple[int, ...]
    row_sources: np.ndarray

    @property
    def n_rows(self) -> int:
        return self.samples.shape[0]


def normalize_weights(weights: Sequence[float]) -> np.ndarray:
    """
    Validate a weight vector and rescale it to sum to 1.

    Raises:
        InvalidWeightError: If a weight is negative or non-finite, or all are zero
    """
    w = np.asarray(weights, dtype=np.float64)
    if w.ndim != 1 or w.size == 0:
        raise InvalidWeightError(f"Weights must be a non-empty 1-D sequence, got shape {w.shape}")

    for i, value in enumerate(w):
        if not np.isfinite(value):
            raise InvalidWeightError(f"Weight for model {i} is not finite: {value}",
                                     model_index=i, weight=float(value))
        if value < 0:
            raise InvalidWeightError(f"Weight for model {i} is negative: {value}",
                                     model_index=i, weight=float(value))

    total = float(np.sum(w))
    if total <= 0.0:
        raise InvalidWeightError("All ensemble weights are zero")

    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        logger.info(f"Ensemble weights sum to {total:.6g}; renormalizing")
    return w / total


def allocate_rows(weights: np.ndarray, n: int) -> List[Tuple[int, int]]:
    """
    Contiguous row range [start, end) for each model.

    Args:
        weights: Normalized weights
        n: Total number of output rows

    Returns:
        One (start, end) pair per model; zero-weight models get an empty
        range and the last non-zero-weight model ends at n.
    """
    counts = [int(round(w * n)) for w in weights]
    last = int(np.flatnonzero(weights > 0)[-1])

    ranges = []
    start = 0
    for i, count in enumerate(counts):
        if i == last:
            end = n
        elif i > last:
            end = start
        else:
            end = min(start + count, n)
        ranges.append((start, end))
        start = end
    return ranges


def _validate_matrices(matrices: Sequence) -> List[np.ndarray]:
    if len(matrices) == 0:
        raise ShapeMismatchError("No sample matrices provided")

    arrays = []
    n_cols = None
    for i, m in enumerate(matrices):
        arr = np.asarray(m)
        if arr.ndim == 1:
            arr = arr[:, np.newaxis]
        if arr.ndim != 2:
            raise ShapeMismatchError(f"Model {i}: sample matrix must be 2-D, got shape {arr.shape}",
                                     model_index=i)
        if arr.shape[0] == 0:
            raise ShapeMismatchError(f"Model {i}: sample matrix has no rows", model_index=i)
        if n_cols is None:
            n_cols = arr.shape[1]
        elif arr.shape[1] != n_cols:
            raise ShapeMismatchError(
                f"Model {i}: {arr.shape[1]} columns, expected {n_cols} (from model 0)",
                model_index=i,
            )
        arrays.append(arr)
    return arrays


def combine(matrices: Sequence, weights: Sequence[float], n: int,
            model_ids: Optional[Sequence[str]] = None) -> EnsembleSample:
    """
    Merge per-model sample matrices into one weighted EnsembleSample.

    Args:
        matrices: One (rows_i, n_cols) sample matrix per model
        weights: One non-negative weight per model
        n: Number of output rows
        model_ids: Optional model names (defaults to '0', '1', ...)

    Returns:
        EnsembleSample with exactly n rows

    Raises:
        ConfigurationError: If n is not a positive integer
        InvalidWeightError: Negative, non-finite or all-zero weights
        ShapeMismatchError: Empty input, mismatched column counts, or a
            weight count that differs from the matrix count
    """
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise ConfigurationError(f"n must be a positive integer, got {n!r}", field='n')
    n = int(n)

    arrays = _validate_matrices(matrices)
    if len(weights) != len(arrays):
        raise ShapeMismatchError(f"Got {len(weights)} weights for {len(arrays)} models")
    if model_ids is None:
        model_ids = [str(i) for i in range(len(arrays))]
    elif len(model_ids) != len(arrays):
        raise ShapeMismatchError(f"Got {len(model_ids)} model ids for {len(arrays)} models")

    w = normalize_weights(weights)
    ranges = allocate_rows(w, n)

    dtype = np.result_type(*arrays)
    out = np.empty((n, arrays[0].shape[1]), dtype=dtype)
    sources = np.full(n, -1, dtype=np.int64)
    for i, (start, end) in enumerate(ranges):
        if end <= start:
            continue
        rows = np.arange(end - start) % arrays[i].shape[0]
        out[start:end] = arrays[i][rows]
        sources[start:end] = i

    out.setflags(write=False)
    sources.setflags(write=False)
    w.setflags(write=False)
    counts = tuple(end - start for start, end in ranges)
    logger.debug(f"Ensemble allocation: {dict(zip(model_ids, counts))}")

    return EnsembleSample(
        samples=out,
        model_ids=tuple(str(m) for m in model_ids),
        weights=w,
        row_counts=counts,
        row_sources=sources,
    )


class EnsembleCombiner:
    """
    Combiner bound to a fixed set of model weights.

    Args:
        model_weights: ModelWeight entries in the order matrices will be given
    """

    def __init__(self, model_weights: Sequence[ModelWeight]):
        if len(model_weights) == 0:
            raise InvalidWeightError("No model weights provided")
        self.model_weights = tuple(model_weights)
        self.weights = normalize_weights([mw.weight for mw in self.model_weights])

    @property
    def model_ids(self) -> Tuple[str, ...]:
        return tuple(mw.model_id for mw in self.model_weights)

    def combine(self, matrices: Sequence, n: int) -> EnsembleSample:
        """Merge one sample matrix per model into an n-row EnsembleSample."""
        return combine(matrices, self.weights, n, model_ids=self.model_ids)

    @classmethod
    def from_information_criteria(cls, model_ids: Sequence[str], scores: Sequence[float]) -> 'EnsembleCombiner':
        """Combiner weighted by Akaike-style weights of IC scores (lower is better)."""
        weights = information_criterion_weights(scores)
        return cls([ModelWeight(str(m), float(w)) for m, w in zip(model_ids, weights)])


def information_criterion_weights(scores: Sequence[float]) -> np.ndarray:
    """
    Akaike-style model weights from information criterion scores.

        w_i = exp(-0.5 * (IC_i - min IC)) / sum_j exp(-0.5 * (IC_j - min IC))

    Args:
        scores: One score per model on the deviance scale (lower is better),
            e.g. WAIC. +inf gives the model zero weight.

    Returns:
        Weights summing to 1

    Raises:
        InvalidWeightError: If a score is NaN or -inf, or every score is +inf
    """
    s = np.asarray(scores, dtype=np.float64)
    if s.ndim != 1 or s.size == 0:
        raise InvalidWeightError(f"Scores must be a non-empty 1-D sequence, got shape {s.shape}")
    for i, value in enumerate(s):
        if np.isnan(value) or value == -np.inf:
            raise InvalidWeightError(f"Score for model {i} is invalid: {value}", model_index=i)
    if not np.any(np.isfinite(s)):
        raise InvalidWeightError("Every model has an infinite score")

    delta = s - np.min(s)
    rel = np.exp(-0.5 * delta)
    return rel / np.sum(rel)
