"""
MCMC Diagnostics.

Convergence diagnostics for MCMC chains:
- compute_rhat: Gelman-Rubin potential scale reduction per parameter
- compute_ess: Effective sample size from pooled within-chain autocorrelation
- evaluate: Build a DiagnosticReport from finished chains
- print_rhat_summary: Log R-hat statistics with convergence check
- print_acceptance_summary: Log MH acceptance rate statistics
"""

from typing import List, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from .types import DiagnosticReport
from ..error_handling import (
    LOW_ACCEPTANCE_RATE,
    InsufficientChainsError,
    ShapeMismatchError,
    diagnose_sampler_issues,
)
from ..history_processing import stack_histories

import logging
logger = logging.getLogger('mhensemble')



@jax.jit
def _gelman_rubin(history: jnp.ndarray, within_zero: jnp.ndarray, between_zero: jnp.ndarray) -> jnp.ndarray:
    n, m, _ = history.shape

    # B = n * var(chain_means)
    chain_means = jnp.mean(history, axis=0)                     # (m, n_params)
    B = n * jnp.var(chain_means, axis=0, ddof=1)

    # W = average within-chain variance
    W = jnp.mean(jnp.var(history, axis=0, ddof=1), axis=0)

    V_hat = ((n - 1) / n) * W + B / n + B / (m * n)

    safe_W = jnp.where(within_zero, 1.0, W)
    rhat = jnp.sqrt(V_hat / safe_W)
    rhat = jnp.where(within_zero, jnp.where(between_zero, 1.0, jnp.inf), rhat)
    return jnp.maximum(rhat, 1.0)


def _constant_masks(history: np.ndarray):
    """
    Exact zero-variance masks, computed on the host.

    Device reductions leave residues (~1e-30) on constant input, so
    "no variance" is decided by comparing values, never by testing a
    computed variance against zero.

    Returns:
        chain_constant: (n_chains, n_params) every draw of the chain is equal
        all_equal: (n_params,) every draw of every chain is equal
    """
    chain_constant = np.ptp(history, axis=0) == 0
    all_equal = np.ptp(history.reshape(-1, history.shape[2]), axis=0) == 0
    return chain_constant, all_equal


def compute_rhat(history) -> jnp.ndarray:
    """
    Gelman-Rubin R-hat.

    Compares the spread of the chain means (B) with the average spread
    inside each chain (W):

        V_hat = (n-1)/n * W + B/n + B/(m*n)
        R-hat = sqrt(V_hat / W)

    Values are floored at 1.0. A parameter whose every chain is constant
    reports 1.0 when all chains sit at the same value and inf otherwise.

    Args:
        history: Sample history array (n_draws, n_chains, n_params),
            n_chains >= 2, n_draws >= 2

    Returns:
        rhat: (n_params,) array of R-hat values.
    """
    history = np.asarray(history, dtype=np.float64)
    chain_constant, all_equal = _constant_masks(history)
    return _gelman_rubin(
        jnp.asarray(history),
        jnp.asarray(np.all(chain_constant, axis=0)),
        jnp.asarray(all_equal),
    )


@jax.jit
def _autocovariance(history: jnp.ndarray) -> jnp.ndarray:
    """Biased autocovariance of every chain and parameter at lags 0..n-1."""
    n = history.shape[0]
    centered = history - jnp.mean(history, axis=0)
    # Zero-pad to 2n so the circular FFT correlation equals the linear one
    spectrum = jnp.fft.rfft(centered, n=2 * n, axis=0)
    acov = jnp.fft.irfft(spectrum * jnp.conjugate(spectrum), n=2 * n, axis=0)[:n]
    return acov / n


def _geyer_tau(rho: np.ndarray) -> float:
    """
    Integrated autocorrelation time from Geyer's initial monotone sequence.

    Autocorrelations are summed in pairs (rho[2k] + rho[2k+1]) until a pair
    turns negative; each pair is capped at the previous one.
    """
    n = rho.shape[0]
    pair_sum = 0.0
    prev = np.inf
    k = 0
    while 2 * k + 1 < n:
        pair = rho[2 * k] + rho[2 * k + 1]
        if pair < 0:
            break
        pair = min(pair, prev)
        pair_sum += pair
        prev = pair
        k += 1
    return -1.0 + 2.0 * pair_sum


def compute_ess(history) -> np.ndarray:
    """
    Effective sample size per parameter.

    Autocorrelations are pooled across chains relative to the combined
    variance estimate, so chains that disagree lower the ESS.

        rho_t = 1 - (W - mean_chains(acov_t)) / var_plus

    Results are clipped to [1, n_chains * n_draws]; a parameter with zero
    variance reports the raw draw count.

    Args:
        history: Sample history array (n_draws, n_chains, n_params), n_draws >= 2

    Returns:
        ess: (n_params,) numpy array
    """
    history = np.asarray(history, dtype=np.float64)
    n, m, n_params = history.shape
    total = float(n * m)
    chain_constant, all_equal = _constant_masks(history)

    acov = np.array(jax.device_get(_autocovariance(jnp.asarray(history))))     # (n, m, n_params)
    acov[:, chain_constant] = 0.0
    chain_means = np.mean(history, axis=0)

    chain_var = acov[0] * n / (n - 1)                             # (m, n_params)
    W = np.mean(chain_var, axis=0)
    B_over_n = np.var(chain_means, axis=0, ddof=1) if m > 1 else np.zeros(n_params)
    var_plus = W * (n - 1) / n + B_over_n

    ess = np.empty(n_params)
    for j in range(n_params):
        if all_equal[j] or not np.isfinite(var_plus[j]):
            ess[j] = total
            continue
        rho = 1.0 - (W[j] - np.mean(acov[:, :, j], axis=1)) / var_plus[j]
        rho[0] = 1.0
        tau = _geyer_tau(rho)
        tau = max(tau, 1.0 / np.log10(max(total, 10.0)))
        ess[j] = total / tau

    return np.clip(ess, 1.0, total)


def _divergence_count(chains: Sequence, n_draws: int) -> int:
    """Post-warm-up divergences within the first `n_draws` rows of each chain."""
    count = 0
    for chain in chains:
        if hasattr(chain, 'sample_diverging'):
            count += int(np.sum(chain.sample_diverging[:n_draws]))
    return count


def _acceptance_rates(chains: Sequence) -> np.ndarray:
    return np.array([
        chain.acceptance_rate if hasattr(chain, 'acceptance_rate') else np.nan
        for chain in chains
    ], dtype=np.float64)


def _collect_warnings(history, r_hat, divergences, acceptance_rates, rhat_threshold) -> List[str]:
    warnings = []
    if r_hat is not None:
        bad = np.flatnonzero(~np.isfinite(r_hat) | (r_hat > rhat_threshold))
        for j in bad:
            warnings.append(
                f"Parameter {j}: R-hat {r_hat[j]:.4f} exceeds {rhat_threshold} (chains not converged)"
            )
    if divergences > 0:
        warnings.append(f"{divergences} divergent iteration(s) after warm-up")

    sampler = diagnose_sampler_issues(history, acceptance_rates)
    warnings.extend(sampler['issues'])
    warnings.extend(sampler['warnings'])
    return warnings


def evaluate(chains: Sequence, rhat_threshold: float = 1.01) -> DiagnosticReport:
    """
    Compute convergence diagnostics for a set of finished chains.

    Pure function of its input: evaluating the same chains twice gives
    equal reports. Chains of unequal length are truncated to the shortest,
    and the divergence count covers the same rows.

    Args:
        chains: Chains, or bare 2-D sample matrices (n_draws, n_params)
        rhat_threshold: R-hat above this is reported as non-convergence

    Returns:
        DiagnosticReport

    Raises:
        InsufficientChainsError: If fewer than two chains are given; the
            ESS-only report is attached as `partial_report`
        ShapeMismatchError: If chains disagree on the parameter count or
            hold fewer than two draws
    """
    if len(chains) == 0:
        raise InsufficientChainsError("No chains supplied to evaluate()", n_chains=0)

    history = stack_histories(chains)
    n_draws, n_chains, _ = history.shape
    if n_draws < 2:
        raise ShapeMismatchError(
            f"Diagnostics need at least 2 post-warm-up draws per chain, got {n_draws}"
        )

    ess = compute_ess(history)
    divergences = _divergence_count(chains, n_draws)
    acceptance_rates = _acceptance_rates(chains)

    if n_chains < 2:
        warnings = _collect_warnings(history, None, divergences, acceptance_rates, rhat_threshold)
        partial = DiagnosticReport(
            effective_sample_size=ess,
            r_hat=None,
            divergence_count=divergences,
            n_chains=n_chains,
            n_draws=n_draws,
            acceptance_rates=acceptance_rates,
            rhat_threshold=rhat_threshold,
            warnings=tuple(warnings),
        )
        raise InsufficientChainsError(
            f"R-hat needs at least 2 chains, got {n_chains}",
            n_chains=n_chains,
            partial_report=partial,
        )

    r_hat = np.asarray(jax.device_get(compute_rhat(history)))
    warnings = _collect_warnings(history, r_hat, divergences, acceptance_rates, rhat_threshold)
    for warning in warnings:
        logger.warning(f"  - {warning}")

    return DiagnosticReport(
        effective_sample_size=ess,
        r_hat=r_hat,
        divergence_count=divergences,
        n_chains=n_chains,
        n_draws=n_draws,
        acceptance_rates=acceptance_rates,
        rhat_threshold=rhat_threshold,
        warnings=tuple(warnings),
    )


def print_rhat_summary(report: DiagnosticReport) -> None:
    """Log R-hat and ESS summary statistics with a convergence verdict."""
    logger.info(f"--- R-hat Results ({report.n_chains} chains x {report.n_draws} draws) ---")
    if report.r_hat is None:
        logger.info("  R-hat unavailable (single chain)")
    else:
        finite = report.r_hat[np.isfinite(report.r_hat)]
        n_inf = report.r_hat.size - finite.size
        if finite.size:
            logger.info(f"  Max: {np.max(finite):.4f}")
            logger.info(f"  Median: {np.median(finite):.4f}")
        logger.info(f"  Threshold: {report.rhat_threshold:.4f}")
        if n_inf > 0:
            logger.warning(f"  WARNING: {n_inf} params have infinite R-hat (stuck chains)")
        if report.converged:
            logger.info(f"  Converged (max <= {report.rhat_threshold:.4f})")
        else:
            logger.warning("  Not Converged")

    logger.info(f"  ESS Min: {np.min(report.effective_sample_size):.1f}  "
                f"Median: {np.median(report.effective_sample_size):.1f}")
    logger.info(f"  Divergences: {report.divergence_count}")


def print_acceptance_summary(acceptance_rates: np.ndarray) -> None:
    """Log summary statistics for per-chain MH acceptance rates."""
    rates = np.asarray(acceptance_rates, dtype=np.float64)
    rates = rates[np.isfinite(rates)]
    if rates.size == 0:
        return

    logger.info(f"--- MH Acceptance Rates ({rates.size} chains) ---")
    logger.info(f"  Mean: {np.mean(rates):.1%}  Median: {np.median(rates):.1%}  "
                f"Min: {np.min(rates):.1%}  Max: {np.max(rates):.1%}")

    low_count = int(np.sum(rates < LOW_ACCEPTANCE_RATE))
    if low_count:
        logger.warning(f"  WARNING: {low_count} chain(s) have acceptance rate < {LOW_ACCEPTANCE_RATE:.0%}")
