"""
Tests for ChainRunner: argument validation, ordering, reproducibility,
threading and cancellation.

Run with: pytest tests/test_backend.py -v
"""

import numpy as np
import pytest

from mhensemble import test_targets
from mhensemble.error_handling import ConfigurationError
from mhensemble.mcmc.backend import ChainRunner, validate_run_inputs
from mhensemble.mcmc.types import DensityMode
from mhensemble.proposals import CircularStepProposal, RandomWalkProposal


def _normal_runner(**kwargs):
    return ChainRunner(test_targets.standard_normal_log_density, RandomWalkProposal(1.0), **kwargs)


# ============================================================================
# ARGUMENT VALIDATION
# ============================================================================

class TestRunValidation:

    @pytest.mark.parametrize("n_chains, iterations, warm_up, n_starts, field", [
        (0, 100, 10, 0, 'n_chains'),
        (2, 0, 0, 2, 'iterations'),
        (2, 100, -1, 2, 'warm_up'),
        (2, 100, 100, 2, 'warm_up'),
        (2, 100, 150, 2, 'warm_up'),
        (3, 100, 10, 2, 'starts'),
        (2.0, 100, 10, 2, 'n_chains'),
        (True, 100, 10, 1, 'n_chains'),
        (2, 100.0, 10, 2, 'iterations'),
        (2, '100', 10, 2, 'iterations'),
        (2, 100, 2.5, 2, 'warm_up'),
        (2, 100, None, 2, 'warm_up'),
    ])
    def test_invalid_arguments_name_the_field(self, n_chains, iterations, warm_up, n_starts, field):
        starts = [[0.0]] * n_starts
        with pytest.raises(ConfigurationError) as exc_info:
            validate_run_inputs(n_chains, iterations, warm_up, starts)
        assert exc_info.value.field == field

    def test_run_raises_before_simulating(self):
        calls = []

        def target(state):
            calls.append(1)
            return 0.0

        runner = ChainRunner(target, RandomWalkProposal())
        with pytest.raises(ConfigurationError):
            runner.run(n_chains=2, iterations=100, warm_up=100, starts=[[0.0], [0.0]])
        assert calls == []

    @pytest.mark.parametrize("n_chains, iterations, warm_up", [
        (2, 100.0, 10),
        (2, 100, 2.5),
        (2.0, 100, 10),
    ])
    def test_non_integer_counts_rejected_before_simulating(self, n_chains, iterations, warm_up):
        calls = []

        def target(state):
            calls.append(1)
            return 0.0

        runner = ChainRunner(target, RandomWalkProposal(), max_workers=1)
        with pytest.raises(ConfigurationError):
            runner.run(n_chains=n_chains, iterations=iterations, warm_up=warm_up, starts=[[0.0], [0.0]])
        assert calls == []

    def test_start_dimension_mismatch(self):
        calls = []

        def target(state):
            calls.append(1)
            return 0.0

        runner = ChainRunner(target, RandomWalkProposal())
        with pytest.raises(ConfigurationError) as exc_info:
            runner.run(n_chains=3, iterations=10, warm_up=0, starts=[[0.0, 0.0], [0.0, 0.0], [0.0]])
        assert exc_info.value.field == 'starts'
        assert 'Starting state 2' in str(exc_info.value)
        assert calls == []

    def test_start_must_be_flat(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_run_inputs(2, 10, 0, [[0.0, 0.0], [[0.0, 0.0]]])
        assert exc_info.value.field == 'starts'

    def test_scalar_starts_accepted(self):
        validate_run_inputs(2, 10, 0, [0.0, 1.5])


# ============================================================================
# ORDERING AND REPRODUCIBILITY
# ============================================================================

class TestRunResults:

    def test_chains_returned_in_id_order(self):
        runner = _normal_runner(rng_seed=3, max_workers=4)
        chains = runner.run(n_chains=4, iterations=200, warm_up=50, starts=[[0.0, 0.0]] * 4)
        assert [c.chain_id for c in chains] == [0, 1, 2, 3]
        for chain in chains:
            assert chain.samples.shape == (150, 2)
            assert chain.iteration_count == 200
            assert not chain.cancelled

    def test_threaded_matches_sequential(self):
        starts = [[-3.0], [-1.0], [1.0], [3.0]]
        threaded = _normal_runner(rng_seed=11, max_workers=4).run(4, 300, 100, starts)
        sequential = _normal_runner(rng_seed=11, max_workers=1).run(4, 300, 100, starts)
        for a, b in zip(threaded, sequential):
            np.testing.assert_array_equal(a.samples, b.samples)
            assert a.acceptance_count == b.acceptance_count

    def test_same_seed_reproducible(self):
        starts = [[0.0]] * 3
        first = _normal_runner(rng_seed=5).run(3, 200, 0, starts)
        second = _normal_runner(rng_seed=5).run(3, 200, 0, starts)
        for a, b in zip(first, second):
            np.testing.assert_array_equal(a.samples, b.samples)

    def test_different_seeds_differ(self):
        starts = [[0.0]] * 2
        a = _normal_runner(rng_seed=5).run(2, 200, 0, starts)
        b = _normal_runner(rng_seed=6).run(2, 200, 0, starts)
        assert not np.array_equal(a[0].samples, b[0].samples)

    def test_chains_are_independent(self):
        chains = _normal_runner(rng_seed=0).run(3, 200, 0, [[0.0]] * 3)
        assert not np.array_equal(chains[0].samples, chains[1].samples)
        assert not np.array_equal(chains[1].samples, chains[2].samples)

    def test_single_chain(self):
        chains = _normal_runner().run(1, 50, 10, [[0.0]])
        assert len(chains) == 1
        assert chains[0].samples.shape == (40, 1)

    def test_target_exception_propagates(self):
        def broken(state):
            if state[0] > 0.0:
                raise RuntimeError("model failure")
            return 0.0

        runner = ChainRunner(broken, RandomWalkProposal(1.0), max_workers=2)
        with pytest.raises(RuntimeError, match="model failure"):
            runner.run(2, 500, 0, [[-1.0], [-1.0]])


# ============================================================================
# CONSTRUCTION FROM CONFIG
# ============================================================================

class TestFromConfig:

    def test_circular_ratio_config(self, island_run_config):
        runner = ChainRunner.from_config(island_run_config, test_targets.island_population)
        assert isinstance(runner.kernel, CircularStepProposal)
        assert runner.density_mode == DensityMode.RATIO
        assert runner.rng_seed == 7

        cfg = island_run_config
        chains = runner.run(cfg['n_chains'], cfg['iterations'], cfg['warm_up'], [[10.0]] * cfg['n_chains'])
        for chain in chains:
            assert chain.samples.shape == (800, 1)
            assert set(np.unique(chain.samples)) <= set(float(k) for k in range(1, 11))

    def test_random_walk_defaults(self, basic_run_config):
        runner = ChainRunner.from_config(basic_run_config, test_targets.standard_normal_log_density)
        assert isinstance(runner.kernel, RandomWalkProposal)
        assert runner.density_mode == DensityMode.LOG
        assert runner.divergence_threshold is None

    def test_invalid_config_rejected(self, basic_run_config):
        basic_run_config['warm_up'] = 5000
        with pytest.raises(ConfigurationError) as exc_info:
            ChainRunner.from_config(basic_run_config, test_targets.standard_normal_log_density)
        assert exc_info.value.field == 'warm_up'


# ============================================================================
# CANCELLATION
# ============================================================================

class TestCancellation:

    def test_cancel_mid_run_sequential(self):
        n_chains = 4
        calls = {'n': 0}
        runner = None

        def target(state):
            calls['n'] += 1
            # One evaluation per chain at construction, then chain 0 runs
            if calls['n'] == n_chains + 30:
                runner.cancel()
            return 0.0

        runner = ChainRunner(target, RandomWalkProposal(), max_workers=1)
        chains = runner.run(n_chains, 1000, 10, [[0.0]] * n_chains)

        assert runner.cancelled
        assert chains[0].iteration_count == 30
        assert chains[0].samples.shape == (20, 1)
        for chain in chains[1:]:
            assert chain.cancelled
            assert chain.iteration_count == 0

    def test_cancel_does_not_leak_into_next_run(self):
        runner = _normal_runner(max_workers=1)
        runner.cancel()
        chains = runner.run(2, 50, 0, [[0.0], [0.0]])
        assert not runner.cancelled
        assert all(c.iteration_count == 50 for c in chains)

    def test_cancel_during_chain_construction(self):
        calls = {'n': 0}
        runner = None

        def target(state):
            calls['n'] += 1
            if calls['n'] == 1:
                runner.cancel()
            return 0.0

        runner = ChainRunner(target, RandomWalkProposal(), max_workers=1)
        chains = runner.run(3, 100, 0, [[0.0]] * 3)

        assert runner.cancelled
        assert calls['n'] == 3
        for chain in chains:
            assert chain.cancelled
            assert chain.iteration_count == 0

    def test_run_started_from_target_keeps_its_own_cancel_flag(self):
        n_chains = 2
        calls = {'n': 0}
        inner = []
        runner = None

        def target(state):
            calls['n'] += 1
            if calls['n'] == n_chains + 10:
                runner.cancel()
                inner.extend(runner.run(2, 20, 0, [[0.0], [0.0]]))
            return 0.0

        runner = ChainRunner(target, RandomWalkProposal(), max_workers=1)
        outer = runner.run(n_chains, 500, 0, [[0.0]] * n_chains)

        assert outer[0].iteration_count == 10
        assert outer[1].iteration_count == 0
        assert all(c.cancelled for c in outer)
        assert [c.iteration_count for c in inner] == [20, 20]
        assert not any(c.cancelled for c in inner)


# ============================================================================
# RUN SUMMARY
# ============================================================================

class TestRunSummary:

    def test_summary_reports_stuck_chain(self, caplog):
        def wall(state):
            return 0.0 if abs(float(state[0])) < 1e-12 else -np.inf

        runner = ChainRunner(wall, RandomWalkProposal(), max_workers=1)
        with caplog.at_level('INFO', logger='mhensemble'):
            runner.run(2, 50, 10, [[0.0], [0.0]])

        warnings = [r.getMessage() for r in caplog.records if r.levelname == 'WARNING']
        assert any('2 chain(s) appear stuck' in m for m in warnings)
        assert any('acceptance rate 0.0% is below 10%' in m for m in warnings)
        assert 'Number of chains: 2' in caplog.text

    def test_summary_clean_for_healthy_run(self, caplog):
        runner = _normal_runner(rng_seed=4, max_workers=1)
        with caplog.at_level('INFO', logger='mhensemble'):
            runner.run(2, 300, 50, [[0.0, 0.0], [0.0, 0.0]])
        assert '[OK] No issues detected' in caplog.text
