"""
Tests for the unit-level bootstrap.

Validates block resampling, reproducibility under a master seed,
order-independence under worker threads, handling of event times that
are missing from some replications, and convergence of the standard
errors as the number of replications grows.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from gtdid.exceptions import InsufficientDataError, InvalidParameterError
from gtdid.inference.bootstrap import (
    BootstrapResult,
    bootstrap_replicate,
    bootstrap_se,
    pointwise_ci,
    resample_by_unit,
)
from gtdid.warning_registry import WarningRegistry
from gtdid.warnings_categories import BootstrapWarning


@pytest.fixture
def panel():
    rng = np.random.default_rng(0)
    n, T = 40, 4
    return pd.DataFrame({
        'id': np.repeat(np.arange(100, 100 + n), T),
        'period': np.tile(np.arange(1, T + 1), n),
        'y': rng.normal(size=n * T),
    })


def mean_pipeline(sample):
    return {0: float(sample['y'].mean())}


# =============================================================================
# Resampling
# =============================================================================

class TestResampleByUnit:

    def test_same_number_of_units(self, panel):
        sample = resample_by_unit(panel, 'id', rng=1)
        assert sample['id'].nunique() == 40
        assert len(sample) == len(panel)

    def test_pseudo_ids_keep_blocks_together(self, panel):
        sample = resample_by_unit(panel, 'id', rng=2)
        assert sorted(sample['id'].unique()) == list(range(40))
        for _, block in sample.groupby('id'):
            assert list(block['period']) == [1, 2, 3, 4]
            # every pseudo unit is an intact copy of some original unit
            matches = panel.groupby('id')['y'].apply(
                lambda ys: np.array_equal(ys.values, block['y'].values)
            )
            assert matches.any()

    def test_duplicate_draws_become_distinct_units(self, panel):
        sample = resample_by_unit(panel, 'id', rng=3)
        assert not sample.duplicated(subset=['id', 'period']).any()

    def test_does_not_modify_input(self, panel):
        before = panel.copy()
        resample_by_unit(panel, 'id', rng=4)
        pd.testing.assert_frame_equal(panel, before)

    def test_empty_panel(self):
        with pytest.raises(InvalidParameterError):
            resample_by_unit(pd.DataFrame({'id': [], 'y': []}), 'id', rng=0)


# =============================================================================
# Standard errors
# =============================================================================

class TestBootstrapSE:

    def test_reproducible_with_seed(self, panel):
        a = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=50, seed=7)
        b = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=50, seed=7)
        np.testing.assert_array_equal(a.estimates, b.estimates)
        assert a.se == b.se

    def test_different_seeds_differ(self, panel):
        a = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=50, seed=7)
        b = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=50, seed=8)
        assert a.se[0] != b.se[0]

    def test_threads_do_not_change_results(self, panel):
        serial = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=60, seed=11)
        threaded = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=60, seed=11, n_jobs=4)
        np.testing.assert_array_equal(serial.estimates, threaded.estimates)

    def test_replication_recomputable_alone(self, panel):
        result = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=20, seed=5)
        seeds = np.random.SeedSequence(5).spawn(20)
        row = bootstrap_replicate(panel, mean_pipeline, [0], 'id', seeds[13])
        np.testing.assert_array_equal(result.estimates[13], row)

    def test_se_is_sample_std(self, panel):
        result = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=100, seed=1)
        assert result.se[0] == pytest.approx(np.std(result.estimates[:, 0], ddof=1))
        assert result.n_valid[0] == 100
        assert result.n_failed == 0

    def test_se_of_mean_matches_analytic(self, panel):
        # unit means are iid, so SE of the grand mean ~ sd(unit means) / sqrt(n)
        unit_means = panel.groupby('id')['y'].mean()
        analytic = unit_means.std(ddof=1) / np.sqrt(len(unit_means))
        result = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=2000, seed=3)
        assert result.se[0] == pytest.approx(analytic, rel=0.1)

    @pytest.mark.parametrize("n_bootstrap", [0, -5, 2.5, True])
    def test_invalid_n_bootstrap(self, panel, n_bootstrap):
        with pytest.raises(InvalidParameterError):
            bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=n_bootstrap)

    def test_custom_resampler(self, panel):
        def identity(data, ivar, rng):
            return data

        result = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=10, seed=0,
                              resampler=identity)
        assert result.se[0] == pytest.approx(0.0)

    def test_result_repr(self, panel):
        result = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=5, seed=0)
        assert isinstance(result, BootstrapResult)
        assert 'n_bootstrap=5' in repr(result)


# =============================================================================
# Missing targets and failed replications
# =============================================================================

class TestMissingTargets:

    def test_missing_event_time_is_nan_not_failure(self, panel):
        calls = {'n': 0}

        def sometimes_missing(sample):
            calls['n'] += 1
            out = {0: float(sample['y'].mean())}
            # event time 1 is only estimable when unit 0 is drawn
            if (sample['y'] == panel['y'].iloc[0]).any():
                out[1] = float(sample['y'].median())
            return out

        result = bootstrap_se(
            panel, sometimes_missing, [0, 1], 'id', n_bootstrap=200, seed=4,
            registry=WarningRegistry('quiet'),
        )
        assert result.n_valid[0] == 200
        assert 0 < result.n_valid[1] < 200
        assert np.isnan(result.estimates[:, 1]).sum() == 200 - result.n_valid[1]
        assert result.n_failed == 0

    def test_failed_replications_counted(self, panel):
        def fragile(sample):
            if sample['y'].iloc[0] > 0:
                raise InsufficientDataError("no comparison units in this draw")
            return {0: float(sample['y'].mean())}

        with pytest.warns(BootstrapWarning, match="failed entirely"):
            result = bootstrap_se(panel, fragile, [0], 'id', n_bootstrap=100, seed=9)
        assert result.n_failed > 0
        assert result.n_valid[0] == 100 - result.n_failed
        assert np.isnan(result.estimates).sum() == result.n_failed

    def test_insufficient_support(self, panel):
        def rarely(sample):
            return {0: 1.0} if sample['y'].iloc[0] > 1.5 else {}

        with warnings.catch_warnings():
            warnings.simplefilter('ignore', BootstrapWarning)
            result = bootstrap_se(panel, rarely, [0], 'id', n_bootstrap=100, seed=2)
        assert result.min_valid == 50
        assert not result.is_supported(0)
        assert np.isnan(result.se[0])

    def test_unexpected_errors_propagate(self, panel):
        def buggy(sample):
            raise KeyError('y')

        with pytest.raises(KeyError):
            bootstrap_se(panel, buggy, [0], 'id', n_bootstrap=3, seed=0)

    def test_min_valid_floor(self, panel):
        result = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=3, seed=0,
                              min_valid_share=0.1)
        assert result.min_valid == 2
        assert result.is_supported(0)


# =============================================================================
# Convergence
# =============================================================================

@pytest.mark.slow
class TestConvergence:

    def test_b500_close_to_b2000(self, panel):
        se_500 = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=500, seed=21).se[0]
        se_2000 = bootstrap_se(panel, mean_pipeline, [0], 'id', n_bootstrap=2000, seed=22).se[0]
        assert se_500 == pytest.approx(se_2000, rel=0.15)


class TestPointwiseCI:

    def test_symmetric_normal(self):
        lo, hi = pointwise_ci(1.0, 0.5, alpha=0.05)
        assert lo == pytest.approx(1.0 - 1.959964 * 0.5, rel=1e-5)
        assert hi == pytest.approx(1.0 + 1.959964 * 0.5, rel=1e-5)

    def test_nan_se(self):
        lo, hi = pointwise_ci(1.0, np.nan)
        assert np.isnan(lo) and np.isnan(hi)
