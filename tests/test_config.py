"""
Tests for EstimationConfig validation and defaults.
"""

import numpy as np
import pytest

from gtdid import EstimationConfig
from gtdid.exceptions import InvalidParameterError


class TestDefaults:

    def test_defaults(self):
        config = EstimationConfig()
        assert config.anticipation == 0
        assert config.drop_last_period is False
        assert config.control_group == 'never_treated'
        assert config.n_bootstrap == 1000
        assert config.never_treated_values == (0, np.inf)

    def test_drop_last_period_follows_anticipation(self):
        assert EstimationConfig(anticipation=1).drop_last_period is True
        assert EstimationConfig(anticipation=2, drop_last_period=False).drop_last_period is False
        assert EstimationConfig(anticipation=0, drop_last_period=True).drop_last_period is True

    def test_verbose_case_insensitive(self):
        assert EstimationConfig(verbose='QUIET').verbose == 'quiet'

    def test_frozen(self):
        config = EstimationConfig()
        with pytest.raises(AttributeError):
            config.anticipation = 3


class TestValidation:

    @pytest.mark.parametrize("kwargs", [
        {'anticipation': -1},
        {'anticipation': 1.5},
        {'anticipation': True},
        {'drop_last_period': 'yes'},
        {'control_group': 'everyone'},
        {'size_measure': 'weights'},
        {'balance': 'ignore'},
        {'on_infeasible': 'skip'},
        {'min_treated': 0},
        {'min_control': 2.0},
        {'n_bootstrap': 0},
        {'n_bootstrap': -10},
        {'seed': -1},
        {'seed': 1.5},
        {'alpha': 0.0},
        {'alpha': 1.0},
        {'min_valid_share': 0.0},
        {'min_valid_share': 1.5},
        {'n_jobs': 0},
        {'n_jobs': -2},
        {'verbose': 'loud'},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidParameterError):
            EstimationConfig(**kwargs)

    def test_numpy_integers_accepted(self):
        config = EstimationConfig(anticipation=np.int64(2), n_bootstrap=np.int32(10))
        assert config.anticipation == 2

    def test_all_cpus(self):
        assert EstimationConfig(n_jobs=-1).n_jobs == -1
