"""
Estimation configuration.

Holds every recognized option of the group-time pipeline in a single
frozen record so that the same configuration can be shared, unchanged,
by the point-estimate run and by every bootstrap replication.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
import numbers

import numpy as np

from .exceptions import InvalidParameterError

CONTROL_GROUP_STRATEGIES = ('never_treated', 'not_yet_treated')
BALANCE_POLICIES = ('drop', 'raise')
INFEASIBLE_POLICIES = ('drop', 'raise')
SIZE_MEASURES = ('units', 'rows')
VERBOSE_LEVELS = ('quiet', 'default', 'verbose')


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


@dataclass(frozen=True)
class EstimationConfig:
    """
    Options for group-time ATT estimation, aggregation and bootstrap.

    Parameters
    ----------
    anticipation : int, default 0
        Number of pre-treatment periods in which units may already react
        to the coming treatment. Base periods are shifted back by this
        many periods.
    drop_last_period : bool, optional
        Whether to exclude the final observed period from evaluation.
        ``None`` resolves to ``anticipation > 0``, since the anticipation
        status of the final period is unknown.
    control_group : {'never_treated', 'not_yet_treated'}
        Comparison pool for each cell.
    never_treated_values : tuple
        Group values marking never-treated units. NaN is always included.
    size_measure : {'units', 'rows'}
        How group sizes are measured for event-time weights.
    balance : {'drop', 'raise'}
        Policy for units lacking the evaluation or base period in a cell.
    on_infeasible : {'drop', 'raise'}
        Policy for cells that cannot be estimated.
    min_treated, min_control : int
        Minimum treated and comparison units per cell.
    n_bootstrap : int, default 1000
        Number of unit-level bootstrap replications.
    seed : int, optional
        Random seed for the bootstrap.
    alpha : float, default 0.05
        Significance level for pointwise confidence intervals.
    min_valid_share : float, default 0.5
        Share of replications an event time must appear in for its
        standard error to be reported.
    n_jobs : int, default 1
        Worker threads. ``-1`` uses all CPUs.
    verbose : {'quiet', 'default', 'verbose'}
        Warning registry verbosity.

    Example
    -------
    >>> config = EstimationConfig(anticipation=1, n_bootstrap=500, seed=7)
    >>> config.drop_last_period
    True
    """

    anticipation: int = 0
    drop_last_period: Optional[bool] = None
    control_group: str = 'never_treated'
    never_treated_values: Tuple = field(default=(0, np.inf))
    size_measure: str = 'units'
    balance: str = 'drop'
    on_infeasible: str = 'drop'
    min_treated: int = 1
    min_control: int = 1
    n_bootstrap: int = 1000
    seed: Optional[int] = None
    alpha: float = 0.05
    min_valid_share: float = 0.5
    n_jobs: int = 1
    verbose: str = 'default'

    def __post_init__(self):
        if not _is_integer(self.anticipation) or self.anticipation < 0:
            raise InvalidParameterError(
                f"anticipation must be a non-negative integer, got {self.anticipation!r}"
            )
        if self.drop_last_period is None:
            object.__setattr__(self, 'drop_last_period', bool(self.anticipation > 0))
        elif not isinstance(self.drop_last_period, (bool, np.bool_)):
            raise InvalidParameterError(
                f"drop_last_period must be a bool or None, got {self.drop_last_period!r}"
            )

        _check_choice('control_group', self.control_group, CONTROL_GROUP_STRATEGIES)
        _check_choice('size_measure', self.size_measure, SIZE_MEASURES)
        _check_choice('balance', self.balance, BALANCE_POLICIES)
        _check_choice('on_infeasible', self.on_infeasible, INFEASIBLE_POLICIES)
        verbose = self.verbose.lower() if isinstance(self.verbose, str) else self.verbose
        _check_choice('verbose', verbose, VERBOSE_LEVELS)
        object.__setattr__(self, 'verbose', verbose)

        object.__setattr__(
            self, 'never_treated_values', tuple(self.never_treated_values)
        )

        for name in ('min_treated', 'min_control'):
            value = getattr(self, name)
            if not _is_integer(value) or value < 1:
                raise InvalidParameterError(
                    f"{name} must be a positive integer, got {value!r}"
                )

        if not _is_integer(self.n_bootstrap) or self.n_bootstrap <= 0:
            raise InvalidParameterError(
                f"n_bootstrap must be a positive integer, got {self.n_bootstrap!r}"
            )
        if self.seed is not None and (not _is_integer(self.seed) or self.seed < 0):
            raise InvalidParameterError(
                f"seed must be a non-negative integer or None, got {self.seed!r}"
            )
        if not (0 < self.alpha < 1):
            raise InvalidParameterError(f"alpha must be in (0, 1), got {self.alpha!r}")
        if not (0 < self.min_valid_share <= 1):
            raise InvalidParameterError(
                f"min_valid_share must be in (0, 1], got {self.min_valid_share!r}"
            )
        if not _is_integer(self.n_jobs) or (self.n_jobs < 1 and self.n_jobs != -1):
            raise InvalidParameterError(
                f"n_jobs must be a positive integer or -1, got {self.n_jobs!r}"
            )


def _check_choice(name, value, choices):
    if value not in choices:
        raise InvalidParameterError(
            f"Invalid {name}: {value!r}. Must be one of: {list(choices)}"
        )
