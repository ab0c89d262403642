"""
Panel Indexing Module

Extracts the treatment groups and observed periods of a staggered panel
and builds the estimation plan: every (group, period) cell together
with the base period it is differenced against.

Base-period rule with anticipation horizon A:

- post-treatment cells (t >= g): b = g - (A + 1), fixed before any
  anticipation could start;
- pre-treatment cells (t < g): b = t - (A + 1), moving with t.

Either way b < t. The earliest 1 + A periods can never be evaluated,
and the final period is trimmed when ``drop_last_period`` is set.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..exceptions import (
    InfeasibleCellError,
    InfeasibleConfigurationError,
    InvalidParameterError,
)
from ..validation import never_treated_mask
from ..warnings_categories import SmallSampleWarning

logger = logging.getLogger('gtdid')


@dataclass(frozen=True)
class PlanEntry:
    """
    One estimable (group, period) cell.

    Attributes
    ----------
    group : int
        Treatment group (first treated period g).
    period : int
        Evaluation period t.
    base_period : int
        Period b the outcome change is measured from.
    """
    group: int
    period: int
    base_period: int

    @property
    def event_time(self) -> int:
        """Signed exposure length e = t - g."""
        return self.period - self.group

    @property
    def key(self) -> Tuple[int, int]:
        return (self.group, self.period)


@dataclass(frozen=True)
class EstimationPlan:
    """
    Cells to estimate, plus the cells rejected while planning.

    Attributes
    ----------
    entries : tuple of PlanEntry
        Feasible cells, ordered by group then period.
    groups : tuple of int
        Treatment groups.
    time_periods : tuple of int
        All observed periods.
    evaluation_periods : tuple of int
        Periods left after trimming.
    anticipation : int
        Anticipation horizon used.
    infeasible : tuple of (group, period, base_period, reason)
        Cells dropped because their base period is not observed.
    """
    entries: Tuple[PlanEntry, ...]
    groups: Tuple[int, ...]
    time_periods: Tuple[int, ...]
    evaluation_periods: Tuple[int, ...]
    anticipation: int
    infeasible: Tuple[Tuple[int, int, int, str], ...] = field(default=())

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def n_planned(self) -> int:
        """Cells considered, feasible or not."""
        return len(self.entries) + len(self.infeasible)


def get_groups(
    data: pd.DataFrame,
    gvar: str,
    ivar: str,
    never_treated_values: Optional[Sequence] = None,
) -> List[int]:
    """
    Extract all treatment groups from data.

    Excludes never treated units (gvar = NaN, 0, inf, or custom values).

    Returns
    -------
    List[int]
        Sorted list of groups.

    Examples
    --------
    >>> data = pd.DataFrame({'id': [1, 2, 3, 4], 'g': [2005, 2006, 0, np.nan]})
    >>> get_groups(data, 'g', 'id')
    [2005, 2006]
    """
    if never_treated_values is None:
        never_treated_values = (0, np.inf)

    unit_gvar = data.drop_duplicates(subset=[ivar]).set_index(ivar)[gvar]
    nt_mask = never_treated_mask(unit_gvar, never_treated_values)
    return sorted(int(g) for g in unit_gvar[~nt_mask].unique())


def get_time_periods(data: pd.DataFrame, tvar: str) -> List[int]:
    """Sorted, deduplicated observed periods."""
    return sorted(int(t) for t in pd.unique(data[tvar].dropna()))


def get_evaluation_periods(
    time_periods: Sequence[int],
    anticipation: int = 0,
    drop_last_period: bool = False,
) -> List[int]:
    """
    Periods at which cells are evaluated.

    Drops the earliest ``1 + anticipation`` periods, which have no valid
    base period, and the final period when ``drop_last_period`` is True.

    Raises
    ------
    InfeasibleConfigurationError
        If nothing remains.
    """
    if anticipation < 0:
        raise InvalidParameterError(f"anticipation must be >= 0, got {anticipation}")

    periods = sorted(set(int(t) for t in time_periods))
    usable = periods[1 + anticipation:]
    if drop_last_period:
        usable = usable[:-1]

    if not usable:
        raise InfeasibleConfigurationError(
            f"anticipation={anticipation} (drop_last_period={drop_last_period}) leaves "
            f"no evaluation periods among the {len(periods)} observed periods. "
            f"Reduce the anticipation horizon or provide a longer panel."
        )
    return usable


def compute_base_period(group: int, period: int, anticipation: int = 0) -> int:
    """
    Base period for cell (group, period).

    >>> compute_base_period(4, 5, anticipation=1)
    2
    >>> compute_base_period(4, 3, anticipation=1)
    1
    """
    if period >= group:
        return group - (anticipation + 1)
    return period - (anticipation + 1)


def build_estimation_plan(
    groups: Sequence[int],
    time_periods: Sequence[int],
    anticipation: int = 0,
    drop_last_period: bool = False,
    on_infeasible: str = 'drop',
    registry=None,
) -> EstimationPlan:
    """
    Build the (group, period, base_period) plan.

    Parameters
    ----------
    groups : sequence of int
        Treatment groups (never-treated sentinel excluded).
    time_periods : sequence of int
        Observed periods.
    anticipation : int
        Anticipation horizon A.
    drop_last_period : bool
        Trim the final observed period.
    on_infeasible : {'drop', 'raise'}
        What to do with a cell whose base period is not observed.
    registry : WarningRegistry, optional
        Receives one record per dropped cell.

    Returns
    -------
    EstimationPlan

    Raises
    ------
    InfeasibleConfigurationError
        If no evaluation period survives trimming.
    InfeasibleCellError
        With ``on_infeasible='raise'``, on the first infeasible cell.
    """
    if on_infeasible not in ('drop', 'raise'):
        raise InvalidParameterError(
            f"on_infeasible must be 'drop' or 'raise', got {on_infeasible!r}"
        )

    observed = sorted(set(int(t) for t in time_periods))
    observed_set = set(observed)
    evaluation = get_evaluation_periods(observed, anticipation, drop_last_period)

    entries = []
    infeasible = []
    for g in sorted(set(int(g) for g in groups)):
        for t in evaluation:
            b = compute_base_period(g, t, anticipation)
            if b in observed_set:
                entries.append(PlanEntry(group=g, period=t, base_period=b))
                continue

            reason = f'base period {b} not observed'
            if on_infeasible == 'raise':
                raise InfeasibleCellError(
                    f"Cell (group={g}, period={t}) is infeasible: {reason}.",
                    group=g, period=t,
                )
            infeasible.append((g, t, b, reason))
            if registry is not None:
                registry.collect(
                    SmallSampleWarning,
                    "Cells dropped because their base period is not observed",
                    group=g, period=t,
                    context={'base_period': b},
                )

    logger.debug(
        "Plan: %d feasible cells, %d infeasible, evaluation periods %s",
        len(entries), len(infeasible), evaluation,
    )

    return EstimationPlan(
        entries=tuple(entries),
        groups=tuple(sorted(set(int(g) for g in groups))),
        time_periods=tuple(observed),
        evaluation_periods=tuple(evaluation),
        anticipation=int(anticipation),
        infeasible=tuple(infeasible),
    )
