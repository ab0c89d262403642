"""
Comparison Group Selection Module.

Selects the comparison units of a (group, period) cell.

Key concepts:
- Never Treated (NT): units that never receive treatment in the sample
- Not-Yet-Treated (NYT): units treated later than every period the cell
  touches, anticipation included

Eligibility rule for not-yet-treated comparisons in cell (g, t, b):

    group > max(t, b) + A   and   group != g

A unit whose group satisfies this is untreated, and not yet anticipating
treatment, at both the evaluation period t and the base period b. Units
starting treatment in between would contaminate the comparison, so the
filter is mandatory whenever not-yet-treated units are used.
"""

from enum import Enum
from typing import Union

import numpy as np

from ..exceptions import InvalidParameterError


class ControlGroupStrategy(Enum):
    """Comparison group selection strategy enumeration."""
    NEVER_TREATED = 'never_treated'
    NOT_YET_TREATED = 'not_yet_treated'


def parse_control_group(strategy: Union[str, ControlGroupStrategy]) -> ControlGroupStrategy:
    if isinstance(strategy, ControlGroupStrategy):
        return strategy
    try:
        return ControlGroupStrategy(strategy)
    except ValueError:
        raise InvalidParameterError(
            f"Invalid control_group: {strategy!r}. "
            f"Must be one of: {[s.value for s in ControlGroupStrategy]}"
        ) from None


def get_control_mask(
    unit_groups: np.ndarray,
    never_treated: np.ndarray,
    group: int,
    period: int,
    base_period: int,
    anticipation: int = 0,
    strategy: Union[str, ControlGroupStrategy] = ControlGroupStrategy.NEVER_TREATED,
) -> np.ndarray:
    """
    Unit-level boolean mask of eligible comparison units for one cell.

    Parameters
    ----------
    unit_groups : np.ndarray
        Group value of every unit (float, NaN allowed).
    never_treated : np.ndarray
        Boolean never-treated mask aligned with ``unit_groups``.
    group, period, base_period : int
        The cell (g, t, b).
    anticipation : int
        Anticipation horizon A.
    strategy : ControlGroupStrategy or str
        ``never_treated`` or ``not_yet_treated``.

    Returns
    -------
    np.ndarray
        Boolean mask aligned with ``unit_groups``.
    """
    strategy = parse_control_group(strategy)

    if strategy == ControlGroupStrategy.NEVER_TREATED:
        return never_treated.copy()

    # CRITICAL: strict > so a unit starting (or anticipating) treatment
    # at the latest period of the cell is not a comparison.
    cutoff = max(period, base_period) + anticipation
    with np.errstate(invalid='ignore'):
        not_yet_treated = (unit_groups > cutoff) & (unit_groups != group)
    return never_treated | (not_yet_treated & ~never_treated)
