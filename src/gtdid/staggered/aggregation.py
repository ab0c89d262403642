"""
Event-Time Aggregation Module

Aggregates group-time effects ATT(g, t) into dynamic effects by length
of exposure e = t - g, and the dynamic effects into one overall
post-treatment summary.

Key concepts:
- Dynamic effect θ(e): size-weighted average of ATT(g, g+e) over the
  groups observed at event time e
- Weights are recomputed per event time, since the set of groups with
  a result at e varies with e:

      w(g, e) = N_g / Σ_{h observed at e} N_h

- Overall effect: simple average of θ(e) over post-treatment e >= 0
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..exceptions import InsufficientDataError, InvalidParameterError
from ..validation import never_treated_mask
from .estimation import GroupTimeEffect


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class DynamicEffect:
    """
    Event-time aggregated effect estimate.

    Attributes
    ----------
    event_time : int
        Length of exposure e (negative = pre-treatment pseudo-effect)
    att : float
        Weighted average ATT across groups observed at e
    n_groups : int
        Number of contributing groups
    weights : Dict[int, float]
        {group: weight}; weights sum to one
    se : float
        Bootstrap standard error (NaN when unavailable)
    ci_lower, ci_upper : float
        Pointwise confidence interval (NaN when SE unavailable)
    n_bootstrap_valid : int
        Bootstrap replications in which e was estimable
    se_status : str
        'bootstrap', 'insufficient_bootstrap' or 'not_computed'
    """
    event_time: int
    att: float
    n_groups: int
    weights: Dict[int, float] = field(default_factory=dict)
    se: float = np.nan
    ci_lower: float = np.nan
    ci_upper: float = np.nan
    n_bootstrap_valid: int = 0
    se_status: str = 'not_computed'


@dataclass(frozen=True)
class OverallEffect:
    """
    Average of post-treatment dynamic effects.

    Attributes
    ----------
    att : float
        Mean of θ(e) over e >= 0
    event_times : tuple of int
        Event times averaged
    se, ci_lower, ci_upper : float
        Bootstrap inference (NaN when unavailable)
    n_bootstrap_valid : int
    se_status : str
    """
    att: float
    event_times: tuple
    se: float = np.nan
    ci_lower: float = np.nan
    ci_upper: float = np.nan
    n_bootstrap_valid: int = 0
    se_status: str = 'not_computed'


# =============================================================================
# Group sizes
# =============================================================================

def compute_group_sizes(
    data: pd.DataFrame,
    gvar: str,
    ivar: str,
    groups: Optional[Iterable[int]] = None,
    size_measure: str = 'units',
    never_treated_values: Sequence = (0, np.inf),
) -> Dict[int, int]:
    """
    Size of each treatment group.

    Parameters
    ----------
    size_measure : {'units', 'rows'}
        Count distinct units (default) or panel rows.

    Returns
    -------
    Dict[int, int]
        {group: size}, never-treated units excluded.
    """
    if size_measure == 'units':
        unit_gvar = data.groupby(ivar)[gvar].first()
    elif size_measure == 'rows':
        unit_gvar = data[gvar]
    else:
        raise InvalidParameterError(
            f"size_measure must be 'units' or 'rows', got {size_measure!r}"
        )

    treated = unit_gvar[~never_treated_mask(unit_gvar, never_treated_values)]
    counts = treated.astype(int).value_counts()
    sizes = {int(g): int(n) for g, n in counts.items()}

    if groups is not None:
        sizes = {int(g): sizes.get(int(g), 0) for g in groups}
    return dict(sorted(sizes.items()))


# =============================================================================
# Main Aggregation Functions
# =============================================================================

def aggregate_dynamic(
    effects: Sequence[GroupTimeEffect],
    group_sizes: Dict[int, int],
) -> List[DynamicEffect]:
    """
    Aggregate group-time effects by event time.

    For each distinct event time e:

    1. collect groups with a result at e
    2. weight each by its size over the total size of those groups
    3. θ(e) = Σ_g w(g, e) · ATT(g, g+e)

    A single contributing group gets weight 1. Event times without any
    group are not synthesized.

    Parameters
    ----------
    effects : sequence of GroupTimeEffect
        Output of ``estimate_group_time_effects``.
    group_sizes : Dict[int, int]
        Size of every group appearing in ``effects``.

    Returns
    -------
    List[DynamicEffect]
        Sorted by event time.

    Raises
    ------
    InvalidParameterError
        A group in ``effects`` has no (or a non-positive) size.
    """
    by_event: Dict[int, List[GroupTimeEffect]] = {}
    for eff in effects:
        by_event.setdefault(eff.period - eff.group, []).append(eff)

    missing = sorted({eff.group for eff in effects} - set(group_sizes))
    if missing:
        raise InvalidParameterError(f"No group size supplied for groups {missing}")

    dynamic = []
    for e in sorted(by_event):
        cells = by_event[e]
        sizes = np.array([group_sizes[c.group] for c in cells], dtype=float)
        if np.any(sizes <= 0):
            raise InvalidParameterError(
                f"Group sizes must be positive; event time {e} has "
                f"{dict(zip([c.group for c in cells], sizes))}"
            )
        w = sizes / sizes.sum()
        atts = np.array([c.att for c in cells], dtype=float)
        dynamic.append(DynamicEffect(
            event_time=int(e),
            att=float(np.dot(w, atts)),
            n_groups=len(cells),
            weights={int(c.group): float(wi) for c, wi in zip(cells, w)},
        ))
    return dynamic


def aggregate_overall(
    dynamic_effects: Sequence[DynamicEffect],
    event_times: Optional[Sequence[int]] = None,
) -> OverallEffect:
    """
    Average the post-treatment (e >= 0) dynamic effects.

    Parameters
    ----------
    dynamic_effects : sequence of DynamicEffect
    event_times : sequence of int, optional
        Fix the event times to average. Bootstrap draws pass the point
        estimate's set so every draw targets the same quantity; if any
        of them is missing the result is NaN.

    Raises
    ------
    InsufficientDataError
        No post-treatment event time was estimated.
    """
    by_event_time = {d.event_time: d.att for d in dynamic_effects}
    if event_times is None:
        event_times = sorted(e for e in by_event_time if e >= 0)
        if not event_times:
            raise InsufficientDataError(
                "No post-treatment event times were estimated; the overall effect is undefined."
            )
    event_times = tuple(int(e) for e in event_times)

    if all(e in by_event_time for e in event_times):
        att = float(np.mean([by_event_time[e] for e in event_times]))
    else:
        att = np.nan
    return OverallEffect(att=att, event_times=event_times)


def dynamic_effects_to_dataframe(effects: Sequence[DynamicEffect]) -> pd.DataFrame:
    """
    Convert list of DynamicEffect to DataFrame.

    Returns
    -------
    pd.DataFrame
        Columns: event_time, att, se, ci_lower, ci_upper, n_groups,
        n_bootstrap_valid, se_status
    """
    columns = [
        'event_time', 'att', 'se', 'ci_lower', 'ci_upper',
        'n_groups', 'n_bootstrap_valid', 'se_status',
    ]
    if len(effects) == 0:
        return pd.DataFrame(columns=columns)

    return pd.DataFrame([
        {
            'event_time': d.event_time,
            'att': d.att,
            'se': d.se,
            'ci_lower': d.ci_lower,
            'ci_upper': d.ci_upper,
            'n_groups': d.n_groups,
            'n_bootstrap_valid': d.n_bootstrap_valid,
            'se_status': d.se_status,
        }
        for d in effects
    ], columns=columns)
