"""
Group-Time Effect Estimation Module

Estimates ATT(g, t) for every cell of an estimation plan.

Key concepts:
- Each (group, period) cell has its own ATT estimate
- Each cell is a 2x2 comparison: group g vs. the comparison pool,
  evaluation period t vs. base period b
- Outcomes are pivoted once into a unit × period matrix (the panel
  index); cells look up their two columns instead of filtering the panel

Data Flow
---------
1. ``build_panel_index``: long panel -> unit × period outcome matrix,
   unit groups, never-treated mask, covariates by period
2. For each plan entry (g, t, b):
   a. treated units: group == g; comparison units from ``get_control_mask``
   b. drop units lacking t or b (balance check, counted)
   c. call the 2x2 estimator on (Y_t, Y_b, D[, X_b])
3. Output: List[GroupTimeEffect] sorted by (group, period)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .._parallel import run_in_slots
from ..exceptions import (
    EstimatorError,
    GTDIDError,
    InfeasibleCellError,
    InvalidParameterError,
    NoControlUnitsError,
    PanelBalanceError,
)
from ..validation import never_treated_mask
from ..warnings_categories import DataWarning, NumericalWarning, SmallSampleWarning
from .control_groups import ControlGroupStrategy, get_control_mask, parse_control_group
from .estimators import estimate_2x2
from .indexing import EstimationPlan, PlanEntry

logger = logging.getLogger('gtdid')


@dataclass(frozen=True)
class GroupTimeEffect:
    """
    Single (group, period) treatment effect estimate.

    Attributes
    ----------
    group : int
        Treatment group (first treated period g)
    period : int
        Evaluation period (t)
    base_period : int
        Base period (b) the change is measured from
    event_time : int
        Event time (e = t - g)
        - e < 0: pre-treatment pseudo-effect (parallel trends check)
        - e >= 0: post-treatment effect
    att : float
        Estimated ATT(g, t), as returned by the 2x2 estimator
    n_treated : int
        Treated units in the cell
    n_control : int
        Comparison units in the cell
    n_unbalanced : int
        Units dropped from the cell for lacking period t or b
    """
    group: int
    period: int
    base_period: int
    event_time: int
    att: float
    n_treated: int
    n_control: int
    n_unbalanced: int = 0


@dataclass(frozen=True)
class PanelIndex:
    """
    Unit × period arena built once per pipeline run.

    Attributes
    ----------
    units : np.ndarray
        Unit identifiers, one per row of ``outcomes``.
    unit_groups : np.ndarray
        Group value of each unit (float; NaN for missing).
    never_treated : np.ndarray
        Boolean never-treated mask.
    outcomes : np.ndarray
        Outcome matrix of shape (n_units, n_periods); NaN where a unit
        has no observation.
    period_to_col : dict
        Period -> column position in ``outcomes``.
    covariates : np.ndarray or None
        Array of shape (n_units, n_periods, k).
    covariate_names : tuple of str
    """
    units: np.ndarray
    unit_groups: np.ndarray
    never_treated: np.ndarray
    outcomes: np.ndarray
    period_to_col: Dict[int, int]
    covariates: Optional[np.ndarray] = None
    covariate_names: Tuple[str, ...] = ()

    @property
    def n_units(self) -> int:
        return len(self.units)


def build_panel_index(
    data: pd.DataFrame,
    y: str,
    ivar: str,
    tvar: str,
    gvar: str,
    covariates: Optional[Sequence[str]] = None,
    never_treated_values: Sequence = (0, np.inf),
) -> PanelIndex:
    """
    Pivot a long panel into a :class:`PanelIndex`.

    Parameters
    ----------
    data : pd.DataFrame
        Long panel with unique (ivar, tvar) rows.
    y, ivar, tvar, gvar : str
        Outcome, unit, time and group columns.
    covariates : sequence of str, optional
        Covariate columns; each cell reads them at its base period.
    never_treated_values : sequence
        Group values marking never-treated units.
    """
    unit_gvar = data.groupby(ivar, sort=True)[gvar].first()
    units = unit_gvar.index.to_numpy()

    outcome_wide = data.pivot(index=ivar, columns=tvar, values=y)
    outcome_wide = outcome_wide.reindex(index=units).sort_index(axis=1)
    period_to_col = {int(t): i for i, t in enumerate(outcome_wide.columns)}

    cov_array = None
    cov_names: Tuple[str, ...] = ()
    if covariates:
        cov_names = tuple(covariates)
        layers = []
        for cov in cov_names:
            wide = data.pivot(index=ivar, columns=tvar, values=cov)
            wide = wide.reindex(index=units, columns=outcome_wide.columns)
            layers.append(wide.to_numpy(dtype=float))
        cov_array = np.stack(layers, axis=2)

    return PanelIndex(
        units=units,
        unit_groups=unit_gvar.to_numpy(dtype=float),
        never_treated=never_treated_mask(unit_gvar, never_treated_values).to_numpy(),
        outcomes=outcome_wide.to_numpy(dtype=float),
        period_to_col=period_to_col,
        covariates=cov_array,
        covariate_names=cov_names,
    )


def _estimate_cell(
    index: PanelIndex,
    entry: PlanEntry,
    estimator: Callable,
    strategy: ControlGroupStrategy,
    anticipation: int,
    balance: str,
    on_infeasible: str,
    min_treated: int,
    min_control: int,
    registry,
) -> Tuple[Optional[GroupTimeEffect], Optional[str]]:
    """Estimate one cell. Returns (effect, None) or (None, skip_reason)."""
    g, t, b = entry.group, entry.period, entry.base_period

    if t not in index.period_to_col or b not in index.period_to_col:
        reason = f'period {t if t not in index.period_to_col else b} not observed'
        return _infeasible(entry, reason, on_infeasible, registry, {})

    treat_mask = index.unit_groups == g
    control_mask = get_control_mask(
        index.unit_groups, index.never_treated, g, t, b, anticipation, strategy,
    )
    in_cell = treat_mask | control_mask

    y_post = index.outcomes[:, index.period_to_col[t]]
    y_pre = index.outcomes[:, index.period_to_col[b]]
    complete = ~(np.isnan(y_post) | np.isnan(y_pre))

    X_base = None
    if index.covariates is not None:
        X_base = index.covariates[:, index.period_to_col[b], :]
        complete &= ~np.isnan(X_base).any(axis=1)

    n_unbalanced = int((in_cell & ~complete).sum())
    if n_unbalanced > 0:
        if balance == 'raise':
            raise PanelBalanceError(
                f"{n_unbalanced} unit(s) in cell (group={g}, period={t}) lack an "
                f"observation at period {t} or base period {b}.",
                group=g, period=t, n_unbalanced=n_unbalanced,
            )
        if registry is not None:
            registry.collect(
                DataWarning,
                "Units lacking the evaluation or base period were dropped from cells",
                group=g, period=t,
                context={'n_unbalanced': n_unbalanced},
            )

    treated = treat_mask & complete
    controls = control_mask & complete
    n_treated = int(treated.sum())
    n_control = int(controls.sum())

    if n_treated < min_treated or n_control < min_control:
        reason = (
            f'insufficient units: n_treated={n_treated} (min {min_treated}), '
            f'n_control={n_control} (min {min_control})'
        )
        context = {'n_treated': n_treated, 'n_control': n_control}
        return _infeasible(entry, reason, on_infeasible, registry, context)

    sample = treated | controls
    d = treated[sample].astype(int)
    args = [y_post[sample], y_pre[sample], d]
    if X_base is not None:
        args.append(X_base[sample])

    try:
        att = estimator(*args)
    except EstimatorError as e:
        raise EstimatorError(
            f"2x2 estimator failed for cell (group={g}, period={t}, base={b}): {e}"
        ) from e
    except GTDIDError:
        raise
    except Exception as e:
        raise EstimatorError(
            f"2x2 estimator failed for cell (group={g}, period={t}, base={b}): "
            f"{type(e).__name__}: {e}"
        ) from e

    att = float(att)
    if not np.isfinite(att) and registry is not None:
        registry.collect(
            NumericalWarning,
            "2x2 estimator returned a non-finite ATT",
            group=g, period=t,
        )

    return GroupTimeEffect(
        group=g,
        period=t,
        base_period=b,
        event_time=entry.event_time,
        att=att,
        n_treated=n_treated,
        n_control=n_control,
        n_unbalanced=n_unbalanced,
    ), None


def _infeasible(entry, reason, on_infeasible, registry, context):
    if on_infeasible == 'raise':
        raise InfeasibleCellError(
            f"Cell (group={entry.group}, period={entry.period}) is infeasible: {reason}.",
            group=entry.group, period=entry.period,
        )
    if registry is not None:
        registry.collect(
            SmallSampleWarning,
            "Cells dropped for insufficient treated or comparison units",
            group=entry.group, period=entry.period,
            context=context,
        )
    return None, reason


def estimate_group_time_effects(
    panel_index: PanelIndex,
    plan: EstimationPlan,
    estimator: Optional[Callable] = None,
    control_group: str = 'never_treated',
    balance: str = 'drop',
    on_infeasible: str = 'drop',
    min_treated: int = 1,
    min_control: int = 1,
    n_jobs: int = 1,
    registry=None,
    return_skipped: bool = False,
):
    """
    Estimate ATT(g, t) for all cells of a plan.

    Parameters
    ----------
    panel_index : PanelIndex
        Output of :func:`build_panel_index`.
    plan : EstimationPlan
        Output of :func:`~gtdid.staggered.indexing.build_estimation_plan`.
    estimator : callable, optional
        2x2 estimator ``f(post, pre, treated[, covariates]) -> float``.
        Defaults to :func:`~gtdid.staggered.estimators.estimate_2x2`.
        The covariate argument is passed only when covariates are used.
    control_group : {'never_treated', 'not_yet_treated'}
        Comparison pool strategy.
    balance : {'drop', 'raise'}
        Units lacking t or b are dropped and counted, or raise
        :class:`PanelBalanceError`.
    on_infeasible : {'drop', 'raise'}
        Cells with too few units are dropped and recorded, or raise
        :class:`InfeasibleCellError`.
    min_treated, min_control : int
        Minimum units per arm.
    n_jobs : int
        Worker threads for cells; results do not depend on it.
    registry : WarningRegistry, optional
        Collects per-cell warnings.
    return_skipped : bool
        Also return the list of ``(group, period, base_period, reason)``
        for cells dropped here.

    Returns
    -------
    List[GroupTimeEffect] or (List[GroupTimeEffect], list)
        Sorted by (group, period).

    Raises
    ------
    NoControlUnitsError
        ``control_group='never_treated'`` without never-treated units.
    EstimatorError
        The 2x2 estimator failed on some cell; the run is aborted.
    """
    if estimator is None:
        estimator = estimate_2x2
    strategy = parse_control_group(control_group)
    if balance not in ('drop', 'raise'):
        raise InvalidParameterError(f"balance must be 'drop' or 'raise', got {balance!r}")
    if on_infeasible not in ('drop', 'raise'):
        raise InvalidParameterError(
            f"on_infeasible must be 'drop' or 'raise', got {on_infeasible!r}"
        )

    if strategy == ControlGroupStrategy.NEVER_TREATED and not panel_index.never_treated.any():
        raise NoControlUnitsError(
            "control_group='never_treated' requires never-treated units, but the data "
            "contains none. Use control_group='not_yet_treated' to compare against "
            "units treated later."
        )

    def run(entry: PlanEntry):
        return _estimate_cell(
            panel_index, entry, estimator, strategy, plan.anticipation,
            balance, on_infeasible, min_treated, min_control, registry,
        )

    outcomes = run_in_slots(run, list(plan.entries), n_jobs=n_jobs)

    results: List[GroupTimeEffect] = []
    skipped = []
    for entry, (effect, reason) in zip(plan.entries, outcomes):
        if effect is not None:
            results.append(effect)
        else:
            skipped.append((entry.group, entry.period, entry.base_period, reason))

    keys = [(r.group, r.period) for r in results]
    if len(set(keys)) != len(keys):
        raise InvalidParameterError("Estimation plan contains duplicate (group, period) cells")

    results.sort(key=lambda r: (r.group, r.period))

    if skipped:
        logger.info(
            "Skipped %d/%d (group, period) cells", len(skipped), len(plan.entries)
        )

    if return_skipped:
        return results, skipped
    return results


def results_to_dataframe(results: List[GroupTimeEffect]) -> pd.DataFrame:
    """
    Convert list of GroupTimeEffect to DataFrame.

    Returns
    -------
    pd.DataFrame
        Columns: group, period, base_period, event_time, att,
        n_treated, n_control, n_unbalanced
    """
    columns = [
        'group', 'period', 'base_period', 'event_time', 'att',
        'n_treated', 'n_control', 'n_unbalanced',
    ]
    if len(results) == 0:
        return pd.DataFrame(columns=columns)

    return pd.DataFrame([
        {
            'group': r.group,
            'period': r.period,
            'base_period': r.base_period,
            'event_time': r.event_time,
            'att': r.att,
            'n_treated': r.n_treated,
            'n_control': r.n_control,
            'n_unbalanced': r.n_unbalanced,
        }
        for r in results
    ], columns=columns)
