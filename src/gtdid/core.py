"""
Group-Time Difference-in-Differences with Anticipation

Public entry point and pipeline orchestration: validation, planning,
group-time estimation, event-time aggregation and unit-level bootstrap.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from .config import EstimationConfig
from .exceptions import GTDIDError, InsufficientDataError, InvalidParameterError
from .inference.bootstrap import BootstrapResult, bootstrap_se, pointwise_ci
from .results import GTDIDResults
from .staggered.aggregation import (
    DynamicEffect,
    OverallEffect,
    aggregate_dynamic,
    aggregate_overall,
    compute_group_sizes,
)
from .staggered.estimation import (
    GroupTimeEffect,
    build_panel_index,
    estimate_group_time_effects,
)
from .staggered.indexing import (
    EstimationPlan,
    build_estimation_plan,
    get_groups,
    get_time_periods,
)
from .validation import validate_panel_data
from .warning_registry import WarningRegistry
from .warnings_categories import DataWarning

# Configure logging
logger = logging.getLogger('gtdid')

OVERALL_KEY = 'overall'


@dataclass(frozen=True)
class PipelineOutput:
    """Everything one plan -> engine -> aggregator run produces."""
    plan: EstimationPlan
    group_time_effects: List[GroupTimeEffect]
    skipped: List[tuple]
    group_sizes: Dict[int, int]
    dynamic_effects: List[DynamicEffect]
    overall: Optional[OverallEffect]

    def estimates(self, overall_event_times: Optional[Sequence[int]] = None) -> Dict:
        """
        Aggregates keyed by event time, plus ``'overall'`` when defined.

        With ``overall_event_times`` the overall effect is the mean over
        exactly those event times, NaN if this run lacks any of them.
        """
        out = {d.event_time: d.att for d in self.dynamic_effects}
        if overall_event_times is not None:
            out[OVERALL_KEY] = aggregate_overall(
                self.dynamic_effects, event_times=overall_event_times,
            ).att
        elif self.overall is not None:
            out[OVERALL_KEY] = self.overall.att
        return out


def run_pipeline(
    data: pd.DataFrame,
    y: str,
    ivar: str,
    tvar: str,
    gvar: str,
    config: EstimationConfig,
    covariates: Optional[Sequence[str]] = None,
    estimator: Optional[Callable] = None,
    registry: Optional[WarningRegistry] = None,
    n_jobs: Optional[int] = None,
) -> PipelineOutput:
    """
    Run plan -> group-time engine -> aggregator on one panel.

    The data is assumed to be validated. This is the unit of work that
    every bootstrap replication repeats on a resampled panel.

    Parameters
    ----------
    data : pd.DataFrame
        Long panel.
    y, ivar, tvar, gvar : str
        Outcome, unit, time and group columns.
    config : EstimationConfig
        Estimation options.
    covariates : sequence of str, optional
        Covariates passed to the 2x2 estimator.
    estimator : callable, optional
        2x2 estimator; defaults to ``estimate_2x2``.
    registry : WarningRegistry, optional
        Collects per-cell warnings.
    n_jobs : int, optional
        Worker threads for cells; defaults to ``config.n_jobs``.

    Returns
    -------
    PipelineOutput
    """
    groups = get_groups(data, gvar, ivar, config.never_treated_values)
    plan = build_estimation_plan(
        groups,
        get_time_periods(data, tvar),
        anticipation=config.anticipation,
        drop_last_period=config.drop_last_period,
        on_infeasible=config.on_infeasible,
        registry=registry,
    )

    panel_index = build_panel_index(
        data, y, ivar, tvar, gvar,
        covariates=covariates,
        never_treated_values=config.never_treated_values,
    )

    effects, skipped = estimate_group_time_effects(
        panel_index,
        plan,
        estimator=estimator,
        control_group=config.control_group,
        balance=config.balance,
        on_infeasible=config.on_infeasible,
        min_treated=config.min_treated,
        min_control=config.min_control,
        n_jobs=config.n_jobs if n_jobs is None else n_jobs,
        registry=registry,
        return_skipped=True,
    )

    group_sizes = compute_group_sizes(
        data, gvar, ivar,
        groups=groups,
        size_measure=config.size_measure,
        never_treated_values=config.never_treated_values,
    )
    dynamic = aggregate_dynamic(effects, group_sizes)
    overall = aggregate_overall(dynamic) if any(d.event_time >= 0 for d in dynamic) else None

    return PipelineOutput(
        plan=plan,
        group_time_effects=effects,
        skipped=list(plan.infeasible) + list(skipped),
        group_sizes=group_sizes,
        dynamic_effects=dynamic,
        overall=overall,
    )


def _attach_inference(effect, boot: BootstrapResult, key, alpha: float):
    if not boot.is_supported(key):
        return replace(
            effect,
            se=np.nan, ci_lower=np.nan, ci_upper=np.nan,
            n_bootstrap_valid=boot.n_valid.get(key, 0),
            se_status='insufficient_bootstrap',
        )
    se = boot.se[key]
    ci_lower, ci_upper = pointwise_ci(effect.att, se, alpha)
    return replace(
        effect,
        se=se, ci_lower=ci_lower, ci_upper=ci_upper,
        n_bootstrap_valid=boot.n_valid[key],
        se_status='bootstrap',
    )


def gtdid(
    data: pd.DataFrame,
    y: str,
    ivar: str,
    tvar: str,
    gvar: str,
    *,
    covariates: Optional[List[str]] = None,
    estimator: Optional[Callable] = None,
    bootstrap: bool = True,
    config: Optional[EstimationConfig] = None,
    resampler: Optional[Callable] = None,
    **options,
) -> GTDIDResults:
    """
    Group-time DiD for staggered adoption with anticipation.

    Estimates ATT(g, t) for every estimable (group, period) cell,
    differencing each against a base period placed before anticipation
    could start, aggregates the cells into dynamic effects by event
    time, and attaches unit-level bootstrap standard errors.

    Parameters
    ----------
    data : pd.DataFrame
        Panel data in long format, one row per (unit, period).
    y : str
        Outcome variable column name.
    ivar : str
        Unit identifier column name.
    tvar : str
        Time period column name (integer periods).
    gvar : str
        First treated period of each unit; 0, inf or NaN for units never
        treated in the sample window. Must be time-invariant.
    covariates : list of str, optional
        Covariates passed to the 2x2 estimator, read at each cell's
        base period.
    estimator : callable, optional
        2x2 ATT estimator ``f(post, pre, treated[, covariates]) -> float``.
        Defaults to :func:`gtdid.staggered.estimate_2x2`.
    bootstrap : bool, default True
        Whether to compute bootstrap standard errors.
    config : EstimationConfig, optional
        Full configuration. Mutually exclusive with ``**options``.
    resampler : callable, optional
        ``f(data, ivar, rng) -> DataFrame``; defaults to
        :func:`gtdid.inference.resample_by_unit`.
    **options
        Fields of :class:`EstimationConfig`: ``anticipation``,
        ``drop_last_period``, ``control_group``, ``n_bootstrap``,
        ``seed``, ``alpha``, ``n_jobs``, ...

    Returns
    -------
    GTDIDResults

    Raises
    ------
    InvalidParameterError
        Invalid options (e.g. negative anticipation, n_bootstrap <= 0).
    InfeasibleConfigurationError
        The anticipation horizon leaves no evaluation period.
    MissingRequiredColumnError, InvalidPanelDataError, NoTreatedUnitsError
        The panel fails validation.
    NoControlUnitsError
        Never-treated comparisons requested but none exist.
    EstimatorError
        The 2x2 estimator failed on some cell.
    InsufficientDataError
        No cell could be estimated.

    Examples
    --------
    >>> results = gtdid(
    ...     data, y='y', ivar='id', tvar='period', gvar='group',
    ...     anticipation=1, n_bootstrap=500, seed=42,
    ... )
    >>> print(results.summary())
    >>> results.att_by_event_time
    """
    if config is not None and options:
        raise InvalidParameterError(
            "Pass either config or keyword options, not both. "
            f"Got config and {sorted(options)}"
        )
    if config is None:
        try:
            config = EstimationConfig(**options)
        except TypeError as e:
            raise InvalidParameterError(f"Unrecognized option: {e}") from None

    registry = WarningRegistry(config.verbose)

    info = validate_panel_data(
        data, y, ivar, tvar, gvar,
        covariates=covariates,
        never_treated_values=config.never_treated_values,
    )
    for msg in info['warnings']:
        registry.collect(DataWarning, msg)

    logger.info(
        "Estimating group-time effects: %d groups, periods %d-%d, anticipation=%d",
        len(info['groups']), info['T_min'], info['T_max'], config.anticipation,
    )

    try:
        main = run_pipeline(
            data, y, ivar, tvar, gvar, config,
            covariates=covariates, estimator=estimator, registry=registry,
        )
    except GTDIDError:
        # surface the data warnings that usually explain the failure
        registry.flush()
        raise

    if not main.group_time_effects:
        registry.flush(total_cells=main.plan.n_planned)
        raise InsufficientDataError(
            f"No (group, period) cell could be estimated: all "
            f"{main.plan.n_planned} planned cells were dropped. "
            f"See the warnings for the reasons."
        )

    dynamic = main.dynamic_effects
    overall = main.overall
    boot = None

    if bootstrap:
        overall_event_times = overall.event_times if overall is not None else None

        def pipeline(sample: pd.DataFrame) -> Dict:
            return run_pipeline(
                sample, y, ivar, tvar, gvar, config,
                covariates=covariates, estimator=estimator, n_jobs=1,
            ).estimates(overall_event_times=overall_event_times)

        targets = [d.event_time for d in dynamic]
        if overall is not None:
            targets.append(OVERALL_KEY)

        boot = bootstrap_se(
            data, pipeline, targets, ivar,
            n_bootstrap=config.n_bootstrap,
            seed=config.seed,
            n_jobs=config.n_jobs,
            min_valid_share=config.min_valid_share,
            resampler=resampler,
            registry=registry,
        )
        dynamic = [_attach_inference(d, boot, d.event_time, config.alpha) for d in dynamic]
        if overall is not None:
            overall = _attach_inference(overall, boot, OVERALL_KEY, config.alpha)

    registry.flush(total_cells=main.plan.n_planned)

    metadata = {
        'y': y,
        'ivar': ivar,
        'tvar': tvar,
        'gvar': gvar,
        'covariates': list(covariates) if covariates else [],
        'estimator': getattr(estimator, '__name__', 'estimate_2x2') if estimator else 'estimate_2x2',
        'n_units': info['n_units'],
        'n_obs': info['n_obs'],
        'n_never_treated': info['n_never_treated'],
        'T_min': info['T_min'],
        'T_max': info['T_max'],
    }

    return GTDIDResults(
        group_time_effects=main.group_time_effects,
        dynamic_effects=dynamic,
        overall=overall,
        plan=main.plan,
        group_sizes=main.group_sizes,
        skipped_cells=main.skipped,
        config=config,
        metadata=metadata,
        bootstrap_result=boot,
        diagnostics=registry.get_diagnostics(),
    )
