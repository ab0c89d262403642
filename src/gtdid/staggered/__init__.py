"""
Staggered DiD Module

Group-time ATT estimation for staggered adoption with an anticipation
horizon.

This module provides:
- Panel indexing and the (group, period, base period) estimation plan
- Comparison group selection (never-treated or not-yet-treated)
- The default 2x2 ATT estimator
- Group-time effect estimation
- Event-time (dynamic) and overall aggregation
"""

from .indexing import (
    PlanEntry,
    EstimationPlan,
    get_groups,
    get_time_periods,
    get_evaluation_periods,
    compute_base_period,
    build_estimation_plan,
)

from .control_groups import (
    ControlGroupStrategy,
    get_control_mask,
)

from .estimators import estimate_2x2

from .estimation import (
    GroupTimeEffect,
    PanelIndex,
    build_panel_index,
    estimate_group_time_effects,
    results_to_dataframe,
)

from .aggregation import (
    DynamicEffect,
    OverallEffect,
    compute_group_sizes,
    aggregate_dynamic,
    aggregate_overall,
    dynamic_effects_to_dataframe,
)

__all__ = [
    # Indexing
    'PlanEntry',
    'EstimationPlan',
    'get_groups',
    'get_time_periods',
    'get_evaluation_periods',
    'compute_base_period',
    'build_estimation_plan',
    # Control groups
    'ControlGroupStrategy',
    'get_control_mask',
    # 2x2 estimator
    'estimate_2x2',
    # Estimation
    'GroupTimeEffect',
    'PanelIndex',
    'build_panel_index',
    'estimate_group_time_effects',
    'results_to_dataframe',
    # Aggregation
    'DynamicEffect',
    'OverallEffect',
    'compute_group_sizes',
    'aggregate_dynamic',
    'aggregate_overall',
    'dynamic_effects_to_dataframe',
]
