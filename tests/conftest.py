"""
Pytest configuration file providing shared fixtures and helper functions.
"""
import numpy as np
import pandas as pd
import pytest


def make_staggered_panel(
    group_sizes,
    n_never_treated,
    T,
    effect=1.0,
    anticipation_effect=None,
    noise_sd=0.0,
    seed=None,
    never_treated_value=0,
    t_start=1,
):
    """
    Simulate a balanced staggered-adoption panel.

    Outcome: y_it = alpha_i + 0.5 * t + tau_it + eps_it, where tau_it is
    ``effect`` (scalar or callable of event time) for e >= 0 and
    ``anticipation_effect[e]`` for listed negative event times.

    Parameters
    ----------
    group_sizes : dict
        {first treated period: number of units}
    n_never_treated : int
        Units never treated, coded ``never_treated_value``.
    T : int
        Number of periods (t_start, ..., t_start + T - 1).
    effect : float or callable
        Treatment effect at event time e >= 0.
    anticipation_effect : dict, optional
        {negative event time: effect}, e.g. {-1: -1.0}.
    noise_sd : float
        Idiosyncratic noise; 0 gives an exact panel.
    seed : int, optional

    Returns
    -------
    DataFrame
        Columns: id, period, y, g, x
    """
    rng = np.random.default_rng(seed)
    anticipation_effect = anticipation_effect or {}
    effect_fn = effect if callable(effect) else (lambda e: effect)

    rows = []
    unit_id = 1
    specs = [(g, n) for g, n in sorted(group_sizes.items())]
    specs.append((never_treated_value, n_never_treated))

    for g, n in specs:
        treated = not (g == never_treated_value or pd.isna(g))
        for _ in range(n):
            alpha = rng.normal(0, 1) if noise_sd > 0 else unit_id * 0.1
            x = rng.normal(0, 1)
            for t in range(t_start, t_start + T):
                tau = 0.0
                if treated:
                    e = t - g
                    if e >= 0:
                        tau = effect_fn(e)
                    else:
                        tau = anticipation_effect.get(e, 0.0)
                eps = rng.normal(0, noise_sd) if noise_sd > 0 else 0.0
                rows.append({
                    'id': unit_id,
                    'period': t,
                    'y': alpha + 0.5 * t + tau + eps,
                    'g': g,
                    'x': x,
                })
            unit_id += 1

    return pd.DataFrame(rows)


@pytest.fixture
def anticipation_panel():
    """
    Five periods, groups {2, 3, 4, 5} plus never treated (0).

    True effect 1 for e >= 0, dip of -1 at e = -1, no noise.
    """
    return make_staggered_panel(
        {2: 5, 3: 5, 4: 5, 5: 5},
        n_never_treated=10,
        T=5,
        effect=1.0,
        anticipation_effect={-1: -1.0},
    )


@pytest.fixture
def noisy_anticipation_panel():
    """Same design as ``anticipation_panel`` with noise and more units."""
    return make_staggered_panel(
        {2: 30, 3: 30, 4: 30, 5: 30},
        n_never_treated=60,
        T=5,
        effect=1.0,
        anticipation_effect={-1: -1.0},
        noise_sd=0.5,
        seed=20240501,
    )


@pytest.fixture
def simple_panel():
    """Two groups plus never treated, six periods, no anticipation, no noise."""
    return make_staggered_panel(
        {3: 4, 5: 6},
        n_never_treated=5,
        T=6,
        effect=lambda e: 2.0 + e,
    )
