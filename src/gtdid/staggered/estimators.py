"""
Two-group two-period ATT estimators.

The group-time engine reduces every (group, period) cell to a canonical
2x2 comparison and hands it to an estimator with the signature

    estimator(post, pre, treated, covariates=None) -> float

where ``post`` and ``pre`` are outcome vectors at the evaluation and base
periods, ``treated`` is a 0/1 vector, and ``covariates`` is an optional
(n, k) matrix, all aligned by unit. Any callable with this signature can
replace :func:`estimate_2x2`.
"""

from typing import Optional

import numpy as np
import statsmodels.api as sm

from ..exceptions import EstimatorError


def _as_vector(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise EstimatorError(f"{name} must be one-dimensional, got shape {arr.shape}")
    return arr


def estimate_2x2(
    post,
    pre,
    treated,
    covariates: Optional[np.ndarray] = None,
) -> float:
    """
    ATT of a single two-group two-period comparison.

    Without covariates this is the difference in mean outcome changes:

        ATT = mean(ΔY | D=1) - mean(ΔY | D=0),   ΔY = post - pre

    With covariates, the comparison units' changes are regressed on the
    covariates (OLS with intercept) and the fitted model predicts the
    counterfactual change of each treated unit:

        ATT = mean(ΔY_i - X_i'β̂ | D=1)

    Parameters
    ----------
    post : array-like
        Outcomes at the evaluation period.
    pre : array-like
        Outcomes at the base period.
    treated : array-like of {0, 1}
        Treatment indicator.
    covariates : array-like, optional
        Covariate matrix with one row per unit.

    Returns
    -------
    float
        ATT estimate.

    Raises
    ------
    EstimatorError
        Length mismatch, non-binary treatment, an empty arm, non-finite
        inputs, or a rank-deficient covariate design.

    Examples
    --------
    >>> estimate_2x2([3.0, 4.0, 1.0], [1.0, 2.0, 0.0], [1, 1, 0])
    1.0
    """
    post = _as_vector(post, 'post')
    pre = _as_vector(pre, 'pre')
    d = _as_vector(treated, 'treated')

    n = len(d)
    if len(post) != n or len(pre) != n:
        raise EstimatorError(
            f"post, pre and treated must have equal length, got "
            f"{len(post)}, {len(pre)}, {n}"
        )
    if not np.all(np.isin(d, (0.0, 1.0))):
        raise EstimatorError("treated must contain only 0 and 1")

    delta = post - pre
    if not np.all(np.isfinite(delta)):
        raise EstimatorError("post and pre outcomes must be finite")

    treat_mask = d == 1
    n_treated = int(treat_mask.sum())
    n_control = n - n_treated
    if n_treated == 0 or n_control == 0:
        raise EstimatorError(
            f"Need at least one treated and one comparison unit, got "
            f"n_treated={n_treated}, n_control={n_control}"
        )

    if covariates is None:
        return float(delta[treat_mask].mean() - delta[~treat_mask].mean())

    X = np.asarray(covariates, dtype=float)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.shape[0] != n:
        raise EstimatorError(
            f"covariates must have one row per unit: got {X.shape[0]} rows for {n} units"
        )
    if not np.all(np.isfinite(X)):
        raise EstimatorError("covariates must be finite")

    X_design = sm.add_constant(X, has_constant='add')
    X_control = X_design[~treat_mask]
    if np.linalg.matrix_rank(X_control) < X_control.shape[1]:
        raise EstimatorError(
            f"Covariate design is rank deficient among comparison units "
            f"(n_control={n_control}, k={X_control.shape[1]})"
        )

    model = sm.OLS(delta[~treat_mask], X_control).fit()
    counterfactual = X_design[treat_mask] @ model.params
    return float(np.mean(delta[treat_mask] - counterfactual))
