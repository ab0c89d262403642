"""
Data Validation Module

Validates long-format staggered panels before estimation and extracts
the group structure used by the rest of the pipeline.
"""

from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from .exceptions import (
    InvalidPanelDataError,
    MissingRequiredColumnError,
    NoTreatedUnitsError,
)


def is_never_treated(
    gvar_value: Union[int, float],
    never_treated_values: Iterable = (0, np.inf),
) -> bool:
    """
    Determine if a unit is never treated based on its group value.

    A unit is never treated if its group is NaN/None or equals one of
    ``never_treated_values`` (``0`` and ``inf`` by default).

    Examples
    --------
    >>> is_never_treated(0)
    True
    >>> is_never_treated(np.nan)
    True
    >>> is_never_treated(2005)
    False
    """
    if pd.isna(gvar_value):
        return True
    for val in never_treated_values:
        if pd.isna(val):
            continue
        if np.isinf(val) and np.isinf(gvar_value):
            return True
        if gvar_value == val:
            return True
    return False


def never_treated_mask(
    unit_gvar: pd.Series,
    never_treated_values: Iterable = (0, np.inf),
) -> pd.Series:
    """Vectorized :func:`is_never_treated` over a unit-level group Series."""
    mask = unit_gvar.isna()
    values = unit_gvar.astype(float)
    for val in never_treated_values:
        if pd.isna(val):
            continue
        if np.isinf(val):
            mask |= np.isinf(values)
        else:
            mask |= (values == val)
    return mask


def _validate_required_columns(
    data: pd.DataFrame,
    y: str,
    ivar: str,
    tvar: str,
    gvar: str,
    covariates: Optional[List[str]],
) -> None:
    required_cols = [y, ivar, tvar, gvar]
    if covariates:
        required_cols.extend(covariates)

    missing_cols = [col for col in required_cols if col not in data.columns]
    if missing_cols:
        raise MissingRequiredColumnError(
            f"Required column(s) not found in data: {missing_cols}. "
            f"Available columns: {list(data.columns)}"
        )


def validate_panel_data(
    data: pd.DataFrame,
    y: str,
    ivar: str,
    tvar: str,
    gvar: str,
    covariates: Optional[List[str]] = None,
    never_treated_values: Iterable = (0, np.inf),
) -> Dict:
    """
    Validate a staggered panel and extract its group structure.

    Parameters
    ----------
    data : pd.DataFrame
        Panel data in long format.
    y : str
        Outcome column name.
    ivar : str
        Unit identifier column name.
    tvar : str
        Time period column name (numeric).
    gvar : str
        Group column: first treated period, or a never-treated value.
    covariates : list of str, optional
        Covariate column names.
    never_treated_values : iterable
        Group values that mark never-treated units. NaN always does.

    Returns
    -------
    dict
        - 'groups': List[int], sorted treatment groups
        - 'group_sizes': Dict[int, int], units per group
        - 'n_never_treated': int
        - 'n_units': int
        - 'n_obs': int
        - 'T_min', 'T_max': int
        - 'warnings': List[str], soft data-quality notes

    Raises
    ------
    MissingRequiredColumnError
        If required columns are missing.
    InvalidPanelDataError
        If the panel violates the data model (duplicates, time-varying
        group, negative or non-numeric values).
    NoTreatedUnitsError
        If no unit is ever treated.

    Examples
    --------
    >>> data = pd.DataFrame({
    ...     'id': [1, 1, 2, 2],
    ...     'year': [1, 2, 1, 2],
    ...     'y': [1.0, 2.0, 1.5, 2.0],
    ...     'g': [2, 2, 0, 0],
    ... })
    >>> validate_panel_data(data, 'y', 'id', 'year', 'g')['groups']
    [2]
    """
    if not isinstance(data, pd.DataFrame):
        raise TypeError(f"data must be a pandas DataFrame, got {type(data).__name__}")

    if len(data) == 0:
        raise InvalidPanelDataError("Input data is empty")

    _validate_required_columns(data, y, ivar, tvar, gvar, covariates)

    for col, role in ((tvar, 'time'), (gvar, 'group'), (y, 'outcome')):
        if not pd.api.types.is_numeric_dtype(data[col]):
            raise InvalidPanelDataError(
                f"{role} column '{col}' must be numeric, got {data[col].dtype}."
            )
    if covariates:
        non_numeric = [c for c in covariates if not pd.api.types.is_numeric_dtype(data[c])]
        if non_numeric:
            raise InvalidPanelDataError(
                f"Covariate columns must be numeric: {non_numeric}"
            )

    if data[ivar].isna().any() or data[tvar].isna().any():
        raise InvalidPanelDataError(
            f"Unit identifier '{ivar}' and time variable '{tvar}' must not contain missing values."
        )

    tvals = data[tvar].astype(float)
    if not np.isfinite(tvals).all() or (tvals != np.floor(tvals)).any():
        raise InvalidPanelDataError(
            f"Time variable '{tvar}' must hold finite integer periods."
        )

    duplicated = data.duplicated(subset=[ivar, tvar])
    if duplicated.any():
        examples = data.loc[duplicated, [ivar, tvar]].head(5).values.tolist()
        raise InvalidPanelDataError(
            f"Each (unit, period) pair must appear at most once. "
            f"Found {int(duplicated.sum())} duplicates, e.g. {examples}"
        )

    # Group must be time-invariant within each unit
    gvar_filled = data[gvar].astype(float).fillna(-np.inf)
    gvar_nunique = gvar_filled.groupby(data[ivar]).nunique()
    inconsistent_units = gvar_nunique[gvar_nunique > 1].index.tolist()
    if inconsistent_units:
        raise InvalidPanelDataError(
            f"gvar must be time-invariant within each unit. "
            f"Units with varying gvar values: {inconsistent_units[:5]}"
            f"{'...' if len(inconsistent_units) > 5 else ''}"
        )

    unit_gvar = data.groupby(ivar)[gvar].first()

    non_na_gvar = unit_gvar.dropna()
    negative_gvar = non_na_gvar[non_na_gvar < 0]
    if len(negative_gvar) > 0:
        neg_values = sorted(negative_gvar.unique().tolist())[:5]
        raise InvalidPanelDataError(
            f"gvar column contains negative values, which are not valid: {neg_values}. "
            f"Valid values: first treated period, or a never-treated value (0, inf, NaN)."
        )

    nt_mask = never_treated_mask(unit_gvar, never_treated_values)
    n_never_treated = int(nt_mask.sum())
    treated_gvar = unit_gvar[~nt_mask]

    if len(treated_gvar) == 0:
        raise NoTreatedUnitsError(
            "No treatment groups found in data. All units appear to be never-treated. "
            f"Found gvar values: {sorted(unit_gvar.dropna().unique().tolist())[:10]}"
        )

    fractional = treated_gvar[treated_gvar != np.floor(treated_gvar)]
    if len(fractional) > 0:
        raise InvalidPanelDataError(
            f"Treatment groups must be integer periods, got {sorted(fractional.unique().tolist())[:5]}"
        )

    groups = sorted(int(g) for g in treated_gvar.unique())
    group_sizes = {g: int((treated_gvar == g).sum()) for g in groups}

    T_min = int(data[tvar].min())
    T_max = int(data[tvar].max())

    warning_list = []

    if n_never_treated == 0:
        warning_list.append(
            "No never-treated units found in data. Only not-yet-treated units "
            "can serve as comparisons (control_group='not_yet_treated')."
        )

    groups_outside = [g for g in groups if g < T_min or g > T_max]
    if groups_outside:
        warning_list.append(
            f"Some groups are outside the observed time range [{T_min}, {T_max}]: "
            f"{groups_outside}. This may indicate data issues."
        )

    panel_counts = data.groupby(ivar)[tvar].count()
    if panel_counts.nunique() > 1:
        warning_list.append(
            f"Unbalanced panel detected: observation counts range from "
            f"{int(panel_counts.min())} to {int(panel_counts.max())}. "
            f"Units lacking a cell's periods are dropped from that cell."
        )

    n_missing_y = int(data[y].isna().sum())
    if n_missing_y > 0:
        pct_missing = n_missing_y / len(data) * 100
        warning_list.append(
            f"Outcome variable '{y}' has {n_missing_y} missing values ({pct_missing:.1f}%). "
            f"These observations will be excluded from estimation."
        )

    return {
        'groups': groups,
        'group_sizes': group_sizes,
        'n_never_treated': n_never_treated,
        'n_treated': int(len(treated_gvar)),
        'n_units': int(len(unit_gvar)),
        'n_obs': int(len(data)),
        'T_min': T_min,
        'T_max': T_max,
        'warnings': warning_list,
    }
