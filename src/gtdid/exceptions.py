"""
Exception Classes Module

Defines exception hierarchy for the gtdid package.
"""


class GTDIDError(Exception):
    """
    Base exception class for all gtdid package errors.

    All custom exceptions in the gtdid package inherit from this class,
    allowing users to catch any gtdid-specific error with:

        try:
            results = gtdid(...)
        except GTDIDError as e:
            # Handle any gtdid error
            print(f"gtdid error: {e}")
    """
    pass


class InvalidParameterError(GTDIDError):
    """
    Exception raised when input parameter validation fails.

    Common triggers include:

    - Negative or non-integer anticipation horizon
    - Non-positive number of bootstrap replications
    - Unknown control group strategy, balance policy or size measure

    See Also
    --------
    InfeasibleConfigurationError : Valid parameters that leave nothing to estimate.
    """
    pass


class InfeasibleConfigurationError(InvalidParameterError):
    """
    Exception raised when the configuration leaves no usable evaluation period.

    The earliest ``1 + anticipation`` periods cannot have a valid base
    period, and the final period is trimmed when ``drop_last_period`` is
    in effect. If nothing remains, no (group, period) cell can be
    estimated.

    Examples
    --------
    >>> gtdid(data, ..., anticipation=5)  # 4 observed periods  # doctest: +SKIP
    InfeasibleConfigurationError: anticipation=5 leaves no evaluation periods ...
    """
    pass


class MissingRequiredColumnError(GTDIDError):
    """
    Exception raised when input DataFrame is missing required columns.

    Required columns are the outcome, unit identifier, time variable and
    group variable, plus any covariates requested.

    See Also
    --------
    gtdid.validation.validate_panel_data : Function that performs this check.
    """
    pass


class InvalidPanelDataError(GTDIDError):
    """
    Exception raised when the panel violates the data model.

    Trigger conditions include:

    - Duplicate (unit, period) observations
    - Group value varying within a unit
    - Negative or non-numeric group values
    - Non-numeric time variable
    """
    pass


class InsufficientDataError(GTDIDError):
    """
    Exception raised when sample size is insufficient for estimation.

    This is a general exception for data insufficiency issues. More
    specific subclasses indicate the exact nature of the insufficiency.

    See Also
    --------
    NoTreatedUnitsError : No treated groups in the data.
    NoControlUnitsError : No eligible comparison units.
    InfeasibleCellError : A single (group, period) cell cannot be estimated.
    """
    pass


class NoTreatedUnitsError(InsufficientDataError):
    """
    Exception raised when there are no treated groups in the data.

    Trigger condition: every unit carries a never-treated group value.
    """
    pass


class NoControlUnitsError(InsufficientDataError):
    """
    Exception raised when no comparison units are available.

    Trigger condition: ``control_group='never_treated'`` was requested
    but the panel contains no never-treated units.
    """
    pass


class InfeasibleCellError(InsufficientDataError):
    """
    Exception raised when a (group, period) cell cannot be estimated.

    Trigger conditions:

    - The base period computed for the cell is not observed in the data
    - Fewer treated or comparison units than required remain after the
      balance check

    By default such cells are dropped and recorded in the diagnostics;
    this exception is raised only with ``on_infeasible='raise'``.
    """

    def __init__(self, message, group=None, period=None):
        super().__init__(message)
        self.group = group
        self.period = period


class PanelBalanceError(InsufficientDataError):
    """
    Exception raised when units in a cell lack the evaluation or base period.

    Only raised with ``balance='raise'``. The default policy drops such
    units from the cell and counts them (``n_unbalanced``).
    """

    def __init__(self, message, group=None, period=None, n_unbalanced=0):
        super().__init__(message)
        self.group = group
        self.period = period
        self.n_unbalanced = n_unbalanced


class EstimatorError(GTDIDError):
    """
    Exception raised when the 2x2 ATT estimator fails.

    Degenerate or collinear inputs indicate a deeper data problem, so the
    failure is propagated and aborts the enclosing pipeline run instead
    of being absorbed.

    Examples
    --------
    >>> estimate_2x2([1.0], [0.0], [1, 1])  # doctest: +SKIP
    EstimatorError: post, pre and treated must have equal length ...
    """
    pass
