"""
Warning category hierarchy for the gtdid package.

Provides structured warning categories for group-time
difference-in-differences estimation, enabling selective filtering via
Python's standard ``warnings.filterwarnings()`` mechanism. All warning
classes inherit from :class:`GTDIDWarning`, which itself inherits from
:class:`UserWarning`.

Examples
--------
Suppress only small-sample warnings while keeping others visible:

>>> import warnings
>>> from gtdid import SmallSampleWarning
>>> warnings.filterwarnings('ignore', category=SmallSampleWarning)

Suppress all gtdid warnings at once:

>>> warnings.filterwarnings('ignore', category=GTDIDWarning)
"""


class GTDIDWarning(UserWarning):
    """
    Base warning class for all gtdid package warnings.

    Because ``GTDIDWarning`` inherits from ``UserWarning``, existing calls
    to ``warnings.filterwarnings('ignore', category=UserWarning)`` also
    suppress gtdid warnings.
    """
    pass


class SmallSampleWarning(GTDIDWarning):
    """
    Warning raised when a (group, period) cell is dropped.

    Triggered when the base period of a cell is not observed, or when the
    number of treated or comparison units in the cell falls below the
    configured minimum.
    """
    pass


class DataWarning(GTDIDWarning):
    """
    Warning raised for data quality issues.

    Triggered by unbalanced panels, missing outcomes, units dropped from
    a cell by the balance check, or the absence of never-treated units.
    """
    pass


class NumericalWarning(GTDIDWarning):
    """
    Warning raised when numerical instability is detected.

    Triggered by non-finite estimates returned from a user-supplied 2x2
    estimator or degenerate bootstrap distributions.
    """
    pass


class BootstrapWarning(GTDIDWarning):
    """
    Warning raised when bootstrap support falls short of the request.

    Triggered when some replications fail or miss an event time, so that
    the standard error of that event time rests on fewer than the
    requested number of draws.
    """
    pass
