"""
gtdid: Group-Time Difference-in-Differences with Anticipation
==============================================================

Estimation of group-time average treatment effects ATT(g, t) for
staggered-adoption panels in which units may react to treatment up to
``anticipation`` periods before it formally begins.

Key Features
------------
- Anticipation-adjusted base periods: every cell is differenced against
  the last period before anticipation could start
  (``b = g - 1 - anticipation`` post-treatment, ``b = t - 1 - anticipation``
  pre-treatment)
- Never-treated or not-yet-treated comparison groups
- Swappable 2x2 estimator (difference of mean changes by default,
  regression adjustment with covariates)
- Dynamic (event-time) effects weighted by group size and an overall
  post-treatment effect
- Unit-level bootstrap standard errors with reproducible, order-free
  seeding and optional worker threads
- Export: Excel and CSV output formats

Main Components
---------------
gtdid : function
    Main estimation function. See ``help(gtdid)`` for detailed documentation.
GTDIDResults : class
    Results container with ``summary()`` and export methods.
EstimationConfig : class
    Frozen, validated estimation options.
Exception hierarchy : module
    Typed exceptions inheriting from ``GTDIDError``.

Quick Start
-----------
>>> from gtdid import gtdid
>>>
>>> results = gtdid(
...     data, y='y', ivar='id', tvar='period', gvar='first_treat',
...     anticipation=1, n_bootstrap=500, seed=42,
... )
>>> print(results.summary())
>>> results.att_by_event_time
>>> results.to_excel('results.xlsx')
"""

__version__ = '0.1.0'

# Export main function
from .core import gtdid, run_pipeline

# Export results and configuration
from .results import GTDIDResults
from .config import EstimationConfig

# Export exception classes
from .exceptions import (
    EstimatorError,
    GTDIDError,
    InfeasibleCellError,
    InfeasibleConfigurationError,
    InsufficientDataError,
    InvalidPanelDataError,
    InvalidParameterError,
    MissingRequiredColumnError,
    NoControlUnitsError,
    NoTreatedUnitsError,
    PanelBalanceError,
)

# Export warning categories
from .warnings_categories import (
    BootstrapWarning,
    DataWarning,
    GTDIDWarning,
    NumericalWarning,
    SmallSampleWarning,
)

__all__ = [
    '__version__',
    # Main function
    'gtdid',
    'run_pipeline',
    # Results and configuration
    'GTDIDResults',
    'EstimationConfig',
    # Exception classes
    'GTDIDError',
    'InvalidParameterError',
    'InfeasibleConfigurationError',
    'MissingRequiredColumnError',
    'InvalidPanelDataError',
    'InsufficientDataError',
    'NoTreatedUnitsError',
    'NoControlUnitsError',
    'InfeasibleCellError',
    'PanelBalanceError',
    'EstimatorError',
    # Warning categories
    'GTDIDWarning',
    'SmallSampleWarning',
    'DataWarning',
    'NumericalWarning',
    'BootstrapWarning',
]
