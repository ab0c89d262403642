"""
Deferred warnings for the (group, period) cell loop.

The planner, the cell loop and the bootstrap report problems here
instead of calling ``warnings.warn`` directly, so a panel with many
dropped cells prints one line per reason rather than one per cell.
Reports are grouped by reason (warning category plus message) and
emitted once estimation is complete:

- ``quiet``   : only bootstrap and numerical problems.
- ``default`` : one line per reason, naming the affected cells.
- ``verbose`` : one line per report.

Whatever the level, ``get_diagnostics()`` returns every reason with its
cells and context, exposed as ``GTDIDResults.diagnostics``.
"""

import threading
import warnings
from typing import Any

from .warnings_categories import BootstrapWarning, NumericalWarning

_LEVELS = ('quiet', 'default', 'verbose')
_ALWAYS_SHOWN = (BootstrapWarning, NumericalWarning)

# cells listed in a summary line before it is cut short
_MAX_LISTED_CELLS = 5


class _Reason:
    """All reports sharing one category and message."""

    __slots__ = ('category', 'message', 'cells', 'details')

    def __init__(self, category: type, message: str) -> None:
        self.category = category
        self.message = message
        self.cells: list[tuple] = []
        self.details: list[dict] = []

    def add(self, group: Any, period: Any, context: dict) -> None:
        if group is not None or period is not None:
            self.cells.append((group, period))
        self.details.append(dict(context, group=group, period=period))

    def summary(self, total_cells: int | None) -> str:
        if not self.cells:
            return f"{self.message} ({len(self.details)} occurrences)"

        listed = ', '.join(f"({g}, {t})" for g, t in self.cells[:_MAX_LISTED_CELLS])
        if len(self.cells) > _MAX_LISTED_CELLS:
            listed += ', ...'
        of_total = f" of {total_cells}" if total_cells else ""
        text = f"{self.message}: {len(self.cells)}{of_total} (group, period) cells [{listed}]"

        units = sum(d.get('n_unbalanced', 0) for d in self.details)
        if units:
            text += f"; {units} unit-cell observations dropped"
        return text


class WarningRegistry:
    """
    Collects warnings raised while estimating cells and bootstrap draws.

    Safe to share between the worker threads of one estimation.

    Parameters
    ----------
    verbose : {'quiet', 'default', 'verbose'}
        Output level of :meth:`flush`. Case-insensitive.

    Raises
    ------
    ValueError
        Unknown level.
    """

    def __init__(self, verbose: str = 'default') -> None:
        level = verbose.lower() if isinstance(verbose, str) else verbose
        if level not in _LEVELS:
            raise ValueError(
                f"Invalid verbose level {verbose!r}. Must be one of {list(_LEVELS)}."
            )
        self._level = level
        self._reasons: dict[tuple, _Reason] = {}
        self._n_reports = 0
        self._flushed = False
        self._lock = threading.Lock()

    def collect(
        self,
        category: type,
        message: str,
        group: Any = None,
        period: Any = None,
        context: dict | None = None,
    ) -> None:
        """
        Record one problem.

        Parameters
        ----------
        category : type
            Subclass of :class:`GTDIDWarning`.
        message : str
            Reason text; reports with equal category and message are
            summarized together.
        group, period : int, optional
            The cell concerned, if any.
        context : dict, optional
            Counts describing the problem, e.g. ``{'n_unbalanced': 3}``.
        """
        with self._lock:
            reason = self._reasons.get((category, message))
            if reason is None:
                reason = self._reasons[(category, message)] = _Reason(category, message)
            reason.add(group, period, context or {})
            self._n_reports += 1

    def count(self, category: type | None = None) -> int:
        """Number of reports, optionally only those of ``category`` (or a subclass)."""
        if category is None:
            return self._n_reports
        return sum(
            len(r.details) for r in self._reasons.values()
            if issubclass(r.category, category)
        )

    def flush(self, total_cells: int | None = None) -> None:
        """
        Emit the collected warnings at the configured level.

        Only the first call emits anything.

        Parameters
        ----------
        total_cells : int, optional
            Planned cell count, quoted in summaries as "k of total_cells".
        """
        if self._flushed:
            return
        self._flushed = True

        for reason in self._reasons.values():
            if self._level == 'verbose':
                for d in reason.details:
                    g, t = d['group'], d['period']
                    where = f" (group={g}, period={t})" if (g, t) != (None, None) else ""
                    warnings.warn(reason.message + where, reason.category, stacklevel=2)
            elif self._level == 'default' or issubclass(reason.category, _ALWAYS_SHOWN):
                warnings.warn(reason.summary(total_cells), reason.category, stacklevel=2)

    def get_diagnostics(self) -> list[dict]:
        """
        Everything collected, one entry per reason.

        Returns
        -------
        list of dict
            Keys ``category`` (class name), ``message``, ``count``,
            ``cells`` (list of (group, period)) and ``details`` (the
            context of each report, with its group and period).
        """
        return [
            {
                'category': r.category.__name__,
                'message': r.message,
                'count': len(r.details),
                'cells': list(r.cells),
                'details': [dict(d) for d in r.details],
            }
            for r in self._reasons.values()
        ]
