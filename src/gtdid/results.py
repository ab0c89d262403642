"""
Results container for group-time DiD estimation.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from .config import EstimationConfig
from .inference.bootstrap import BootstrapResult
from .staggered.aggregation import (
    DynamicEffect,
    OverallEffect,
    dynamic_effects_to_dataframe,
)
from .staggered.estimation import GroupTimeEffect, results_to_dataframe
from .staggered.indexing import EstimationPlan


class GTDIDResults:
    """
    Results of :func:`gtdid.gtdid`.

    Attributes
    ----------
    att_by_group_time : pd.DataFrame
        One row per estimated (group, period) cell.
    att_by_event_time : pd.DataFrame
        Dynamic effects with bootstrap standard errors. ``se_status``
        distinguishes ``'bootstrap'`` (SE reported),
        ``'insufficient_bootstrap'`` (SE unavailable, too few valid
        replications) and ``'not_computed'`` (bootstrap disabled).
        Event times with no estimable cell do not appear.
    att_overall, se_overall : float or None
        Average post-treatment effect and its bootstrap SE.
    skipped_cells : pd.DataFrame
        Cells dropped during planning or estimation, with the reason.
    diagnostics : list of dict
        Warning registry summary (see ``WarningRegistry.get_diagnostics``).

    Methods
    -------
    summary() : Formatted results summary
    to_csv(path, table) : Export a results table
    to_excel(path) : Export all tables
    """

    def __init__(
        self,
        group_time_effects: List[GroupTimeEffect],
        dynamic_effects: List[DynamicEffect],
        overall: Optional[OverallEffect],
        plan: EstimationPlan,
        group_sizes: Dict[int, int],
        skipped_cells: List[tuple],
        config: EstimationConfig,
        metadata: Dict[str, Any],
        bootstrap_result: Optional[BootstrapResult] = None,
        diagnostics: Optional[List[dict]] = None,
    ):
        self._group_time_effects = list(group_time_effects)
        self._dynamic_effects = list(dynamic_effects)
        self._overall = overall
        self._plan = plan
        self._group_sizes = dict(group_sizes)
        self._skipped_cells = list(skipped_cells)
        self._config = config
        self._metadata = dict(metadata)
        self._bootstrap_result = bootstrap_result
        self._diagnostics = list(diagnostics) if diagnostics else []

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    @property
    def att_by_group_time(self) -> pd.DataFrame:
        return results_to_dataframe(self._group_time_effects)

    @property
    def att_by_event_time(self) -> pd.DataFrame:
        return dynamic_effects_to_dataframe(self._dynamic_effects)

    @property
    def group_time_effects(self) -> List[GroupTimeEffect]:
        return list(self._group_time_effects)

    @property
    def dynamic_effects(self) -> List[DynamicEffect]:
        return list(self._dynamic_effects)

    @property
    def skipped_cells(self) -> pd.DataFrame:
        return pd.DataFrame(
            self._skipped_cells,
            columns=['group', 'period', 'base_period', 'reason'],
        )

    # ------------------------------------------------------------------
    # Overall effect
    # ------------------------------------------------------------------

    @property
    def overall(self) -> Optional[OverallEffect]:
        return self._overall

    @property
    def att_overall(self) -> Optional[float]:
        return None if self._overall is None else self._overall.att

    @property
    def se_overall(self) -> Optional[float]:
        return None if self._overall is None else self._overall.se

    @property
    def ci_overall_lower(self) -> Optional[float]:
        return None if self._overall is None else self._overall.ci_lower

    @property
    def ci_overall_upper(self) -> Optional[float]:
        return None if self._overall is None else self._overall.ci_upper

    # ------------------------------------------------------------------
    # Design
    # ------------------------------------------------------------------

    @property
    def groups(self) -> list:
        return list(self._plan.groups)

    @property
    def group_sizes(self) -> dict:
        return dict(self._group_sizes)

    @property
    def anticipation(self) -> int:
        return self._config.anticipation

    @property
    def drop_last_period(self) -> bool:
        return self._config.drop_last_period

    @property
    def control_group(self) -> str:
        return self._config.control_group

    @property
    def evaluation_periods(self) -> list:
        return list(self._plan.evaluation_periods)

    @property
    def plan(self) -> EstimationPlan:
        return self._plan

    @property
    def config(self) -> EstimationConfig:
        return self._config

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    @property
    def n_unbalanced(self) -> int:
        """Unit-cell drops by the balance check, summed over cells."""
        return int(sum(e.n_unbalanced for e in self._group_time_effects))

    @property
    def diagnostics(self) -> List[dict]:
        return list(self._diagnostics)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    @property
    def bootstrap_result(self) -> Optional[BootstrapResult]:
        return self._bootstrap_result

    @property
    def n_bootstrap(self) -> Optional[int]:
        if self._bootstrap_result is None:
            return None
        return self._bootstrap_result.n_bootstrap

    @property
    def bootstrap_valid(self) -> Optional[dict]:
        """Valid replications per event time (and ``'overall'``)."""
        if self._bootstrap_result is None:
            return None
        return dict(self._bootstrap_result.n_valid)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> str:
        """
        Formatted results summary.

        Returns
        -------
        str
        """
        sep_line = "=" * 70
        sub_line = "-" * 70
        level = int(round((1 - self._config.alpha) * 100))

        output = []
        output.append(sep_line)
        output.append("Group-Time DiD Results (staggered adoption)")
        output.append(sep_line)

        output.append(f"Treatment Groups: {', '.join(map(str, self.groups))}")
        output.append(f"Number of Units: {self._metadata.get('n_units', '?')}")
        n_nt = self._metadata.get('n_never_treated')
        if n_nt is not None:
            output.append(f"Number of Never Treated Units: {n_nt}")
        output.append(f"Comparison Group: {self.control_group}")
        output.append(f"Anticipation Horizon: {self.anticipation}")
        output.append(
            f"Evaluation Periods: {', '.join(map(str, self.evaluation_periods))}"
            f"{' (last period dropped)' if self.drop_last_period else ''}"
        )
        output.append(f"Estimator: {self._metadata.get('estimator', 'estimate_2x2')}")
        if self._bootstrap_result is not None:
            output.append(
                f"Bootstrap: {self._bootstrap_result.n_bootstrap} unit-level replications"
                f" ({self._bootstrap_result.n_failed} failed)"
            )
        else:
            output.append("Bootstrap: not computed")
        output.append(
            f"Cells estimated: {len(self._group_time_effects)}"
            f" (skipped: {len(self._skipped_cells)})"
        )
        output.append(sub_line)

        if self._overall is not None:
            output.append("")
            output.append("Overall Post-Treatment Effect:")
            output.append(f"  ATT     = {self._overall.att:.4f}")
            if self._overall.se_status == 'bootstrap':
                output.append(f"  SE      = {self._overall.se:.4f}")
                output.append(
                    f"  {level}% CI: [{self._overall.ci_lower:.4f}, {self._overall.ci_upper:.4f}]"
                )
            elif self._overall.se_status == 'insufficient_bootstrap':
                output.append("  SE      = n/a (insufficient bootstrap support)")
            output.append(sub_line)

        output.append("")
        output.append("Dynamic Effects by Event Time:")
        header = (
            f"  {'e':>4}  {'ATT':>9}  {'SE':>9}  {f'[{level}% CI]':>20}  "
            f"{'Groups':>6}  {'B valid':>7}"
        )
        output.append(header)
        for d in self._dynamic_effects:
            if d.se_status == 'bootstrap':
                se_str = f"{d.se:>9.4f}"
                ci_str = f"[{d.ci_lower:>7.3f}, {d.ci_upper:>7.3f}]"
            else:
                se_str = f"{'n/a':>9}"
                ci_str = ''
            flag = ' *' if d.se_status == 'insufficient_bootstrap' else ''
            b_valid = d.n_bootstrap_valid if self._bootstrap_result is not None else '-'
            output.append(
                f"  {d.event_time:>4}  {d.att:>9.4f}  {se_str}  {ci_str:>20}  "
                f"{d.n_groups:>6}  {b_valid:>7}{flag}"
            )
        if any(d.se_status == 'insufficient_bootstrap' for d in self._dynamic_effects):
            output.append("  * standard error unavailable: insufficient bootstrap support")
        output.append(sub_line)

        output.append("")
        output.append("Use results.att_by_group_time for (g,t)-specific effects")
        output.append(sep_line)
        return "\n".join(output)

    def __repr__(self) -> str:
        if self._overall is not None:
            return (
                f"GTDIDResults(att_overall={self._overall.att:.4f}, "
                f"se={self._overall.se:.4f}, groups={len(self.groups)}, "
                f"event_times={len(self._dynamic_effects)}, anticipation={self.anticipation})"
            )
        return (
            f"GTDIDResults(groups={len(self.groups)}, "
            f"event_times={len(self._dynamic_effects)}, anticipation={self.anticipation})"
        )

    def __str__(self) -> str:
        return self.summary()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_csv(self, path: str, table: str = 'event_time'):
        """
        Export a results table to CSV.

        Parameters
        ----------
        path : str
            Output file.
        table : {'event_time', 'group_time', 'skipped'}
        """
        tables = {
            'event_time': lambda: self.att_by_event_time,
            'group_time': lambda: self.att_by_group_time,
            'skipped': lambda: self.skipped_cells,
        }
        if table not in tables:
            raise ValueError(f"table must be one of {list(tables)}, got {table!r}")
        tables[table]().to_csv(path, index=False)

    def to_excel(self, path: str):
        """Export event-time, group-time and summary sheets (requires openpyxl)."""
        try:
            import openpyxl  # noqa: F401
        except ImportError:
            raise ImportError(
                "to_excel requires openpyxl. "
                "Install it with: pip install openpyxl"
            )

        summary_rows = [
            ['anticipation', self.anticipation],
            ['drop_last_period', self.drop_last_period],
            ['control_group', self.control_group],
            ['n_units', self._metadata.get('n_units')],
            ['n_cells', len(self._group_time_effects)],
            ['n_skipped', len(self._skipped_cells)],
            ['n_bootstrap', self.n_bootstrap],
            ['seed', self._config.seed],
        ]
        if self._overall is not None:
            summary_rows.extend([
                ['att_overall', self._overall.att],
                ['se_overall', self._overall.se],
            ])
        df_summary = pd.DataFrame(summary_rows, columns=['Statistic', 'Value'])

        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            df_summary.to_excel(writer, sheet_name='Summary', index=False)
            self.att_by_event_time.to_excel(writer, sheet_name='EventTime', index=False)
            self.att_by_group_time.to_excel(writer, sheet_name='GroupTime', index=False)
            if self._skipped_cells:
                self.skipped_cells.to_excel(writer, sheet_name='Skipped', index=False)
