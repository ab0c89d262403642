"""
Tests for the deferred warning registry.
"""

import threading
import warnings

import pytest

from gtdid.warning_registry import WarningRegistry
from gtdid.warnings_categories import (
    BootstrapWarning,
    DataWarning,
    GTDIDWarning,
    SmallSampleWarning,
)


def _fill(registry):
    for g, t in [(3, 3), (3, 4), (4, 4)]:
        registry.collect(SmallSampleWarning, "Cells dropped", group=g, period=t,
                         context={'n_treated': g - 3})
    registry.collect(BootstrapWarning, "Bootstrap support low")


class TestFlush:

    def test_default_one_summary_per_category(self):
        registry = WarningRegistry()
        _fill(registry)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            registry.flush(total_cells=10)
        assert len(caught) == 2
        messages = [str(w.message) for w in caught]
        assert any('3 of 10 (group, period) cells [(3, 3), (3, 4), (4, 4)]' in m
                   for m in messages)

    def test_quiet_only_critical(self):
        registry = WarningRegistry('quiet')
        _fill(registry)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            registry.flush()
        assert [w.category for w in caught] == [BootstrapWarning]

    def test_verbose_every_record(self):
        registry = WarningRegistry('verbose')
        _fill(registry)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            registry.flush()
        assert len(caught) == 4
        assert 'Cells dropped (group=3, period=4)' in [str(w.message) for w in caught]

    def test_flush_once(self):
        registry = WarningRegistry()
        _fill(registry)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            registry.flush()
            registry.flush()
        assert len(caught) == 2

    def test_summary_reports_units_dropped_by_balance(self):
        registry = WarningRegistry()
        for g, t, n in [(3, 3, 2), (3, 4, 1)]:
            registry.collect(DataWarning, "Units lacking a period were dropped",
                             group=g, period=t, context={'n_unbalanced': n})
        with pytest.warns(DataWarning, match="3 unit-cell observations dropped"):
            registry.flush(total_cells=4)

    def test_summary_truncates_cell_list(self):
        registry = WarningRegistry()
        for t in range(8):
            registry.collect(SmallSampleWarning, "Cells dropped", group=2, period=t)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            registry.flush()
        message = str(caught[0].message)
        assert '8 (group, period) cells' in message
        assert '(2, 4), ...]' in message
        assert '(2, 5)' not in message

    def test_distinct_messages_summarized_separately(self):
        registry = WarningRegistry()
        registry.collect(SmallSampleWarning, "Base period not observed", group=2, period=3)
        registry.collect(SmallSampleWarning, "Too few comparison units", group=4, period=5)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            registry.flush()
        assert len(caught) == 2

    def test_empty_registry_silent(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            WarningRegistry().flush()
        assert caught == []

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            WarningRegistry('loud')


class TestDiagnostics:

    def test_structure(self):
        registry = WarningRegistry('quiet')
        _fill(registry)
        diag = {d['category']: d for d in registry.get_diagnostics()}
        small = diag['SmallSampleWarning']
        assert small['count'] == 3
        assert small['cells'] == [(3, 3), (3, 4), (4, 4)]
        assert [d['n_treated'] for d in small['details']] == [0, 0, 1]
        assert small['details'][0]['group'] == 3
        assert diag['BootstrapWarning']['cells'] == []

    def test_count(self):
        registry = WarningRegistry()
        _fill(registry)
        assert registry.count() == 4
        assert registry.count(GTDIDWarning) == 4
        assert registry.count(DataWarning) == 0

    def test_thread_safe_collect(self):
        registry = WarningRegistry()

        def work(g):
            for t in range(200):
                registry.collect(DataWarning, "x", group=g, period=t)

        threads = [threading.Thread(target=work, args=(g,)) for g in range(8)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        assert registry.count(DataWarning) == 1600


class TestCategories:

    def test_hierarchy(self):
        for cat in (SmallSampleWarning, DataWarning, BootstrapWarning):
            assert issubclass(cat, GTDIDWarning)
            assert issubclass(cat, UserWarning)
