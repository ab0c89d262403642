"""
Tests for comparison group selection.
"""

import numpy as np
import pytest

from gtdid.exceptions import InvalidParameterError
from gtdid.staggered.control_groups import (
    ControlGroupStrategy,
    get_control_mask,
    parse_control_group,
)


@pytest.fixture
def unit_groups():
    # never treated (0, inf, NaN) and groups 3..7
    groups = np.array([0, np.inf, np.nan, 3, 4, 5, 6, 7], dtype=float)
    never_treated = np.array([True, True, True, False, False, False, False, False])
    return groups, never_treated


class TestNeverTreated:

    def test_only_never_treated(self, unit_groups):
        groups, nt = unit_groups
        mask = get_control_mask(groups, nt, group=3, period=4, base_period=2)
        np.testing.assert_array_equal(mask, nt)

    def test_returns_copy(self, unit_groups):
        groups, nt = unit_groups
        mask = get_control_mask(groups, nt, 3, 4, 2)
        mask[:] = False
        assert nt.any()


class TestNotYetTreated:

    def test_strictly_after_latest_period(self, unit_groups):
        groups, nt = unit_groups
        # cell (g=3, t=4, b=2), no anticipation: eligible groups > 4
        mask = get_control_mask(groups, nt, 3, 4, 2, 0, 'not_yet_treated')
        eligible = set(groups[mask & ~nt].astype(int))
        assert eligible == {5, 6, 7}
        assert mask[:3].all()

    def test_anticipation_tightens_filter(self, unit_groups):
        groups, nt = unit_groups
        # with A=1, group 5 already anticipates at t=4
        mask = get_control_mask(groups, nt, 3, 4, 2, 1, 'not_yet_treated')
        assert set(groups[mask & ~nt].astype(int)) == {6, 7}

    def test_pre_treatment_cell(self, unit_groups):
        groups, nt = unit_groups
        # cell (g=6, t=3, b=1) with A=1: groups > 4, excluding 6 itself
        mask = get_control_mask(groups, nt, 6, 3, 1, 1, 'not_yet_treated')
        assert set(groups[mask & ~nt].astype(int)) == {5, 7}

    def test_own_group_excluded(self, unit_groups):
        groups, nt = unit_groups
        mask = get_control_mask(groups, nt, 7, 2, 1, 0, ControlGroupStrategy.NOT_YET_TREATED)
        assert not mask[groups == 7].any()

    def test_no_unit_switches_between_base_and_period(self, unit_groups):
        groups, nt = unit_groups
        for A in range(3):
            for g in (3, 4, 5):
                for t in range(2, 8):
                    b = t - 1 - A if t < g else g - 1 - A
                    mask = get_control_mask(groups, nt, g, t, b, A, 'not_yet_treated')
                    later = groups[mask & ~nt]
                    assert np.all(later - A > max(t, b))


class TestParseControlGroup:

    def test_string_and_enum(self):
        assert parse_control_group('never_treated') is ControlGroupStrategy.NEVER_TREATED
        assert parse_control_group(ControlGroupStrategy.NOT_YET_TREATED) is \
            ControlGroupStrategy.NOT_YET_TREATED

    def test_invalid(self):
        with pytest.raises(InvalidParameterError, match="control_group"):
            parse_control_group('all_others')
