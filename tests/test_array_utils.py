import math

import numpy as np
import pytest

from sensible_residuals.array_utils import (
    IMPOSSIBLE_VALUE,
    NOT_FINITE,
    NOT_SET,
    append_array_to_string,
    classify_value,
    find_invalid_value,
    format_value,
    invalidate_array,
    is_array_valid,
)


def test_invalidate_array_fills_in_place():
    buf = np.zeros(4)
    view = buf
    invalidate_array(buf)
    assert view is buf
    assert np.all(buf == IMPOSSIBLE_VALUE)


def test_invalidate_array_skips_none():
    invalidate_array(None)


def test_sentinel_is_finite():
    assert math.isfinite(IMPOSSIBLE_VALUE)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.0, None),
        (-1.5, None),
        (1e300, None),
        (IMPOSSIBLE_VALUE, NOT_SET),
        (float("nan"), NOT_FINITE),
        (float("inf"), NOT_FINITE),
        (float("-inf"), NOT_FINITE),
    ],
)
def test_classify_value(value, expected):
    assert classify_value(value) == expected


def test_find_invalid_value_returns_first_bad_index():
    values = np.array([1.0, 2.0, np.nan, IMPOSSIBLE_VALUE])
    assert find_invalid_value(values) == 2
    assert find_invalid_value(np.array([1.0, 2.0])) == 2
    assert find_invalid_value(None) == 0


def test_is_array_valid():
    assert is_array_valid(None)
    assert is_array_valid(np.array([]))
    assert is_array_valid(np.array([0.0, 1.0]))
    assert not is_array_valid(np.array([0.0, IMPOSSIBLE_VALUE]))
    assert not is_array_valid(np.array([[0.0, np.inf]]))


def test_format_value_markers_are_distinct():
    cells = {
        format_value(None).strip(),
        format_value(IMPOSSIBLE_VALUE).strip(),
        format_value(float("nan")).strip(),
        format_value(float("inf")).strip(),
        format_value(float("-inf")).strip(),
        format_value(1.25).strip(),
    }
    assert cells == {"Not Computed", "Uninitialized", "NaN", "Inf", "-Inf", "1.25"}
    assert len(format_value(1.25)) == 13


def test_markers_fit_the_cell_width():
    for value in (None, IMPOSSIBLE_VALUE, float("nan"), float("-inf"), 1.0e300, -1.5):
        assert len(format_value(value)) == 13
    assert format_value(IMPOSSIBLE_VALUE).strip() == "Uninitialized"


def test_append_array_to_string_none_writes_not_computed():
    out = []
    append_array_to_string(None, out, size=3)
    assert [c.strip() for c in out] == ["Not Computed"] * 3

    out = []
    append_array_to_string(np.array([1.0, IMPOSSIBLE_VALUE]), out)
    assert [c.strip() for c in out] == ["1", "Uninitialized"]
