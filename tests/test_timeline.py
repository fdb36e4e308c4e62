from datetime import date, datetime, timedelta, timezone

import pytest

from ride_metrics.core.analytics.timeline import (
    build_dense_timeline,
    find_best_window,
    to_date_key,
    trailing_moving_average,
)


def test_to_date_key_uses_utc():
    local = datetime(2024, 3, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert to_date_key(local) == date(2024, 3, 2)
    # 无时区信息视为 UTC
    assert to_date_key(datetime(2024, 3, 1, 23, 30)) == date(2024, 3, 1)


def test_dense_timeline_fills_gaps():
    day_map = {date(2024, 1, 1): "a", date(2024, 1, 4): "d"}
    timeline = build_dense_timeline(day_map, lambda day: f"empty-{day.isoformat()}")
    assert timeline == ["a", "empty-2024-01-02", "empty-2024-01-03", "d"]
    assert build_dense_timeline({}, lambda day: day) == []


def _brute_force(values, length):
    best = None
    for start in range(len(values) - length + 1):
        total = sum(values[start:start + length])
        if best is None or total > best[1]:
            best = (start, total)
    return best


@pytest.mark.parametrize("values,length", [
    ([5, 1, 8, 0, 3, 9, 2], 3),
    ([0, 0, 10, 0, 0, 12, 0], 2),
    ([1.5, 2.25, 0.75, 4.0], 1),
    ([3, 3, 3, 3], 4),
])
def test_find_best_window_matches_brute_force(values, length):
    start, total = find_best_window(values, length)
    expected_start, expected_total = _brute_force(values, length)
    assert start == expected_start
    assert total == pytest.approx(expected_total)


def test_find_best_window_prefers_earliest_tie():
    values = [0.1] * 10 + [0.0] + [0.1] * 10
    assert find_best_window(values, 5)[0] == 0


def test_find_best_window_edge_cases():
    assert find_best_window([1, 2], 3) is None
    assert find_best_window([0, 0, 0], 2) is None
    with pytest.raises(ValueError):
        find_best_window([1, 2, 3], 0)


def test_trailing_moving_average():
    assert trailing_moving_average([1, 2, 3, 4], 2) == [None, 1.5, 2.5, 3.5]
    assert trailing_moving_average([1, 2], 3) == [None, None]
    assert trailing_moving_average([], 3) == []
    assert trailing_moving_average([1.0, 2.0, 2.0], 3, digits=3) == [None, None, 1.667]
