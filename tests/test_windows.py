import pytest

from agap_config import AdaptiveWindowPolicy, FixedWindowPolicy
from agap_data import ConnectionTable
from agap_errors import WindowError
from agap_relations import precompute_relations
from agap_windows import Window, find_window_size, plan_windows
from verification_and_sensitivity import make_flights


def _chain(n, pairs):
    """n non-overlapping flights on different tails with tier-1 connections `pairs`."""
    flights = make_flights([(f"T{k}", "Y" if k % 2 else "N", 100 * k, 100 * k + 50, 10, 10) for k in range(n)])
    table = ConnectionTable(passengers={pair: 5 for pair in pairs})
    return precompute_relations(flights, table)


def _bounds(windows):
    return [(w.start, w.stop, w.commit_stop) for w in windows]


def test_fixed_windows_lock_prefix_and_advance_by_save():
    windows = plan_windows(0, 10, FixedWindowPolicy(flights_per_save=4, lookahead=4))

    assert _bounds(windows) == [(0, 8, 4), (4, 10, 8), (8, 10, 10)]


def test_fixed_windows_without_lookahead_partition_the_day():
    windows = plan_windows(2, 9, FixedWindowPolicy(flights_per_save=3, lookahead=0))

    assert _bounds(windows) == [(2, 5, 5), (5, 8, 8), (8, 9, 9)]


def test_fixed_windows_cover_every_flight_once_in_commit_prefixes():
    windows = plan_windows(0, 23, FixedWindowPolicy(flights_per_save=5, lookahead=7))
    committed = [f for w in windows for f in w.committed]

    assert committed == list(range(23))
    assert windows[-1].stop == 23


def test_empty_horizon_has_no_windows():
    assert plan_windows(5, 5, FixedWindowPolicy()) == []


def test_adaptive_windows_stop_at_target():
    relations = _chain(10, [(0, 1), (2, 3), (4, 5), (6, 7), (8, 9)])
    windows = plan_windows(0, 10, AdaptiveWindowPolicy(target_connections=2, min_remainder=0), relations)

    assert _bounds(windows) == [(0, 4, 4), (4, 8, 8), (8, 10, 10)]


def test_adaptive_overshoot_keeps_previous_size():
    relations = _chain(6, [(0, 1), (0, 2), (1, 2)])

    assert find_window_size(relations, 0, 6, target_connections=2) == 2


def test_adaptive_window_is_at_least_one_flight():
    relations = _chain(4, [(0, 1), (1, 2)])

    assert find_window_size(relations, 0, 4, target_connections=0) == 1


def test_small_remainder_becomes_one_window():
    relations = _chain(10, [(0, 1), (2, 3)])
    windows = plan_windows(0, 10, AdaptiveWindowPolicy(target_connections=1, min_remainder=10), relations)

    assert _bounds(windows) == [(0, 10, 10)]


def test_adaptive_planning_is_idempotent():
    relations = _chain(12, [(0, 3), (1, 2), (4, 9), (5, 6), (7, 8), (10, 11)])
    policy = AdaptiveWindowPolicy(target_connections=2, min_remainder=1)

    first = plan_windows(0, 12, policy, relations)
    second = plan_windows(0, 12, policy, relations)

    assert first == second
    assert [f for w in first for f in w.flights] == list(range(12))


def test_adaptive_planning_needs_relations():
    with pytest.raises(WindowError):
        plan_windows(0, 5, AdaptiveWindowPolicy())


def test_horizon_beyond_loaded_flights():
    relations = _chain(3, [])

    with pytest.raises(WindowError):
        plan_windows(0, 4, FixedWindowPolicy(), relations)


def test_window_bounds_are_validated():
    with pytest.raises(WindowError):
        Window(3, 3, 3)
    with pytest.raises(WindowError):
        Window(0, 4, 5)

    w = Window(2, 6, 4)
    assert 5 in w and 6 not in w
    assert list(w.committed) == [2, 3]
