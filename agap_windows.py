# Partitioning of the time-sorted day into overlapping solve windows
from __future__ import annotations

import logging
from dataclasses import dataclass

from agap_config import AdaptiveWindowPolicy, FixedWindowPolicy
from agap_errors import WindowError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Window:
    """Flights [start, stop) are solved together; flights [start, commit_stop) are locked afterwards."""
    start: int
    stop: int
    commit_stop: int

    def __post_init__(self):
        if not (self.start < self.stop):
            raise WindowError(f"Empty window [{self.start}, {self.stop})")
        if not (self.start < self.commit_stop <= self.stop):
            raise WindowError(
                f"Commit prefix [{self.start}, {self.commit_stop}) does not fit window [{self.start}, {self.stop})"
            )

    @property
    def size(self):
        return self.stop - self.start

    @property
    def flights(self):
        return range(self.start, self.stop)

    @property
    def committed(self):
        return range(self.start, self.commit_stop)

    def __contains__(self, flight):
        return self.start <= flight < self.stop

    def __str__(self):
        return f"[{self.start}, {self.stop})"


def fixed_windows(start, end, policy):
    """
    Windows of flights_per_save + lookahead flights, advancing by flights_per_save.
    The last window is clipped to `end`.
    """
    cursor = start
    block = policy.flights_per_save + policy.lookahead
    while cursor < end:
        stop = min(cursor + block, end)
        commit_stop = min(cursor + policy.flights_per_save, stop)
        yield Window(cursor, stop, commit_stop)
        cursor = commit_stop


def find_window_size(relations, start, end, target_connections=8):
    """
    Grows a window from `start` one flight at a time, counting tier-1 connection
    pairs with both flights inside. Stops at the first size holding exactly
    `target_connections` pairs; on overshoot the previous size is kept.
    """
    count = 0
    for n in range(start, end):
        count += relations.count_connections_with(n, start, n)
        size = n - start + 1
        if count == target_connections:
            return size
        if count > target_connections:
            return max(size - 1, 1)
    return end - start


def adaptive_windows(start, end, relations, policy):
    cursor = start
    while cursor < end:
        remaining = end - cursor
        if remaining <= policy.min_remainder:
            size = remaining
        else:
            size = find_window_size(relations, cursor, end, policy.target_connections)
        stop = cursor + size
        yield Window(cursor, stop, stop)
        cursor = stop


def plan_windows(start, end, policy, relations=None):
    """
    Ordered, gap-free windows covering flights [start, end).
    Planning depends only on its inputs, so repeated calls give identical windows.
    """
    if start < 0 or end < start:
        raise WindowError(f"Invalid horizon [{start}, {end})")
    if relations is not None and end > relations.flight_count:
        raise WindowError(f"Horizon end {end} is beyond the {relations.flight_count} loaded flights")

    if isinstance(policy, FixedWindowPolicy):
        windows = list(fixed_windows(start, end, policy))
    elif isinstance(policy, AdaptiveWindowPolicy):
        if relations is None:
            raise WindowError("Adaptive window sizing needs the precomputed relations")
        windows = list(adaptive_windows(start, end, relations, policy))
    else:
        raise WindowError(f"Unknown window policy {policy!r}")

    logger.info("Planned %d windows over flights [%d, %d) with %s", len(windows), start, end, policy)
    return windows
