# Pairwise flight relations shared by every window: time conflicts, turnarounds and connections
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from agap_errors import RelationDataError

logger = logging.getLogger(__name__)


def flights_conflict(f1, f2, buffer_time=0):
    """
    Two flights of different aircraft whose buffered gate occupancies overlap.
    Flights of the same tail never conflict: that is one aircraft occupying its gate.
    """
    if f1.tail == f2.tail:
        return False
    return f1.enter < f2.exit + buffer_time and f2.enter < f1.exit + buffer_time


def is_turnaround(arrival, departure, threshold=120):
    return (arrival.arriving and departure.departing
            and arrival.tail == departure.tail
            and arrival.enter <= departure.enter <= arrival.exit + threshold)


@dataclass(frozen=True)
class Relations:
    conflicts: FrozenSet[Tuple[int, int]]  # (i, j) with i < j
    conflicts_of: Dict[int, FrozenSet[int]]
    same_gate: Tuple[Tuple[int, int], ...]  # (arrival, departure)
    same_gate_of: Dict[int, FrozenSet[int]]
    same_occupancy_of: Dict[int, FrozenSet[int]]  # same tail, identical enter/exit
    passengers: Dict[Tuple[int, int], int]  # every connection, any tier
    tiers: Dict[Tuple[int, int], int]
    outbound_of: Dict[int, Dict[int, int]]  # tier 1 only: inbound -> {outbound: pax}
    inbound_of: Dict[int, Dict[int, int]]  # tier 1 only: outbound -> {inbound: pax}
    flight_count: int

    def conflicts_in(self, start, stop):
        return sorted((i, j) for (i, j) in self.conflicts if start <= i and j < stop)

    def same_gate_in(self, start, stop):
        return [(a, d) for (a, d) in self.same_gate if start <= a < stop and start <= d < stop]

    def connections_in(self, start, stop):
        """Tier-1 connection pairs with both flights in [start, stop)."""
        pairs = []
        for i in range(start, stop):
            for j in self.outbound_of.get(i, {}):
                if start <= j < stop:
                    pairs.append((i, j))
        return sorted(pairs)

    def count_connections_with(self, flight, start, stop):
        """Tier-1 pairs linking `flight` to another flight in [start, stop)."""
        count = sum(1 for j in self.outbound_of.get(flight, {}) if start <= j < stop and j != flight)
        count += sum(1 for i in self.inbound_of.get(flight, {}) if start <= i < stop and i != flight)
        return count

    def tier1_pairs(self):
        return sorted((i, j) for i, outs in self.outbound_of.items() for j in outs)


def _validate(flights, layout, connections):
    for k, f in enumerate(flights):
        if f.index != k:
            raise RelationDataError(f"Flight at position {k} carries index {f.index}")
        if f.exit < f.enter:
            raise RelationDataError(f"Flight {k} exits its gate ({f.exit}) before entering it ({f.enter})")
        if k and f.enter < flights[k - 1].enter:
            raise RelationDataError(f"Flights are not sorted by gate entry time at position {k}")

    if layout is not None:
        layout.validate()

    n = len(flights)
    for (i, j), pax in connections.passengers.items():
        if not (0 <= i < n and 0 <= j < n):
            raise RelationDataError(f"Connection ({i}, {j}) references a flight outside 0..{n - 1}")
        if i == j:
            raise RelationDataError(f"Connection ({i}, {j}) links a flight to itself")
        if pax <= 0:
            raise RelationDataError(f"Connection ({i}, {j}) has non-positive passenger count {pax}")
    for pair, tier in connections.tiers.items():
        if tier not in (0, 1, 2, 3):
            raise RelationDataError(f"Connection {pair} has unknown tier {tier}")


def precompute_relations(flights, connections, buffer_time=0, same_gate_threshold=120, layout=None):
    """
    Scans the time-sorted day once and indexes every relation by flight.
    Conflicts use a sweep over entry times, so only flights whose entry falls
    inside another flight's buffered occupancy are compared.
    """
    _validate(flights, layout, connections)

    conflicts = set()
    conflicts_of = defaultdict(set)
    for i, f1 in enumerate(flights):
        horizon = f1.exit + buffer_time
        for k in range(i + 1, len(flights)):
            f2 = flights[k]
            if f2.enter >= horizon:
                break
            if flights_conflict(f1, f2, buffer_time):
                conflicts.add((i, f2.index))
                conflicts_of[i].add(f2.index)
                conflicts_of[f2.index].add(i)

    by_tail = defaultdict(list)
    for f in flights:
        by_tail[f.tail].append(f)
    same_occupancy_of = defaultdict(set)
    same_gate = []
    same_gate_of = defaultdict(set)
    for tail_flights in by_tail.values():
        for a in tail_flights:
            for b in tail_flights:
                if a.index != b.index and a.same_occupancy(b):
                    same_occupancy_of[a.index].add(b.index)
        for a in tail_flights:
            if not a.arriving:
                continue
            for d in tail_flights:
                if is_turnaround(a, d, same_gate_threshold):
                    same_gate.append((a.index, d.index))
                    same_gate_of[a.index].add(d.index)
                    same_gate_of[d.index].add(a.index)

    outbound_of = defaultdict(dict)
    inbound_of = defaultdict(dict)
    for (i, j), pax in connections.passengers.items():
        if connections.tier(i, j) == 1:
            outbound_of[i][j] = pax
            inbound_of[j][i] = pax

    relations = Relations(
        conflicts=frozenset(conflicts),
        conflicts_of={k: frozenset(v) for k, v in conflicts_of.items()},
        same_gate=tuple(sorted(same_gate)),
        same_gate_of={k: frozenset(v) for k, v in same_gate_of.items()},
        same_occupancy_of={k: frozenset(v) for k, v in same_occupancy_of.items()},
        passengers=dict(connections.passengers),
        tiers={pair: connections.tier(*pair) for pair in connections.passengers},
        outbound_of=dict(outbound_of),
        inbound_of=dict(inbound_of),
        flight_count=len(flights),
    )
    logger.info(
        "Relations: %d conflicts, %d same-gate pairs, %d connections (%d tier 1)",
        len(relations.conflicts), len(relations.same_gate),
        len(relations.passengers), sum(len(v) for v in relations.outbound_of.values()),
    )
    return relations
