# Rolling-horizon gate assignment over a full operating day
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agap import build_window_model
from agap_backend import GurobiBackend, Infeasible
from agap_config import AssignmentConfig
from agap_errors import BackendError, InfeasibleWindowError
from agap_locks import LockStore, commit_window
from agap_relations import precompute_relations
from agap_windows import plan_windows

logger = logging.getLogger(__name__)


@dataclass
class ConnectionSummary:
    weighted_distance: float = 0.0
    passengers: int = 0

    @property
    def average_distance(self):
        return self.weighted_distance / self.passengers if self.passengers else 0.0

    def add(self, other):
        self.weighted_distance += other.weighted_distance
        self.passengers += other.passengers


@dataclass
class WindowReport:
    window: object
    status: str
    objective: Optional[float] = None
    committed: Dict[int, int] = field(default_factory=dict)
    connections: ConnectionSummary = field(default_factory=ConnectionSummary)
    iis: List[str] = field(default_factory=list)
    seconds: float = 0.0


@dataclass
class RunResult:
    start: int
    end: int
    assignments: Dict[int, int]  # flight -> gate, every locked flight
    windows: List[WindowReport] = field(default_factory=list)
    connections: ConnectionSummary = field(default_factory=ConnectionSummary)

    @property
    def infeasible_windows(self):
        return [r.window for r in self.windows if r.status == "INFEASIBLE"]

    @property
    def unassigned(self):
        return [f for f in range(self.start, self.end) if f not in self.assignments]

    @property
    def complete(self):
        return not self.unassigned

    @property
    def objective(self):
        return sum(r.objective for r in self.windows if r.objective is not None)


def summarize_connections(pairs, gates, relations, layout):
    """Transfer passengers and passenger-weighted walking distance over pairs with both gates known."""
    summary = ConnectionSummary()
    for (i, j) in pairs:
        if i in gates and j in gates:
            pax = relations.passengers[(i, j)]
            summary.weighted_distance += pax * layout.walking[(gates[i], gates[j])]
            summary.passengers += pax
    return summary


def find_violations(flights, relations, assignments, start=0, end=None):
    """
    Checks a gate mapping against the hard rules. Returns a list of messages,
    empty when every flight in [start, end) has exactly one gate, no conflicting
    pair shares a gate, and every turnaround stays on one gate.
    """
    end = len(flights) if end is None else end
    problems = []
    for f in range(start, end):
        if f not in assignments:
            problems.append(f"flight {f} has no gate")
    for (i, j) in sorted(relations.conflicts):
        if i in assignments and assignments.get(i) == assignments.get(j):
            problems.append(f"conflicting flights {i} and {j} share gate {assignments[i]}")
    for (a, d) in relations.same_gate:
        if a in assignments and d in assignments and assignments[a] != assignments[d]:
            problems.append(f"turnaround {a}->{d} split over gates {assignments[a]} and {assignments[d]}")
    return problems


def assign_gates(flights, layout, connections, config=None, start=0, end=None,
                 initial_locks=None, backend=None):
    """
    Assigns gates to flights [start, end) window by window.

    Relations are computed once, the windows are planned up front, and every
    window is built against the locks committed so far, solved, and its commit
    prefix locked. Windows run strictly in order.

    Raises InfeasibleWindowError for the first infeasible window unless
    config.on_infeasible == "skip", and BackendError when the solver fails.
    """
    config = config or AssignmentConfig()
    end = len(flights) if end is None else end

    relations = precompute_relations(
        flights, connections,
        buffer_time=config.buffer_time,
        same_gate_threshold=config.same_gate_threshold,
        layout=layout,
    )
    windows = plan_windows(start, end, config.window_policy, relations)
    store = LockStore(layout.gate_count, initial_locks, flight_count=len(flights))
    result = RunResult(start=start, end=end, assignments={})

    owns_backend = backend is None
    if owns_backend:
        backend = GurobiBackend(config)
    try:
        for n, window in enumerate(windows, 1):
            t0 = time.perf_counter()
            wm = build_window_model(flights, layout, relations, window, store.view(), config, env=backend.env)
            try:
                outcome = backend.solve(wm)
            except BackendError as e:
                e.locks = store.snapshot()
                raise
            finally:
                pairs = list(wm.connection_pairs)
                wm.model.dispose()

            if isinstance(outcome, Infeasible):
                report = WindowReport(window=window, status="INFEASIBLE", iis=outcome.iis,
                                      seconds=time.perf_counter() - t0)
                result.windows.append(report)
                if config.on_infeasible == "fail":
                    raise InfeasibleWindowError(window, outcome.iis)
                logger.warning("Skipping infeasible window %s; flights %d-%d stay unassigned",
                               window, window.start, window.commit_stop - 1)
                continue

            committed = commit_window(store, window, outcome.gates)
            report = WindowReport(
                window=window,
                status=outcome.status,
                objective=outcome.objective,
                committed=committed,
                connections=summarize_connections(pairs, outcome.gates, relations, layout),
                seconds=time.perf_counter() - t0,
            )
            result.windows.append(report)
            logger.info(
                "Window %d/%d %s: %s objective=%.2f locked=%d (total %d) connecting pax=%d avg walk=%.2f [%.1fs]",
                n, len(windows), window, outcome.status, outcome.objective, len(committed), len(store),
                report.connections.passengers, report.connections.average_distance, report.seconds,
            )
    finally:
        if owns_backend:
            backend.close()

    result.assignments = store.snapshot()
    result.connections = summarize_connections(relations.tier1_pairs(), result.assignments, relations, layout)
    logger.info(
        "Assigned %d of %d flights; connecting pax=%d, average walk=%.2f",
        len([f for f in range(start, end) if f in result.assignments]), end - start,
        result.connections.passengers, result.connections.average_distance,
    )
    return result


def assign_day(day, config=None, start=0, end=None, initial_locks=None):
    return assign_gates(day.flights, day.layout, day.connections, config,
                        start=start, end=end, initial_locks=initial_locks)
