# AGAP Gurobi implementation - per-window model for the rolling horizon
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import gurobipy as gp
from gurobipy import GRB

from agap_errors import WindowError

logger = logging.getLogger(__name__)


@dataclass
class WindowModel:
    model: gp.Model
    window: object
    x: Dict[Tuple[int, int], gp.Var]  # (flight, gate) -> M
    z: Dict[Tuple[int, int, int, int], gp.Var]  # (inbound, outbound, g1, g2) -> Z
    connection_pairs: List[Tuple[int, int]] = field(default_factory=list)
    # (window flight, locked partner, partner gate, passengers)
    locked_connections: List[Tuple[int, int, int, int]] = field(default_factory=list)

    def assignment(self):
        """Flight -> gate from the current solution."""
        return {f: g for (f, g), var in self.x.items() if var.X > 0.5}


def _check_window(window, flights, layout, locks):
    if window.start < 0 or window.stop > len(flights):
        raise WindowError(f"Window {window} is outside the {len(flights)} loaded flights")
    for flight, gate in locks.items():
        if not (1 <= gate <= layout.gate_count):
            raise WindowError(f"Locked flight {flight} sits at gate {gate}, outside 1..{layout.gate_count}")


def locked_connections(window, relations, locks):
    """
    Tier-1 connections from a window flight to a partner outside the window that
    is already locked. Each is (window flight, partner, partner gate, pax, partner is inbound).
    """
    found = []
    for f in window.flights:
        for i, pax in sorted(relations.inbound_of.get(f, {}).items()):
            if i not in window and i in locks:
                found.append((f, i, locks[i], pax, True))
        for j, pax in sorted(relations.outbound_of.get(f, {}).items()):
            if j not in window and j in locks:
                found.append((f, j, locks[j], pax, False))
    return found


def build_window_model(flights, layout, relations, window, locks, config, env=None):
    """
    Builds the linear assignment model of one window (flights window.start..window.stop-1).

    Variables
      M[f,g]            flight f at gate g
      Z[f1,f2,g1,g2]    M[f1,g1] AND M[f2,g2] for tier-1 connections inside the window
    Objective (min)
      departing pax x security distance, arriving pax x baggage distance,
      transfer pax x gate-to-gate distance (in-window via Z, towards locked partners via M)
    Constraints
      one gate per flight, Z linearization, conflicts, turnarounds, consistency with locks
    """
    _check_window(window, flights, layout, locks)
    gates = layout.gates

    m = gp.Model(f"AGAP_window_{window.start}_{window.stop}", env=env)

    x = {}
    for f in window.flights:
        for g in gates:
            x[(f, g)] = m.addVar(vtype=GRB.BINARY, name=f"M_{f}_{g}")

    connection_pairs = relations.connections_in(window.start, window.stop) if config.connecting else []
    z = {}
    for (i, j) in connection_pairs:
        for g1 in gates:
            for g2 in gates:
                z[(i, j, g1, g2)] = m.addVar(vtype=GRB.BINARY, name=f"Z_{i}_{j}_{g1}_{g2}")

    # Objective
    obj = gp.LinExpr()
    for f in window.flights:
        flight = flights[f]
        if config.departing and flight.departing and flight.pax_dep:
            for g in gates:
                obj.addTerms(flight.pax_dep * layout.security[g], x[(f, g)])
        if config.arriving and flight.arriving and flight.pax_arr:
            for g in gates:
                obj.addTerms(flight.pax_arr * layout.baggage[g], x[(f, g)])

    for (i, j, g1, g2), zvar in z.items():
        pax = relations.passengers[(i, j)]
        obj.addTerms(config.connection_weight * pax * layout.walking[(g1, g2)], zvar)

    cross = locked_connections(window, relations, locks) if config.connecting else []
    for (f, partner, partner_gate, pax, partner_inbound) in cross:
        for g in gates:
            dist = layout.walking[(partner_gate, g)] if partner_inbound else layout.walking[(g, partner_gate)]
            obj.addTerms(config.locked_connection_factor * pax * dist, x[(f, g)])

    # Each flight exactly one gate
    for f in window.flights:
        m.addConstr(gp.quicksum(x[(f, g)] for g in gates) == 1, name=f"assign_{f}")

    # Z = M[i,g1] * M[j,g2]
    for (i, j, g1, g2), zvar in z.items():
        m.addConstr(zvar <= x[(i, g1)], name=f"lin_in_{i}_{j}_{g1}_{g2}")
        m.addConstr(zvar <= x[(j, g2)], name=f"lin_out_{i}_{j}_{g1}_{g2}")
        m.addConstr(zvar >= x[(i, g1)] + x[(j, g2)] - 1, name=f"lin_both_{i}_{j}_{g1}_{g2}")

    # No overlapping aircraft at one gate
    conflict_pairs = relations.conflicts_in(window.start, window.stop)
    for (i, j) in conflict_pairs:
        for g in gates:
            m.addConstr(x[(i, g)] + x[(j, g)] <= 1, name=f"conflict_{i}_{j}_{g}")

    # Turnarounds stay on one gate
    same_gate_pairs = relations.same_gate_in(window.start, window.stop)
    for (a, d) in same_gate_pairs:
        for g in gates:
            m.addConstr(x[(a, g)] == x[(d, g)], name=f"same_gate_{a}_{d}_{g}")

    # Locks from earlier windows
    n_lock_constrs = 0
    for f in window.flights:
        if f in locks:
            m.addConstr(x[(f, locks[f])] == 1, name=f"locked_{f}")
            n_lock_constrs += 1
        for c in sorted(relations.conflicts_of.get(f, ())):
            if c not in window and c in locks:
                m.addConstr(x[(f, locks[c])] == 0, name=f"lock_conflict_{f}_{c}")
                n_lock_constrs += 1
        partners = relations.same_gate_of.get(f, frozenset()) | relations.same_occupancy_of.get(f, frozenset())
        for p in sorted(partners):
            if p not in window and p in locks:
                m.addConstr(x[(f, locks[p])] == 1, name=f"lock_same_gate_{f}_{p}")
                n_lock_constrs += 1

    m.setObjective(obj, GRB.MINIMIZE)
    m.update()

    logger.debug(
        "Window %s: %d flights, %d connection pairs, %d cross-window connections, "
        "%d conflicts, %d same-gate pairs, %d lock constraints",
        window, window.size, len(connection_pairs), len(cross),
        len(conflict_pairs), len(same_gate_pairs), n_lock_constrs,
    )

    return WindowModel(
        model=m,
        window=window,
        x=x,
        z=z,
        connection_pairs=connection_pairs,
        locked_connections=[(f, p, g, pax) for (f, p, g, pax, _) in cross],
    )
