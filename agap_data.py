# Input data for the gate assignment: flights, gate distances and passenger connections
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from agap_errors import RelationDataError

logger = logging.getLogger(__name__)

FLIGHT_COLUMNS = {
    "TailNumber", "IsDeparting", "ArrivalTimeMinutes", "OffTimeMinutes",
    "PassengersDept", "PassengersArr",
}
WALKING_COLUMNS = {"TSA_to_Gate", "Gate_to_Bag"}

# layover upper bounds (minutes) for tier 1 and tier 2 connections
TIER_1_MAX_LAYOVER = 45
TIER_2_MAX_LAYOVER = 90


@dataclass(frozen=True)
class Flight:
    index: int  # position in the time-sorted day
    tail: str
    departing: bool
    enter: int  # gate entry, minutes from epoch
    exit: int  # gate exit, minutes from epoch
    pax_dep: int = 0
    pax_arr: int = 0

    @property
    def arriving(self):
        return not self.departing

    def same_occupancy(self, other):
        return self.tail == other.tail and self.enter == other.enter and self.exit == other.exit


@dataclass(frozen=True)
class GateLayout:
    """Gates 1..G with security/baggage distances and gate-to-gate walking distances."""
    security: Dict[int, float]
    baggage: Dict[int, float]
    walking: Dict[Tuple[int, int], float]

    @property
    def gates(self):
        return list(range(1, len(self.security) + 1))

    @property
    def gate_count(self):
        return len(self.security)

    @classmethod
    def from_tables(cls, security, baggage, gate_to_gate):
        """Builds a layout from two length-G vectors and a GxG matrix (gate g at position g-1)."""
        security = list(security)
        baggage = list(baggage)
        matrix = np.asarray(gate_to_gate, dtype=float)
        n = len(security)
        if len(baggage) != n:
            raise RelationDataError(f"Security table has {n} gates but baggage table has {len(baggage)}")
        if matrix.shape != (n, n):
            raise RelationDataError(f"Gate-to-gate matrix has shape {matrix.shape}, expected {(n, n)}")
        return cls(
            security={g: float(security[g - 1]) for g in range(1, n + 1)},
            baggage={g: float(baggage[g - 1]) for g in range(1, n + 1)},
            walking={(g1, g2): float(matrix[g1 - 1, g2 - 1])
                     for g1 in range(1, n + 1) for g2 in range(1, n + 1)},
        )

    def validate(self):
        n = len(self.security)
        if n == 0:
            raise RelationDataError("Gate layout has no gates")
        expected = set(range(1, n + 1))
        for name, table in (("security", self.security), ("baggage", self.baggage)):
            if set(table) != expected:
                bad = sorted(set(table) ^ expected)
                raise RelationDataError(f"{name} distances must cover gates 1..{n}; mismatched gates {bad[:5]}")
        for (g1, g2) in self.walking:
            if g1 not in expected or g2 not in expected:
                raise RelationDataError(f"Gate-to-gate distance ({g1}, {g2}) outside gates 1..{n}")
        missing = [(g1, g2) for g1 in expected for g2 in expected if (g1, g2) not in self.walking]
        if missing:
            raise RelationDataError(f"Gate-to-gate distances missing for {len(missing)} gate pairs, e.g. {missing[0]}")


@dataclass(frozen=True)
class ConnectionTable:
    """Transfer passengers per (inbound, outbound) flight pair, with the layover tier of each pair."""
    passengers: Dict[Tuple[int, int], int] = field(default_factory=dict)
    tiers: Dict[Tuple[int, int], int] = field(default_factory=dict)

    def tier(self, inbound, outbound):
        return self.tiers.get((inbound, outbound), 1)


@dataclass
class DayData:
    frame: pd.DataFrame  # flight table sorted like `flights`
    flights: list
    layout: GateLayout
    connections: ConnectionTable


def layover_tier(layover):
    if layover <= TIER_1_MAX_LAYOVER:
        return 1
    if layover <= TIER_2_MAX_LAYOVER:
        return 2
    return 3


def derive_tiers(flights, passengers):
    """Tier of each connection from the layover between inbound gate entry and outbound gate exit."""
    tiers = {}
    for (i, j) in passengers:
        layover = flights[j].exit - flights[i].enter
        # outbound gone before the inbound arrives: tier 0, never linked
        tiers[(i, j)] = layover_tier(layover) if layover >= 0 else 0
    return tiers


def flights_from_frame(df):
    """
    Sorts the flight table by gate entry time and converts it into Flight records.
    Returns (sorted frame, flights, order) where order[k] is the source row of flight k.
    """
    missing = FLIGHT_COLUMNS - set(df.columns)
    if missing:
        raise RelationDataError(f"Flight table is missing columns: {sorted(missing)}")

    df = df.reset_index(drop=True)
    order = df.sort_values("ArrivalTimeMinutes", kind="stable").index.to_numpy()
    df_sorted = df.loc[order].reset_index(drop=True)
    df_sorted["SourceRow"] = order

    flights = []
    for k, row in enumerate(df_sorted.itertuples(index=False)):
        direction = str(row.IsDeparting).strip().upper()
        if direction not in ("Y", "N"):
            raise RelationDataError(f"Row {order[k]}: IsDeparting must be 'Y' or 'N', got {row.IsDeparting!r}")
        enter, exit_ = int(row.ArrivalTimeMinutes), int(row.OffTimeMinutes)
        if exit_ < enter:
            raise RelationDataError(f"Row {order[k]}: gate exit {exit_} is before gate entry {enter}")
        flights.append(Flight(
            index=k,
            tail=str(row.TailNumber),
            departing=(direction == "Y"),
            enter=enter,
            exit=exit_,
            pax_dep=0 if pd.isna(row.PassengersDept) else int(row.PassengersDept),
            pax_arr=0 if pd.isna(row.PassengersArr) else int(row.PassengersArr),
        ))
    return df_sorted, flights, order


def connections_from_matrix(passenger_matrix, order, tier_matrix=None, flights=None):
    """
    Builds a ConnectionTable from FxF matrices in source row order, re-indexed to the sorted flight order.
    Without a tier matrix, tiers are derived from the flights' layovers.
    """
    pax = np.asarray(passenger_matrix, dtype=float)
    n = len(order)
    if pax.shape != (n, n):
        raise RelationDataError(f"Connection matrix has shape {pax.shape} but the day has {n} flights")
    pax = np.nan_to_num(pax)[np.ix_(order, order)]

    passengers = {}
    for i, j in zip(*np.nonzero(pax > 0)):
        if i != j:
            passengers[(int(i), int(j))] = int(pax[i, j])

    if tier_matrix is not None:
        tiers_arr = np.asarray(tier_matrix, dtype=float)
        if tiers_arr.shape != (n, n):
            raise RelationDataError(f"Tier matrix has shape {tiers_arr.shape} but the day has {n} flights")
        tiers_arr = np.nan_to_num(tiers_arr)[np.ix_(order, order)]
        tiers = {pair: int(tiers_arr[pair]) for pair in passengers}
    elif flights is not None:
        tiers = derive_tiers(flights, passengers)
    else:
        tiers = {}
    return ConnectionTable(passengers=passengers, tiers=tiers)


def read_matrix_csv(path, row_labels=True):
    df = pd.read_csv(path)
    if row_labels:
        df = df.iloc[:, 1:]
    return df.to_numpy(dtype=float)


def load_layout(walking_csv, gate_to_gate_csv):
    walking = pd.read_csv(walking_csv)
    missing = WALKING_COLUMNS - set(walking.columns)
    if missing:
        raise RelationDataError(f"Walking distance table is missing columns: {sorted(missing)}")
    layout = GateLayout.from_tables(
        walking["TSA_to_Gate"].tolist(),
        walking["Gate_to_Bag"].tolist(),
        read_matrix_csv(gate_to_gate_csv, row_labels=False),
    )
    layout.validate()
    return layout


def load_day(flights_csv, walking_csv, gate_to_gate_csv, connections_csv=None, tiers_csv=None):
    """Reads one operating day from the CSV exports."""
    frame, flights, order = flights_from_frame(pd.read_csv(flights_csv))
    layout = load_layout(walking_csv, gate_to_gate_csv)

    if connections_csv is not None:
        tier_matrix = read_matrix_csv(tiers_csv) if tiers_csv is not None else None
        connections = connections_from_matrix(read_matrix_csv(connections_csv), order, tier_matrix, flights)
    else:
        connections = ConnectionTable()

    logger.info("Loaded %d flights, %d gates, %d connections",
                len(flights), layout.gate_count, len(connections.passengers))
    return DayData(frame=frame, flights=flights, layout=layout, connections=connections)


def gate_layout(security, baggage, gate_to_gate: Optional[dict] = None):
    """Convenience constructor from dicts keyed by gate id (gate_to_gate defaults to 0 on the diagonal, 1 elsewhere)."""
    gates = sorted(security)
    if gate_to_gate is None:
        gate_to_gate = {(g1, g2): (0.0 if g1 == g2 else 1.0) for g1 in gates for g2 in gates}
    layout = GateLayout(security=dict(security), baggage=dict(baggage), walking=dict(gate_to_gate))
    layout.validate()
    return layout
