# Gate codes and output tables for the final assignment
from __future__ import annotations

import logging

import pandas as pd

logger = logging.getLogger(__name__)

# Gate number (1-based) -> gate code at the reference airport
DEFAULT_GATE_CODES = dict(enumerate([
    "A8", "A9", "A10", "A11", "A13", "A14", "A15", "A16", "A17", "A18",
    "A19", "A20", "A21", "A22", "A23", "A24", "A25", "A28", "A29", "A33",
    "A34", "A35", "A36", "A37", "A38", "A39", "B1", "B2", "B3", "B4",
    "B5", "B6", "B7", "B9", "B10", "B11", "B12", "B14", "B16", "B17",
    "B18", "B19", "B21", "B22", "B24", "B25", "B26", "B27", "B28", "B29",
    "B30", "B31", "B32", "B33", "B34", "B35", "B36", "B37", "B38", "B39",
    "B40", "B42", "B43", "B44", "B46", "B47", "B48", "B49", "C2", "C4",
    "C6", "C7", "C8", "C10", "C11", "C12", "C14", "C15", "C16", "C17",
    "C19", "C20", "C21", "C22", "C24", "C26", "C27", "C28", "C29", "C30",
    "C31", "C33", "C35", "C36", "C37", "C39",
], start=1))


def gate_code(gate, codes=None):
    codes = DEFAULT_GATE_CODES if codes is None else codes
    return codes.get(gate, str(gate))


def assignment_frame(frame, flights, assignments, codes=None, start=0, end=None):
    """
    Copy of the sorted flight table for flights [start, end) with OptDepGate / OptArrGate.
    Departing flights fill OptDepGate, arriving flights OptArrGate; unassigned flights stay empty.
    """
    end = len(flights) if end is None else end
    out = frame.iloc[start:end].copy()
    dep = [None] * len(out)
    arr = [None] * len(out)
    for k, f in enumerate(range(start, end)):
        gate = assignments.get(f)
        if gate is None:
            continue
        if flights[f].departing:
            dep[k] = gate_code(gate, codes)
        else:
            arr[k] = gate_code(gate, codes)
    out["OptDepGate"] = pd.Series(dep, index=out.index, dtype="object")
    out["OptArrGate"] = pd.Series(arr, index=out.index, dtype="object")
    return out


def write_assignments(path, frame, flights, result, codes=None):
    out = assignment_frame(frame, flights, result.assignments, codes, start=result.start, end=result.end)
    out.to_csv(path, index=False)
    logger.info("Wrote %d rows to %s", len(out), path)
    return out


def window_report_frame(result):
    rows = []
    for r in result.windows:
        rows.append({
            "start": r.window.start,
            "stop": r.window.stop,
            "commit_stop": r.window.commit_stop,
            "status": r.status,
            "objective": r.objective,
            "locked": len(r.committed),
            "connecting_pax": r.connections.passengers,
            "weighted_walk": r.connections.weighted_distance,
            "avg_walk": r.connections.average_distance,
            "seconds": r.seconds,
        })
    return pd.DataFrame(rows)
