# Lock store and commitment of solved windows
from __future__ import annotations

import logging
from types import MappingProxyType

from agap_errors import LockConflictError, RelationDataError

logger = logging.getLogger(__name__)


class LockStore:
    """
    Append-only mapping flight -> gate. Once locked, a flight keeps its gate
    for the rest of the run. Models only ever see the read-only `view()`.
    """

    def __init__(self, gate_count, initial=None, flight_count=None):
        self.gate_count = gate_count
        self.flight_count = flight_count
        self._locks = {}
        for flight, gate in (initial or {}).items():
            self.lock(flight, gate)

    def lock(self, flight, gate):
        if self.flight_count is not None and not (0 <= flight < self.flight_count):
            raise RelationDataError(f"Lock for flight {flight} is outside 0..{self.flight_count - 1}")
        if not (1 <= gate <= self.gate_count):
            raise RelationDataError(f"Gate {gate} for flight {flight} is outside 1..{self.gate_count}")
        current = self._locks.get(flight)
        if current is not None and current != gate:
            raise LockConflictError(f"Flight {flight} is locked to gate {current}, cannot move it to gate {gate}")
        self._locks[flight] = gate

    def view(self):
        return MappingProxyType(self._locks)

    def snapshot(self):
        return dict(self._locks)

    def get(self, flight, default=None):
        return self._locks.get(flight, default)

    def __contains__(self, flight):
        return flight in self._locks

    def __len__(self):
        return len(self._locks)

    def __iter__(self):
        return iter(self._locks)

    def items(self):
        return self._locks.items()


def select_commitments(window, assignment):
    """The part of a window's solution that becomes permanent: its commit prefix."""
    missing = [f for f in window.committed if f not in assignment]
    if missing:
        raise LockConflictError(f"Window {window} has no gate for flights {missing[:10]}")
    return {f: assignment[f] for f in window.committed}


def commit_window(store, window, assignment):
    """
    Folds the committed prefix of `assignment` into `store`.
    Flights beyond the prefix are dropped and re-solved by the next window.
    Returns the newly locked flights.
    """
    selected = select_commitments(window, assignment)
    # check everything before writing so a bad window leaves the store untouched
    for flight, gate in selected.items():
        current = store.get(flight)
        if current is not None and current != gate:
            raise LockConflictError(f"Flight {flight} is locked to gate {current}, window {window} chose {gate}")

    added = {}
    for flight, gate in selected.items():
        if flight not in store:
            store.lock(flight, gate)
            added[flight] = gate
    logger.debug("Window %s locked %d flights (%d total)", window, len(added), len(store))
    return added
