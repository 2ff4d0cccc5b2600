import pytest

from agap_data import ConnectionTable, Flight
from agap_errors import RelationDataError
from agap_relations import flights_conflict, is_turnaround, precompute_relations
from verification_and_sensitivity import make_flights, make_layout


def _turnaround_pair():
    return make_flights([
        ("A", "N", 0, 30, 0, 100),
        ("B", "N", 10, 50, 0, 100),
        ("A", "Y", 40, 70, 100, 0),
        ("B", "Y", 60, 90, 100, 0),
    ])


def test_conflicts_and_turnarounds_of_two_aircraft():
    relations = precompute_relations(_turnaround_pair(), ConnectionTable())

    assert relations.conflicts == {(0, 1), (1, 2), (2, 3)}
    assert relations.same_gate == ((0, 2), (1, 3))
    assert relations.conflicts_of[1] == {0, 2}
    assert relations.same_gate_of[2] == {0}


def test_same_tail_overlap_is_never_a_conflict():
    a = Flight(index=0, tail="A", departing=False, enter=0, exit=60)
    b = Flight(index=1, tail="A", departing=True, enter=30, exit=90)

    assert not flights_conflict(a, b)


def test_buffer_time_extends_occupancy():
    flights = make_flights([("A", "N", 0, 30, 0, 10), ("B", "N", 35, 60, 0, 10)])

    assert precompute_relations(flights, ConnectionTable(), buffer_time=0).conflicts == frozenset()
    assert precompute_relations(flights, ConnectionTable(), buffer_time=10).conflicts == {(0, 1)}


def test_long_occupancy_conflicts_with_every_later_overlap():
    flights = make_flights([
        ("A", "N", 0, 100, 0, 10),
        ("B", "N", 10, 20, 0, 10),
        ("C", "N", 30, 40, 0, 10),
        ("D", "N", 50, 60, 0, 10),
    ])

    assert precompute_relations(flights, ConnectionTable()).conflicts == {(0, 1), (0, 2), (0, 3)}
    assert precompute_relations(flights, ConnectionTable(), buffer_time=15).conflicts == {
        (0, 1), (0, 2), (0, 3), (1, 2), (2, 3),
    }


def test_touching_intervals_do_not_conflict():
    a = Flight(index=0, tail="A", departing=False, enter=0, exit=30)
    b = Flight(index=1, tail="B", departing=False, enter=30, exit=60)

    assert not flights_conflict(a, b)


def test_turnaround_threshold():
    arrival = Flight(index=0, tail="A", departing=False, enter=0, exit=30)
    close = Flight(index=1, tail="A", departing=True, enter=150, exit=200)
    late = Flight(index=2, tail="A", departing=True, enter=151, exit=200)
    earlier = Flight(index=3, tail="A", departing=True, enter=-60, exit=-10)

    assert is_turnaround(arrival, close, threshold=120)
    assert not is_turnaround(arrival, late, threshold=120)
    assert not is_turnaround(arrival, earlier, threshold=120)


def test_identical_occupancy_records():
    flights = make_flights([("C", "N", 20, 50, 0, 150), ("C", "Y", 20, 50, 140, 0)])
    relations = precompute_relations(flights, ConnectionTable())

    assert relations.same_occupancy_of == {0: {1}, 1: {0}}
    assert relations.same_gate == ((0, 1),)


def test_only_tier_one_connections_are_linked():
    flights = make_flights([
        ("A", "N", 0, 30, 0, 10), ("B", "Y", 40, 80, 10, 0), ("C", "Y", 90, 120, 10, 0),
    ])
    table = ConnectionTable(passengers={(0, 1): 12, (0, 2): 7}, tiers={(0, 1): 1, (0, 2): 3})
    relations = precompute_relations(flights, table)

    assert relations.outbound_of == {0: {1: 12}}
    assert relations.inbound_of == {1: {0: 12}}
    assert relations.connections_in(0, 3) == [(0, 1)]
    assert relations.connections_in(1, 3) == []
    assert relations.passengers[(0, 2)] == 7
    assert relations.tiers[(0, 2)] == 3


def test_connection_outside_horizon_fails_fast():
    flights = make_flights([("A", "N", 0, 30, 0, 10), ("B", "Y", 40, 80, 10, 0)])

    with pytest.raises(RelationDataError):
        precompute_relations(flights, ConnectionTable(passengers={(0, 5): 3}))


def test_unsorted_flights_are_rejected():
    flights = make_flights([("A", "N", 50, 80, 0, 10), ("B", "Y", 40, 90, 10, 0)])

    with pytest.raises(RelationDataError):
        precompute_relations(flights, ConnectionTable())


def test_incomplete_gate_layout_is_rejected():
    flights = make_flights([("A", "N", 0, 30, 0, 10)])
    layout = make_layout(2)
    del layout.walking[(1, 2)]

    with pytest.raises(RelationDataError):
        precompute_relations(flights, ConnectionTable(), layout=layout)
