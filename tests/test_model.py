import pytest

from agap import build_window_model
from agap_backend import Assignment, GurobiBackend, Infeasible
from agap_config import AssignmentConfig
from agap_data import ConnectionTable
from agap_errors import WindowError
from agap_relations import precompute_relations
from agap_windows import Window
from verification_and_sensitivity import make_flights, make_layout


@pytest.fixture
def backend():
    with GurobiBackend(AssignmentConfig()) as b:
        yield b


def _build(flights, layout, table, window, locks=None, config=None, env=None):
    config = config or AssignmentConfig()
    relations = precompute_relations(flights, table, buffer_time=config.buffer_time)
    return build_window_model(flights, layout, relations, window, locks or {}, config, env=env)


def test_model_structure_for_two_turnarounds(backend):
    flights = make_flights([
        ("A", "N", 0, 30, 0, 100),
        ("B", "N", 10, 50, 0, 100),
        ("A", "Y", 40, 70, 100, 0),
        ("B", "Y", 60, 90, 100, 0),
    ])
    wm = _build(flights, make_layout(2), ConnectionTable(), Window(0, 4, 4), env=backend.env)
    m = wm.model

    assert len(wm.x) == 8
    assert wm.z == {}
    # 4 assignment + 3 conflicts x 2 gates + 2 turnarounds x 2 gates
    assert m.NumConstrs == 14
    assert m.getConstrByName("conflict_0_1_1") is not None
    assert m.getConstrByName("same_gate_1_3_2") is not None
    assert m.getConstrByName("assign_3") is not None
    wm.model.dispose()


def test_objective_coefficients_follow_direction_and_toggles(backend):
    flights = make_flights([("A", "N", 0, 30, 0, 40), ("B", "Y", 50, 80, 70, 0)])
    layout = make_layout(2)

    wm = _build(flights, layout, ConnectionTable(), Window(0, 2, 2), env=backend.env)
    assert wm.x[(0, 1)].Obj == pytest.approx(40 * layout.baggage[1])
    assert wm.x[(1, 2)].Obj == pytest.approx(70 * layout.security[2])
    wm.model.dispose()

    config = AssignmentConfig(departing=False)
    wm = _build(flights, layout, ConnectionTable(), Window(0, 2, 2), config=config, env=backend.env)
    assert wm.x[(1, 2)].Obj == 0
    assert wm.x[(0, 2)].Obj == pytest.approx(40 * layout.baggage[2])
    wm.model.dispose()


def test_linearization_matches_products_at_optimum(backend):
    # overlapping inbound/outbound on different tails: they need different gates
    flights = make_flights([("A", "N", 0, 50, 0, 0), ("B", "Y", 40, 80, 0, 0)])
    layout = make_layout(3)
    table = ConnectionTable(passengers={(0, 1): 20})
    config = AssignmentConfig(departing=False, arriving=False)

    wm = _build(flights, layout, table, Window(0, 2, 2), config=config, env=backend.env)
    assert len(wm.z) == 9
    assert wm.model.NumConstrs == 2 + 27 + 3

    outcome = backend.solve(wm)

    assert isinstance(outcome, Assignment)
    assert outcome.status == "OPTIMAL"
    g0, g1 = outcome.gates[0], outcome.gates[1]
    assert abs(g0 - g1) == 1
    assert outcome.objective == pytest.approx(20 * 50.0)
    for (i, j, a, b), zvar in wm.z.items():
        assert round(zvar.X) == round(wm.x[(i, a)].X) * round(wm.x[(j, b)].X)
    wm.model.dispose()


def test_no_linearization_without_connecting_objective(backend):
    flights = make_flights([("A", "N", 0, 50, 0, 10), ("B", "Y", 40, 80, 10, 0)])
    table = ConnectionTable(passengers={(0, 1): 20})
    config = AssignmentConfig(connecting=False)

    wm = _build(flights, make_layout(3), table, Window(0, 2, 2), config=config, env=backend.env)

    assert wm.z == {}
    assert wm.connection_pairs == []
    wm.model.dispose()


def test_connection_to_locked_inbound_is_a_linear_penalty(backend):
    flights = make_flights([("A", "N", 0, 30, 0, 0), ("B", "Y", 40, 80, 0, 0)])
    layout = make_layout(3)
    table = ConnectionTable(passengers={(0, 1): 20})
    config = AssignmentConfig(departing=False, arriving=False)

    wm = _build(flights, layout, table, Window(1, 2, 2), locks={0: 3}, config=config, env=backend.env)

    assert wm.z == {}
    assert wm.locked_connections == [(1, 0, 3, 20)]
    assert wm.x[(1, 1)].Obj == pytest.approx(3.0 * 20 * layout.walking[(3, 1)])
    assert wm.x[(1, 3)].Obj == 0

    outcome = backend.solve(wm)
    assert outcome.gates == {1: 3}
    wm.model.dispose()


def test_connection_to_locked_outbound_is_a_linear_penalty(backend):
    flights = make_flights([("A", "N", 0, 30, 0, 0), ("B", "Y", 40, 80, 0, 0)])
    layout = make_layout(3)
    table = ConnectionTable(passengers={(0, 1): 20})
    config = AssignmentConfig(departing=False, arriving=False, locked_connection_weight=2.0)

    wm = _build(flights, layout, table, Window(0, 1, 1), locks={1: 1}, config=config, env=backend.env)

    assert wm.locked_connections == [(0, 1, 1, 20)]
    assert wm.x[(0, 3)].Obj == pytest.approx(2.0 * 20 * layout.walking[(3, 1)])
    wm.model.dispose()


def test_locked_connection_weight_scales_with_connection_weight(backend):
    flights = make_flights([("A", "N", 0, 30, 0, 0), ("B", "Y", 40, 80, 0, 0)])
    layout = make_layout(3)
    table = ConnectionTable(passengers={(0, 1): 20})
    config = AssignmentConfig(departing=False, arriving=False, connection_weight=2.0)

    wm = _build(flights, layout, table, Window(0, 1, 1), locks={1: 1}, config=config, env=backend.env)

    assert config.locked_connection_factor == 6.0
    assert wm.x[(0, 3)].Obj == pytest.approx(6.0 * 20 * layout.walking[(3, 1)])
    wm.model.dispose()


def test_locked_conflicting_flight_blocks_its_gate(backend):
    flights = make_flights([("A", "N", 0, 30, 0, 10), ("B", "N", 10, 40, 0, 10)])
    config = AssignmentConfig(arriving=False)

    wm = _build(flights, make_layout(2), ConnectionTable(), Window(1, 2, 2), locks={0: 1}, config=config,
                env=backend.env)

    assert wm.model.getConstrByName("lock_conflict_1_0") is not None
    assert backend.solve(wm).gates == {1: 2}
    wm.model.dispose()


def test_same_occupancy_follows_locked_record(backend):
    flights = make_flights([("C", "N", 20, 50, 0, 150), ("C", "Y", 20, 50, 140, 0)])

    wm = _build(flights, make_layout(3), ConnectionTable(), Window(1, 2, 2), locks={0: 2}, env=backend.env)

    assert wm.model.getConstrByName("lock_same_gate_1_0") is not None
    assert backend.solve(wm).gates == {1: 2}
    wm.model.dispose()


def test_infeasible_window_reports_iis(backend):
    flights = make_flights([("A", "N", 0, 30, 0, 10), ("B", "N", 10, 40, 0, 10)])

    wm = _build(flights, make_layout(1), ConnectionTable(), Window(0, 2, 2), env=backend.env)
    outcome = backend.solve(wm)

    assert isinstance(outcome, Infeasible)
    assert "conflict_0_1_1" in outcome.iis
    wm.model.dispose()


def test_window_outside_loaded_flights():
    flights = make_flights([("A", "N", 0, 30, 0, 10)])

    with pytest.raises(WindowError):
        _build(flights, make_layout(1), ConnectionTable(), Window(0, 2, 2))
