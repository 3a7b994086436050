import io
import warnings

import numpy as np
import pytest

from proxima_calculus import linspace
from proxima_errors import ConfigurationError, ConvergenceTimeout, SolverDivergence
from proxima_structure import ConvergenceResult, Structure, critical_temperature
from usadel_models import Conductor, Ferromagnet, Superconductor


@pytest.fixture
def grid() -> np.ndarray:
    return np.array([1.5, 3.0])


def _sc_grid() -> np.ndarray:
    return np.concatenate([linspace(12, 0.05, 1.45), [2.0, 4.0, 10.0]])


def test_push_back_wires_neighbours(grid) -> None:
    a, b, c = (Conductor(grid, points=3) for _ in range(3))
    stack = Structure([a, b])
    stack.push_back(c)
    assert len(stack) == 3
    assert a.material_a is None and c.material_b is None
    assert a.material_b is b and b.material_a is a
    assert b.material_b is c and c.material_a is b
    assert stack.validate() == []
    assert all(layer.energy is a.energy for layer in stack)


def test_equal_grids_are_shared_by_reference(grid) -> None:
    first = Conductor(grid, points=3)
    second = Conductor(grid.copy(), points=3)
    stack = Structure([first, second])
    assert second.energy is first.energy
    assert stack.validate() == []


def test_mismatched_energy_grid_is_rejected(grid) -> None:
    stack = Structure([Conductor(grid, points=3)])
    with pytest.raises(ConfigurationError):
        stack.push_back(Conductor(np.array([1.0, 2.0, 3.0]), points=3))


def test_empty_structure_is_a_configuration_error() -> None:
    stack = Structure()
    assert stack.validate() == ["Structure contains no layers."]
    with pytest.raises(ConfigurationError):
        stack.converge()
    with pytest.raises(ConfigurationError):
        stack.update()


def test_layer_cannot_be_added_twice(grid) -> None:
    layer = Conductor(grid, points=3)
    stack = Structure([layer])
    with pytest.raises(ConfigurationError):
        stack.push_back(layer)


def test_bulk_reservoirs_are_frozen_and_wired(grid) -> None:
    top = Superconductor(grid, points=3)
    bottom = Conductor(grid, points=3)
    layer = Conductor(grid, points=3)
    stack = Structure()
    stack.attach_bulk(top, "a")
    stack.push_back(layer)
    stack.attach_bulk(bottom, "b")
    assert top.frozen and bottom.frozen
    assert layer.material_a is top and layer.material_b is bottom
    assert stack.validate() == []
    with pytest.raises(ConfigurationError):
        stack.attach_bulk(Conductor(grid, points=3), "c")


def test_update_sweeps_down_then_up(grid, monkeypatch) -> None:
    layers = [Conductor(grid, points=3) for _ in range(3)]
    order = []
    for i, layer in enumerate(layers):
        monkeypatch.setattr(layer, "update", lambda i=i: order.append(i))
    Structure(layers).update()
    assert order == [0, 1, 2, 1, 0]


def test_converge_respects_iteration_cap(grid) -> None:
    stack = Structure([Conductor(grid, points=5, gap=0.2)])
    calls = {"pre": 0, "post": 0}

    def prehook(structure) -> None:
        assert structure is stack
        calls["pre"] += 1

    def posthook(structure) -> None:
        calls["post"] += 1

    with pytest.warns(ConvergenceTimeout):
        result = stack.converge(threshold=0.0, iterations=2, prehook=prehook, posthook=posthook)
    assert isinstance(result, ConvergenceResult)
    assert result.converged is False
    assert result.iterations == 2
    assert result.difference >= 0.0
    assert calls == {"pre": 2, "post": 2}


def test_converge_rejects_non_positive_cap(grid) -> None:
    stack = Structure([Conductor(grid, points=3)])
    with pytest.raises(ConfigurationError):
        stack.converge(iterations=0)


def test_bootstrap_suspends_selfconsistency(grid, monkeypatch) -> None:
    sc = Superconductor(grid, points=3)
    stack = Structure([sc])
    seen = []
    monkeypatch.setattr(sc, "update", lambda: seen.append(sc.self_consistent))
    monkeypatch.setattr(sc, "difference", lambda: 0.0)
    result = stack.converge(bootstrap=True)
    assert result == ConvergenceResult(True, 1, 0.0)
    assert seen == [False]
    assert sc.self_consistent is True


def _bulk_grid() -> np.ndarray:
    # Fine sampling across the gap edge; Emax = 2 gives a coupling of about 0.76
    return np.concatenate([
        linspace(25, 1e-6, 0.8),
        linspace(100, 0.805, 1.3),
        np.geomspace(1.32, 2.0, 12),
    ])


@pytest.mark.parametrize("initial", [1.0, 0.5])
@pytest.mark.parametrize("bootstrap", [False, True])
def test_isolated_superconductor_converges_to_bulk_gap(initial, bootstrap) -> None:
    sc = Superconductor(_bulk_grid(), points=3, max_nodes=200)
    assert sc.coupling == pytest.approx(1.0 / np.arccosh(2.0))
    stack = Structure([sc])
    stack.initialize(initial)
    if bootstrap:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceTimeout)
            stack.converge(threshold=1e-6, iterations=2, bootstrap=True)
        assert sc.self_consistent
    result = stack.converge(threshold=1e-3, iterations=30)
    assert result.converged
    assert sc.failures == {}
    assert stack.stale() == 0
    gap = np.abs(sc.gap_function)
    np.testing.assert_allclose(gap, 1.0, rtol=0.03)
    assert gap.max() - gap.min() < 1e-3


def test_save_and_load_restore_states(grid) -> None:
    sc = Superconductor(grid, points=3)
    normal = Conductor(grid, points=3, gap=0.0)
    stack = Structure([sc, normal])
    saved_g = normal.state.g.copy()
    snapshot = stack.save()
    stack.initialize(0.4)
    np.testing.assert_allclose(sc.gap_function, 0.4)
    stack.load()
    np.testing.assert_allclose(sc.gap_function, 1.0)
    np.testing.assert_array_equal(normal.state.g, saved_g)
    stack.initialize(0.3)
    stack.load(snapshot)
    np.testing.assert_allclose(stack.gap(), 1.0)


def test_load_without_save_fails(grid) -> None:
    with pytest.raises(ConfigurationError):
        Structure([Conductor(grid, points=3)]).load()


def test_temperature_and_gap(grid) -> None:
    first = Superconductor(grid, points=3)
    second = Superconductor(grid, points=3)
    stack = Structure([first, Conductor(grid, points=3), second])
    stack.set_temperature(0.25)
    assert first.temperature == 0.25 and second.temperature == 0.25
    second.init(0.6)
    first.init(0.2)
    assert stack.gap() == pytest.approx(0.6)
    assert Structure([Conductor(grid, points=3)]).gap() == 0.0


def test_write_density_places_layers_end_to_end(grid) -> None:
    stack = Structure([
        Conductor(grid, points=2, length=0.5, gap=0.0),
        Conductor(grid, points=2, length=2.0, gap=0.0),
    ])
    sink = io.StringIO()
    stack.write_density(sink)
    blocks = sink.getvalue().strip("\n").split("\n\n")
    positions = [float(block.split()[0]) for block in blocks]
    np.testing.assert_allclose(positions, [0.0, 0.5, 0.5, 2.5])


def test_write_gap_skips_normal_layers(grid) -> None:
    stack = Structure([
        Conductor(grid, points=2, length=1.0),
        Superconductor(grid, points=3, length=2.0),
    ])
    sink = io.StringIO()
    stack.write_gap(sink)
    rows = np.loadtxt(io.StringIO(sink.getvalue()))
    np.testing.assert_allclose(rows[:, 0], [1.0, 2.0, 3.0])


def test_state_round_trip(grid) -> None:
    stack = Structure([
        Superconductor(grid, points=3, temperature=0.2),
        Ferromagnet(grid, points=3, exchange=[0.0, 0.0, 2.0],
                    interface_a={"conductance": 1.5, "magnetization": [1, 0, 0],
                                 "spin_mixing": 0.1}),
        Conductor(grid, points=3, length=0.4),
    ])
    stack.attach_bulk(Conductor(grid, points=3, gap=0.0), "b")
    copy = Structure.from_state(stack.get_state())
    assert [layer.kind for layer in copy] == ["superconductor", "ferromagnet", "conductor"]
    assert copy.validate() == []
    assert copy.bulk_b is not None and copy.bulk_b.frozen
    magnet = copy.layers[1]
    np.testing.assert_allclose(magnet.get_exchange(0.5), [0.0, 0.0, 2.0])
    assert magnet.params.interface_a.spin_active
    assert copy.layers[0].temperature == 0.2
    assert copy.layers[2].length == 0.4


def test_from_state_builds_default_energy_grid() -> None:
    stack = Structure.from_state({
        "energies": 60,
        "coupling": 0.2,
        "layers": [{"kind": "superconductor", "points": 3}, {"kind": "conductor", "points": 3}],
    })
    assert stack.energy.shape == (60,)
    assert stack.layers[1].energy is stack.layers[0].energy


@pytest.mark.parametrize("state", [
    {"layers": []},
    {"energies": [1.5, 3.0], "layers": [{"kind": "insulator"}]},
    {"energies": [1.5, 3.0], "layers": [{"kind": "conductor", "thickness": 2}]},
])
def test_from_state_rejects_bad_configuration(state) -> None:
    with pytest.raises(ConfigurationError):
        Structure.from_state(state)


def test_critical_temperature_requires_superconductor(grid) -> None:
    with pytest.raises(ConfigurationError):
        critical_temperature(Structure([Conductor(grid, points=3)]))


def test_critical_temperature_bisection_stays_in_bracket() -> None:
    stack = Structure([Superconductor(_sc_grid(), points=3)])
    tc = critical_temperature(stack, bisections=2, iterations=1, bootstraps=1)
    assert tc in (0.125, 0.375, 0.625, 0.875)


def test_repr(grid) -> None:
    stack = Structure([Superconductor(grid, points=3), Conductor(grid, points=3)])
    assert repr(stack) == "Structure([superconductor, conductor], energies=2)"


def test_stale_state_never_reports_convergence(grid, monkeypatch) -> None:
    layer = Conductor(grid, points=3, workers=1)

    def diverge(n: int) -> np.ndarray:
        raise SolverDivergence(n, float(layer.energy[n]), "forced")

    monkeypatch.setattr(layer, "_solve_energy", diverge)
    stack = Structure([layer])
    with pytest.warns(ConvergenceTimeout, match="stale energies 2"):
        result = stack.converge(threshold=1e-4, iterations=3)
    assert result.converged is False
    assert result.iterations == 3
    assert result.difference == float("inf")
    assert stack.stale() == 2
