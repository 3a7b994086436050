import numpy as np
import pytest

from proxima_errors import ConfigurationError, NumericalSingularity
from proxima_spin import nambu_propagator
from tests.conftest import random_spin
from usadel_models import Conductor, InterfaceParams, RiccatiPoint, SpinActiveInterface


def _point(rng, scale: float) -> RiccatiPoint:
    return RiccatiPoint(
        random_spin(rng, scale), random_spin(rng, scale),
        random_spin(rng, scale), random_spin(rng, scale),
    )


def test_plain_barrier_current_is_commutator(rng) -> None:
    G0 = nambu_propagator(random_spin(rng, 0.3), random_spin(rng, 0.3))
    G1 = nambu_propagator(random_spin(rng, 0.3), random_spin(rng, 0.3))
    barrier = SpinActiveInterface(conductance=0.8, magnetization=[1.0, 0.0, 0.0])
    expected = 0.4 * (G0 @ G1 - G1 @ G0)
    np.testing.assert_allclose(barrier.current(G0, G1), expected, atol=1e-12)


@pytest.mark.parametrize("side", ["a", "b"])
def test_weak_proximity_matches_tunnel_condition(rng, side: str) -> None:
    here = _point(rng, 1e-4)
    there = _point(rng, 1e-4)
    barrier = SpinActiveInterface(conductance=2.0, magnetization=[0.0, 0.0, 1.0])
    r, rt = barrier.residual(side, there, here.g, here.gt, here.dg, here.dgt)
    r_kl, rt_kl = Conductor.interface_tunnel(side, 2.0, there, here.g, here.gt, here.dg, here.dgt)
    np.testing.assert_allclose(r, r_kl, atol=1e-6)
    np.testing.assert_allclose(rt, rt_kl, atol=1e-6)


def test_spin_mixing_changes_the_current(rng) -> None:
    G0 = nambu_propagator(random_spin(rng, 0.3), random_spin(rng, 0.3))
    G1 = nambu_propagator(random_spin(rng, 0.3), random_spin(rng, 0.3))
    plain = SpinActiveInterface(1.0, magnetization=[0, 0, 1])
    mixing = SpinActiveInterface(1.0, polarization=0.5, spin_mixing=0.4,
                                 second_order=0.1, magnetization=[0, 0, 1])
    I = mixing.current(G0, G1)
    assert np.all(np.isfinite(I))
    assert not np.allclose(I, plain.current(G0, G1))


def test_reflection_magnetizations_default_to_barrier() -> None:
    barrier = SpinActiveInterface(1.0, spin_mixing=0.2, magnetization=[0, 0, 3.0])
    assert barrier.M0 is barrier.M and barrier.M1 is barrier.M
    tilted = SpinActiveInterface(1.0, spin_mixing=0.2, magnetization=[0, 0, 1],
                                 misalignment=[1.0, 0.0, 0.0])
    assert not np.allclose(tilted.M0, tilted.M)
    assert tilted.M1 is tilted.M


def test_second_order_without_first_order_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        SpinActiveInterface(1.0, second_order=0.5, magnetization=[0, 0, 1])
    with pytest.raises(ConfigurationError):
        InterfaceParams(second_order=0.5, magnetization=[0, 0, 1])


def test_second_order_guard_raises_singularity(rng) -> None:
    barrier = SpinActiveInterface(1.0, spin_mixing=0.3, second_order=0.5, magnetization=[0, 0, 1])
    barrier.spin_mixing = 0.0
    G = nambu_propagator(random_spin(rng, 0.1), random_spin(rng, 0.1))
    with pytest.raises(NumericalSingularity):
        barrier.current(G, G)


@pytest.mark.parametrize("kwargs", [
    {"polarization": 1.0},
    {"polarization": -0.1},
    {"conductance": -1.0},
    {"magnetization": [0.0, 0.0, 0.0]},
    {"transparent": True, "reflecting": True},
])
def test_interface_params_validation(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        InterfaceParams(**kwargs)


def test_interface_params_normalize_and_round_trip() -> None:
    params = InterfaceParams(conductance=1.5, magnetization=[0.0, 3.0, 4.0])
    np.testing.assert_allclose(params.magnetization, [0.0, 0.6, 0.8])
    assert params.spin_active
    again = InterfaceParams.from_state(params.get_state())
    assert again.conductance == 1.5
    np.testing.assert_allclose(again.magnetization, params.magnetization)
    assert not InterfaceParams().spin_active


def test_zero_misalignment_means_barrier_magnetization() -> None:
    barrier = SpinActiveInterface(1.0, spin_mixing=0.2, magnetization=[0, 0, 1],
                                  misalignment=[0.0, 0.0, 0.0],
                                  misalignment_other=np.zeros(3))
    assert np.all(np.isfinite(barrier.M0))
    assert barrier.M0 is barrier.M and barrier.M1 is barrier.M
    params = InterfaceParams(magnetization=[0, 0, 1], misalignment=[0, 0, 0],
                             misalignment_other=[0.0, 0.0, 0.0])
    assert params.misalignment is None and params.misalignment_other is None
    from_params = SpinActiveInterface.from_params(params)
    assert from_params.M0 is from_params.M
