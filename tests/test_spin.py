import numpy as np
import pytest

from proxima_errors import NumericalSingularity
from proxima_spin import (
    SIGMA0,
    SIGMA_Y,
    bcs_riccati,
    density_of_states,
    nambu_propagator,
    nambu_vector,
    normalization,
    singlet,
    spectral_radius,
    spin_inverse,
    spin_vector,
)
from tests.conftest import random_spin


def test_spin_inverse_matches_numpy(rng) -> None:
    a = SIGMA0 + random_spin(rng, 0.3, (5,))
    np.testing.assert_allclose(spin_inverse(a), np.linalg.inv(a), atol=1e-12)


def test_spin_inverse_detects_singular_matrices() -> None:
    with pytest.raises(NumericalSingularity):
        spin_inverse(np.ones((2, 2)))
    with pytest.raises(NumericalSingularity):
        spin_inverse(np.full((2, 2), np.nan))


def test_spin_vector_contracts_pauli_matrices() -> None:
    np.testing.assert_allclose(spin_vector([0.0, 2.0, 0.0]), 2.0 * SIGMA_Y)


def test_normal_state_has_unit_density_of_states() -> None:
    g = np.zeros((3, 2, 2), dtype=complex)
    np.testing.assert_allclose(density_of_states(g, g), 1.0)


def test_bcs_state_is_normalizable() -> None:
    for energy in (0.2, 0.999, 1.5, 30.0):
        g, gt = bcs_riccati(complex(energy, 0.01), 1.0)
        assert spectral_radius(g @ gt) < 1.0


def test_bcs_density_of_states() -> None:
    g, gt = bcs_riccati(complex(50.0, 0.01), 1.0)
    assert density_of_states(g, gt) == pytest.approx(1.0, abs=1e-3)
    g, gt = bcs_riccati(complex(0.5, 0.01), 1.0)
    assert density_of_states(g, gt) < 0.05
    g, gt = bcs_riccati(complex(2.0, 0.0), 1.0)
    assert density_of_states(g, gt) == pytest.approx(2.0 / np.sqrt(3.0))


def test_bcs_zero_gap_is_normal_state() -> None:
    g, gt = bcs_riccati(0.7 + 0.01j, 0.0)
    assert not g.any() and not gt.any()


def test_bcs_phase_enters_singlet_amplitude() -> None:
    phase = 0.7
    g0, gt0 = bcs_riccati(complex(2.0, 0.01), 1.0)
    g1, gt1 = bcs_riccati(complex(2.0, 0.01), np.exp(1j * phase))
    assert singlet(g1) == pytest.approx(singlet(g0) * np.exp(1j * phase))
    assert singlet(gt1) == pytest.approx(singlet(gt0) * np.exp(-1j * phase))


def test_propagator_is_normalized(rng) -> None:
    g = random_spin(rng, 0.3, (4,))
    gt = random_spin(rng, 0.3, (4,))
    G = nambu_propagator(g, gt)
    np.testing.assert_allclose(G @ G, np.broadcast_to(np.eye(4), G.shape), atol=1e-10)


def test_normalization_matrices(rng) -> None:
    g = random_spin(rng, 0.2)
    gt = random_spin(rng, 0.2)
    N, Nt = normalization(g, gt)
    np.testing.assert_allclose(N @ (SIGMA0 - g @ gt), SIGMA0, atol=1e-12)
    np.testing.assert_allclose(Nt @ (SIGMA0 - gt @ g), SIGMA0, atol=1e-12)


def test_nambu_vector_is_block_diagonal() -> None:
    np.testing.assert_allclose(np.diag(nambu_vector([0.0, 0.0, 2.0])), [1, -1, 1, -1])
    M = nambu_vector([0.0, 1.0, 0.0])
    np.testing.assert_allclose(M[2:, 2:], np.conj(SIGMA_Y))
    assert not M[:2, 2:].any()
