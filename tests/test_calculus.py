import numpy as np
import pytest

from proxima_calculus import (
    differentiate,
    energy_range,
    integrate,
    integrate_spline,
    interpolate_spline,
    linspace,
    make_spline,
)
from proxima_errors import ConfigurationError


def test_linspace_is_inclusive_and_even() -> None:
    x = linspace(5, 0.0, 1.0)
    assert x.shape == (5,)
    assert x[0] == 0.0 and x[-1] == 1.0
    np.testing.assert_allclose(np.diff(x), 0.25)


@pytest.mark.parametrize("n", [0, 1])
def test_linspace_rejects_short_grids(n: int) -> None:
    with pytest.raises(ConfigurationError):
        linspace(n, 0.0, 1.0)


def test_configuration_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        linspace(1, 0.0, 1.0)


def test_differentiate_linear_function_on_nonuniform_mesh() -> None:
    x = np.array([0.0, 0.1, 0.35, 0.4, 1.0])
    y = (3.0 - 2.0j) * x + 1.0
    dy = differentiate(x, y)
    assert dy.shape == x.shape
    np.testing.assert_allclose(dy, 3.0 - 2.0j)


def test_differentiate_quadratic_interior_is_exact_on_uniform_mesh() -> None:
    x = linspace(11, -1.0, 1.0)
    dy = differentiate(x, x ** 2)
    np.testing.assert_allclose(dy[1:-1], 2.0 * x[1:-1], atol=1e-12)
    # One-sided differences at the ends
    assert dy[0] == pytest.approx((x[1] ** 2 - x[0] ** 2) / (x[1] - x[0]))
    assert dy[-1] == pytest.approx((x[-1] ** 2 - x[-2] ** 2) / (x[-1] - x[-2]))


def test_differentiate_preserves_trailing_shape() -> None:
    x = linspace(6, 0.0, 1.0)
    y = np.einsum("i,jk->ijk", x, np.arange(4.0).reshape(2, 2))
    dy = differentiate(x, y)
    assert dy.shape == (6, 2, 2)
    np.testing.assert_allclose(dy[3], np.arange(4.0).reshape(2, 2))


def test_trapezoid_rule() -> None:
    x = np.array([0.0, 0.5, 2.0])
    assert integrate(x, 2.0 * x) == pytest.approx(4.0)
    assert integrate(x, (1.0 + 1.0j) * np.ones(3)) == pytest.approx(2.0 + 2.0j)
    stacked = integrate(x, np.stack([x, np.ones(3)], axis=1))
    np.testing.assert_allclose(stacked, [2.0, 2.0])


def test_spline_integral_of_linear_data_is_exact() -> None:
    x = np.array([0.0, 0.3, 1.0, 2.5, 4.0])
    assert integrate_spline(x, 2.0 * x, 1.0, 3.0) == pytest.approx(8.0)
    value = integrate_spline(x, (1.0 - 1.0j) * x, 0.0, 4.0)
    assert value == pytest.approx(8.0 - 8.0j)


def test_spline_integral_along_axis_zero() -> None:
    x = linspace(7, 0.0, 1.0)
    y = np.stack([np.ones(7), x], axis=1)
    np.testing.assert_allclose(integrate_spline(x, y, 0.0, 1.0), [1.0, 0.5])


def test_spline_interpolation_passes_through_nodes() -> None:
    x = np.array([0.0, 0.2, 0.7, 1.0])
    y = np.array([1.0, 3.0 + 1.0j, 2.0, -1.0j])
    np.testing.assert_allclose(interpolate_spline(x, y, x), y)
    spline = make_spline(x, y.real)
    np.testing.assert_allclose(spline(x), y.real)


def test_energy_range_layout() -> None:
    grid = energy_range(120, coupling=0.2)
    assert grid.shape == (120,)
    assert np.all(np.diff(grid) > 0)
    assert grid[0] == pytest.approx(1e-6)
    assert grid[-1] == pytest.approx(np.cosh(5.0))
    # Most points resolve the gap edge
    assert np.count_nonzero(grid <= 1.5) == 100


def test_energy_range_validation() -> None:
    with pytest.raises(ConfigurationError):
        energy_range(3)
    with pytest.raises(ConfigurationError):
        energy_range(100, coupling=0.0)


@pytest.mark.parametrize("points", [4, 5, 6, 11, 12, 13])
def test_energy_range_small_grids(points: int) -> None:
    grid = energy_range(points, coupling=0.2)
    assert grid.shape == (points,)
    assert np.all(np.diff(grid) > 0)
    assert grid[0] == pytest.approx(1e-6)
    assert grid[-1] == pytest.approx(np.cosh(5.0))
    assert np.count_nonzero(grid > 1.5) >= 2


def test_trapezoid_converges_to_quadratic_integral() -> None:
    errors = []
    for n in (3, 5, 9, 17, 33, 65):
        x = linspace(n, 0.0, 1.0)
        errors.append(abs(integrate(x, x ** 2) - 1.0 / 3.0))
    assert all(later < earlier for earlier, later in zip(errors, errors[1:]))
    # Second order: halving the step quarters the error
    np.testing.assert_allclose(np.array(errors[:-1]) / np.array(errors[1:]), 4.0, rtol=1e-6)
    assert errors[-1] < 1e-4


def test_trapezoid_is_exact_for_piecewise_linear_data() -> None:
    x = np.array([0.0, 0.2, 0.9, 1.0])
    y = np.array([1.0, -1.0, 2.0, 0.0])
    exact = 0.5 * (1.0 - 1.0) * 0.2 + 0.5 * (-1.0 + 2.0) * 0.7 + 0.5 * 2.0 * 0.1
    assert integrate(x, y) == pytest.approx(exact)
