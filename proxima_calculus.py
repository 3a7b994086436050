# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: proxima_calculus.py — Grids, finite differences and quadrature.

All routines accept non-uniform meshes.  The two-point schemes (central
differences inside, forward/backward differences at the ends, trapezoid
rule) run as Numba kernels; the monotone cubic spline routines delegate
to ``scipy.interpolate.PchipInterpolator`` and treat complex data as two
independent real splines.
"""

from __future__ import annotations

from typing import Callable, Union

import numpy as np
from numba import njit
from scipy.interpolate import PchipInterpolator

from proxima_errors import ConfigurationError

ArrayLike = Union[np.ndarray, list, tuple]

# Lower edge of the default energy grid; E = 0 exactly is a branch point
# of the bulk BCS solution.
ENERGY_FLOOR: float = 1e-6
# Upper edge of the dense part of the default energy grid (units of Δ₀).
ENERGY_KNEE: float = 1.5


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  Numba kernels
# ═══════════════════════════════════════════════════════════════════════════════

@njit(cache=True)
def _linspace_kernel(n, first, last):
    out = np.empty(n, dtype=np.float64)
    for i in range(n):
        out[i] = first + ((last - first) * i) / (n - 1)
    return out


@njit(cache=True)
def _differentiate_kernel(x, y):
    # y is (n, k): each column is differentiated independently
    n = x.shape[0]
    r = np.empty_like(y)
    r[0] = (y[1] - y[0]) / (x[1] - x[0])
    for i in range(1, n - 1):
        r[i] = (y[i + 1] - y[i - 1]) / (x[i + 1] - x[i - 1])
    r[n - 1] = (y[n - 1] - y[n - 2]) / (x[n - 1] - x[n - 2])
    return r


@njit(cache=True)
def _trapezoid_kernel(x, y):
    acc = np.zeros_like(y[0])
    for i in range(x.shape[0] - 1):
        acc += 0.5 * (y[i + 1] + y[i]) * (x[i + 1] - x[i])
    return acc


def _as_columns(y: np.ndarray) -> np.ndarray:
    """Reshape ``y`` to (n, k) with contiguous storage for the kernels."""
    return np.ascontiguousarray(y.reshape(y.shape[0], -1))


def _check_mesh(x: np.ndarray, y: np.ndarray) -> None:
    if x.ndim != 1 or x.shape[0] < 2:
        raise ConfigurationError(
            f"Mesh needs at least two points, got shape {x.shape}."
        )
    if y.shape[0] != x.shape[0]:
        raise ConfigurationError(
            f"Data length {y.shape[0]} does not match mesh length {x.shape[0]}."
        )


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Grids
# ═══════════════════════════════════════════════════════════════════════════════

def linspace(n: int, first: float, last: float) -> np.ndarray:
    """
    Return ``n`` evenly spaced values from ``first`` to ``last`` inclusive.

    Raises:
        ConfigurationError: If ``n < 2``.
    """
    n = int(n)
    if n < 2:
        raise ConfigurationError(f"linspace requires n >= 2, got {n}.")
    return _linspace_kernel(n, float(first), float(last))


def energy_range(points: int = 600, coupling: float = 0.2) -> np.ndarray:
    """
    Default energy grid for equilibrium calculations.

    About five sixths of the points sample (0, 1.5] linearly, which resolves
    the coherence peak at the gap edge. The remainder, at least two, sample
    linearly up to the BCS cutoff ``cosh(1/coupling)``.

    Parameters
    ----------
    points : int
        Total number of energies (at least 4).
    coupling : float
        BCS coupling constant λ; sets the Debye cutoff.

    Returns
    -------
    np.ndarray
        Strictly increasing energies in units of the bulk gap Δ₀.
    """
    points = int(points)
    if points < 4:
        raise ConfigurationError(f"energy_range requires at least 4 points, got {points}.")
    if coupling <= 0:
        raise ConfigurationError(f"Coupling must be positive, got {coupling}.")

    cutoff = float(np.cosh(1.0 / coupling))
    if cutoff <= ENERGY_KNEE:
        return linspace(points, ENERGY_FLOOR, cutoff)

    tail = max(2, points // 6)
    dense = points - tail
    head = linspace(dense, ENERGY_FLOOR, ENERGY_KNEE)
    step = (cutoff - ENERGY_KNEE) / tail
    return np.concatenate([head, linspace(tail, ENERGY_KNEE + step, cutoff)])


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Differentiation and integration
# ═══════════════════════════════════════════════════════════════════════════════

def differentiate(x: ArrayLike, y: ArrayLike) -> np.ndarray:
    """
    Two-point numerical derivative dy/dx along axis 0.

    Central differences at interior points, forward/backward differences at
    the ends.  Works for real or complex ``y`` of any trailing shape.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y)
    _check_mesh(x, y)
    dtype = np.complex128 if np.iscomplexobj(y) else np.float64
    cols = _as_columns(y.astype(dtype, copy=False))
    return _differentiate_kernel(x, cols).reshape(y.shape)


def integrate(x: ArrayLike, y: ArrayLike) -> Union[float, complex, np.ndarray]:
    """Trapezoid rule ∫y dx along axis 0; scalar for 1-D ``y``."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y)
    _check_mesh(x, y)
    dtype = np.complex128 if np.iscomplexobj(y) else np.float64
    cols = _as_columns(y.astype(dtype, copy=False))
    result = _trapezoid_kernel(x, cols).reshape(y.shape[1:])
    if result.ndim == 0:
        return result.item()
    return result


def integrate_spline(
    x: ArrayLike, y: ArrayLike, a: float, b: float
) -> Union[float, complex, np.ndarray]:
    """
    Integrate a monotone cubic (PCHIP) interpolant of ``y(x)`` over [a, b].

    Complex data are handled by integrating the real and imaginary parts
    separately.  Multi-dimensional ``y`` is integrated along axis 0.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y)
    _check_mesh(x, y)
    if np.iscomplexobj(y):
        re = PchipInterpolator(x, y.real, axis=0).integrate(a, b)
        im = PchipInterpolator(x, y.imag, axis=0).integrate(a, b)
        result = np.asarray(re + 1j * im)
    else:
        result = np.asarray(PchipInterpolator(x, y, axis=0).integrate(a, b))
    if result.ndim == 0:
        return result.item()
    return result


def make_spline(x: ArrayLike, y: ArrayLike) -> Callable[[np.ndarray], np.ndarray]:
    """
    Build a reusable PCHIP interpolant of ``y(x)`` along axis 0.

    Complex data yield a callable that evaluates the real and imaginary
    splines separately and recombines them.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y)
    _check_mesh(x, y)
    if not np.iscomplexobj(y):
        return PchipInterpolator(x, y, axis=0)

    re = PchipInterpolator(x, y.real, axis=0)
    im = PchipInterpolator(x, y.imag, axis=0)

    def evaluate(p: np.ndarray) -> np.ndarray:
        return re(p) + 1j * im(p)

    return evaluate


def interpolate_spline(x: ArrayLike, y: ArrayLike, p: ArrayLike) -> np.ndarray:
    """Evaluate a PCHIP interpolant of ``y(x)`` at the points ``p``."""
    return make_spline(x, y)(np.asarray(p, dtype=np.float64))
