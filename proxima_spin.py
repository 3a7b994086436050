# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: proxima_spin.py — Spin (2×2) and Nambu⊗spin (4×4) matrix algebra.

Conventions:
─────────────────────────────────────────────────────
  Riccati parametrization (retarded, equilibrium):
        N  = (I − g·g̃)⁻¹           Ñ = (I − g̃·g)⁻¹

        G  = ⎡  N(I + g·g̃)      2N·g      ⎤
             ⎣  −2Ñ·g̃       −Ñ(I + g̃·g)  ⎦

  Density of states:
        D  = Re Tr[N(I + g·g̃)] / 2        (normal state: D = 1)

  Anomalous Green function and its singlet component:
        f  = 2N·g                 f_s = (f₁₂ − f₂₁)/2

  Bulk BCS solution with Δ = |Δ|e^{iφ} and complex energy ε:
        γ  = (ε − s)/|Δ|,  s = ±√(ε² − |Δ|²)  with |γ| < 1
        g  = γ e^{+iφ} (iσ_y)     g̃ = γ e^{−iφ} (−iσ_y)

All batched routines act on arrays of shape (..., 2, 2) or (..., 4, 4).
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from numba import njit

from proxima_errors import NumericalSingularity

# ═══════════════════════════════════════════════════════════════════════════════
# Constants
# ═══════════════════════════════════════════════════════════════════════════════

SIGMA0 = np.eye(2, dtype=np.complex128)
SIGMA_X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
SIGMA_Y = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
SIGMA_Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)
PAULI = np.stack([SIGMA_X, SIGMA_Y, SIGMA_Z])

# |det(I − g·g̃)| below this is treated as singular.
SINGULAR_TOLERANCE: float = 1e-12


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  Numba kernels
# ═══════════════════════════════════════════════════════════════════════════════

@njit(cache=True)
def _inverse_kernel(a):
    """Closed-form inverse of a stack of 2×2 matrices; also returns |det|."""
    m = a.shape[0]
    out = np.empty_like(a)
    det_abs = np.empty(m, dtype=np.float64)
    for k in range(m):
        det = a[k, 0, 0] * a[k, 1, 1] - a[k, 0, 1] * a[k, 1, 0]
        det_abs[k] = np.abs(det)
        if det_abs[k] > 0.0:
            inv = 1.0 / det
        else:
            inv = complex(np.nan, np.nan)
        out[k, 0, 0] = a[k, 1, 1] * inv
        out[k, 0, 1] = -a[k, 0, 1] * inv
        out[k, 1, 0] = -a[k, 1, 0] * inv
        out[k, 1, 1] = a[k, 0, 0] * inv
    return out, det_abs


@njit(cache=True)
def _spectral_radius_kernel(a):
    """Largest eigenvalue modulus over a stack of 2×2 matrices."""
    radius = 0.0
    for k in range(a.shape[0]):
        tr = a[k, 0, 0] + a[k, 1, 1]
        det = a[k, 0, 0] * a[k, 1, 1] - a[k, 0, 1] * a[k, 1, 0]
        root = np.sqrt(tr * tr / 4.0 - det)
        lam = max(np.abs(tr / 2.0 + root), np.abs(tr / 2.0 - root))
        if lam > radius:
            radius = lam
    return radius


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Spin algebra
# ═══════════════════════════════════════════════════════════════════════════════

def spin_vector(v: np.ndarray) -> np.ndarray:
    """Contract a real or complex 3-vector (or stack) with the Pauli vector: v·σ."""
    v = np.asarray(v)
    return np.tensordot(v, PAULI, axes=([-1], [0]))


def spin_inverse(a: np.ndarray, tolerance: float = SINGULAR_TOLERANCE) -> np.ndarray:
    """
    Invert a stack of 2×2 complex matrices.

    Raises:
        NumericalSingularity: If any matrix is (nearly) singular or non-finite.
    """
    a = np.asarray(a, dtype=np.complex128)
    flat = np.ascontiguousarray(a.reshape(-1, 2, 2))
    if not np.all(np.isfinite(flat)):
        raise NumericalSingularity("Cannot invert non-finite 2x2 matrix.")
    out, det_abs = _inverse_kernel(flat)
    if det_abs.size and det_abs.min() < tolerance:
        raise NumericalSingularity(
            f"Singular 2x2 matrix (|det| = {det_abs.min():.3e})."
        )
    return out.reshape(a.shape)


def spectral_radius(a: np.ndarray) -> float:
    """Largest |eigenvalue| over a stack of 2×2 matrices."""
    flat = np.ascontiguousarray(np.asarray(a, dtype=np.complex128).reshape(-1, 2, 2))
    return float(_spectral_radius_kernel(flat))


def normalization(g: np.ndarray, gt: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return the normalization matrices N = (I − g·g̃)⁻¹ and Ñ = (I − g̃·g)⁻¹."""
    N = spin_inverse(SIGMA0 - g @ gt)
    Nt = spin_inverse(SIGMA0 - gt @ g)
    return N, Nt


def singlet(f: np.ndarray) -> np.ndarray:
    """Singlet component (f₁₂ − f₂₁)/2 of an anomalous 2×2 function."""
    return 0.5 * (f[..., 0, 1] - f[..., 1, 0])


def density_of_states(g: np.ndarray, gt: np.ndarray) -> np.ndarray:
    """Spin-averaged local density of states Re Tr[N(I + g·g̃)]/2."""
    N, _ = normalization(g, gt)
    G11 = N @ (SIGMA0 + g @ gt)
    return 0.5 * np.real(G11[..., 0, 0] + G11[..., 1, 1])


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Nambu⊗spin algebra
# ═══════════════════════════════════════════════════════════════════════════════

def nambu_propagator(g: np.ndarray, gt: np.ndarray) -> np.ndarray:
    """Assemble the 4×4 retarded propagator G from Riccati parameters."""
    g = np.asarray(g, dtype=np.complex128)
    gt = np.asarray(gt, dtype=np.complex128)
    N, Nt = normalization(g, gt)
    G = np.empty(g.shape[:-2] + (4, 4), dtype=np.complex128)
    G[..., :2, :2] = N @ (SIGMA0 + g @ gt)
    G[..., :2, 2:] = 2.0 * N @ g
    G[..., 2:, :2] = -2.0 * Nt @ gt
    G[..., 2:, 2:] = -Nt @ (SIGMA0 + gt @ g)
    return G


def nambu_vector(m: np.ndarray) -> np.ndarray:
    """
    Nambu-space representation of a magnetization direction,
    diag(m·σ, (m·σ)*).
    """
    s = spin_vector(np.asarray(m, dtype=np.float64))
    M = np.zeros((4, 4), dtype=np.complex128)
    M[:2, :2] = s
    M[2:, 2:] = np.conj(s)
    return M


# ═══════════════════════════════════════════════════════════════════════════════
# 4.  Bulk BCS state
# ═══════════════════════════════════════════════════════════════════════════════

def bcs_riccati(
    energy: complex,
    gap: complex,
    out: Optional[Tuple[np.ndarray, np.ndarray]] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Riccati parameters (g, g̃) of a bulk BCS superconductor.

    Parameters
    ----------
    energy : complex
        Quasiparticle energy including the inelastic scattering term.
    gap : complex
        Pair potential Δ; zero yields the normal state g = g̃ = 0.
    out : tuple of ndarray, optional
        Pre-allocated 2×2 targets.

    Raises
    ------
    NumericalSingularity
        If the result is not finite (e.g. ε exactly at the gap edge).
    """
    if out is None:
        g = np.zeros((2, 2), dtype=np.complex128)
        gt = np.zeros((2, 2), dtype=np.complex128)
    else:
        g, gt = out
        g[...] = 0.0
        gt[...] = 0.0

    amplitude = abs(gap)
    if amplitude == 0.0:
        return g, gt

    phase = np.exp(1j * np.angle(gap))
    eps = complex(energy)
    s = np.sqrt(eps * eps - amplitude * amplitude)
    gamma = (eps - s) / amplitude
    if abs(gamma) >= 1.0:
        gamma = (eps + s) / amplitude
    if not np.isfinite(gamma):
        raise NumericalSingularity(
            f"BCS solution is singular at E={energy}, Δ={gap}."
        )

    # iσ_y = [[0, 1], [-1, 0]]
    g[0, 1] = gamma * phase
    g[1, 0] = -gamma * phase
    gt[0, 1] = -gamma / phase
    gt[1, 0] = gamma / phase
    return g, gt
