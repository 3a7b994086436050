# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: spinactive.py — Spin-active (magnetic) interface boundary conditions.

Matrix current through a spin-polarized, spin-mixing tunnel barrier
(Eschrig et al., NJP 17, 083037 (2015)) evaluated on 4×4 Nambu⊗spin
propagators G₀ (this side) and G₁ (other side):

    F(G)  = G + (P/P₊)(M̂G + GM̂) + (P₋/P₊) M̂GM̂
    P_r   = √(1 − P²),   P₊ = 1 + P_r,   P₋ = 1 − P_r

    I     = [G₀, F(G₁) − iQ M̂₀]
          + (R/2Q) [G₀, S₀G₀S₀]
          + (iR/4) [G₀, S₀G₀M̂₀ + M̂₀G₀S₀ + F(G₁M̂₁G₁ − M̂₁)]
          + (RQ/4) [G₀, M̂₀G₀M̂₀]                      (second order: R ≠ 0)
    I    *= C/2

where S₀ = F(G₁).  The residuals for the Riccati parameters follow from
∂G = G·I projected on the upper-right and lower-left Nambu blocks:

    r  = ∂g  ∓ ½ (I − g·g̃)(I₁₂ − I₁₁·g)
    r̃  = ∂g̃  ∓ ½ (I − g̃·g)(I₂₁ − I₂₂·g̃)

with the upper sign on the right edge (side b).
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from proxima_errors import ConfigurationError, NumericalSingularity
from proxima_spin import SIGMA0, nambu_propagator, nambu_vector

from .material import InterfaceParams, RiccatiPoint


def _commutator(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a @ b - b @ a


class SpinActiveInterface:
    """
    Matrix-current model of a magnetic tunnel barrier.

    Parameters
    ----------
    conductance : float
        Tunnel conductance C (ratio of barrier to bulk conductance).
    polarization : float
        Spin polarization P ∈ [0, 1).
    spin_mixing : float
        First-order spin-mixing angle Q.
    second_order : float
        Second-order spin-mixing R; requires Q ≠ 0.
    magnetization : array_like
        Barrier magnetization direction (normalized internally).
    misalignment, misalignment_other : array_like, optional
        Reflection magnetization on this side (M̂₀) and on the other side
        (M̂₁).  Both default to ``magnetization``.
    """
    __slots__ = (
        "conductance", "polarization", "spin_mixing", "second_order",
        "M", "M0", "M1", "_cp", "_cm",
    )

    def __init__(
        self,
        conductance: float,
        polarization: float = 0.0,
        spin_mixing: float = 0.0,
        second_order: float = 0.0,
        magnetization: Optional[np.ndarray] = None,
        misalignment: Optional[np.ndarray] = None,
        misalignment_other: Optional[np.ndarray] = None,
    ) -> None:
        if conductance < 0:
            raise ConfigurationError(f"Conductance must be non-negative, got {conductance}.")
        if not 0.0 <= polarization < 1.0:
            raise ConfigurationError(f"Polarization must lie in [0, 1), got {polarization}.")
        if second_order != 0.0 and spin_mixing == 0.0:
            raise ConfigurationError(
                "Second-order spin mixing requires non-zero first-order spin mixing."
            )
        self.conductance = float(conductance)
        self.polarization = float(polarization)
        self.spin_mixing = float(spin_mixing)
        self.second_order = float(second_order)

        m = np.asarray(magnetization if magnetization is not None else (0.0, 0.0, 1.0), dtype=np.float64)
        norm = np.linalg.norm(m)
        if norm == 0.0:
            raise ConfigurationError("Interface magnetization must be non-zero.")
        self.M = nambu_vector(m / norm)
        self.M0 = self._reflection(misalignment)
        self.M1 = self._reflection(misalignment_other)

        pr = np.sqrt(1.0 - self.polarization ** 2)
        self._cp = self.polarization / (1.0 + pr)
        self._cm = (1.0 - pr) / (1.0 + pr)

    def _reflection(self, vector: Optional[np.ndarray]) -> np.ndarray:
        """Nambu matrix of a reflection magnetization; None or zero means ``M``."""
        if vector is None:
            return self.M
        v = np.asarray(vector, dtype=np.float64)
        norm = np.linalg.norm(v)
        if norm == 0.0:
            return self.M
        if not np.isfinite(norm):
            raise ConfigurationError("Interface misalignment must be finite.")
        return nambu_vector(v / norm)

    @classmethod
    def from_params(cls, params: InterfaceParams) -> "SpinActiveInterface":
        return cls(
            conductance=params.conductance,
            polarization=params.polarization,
            spin_mixing=params.spin_mixing,
            second_order=params.second_order,
            magnetization=params.magnetization,
            misalignment=params.misalignment,
            misalignment_other=params.misalignment_other,
        )

    def transform(self, G: np.ndarray) -> np.ndarray:
        """Spin-filter a propagator: F(G)."""
        M = self.M
        return G + self._cp * (M @ G + G @ M) + self._cm * (M @ G @ M)

    def current(self, G0: np.ndarray, G1: np.ndarray) -> np.ndarray:
        """Matrix current into the side described by ``G0``."""
        S0 = self.transform(G1)
        S1 = -1j * self.spin_mixing * self.M0
        current = _commutator(G0, S0 + S1)

        if self.second_order != 0.0:
            if self.spin_mixing == 0.0:
                raise NumericalSingularity(
                    "Second-order spin mixing divides by zero first-order spin mixing."
                )
            R, Q, M0 = self.second_order, self.spin_mixing, self.M0
            S1 = self.transform(G1 @ self.M1 @ G1 - self.M1)
            current = current + (R / (2.0 * Q)) * _commutator(G0, S0 @ G0 @ S0)
            current = current + (1j * R / 4.0) * _commutator(G0, S0 @ G0 @ M0 + M0 @ G0 @ S0 + S1)
            current = current + (R * Q / 4.0) * _commutator(G0, M0 @ G0 @ M0)

        return (self.conductance / 2.0) * current

    def residual(
        self,
        side: str,
        other: RiccatiPoint,
        g: np.ndarray,
        gt: np.ndarray,
        dg: np.ndarray,
        dgt: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Boundary residuals (r, r̃) on ``side`` ('a' or 'b') of a layer."""
        G0 = nambu_propagator(g, gt)
        G1 = nambu_propagator(other.g, other.gt)
        I = self.current(G0, G1)
        sign = 1.0 if side == "a" else -1.0
        r = dg + sign * 0.5 * (SIGMA0 - g @ gt) @ (I[:2, 2:] - I[:2, :2] @ g)
        rt = dgt + sign * 0.5 * (SIGMA0 - gt @ g) @ (I[2:, :2] - I[2:, 2:] @ gt)
        return r, rt

    def __repr__(self) -> str:
        return (
            f"SpinActiveInterface(C={self.conductance:.3g}, P={self.polarization:.3g}, "
            f"Q={self.spin_mixing:.3g}, R={self.second_order:.3g})"
        )
