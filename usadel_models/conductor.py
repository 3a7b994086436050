# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: conductor.py — Diffusive normal conductor with optional spin-orbit coupling.

Usadel equation in the Riccati parametrization, with ε = (E + iδ)/E_Th:

    ∂²g  = −2 ∂g Ñ g̃ ∂g − 2iε g
    ∂²g̃  = −2 ∂g̃ N g ∂g̃ − 2iε g̃

Spin-orbit coupling enters as an SU(2) gauge field A = (A_x, A_y, A_z),
each component a 2×2 matrix scaled by 1/√E_Th.  Boundary conditions:

    vacuum        r = ∂g
    transparent   r = g − gₙ
    tunnel (a)    r = ∂g − C (I − g g̃ₙ) Nₙ (g − gₙ)
    tunnel (b)    r = ∂g − C (I − g g̃ₙ) Nₙ (gₙ − g)
    spin-active   see spinactive.py

The tilde equations follow by swapping g ↔ g̃.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from proxima_spin import SIGMA0, normalization, spin_vector

from .material import InterfaceParams, Material, RiccatiPoint
from .spinactive import SpinActiveInterface


class Conductor(Material):
    """Normal-metal layer; base type for ferromagnets and superconductors."""

    kind = "conductor"

    def __init__(self, energy, params=None, **kwargs) -> None:
        self._soc: Optional[Tuple[np.ndarray, ...]] = None
        self._spinactive_a: Optional[SpinActiveInterface] = None
        self._spinactive_b: Optional[SpinActiveInterface] = None
        super().__init__(energy, params, **kwargs)
        self.update_prehook()

    # -- hooks -------------------------------------------------------------
    def update_prehook(self) -> None:
        p = self.params
        if p.spin_orbit is None:
            self._soc = None
        else:
            A = spin_vector(p.spin_orbit) / np.sqrt(p.thouless)
            At = np.conj(A)
            A2 = A[0] @ A[0] + A[1] @ A[1] + A[2] @ A[2]
            self._soc = (A, At, A2, np.conj(A2))

        self._spinactive_a = (SpinActiveInterface.from_params(p.interface_a)
                              if p.interface_a.spin_active else None)
        self._spinactive_b = (SpinActiveInterface.from_params(p.interface_b)
                              if p.interface_b.spin_active else None)

    # -- bulk --------------------------------------------------------------
    def diffusion_equation(self, e, z, g, gt, dg, dgt):
        N, Nt = normalization(g, gt)
        d2g = -2.0 * dg @ Nt @ gt @ dg - 2j * e * g
        d2gt = -2.0 * dgt @ N @ g @ dgt - 2j * e * gt
        if self._soc is not None:
            d2g, d2gt = self._spinorbit_diffusion(g, gt, dg, dgt, N, Nt, d2g, d2gt)
        return d2g, d2gt

    def _spinorbit_diffusion(self, g, gt, dg, dgt, N, Nt, d2g, d2gt):
        A, At, A2, A2t = self._soc
        d2g = d2g + (A2 @ g - g @ A2t)
        d2gt = d2gt + (A2t @ gt - gt @ A2)
        for i in range(3):
            d2g = d2g + 2.0 * (A[i] @ g + g @ At[i]) @ Nt @ (At[i] + gt @ A[i] @ g)
            d2gt = d2gt + 2.0 * (At[i] @ gt + gt @ A[i]) @ N @ (A[i] + g @ At[i] @ gt)
        Az, Azt = A[2], At[2]
        d2g = d2g + 2j * (Az + g @ Azt @ gt) @ N @ dg + 2j * dg @ Nt @ (gt @ Az @ g + Azt)
        d2gt = d2gt - 2j * (Azt + gt @ Az @ g) @ Nt @ dgt - 2j * dgt @ N @ (g @ Azt @ gt + Az)
        return d2g, d2gt

    # -- boundaries --------------------------------------------------------
    def interface_equation_a(self, a, g, gt, dg, dgt):
        return self._interface("a", self.params.interface_a, self._spinactive_a,
                               a, g, gt, dg, dgt)

    def interface_equation_b(self, b, g, gt, dg, dgt):
        return self._interface("b", self.params.interface_b, self._spinactive_b,
                               b, g, gt, dg, dgt)

    def _interface(
        self,
        side: str,
        params: InterfaceParams,
        spinactive: Optional[SpinActiveInterface],
        other: Optional[RiccatiPoint],
        g: np.ndarray,
        gt: np.ndarray,
        dg: np.ndarray,
        dgt: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        if other is None or params.reflecting:
            r, rt = self.interface_vacuum(g, gt, dg, dgt)
        elif params.transparent:
            # Continuity fixes the values; no derivative terms apply
            return self.interface_transparent(other, g, gt)
        elif spinactive is not None:
            r, rt = spinactive.residual(side, other, g, gt, dg, dgt)
        else:
            r, rt = self.interface_tunnel(side, params.conductance, other, g, gt, dg, dgt)

        if self._soc is not None:
            r, rt = self._spinorbit_interface(g, gt, r, rt)
        return r, rt

    @staticmethod
    def interface_vacuum(g, gt, dg, dgt):
        return dg.copy(), dgt.copy()

    @staticmethod
    def interface_transparent(other: RiccatiPoint, g, gt):
        return g - other.g, gt - other.gt

    @staticmethod
    def interface_tunnel(side: str, conductance: float, other: RiccatiPoint, g, gt, dg, dgt):
        """Kuprianov–Lukichev residuals; ``side`` fixes the sign of the current."""
        N1, Nt1 = normalization(other.g, other.gt)
        if side == "a":
            dG, dGt = g - other.g, gt - other.gt
        else:
            dG, dGt = other.g - g, other.gt - gt
        r = dg - conductance * (SIGMA0 - g @ other.gt) @ N1 @ dG
        rt = dgt - conductance * (SIGMA0 - gt @ other.g) @ Nt1 @ dGt
        return r, rt

    def _spinorbit_interface(self, g, gt, r, rt):
        A, At = self._soc[0], self._soc[1]
        r = r - 1j * (A[2] @ g + g @ At[2])
        rt = rt + 1j * (At[2] @ gt + gt @ A[2])
        return r, rt
