# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: superconductor.py — Conventional s-wave superconductor with a self-consistent gap.

Units: energies in Δ₀ (zero-temperature bulk gap), temperatures in T_c.

Pair-potential terms (Δ̂ = Δ/E_Th):

    ∂²g  += −Δ̂ σ_y + Δ̂* g σ_y g
    ∂²g̃  += +Δ̂* σ_y − Δ̂ g̃ σ_y g̃

Gap equation, evaluated after each update when self-consistency is on:

    Δ(z) = λ ∫₀^{E_max} dE ½[f_s − f̃_s*] tanh(πE / 2e^γ T)

with f = 2N g, f̃ = 2Ñ g̃ and the singlet projection f_s = (f₁₂ − f₂₁)/2.
The default coupling λ = 1/arccosh(E_max) reproduces Δ = Δ₀ in bulk at T → 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, TextIO

import numpy as np

from proxima_calculus import integrate_spline, make_spline
from proxima_errors import ConfigurationError
from proxima_spin import SIGMA_Y, normalization, singlet

from .conductor import Conductor
from .material import LayerParams

logger = logging.getLogger(f"proxima.{__name__}")

# Δ₀ / (2 k_B T_c) = π / (2 e^γ) in weak-coupling BCS theory
BCS_RATIO: float = np.pi / (2.0 * np.exp(np.euler_gamma))


@dataclass(frozen=True, eq=False)
class SuperconductorParams(LayerParams):
    coupling:        Optional[float] = None
    temperature:     float = 1e-4
    self_consistent: bool = True

    def __post_init__(self) -> None:
        LayerParams.__post_init__(self)
        if not self.temperature > 0:
            raise ConfigurationError(f"Temperature must be positive, got {self.temperature}.")
        if self.coupling is not None and not self.coupling > 0:
            raise ConfigurationError(f"Coupling must be positive, got {self.coupling}.")


class Superconductor(Conductor):
    """
    Superconducting layer.

    Attributes:
        gap_function : np.ndarray
            Complex pair potential Δ on the position grid.
        coupling : float
            BCS coupling constant λ.
    """

    kind = "superconductor"
    params_class = SuperconductorParams

    def __init__(self, energy, params=None, **kwargs) -> None:
        self.gap_function: np.ndarray = np.zeros(0, dtype=np.complex128)
        self._gap_before: Optional[np.ndarray] = None
        self._gap_spline = None
        super().__init__(energy, params, **kwargs)

        if self.params.coupling is not None:
            self.coupling = float(self.params.coupling)
        else:
            emax = float(np.max(self.energy))
            if emax <= 1.0:
                raise ConfigurationError(
                    f"Default coupling needs energies above the gap (max energy {emax:.3g})."
                )
            self.coupling = 1.0 / float(np.arccosh(emax))

        if np.count_nonzero(self.energy >= 0.0) < 2:
            raise ConfigurationError("The gap equation needs at least two non-negative energies.")

    # -- mutable thermodynamic state ---------------------------------------
    @property
    def temperature(self) -> float:
        return self.params.temperature

    @temperature.setter
    def temperature(self, value: float) -> None:
        self.set_param("temperature", float(value))

    @property
    def self_consistent(self) -> bool:
        return self.params.self_consistent

    @self_consistent.setter
    def self_consistent(self, value: bool) -> None:
        self.set_param("self_consistent", bool(value))

    # -- state -------------------------------------------------------------
    def init(self, gap: complex = 1.0, phase: float = 0.0) -> None:
        super().init(gap, phase)
        self.gap_function = np.full(self.location.shape, complex(gap) * np.exp(1j * phase))
        self._gap_before = None
        self._gap_spline = make_spline(self.location, self.gap_function)

    def snapshot(self) -> Dict[str, Any]:
        snap = super().snapshot()
        snap["gap_function"] = self.gap_function.copy()
        return snap

    def restore(self, snapshot: Dict[str, Any]) -> None:
        super().restore(snapshot)
        self.gap_function = snapshot["gap_function"].copy()
        self._gap_before = None
        self._gap_spline = make_spline(self.location, self.gap_function)

    def get_gap(self, z) -> np.ndarray:
        """Pair potential interpolated (PCHIP) at normalized position(s) ``z``."""
        return self._gap_spline(np.asarray(z, dtype=np.float64))

    def local_gap(self) -> np.ndarray:
        return self.gap_function

    # -- hooks -------------------------------------------------------------
    def update_prehook(self) -> None:
        super().update_prehook()
        self._gap_before = self.gap_function.copy()
        self._gap_spline = make_spline(self.location, self.gap_function)

    def update_posthook(self) -> None:
        super().update_posthook()
        if self.params.self_consistent:
            self.gap_function = self.gap_equation()
            self._gap_spline = make_spline(self.location, self.gap_function)
            logger.debug(
                "gap equation: mean |Δ| = %.6g at T = %.4g",
                np.mean(np.abs(self.gap_function)), self.params.temperature,
            )

    def gap_equation(self) -> np.ndarray:
        """Evaluate the BCS gap equation on the current state; returns Δ(z)."""
        index = np.flatnonzero(self.energy >= 0.0)
        index = index[np.argsort(self.energy[index])]
        energy = self.energy[index]
        g = self.state.g[index]
        gt = self.state.gt[index]

        N, Nt = normalization(g, gt)
        fs = singlet(2.0 * N @ g)
        fts = singlet(2.0 * Nt @ gt)
        weight = np.tanh(BCS_RATIO * energy / self.params.temperature)
        integrand = 0.5 * (fs - np.conj(fts)) * weight[:, None]

        return self.coupling * np.asarray(
            integrate_spline(energy, integrand, 0.0, float(energy[-1]))
        )

    # -- bulk --------------------------------------------------------------
    def diffusion_equation(self, e, z, g, gt, dg, dgt):
        d2g, d2gt = super().diffusion_equation(e, z, g, gt, dg, dgt)
        gap = (self.get_gap(np.atleast_1d(z)) / self.thouless)[:, None, None]
        gapt = np.conj(gap)
        d2g = d2g - gap * SIGMA_Y + gapt * (g @ SIGMA_Y @ g)
        d2gt = d2gt + gapt * SIGMA_Y - gap * (gt @ SIGMA_Y @ gt)
        return d2g, d2gt

    # -- convergence -------------------------------------------------------
    def difference(self) -> float:
        """Largest of the state change and the relative change of Δ."""
        base = super().difference()
        if self.frozen or self._gap_before is None:
            return base
        scale = float(np.max(np.abs(self.gap_function)))
        change = float(np.max(np.abs(self.gap_function - self._gap_before)))
        relative = change / scale if scale > 0.0 else change
        return max(base, relative)

    # -- output ------------------------------------------------------------
    def write_gap(self, sink: TextIO, left: float = 0.0, right: float = 1.0) -> None:
        """Write ``position Re Δ Im Δ`` records."""
        for z, delta in zip(left + (right - left) * self.location, self.gap_function):
            sink.write(f"{z:.16e} {delta.real:.16e} {delta.imag:.16e}\n")

    def get_state(self) -> Dict[str, Any]:
        state = super().get_state()
        state["coupling"] = self.coupling
        return state

    def __repr__(self) -> str:
        return (
            f"Superconductor(L={self.params.length:.3g}, |Δ|={np.mean(np.abs(self.gap_function)):.3g}, "
            f"T={self.params.temperature:.3g}, points={self.params.points})"
        )
