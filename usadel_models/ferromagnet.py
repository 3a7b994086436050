# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: ferromagnet.py — Diffusive ferromagnet with a position-dependent exchange field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from proxima_errors import ConfigurationError
from proxima_spin import spin_vector

from .conductor import Conductor
from .material import LayerParams


@dataclass(frozen=True, eq=False)
class FerromagnetParams(LayerParams):
    """Adds ``exchange``: a 3-vector (homogeneous) or a (points, 3) profile."""
    exchange: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        LayerParams.__post_init__(self)
        if self.exchange is None:
            return
        h = np.asarray(self.exchange, dtype=np.float64)
        if h.shape == (3,):
            h = np.tile(h, (self.points, 1))
        if h.shape != (self.points, 3):
            raise ConfigurationError(
                f"exchange must have shape (3,) or ({self.points}, 3), got {h.shape}."
            )
        if not np.all(np.isfinite(h)):
            raise ConfigurationError("exchange contains non-finite values.")
        # A vanishing field is equivalent to a normal conductor
        object.__setattr__(self, "exchange", h if np.linalg.norm(h) > 1e-10 else None)


class Ferromagnet(Conductor):
    """
    Conductor with the exchange terms

        ∂²g  += h g + g h̃,      ∂²g̃ += h̃ g̃ + g̃ h,

    where h = (−i/E_Th) h·σ and h̃ = conj(h).  Between mesh points the
    field is interpolated linearly.
    """

    kind = "ferromagnet"
    params_class = FerromagnetParams

    def update_prehook(self) -> None:
        super().update_prehook()
        exchange = self.params.exchange
        if exchange is None:
            self._h = self._ht = None
        else:
            self._h = (-1j / self.thouless) * spin_vector(exchange)
            self._ht = np.conj(self._h)

    def get_exchange(self, z) -> np.ndarray:
        """Exchange field at normalized position(s) ``z``, shape (..., 3)."""
        z = np.asarray(z, dtype=np.float64)
        exchange = self.params.exchange
        if exchange is None:
            return np.zeros(z.shape + (3,))
        return np.stack([np.interp(z, self.location, exchange[:, k]) for k in range(3)], axis=-1)

    def _interpolate(self, z: np.ndarray, table: np.ndarray) -> np.ndarray:
        out = np.empty((z.shape[0], 2, 2), dtype=np.complex128)
        for i in range(2):
            for j in range(2):
                out[:, i, j] = (np.interp(z, self.location, table[:, i, j].real)
                                + 1j * np.interp(z, self.location, table[:, i, j].imag))
        return out

    def diffusion_equation(self, e, z, g, gt, dg, dgt):
        d2g, d2gt = super().diffusion_equation(e, z, g, gt, dg, dgt)
        if self._h is not None:
            z = np.atleast_1d(z)
            h = self._interpolate(z, self._h)
            ht = self._interpolate(z, self._ht)
            d2g = d2g + h @ g + g @ ht
            d2gt = d2gt + ht @ gt + gt @ h
        return d2g, d2gt

    def __repr__(self) -> str:
        peak = 0.0 if self.params.exchange is None else float(np.abs(self.params.exchange).max())
        return f"Ferromagnet(L={self.params.length:.3g}, |h|max={peak:.3g}, points={self.params.points})"
