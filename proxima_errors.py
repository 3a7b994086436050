# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: proxima_errors.py — Exception and warning taxonomy.

Propagation policy:
  - ConfigurationError    raised immediately while a stack is assembled.
  - SolverDivergence      raised inside a per-energy worker, caught by the
                          layer, recorded in ``Material.failures`` and logged.
  - NumericalSingularity  raised by the 2×2 algebra instead of producing
                          NaN/Inf; treated like a divergence at layer level.
  - ConvergenceTimeout    a *warning*, never raised as a fault.  The driver
                          additionally returns ``converged=False``.
"""

from __future__ import annotations

from typing import Optional


class ProximaError(Exception):
    """Base class for all errors raised by the transport core."""


class ConfigurationError(ProximaError, ValueError):
    """Missing or invalid parameter (zero points, empty stack, bad interface)."""


class NumericalSingularity(ProximaError, ArithmeticError):
    """A normalization matrix (I − g·g̃) is singular, or a term divides by zero."""


class SolverDivergence(ProximaError, RuntimeError):
    """
    The boundary-value-problem solve failed for one energy.

    Attributes:
        index: Position of the energy in the shared energy grid.
        energy: The energy value itself.
        reason: Solver message or the underlying exception text.
    """

    def __init__(
        self,
        index: int,
        energy: float,
        reason: str = "",
    ) -> None:
        self.index = index
        self.energy = energy
        self.reason = reason
        super().__init__(
            f"BVP solve diverged at energy index {index} (E={energy:.6g}): {reason}"
        )

    @classmethod
    def wrap(
        cls, index: int, energy: float, exc: Optional[BaseException]
    ) -> "SolverDivergence":
        return cls(index, energy, f"{type(exc).__name__}: {exc}" if exc else "")


class ConvergenceTimeout(UserWarning):
    """The self-consistency loop hit its iteration cap above threshold."""
