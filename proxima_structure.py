# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: proxima_structure.py — Layer stack assembly and the self-consistency driver.

Design notes:
  1.  ``Structure.layers`` owns every layer; neighbour links inside the
      layers are weak references into this list.
  2.  One ``update()`` sweeps down through all layers and back up,
      skipping the bottom layer on the way up.  Adjacent layers are never
      updated at the same time, so interface residuals always read a
      settled neighbour.
  3.  ``converge()`` returns a ConvergenceResult NamedTuple.  Hitting the
      iteration cap emits a ConvergenceTimeout warning instead of raising.
      A layer with stale energies reports an infinite difference, so
      invalid state never counts as converged.
  4.  Optional frozen bulk layers (``attach_bulk``) act as reservoirs at
      either end of the stack and are never updated.
"""

from __future__ import annotations

import contextlib
import logging
import time
import warnings
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    NamedTuple,
    Optional,
    TextIO,
    Union,
)

import numpy as np

from proxima_calculus import energy_range
from proxima_errors import ConfigurationError, ConvergenceTimeout
from usadel_models import (
    Conductor,
    Ferromagnet,
    Material,
    Superconductor,
)

logger = logging.getLogger(f"proxima.{__name__}")

Hook = Optional[Callable[["Structure"], None]]

LAYER_KINDS: Dict[str, type] = {
    Conductor.kind: Conductor,
    Ferromagnet.kind: Ferromagnet,
    Superconductor.kind: Superconductor,
}


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  ConvergenceResult — typed return container
# ═══════════════════════════════════════════════════════════════════════════════
class ConvergenceResult(NamedTuple):
    """
    Outcome of ``Structure.converge``.

    Attributes
    ----------
    converged : bool
        True if the difference fell below the threshold.
    iterations : int
        Number of full sweeps performed.
    difference : float
        Global state difference after the last sweep.
    """
    converged: bool
    iterations: int
    difference: float


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Structure
# ═══════════════════════════════════════════════════════════════════════════════
class Structure:
    """
    Ordered stack of layers sharing one energy grid.

    Wiring invariant: ``layers[i].material_b is layers[i+1]`` and
    ``layers[i+1].material_a is layers[i]``.  The outer ends point to the
    attached bulk layers, or to None (vacuum).
    """

    def __init__(self, layers: Optional[List[Material]] = None) -> None:
        self.layers: List[Material] = []
        self.bulk_a: Optional[Material] = None
        self.bulk_b: Optional[Material] = None
        self._backup: Optional[List[Dict[str, Any]]] = None
        for layer in layers or []:
            self.push_back(layer)

    # -- assembly ----------------------------------------------------------
    @property
    def energy(self) -> np.ndarray:
        if not self.layers:
            raise ConfigurationError("Structure contains no layers.")
        return self.layers[0].energy

    def _adopt_grid(self, layer: Material) -> None:
        members = self.layers + [m for m in (self.bulk_a, self.bulk_b) if m is not None]
        if not members:
            return
        grid = members[0].energy
        if layer.energy is grid:
            return
        if not np.array_equal(layer.energy, grid):
            raise ConfigurationError(
                f"{layer!r} uses a different energy grid than the structure."
            )
        # Share the grid by reference
        layer.energy = grid

    def _rewire(self) -> None:
        for upper, lower in zip(self.layers, self.layers[1:]):
            upper.material_b = lower
            lower.material_a = upper
        if self.layers:
            self.layers[0].material_a = self.bulk_a
            self.layers[-1].material_b = self.bulk_b
            if self.bulk_a is not None:
                self.bulk_a.material_b = self.layers[0]
            if self.bulk_b is not None:
                self.bulk_b.material_a = self.layers[-1]

    def push_back(self, layer: Material) -> "Structure":
        """Append a layer at the bottom of the stack and rewire neighbours."""
        if not isinstance(layer, Material):
            raise ConfigurationError(f"Expected a Material, got {type(layer).__name__}.")
        if any(layer is other for other in self.layers):
            raise ConfigurationError("A layer can only appear once in a structure.")
        self._adopt_grid(layer)
        self.layers.append(layer)
        self._rewire()
        logger.debug("push_back: %r (now %d layers)", layer, len(self.layers))
        return self

    def attach_bulk(self, layer: Material, side: str) -> "Structure":
        """
        Attach a frozen bulk reservoir to side ``'a'`` (top) or ``'b'`` (bottom).

        The reservoir keeps its initial state and is never updated.
        """
        if side not in ("a", "b"):
            raise ConfigurationError(f"Bulk side must be 'a' or 'b', got {side!r}.")
        self._adopt_grid(layer)
        layer.frozen = True
        if side == "a":
            self.bulk_a = layer
        else:
            self.bulk_b = layer
        self._rewire()
        return self

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self) -> Iterator[Material]:
        return iter(self.layers)

    def superconductors(self) -> List[Superconductor]:
        return [m for m in self.layers if isinstance(m, Superconductor)]

    # -- validation --------------------------------------------------------
    def validate(self) -> List[str]:
        """Check the wiring invariants; returns a list of problems."""
        errors: List[str] = []
        if not self.layers:
            errors.append("Structure contains no layers.")
            return errors
        grid = self.energy
        for i, layer in enumerate(self.layers):
            if layer.energy is not grid:
                errors.append(f"Layer {i} ({layer.kind}): energy grid is not shared.")
            expected_a = self.layers[i - 1] if i > 0 else self.bulk_a
            expected_b = self.layers[i + 1] if i + 1 < len(self.layers) else self.bulk_b
            if layer.material_a is not expected_a:
                errors.append(f"Layer {i} ({layer.kind}): left neighbour is miswired.")
            if layer.material_b is not expected_b:
                errors.append(f"Layer {i} ({layer.kind}): right neighbour is miswired.")
            if layer.frozen:
                errors.append(f"Layer {i} ({layer.kind}): frozen layer inside the stack.")
        return errors

    # -- driver ------------------------------------------------------------
    def update(self) -> None:
        """One sweep: every layer top to bottom, then back up (bottom not repeated)."""
        if not self.layers:
            raise ConfigurationError("Structure contains no layers.")
        for layer in self.layers:
            layer.update()
        for layer in reversed(self.layers[:-1]):
            layer.update()

    def difference(self) -> float:
        """Largest state difference over all updating layers."""
        values = [layer.difference() for layer in self.layers if not layer.frozen]
        return max(values) if values else 0.0

    def stale(self) -> int:
        """Number of (layer, energy) pairs whose last solve failed."""
        return int(sum(np.count_nonzero(layer.state.stale) for layer in self.layers))

    @contextlib.contextmanager
    def _suspend_selfconsistency(self) -> Iterator[None]:
        saved = [(s, s.self_consistent) for s in self.superconductors()]
        for s, _ in saved:
            s.self_consistent = False
        try:
            yield
        finally:
            for s, flag in saved:
                s.self_consistent = flag

    def converge(
        self,
        threshold: float = 1e-4,
        iterations: int = 256,
        bootstrap: bool = False,
        prehook: Hook = None,
        posthook: Hook = None,
    ) -> ConvergenceResult:
        """
        Update the stack until ``difference() < threshold`` or the cap is hit.

        Parameters
        ----------
        threshold : float
            Convergence criterion on the global state difference.
        iterations : int
            Maximum number of sweeps; never exceeded.
        bootstrap : bool
            Suspend superconductor self-consistency for this call.
        prehook, posthook : callable, optional
            Called with the structure before / after every sweep.

        Returns
        -------
        ConvergenceResult
        """
        if not self.layers:
            raise ConfigurationError("Structure contains no layers.")
        if int(iterations) < 1:
            raise ConfigurationError(f"iterations must be at least 1, got {iterations}.")

        scope = self._suspend_selfconsistency() if bootstrap else contextlib.nullcontext()
        difference = float("inf")
        with scope:
            for n in range(1, int(iterations) + 1):
                start = time.perf_counter()
                if prehook is not None:
                    prehook(self)
                self.update()
                difference = self.difference()
                if posthook is not None:
                    posthook(self)
                logger.info(
                    "iteration %d: difference %.3e (%.2fs%s)",
                    n, difference, time.perf_counter() - start,
                    ", bootstrap" if bootstrap else "",
                )
                if difference < threshold:
                    return ConvergenceResult(True, n, difference)

        message = (
            f"Self-consistency did not reach threshold {threshold:.1e} within "
            f"{iterations} iterations (difference {difference:.3e}, "
            f"stale energies {self.stale()})."
        )
        logger.warning(message)
        warnings.warn(message, ConvergenceTimeout, stacklevel=2)
        return ConvergenceResult(False, int(iterations), difference)

    # -- state snapshots ---------------------------------------------------
    def save(self) -> List[Dict[str, Any]]:
        """Snapshot every layer's state; also kept for a bare ``load()``."""
        self._backup = [layer.snapshot() for layer in self.layers]
        return self._backup

    def load(self, snapshot: Optional[List[Dict[str, Any]]] = None) -> None:
        """Restore a snapshot (default: the most recent ``save()``)."""
        snapshot = snapshot if snapshot is not None else self._backup
        if snapshot is None:
            raise ConfigurationError("No saved state to load.")
        if len(snapshot) != len(self.layers):
            raise ConfigurationError(
                f"Snapshot has {len(snapshot)} layers, structure has {len(self.layers)}."
            )
        for layer, snap in zip(self.layers, snapshot):
            layer.restore(snap)

    def initialize(self, gap: complex = 1.0, phase: float = 0.0) -> None:
        """Reset all updating layers to a bulk BCS state with pair potential ``gap``."""
        for layer in self.layers:
            layer.init(gap, phase)

    def set_temperature(self, temperature: float) -> None:
        for s in self.superconductors():
            s.temperature = temperature

    def gap(self) -> float:
        """Largest mean |Δ| over the superconducting layers (0 if there are none)."""
        values = [float(np.mean(np.abs(s.gap_function))) for s in self.superconductors()]
        return max(values) if values else 0.0

    # -- output ------------------------------------------------------------
    def _extents(self) -> Iterator[tuple]:
        left = 0.0
        for layer in self.layers:
            right = left + layer.length
            yield layer, left, right
            left = right

    def write_density(self, sink: TextIO) -> None:
        """Write the density of states of all layers, placed end to end."""
        for layer, left, right in self._extents():
            layer.write_dos(sink, left, right)

    def write_gap(self, sink: TextIO) -> None:
        """Write the pair potential of all superconducting layers."""
        for layer, left, right in self._extents():
            if isinstance(layer, Superconductor):
                layer.write_gap(sink, left, right)

    # -- serialisation -----------------------------------------------------
    def get_state(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {
            "energies": self.energy.tolist(),
            "layers": [layer.get_state() for layer in self.layers],
        }
        if self.bulk_a is not None:
            state["bulk_a"] = self.bulk_a.get_state()
        if self.bulk_b is not None:
            state["bulk_b"] = self.bulk_b.get_state()
        return state

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "Structure":
        """
        Build a structure from plain values.

        ``energies`` is either an explicit list or a point count for
        ``energy_range`` (with optional ``coupling``).  Every entry of
        ``layers`` is a dict with a ``kind`` key plus layer parameters.
        """
        layers = state.get("layers") or []
        if not layers:
            raise ConfigurationError("Structure configuration lists no layers.")

        energies: Union[int, List[float]] = state.get("energies", 600)
        if isinstance(energies, (int, np.integer)):
            grid = energy_range(int(energies), state.get("coupling", 0.2))
        else:
            grid = np.asarray(energies, dtype=np.float64)
        grid.flags.writeable = False

        structure = cls()
        for entry in layers:
            structure.push_back(_build_layer(grid, entry))
        for side in ("a", "b"):
            entry = state.get(f"bulk_{side}")
            if entry is not None:
                structure.attach_bulk(_build_layer(grid, entry), side)
        return structure

    def __repr__(self) -> str:
        kinds = ", ".join(layer.kind for layer in self.layers)
        return f"Structure([{kinds}], energies={self.energy.shape[0] if self.layers else 0})"


def _build_layer(grid: np.ndarray, entry: Dict[str, Any]) -> Material:
    params = dict(entry)
    kind = params.pop("kind", None)
    if kind not in LAYER_KINDS:
        raise ConfigurationError(
            f"Unknown layer kind {kind!r}; expected one of {sorted(LAYER_KINDS)}."
        )
    return LAYER_KINDS[kind](grid, params)


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Critical temperature
# ═══════════════════════════════════════════════════════════════════════════════
def critical_temperature(
    structure: Structure,
    bisections: int = 12,
    iterations: int = 12,
    bootstraps: int = 12,
    threshold: float = 1e-8,
    initial_gap: float = 1e-5,
    lower: float = 0.0,
    upper: float = 1.0,
) -> float:
    """
    Locate the critical temperature by bisection.

    The stack is initialized to a barely superconducting state and
    bootstrapped at its current temperature without self-consistency.  Each
    bisection step restores that state, runs a fixed number of
    self-consistent sweeps at the trial temperature and keeps the upper half
    if the gap grew above ``initial_gap``.

    Returns
    -------
    float
        Critical temperature in units of the bulk T_c.
    """
    if not structure.superconductors():
        raise ConfigurationError("A critical temperature needs at least one superconductor.")
    if not 0.0 <= lower < upper:
        raise ConfigurationError(f"Invalid temperature bracket [{lower}, {upper}].")

    structure.initialize(initial_gap)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceTimeout)
        structure.converge(threshold=threshold, iterations=bootstraps, bootstrap=True)
        structure.save()

        critical = 0.5 * (lower + upper)
        for n in range(1, bisections + 1):
            structure.set_temperature(critical)
            structure.load()
            structure.converge(threshold=threshold, iterations=iterations)
            if structure.gap() >= initial_gap:
                lower = critical
            else:
                upper = critical
            logger.info("bisection %d: T = %.6f, gap = %.3e", n, critical, structure.gap())
            critical = 0.5 * (lower + upper)

    return critical
