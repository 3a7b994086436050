# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: material.py — Base class for layers of a superconducting hybrid.

Design notes:
  - Hybrid parameter API: ``Kind(energy, params=..., **kwargs)`` where
    ``params`` is a params dataclass or a plain dict and keyword arguments
    override it.  ``self.params`` is the single source of truth.
  - Every layer solves one boundary-value problem per energy.  The state
    vector handed to ``scipy.integrate.solve_bvp`` has 16 complex rows:
    g, g̃, ∂g, ∂g̃ as row-major 2×2 blocks.
  - Energies are independent, so ``update()`` dispatches them to a
    ``ThreadPoolExecutor``.  Workers only read neighbour state, and each
    result is written back on the calling thread.
  - Neighbours are weak references; the owning ``Structure`` keeps layers
    alive.
"""

from __future__ import annotations

import logging
import time
import weakref
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, fields, replace
from typing import (
    Any, Dict, List, NamedTuple, Optional, TextIO, Tuple, Type, Union,
)

import numpy as np
from scipy.integrate import solve_bvp

from proxima_calculus import linspace
from proxima_errors import (
    ConfigurationError,
    NumericalSingularity,
    ProximaError,
    SolverDivergence,
)
from proxima_spin import (
    bcs_riccati,
    density_of_states,
    spectral_radius,
)

logger = logging.getLogger(f"proxima.{__name__}")

SpinVector = Optional[Union[np.ndarray, List[float], Tuple[float, float, float]]]


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  Parameter containers
# ═══════════════════════════════════════════════════════════════════════════════

def _unit_vector(value: SpinVector, label: str, zero_is_none: bool = False) -> Optional[np.ndarray]:
    if value is None:
        return None
    v = np.asarray(value, dtype=np.float64).reshape(-1)
    if v.shape != (3,):
        raise ConfigurationError(f"{label} must be a 3-vector, got shape {v.shape}.")
    norm = np.linalg.norm(v)
    if zero_is_none and norm == 0.0:
        return None
    if not np.isfinite(norm) or norm == 0.0:
        raise ConfigurationError(f"{label} must be a finite non-zero vector.")
    return v / norm


@dataclass(slots=True, frozen=True)
class InterfaceParams:
    """
    Physical description of one side of a layer.

    A set ``magnetization`` turns the interface spin-active; otherwise it is
    a Kuprianov–Lukichev tunnel barrier of the given ``conductance``.
    ``transparent`` enforces continuity, ``reflecting`` forces a vacuum
    condition even when a neighbour is attached.
    """
    conductance:        float = 0.3
    transparent:        bool = False
    reflecting:         bool = False
    polarization:       float = 0.0
    spin_mixing:        float = 0.0
    second_order:       float = 0.0
    magnetization:      SpinVector = None
    misalignment:       SpinVector = None
    misalignment_other: SpinVector = None

    def __post_init__(self) -> None:
        if not np.isfinite(self.conductance) or self.conductance < 0:
            raise ConfigurationError(
                f"Interface conductance must be non-negative, got {self.conductance}."
            )
        if self.transparent and self.reflecting:
            raise ConfigurationError("An interface cannot be both transparent and reflecting.")
        if not 0.0 <= self.polarization < 1.0:
            raise ConfigurationError(
                f"Interface polarization must lie in [0, 1), got {self.polarization}."
            )
        if self.second_order != 0.0 and self.spin_mixing == 0.0:
            raise ConfigurationError(
                "Second-order spin mixing requires non-zero first-order spin mixing."
            )
        object.__setattr__(self, "magnetization", _unit_vector(self.magnetization, "magnetization"))
        # A zero misalignment falls back to the interface magnetization
        for name in ("misalignment", "misalignment_other"):
            object.__setattr__(self, name, _unit_vector(getattr(self, name), name, zero_is_none=True))

    @property
    def spin_active(self) -> bool:
        return self.magnetization is not None

    def get_state(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            state[f.name] = value.tolist() if isinstance(value, np.ndarray) else value
        return state

    @classmethod
    def from_state(cls, state: Optional[Union["InterfaceParams", Dict[str, Any]]]) -> "InterfaceParams":
        if state is None:
            return cls()
        if isinstance(state, cls):
            return state
        known = {f.name for f in fields(cls)}
        unknown = set(state) - known
        if unknown:
            raise ConfigurationError(f"Unknown interface parameters: {sorted(unknown)}.")
        return cls(**state)


@dataclass(frozen=True, eq=False)
class LayerParams:
    """Parameters shared by every layer type."""
    points:      int = 150
    length:      float = 1.0
    scattering:  float = 0.01
    gap:         complex = 1.0
    spin_orbit:  Optional[np.ndarray] = None
    interface_a: InterfaceParams = field(default_factory=InterfaceParams)
    interface_b: InterfaceParams = field(default_factory=InterfaceParams)
    tolerance:   float = 1e-4
    max_nodes:   int = 1000
    workers:     Optional[int] = None

    def __post_init__(self) -> None:
        if int(self.points) < 2:
            raise ConfigurationError(f"A layer needs at least 2 positions, got {self.points}.")
        if not self.length > 0:
            raise ConfigurationError(f"Layer length must be positive, got {self.length}.")
        if self.scattering < 0:
            raise ConfigurationError(f"Scattering must be non-negative, got {self.scattering}.")
        if not self.tolerance > 0:
            raise ConfigurationError(f"Tolerance must be positive, got {self.tolerance}.")
        if self.workers is not None and int(self.workers) < 1:
            raise ConfigurationError(f"Workers must be at least 1, got {self.workers}.")
        object.__setattr__(self, "points", int(self.points))
        object.__setattr__(self, "interface_a", InterfaceParams.from_state(self.interface_a))
        object.__setattr__(self, "interface_b", InterfaceParams.from_state(self.interface_b))
        if self.spin_orbit is not None:
            soc = np.asarray(self.spin_orbit, dtype=np.float64)
            if soc.shape != (3, 3):
                raise ConfigurationError(
                    f"spin_orbit must be a 3x3 array (one Pauli vector per axis), got {soc.shape}."
                )
            object.__setattr__(self, "spin_orbit", None if not soc.any() else soc)

    @property
    def thouless(self) -> float:
        """Thouless energy 1/L² in units of Δ₀ (lengths in units of ξ)."""
        return 1.0 / self.length ** 2

    def get_state(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, InterfaceParams):
                value = value.get_state()
            elif isinstance(value, np.ndarray):
                value = value.tolist()
            state[f.name] = value
        return state

    @classmethod
    def from_state(cls, state: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "LayerParams":
        """Build params from a dict; keyword arguments override entries."""
        merged = {**(state or {}), **kwargs}
        known = {f.name for f in fields(cls)}
        unknown = set(merged) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown parameters for {cls.__name__}: {sorted(unknown)}."
            )
        return cls(**merged)


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Transport state
# ═══════════════════════════════════════════════════════════════════════════════

class RiccatiPoint(NamedTuple):
    """Riccati parameters and derivatives at one position and energy."""
    g:   np.ndarray
    gt:  np.ndarray
    dg:  np.ndarray
    dgt: np.ndarray


def unpack_vector(y: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Split a (16, m) BVP state into four (m, 2, 2) arrays."""
    m = y.shape[1]
    return tuple(y[4 * k:4 * k + 4].T.reshape(m, 2, 2) for k in range(4))  # type: ignore[return-value]


def pack_vector(*blocks: np.ndarray) -> np.ndarray:
    """Inverse of :func:`unpack_vector` for any number of (m, 2, 2) blocks."""
    return np.concatenate([b.reshape(b.shape[0], 4).T for b in blocks])


class TransportState:
    """
    Riccati parameters on the (energy, position) grid.

    Arrays ``g``, ``gt``, ``dg``, ``dgt`` have shape (n_energy, n_position, 2, 2).
    ``stale[n]`` marks energies whose most recent solve failed.
    """
    __slots__ = ("g", "gt", "dg", "dgt", "stale")

    def __init__(self, n_energy: int, n_position: int) -> None:
        shape = (n_energy, n_position, 2, 2)
        self.g = np.zeros(shape, dtype=np.complex128)
        self.gt = np.zeros(shape, dtype=np.complex128)
        self.dg = np.zeros(shape, dtype=np.complex128)
        self.dgt = np.zeros(shape, dtype=np.complex128)
        self.stale = np.zeros(n_energy, dtype=bool)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.g.shape[:2]

    def point(self, n: int, m: int) -> RiccatiPoint:
        return RiccatiPoint(self.g[n, m], self.gt[n, m], self.dg[n, m], self.dgt[n, m])

    def pack(self, n: int) -> np.ndarray:
        return pack_vector(self.g[n], self.gt[n], self.dg[n], self.dgt[n])

    def unpack(self, n: int, y: np.ndarray) -> None:
        self.g[n], self.gt[n], self.dg[n], self.dgt[n] = unpack_vector(y)

    def copy(self) -> "TransportState":
        obj = TransportState.__new__(TransportState)
        obj.g = self.g.copy()
        obj.gt = self.gt.copy()
        obj.dg = self.dg.copy()
        obj.dgt = self.dgt.copy()
        obj.stale = self.stale.copy()
        return obj

    def __repr__(self) -> str:
        n_e, n_p = self.shape
        return f"TransportState(energies={n_e}, positions={n_p}, stale={int(self.stale.sum())})"


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Material
# ═══════════════════════════════════════════════════════════════════════════════

class Material(ABC):
    """
    Abstract layer in a superconducting hybrid structure.

    Subclasses provide the diffusion equation and the boundary residuals;
    this class owns the grids and the transport state, and runs the
    per-energy boundary-value solves.

    Attributes:
        energy : np.ndarray
            Read-only energy grid, shared by reference with the other layers.
        location : np.ndarray
            Normalized position grid on [0, 1].
        state : TransportState
            Current Riccati parameters.
        failures : Dict[int, ProximaError]
            Per-energy errors from the most recent ``update()``.
        frozen : bool
            Frozen layers (external bulk reservoirs) are never updated.
    """

    params_class: Type[LayerParams] = LayerParams
    kind: str = "material"

    def __init__(
        self,
        energy: Union[np.ndarray, List[float]],
        params: Optional[Union[LayerParams, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> None:
        self.energy = self._shared_grid(energy)

        # kwargs override the params dict / dataclass
        if isinstance(params, LayerParams):
            base = {f.name: getattr(params, f.name) for f in fields(params)}
        else:
            base = dict(params or {})
        self.params = self.params_class.from_state(base, **kwargs)

        self.location = linspace(self.params.points, 0.0, 1.0)
        self.state = TransportState(self.energy.shape[0], self.params.points)
        self.failures: Dict[int, ProximaError] = {}
        self.frozen: bool = False
        self._previous: Optional[TransportState] = None
        self._ref_a: Optional[weakref.ref] = None
        self._ref_b: Optional[weakref.ref] = None

        self.init(self.params.gap)

    @staticmethod
    def _shared_grid(energy: Union[np.ndarray, List[float]]) -> np.ndarray:
        grid = np.asarray(energy, dtype=np.float64)
        if grid.ndim != 1 or grid.shape[0] < 1:
            raise ConfigurationError("The energy grid must be a non-empty 1-D array.")
        if not np.all(np.isfinite(grid)):
            raise ConfigurationError("The energy grid contains non-finite values.")
        if grid.flags.writeable:
            grid.flags.writeable = False
        return grid

    # -- neighbours (non-owning) -------------------------------------------
    @property
    def material_a(self) -> Optional["Material"]:
        return self._ref_a() if self._ref_a is not None else None

    @material_a.setter
    def material_a(self, other: Optional["Material"]) -> None:
        self._ref_a = weakref.ref(other) if other is not None else None

    @property
    def material_b(self) -> Optional["Material"]:
        return self._ref_b() if self._ref_b is not None else None

    @material_b.setter
    def material_b(self, other: Optional["Material"]) -> None:
        self._ref_b = weakref.ref(other) if other is not None else None

    # -- convenience -------------------------------------------------------
    @property
    def thouless(self) -> float:
        return self.params.thouless

    @property
    def length(self) -> float:
        return self.params.length

    def set_param(self, name: str, value: Any) -> None:
        """Replace one parameter; grid-shaping ``points`` cannot change."""
        if name == "points" and int(value) != self.params.points:
            raise ConfigurationError("The number of positions is fixed at construction.")
        try:
            self.params = replace(self.params, **{name: value})
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc

    # -- abstract contract -------------------------------------------------
    @abstractmethod
    def diffusion_equation(
        self,
        e: complex,
        z: np.ndarray,
        g: np.ndarray,
        gt: np.ndarray,
        dg: np.ndarray,
        dgt: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Second derivatives (d²g, d²g̃) at positions ``z``; arrays are (m, 2, 2)."""

    @abstractmethod
    def interface_equation_a(
        self,
        a: Optional[RiccatiPoint],
        g: np.ndarray,
        gt: np.ndarray,
        dg: np.ndarray,
        dgt: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Residuals (r, r̃) at the left edge given the neighbour's edge state."""

    @abstractmethod
    def interface_equation_b(
        self,
        b: Optional[RiccatiPoint],
        g: np.ndarray,
        gt: np.ndarray,
        dg: np.ndarray,
        dgt: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Residuals (r, r̃) at the right edge given the neighbour's edge state."""

    def update_prehook(self) -> None:
        """Refresh cached per-layer matrices before the solves."""

    def update_posthook(self) -> None:
        """Post-process the freshly solved state."""

    # -- state management --------------------------------------------------
    def init(self, gap: complex = 1.0, phase: float = 0.0) -> None:
        """Reset every position to the bulk BCS state with pair potential ``gap·e^{iφ}``."""
        delta = complex(gap) * np.exp(1j * phase)
        g = np.zeros((2, 2), dtype=np.complex128)
        gt = np.zeros((2, 2), dtype=np.complex128)
        for n, energy in enumerate(self.energy):
            bcs_riccati(complex(energy, self.params.scattering), delta, out=(g, gt))
            self.state.g[n] = g
            self.state.gt[n] = gt
        self.state.dg[...] = 0.0
        self.state.dgt[...] = 0.0
        self.state.stale[...] = False
        self._previous = None

    def snapshot(self) -> Dict[str, Any]:
        return {"state": self.state.copy()}

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.state = snapshot["state"].copy()
        self._previous = None

    def boundary_a(self, n: int) -> Optional[RiccatiPoint]:
        """State of the left neighbour at its right edge, or None for vacuum."""
        other = self.material_a
        return None if other is None else other.state.point(n, -1)

    def boundary_b(self, n: int) -> Optional[RiccatiPoint]:
        """State of the right neighbour at its left edge, or None for vacuum."""
        other = self.material_b
        return None if other is None else other.state.point(n, 0)

    # -- solver ------------------------------------------------------------
    def local_gap(self) -> np.ndarray:
        """Pair potential on the position grid; zero outside superconductors."""
        return np.zeros(self.location.shape, dtype=np.complex128)

    def bulk_guess(self, n: int) -> np.ndarray:
        """Packed bulk BCS state at energy index ``n`` for the local pair potential."""
        energy = complex(self.energy[n], self.params.scattering)
        g = np.zeros((self.params.points, 2, 2), dtype=np.complex128)
        gt = np.zeros_like(g)
        for m, delta in enumerate(self.local_gap()):
            bcs_riccati(energy, delta, out=(g[m], gt[m]))
        flat = np.zeros_like(g)
        return pack_vector(g, gt, flat, flat)

    def _solve_energy(self, n: int) -> np.ndarray:
        """
        Solve energy index ``n``; returns the (16, m) solution on the mesh.

        Newton is seeded from the previous state.  If that fails the solve is
        repeated once from the bulk solution at the local pair potential,
        which recovers energies near a gap edge that moved since the last
        update.
        """
        try:
            return self._solve_from(n, self.state.pack(n))
        except (SolverDivergence, NumericalSingularity) as exc:
            logger.debug(
                "%s: energy %.6g retried from the bulk solution (%s)",
                self.kind, self.energy[n], exc,
            )
        return self._solve_from(n, self.bulk_guess(n))

    def _solve_from(self, n: int, guess: np.ndarray) -> np.ndarray:
        energy = float(self.energy[n])
        e = complex(energy, self.params.scattering) / self.thouless
        a = self.boundary_a(n)
        b = self.boundary_b(n)

        def fun(z: np.ndarray, y: np.ndarray) -> np.ndarray:
            g, gt, dg, dgt = unpack_vector(y)
            d2g, d2gt = self.diffusion_equation(e, z, g, gt, dg, dgt)
            return pack_vector(dg, dgt, d2g, d2gt)

        def bc(ya: np.ndarray, yb: np.ndarray) -> np.ndarray:
            ga, gta, dga, dgta = unpack_vector(ya[:, None])
            gb, gtb, dgb, dgtb = unpack_vector(yb[:, None])
            r_a, rt_a = self.interface_equation_a(a, ga[0], gta[0], dga[0], dgta[0])
            r_b, rt_b = self.interface_equation_b(b, gb[0], gtb[0], dgb[0], dgtb[0])
            return np.concatenate([r_a.ravel(), rt_a.ravel(), r_b.ravel(), rt_b.ravel()])

        try:
            sol = solve_bvp(
                fun, bc, self.location, guess,
                tol=self.params.tolerance, max_nodes=self.params.max_nodes,
            )
        except (ValueError, np.linalg.LinAlgError, FloatingPointError) as exc:
            raise SolverDivergence.wrap(n, energy, exc) from exc

        if not sol.success:
            raise SolverDivergence(n, energy, sol.message)

        y = sol.sol(self.location)
        if not np.all(np.isfinite(y)):
            raise SolverDivergence(n, energy, "non-finite solution")
        g, gt, _, _ = unpack_vector(y)
        if spectral_radius(g @ gt) >= 1.0:
            raise NumericalSingularity(
                f"Riccati normalization violated at energy index {n} (E={energy:.6g})."
            )
        return y

    def update(self) -> None:
        """Solve all energies and store the new state; failures are isolated per energy."""
        if self.frozen:
            return

        start = time.perf_counter()
        self.update_prehook()
        previous = self.state.copy()
        self.failures = {}

        workers = self.params.workers
        indices = range(self.energy.shape[0])
        if workers == 1:
            for n in indices:
                self._collect(n, self._solve_energy, n)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {pool.submit(self._solve_energy, n): n for n in indices}
                for future in as_completed(futures):
                    self._collect(futures[future], future.result)

        self._previous = previous
        self.update_posthook()
        logger.debug(
            "%s updated in %.3fs (stale energies: %d)",
            self, time.perf_counter() - start, len(self.failures),
        )

    def _collect(self, n: int, call: Any, *args: Any) -> None:
        try:
            y = call(*args)
        except (SolverDivergence, NumericalSingularity) as exc:
            self.failures[n] = exc
            self.state.stale[n] = True
            logger.warning("%s: energy %.6g kept stale: %s", self.kind, self.energy[n], exc)
        else:
            self.state.unpack(n, y)
            self.state.stale[n] = False

    def difference(self) -> float:
        """Largest change of g or g̃ during the most recent update; inf while any energy is stale."""
        if self.frozen:
            return 0.0
        if self._previous is None or self.state.stale.any():
            return float("inf")
        return float(max(
            np.max(np.abs(self.state.g - self._previous.g)),
            np.max(np.abs(self.state.gt - self._previous.gt)),
        ))

    # -- observables -------------------------------------------------------
    def density_of_states(self) -> np.ndarray:
        """Density of states with shape (n_energy, n_position)."""
        return density_of_states(self.state.g, self.state.gt)

    def write_dos(self, sink: TextIO, left: float = 0.0, right: float = 1.0) -> None:
        """
        Write ``position energy dos`` records, one block per position.

        A grid without negative energies is mirrored, assuming particle-hole
        symmetry of the density of states.
        """
        dos = self.density_of_states()
        positions = left + (right - left) * self.location
        mirror = bool(np.min(self.energy) >= 0.0)
        for m, z in enumerate(positions):
            if mirror:
                for n in range(self.energy.shape[0] - 1, -1, -1):
                    sink.write(f"{z:.16e} {-self.energy[n]:.16e} {dos[n, m]:.16e}\n")
            for n in range(self.energy.shape[0]):
                sink.write(f"{z:.16e} {self.energy[n]:.16e} {dos[n, m]:.16e}\n")
            sink.write("\n")

    # -- serialisation -----------------------------------------------------
    def get_state(self) -> Dict[str, Any]:
        return {"kind": self.kind, **self.params.get_state()}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(L={self.params.length:.3g}, "
            f"points={self.params.points}, energies={self.energy.shape[0]})"
        )
