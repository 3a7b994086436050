# -*- coding: utf-8 -*-
"""
Proxima: Proximity-effect transport in superconducting thin film systems
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Layer models for superconducting hybrid structures.
"""

from .material import (
    InterfaceParams,
    LayerParams,
    Material,
    RiccatiPoint,
    TransportState,
)
from .spinactive import SpinActiveInterface
from .conductor import Conductor
from .ferromagnet import Ferromagnet, FerromagnetParams
from .superconductor import BCS_RATIO, Superconductor, SuperconductorParams

__all__ = [
    "BCS_RATIO",
    "Conductor",
    "Ferromagnet",
    "FerromagnetParams",
    "InterfaceParams",
    "LayerParams",
    "Material",
    "RiccatiPoint",
    "SpinActiveInterface",
    "Superconductor",
    "SuperconductorParams",
    "TransportState",
]
