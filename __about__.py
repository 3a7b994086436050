# -*- coding: utf-8 -*-
# Proxima: Proximity-effect transport in superconducting thin film systems.
#
# Copyright (c) 2026 opticsWolf
#
# SPDX-License-Identifier: LGPL-3.0-or-later

"""
Project metadata for Proxima.
"""

from typing import Final

__title__: Final[str] = "Proxima"
__description__: Final[str] = (
    "Quasiclassical Usadel solver in the Riccati parametrization for "
    "layered superconductor / ferromagnet / normal-metal heterostructures."
)
__version__: Final[str] = "0.1.0"
__author__: Final[str] = "opticsWolf"
__license__: Final[str] = "LGPL-3.0-or-later"
__copyright__: Final[str] = "Copyright (c) 2026 opticsWolf"


def metadata_summary() -> dict[str, str]:
    """Returns a dictionary of project metadata for introspection."""
    return {
        "title": __title__,
        "version": __version__,
        "license": __license__,
        "description": __description__,
        "copyright": __copyright__,
    }
