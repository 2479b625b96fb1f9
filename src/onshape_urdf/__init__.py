"""
onshape_urdf: convert Onshape CAD assemblies into URDF robot descriptions.

The package fetches an assembly through the Onshape REST API, normalizes
its occurrences, approximates geometry and inertia where exact data is not
available, chains the parts into a kinematic tree and writes URDF.
"""

import logging

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import core
from . import transforms
from . import io
from .pipeline import ImportResult, convert_assembly_response, import_assembly

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    "core",
    "transforms",
    "io",
    "ImportResult",
    "convert_assembly_response",
    "import_assembly",
]
