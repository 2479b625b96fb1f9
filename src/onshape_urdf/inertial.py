"""Inertial property estimates from bounding boxes.

Parts are treated as solid boxes of uniform density. This is an
approximation of the real geometry, good enough for simulators to load the
model with plausible, positive-definite inertias.
"""

from typing import Optional, Sequence

import jax.numpy as jnp

from .core import BoundingBox, Inertia, Inertial, Part
from .geometry import box_size, part_origin

DENSITY = 0.001
MIN_MASS = 0.01
DEFAULT_MASS = 0.1


def estimate_mass(bbox: Optional[BoundingBox]) -> float:
    """``max(0.01, volume * density)``, or 0.1 without a bounding box."""
    if bbox is None:
        return DEFAULT_MASS
    volume = jnp.prod(jnp.asarray(bbox.size, dtype=jnp.float64))
    return max(MIN_MASS, float(volume * DENSITY))


def box_inertia(mass: float, size: Sequence[float]) -> Inertia:
    """
    Inertia tensor of a solid box about its centre.

    Args:
        mass: Box mass.
        size: (x, y, z) edge lengths.

    Returns:
        Inertia with zero products of inertia.
    """
    x, y, z = jnp.asarray(size, dtype=jnp.float64)
    k = mass / 12
    return Inertia(
        ixx=float(k * (y * y + z * z)),
        ixy=0.0,
        ixz=0.0,
        iyy=float(k * (x * x + z * z)),
        iyz=0.0,
        izz=float(k * (x * x + y * y)),
    )


def estimate_inertial(part: Part) -> Inertial:
    mass = estimate_mass(part.bounding_box)
    return Inertial(
        mass=mass,
        inertia=box_inertia(mass, box_size(part.bounding_box)),
        origin=part_origin(part),
    )
