"""SE(3) helpers for Onshape placement matrices in JAX.

Onshape reports occurrence placements as flat lists of 16 numbers. This
module turns them into (4, 4) homogeneous matrices and reads back the
pieces the importer needs. Functions are pure and operate on JAX arrays.
"""

from typing import Sequence, Tuple

import jax
import jax.numpy as jnp

Array = jax.Array

_BOTTOM_ROW = (0.0, 0.0, 0.0, 1.0)


def from_flat(values: Sequence[float], *, column_major: bool = False) -> Array:
    """
    Build a homogeneous transform from a flat list of numbers.

    Args:
        values: 16 numbers (a full 4x4 matrix), or, for row-major input,
                at least 12 numbers (a 3x4 affine block).
        column_major: Interpret the 16 numbers column by column, so the
                      translation sits at positions 12, 13, 14. Row-major
                      input keeps it at positions 3, 7, 11.

    Returns:
        (4, 4) homogeneous transformation matrix
    """
    flat = jnp.asarray(values, dtype=jnp.float64)
    n = flat.shape[0]

    if n >= 16:
        T = flat[:16].reshape(4, 4)
        return T.T if column_major else T

    if n >= 12 and not column_major:
        affine = flat[:12].reshape(3, 4)
        bottom = jnp.asarray([_BOTTOM_ROW], dtype=flat.dtype)
        return jnp.concatenate([affine, bottom], axis=0)

    raise ValueError(f"Expected 16 values (or 12 row-major), got {n}")


def translation(T: Array) -> Array:
    """(..., 3) translation part of (..., 4, 4) transforms."""
    return T[..., :3, 3]


def to_vector(v: Array) -> Tuple[float, ...]:
    """Convert a JAX vector to a tuple of Python floats."""
    return tuple(float(x) for x in v)
