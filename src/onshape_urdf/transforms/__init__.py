"""
JAX-based transform helpers for Onshape placement matrices.

All functions are pure and stateless; results are converted to Python
floats before they enter the robot model.
"""

from . import se3

__all__ = [
    "se3",
]
