"""Core data structures for onshape_urdf.

This module provides the normalized assembly records produced by the
importer and the immutable robot-description records built from them.
"""

from .assembly import (
    Assembly,
    AssemblyReference,
    BoundingBox,
    Credentials,
    Element,
    Part,
)
from .robot_model import (
    Axis,
    Box,
    Collision,
    Cylinder,
    Geometry,
    Inertia,
    Inertial,
    Joint,
    Limit,
    Link,
    Material,
    Mesh,
    Origin,
    RobotModel,
    Sphere,
    Visual,
)

__all__ = [
    "Assembly",
    "AssemblyReference",
    "BoundingBox",
    "Credentials",
    "Element",
    "Part",
    "Axis",
    "Box",
    "Collision",
    "Cylinder",
    "Geometry",
    "Inertia",
    "Inertial",
    "Joint",
    "Limit",
    "Link",
    "Material",
    "Mesh",
    "Origin",
    "RobotModel",
    "Sphere",
    "Visual",
]
