"""RobotModel PyTree data structures for URDF synthesis.

This module defines the immutable records a generated robot description is
made of. Numeric data (sizes, poses, masses) are PyTree leaves, names and
file references are static fields, so a whole RobotModel can be flattened
and mapped over with ``jax.tree_util`` like any other JAX structure.
"""

from typing import Optional, Tuple, Union

from flax import struct

from .assembly import Vector3


ZERO3: Vector3 = (0.0, 0.0, 0.0)


@struct.dataclass
class Box:
    size: Vector3


@struct.dataclass
class Cylinder:
    radius: float
    length: float


@struct.dataclass
class Sphere:
    radius: float


@struct.dataclass
class Mesh:
    filename: str = struct.field(pytree_node=False)
    scale: Vector3 = (1, 1, 1)


Geometry = Union[Box, Cylinder, Sphere, Mesh]


@struct.dataclass
class Origin:
    """Pose of a frame: translation ``xyz`` and fixed-axis ``rpy`` in radians."""
    xyz: Vector3 = ZERO3
    rpy: Vector3 = (0, 0, 0)


@struct.dataclass
class Material:
    """Named material with an optional RGBA colour and/or texture file."""
    name: str = struct.field(pytree_node=False)
    color: Optional[Tuple[float, float, float, float]] = None
    texture: Optional[str] = struct.field(pytree_node=False, default=None)


@struct.dataclass
class Inertia:
    """Symmetric 3x3 inertia tensor stored as its six unique entries."""
    ixx: float
    ixy: float
    ixz: float
    iyy: float
    iyz: float
    izz: float


@struct.dataclass
class Inertial:
    mass: float
    inertia: Inertia
    origin: Origin = struct.field(default_factory=Origin)


@struct.dataclass
class Visual:
    geometry: Geometry
    material: Optional[Material] = None
    origin: Origin = struct.field(default_factory=Origin)


@struct.dataclass
class Collision:
    geometry: Geometry
    origin: Origin = struct.field(default_factory=Origin)


@struct.dataclass
class Link:
    name: str = struct.field(pytree_node=False)
    visual: Optional[Visual] = None
    collision: Optional[Collision] = None
    inertial: Optional[Inertial] = None


@struct.dataclass
class Axis:
    xyz: Vector3 = (0, 0, 1)


@struct.dataclass
class Limit:
    lower: float
    upper: float
    effort: float
    velocity: float


@struct.dataclass
class Joint:
    """Connection between a parent and a child link.

    Attributes:
        name: Joint name, unique within the robot.
        type: URDF joint type (``fixed`` for everything this importer builds).
        parent: Name of the parent link.
        child: Name of the child link.
        origin: Pose of the child frame relative to the parent frame.
        axis: Joint axis, if any.
        limit: Joint limits, only meaningful for moving joint types.
    """
    name: str = struct.field(pytree_node=False)
    type: str = struct.field(pytree_node=False)
    parent: str = struct.field(pytree_node=False)
    child: str = struct.field(pytree_node=False)
    origin: Origin = struct.field(default_factory=Origin)
    axis: Optional[Axis] = None
    limit: Optional[Limit] = None


@struct.dataclass
class RobotModel:
    """Immutable PyTree representation of a generated robot description.

    Attributes:
        name: Robot name, used as the ``<robot name>`` attribute and file name.
        links: Links in assembly order; the first one is the root.
        joints: Joints in chain order.
        materials: Distinct materials in first-seen order.
    """
    name: str = struct.field(pytree_node=False)
    links: Tuple[Link, ...] = ()
    joints: Tuple[Joint, ...] = ()
    materials: Tuple[Material, ...] = ()

    @property
    def link_names(self) -> Tuple[str, ...]:
        return tuple(link.name for link in self.links)

    @property
    def joint_names(self) -> Tuple[str, ...]:
        return tuple(joint.name for joint in self.joints)
