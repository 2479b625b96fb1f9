"""Kinematic tree construction.

Parts are chained in assembly order: the first part is the root link
``base_link`` and every following part hangs off its predecessor through a
fixed joint. Joint types are not inferred from assembly mates.
"""

import hashlib
import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .core import (
    Assembly,
    Axis,
    Collision,
    Element,
    Joint,
    Link,
    Material,
    Origin,
    Part,
    RobotModel,
    Visual,
)
from .geometry import collision_geometry, part_origin, visual_geometry
from .inertial import estimate_inertial
from .naming import sanitize_name, unique_name
from .transforms import se3

log = logging.getLogger(__name__)

BASE_LINK = "base_link"
FIXED = "fixed"
DEFAULT_AXIS = (0, 0, 1)


def appearance_color(appearance: str) -> tuple:
    """Stable RGBA colour for an appearance name."""
    digest = hashlib.sha256(appearance.encode("utf-8")).digest()
    r, g, b = digest[:3]
    return (r / 255, g / 255, b / 255, 1)


def build_materials(parts: Sequence[Part]) -> Dict[str, Material]:
    """One material per distinct appearance string, in first-seen order."""
    materials: Dict[str, Material] = {}
    taken = set()
    for part in parts:
        if part.appearance and part.appearance not in materials:
            materials[part.appearance] = Material(
                name=unique_name(sanitize_name(part.appearance), taken),
                color=appearance_color(part.appearance),
            )
    return materials


def joint_origin(element: Element) -> Origin:
    """Translation of a row-major placement (entries 3, 7, 11), zero rotation."""
    if element.transform is None or len(element.transform) < 12:
        return Origin()
    T = se3.from_flat(element.transform, column_major=False)
    return Origin(xyz=se3.to_vector(se3.translation(T)))


def _link_names(parts: Sequence[Part]) -> List[str]:
    taken = {BASE_LINK}
    names = []
    for index, part in enumerate(parts):
        if index == 0:
            names.append(BASE_LINK)
        else:
            names.append(unique_name(f"link_{sanitize_name(part.name)}", taken))
    return names


def build_link(name: str, part: Part, mesh_assets: Mapping[str, bytes],
               material: Optional[Material] = None) -> Link:
    origin = part_origin(part)
    return Link(
        name=name,
        visual=Visual(
            geometry=visual_geometry(part, mesh_assets),
            material=material,
            origin=origin,
        ),
        collision=Collision(geometry=collision_geometry(part), origin=origin),
        inertial=estimate_inertial(part),
    )


def build_robot_model(assembly: Assembly, parts: Sequence[Part],
                      mesh_assets: Optional[Mapping[str, bytes]] = None) -> RobotModel:
    """Build the robot description for an assembly.

    Args:
        assembly: Mapped assembly; its element order defines the chain.
        parts: Parts extracted from ``assembly.elements`` (same order).
        mesh_assets: Downloaded STL blobs keyed by part id.

    Returns:
        RobotModel with one link per part and ``len(parts) - 1`` fixed joints.
    """
    if len(parts) != len(assembly.elements):
        raise ValueError(
            f"Expected one part per element, got {len(parts)} parts "
            f"for {len(assembly.elements)} elements"
        )
    mesh_assets = mesh_assets or {}
    materials = build_materials(parts)
    link_names = _link_names(parts)

    links = tuple(
        build_link(name, part, mesh_assets, materials.get(part.appearance))
        for name, part in zip(link_names, parts)
    )

    joint_names = set()
    joints = []
    for i in range(1, len(parts)):
        element = assembly.elements[i]
        joints.append(Joint(
            name=unique_name(f"joint_{sanitize_name(element.name)}", joint_names),
            type=FIXED,
            parent=link_names[i - 1],
            child=link_names[i],
            origin=joint_origin(element),
            axis=Axis(xyz=DEFAULT_AXIS),
        ))

    robot = RobotModel(
        name=sanitize_name(assembly.name),
        links=links,
        joints=tuple(joints),
        materials=tuple(materials.values()),
    )
    log.info("Built robot %r: %d links, %d joints, %d materials",
             robot.name, len(robot.links), len(robot.joints), len(robot.materials),
             extra={"operation": "build_robot_model",
                    "context": {"meshes": sum(1 for p in parts if p.id in mesh_assets)}})
    return robot
