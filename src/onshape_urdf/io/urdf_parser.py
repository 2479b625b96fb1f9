"""URDF parser for loading robot descriptions back into RobotModel structures.

This module reads a URDF file (or text) produced by the importer, or by any
other tool that sticks to the tags the importer writes, and converts it into
the same immutable RobotModel the writer consumes.
"""

from collections import deque
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
from lxml import etree

from onshape_urdf.core import (
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
from onshape_urdf.errors import MalformedDocumentError


def load_urdf(source: Union[str, Path]) -> RobotModel:
    """Load a URDF document and convert it to a RobotModel.

    Args:
        source: Path to a URDF file, or the URDF text itself.

    Returns:
        RobotModel: links in breadth-first order from the root link.

    Raises:
        MalformedDocumentError: if the XML is invalid or the joints do not
            form a tree with exactly one root.
    """
    try:
        if isinstance(source, Path) or not str(source).lstrip().startswith("<"):
            root = etree.parse(str(source)).getroot()
        else:
            root = etree.fromstring(str(source).encode("utf-8"))
    except (OSError, etree.XMLSyntaxError) as exc:
        raise MalformedDocumentError(f"Cannot read URDF: {exc}") from exc

    if root.tag != "robot":
        raise MalformedDocumentError(f"Expected <robot> root element, found <{root.tag}>")

    # Top-level materials; links may refer to them by name only
    materials: Dict[str, Material] = {}
    for elem in root.findall("material"):
        material = _parse_material(elem)
        materials[material.name] = material

    links: Dict[str, Link] = {}
    for elem in root.findall("link"):
        link = _parse_link(elem, materials)
        links[link.name] = link

    joints: List[Joint] = [_parse_joint(elem) for elem in root.findall("joint")]

    for joint in joints:
        for name in (joint.parent, joint.child):
            if name not in links:
                raise MalformedDocumentError(
                    f"Joint {joint.name!r} references unknown link {name!r}")

    # Each link has at most one parent joint
    parent_joint: Dict[str, str] = {}
    for joint in joints:
        if joint.child in parent_joint:
            raise MalformedDocumentError(
                f"Link {joint.child!r} is the child of both {parent_joint[joint.child]!r} "
                f"and {joint.name!r}")
        parent_joint[joint.child] = joint.name

    # Find root link (not a child of any joint)
    root_links = [name for name in links if name not in parent_joint]
    if len(root_links) != 1:
        raise MalformedDocumentError(f"Expected exactly one root link, found: {root_links}")

    # Order links using breadth-first traversal from root
    ordered: List[str] = []
    queue = deque([root_links[0]])
    visited = set()
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        ordered.append(current)
        for joint in joints:
            if joint.parent == current and joint.child not in visited:
                queue.append(joint.child)

    unreachable = [name for name in links if name not in visited]
    if unreachable:
        raise MalformedDocumentError(
            f"Links not connected to root {root_links[0]!r}: {unreachable}")

    return RobotModel(
        name=root.get("name", ""),
        links=tuple(links[name] for name in ordered),
        joints=tuple(joints),
        materials=tuple(materials.values()),
    )


def summarize(robot: RobotModel) -> Dict[str, object]:
    """Tree overview of a robot: counts and names per section."""
    return {
        "name": robot.name,
        "materials": [m.name for m in robot.materials],
        "links": {
            link.name: [
                section for section, present in (
                    ("visual", link.visual is not None),
                    ("collision", link.collision is not None),
                    ("inertial", link.inertial is not None),
                ) if present
            ]
            for link in robot.links
        },
        "joints": [f"{j.name} ({j.type}): {j.parent} -> {j.child}" for j in robot.joints],
    }


def _vector(text: Optional[str], default: str) -> tuple:
    try:
        values = np.asarray((text or default).split(), dtype=np.float64)
    except ValueError as exc:
        raise MalformedDocumentError(f"Invalid number list {text!r}") from exc
    return tuple(float(v) for v in values)


def _number(elem: etree._Element, attr: str, default: str = "0") -> float:
    return float(elem.get(attr, default))


def _parse_origin(parent: etree._Element) -> Origin:
    elem = parent.find("origin")
    if elem is None:
        return Origin()
    return Origin(xyz=_vector(elem.get("xyz"), "0 0 0"), rpy=_vector(elem.get("rpy"), "0 0 0"))


def _parse_geometry(parent: etree._Element) -> Geometry:
    geom = parent.find("geometry")
    shape = geom[0] if geom is not None and len(geom) else None
    if shape is None:
        raise MalformedDocumentError(f"<{parent.tag}> has no geometry")
    if shape.tag == "box":
        return Box(size=_vector(shape.get("size"), "0 0 0"))
    if shape.tag == "cylinder":
        return Cylinder(radius=_number(shape, "radius"), length=_number(shape, "length"))
    if shape.tag == "sphere":
        return Sphere(radius=_number(shape, "radius"))
    if shape.tag == "mesh":
        return Mesh(filename=shape.get("filename", ""), scale=_vector(shape.get("scale"), "1 1 1"))
    raise MalformedDocumentError(f"Unknown geometry <{shape.tag}>")


def _parse_material(elem: etree._Element) -> Material:
    color = elem.find("color")
    texture = elem.find("texture")
    return Material(
        name=elem.get("name", ""),
        color=_vector(color.get("rgba"), "0 0 0 1") if color is not None else None,
        texture=texture.get("filename") if texture is not None else None,
    )


def _parse_link(elem: etree._Element, materials: Dict[str, Material]) -> Link:
    visual = collision = inertial = None

    visual_elem = elem.find("visual")
    if visual_elem is not None:
        material = None
        material_elem = visual_elem.find("material")
        if material_elem is not None:
            inline = _parse_material(material_elem)
            material = materials.get(inline.name, inline)
        visual = Visual(
            geometry=_parse_geometry(visual_elem),
            material=material,
            origin=_parse_origin(visual_elem),
        )

    collision_elem = elem.find("collision")
    if collision_elem is not None:
        collision = Collision(geometry=_parse_geometry(collision_elem),
                              origin=_parse_origin(collision_elem))

    inertial_elem = elem.find("inertial")
    if inertial_elem is not None:
        mass_elem = inertial_elem.find("mass")
        inertia_elem = inertial_elem.find("inertia")
        if mass_elem is None or inertia_elem is None:
            raise MalformedDocumentError(f"Link {elem.get('name')!r} has an incomplete <inertial>")
        inertial = Inertial(
            mass=_number(mass_elem, "value"),
            inertia=Inertia(**{k: _number(inertia_elem, k)
                               for k in ("ixx", "ixy", "ixz", "iyy", "iyz", "izz")}),
            origin=_parse_origin(inertial_elem),
        )

    return Link(name=elem.get("name", ""), visual=visual, collision=collision, inertial=inertial)


def _parse_joint(elem: etree._Element) -> Joint:
    parent_elem = elem.find("parent")
    child_elem = elem.find("child")
    if parent_elem is None or child_elem is None:
        raise MalformedDocumentError(f"Joint {elem.get('name')!r} needs <parent> and <child>")

    axis_elem = elem.find("axis")
    limit_elem = elem.find("limit")
    return Joint(
        name=elem.get("name", ""),
        type=elem.get("type", "fixed"),
        parent=parent_elem.get("link"),
        child=child_elem.get("link"),
        origin=_parse_origin(elem),
        axis=Axis(xyz=_vector(axis_elem.get("xyz"), "0 0 1")) if axis_elem is not None else None,
        limit=Limit(
            lower=_number(limit_elem, "lower"),
            upper=_number(limit_elem, "upper"),
            effort=_number(limit_elem, "effort"),
            velocity=_number(limit_elem, "velocity"),
        ) if limit_elem is not None else None,
    )
