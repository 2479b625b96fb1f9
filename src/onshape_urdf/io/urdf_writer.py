"""URDF serialization of RobotModel structures.

The writer builds an lxml element tree in a fixed order (materials, links,
joints) and renders it pretty-printed, so serializing the same model twice
yields identical text. Names are written as given; callers sanitize them
when building the model.
"""

from pathlib import Path
from typing import Iterable, Union

from lxml import etree

from onshape_urdf.core import (
    Box,
    Collision,
    Cylinder,
    Geometry,
    Inertial,
    Joint,
    Link,
    Material,
    Mesh,
    Origin,
    RobotModel,
    Sphere,
    Visual,
)

URDF_SUFFIX = ".urdf"


def _fmt(values: Union[float, Iterable[float]]) -> str:
    """Space-join numbers using Python's default string conversion."""
    if isinstance(values, (int, float)):
        return str(values)
    return " ".join(str(v) for v in values)


def _origin(parent: etree._Element, origin: Origin) -> None:
    etree.SubElement(parent, "origin", xyz=_fmt(origin.xyz), rpy=_fmt(origin.rpy))


def _geometry(parent: etree._Element, geometry: Geometry) -> None:
    geom = etree.SubElement(parent, "geometry")
    if isinstance(geometry, Box):
        etree.SubElement(geom, "box", size=_fmt(geometry.size))
    elif isinstance(geometry, Cylinder):
        etree.SubElement(geom, "cylinder", radius=_fmt(geometry.radius),
                         length=_fmt(geometry.length))
    elif isinstance(geometry, Sphere):
        etree.SubElement(geom, "sphere", radius=_fmt(geometry.radius))
    elif isinstance(geometry, Mesh):
        mesh = etree.SubElement(geom, "mesh", filename=geometry.filename)
        if geometry.scale is not None:
            mesh.set("scale", _fmt(geometry.scale))
    else:
        raise TypeError(f"Unsupported geometry {type(geometry).__name__}")


def _material(parent: etree._Element, material: Material) -> None:
    elem = etree.SubElement(parent, "material", name=material.name)
    if material.color is not None:
        etree.SubElement(elem, "color", rgba=_fmt(material.color))
    if material.texture is not None:
        etree.SubElement(elem, "texture", filename=material.texture)


def _visual(parent: etree._Element, visual: Visual) -> None:
    elem = etree.SubElement(parent, "visual")
    _geometry(elem, visual.geometry)
    if visual.material is not None:
        etree.SubElement(elem, "material", name=visual.material.name)
    _origin(elem, visual.origin)


def _collision(parent: etree._Element, collision: Collision) -> None:
    elem = etree.SubElement(parent, "collision")
    _geometry(elem, collision.geometry)
    _origin(elem, collision.origin)


def _inertial(parent: etree._Element, inertial: Inertial) -> None:
    elem = etree.SubElement(parent, "inertial")
    etree.SubElement(elem, "mass", value=_fmt(inertial.mass))
    i = inertial.inertia
    etree.SubElement(
        elem, "inertia",
        ixx=_fmt(i.ixx), ixy=_fmt(i.ixy), ixz=_fmt(i.ixz),
        iyy=_fmt(i.iyy), iyz=_fmt(i.iyz), izz=_fmt(i.izz),
    )
    _origin(elem, inertial.origin)


def _link(parent: etree._Element, link: Link) -> None:
    elem = etree.SubElement(parent, "link", name=link.name)
    if link.visual is not None:
        _visual(elem, link.visual)
    if link.collision is not None:
        _collision(elem, link.collision)
    if link.inertial is not None:
        _inertial(elem, link.inertial)


def _joint(parent: etree._Element, joint: Joint) -> None:
    elem = etree.SubElement(parent, "joint", name=joint.name, type=joint.type)
    etree.SubElement(elem, "parent", link=joint.parent)
    etree.SubElement(elem, "child", link=joint.child)
    _origin(elem, joint.origin)
    if joint.axis is not None:
        etree.SubElement(elem, "axis", xyz=_fmt(joint.axis.xyz))
    if joint.limit is not None:
        lim = joint.limit
        etree.SubElement(elem, "limit", lower=_fmt(lim.lower), upper=_fmt(lim.upper),
                         effort=_fmt(lim.effort), velocity=_fmt(lim.velocity))


def to_element(robot: RobotModel) -> etree._Element:
    """Build the ``<robot>`` element tree for ``robot``."""
    root = etree.Element("robot", name=robot.name)
    for material in robot.materials:
        _material(root, material)
    for link in robot.links:
        _link(root, link)
    for joint in robot.joints:
        _joint(root, joint)
    return root


def to_urdf_string(robot: RobotModel) -> str:
    """Serialize ``robot`` to URDF text."""
    data = etree.tostring(
        to_element(robot),
        pretty_print=True,
        xml_declaration=True,
        encoding="UTF-8",
    )
    return data.decode("utf-8")


def suggested_filename(robot: RobotModel) -> str:
    return f"{robot.name}{URDF_SUFFIX}"


def write_urdf(robot: RobotModel, path: Union[str, Path]) -> Path:
    """Write ``robot`` to ``path``; a directory gets ``suggested_filename``."""
    path = Path(path)
    if path.is_dir():
        path = path / suggested_filename(robot)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_urdf_string(robot), encoding="utf-8")
    return path
