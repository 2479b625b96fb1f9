"""Visual and collision geometry synthesis.

A part is drawn with its downloaded STL mesh when one is available and with
a box otherwise. Collision shapes are always boxes.
"""

from typing import Mapping, Optional

from .core import BoundingBox, Box, Geometry, Mesh, Origin, Part
from .core.assembly import Vector3
from .naming import sanitize_name

DEFAULT_BOX_SIZE: Vector3 = (0.1, 0.1, 0.1)
UNIT_SCALE: Vector3 = (1, 1, 1)


def box_size(bbox: Optional[BoundingBox]) -> Vector3:
    """Edge lengths of ``bbox``, or the default size when there is none."""
    if bbox is None:
        return DEFAULT_BOX_SIZE
    return bbox.size


def mesh_filename(part: Part) -> str:
    return f"package://{sanitize_name(part.name)}/meshes/{part.name}.stl"


def visual_geometry(part: Part, mesh_assets: Mapping[str, bytes]) -> Geometry:
    """Mesh if an asset was downloaded for the part, else a box approximation."""
    if part.id in mesh_assets:
        return Mesh(filename=mesh_filename(part), scale=UNIT_SCALE)
    return collision_geometry(part)


def collision_geometry(part: Part) -> Geometry:
    return Box(size=box_size(part.bounding_box))


def part_origin(part: Part) -> Origin:
    """Centre of the part's bounding box with zero rotation (world origin if absent)."""
    if part.bounding_box is None:
        return Origin()
    return Origin(xyz=part.bounding_box.center)
