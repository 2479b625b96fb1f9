"""Normalized assembly data structures.

These records hold what the importer knows about an Onshape assembly after
the raw API payload has been mapped. Every field the remote service may omit
is optional here, so downstream stages must handle its absence explicitly.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from flax import struct


Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class AssemblyReference:
    """Identifiers of an assembly tab inside an Onshape document."""
    document_id: str
    workspace_id: str
    element_id: str

    @property
    def api_path(self) -> str:
        return f"/assemblies/d/{self.document_id}/w/{self.workspace_id}/e/{self.element_id}"

    def part_path(self, part_id: str, suffix: str = "") -> str:
        path = f"/parts/d/{self.document_id}/w/{self.workspace_id}/e/{part_id}"
        return f"{path}/{suffix}" if suffix else path


@dataclass(frozen=True)
class Credentials:
    """Onshape API key pair. The secret never shows up in ``repr``."""
    access_key: str
    secret_key: str = field(repr=False)

    @property
    def masked_access_key(self) -> str:
        return self.access_key[:8] + "..."


@struct.dataclass
class BoundingBox:
    """Axis-aligned box given by two opposite corners."""
    min_corner: Vector3
    max_corner: Vector3

    @property
    def size(self) -> Vector3:
        return tuple(hi - lo for lo, hi in zip(self.min_corner, self.max_corner))

    @property
    def center(self) -> Vector3:
        return tuple((lo + hi) / 2 for lo, hi in zip(self.min_corner, self.max_corner))


@struct.dataclass
class Element:
    """One placed occurrence inside an assembly.

    Attributes:
        id: Occurrence identifier (first path segment when available).
        name: Display name of the occurrence.
        type: Element kind; always ``"Part"`` for mapped occurrences.
        transform: Flat 4x4 placement matrix (16 numbers) or None.
        material: Material name reported by Onshape, if any.
        appearance: Appearance name reported by Onshape, if any.
    """
    id: str = struct.field(pytree_node=False)
    name: str = struct.field(pytree_node=False)
    type: str = struct.field(pytree_node=False, default="Part")
    transform: Optional[Tuple[float, ...]] = None
    material: Optional[str] = struct.field(pytree_node=False, default=None)
    appearance: Optional[str] = struct.field(pytree_node=False, default=None)


@struct.dataclass
class Assembly:
    """An assembly and its occurrences. Element order is the joint chain order."""
    id: str = struct.field(pytree_node=False)
    name: str = struct.field(pytree_node=False)
    elements: Tuple[Element, ...] = ()


@struct.dataclass
class Part:
    """The per-occurrence view used by geometry and inertial synthesis."""
    id: str = struct.field(pytree_node=False)
    name: str = struct.field(pytree_node=False)
    material: Optional[str] = struct.field(pytree_node=False, default=None)
    appearance: Optional[str] = struct.field(pytree_node=False, default=None)
    bounding_box: Optional[BoundingBox] = None
