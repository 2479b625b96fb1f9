"""Part extraction from assembly occurrences.

Onshape does not return part bounds with the assembly definition, so each
occurrence gets a small placeholder cube centred on its placement.
"""

from typing import List, Optional, Sequence

from .core import Assembly, BoundingBox, Part
from .transforms import se3

PLACEHOLDER_HALF_EXTENT = 0.1


def bounding_box_from_transform(transform: Optional[Sequence[float]]) -> Optional[BoundingBox]:
    """Cube of half-extent 0.1 around the translation of a column-major 4x4 matrix."""
    if not transform or len(transform) < 16:
        return None

    center = se3.translation(se3.from_flat(transform, column_major=True))
    h = PLACEHOLDER_HALF_EXTENT
    return BoundingBox(
        min_corner=se3.to_vector(center - h),
        max_corner=se3.to_vector(center + h),
    )


def extract_parts(assembly: Assembly) -> List[Part]:
    """One Part per assembly element, in assembly order."""
    return [
        Part(
            id=element.id,
            name=element.name,
            material=element.material,
            appearance=element.appearance,
            bounding_box=bounding_box_from_transform(element.transform),
        )
        for element in assembly.elements
    ]
