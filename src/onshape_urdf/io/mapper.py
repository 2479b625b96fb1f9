"""Mapping of raw Onshape assembly payloads into the normalized Assembly model.

The assembly endpoint returns a loosely shaped JSON document; any field may
be missing. Only a top-level payload that is not a mapping at all is
rejected. Everything below it degrades to defaults.
"""

import logging
from collections.abc import Mapping, Sequence
from numbers import Real
from typing import Any, List, Optional, Tuple

from onshape_urdf.core import Assembly, Element
from onshape_urdf.errors import MalformedResponseError

log = logging.getLogger(__name__)

DEFAULT_ASSEMBLY_NAME = "Assembly"
ELEMENT_TYPE = "Part"


def map_assembly_response(response: Any, element_id: str) -> Assembly:
    """Normalize an assembly definition response.

    Args:
        response: Decoded JSON body of the assembly endpoint.
        element_id: Element id of the assembly tab; becomes the Assembly id.

    Returns:
        Assembly: occurrences of ``rootAssembly`` in response order.

    Raises:
        MalformedResponseError: if ``response`` is not a mapping.
    """
    if not isinstance(response, Mapping):
        raise MalformedResponseError(
            f"Assembly response must be a JSON object, got {type(response).__name__}",
            body=response,
        )

    occurrences = _occurrences(response)
    elements = tuple(
        _map_occurrence(occurrence, index) for index, occurrence in enumerate(occurrences)
    )

    name = response.get("name") or DEFAULT_ASSEMBLY_NAME
    log.info("Mapped assembly %r with %d occurrences", name, len(elements),
             extra={"operation": "map_assembly", "context": {"element_id": element_id}})
    return Assembly(id=element_id, name=str(name), elements=elements)


def _occurrences(response: Mapping) -> List[Any]:
    root = response.get("rootAssembly")
    if not isinstance(root, Mapping):
        return []
    occurrences = root.get("occurrences")
    if isinstance(occurrences, Sequence) and not isinstance(occurrences, (str, bytes)):
        return list(occurrences)
    return []


def _map_occurrence(occurrence: Any, index: int) -> Element:
    if not isinstance(occurrence, Mapping):
        log.warning("Occurrence %d is not an object; using placeholder", index,
                    extra={"operation": "map_assembly", "context": {"index": index}})
        occurrence = {}

    placeholder = f"element_{index}"
    first_segment = _first_path_segment(occurrence.get("path"))
    occurrence_id = occurrence.get("id")
    occurrence_id = str(occurrence_id) if occurrence_id not in (None, "") else None

    if first_segment:
        element_id = name = first_segment
    elif occurrence_id:
        element_id = occurrence_id
        name = f"Element_{occurrence_id}"
    else:
        element_id = name = placeholder

    return Element(
        id=element_id,
        name=name,
        type=ELEMENT_TYPE,
        transform=_transform(occurrence.get("transform"), element_id),
        material=_nested_name(occurrence.get("material")),
        appearance=_nested_name(occurrence.get("appearance")),
    )


def _first_path_segment(path: Any) -> Optional[str]:
    if isinstance(path, Sequence) and not isinstance(path, (str, bytes)) and path:
        first = path[0]
        if first not in (None, ""):
            return str(first)
    return None


def _transform(value: Any, element_id: str) -> Optional[Tuple[float, ...]]:
    if value is None:
        return None
    if (isinstance(value, Sequence) and not isinstance(value, (str, bytes))
            and all(isinstance(v, Real) and not isinstance(v, bool) for v in value)):
        return tuple(float(v) for v in value)
    log.debug("Ignoring non-numeric transform on %s", element_id,
              extra={"operation": "map_assembly", "context": {"element_id": element_id}})
    return None


def _nested_name(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        name = value.get("name")
        if name not in (None, ""):
            return str(name)
    return None
