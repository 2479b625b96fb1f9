"""Onshape document URL parsing."""

import re

from .core import AssemblyReference
from .errors import InvalidReferenceError

EXPECTED_URL_FORMAT = (
    "https://cad.onshape.com/documents/{documentId}/w/{workspaceId}/e/{elementId}"
)

_ASSEMBLY_URL = re.compile(r"/documents/([^/?#]+)/w/([^/?#]+)/e/([^/?#]+)")


def parse_assembly_url(url: str) -> AssemblyReference:
    """Extract the document, workspace and element ids from an Onshape URL.

    Accepts URLs like::

        https://cad.onshape.com/documents/{did}/w/{wid}/e/{eid}

    Raises:
        InvalidReferenceError: if ``url`` does not contain the pattern.
    """
    match = _ASSEMBLY_URL.search(url or "")
    if match is None:
        raise InvalidReferenceError(url, EXPECTED_URL_FORMAT)
    return AssemblyReference(
        document_id=match.group(1),
        workspace_id=match.group(2),
        element_id=match.group(3),
    )
