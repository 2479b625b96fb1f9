"""I/O for the Onshape REST API and URDF documents.

This module provides the authenticated API client, the mapping of its raw
payloads into the normalized assembly model, and URDF reading and writing.
"""

from .mapper import map_assembly_response
from .onshape_client import OnshapeClient
from .transport import RequestsTransport, Response, Transport
from .urdf_parser import load_urdf, summarize
from .urdf_writer import suggested_filename, to_urdf_string, write_urdf

__all__ = [
    "map_assembly_response",
    "OnshapeClient",
    "RequestsTransport",
    "Response",
    "Transport",
    "load_urdf",
    "summarize",
    "suggested_filename",
    "to_urdf_string",
    "write_urdf",
]
