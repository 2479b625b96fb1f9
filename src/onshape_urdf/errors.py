"""Exception hierarchy for the Onshape to URDF importer.

Every fatal failure of an import run is an ``OnshapeUrdfError``. The pipeline
records the stage it failed in on ``stage``. Messages carry the attempted
URL, identifiers and a truncated response body, never credential material.
"""

from typing import Optional


BODY_PREVIEW_LIMIT = 200


def truncate_body(body, limit: int = BODY_PREVIEW_LIMIT) -> str:
    """Return a printable preview of a response body."""
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        body = bytes(body).decode("utf-8", errors="replace")
    text = str(body)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


class OnshapeUrdfError(Exception):
    """Base class for all importer errors."""

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class InvalidReferenceError(OnshapeUrdfError):
    """The document URL does not point at an assembly tab."""

    def __init__(self, url: str, expected: str):
        super().__init__(f"Invalid Onshape assembly URL: {url!r}. Expected format: {expected}")
        self.url = url
        self.expected = expected


class _HttpError(OnshapeUrdfError):

    def __init__(self, message: str, *, url: Optional[str] = None,
                 status: Optional[int] = None, body=None):
        self.url = url
        self.status = status
        self.body = truncate_body(body)
        details = []
        if url:
            details.append(f"Request URL: {url}")
        if self.body:
            details.append(f"Response: {self.body}")
        if details:
            message = message + "\n\n" + "\n".join(details)
        super().__init__(message)


class AuthenticationError(_HttpError):
    """The remote service rejected the credentials (or they could not be used)."""


class TransportError(_HttpError):
    """The request did not complete, or the service answered with an error status.

    ``status`` is 0 when no HTTP response was received at all.
    """


class MalformedResponseError(_HttpError):
    """The response payload does not have the expected shape."""


class AssetFetchError(_HttpError):
    """A per-part mesh download failed. Recovered by the pipeline."""

    def __init__(self, part_id: str, message: str, *, url: Optional[str] = None,
                 status: Optional[int] = None, body=None):
        super().__init__(f"Mesh download failed for part {part_id!r}: {message}",
                         url=url, status=status, body=body)
        self.part_id = part_id


class MalformedDocumentError(OnshapeUrdfError, ValueError):
    """A URDF document could not be read back into a RobotModel."""


class ConfigurationError(OnshapeUrdfError, ValueError):
    """An import setting is missing or out of range."""

    def __init__(self, message: str):
        super().__init__(message, stage="config")
