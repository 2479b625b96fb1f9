"""HTTP transport used by the Onshape client.

The client only needs "send this request, give me status, headers and
body". ``RequestsTransport`` provides that on top of a ``requests`` session;
tests substitute an in-memory object with the same ``request`` method.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import requests

from onshape_urdf.errors import TransportError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Response:
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class Transport:
    """Interface of the request sender the client talks to."""

    def request(self, method: str, url: str, headers: Mapping[str, str]) -> Response:
        raise NotImplementedError


class RequestsTransport(Transport):
    """Transport backed by ``requests``. Redirects are returned, not followed."""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method: str, url: str, headers: Mapping[str, str]) -> Response:
        try:
            resp = self.session.request(method, url, headers=dict(headers),
                                        allow_redirects=False, timeout=self.timeout)
        except requests.RequestException as exc:
            log.error("%s %s failed: %s", method, url, exc,
                      extra={"operation": "transport", "context": {"url": url}})
            raise TransportError(f"Network error: {exc}", url=url, status=0) from exc
        return Response(status=resp.status_code, headers=dict(resp.headers), body=resp.content)
