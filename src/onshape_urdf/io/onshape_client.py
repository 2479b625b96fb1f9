"""Authenticated client for the Onshape REST API."""

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode, urljoin, urlsplit

from onshape_urdf.auth import SCHEME_HMAC, build_auth_headers, signature_self_test
from onshape_urdf.config import validate_credentials
from onshape_urdf.core import AssemblyReference, Credentials
from onshape_urdf.errors import (
    AssetFetchError,
    AuthenticationError,
    MalformedResponseError,
    OnshapeUrdfError,
    TransportError,
    truncate_body,
)
from onshape_urdf.io.transport import RequestsTransport, Response, Transport

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://cad.onshape.com/api"
JSON = "application/json"
OCTET_STREAM = "application/octet-stream"
REDIRECT_STATUSES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 5

_HINTS = {
    401: ("Authentication failed (HTTP 401)", [
        "Check your Onshape API Access Key and Secret Key",
        "Ensure credentials are not expired",
        "Verify the API key has proper permissions",
    ]),
    403: ("Access forbidden (HTTP 403)", [
        "Your API credentials may not have permission to access this assembly",
        "Check if the assembly is public or you have sharing permissions",
        "Verify the document/assembly exists and is accessible",
    ]),
    404: ("Not found (HTTP 404)", [
        "Check the Onshape URL format: "
        "https://cad.onshape.com/documents/{documentId}/w/{workspaceId}/e/{elementId}",
        "Ensure the assembly exists and is not deleted",
        "Verify you have access to the document",
    ]),
    429: ("Rate limit exceeded (HTTP 429)", [
        "Too many requests to Onshape API",
        "Wait a few minutes before trying again",
    ]),
}
_SERVER_HINTS = [
    "Onshape server is experiencing issues",
    "Try again in a few minutes",
]
_LOGIN_PAGE_HINTS = [
    "The API returned an HTML login page instead of JSON data",
    "Check your Onshape API Access Key and Secret Key",
]


def _describe(title: str, hints) -> str:
    return title + "\n\n" + "\n".join(f"- {hint}" for hint in hints)


class OnshapeClient:
    """Authenticated client for the Onshape REST API.

    Every request carries a fresh authorization header built from
    ``credentials`` with ``auth_scheme`` (HMAC request signing by default).
    """

    def __init__(self, credentials: Credentials, transport: Optional[Transport] = None,
                 base_url: str = DEFAULT_BASE_URL, auth_scheme: str = SCHEME_HMAC):
        self.credentials = credentials
        self.transport = transport or RequestsTransport()
        self.base_url = base_url.rstrip("/")
        self.auth_scheme = auth_scheme

    def url_for(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        qs = urlencode(params) if params else ""
        return f"{self.base_url}{path}" + (f"?{qs}" if qs else "")

    def _send(self, url: str, accept: str) -> Response:
        headers = build_auth_headers("GET", url, self.credentials,
                                     scheme=self.auth_scheme, accept=accept)
        return self.transport.request("GET", url, headers)

    def _same_host(self, url: str) -> bool:
        return urlsplit(url).netloc == urlsplit(self.base_url).netloc

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None,
            accept: str = JSON) -> Response:
        """Authenticated GET. Follows redirects, re-signing those to the API host."""
        url = self.url_for(path, params)
        log.debug("GET %s", url, extra={"operation": "get", "context": {"url": url}})
        resp = self._send(url, accept)

        for _ in range(MAX_REDIRECTS):
            if resp.status not in REDIRECT_STATUSES:
                break
            location = next((v for k, v in resp.headers.items() if k.lower() == "location"), None)
            if not location:
                break
            url = urljoin(url, location)
            if self._same_host(url):
                resp = self._send(url, accept)
            else:
                # Pre-signed external redirect, no credentials
                resp = self.transport.request("GET", url, {"Accept": accept})

        self._raise_for_status(resp, url)
        return resp

    def _raise_for_status(self, resp: Response, url: str) -> None:
        if resp.ok:
            return
        status = resp.status
        log.error("Onshape API returned HTTP %d for %s", status, url,
                  extra={"operation": "get",
                         "context": {"url": url, "status": status,
                                     "body": truncate_body(resp.body)}})
        if status in (401, 403):
            raise AuthenticationError(_describe(*_HINTS[status]), url=url,
                                      status=status, body=resp.body)
        if status in _HINTS:
            raise TransportError(_describe(*_HINTS[status]), url=url,
                                 status=status, body=resp.body)
        if status >= 500:
            raise TransportError(_describe(f"Server error (HTTP {status})", _SERVER_HINTS),
                                 url=url, status=status, body=resp.body)
        raise TransportError(f"Request failed with HTTP {status}", url=url,
                             status=status, body=resp.body)

    def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """GET a JSON document.

        Raises:
            AuthenticationError: the service answered with an HTML login page.
            MalformedResponseError: the body is not valid JSON.
        """
        resp = self.get(path, params, accept=JSON)
        url = self.url_for(path, params)
        head = resp.body[:200].lstrip().lower()
        if "text/html" in resp.content_type.lower() or head.startswith((b"<!doctype html", b"<html")):
            raise AuthenticationError(
                _describe("Authentication error (HTML response)", _LOGIN_PAGE_HINTS),
                url=url, status=resp.status, body=resp.body)
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Response is not valid JSON: {exc}",
                                         url=url, body=resp.body) from exc

    def get_assembly(self, reference: AssemblyReference) -> Any:
        """Raw assembly definition of ``reference``."""
        log.info("Fetching assembly definition", extra={
            "operation": "get_assembly",
            "context": {"document_id": reference.document_id,
                        "element_id": reference.element_id}})
        return self.get_json(reference.api_path)

    def get_part_metadata(self, reference: AssemblyReference, part_id: str) -> Any:
        return self.get_json(reference.part_path(part_id, "metadata"))

    def download_stl(self, reference: AssemblyReference, part_id: str) -> bytes:
        """Binary STL of one part.

        Raises:
            AssetFetchError: for any failure, including an empty body.
        """
        path = reference.part_path(part_id, "stl")
        try:
            resp = self.get(path, accept=OCTET_STREAM)
        except OnshapeUrdfError as exc:
            raise AssetFetchError(part_id, exc.message, url=self.url_for(path),
                                  status=getattr(exc, "status", None)) from exc
        if not resp.body:
            raise AssetFetchError(part_id, "empty response body", url=self.url_for(path),
                                  status=resp.status)
        log.info("Downloaded STL for %s (%d bytes)", part_id, len(resp.body),
                 extra={"operation": "download_stl", "context": {"part_id": part_id}})
        return resp.body

    def test_connection(self) -> bool:
        """Check that the credentials are accepted by the API.

        Tries ``/documents`` first and ``/users/current`` when that answers
        401 or 404.
        """
        validate_credentials(self.credentials)
        signature_self_test(self.credentials)

        context: Dict[str, Any] = {"access_key": self.credentials.masked_access_key}
        try:
            self.get("/documents")
        except (AuthenticationError, TransportError) as exc:
            if exc.status not in (401, 404):
                raise
            log.warning("Primary endpoint failed (HTTP %s), trying fallback", exc.status,
                        extra={"operation": "test_connection", "context": context})
            self.get("/users/current")
        log.info("API connection successful",
                 extra={"operation": "test_connection", "context": context})
        return True
