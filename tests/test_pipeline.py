"""End-to-end import tests against an in-memory Onshape API."""

import json
import logging
import threading
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests

from onshape_urdf import convert_assembly_response, import_assembly
from onshape_urdf.config import ImportConfig
from onshape_urdf.core import AssemblyReference, Box, Credentials, Mesh, Part
from onshape_urdf.diagnostics import DiagnosticsHandler, attach_handler, detach_handler
from onshape_urdf.errors import (
    AssetFetchError,
    AuthenticationError,
    InvalidReferenceError,
    MalformedResponseError,
    TransportError,
)
from onshape_urdf.io import OnshapeClient, RequestsTransport, Response, Transport
from onshape_urdf.pipeline import AssetStore, MappingAssetStore, fetch_mesh_assets

FIXTURES = Path(__file__).parent / "fixtures"

ACCESS_KEY = "AKtestaccesskey0001"
SECRET_KEY = "SKtestsecretkey000000000000000001"
CREDS = Credentials(ACCESS_KEY, SECRET_KEY)

API = "https://cad.onshape.com/api"
URL = "https://cad.onshape.com/documents/D1/w/W1/e/E1"
ASSEMBLY_URL = f"{API}/assemblies/d/D1/w/W1/e/E1"
REFERENCE = AssemblyReference("D1", "W1", "E1")


def stl_url(part_id):
    return f"{API}/parts/d/D1/w/W1/e/{part_id}/stl"


def json_response(payload, status=200):
    return Response(status, {"Content-Type": "application/json"}, json.dumps(payload).encode())


class FakeTransport(Transport):
    """Answers from a URL -> Response table and records every request."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []
        self._lock = threading.Lock()

    def request(self, method, url, headers):
        with self._lock:
            self.requests.append((method, url, dict(headers)))
        answer = self.routes.get(url, Response(404, {}, b'{"message": "not found"}'))
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def urls(self):
        return [url for _, url, _ in self.requests]


@pytest.fixture
def payload():
    return json.loads((FIXTURES / "assembly.json").read_text())


@pytest.fixture
def diagnostics():
    handler = attach_handler(DiagnosticsHandler())
    yield handler
    detach_handler(handler)


def test_full_import(payload):
    transport = FakeTransport({
        ASSEMBLY_URL: json_response(payload),
        stl_url("MShoulder"): Response(200, {}, b"solid shoulder"),
    })
    result = import_assembly(URL, CREDS, transport=transport)

    assert result.filename == "gripper_arm.urdf"
    assert result.document.startswith("<?xml")
    assert result.mesh_assets == {"MShoulder": b"solid shoulder"}
    assert len(result.robot.links) == 4
    assert len(result.robot.joints) == 3
    assert isinstance(result.robot.links[1].visual.geometry, Mesh)
    # Failed downloads fall back to boxes without aborting the run
    for i in (0, 2, 3):
        assert isinstance(result.robot.links[i].visual.geometry, Box)

    assert transport.urls[0] == ASSEMBLY_URL
    assert sorted(transport.urls[1:]) == sorted(
        stl_url(p) for p in ("MBase", "MShoulder", "occ-elbow", "MGripper"))
    for _, _, headers in transport.requests:
        assert headers["Authorization"].startswith(f"On {ACCESS_KEY}:HmacSHA256:")
        assert SECRET_KEY not in "".join(headers.values())


def test_import_without_meshes(payload):
    transport = FakeTransport({ASSEMBLY_URL: json_response(payload)})
    result = import_assembly(URL, CREDS, config=ImportConfig(fetch_meshes=False),
                             transport=transport)
    assert transport.urls == [ASSEMBLY_URL]
    assert result.mesh_assets == {}


def test_basic_auth_scheme(payload):
    transport = FakeTransport({ASSEMBLY_URL: json_response(payload)})
    import_assembly(URL, CREDS, config=ImportConfig(auth_scheme="basic", fetch_meshes=False),
                    transport=transport)
    _, _, headers = transport.requests[0]
    assert headers["Authorization"].startswith("Basic ")
    assert "On-Nonce" not in headers


def test_invalid_url_fails_before_any_request():
    transport = FakeTransport()
    with pytest.raises(InvalidReferenceError) as info:
        import_assembly("https://cad.onshape.com/documents/D1/v/V1/e/E1", CREDS,
                        transport=transport)
    assert info.value.stage == "resolve"
    assert str(info.value).startswith("[resolve]")
    assert transport.requests == []


def test_short_credentials_fail_in_resolve():
    with pytest.raises(AuthenticationError) as info:
        import_assembly(URL, Credentials("short", "short"), transport=FakeTransport())
    assert info.value.stage == "resolve"


def test_unauthorized(payload):
    transport = FakeTransport({ASSEMBLY_URL: Response(401, {}, b'{"message": "Unauthenticated"}')})
    with pytest.raises(AuthenticationError) as info:
        import_assembly(URL, CREDS, transport=transport)
    assert info.value.stage == "fetch"
    assert info.value.status == 401
    assert ASSEMBLY_URL in str(info.value)
    assert "Unauthenticated" in str(info.value)
    assert SECRET_KEY not in str(info.value)


@pytest.mark.parametrize("status, hint", [
    (404, "Not found"),
    (429, "Rate limit"),
    (503, "Server error"),
    (418, "HTTP 418"),
])
def test_error_statuses(status, hint):
    transport = FakeTransport({ASSEMBLY_URL: Response(status, {}, b"nope")})
    with pytest.raises(TransportError) as info:
        import_assembly(URL, CREDS, transport=transport)
    assert info.value.status == status
    assert hint in str(info.value)


def test_network_failure():
    transport = FakeTransport({
        ASSEMBLY_URL: TransportError("Network error: unreachable", url=ASSEMBLY_URL, status=0),
    })
    with pytest.raises(TransportError) as info:
        import_assembly(URL, CREDS, transport=transport)
    assert info.value.stage == "fetch"
    assert info.value.status == 0


def test_html_login_page():
    page = Response(200, {"Content-Type": "text/html"}, b"<!DOCTYPE html><html>Sign in</html>")
    with pytest.raises(AuthenticationError, match="HTML"):
        import_assembly(URL, CREDS, transport=FakeTransport({ASSEMBLY_URL: page}))


def test_invalid_json():
    bad = Response(200, {"Content-Type": "application/json"}, b"{not json")
    with pytest.raises(MalformedResponseError) as info:
        import_assembly(URL, CREDS, transport=FakeTransport({ASSEMBLY_URL: bad}))
    assert info.value.stage == "fetch"


def test_non_object_payload_fails_in_map():
    transport = FakeTransport({ASSEMBLY_URL: json_response([1, 2, 3])})
    with pytest.raises(MalformedResponseError) as info:
        import_assembly(URL, CREDS, transport=transport)
    assert info.value.stage == "map"


def test_empty_assembly(diagnostics):
    transport = FakeTransport({ASSEMBLY_URL: json_response({"name": "Empty"})})
    result = import_assembly(URL, CREDS, transport=transport)
    assert result.robot.links == ()
    assert result.robot.joints == ()
    assert any(e.level == "warning" and "no occurrences" in e.message
               for e in diagnostics.events())


def test_same_host_redirect_is_resigned(payload):
    moved = f"{API}/v6/assemblies/d/D1/w/W1/e/E1"
    transport = FakeTransport({
        ASSEMBLY_URL: Response(307, {"Location": "/api/v6/assemblies/d/D1/w/W1/e/E1"}),
        moved: json_response(payload),
    })
    client = OnshapeClient(CREDS, transport=transport)
    assert client.get_assembly(REFERENCE)["name"] == "Gripper Arm"
    assert transport.urls == [ASSEMBLY_URL, moved]
    assert transport.requests[1][2]["Authorization"].startswith("On ")


def test_external_redirect_is_not_signed():
    blob_url = "https://blobs.example.com/stl/abc?signature=xyz"
    transport = FakeTransport({
        stl_url("P1"): Response(302, {"location": blob_url}),
        blob_url: Response(200, {}, b"solid"),
    })
    client = OnshapeClient(CREDS, transport=transport)
    assert client.download_stl(REFERENCE, "P1") == b"solid"
    assert "Authorization" not in transport.requests[1][2]


def test_redirect_loop_gives_up():
    transport = FakeTransport({ASSEMBLY_URL: Response(302, {"Location": ASSEMBLY_URL})})
    client = OnshapeClient(CREDS, transport=transport)
    with pytest.raises(TransportError):
        client.get_assembly(REFERENCE)
    assert len(transport.requests) == 6


def test_empty_stl_is_a_fetch_error():
    transport = FakeTransport({stl_url("P1"): Response(200, {}, b"")})
    with pytest.raises(AssetFetchError) as info:
        OnshapeClient(CREDS, transport=transport).download_stl(REFERENCE, "P1")
    assert info.value.part_id == "P1"


def test_connection_falls_back_to_current_user():
    transport = FakeTransport({f"{API}/users/current": json_response({"id": "u1"})})
    client = OnshapeClient(CREDS, transport=transport)
    assert client.test_connection() is True
    assert transport.urls == [f"{API}/documents", f"{API}/users/current"]


def test_connection_forbidden_is_not_retried():
    transport = FakeTransport({f"{API}/documents": Response(403, {}, b"")})
    with pytest.raises(AuthenticationError):
        OnshapeClient(CREDS, transport=transport).test_connection()
    assert transport.urls == [f"{API}/documents"]


def test_secret_never_reaches_diagnostics(payload, diagnostics):
    transport = FakeTransport({ASSEMBLY_URL: json_response(payload)})
    import_assembly(URL, CREDS, transport=transport)
    with pytest.raises(AuthenticationError):
        import_assembly(URL, CREDS, transport=FakeTransport(
            {ASSEMBLY_URL: Response(401, {}, b"")}))
    OnshapeClient(CREDS, transport=FakeTransport(
        {f"{API}/documents": json_response([])})).test_connection()

    exported = diagnostics.export_json()
    assert diagnostics.events()
    assert SECRET_KEY not in exported
    assert ACCESS_KEY not in exported


def test_diagnostics_redaction_and_order():
    handler = DiagnosticsHandler(capacity=2, redact=["hunter2"])
    logger = logging.getLogger("onshape_urdf.test")
    attach_handler(handler)
    try:
        logger.info("first")
        logger.warning("password is hunter2", extra={
            "operation": "op", "context": {"value": "hunter2", "n": 3}})
        logger.error("third")
    finally:
        detach_handler(handler)

    events = handler.events()
    assert [e.message for e in events] == ["third", "password is ***"]
    assert events[1].operation == "op"
    assert events[1].context == {"value": "***", "n": 3}
    assert json.loads(handler.export_json())[0]["level"] == "error"
    handler.clear()
    assert handler.events() == []


def test_convert_with_mapping_store(payload):
    store = MappingAssetStore({"MGripper": b"solid gripper"})
    result = convert_assembly_response(payload, REFERENCE, store, max_workers=1)
    assert result.mesh_assets == {"MGripper": b"solid gripper"}
    assert isinstance(result.robot.links[3].visual.geometry, Mesh)
    assert [link.name for link in result.robot.links] == [
        "base_link", "link_mshoulder", "link_element_occ_elbow", "link_mgripper"]


def test_convert_is_deterministic(payload):
    first = convert_assembly_response(payload, REFERENCE)
    second = convert_assembly_response(payload, REFERENCE)
    assert first.document == second.document


class CountingStore(AssetStore):

    def __init__(self, failing=(), crashing=()):
        self.calls = []
        self.failing = set(failing)
        self.crashing = set(crashing)
        self._lock = threading.Lock()

    def fetch(self, part_id):
        with self._lock:
            self.calls.append(part_id)
        if part_id in self.crashing:
            raise RuntimeError("store bug")
        if part_id in self.failing:
            raise AssetFetchError(part_id, "HTTP 404", status=404)
        return f"solid {part_id}".encode()


def parts(*ids):
    return [Part(id=i, name=i) for i in ids]


def test_fetch_mesh_assets_dedupes_and_skips_failures():
    store = CountingStore(failing={"b"})
    assets = fetch_mesh_assets(parts("a", "b", "a", "c"), store, max_workers=3)
    assert sorted(store.calls) == ["a", "b", "c"]
    assert assets == {"a": b"solid a", "c": b"solid c"}


def test_fetch_mesh_assets_survives_store_bugs(diagnostics):
    store = CountingStore(crashing={"b"})
    assets = fetch_mesh_assets(parts("a", "b"), store, max_workers=2)
    assert assets == {"a": b"solid a"}
    assert any(e.level == "error" and "part b" in e.message for e in diagnostics.events())


def test_import_survives_store_bugs(payload):
    transport = FakeTransport({ASSEMBLY_URL: json_response(payload)})
    store = CountingStore(crashing={"MShoulder"})
    result = import_assembly(URL, CREDS, transport=transport, asset_store=store)
    assert set(result.mesh_assets) == {"MBase", "occ-elbow", "MGripper"}
    assert isinstance(result.robot.links[1].visual.geometry, Box)


def test_fetch_mesh_assets_empty():
    store = CountingStore()
    assert fetch_mesh_assets([], store) == {}
    assert store.calls == []


def test_part_metadata_path():
    metadata_url = f"{API}/parts/d/D1/w/W1/e/P1/metadata"
    transport = FakeTransport({metadata_url: json_response({"name": "Bracket"})})
    client = OnshapeClient(CREDS, transport=transport)
    assert client.get_part_metadata(REFERENCE, "P1") == {"name": "Bracket"}


class FakeSession:

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(status_code=302, headers={"Location": "/next"}, content=b"")


def test_requests_transport_does_not_follow_redirects():
    session = FakeSession()
    resp = RequestsTransport(session=session, timeout=3).request("GET", ASSEMBLY_URL, {"A": "b"})
    assert resp.status == 302
    assert resp.headers == {"Location": "/next"}
    (_, _, kwargs), = session.calls
    assert kwargs == {"headers": {"A": "b"}, "allow_redirects": False, "timeout": 3}


def test_requests_transport_connection_error():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as info:
        RequestsTransport(session=session).request("GET", ASSEMBLY_URL, {})
    assert info.value.status == 0
    assert "refused" in str(info.value)
