"""End-to-end import: Onshape assembly URL in, URDF document out.

Stages run in order::

    resolve -> fetch -> map -> assets -> build -> serialize

Any fatal error is tagged with the stage it happened in and re-raised; a
failed run never returns a partial result. Mesh downloads are the only
stage that tolerates failures: a part whose STL cannot be fetched is drawn
with a box.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import ImportConfig, validate_credentials
from .core import Assembly, AssemblyReference, Credentials, Part, RobotModel
from .errors import OnshapeUrdfError
from .io.mapper import map_assembly_response
from .io.onshape_client import OnshapeClient
from .io.transport import RequestsTransport, Transport
from .io.urdf_writer import suggested_filename, to_urdf_string
from .kinematics import build_robot_model
from .parts import extract_parts
from .reference import parse_assembly_url

log = logging.getLogger(__name__)


class AssetStore:
    """Source of binary mesh assets keyed by part id."""

    def fetch(self, part_id: str) -> Optional[bytes]:
        raise NotImplementedError


class MappingAssetStore(AssetStore):
    """Serves meshes from an in-memory mapping; missing ids are simply absent."""

    def __init__(self, assets: Optional[Mapping[str, bytes]] = None):
        self.assets = dict(assets or {})

    def fetch(self, part_id: str) -> Optional[bytes]:
        return self.assets.get(part_id)


class OnshapeAssetStore(AssetStore):
    """Downloads part STLs through an OnshapeClient."""

    def __init__(self, client: OnshapeClient, reference: AssemblyReference):
        self.client = client
        self.reference = reference

    def fetch(self, part_id: str) -> Optional[bytes]:
        return self.client.download_stl(self.reference, part_id)


@dataclass(frozen=True)
class ImportResult:
    robot: RobotModel
    document: str
    filename: str
    assembly: Assembly
    parts: Tuple[Part, ...]
    mesh_assets: Dict[str, bytes] = field(default_factory=dict, repr=False)


@contextmanager
def _stage(name: str, context: Optional[Dict[str, Any]] = None):
    try:
        yield
    except OnshapeUrdfError as exc:
        if exc.stage is None:
            exc.stage = name
        log.error("Import failed during %s: %s", name, exc.message,
                  extra={"operation": name, "context": dict(context or {})})
        raise


def fetch_mesh_assets(parts: Sequence[Part], store: AssetStore,
                      max_workers: int = 4) -> Dict[str, bytes]:
    """Download one mesh per distinct part id with a bounded worker pool.

    A failing download is logged and the part is left out of the result, so
    it is drawn with a box. This includes exceptions other than
    ``OnshapeUrdfError`` raised by a custom store: those are logged with
    their traceback, then the import carries on.
    """
    part_ids: List[str] = list(dict.fromkeys(part.id for part in parts))
    assets: Dict[str, bytes] = {}
    if not part_ids:
        return assets

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(store.fetch, part_id): part_id for part_id in part_ids}
        for future in as_completed(futures):
            part_id = futures[future]
            try:
                blob = future.result()
            except OnshapeUrdfError as exc:
                log.warning("Mesh for part %s unavailable, using box geometry: %s",
                            part_id, exc.message,
                            extra={"operation": "fetch_mesh_assets",
                                   "context": {"part_id": part_id,
                                               "status": getattr(exc, "status", None)}})
                continue
            except Exception:
                log.exception("Asset store failed for part %s, using box geometry", part_id,
                              extra={"operation": "fetch_mesh_assets",
                                     "context": {"part_id": part_id}})
                continue
            if blob:
                assets[part_id] = blob

    log.info("Fetched %d of %d meshes", len(assets), len(part_ids),
             extra={"operation": "fetch_mesh_assets", "context": {"workers": max_workers}})
    return assets


def convert_assembly_response(response: Any, reference: AssemblyReference,
                              asset_store: Optional[AssetStore] = None,
                              max_workers: int = 4) -> ImportResult:
    """Run every stage after the fetch on an already downloaded payload."""
    context = {"document_id": reference.document_id, "element_id": reference.element_id}

    with _stage("map", context):
        assembly = map_assembly_response(response, reference.element_id)
        parts = extract_parts(assembly)
    if not parts:
        log.warning("Assembly %r has no occurrences", assembly.name,
                    extra={"operation": "map", "context": context})

    mesh_assets: Dict[str, bytes] = {}
    if asset_store is not None:
        with _stage("assets", context):
            mesh_assets = fetch_mesh_assets(parts, asset_store, max_workers)

    with _stage("build", context):
        robot = build_robot_model(assembly, parts, mesh_assets)

    with _stage("serialize", context):
        document = to_urdf_string(robot)

    return ImportResult(
        robot=robot,
        document=document,
        filename=suggested_filename(robot),
        assembly=assembly,
        parts=tuple(parts),
        mesh_assets=mesh_assets,
    )


def import_assembly(url: str, credentials: Credentials, *,
                    config: Optional[ImportConfig] = None,
                    transport: Optional[Transport] = None,
                    asset_store: Optional[AssetStore] = None) -> ImportResult:
    """Import the Onshape assembly at ``url`` and convert it to URDF.

    Args:
        url: Browser URL of the assembly tab.
        credentials: API key pair, used for this call only.
        config: Import settings; defaults to ``ImportConfig()``.
        transport: Request sender; defaults to a ``requests`` session.
        asset_store: Mesh source; defaults to STL downloads from Onshape
            when ``config.fetch_meshes`` is set.

    Raises:
        OnshapeUrdfError: the first fatal error, with ``stage`` set.
    """
    config = config or ImportConfig()

    with _stage("resolve", {"url": url}):
        reference = parse_assembly_url(url)
        validate_credentials(credentials)

    context = {"document_id": reference.document_id, "element_id": reference.element_id}
    client = OnshapeClient(
        credentials,
        transport=transport or RequestsTransport(timeout=config.timeout),
        base_url=config.base_url,
        auth_scheme=config.auth_scheme,
    )

    with _stage("fetch", context):
        response = client.get_assembly(reference)

    if asset_store is None and config.fetch_meshes:
        asset_store = OnshapeAssetStore(client, reference)

    result = convert_assembly_response(response, reference, asset_store, config.max_workers)
    log.info("Imported %s: %d links, %d joints", result.filename,
             len(result.robot.links), len(result.robot.joints),
             extra={"operation": "import_assembly", "context": context})
    return result
