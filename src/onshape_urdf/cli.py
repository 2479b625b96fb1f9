"""Command line interface.

Usage:
    onshape-urdf import URL [--output DIR] [--secrets secrets.json]
    onshape-urdf test-connection [--secrets secrets.json]
    onshape-urdf inspect robot.urdf

Credentials are read from ``--secrets`` when given, otherwise from
ONSHAPE_ACCESS_KEY / ONSHAPE_SECRET_KEY (a ``.env`` file is honoured).
"""

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .auth import AUTH_SCHEMES
from .config import (
    ImportConfig,
    credentials_from_env,
    credentials_from_secrets_file,
    load_config,
)
from .core import Credentials
from .diagnostics import detach_handler, setup_console_logging
from .errors import OnshapeUrdfError
from .io.onshape_client import OnshapeClient
from .io.transport import RequestsTransport
from .io.urdf_parser import load_urdf, summarize
from .pipeline import import_assembly

log = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="onshape-urdf",
                                     description="Convert Onshape assemblies to URDF")
    parser.add_argument("--env-file", default=None,
                        help="Path to a .env file with ONSHAPE_* settings")
    parser.add_argument("--secrets", default=None,
                        help="Path to a secrets.json file with the API key pair")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import an assembly and write URDF")
    imp.add_argument("url", help="Onshape assembly URL (.../documents/D/w/W/e/E)")
    imp.add_argument("--output", "-o", default="urdf_output",
                     help="Output directory (default: %(default)s)")
    imp.add_argument("--no-meshes", action="store_true",
                     help="Skip STL downloads and use box geometry only")
    imp.add_argument("--workers", type=int, default=None,
                     help="Parallel mesh downloads (at least 1)")
    imp.add_argument("--auth", choices=AUTH_SCHEMES, default=None,
                     help="Authorization scheme (default from ONSHAPE_AUTH_SCHEME or hmac)")

    sub.add_parser("test-connection", help="Check the API credentials")

    insp = sub.add_parser("inspect", help="Print the structure of a URDF file")
    insp.add_argument("path", type=Path)
    return parser.parse_args(argv)


def _credentials(args: argparse.Namespace) -> Credentials:
    if args.secrets:
        return credentials_from_secrets_file(args.secrets)
    return credentials_from_env(args.env_file)


def _config(args: argparse.Namespace) -> ImportConfig:
    config = load_config(args.env_file)
    overrides = {}
    if getattr(args, "no_meshes", False):
        overrides["fetch_meshes"] = False
    if getattr(args, "workers", None) is not None:
        overrides["max_workers"] = args.workers
    if getattr(args, "auth", None):
        overrides["auth_scheme"] = args.auth
    return replace(config, **overrides)


def run_import(args: argparse.Namespace) -> int:
    result = import_assembly(args.url, _credentials(args), config=_config(args))

    out = Path(args.output)
    meshes = out / "meshes"
    meshes.mkdir(parents=True, exist_ok=True)
    for part in result.parts:
        blob = result.mesh_assets.get(part.id)
        if blob:
            (meshes / f"{part.name}.stl").write_bytes(blob)

    urdf_path = out / result.filename
    urdf_path.write_text(result.document, encoding="utf-8")
    log.info("URDF written to %s", urdf_path)
    log.info("Done! %d links, %d joints", len(result.robot.links), len(result.robot.joints))
    return 0


def run_test_connection(args: argparse.Namespace) -> int:
    config = _config(args)
    client = OnshapeClient(_credentials(args),
                           transport=RequestsTransport(timeout=config.timeout),
                           base_url=config.base_url, auth_scheme=config.auth_scheme)
    client.test_connection()
    return 0


def run_inspect(args: argparse.Namespace) -> int:
    print(json.dumps(summarize(load_urdf(args.path)), indent=2))
    return 0


COMMANDS = {
    "import": run_import,
    "test-connection": run_test_connection,
    "inspect": run_inspect,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    handler = setup_console_logging(args.log_level)
    try:
        return COMMANDS[args.command](args)
    except OnshapeUrdfError as exc:
        stage = f" during {exc.stage}" if exc.stage else ""
        log.error("Failed%s: %s", stage, exc.message)
        return 1
    finally:
        detach_handler(handler)
