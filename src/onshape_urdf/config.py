"""Import settings and credential sources.

Settings come from the environment, optionally seeded from a ``.env`` file
through python-dotenv::

    ONSHAPE_ACCESS_KEY / ONSHAPE_SECRET_KEY   API key pair
    ONSHAPE_API            API base URL (default https://cad.onshape.com/api)
    ONSHAPE_AUTH_SCHEME    "hmac" (default) or "basic"
    ONSHAPE_MAX_WORKERS    parallel mesh downloads (default 4)
    ONSHAPE_TIMEOUT        per-request timeout in seconds (default: none)
    ONSHAPE_FETCH_MESHES   "0"/"false" to skip STL downloads

Credentials can also be read from a ``secrets.json`` file of the form
``{"onshape": {"accessKey": ..., "secretKey": ..., "testAssemblyUrl": ...}}``.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .auth import AUTH_SCHEMES, SCHEME_HMAC
from .core import Credentials
from .errors import AuthenticationError, ConfigurationError

DEFAULT_BASE_URL = "https://cad.onshape.com/api"
DEFAULT_MAX_WORKERS = 4
MIN_KEY_LENGTH = 10


@dataclass(frozen=True)
class ImportConfig:
    base_url: str = DEFAULT_BASE_URL
    auth_scheme: str = SCHEME_HMAC
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout: Optional[float] = None
    fetch_meshes: bool = True

    def __post_init__(self):
        if self.auth_scheme not in AUTH_SCHEMES:
            raise ConfigurationError(
                f"auth_scheme must be one of {AUTH_SCHEMES}, got {self.auth_scheme!r}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def _env_number(name: str, kind, default):
    value = os.getenv(name)
    if not value:
        return default
    try:
        return kind(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def load_config(env_file: Optional[Union[str, Path]] = None) -> ImportConfig:
    """Read an ImportConfig from the environment (after loading ``env_file``).

    Raises:
        ConfigurationError: for unparseable or out-of-range values.
    """
    load_dotenv(env_file)
    return ImportConfig(
        base_url=os.getenv("ONSHAPE_API") or DEFAULT_BASE_URL,
        auth_scheme=(os.getenv("ONSHAPE_AUTH_SCHEME") or SCHEME_HMAC).strip().lower(),
        max_workers=_env_number("ONSHAPE_MAX_WORKERS", int, DEFAULT_MAX_WORKERS),
        timeout=_env_number("ONSHAPE_TIMEOUT", float, None),
        fetch_meshes=_env_bool(os.getenv("ONSHAPE_FETCH_MESHES"), True),
    )


def credentials_from_env(env_file: Optional[Union[str, Path]] = None) -> Credentials:
    load_dotenv(env_file)
    return Credentials(
        access_key=os.getenv("ONSHAPE_ACCESS_KEY", "").strip(),
        secret_key=os.getenv("ONSHAPE_SECRET_KEY", "").strip(),
    )


def credentials_from_secrets_file(path: Union[str, Path]) -> Credentials:
    """Read the API key pair from a ``secrets.json`` file.

    Raises:
        AuthenticationError: if the file is missing, unreadable or has no
            ``onshape`` section.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise AuthenticationError(f"Cannot read secrets file {path}: {exc}") from exc

    section = data.get("onshape") if isinstance(data, dict) else None
    if not isinstance(section, dict):
        raise AuthenticationError(f"Secrets file {path} has no 'onshape' section")
    return Credentials(
        access_key=str(section.get("accessKey", "")).strip(),
        secret_key=str(section.get("secretKey", "")).strip(),
    )


def validate_credentials(credentials: Credentials) -> Credentials:
    """Reject obviously unusable key pairs before talking to the API."""
    if not credentials.access_key or not credentials.secret_key:
        raise AuthenticationError("Invalid credentials: Access Key and Secret Key are required")
    if len(credentials.access_key) < MIN_KEY_LENGTH or len(credentials.secret_key) < MIN_KEY_LENGTH:
        raise AuthenticationError(
            "Invalid credentials: Access Key and Secret Key appear to be too short")
    return credentials
