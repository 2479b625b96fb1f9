"""Onshape API-key request authentication.

Onshape authenticates API-key requests with an HMAC-SHA256 signature over a
canonical string built from the request. Signer and verifier must agree on
the exact byte layout: six lower-cased fields joined by newlines, in this
order::

    method
    nonce
    date          (RFC-1123, e.g. "Mon, 01 Jan 2024 12:00:00 GMT")
    content type
    URL path
    URL query     (without the leading "?", empty when there is none)

The ``Authorization`` header is then ``On {accessKey}:HmacSHA256:{signature}``
with the base64-encoded digest.
"""

import base64
import hashlib
import hmac
import logging
import random
import string
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import urlsplit

from .core import Credentials
from .errors import AuthenticationError

log = logging.getLogger(__name__)

NONCE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
NONCE_LENGTH = 25

SCHEME_HMAC = "hmac"
SCHEME_BASIC = "basic"
AUTH_SCHEMES = (SCHEME_HMAC, SCHEME_BASIC)

DEFAULT_CONTENT_TYPE = "application/json"

# Fixed inputs of the signing self-test.
SELF_TEST_METHOD = "GET"
SELF_TEST_URL = "http://localhost:3001/api/documents"
SELF_TEST_NONCE = "testnonce123456789012345"
SELF_TEST_DATE = "Mon, 01 Jan 2024 12:00:00 GMT"

_rng = random.SystemRandom()


def generate_nonce(rng: Optional[random.Random] = None) -> str:
    """Return a 25 character nonce drawn uniformly from ``[A-Za-z0-9]``."""
    rng = rng or _rng
    return "".join(rng.choice(NONCE_ALPHABET) for _ in range(NONCE_LENGTH))


def format_auth_date(now: Optional[datetime] = None) -> str:
    """RFC-1123 timestamp in GMT, as expected in the ``Date`` header."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")


def canonical_string(method: str, url: str, nonce: str, auth_date: str,
                     content_type: str) -> Optional[str]:
    """Build the newline-joined string that gets signed.

    Returns None if ``url`` is not an absolute URL.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None

    fields = [
        method,
        nonce,
        auth_date,
        content_type,
        parts.path or "/",
        parts.query,
    ]
    return "\n".join(field.lower() for field in fields)


def sign(method: str, url: str, nonce: str, auth_date: str, content_type: str,
         access_key: str, secret_key: str) -> Optional[str]:
    """Compute the ``Authorization`` header value for one request.

    Returns None when the URL cannot be parsed; the request must not be sent
    in that case.
    """
    message = canonical_string(method, url, nonce, auth_date, content_type)
    if message is None:
        log.error("Cannot sign request: unparseable URL %s", url,
                  extra={"operation": "sign", "context": {"url": url}})
        return None

    digest = hmac.new(
        secret_key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    signature = base64.b64encode(digest).decode("utf-8")
    return f"On {access_key}:HmacSHA256:{signature}"


def basic_authorization(credentials: Credentials) -> str:
    """``Basic`` header value pairing access and secret key."""
    token = f"{credentials.access_key}:{credentials.secret_key}".encode("utf-8")
    return "Basic " + base64.b64encode(token).decode("ascii")


def build_auth_headers(method: str, url: str, credentials: Credentials,
                       scheme: str = SCHEME_HMAC,
                       content_type: str = DEFAULT_CONTENT_TYPE,
                       accept: str = "application/json",
                       nonce: Optional[str] = None,
                       auth_date: Optional[str] = None) -> Dict[str, str]:
    """Build the complete header map for an authenticated request.

    Raises:
        AuthenticationError: if the request cannot be signed.
        ValueError: for an unknown ``scheme``.
    """
    headers = {
        "Content-Type": content_type,
        "Accept": accept,
    }
    if scheme == SCHEME_BASIC:
        headers["Authorization"] = basic_authorization(credentials)
        return headers
    if scheme != SCHEME_HMAC:
        raise ValueError(f"Unknown auth scheme {scheme!r}, expected one of {AUTH_SCHEMES}")

    nonce = nonce or generate_nonce()
    auth_date = auth_date or format_auth_date()
    authorization = sign(method, url, nonce, auth_date, content_type,
                         credentials.access_key, credentials.secret_key)
    if authorization is None:
        raise AuthenticationError("Could not sign request", url=url)

    headers.update({
        "Date": auth_date,
        "On-Nonce": nonce,
        "Authorization": authorization,
    })
    return headers


def signature_self_test(credentials: Credentials) -> Optional[str]:
    """Sign the fixed self-test request and log the outcome."""
    authorization = sign(SELF_TEST_METHOD, SELF_TEST_URL, SELF_TEST_NONCE,
                         SELF_TEST_DATE, DEFAULT_CONTENT_TYPE,
                         credentials.access_key, credentials.secret_key)
    log.debug(
        "Signature self-test produced %s",
        "a signature" if authorization else "no signature",
        extra={
            "operation": "signature_self_test",
            "context": {
                "method": SELF_TEST_METHOD,
                "url": SELF_TEST_URL,
                "nonce": SELF_TEST_NONCE,
                "date": SELF_TEST_DATE,
                "access_key": credentials.masked_access_key,
                "secret_key_length": len(credentials.secret_key),
                "signature": authorization.rsplit(":", 1)[-1] if authorization else None,
            },
        },
    )
    return authorization
