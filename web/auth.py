"""HTTP Basic authentication against the configured user table."""

from __future__ import annotations

import base64
import binascii
import hmac
from typing import Mapping, Optional

from gallery.logging_config import get_logger

logger = get_logger(__name__)

UNAUTHORIZED_BODY = "please authenticate"


class AuthFailure(Exception):
    """Request rejected by basic authentication. The message is the reason."""


def parse_basic_authorization(header: Optional[str]) -> tuple[str, str]:
    """Return (username, password) from an `Authorization: Basic ...` header.

    Raises AuthFailure when the header is missing or malformed.
    """
    if not header:
        raise AuthFailure("basic auth header not found")
    scheme, _, encoded = header.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        raise AuthFailure("basic auth header not found")
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise AuthFailure(f"error while decoding basic auth header: {exc}") from exc
    username, sep, password = decoded.partition(":")
    if not sep:
        raise AuthFailure("basic auth credentials missing ':' separator")
    return username, password


def check_credentials(username: str, password: str, users: Mapping[str, str]) -> None:
    """Raise AuthFailure unless `password` matches the configured one for `username`."""
    expected = users.get(username)
    if expected is None:
        raise AuthFailure(f"user {username!r} is not listed as authorized")
    if not hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8")):
        raise AuthFailure(f"password is not valid for user {username!r}")


def authenticate(header: Optional[str], users: Mapping[str, str]) -> str:
    """Validate an Authorization header; return the username on success."""
    username, password = parse_basic_authorization(header)
    check_credentials(username, password, users)
    return username


def challenge_headers(realm: str) -> dict[str, str]:
    return {
        "Cache-Control": "no-cache",
        "WWW-Authenticate": f'Basic realm="{realm}"',
    }
