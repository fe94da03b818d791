"""Signed bearer tokens for team members (HS256 JWT, stdlib HMAC only).

Encode/decode only; resolving the user behind a token is ``core.auth``'s job.
"""

import hashlib
import hmac
import base64
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ISSUER = "dataroom"


@dataclass(frozen=True)
class TokenPayload:
    sub: str
    role: str
    exp: datetime


def create_token(
    subject: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_hours: int = 24,
) -> str:
    """Create a signed token for ``subject`` (a ``users.user_id``).

    Raises:
        ValueError: for any algorithm other than HS256.
    """
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    now = int(time.time())
    header = {"alg": algorithm, "typ": "JWT"}
    payload = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + expires_hours * 3600,
        "iss": ISSUER,
    }
    signing_input = b".".join(
        _b64encode(json.dumps(part, separators=(",", ":")).encode()) for part in (header, payload)
    )
    return b".".join([signing_input, _b64encode(_sign(secret, signing_input))]).decode()


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Validate signature, issuer and expiry.

    Returns ``None`` on any failure instead of raising; the caller decides
    how absence is reported.
    """
    if algorithm != "HS256":
        return None
    try:
        header_b64, payload_b64, signature_b64 = token.encode().split(b".")
    except ValueError:
        return None

    try:
        expected = _sign(secret, header_b64 + b"." + payload_b64)
        if not hmac.compare_digest(expected, _b64decode(signature_b64)):
            return None

        header = json.loads(_b64decode(header_b64))
        payload = json.loads(_b64decode(payload_b64))
    except (json.JSONDecodeError, ValueError):
        return None

    if header.get("alg") != algorithm or payload.get("iss") != ISSUER:
        return None

    exp = payload.get("exp")
    if not isinstance(exp, int) or time.time() > exp:
        return None
    if not payload.get("sub"):
        return None

    return TokenPayload(
        sub=payload["sub"],
        role=payload.get("role", "member"),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc),
    )


def _sign(secret: str, signing_input: bytes) -> bytes:
    return hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()


def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    return base64.urlsafe_b64decode(data + b"=" * (-len(data) % 4))
