"""Short-lived viewer credentials kept in the TTL key-value store.

Every credential is addressed by an unguessable random value and either
consumed exactly once or left to expire. Failures raise the same
``InvalidCredentialError`` whatever the cause, and raw credential values
never appear in logs.

    EmailCodeService        -- codes mailed to a viewer for one link
    OtpService              -- 6-digit one-time passwords per email
    LinkVerificationService -- repeat-access token issued after an OTP
"""

import hashlib
import json
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from ..core.config import settings
from ..core.kv_store import KeyValueStore
from ..exceptions import InvalidCredentialError, RateLimitedError

logger = logging.getLogger(__name__)

# Upper-case letters and digits without look-alikes (0/O, 1/I/L).
EMAIL_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
OTP_DIGITS = 6
ATTEMPT_WINDOW_SECONDS = 3600


def _load(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _same(stored: Any, given: Optional[str]) -> bool:
    if not isinstance(stored, str) or given is None:
        return False
    return secrets.compare_digest(stored.encode(), given.encode())


class EmailCodeService:
    """Email authentication codes bound to {email, link_id, invited}.

    A regular code is single-use. An invited code stays valid until its
    (longer) TTL runs out so the invitee can follow the same mail twice.
    """

    def __init__(self, kv: KeyValueStore, clock: Callable[[], float] = time.time):
        self.kv = kv
        self.clock = clock

    @staticmethod
    def _key(code: str) -> str:
        return f"email-code:{code}"

    def create_code(self, email: str, link_id: str, invited: bool = False) -> Tuple[str, int]:
        """Store a fresh code. Returns (code, ttl_seconds); delivery is the caller's job."""
        code = "".join(
            secrets.choice(EMAIL_CODE_ALPHABET) for _ in range(settings.email_code_length)
        )
        ttl = settings.invited_email_code_ttl_seconds if invited else settings.email_code_ttl_seconds
        payload = {
            "email": email.strip().lower(),
            "link_id": link_id,
            "invited": bool(invited),
            "created_at": datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat(),
        }
        self.kv.set(self._key(code), json.dumps(payload), ttl)
        logger.info("Email code issued", extra={"link_id": link_id, "invited": bool(invited)})
        return code, ttl

    def verify_code(self, code: str) -> Dict[str, Any]:
        """Return the bound {email, link_id, invited}; consumes non-invited codes."""
        key = self._key(code.strip().upper())
        data = _load(self.kv.get(key))
        if data is None:
            self.kv.delete(key)
            logger.warning("Email code rejected")
            raise InvalidCredentialError()

        if not data.get("invited"):
            # Only one concurrent verifier gets the value back.
            if self.kv.getdel(key) is None:
                logger.warning("Email code rejected")
                raise InvalidCredentialError()

        return {
            "email": data.get("email", ""),
            "link_id": data.get("link_id", ""),
            "invited": bool(data.get("invited")),
        }


class OtpService:
    """Six-digit codes per email, consumed atomically on first verification."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @staticmethod
    def _key(email: str) -> str:
        return f"otp:{email}"

    @staticmethod
    def _attempts_key(email: str) -> str:
        return f"otp-attempts:{email}"

    def create_otp(self, email: str) -> Tuple[str, int]:
        """Store a new code for ``email``, replacing any previous one."""
        email = email.strip().lower()
        code = f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"
        self.kv.set(self._key(email), code, settings.otp_ttl_seconds)
        logger.info("OTP issued", extra={"email": email})
        return code, settings.otp_ttl_seconds

    def verify_otp(self, email: str, code: str) -> bool:
        """Check ``code`` for ``email``.

        The stored code is fetched and deleted in one step, so a second
        verification (or a wrong guess) always needs a new code.

        Raises:
            RateLimitedError: too many attempts for this email this hour.
            InvalidCredentialError: missing, expired or mismatched code.
        """
        email = email.strip().lower()
        attempts_key = self._attempts_key(email)
        attempts = self.kv.incr(attempts_key, ATTEMPT_WINDOW_SECONDS)
        if attempts > settings.otp_max_attempts_per_hour:
            logger.warning("OTP attempts exhausted", extra={"email": email})
            raise RateLimitedError(retry_after=self.kv.ttl(attempts_key) or ATTEMPT_WINDOW_SECONDS)

        stored = self.kv.getdel(self._key(email))
        if not _same(stored, code.strip()):
            logger.warning("OTP rejected", extra={"email": email})
            raise InvalidCredentialError()

        self.kv.delete(attempts_key)
        logger.info("OTP verified", extra={"email": email})
        return True


class LinkVerificationService:
    """Repeat-access token issued after a viewer proves their email.

    The viewer keeps the raw token; the store only knows its SHA-256 digest,
    so a leaked store dump cannot be replayed. The token stays valid for
    ``link_verification_ttl_hours`` and is not consumed by checks.
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @staticmethod
    def _key(token: str) -> str:
        return "link-verification:" + hashlib.sha256(token.encode()).hexdigest()

    def issue(self, link_id: str, email: str) -> Tuple[str, int]:
        token = secrets.token_urlsafe(32)
        ttl = settings.link_verification_ttl_hours * 3600
        payload = {"link_id": link_id, "email": email.strip().lower()}
        self.kv.set(self._key(token), json.dumps(payload), ttl)
        logger.info("Link verification token issued", extra={"link_id": link_id})
        return token, ttl

    def verify(self, token: str, link_id: str, email: str) -> bool:
        """Check the token is live and bound to this link and email.

        A binding mismatch revokes the token.
        """
        key = self._key(token)
        data = _load(self.kv.get(key))
        if data is None:
            raise InvalidCredentialError()
        if not (_same(data.get("link_id"), link_id)
                and _same(data.get("email"), email.strip().lower())):
            self.kv.delete(key)
            logger.warning("Link verification token mismatch", extra={"link_id": link_id})
            raise InvalidCredentialError()
        return True
