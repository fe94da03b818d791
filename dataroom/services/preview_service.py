"""Preview sessions: a team member viewing a link as a visitor would.

State machine of one session:

    CREATED -> CONSUMED   verified successfully (deleted)
    CREATED -> INVALID    any field mismatch (deleted)
    CREATED -> EXPIRED    TTL ran out (evicted by the store)

The session is fetched and deleted in the same call, so whatever the
outcome a token is never accepted twice.
"""

import json
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Tuple

from ..core.config import settings
from ..core.kv_store import KeyValueStore
from ..exceptions import InvalidCredentialError

logger = logging.getLogger(__name__)


class PreviewSessionService:

    def __init__(self, kv: KeyValueStore, clock: Callable[[], float] = time.time):
        self.kv = kv
        self.clock = clock

    @staticmethod
    def _key(token: str) -> str:
        return f"preview:{token}"

    def create_session(self, user_id: str, link_id: str) -> Tuple[str, datetime]:
        """Returns (token, expires_at)."""
        token = secrets.token_urlsafe(32)
        ttl = settings.preview_session_ttl_seconds
        expires_at = self.clock() + ttl
        payload = {"user_id": user_id, "link_id": link_id, "expires_at": expires_at}
        self.kv.set(self._key(token), json.dumps(payload), ttl)
        logger.info("Preview session created", extra={"user_id": user_id, "link_id": link_id})
        return token, datetime.fromtimestamp(expires_at, tz=timezone.utc)

    def verify_session(self, token: str, user_id: str, link_id: str) -> Dict[str, Any]:
        """Accept only when the token exists, both ids match and it has not expired."""
        raw = self.kv.getdel(self._key(token))
        try:
            data = json.loads(raw) if raw is not None else None
        except ValueError:
            data = None

        valid = (
            isinstance(data, dict)
            and _matches(data.get("user_id"), user_id)
            and _matches(data.get("link_id"), link_id)
            and isinstance(data.get("expires_at"), (int, float))
            and data["expires_at"] > self.clock()
        )
        if not valid:
            logger.warning("Preview session rejected", extra={"user_id": user_id, "link_id": link_id})
            raise InvalidCredentialError()

        return {
            "user_id": data["user_id"],
            "link_id": data["link_id"],
            "expires_at": datetime.fromtimestamp(data["expires_at"], tz=timezone.utc),
        }


def _matches(stored: Any, given: str) -> bool:
    return isinstance(stored, str) and secrets.compare_digest(stored.encode(), given.encode())
