"""Authentication and tenancy dependencies for team-member endpoints.

Public interface:
    ``require_auth``          -- AuthContext or 401.
    ``require_team_member``   -- AuthContext for the ``team_id`` path
                                 parameter; 401 for members of other teams.
    ``get_team_dataroom``     -- the dataroom named by the path, checked to
                                 belong to the team (404 otherwise).

When ``settings.auth_enabled`` is False every dependency resolves to an
anonymous admin context that may act on any team.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import TokenPayload, decode_token
from ..database import get_db
from ..exceptions import AuthenticationError
from ..models.dataroom import Dataroom
from ..repositories.access_repository import DataroomRepository

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the calling team member and the teams they belong to."""

    user_id: str
    role: str
    team_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_access_team(self, team_id: str) -> bool:
        return team_id in self.team_ids


_ANONYMOUS = AuthContext(user_id="anonymous", role="admin")


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Require a valid bearer token. Anonymous admin when auth is disabled."""
    if not settings.auth_enabled:
        return _ANONYMOUS

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    return _load_auth_context(payload, db)


def require_team_member(
    team_id: str,
    auth: AuthContext = Depends(require_auth),
) -> AuthContext:
    """Reject callers who are not members of ``team_id``."""
    if not settings.auth_enabled:
        return auth
    if not auth.can_access_team(team_id):
        logger.warning(
            "Cross-team access rejected",
            extra={"user_id": auth.user_id, "team_id": team_id},
        )
        raise AuthenticationError("Unauthorized")
    return auth


def get_team_dataroom(
    team_id: str,
    dataroom_id: str,
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
) -> Dataroom:
    return DataroomRepository(db).get_for_team(team_id, dataroom_id)


def _load_auth_context(payload: TokenPayload, db: Session) -> AuthContext:
    from ..models.user import TeamMember, User

    user = db.query(User).filter(User.user_id == payload.sub).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    team_ids = frozenset(
        row.team_id
        for row in db.query(TeamMember.team_id).filter(TeamMember.user_id == user.user_id)
    )
    return AuthContext(user_id=user.user_id, role=user.role, team_ids=team_ids)
