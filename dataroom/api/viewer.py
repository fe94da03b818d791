"""Viewer-facing credential endpoints: email codes, OTP, link verification
tokens and preview sessions.

Every endpoint counts against a per-IP fixed window in the shared key-value
store before doing any work. Credential failures are always the same 401.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..core.config import Environment, settings
from ..core.kv_store import KeyValueStore, get_kv_store
from ..database import get_db
from ..exceptions import AuthenticationError
from ..middleware.request_context import client_ip
from ..models.dataroom import Dataroom
from ..repositories.access_repository import LinkRepository
from ..schemas.credential import (
    EmailCodeCreate,
    EmailCodeResponse,
    EmailCodeVerify,
    EmailCodeVerifyResponse,
    LinkVerificationCheck,
    OtpCreate,
    OtpCreateResponse,
    OtpVerify,
    OtpVerifyResponse,
    PreviewSessionCreate,
    PreviewSessionResponse,
    PreviewSessionVerify,
    PreviewSessionVerifyResponse,
)
from ..services.access_control_service import AccessControlService
from ..services.credential_service import EmailCodeService, LinkVerificationService, OtpService
from ..services.preview_service import PreviewSessionService
from ..services.throttle import check_throttle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/viewer", tags=["viewer"])


def _throttle(request: Request, kv: KeyValueStore, scope: str) -> None:
    check_throttle(kv, scope, client_ip(request), settings.otp_requests_per_minute)


# -- Email authentication codes -------------------------------------------

@router.post("/email-codes", response_model=EmailCodeResponse, status_code=201)
def create_email_code(
    data: EmailCodeCreate,
    request: Request,
    kv: KeyValueStore = Depends(get_kv_store),
    db: Session = Depends(get_db),
):
    """Issue a code for ``email`` on ``link_id``; mailing it happens elsewhere."""
    _throttle(request, kv, "email-code")
    LinkRepository(db).get_by_id(data.link_id)
    code, ttl = EmailCodeService(kv).create_code(data.email, data.link_id, data.invited)
    return {"code": code, "expires_in": ttl}


@router.post("/email-codes/verify", response_model=EmailCodeVerifyResponse)
def verify_email_code(
    data: EmailCodeVerify,
    request: Request,
    kv: KeyValueStore = Depends(get_kv_store),
):
    _throttle(request, kv, "email-code-verify")
    return EmailCodeService(kv).verify_code(data.code)


# -- One-time passwords ---------------------------------------------------

@router.post("/otp", response_model=OtpCreateResponse, status_code=202)
def create_otp(
    data: OtpCreate,
    request: Request,
    kv: KeyValueStore = Depends(get_kv_store),
):
    """Generate an OTP. Delivery is out of band; development echoes the code."""
    _throttle(request, kv, "otp")
    code, ttl = OtpService(kv).create_otp(data.email)
    echo = code if settings.environment != Environment.PRODUCTION else None
    return {"sent": True, "expires_in": ttl, "code": echo}


@router.post("/otp/verify", response_model=OtpVerifyResponse)
def verify_otp(
    data: OtpVerify,
    request: Request,
    kv: KeyValueStore = Depends(get_kv_store),
    db: Session = Depends(get_db),
):
    """Verify an OTP. With ``link_id``, also check group admission and hand out
    a repeat-access token for that link."""
    _throttle(request, kv, "otp-verify")
    OtpService(kv).verify_otp(data.email, data.code)
    if not data.link_id:
        return {"verified": True}

    link = LinkRepository(db).get_by_id(data.link_id)
    AccessControlService(db).check_group_admission(link, data.email)
    token, ttl = LinkVerificationService(kv).issue(link.id, data.email)
    return {"verified": True, "verification_token": token, "expires_in": ttl}


@router.post("/link-verifications/verify", response_model=OtpVerifyResponse)
def verify_link_token(
    data: LinkVerificationCheck,
    request: Request,
    kv: KeyValueStore = Depends(get_kv_store),
):
    _throttle(request, kv, "link-verification")
    LinkVerificationService(kv).verify(data.token, data.link_id, data.email)
    return {"verified": True}


# -- Preview sessions (team members) --------------------------------------

def _check_link_team(db: Session, link_id: str, auth: AuthContext) -> None:
    link = LinkRepository(db).get_by_id(link_id)
    dataroom = db.query(Dataroom).filter(Dataroom.id == link.dataroom_id).first()
    if settings.auth_enabled and (dataroom is None or not auth.can_access_team(dataroom.team_id)):
        raise AuthenticationError("Unauthorized")


@router.post("/preview-sessions", response_model=PreviewSessionResponse, status_code=201)
def create_preview_session(
    data: PreviewSessionCreate,
    request: Request,
    auth: AuthContext = Depends(require_auth),
    kv: KeyValueStore = Depends(get_kv_store),
    db: Session = Depends(get_db),
):
    """Let the calling team member open ``link_id`` as a visitor for 20 minutes."""
    _throttle(request, kv, "preview")
    _check_link_team(db, data.link_id, auth)
    token, expires_at = PreviewSessionService(kv).create_session(auth.user_id, data.link_id)
    return {"token": token, "expires_at": expires_at}


@router.post("/preview-sessions/verify", response_model=PreviewSessionVerifyResponse)
def verify_preview_session(
    data: PreviewSessionVerify,
    request: Request,
    auth: AuthContext = Depends(require_auth),
    kv: KeyValueStore = Depends(get_kv_store),
):
    _throttle(request, kv, "preview-verify")
    return PreviewSessionService(kv).verify_session(data.token, auth.user_id, data.link_id)
