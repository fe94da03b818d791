"""Access control API: strategies, explicit group entries, link visibility."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, get_team_dataroom, require_team_member
from ..database import get_db
from ..middleware.request_context import client_ip
from ..models.dataroom import Dataroom
from ..schemas.permission import (
    AccessControlEntryResponse,
    AccessibleDocumentsResponse,
    ApplyPermissionsRequest,
    ApplyPermissionsResponse,
    GroupPermissionsRequest,
)
from ..services import audit_service
from ..services.access_control_service import AccessControlService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams/{team_id}/datarooms/{dataroom_id}", tags=["permissions"])


@router.post("/apply-permissions", response_model=ApplyPermissionsResponse)
def apply_permissions(
    data: ApplyPermissionsRequest,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    result = AccessControlService(db).apply_permissions(
        dataroom.id, data.document_ids, data.strategy, data.folder_path
    )
    audit_service.log(db, dataroom.id, auth.user_id, "apply_permissions", "permission", dataroom.id,
                      {"strategy": data.strategy.value, **result}, client_ip(request))
    return {"strategy": data.strategy, **result}


@router.put("/groups/{group_id}/permissions", response_model=List[AccessControlEntryResponse])
def set_group_permissions(
    group_id: str,
    data: GroupPermissionsRequest,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    rows = AccessControlService(db).set_group_permissions(
        dataroom.id, group_id, [entry.model_dump() for entry in data.entries]
    )
    audit_service.log(db, dataroom.id, auth.user_id, "set_permissions", "permission", group_id,
                      {"entry_count": len(rows)}, client_ip(request))
    return rows


@router.get("/links/{link_id}/accessible-documents", response_model=AccessibleDocumentsResponse)
def get_accessible_documents(
    link_id: str,
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    """Placement ids the link's group may view; empty for links without a group."""
    ids = AccessControlService(db).get_filtered_accessible_document_ids(dataroom.id, link_id)
    return {"document_ids": sorted(ids)}
