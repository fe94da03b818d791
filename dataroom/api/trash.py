"""Trash API: list, restore (in place or elsewhere) and permanent purge."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, get_team_dataroom, require_team_member
from ..database import get_db
from ..middleware.request_context import client_ip
from ..models.dataroom import Dataroom
from ..schemas.trash import PurgeResponse, RestoreResponse, TrashItemResponse, TrashMoveRequest
from ..services import audit_service
from ..services.trash_service import TrashService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams/{team_id}/datarooms/{dataroom_id}/trash", tags=["trash"])


@router.get("", response_model=List[TrashItemResponse])
def list_trash(
    root: bool = Query(True, description="Top-level entries only; false returns nested children"),
    path: Optional[str] = Query(None, description="Trash path of a trashed folder to list"),
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    return TrashService(db).list_trash(dataroom.id, path=path, root_only=root)


@router.post("/move", response_model=RestoreResponse)
def restore_to_folder(
    data: TrashMoveRequest,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    restored = TrashService(db).restore_to(dataroom.id, data.trash_item_ids, data.folder_id)
    audit_service.log(db, dataroom.id, auth.user_id, "restore", "trash", dataroom.id,
                      {"trash_item_ids": data.trash_item_ids, "folder_id": data.folder_id},
                      client_ip(request))
    return {"restored_count": restored}


@router.put("/{trash_id}/restore", response_model=RestoreResponse)
def restore_item(
    trash_id: str,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    restored = TrashService(db).restore(dataroom.id, trash_id)
    audit_service.log(db, dataroom.id, auth.user_id, "restore", "trash", trash_id,
                      {"restored_count": restored}, client_ip(request))
    return {"restored_count": restored}


@router.delete("/{trash_id}", response_model=PurgeResponse)
def purge_item(
    trash_id: str,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    purged = TrashService(db).purge(dataroom.id, trash_id)
    audit_service.log(db, dataroom.id, auth.user_id, "purge", "trash", trash_id,
                      {"purged_count": purged}, client_ip(request))
    return {"purged_count": purged}
