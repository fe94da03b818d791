"""Folder store API: create, list, tree, rename, move, reorder, placements,
and soft delete into the trash.

All routes are scoped to one team's dataroom; ``get_team_dataroom`` rejects
other teams and unknown datarooms before any service runs.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, get_team_dataroom, require_team_member
from ..database import get_db, transaction
from ..middleware.request_context import client_ip
from ..models.dataroom import Dataroom
from ..schemas.folder import (
    DocumentMoveRequest,
    DocumentMoveResponse,
    DocumentPlacementCreate,
    DocumentPlacementResponse,
    FolderContents,
    FolderCreate,
    FolderMoveRequest,
    FolderMoveResponse,
    FolderRename,
    FolderResponse,
    ReorderRequest,
    ReorderResponse,
    SoftDeleteResponse,
    TreeNode,
)
from ..services import audit_service
from ..services.access_control_service import AccessControlService
from ..services.folder_service import FolderService
from ..services.trash_service import TrashService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams/{team_id}/datarooms/{dataroom_id}", tags=["folders"])


def _with_index(model, schema, indexes):
    response = schema.model_validate(model)
    response.hierarchical_index = indexes.get(model.id)
    return response


# -- Folders --------------------------------------------------------------

@router.post("/folders", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    service = FolderService(db)
    folder = service.create_folder(dataroom.id, data.name, data.parent_path, data.order_index)
    audit_service.log(db, dataroom.id, auth.user_id, "create", "folder", folder.id,
                      {"path": folder.path}, client_ip(request))
    return _with_index(folder, FolderResponse, service.compute_indexes(dataroom.id))


@router.get("/folders", response_model=FolderContents)
def list_folder(
    path: Optional[str] = Query(None, description="Folder path; omit for the dataroom root"),
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    """Direct children of ``path`` in display order, with hierarchical indexes."""
    folders, documents, indexes = FolderService(db).list_children(dataroom.id, path)
    return FolderContents(
        path=path,
        folders=[_with_index(f, FolderResponse, indexes) for f in folders],
        documents=[_with_index(d, DocumentPlacementResponse, indexes) for d in documents],
    )


@router.get("/folders/tree", response_model=List[TreeNode])
def get_tree(
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    return FolderService(db).get_tree(dataroom.id)


@router.post("/folders/move", response_model=FolderMoveResponse)
def move_folders(
    data: FolderMoveRequest,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    result = FolderService(db).move_folders(dataroom.id, data.folder_ids, data.destination_path)
    audit_service.log(db, dataroom.id, auth.user_id, "move", "folder", dataroom.id,
                      {"folder_ids": data.folder_ids, **result}, client_ip(request))
    return result


@router.post("/folders/reorder", response_model=ReorderResponse)
def reorder_items(
    data: ReorderRequest,
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    count = FolderService(db).reorder(dataroom.id, [item.model_dump() for item in data.items])
    return {"updated_count": count}


@router.get("/folders/{folder_id}", response_model=FolderResponse)
def get_folder(
    folder_id: str,
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    service = FolderService(db)
    return _with_index(service.get_folder(dataroom.id, folder_id), FolderResponse,
                       service.compute_indexes(dataroom.id))


@router.put("/folders/{folder_id}/rename", response_model=FolderResponse)
def rename_folder(
    folder_id: str,
    data: FolderRename,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    service = FolderService(db)
    folder = service.rename_folder(dataroom.id, folder_id, data.name)
    audit_service.log(db, dataroom.id, auth.user_id, "rename", "folder", folder_id,
                      {"name": data.name, "path": folder.path}, client_ip(request))
    return _with_index(folder, FolderResponse, service.compute_indexes(dataroom.id))


@router.delete("/folders/{folder_id}", response_model=SoftDeleteResponse)
def delete_folder(
    folder_id: str,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    """Soft delete: the folder and its subtree move to the trash."""
    captured = TrashService(db).soft_delete_folder(dataroom.id, folder_id, deleted_by=auth.user_id)
    audit_service.log(db, dataroom.id, auth.user_id, "trash", "folder", folder_id,
                      {"captured_count": captured}, client_ip(request))
    return {"captured_count": captured}


# -- Document placements --------------------------------------------------

@router.post("/documents", response_model=DocumentPlacementResponse, status_code=201)
def add_document(
    data: DocumentPlacementCreate,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    """Place a document and write the viewer groups' default entries for it."""
    service = FolderService(db)
    with transaction(db):
        placement = service.add_document(
            dataroom.id, data.document_id, data.name, data.folder_id, data.order_index
        )
        AccessControlService(db).apply_default_permissions(dataroom.id, [placement.id])
    audit_service.log(db, dataroom.id, auth.user_id, "create", "document", placement.id,
                      {"folder_id": placement.folder_id}, client_ip(request))
    return _with_index(placement, DocumentPlacementResponse, service.compute_indexes(dataroom.id))


@router.post("/documents/move", response_model=DocumentMoveResponse)
def move_documents(
    data: DocumentMoveRequest,
    dataroom: Dataroom = Depends(get_team_dataroom),
    db: Session = Depends(get_db),
):
    count = FolderService(db).move_documents(dataroom.id, data.document_ids, data.folder_id)
    return {"updated_count": count}


@router.delete("/documents/{dataroom_document_id}", response_model=SoftDeleteResponse)
def delete_document(
    dataroom_document_id: str,
    request: Request,
    dataroom: Dataroom = Depends(get_team_dataroom),
    auth: AuthContext = Depends(require_team_member),
    db: Session = Depends(get_db),
):
    captured = TrashService(db).soft_delete_document(
        dataroom.id, dataroom_document_id, deleted_by=auth.user_id
    )
    audit_service.log(db, dataroom.id, auth.user_id, "trash", "document", dataroom_document_id,
                      None, client_ip(request))
    return {"captured_count": captured}
