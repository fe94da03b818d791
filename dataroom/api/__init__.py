"""API routes."""

from .folders import router as folders_router
from .trash import router as trash_router
from .permissions import router as permissions_router
from .viewer import router as viewer_router

__all__ = [
    "folders_router",
    "trash_router",
    "permissions_router",
    "viewer_router",
]
