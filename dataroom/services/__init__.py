"""Business logic services."""

from .folder_service import FolderService
from .trash_service import TrashService
from .access_control_service import AccessControlService
from .credential_service import EmailCodeService, OtpService, LinkVerificationService
from .preview_service import PreviewSessionService

__all__ = [
    "FolderService",
    "TrashService",
    "AccessControlService",
    "EmailCodeService",
    "OtpService",
    "LinkVerificationService",
    "PreviewSessionService",
]
