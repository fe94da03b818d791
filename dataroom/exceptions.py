"""Custom exception hierarchy for the dataroom service."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Not found
    DATAROOM_NOT_FOUND = "DATAROOM_NOT_FOUND"
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    TRASH_ITEM_NOT_FOUND = "TRASH_ITEM_NOT_FOUND"
    LINK_NOT_FOUND = "LINK_NOT_FOUND"
    GROUP_NOT_FOUND = "GROUP_NOT_FOUND"

    # Hierarchy conflicts
    PATH_CONFLICT = "PATH_CONFLICT"
    FOLDER_CYCLE = "FOLDER_CYCLE"
    RESTORE_CONFLICT = "RESTORE_CONFLICT"
    HIERARCHY_LOOP = "HIERARCHY_LOOP"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DataroomException(Exception):
    """
    Base exception for all dataroom errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


# ---------------------------------------------------------------------------
# NotFound
# ---------------------------------------------------------------------------

class DataroomNotFoundError(DataroomException):
    """Dataroom missing or not owned by the requesting team."""

    def __init__(self, dataroom_id: str):
        super().__init__(
            f"Dataroom not found: {dataroom_id}",
            ErrorCode.DATAROOM_NOT_FOUND,
            status_code=404,
            details={"dataroom_id": dataroom_id}
        )


class FolderNotFoundError(DataroomException):
    """Folder not found in database."""

    def __init__(self, folder_id: str):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            status_code=404,
            details={"folder_id": folder_id}
        )


class DocumentNotFoundError(DataroomException):
    """Document placement not found in the dataroom."""

    def __init__(self, document_id: str):
        super().__init__(
            f"Document not found: {document_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            status_code=404,
            details={"document_id": document_id}
        )


class TrashItemNotFoundError(DataroomException):

    def __init__(self, trash_item_id: str):
        super().__init__(
            f"Trash item not found: {trash_item_id}",
            ErrorCode.TRASH_ITEM_NOT_FOUND,
            status_code=404,
            details={"trash_item_id": trash_item_id}
        )


class LinkNotFoundError(DataroomException):

    def __init__(self, link_id: str):
        super().__init__(
            f"Link not found: {link_id}",
            ErrorCode.LINK_NOT_FOUND,
            status_code=404,
            details={"link_id": link_id}
        )


class GroupNotFoundError(DataroomException):
    """Neither a viewer group nor a permission group has this id."""

    def __init__(self, group_id: str):
        super().__init__(
            f"Group not found: {group_id}",
            ErrorCode.GROUP_NOT_FOUND,
            status_code=404,
            details={"group_id": group_id}
        )


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------

class PathConflictError(DataroomException):
    """A live folder already occupies the target path."""

    def __init__(self, path: str):
        super().__init__(
            f"A folder already exists at path '{path}'",
            ErrorCode.PATH_CONFLICT,
            status_code=409,
            details={"path": path}
        )


class FolderCycleError(DataroomException):
    """Moving the folder would place it inside itself or a descendant."""

    def __init__(self, folder_id: str, destination_path: str):
        super().__init__(
            "Cannot move folder into itself or its own descendant",
            ErrorCode.FOLDER_CYCLE,
            status_code=409,
            details={"folder_id": folder_id, "destination_path": destination_path}
        )


class RestoreConflictError(DataroomException):
    """The original location of a trashed item is gone or occupied."""

    def __init__(self, message: str, trash_item_id: Optional[str] = None):
        details = {"trash_item_id": trash_item_id} if trash_item_id else {}
        super().__init__(
            message,
            ErrorCode.RESTORE_CONFLICT,
            status_code=409,
            details=details
        )


class HierarchyLoopError(DataroomException):
    """Stored parent pointers form a loop."""

    def __init__(self, item_id: str):
        super().__init__(
            f"Malformed hierarchy: parent chain of {item_id} loops",
            ErrorCode.HIERARCHY_LOOP,
            status_code=409,
            details={"item_id": item_id}
        )


# ---------------------------------------------------------------------------
# Validation / auth / throttling / storage
# ---------------------------------------------------------------------------

class ValidationError(DataroomException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(DataroomException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class InvalidCredentialError(DataroomException):
    """A viewer credential or preview session failed validation.

    The message is identical for every failure cause so callers cannot
    learn which check rejected the credential.
    """

    def __init__(self):
        super().__init__(
            "Unauthorized access. Request new access.",
            ErrorCode.INVALID_CREDENTIAL,
            status_code=401,
        )


class ForbiddenError(DataroomException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class RateLimitedError(DataroomException):

    def __init__(self, retry_after: int):
        super().__init__(
            "Too many requests. Please try again later.",
            ErrorCode.RATE_LIMITED,
            status_code=429,
            details={"retry_after": retry_after}
        )


class DatabaseError(DataroomException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
