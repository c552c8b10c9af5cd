from __future__ import annotations


class WorkspaceError(Exception):
    """Base exception for workspace configuration errors."""


class WorkspaceValidationError(WorkspaceError):
    """Raised when settings or workspace data fail validation."""


class WorkspaceMigrationError(WorkspaceError):
    """Raised when a stored registry cannot be upgraded."""


class WorkspaceIOError(WorkspaceError):
    """Raised when settings cannot be read from or written to the store."""


class WorkspaceImportError(WorkspaceError):
    """Raised when an imported workspace payload is malformed."""


__all__ = [
    "WorkspaceError",
    "WorkspaceValidationError",
    "WorkspaceMigrationError",
    "WorkspaceIOError",
    "WorkspaceImportError",
]
