from __future__ import annotations

from .events import WorkspaceEvent, WorkspaceEventType
from .exceptions import (
    WorkspaceError,
    WorkspaceImportError,
    WorkspaceIOError,
    WorkspaceMigrationError,
    WorkspaceValidationError,
)
from .filter_state import (
    FilterStatePersistence,
    FilterStatePersistPayload,
    RestoredFilterSnapshot,
    ViewState,
)
from .listener import WorkspaceListener
from .manager import WorkspaceManager
from .models import WorkspaceData, WorkspacesConfig
from .storage import MemorySettingsStore, SettingsStore, TomlSettingsStore
from .types import ScopedField
from .visibility import ModuleKind, ModuleVisibility

__all__ = [
    "WorkspaceManager",
    "WorkspaceData",
    "WorkspacesConfig",
    "WorkspaceEvent",
    "WorkspaceEventType",
    "WorkspaceListener",
    "FilterStatePersistence",
    "FilterStatePersistPayload",
    "RestoredFilterSnapshot",
    "ViewState",
    "ModuleKind",
    "ModuleVisibility",
    "ScopedField",
    "SettingsStore",
    "MemorySettingsStore",
    "TomlSettingsStore",
    "WorkspaceError",
    "WorkspaceValidationError",
    "WorkspaceMigrationError",
    "WorkspaceIOError",
    "WorkspaceImportError",
]
