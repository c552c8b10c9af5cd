# workspace_overlay/config/visibility.py

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Optional, Union

from .exceptions import WorkspaceValidationError
from .models import WorkspaceData
from .types import HiddenModules

if TYPE_CHECKING:
    from .manager import WorkspaceManager

logger = logging.getLogger(__name__)


class ModuleKind(str, Enum):
    VIEWS = "views"
    SIDEBAR_COMPONENTS = "sidebar_components"
    FEATURES = "features"


SIDEBAR_COMPONENT_IDS: FrozenSet[str] = frozenset(
    {"projects-list", "tags-list", "view-switcher", "top-views", "bottom-views"}
)
FEATURE_IDS: FrozenSet[str] = frozenset(
    {"details-panel", "quick-capture", "filter", "progress-bar", "task-mark"}
)

# View ids are user-defined, so only the other kinds are closed.
_KNOWN_IDS: Dict[ModuleKind, FrozenSet[str]] = {
    ModuleKind.SIDEBAR_COMPONENTS: SIDEBAR_COMPONENT_IDS,
    ModuleKind.FEATURES: FEATURE_IDS,
}

HIDDEN_MODULES_FIELD = "hidden_modules"


def _empty_hidden() -> HiddenModules:
    return {"views": [], "sidebar_components": [], "features": []}


class ModuleVisibility:
    """Per-workspace lists of hidden views, sidebar components and features."""

    def __init__(self, manager: "WorkspaceManager") -> None:
        self._manager = manager

    @staticmethod
    def _kind(kind: Union[ModuleKind, str]) -> ModuleKind:
        try:
            return ModuleKind(kind)
        except ValueError as exc:
            raise WorkspaceValidationError(f"Unknown module kind: {kind!r}") from exc

    def _check_id(self, kind: ModuleKind, module_id: str) -> None:
        known = _KNOWN_IDS.get(kind)
        if known is not None and module_id not in known:
            raise WorkspaceValidationError(
                f"Unknown {kind.value} id {module_id!r}; expected one of {', '.join(sorted(known))}"
            )

    def _workspace(self, workspace_id: Optional[str]) -> Optional[WorkspaceData]:
        if workspace_id is None:
            return self._manager.get_active_workspace()
        return self._manager.get_workspace(workspace_id)

    def get_hidden(
        self, kind: Union[ModuleKind, str], workspace_id: Optional[str] = None
    ) -> List[str]:
        kind = self._kind(kind)
        workspace = self._workspace(workspace_id)
        if workspace is None or not workspace.hidden_modules:
            return []
        return list(workspace.hidden_modules.get(kind.value) or [])

    def is_hidden(
        self,
        kind: Union[ModuleKind, str],
        module_id: str,
        workspace_id: Optional[str] = None,
    ) -> bool:
        return module_id in self.get_hidden(kind, workspace_id)

    def get_visible_views(self, workspace_id: Optional[str] = None) -> List[str]:
        hidden = set(self.get_hidden(ModuleKind.VIEWS, workspace_id))
        views = self._manager.get_global_settings().get("view_configuration") or []
        return [
            view["id"]
            for view in views
            if isinstance(view, dict) and view.get("id") and view["id"] not in hidden
        ]

    async def toggle(
        self,
        kind: Union[ModuleKind, str],
        module_id: str,
        workspace_id: Optional[str] = None,
    ) -> bool:
        """Flip the hidden state of ``module_id``; returns the new state."""

        kind = self._kind(kind)
        self._check_id(kind, module_id)

        def mutate(workspace: WorkspaceData) -> bool:
            if workspace.hidden_modules is None:
                workspace.hidden_modules = _empty_hidden()
            hidden = workspace.hidden_modules.setdefault(kind.value, [])
            if module_id in hidden:
                hidden.remove(module_id)
                return False
            hidden.append(module_id)
            return True

        result = await self._manager.commit_workspace(
            workspace_id, mutate, (HIDDEN_MODULES_FIELD,)
        )
        if result is None:
            logger.debug("Cannot toggle %s %r: workspace not found", kind.value, module_id)
            return False
        return result

    async def set_hidden(
        self,
        kind: Union[ModuleKind, str],
        ids: Iterable[str],
        workspace_id: Optional[str] = None,
    ) -> None:
        kind = self._kind(kind)
        new_ids: List[str] = []
        for module_id in ids:
            self._check_id(kind, module_id)
            if module_id not in new_ids:
                new_ids.append(module_id)

        def mutate(workspace: WorkspaceData) -> None:
            if workspace.hidden_modules is None:
                workspace.hidden_modules = _empty_hidden()
            workspace.hidden_modules[kind.value] = new_ids

        await self._manager.commit_workspace(workspace_id, mutate, (HIDDEN_MODULES_FIELD,))


__all__ = ["ModuleKind", "ModuleVisibility", "SIDEBAR_COMPONENT_IDS", "FEATURE_IDS"]
