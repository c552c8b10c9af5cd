from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, List

from .exceptions import WorkspaceMigrationError
from .models import REGISTRY_VERSION, WorkspacesConfig
from .overlay import split_profile_local
from .types import INHERITABLE_FIELDS, PROFILE_LOCAL_FIELDS, SCOPED_FIELDS

logger = logging.getLogger(__name__)

# Version 1 registries used camelCase keys throughout.
_LEGACY_FIELD_NAMES: Dict[str, str] = {
    "viewMode": "view_mode",
    "displayOptions": "display_options",
    "viewConfiguration": "view_configuration",
    "taskListDisplayOption": "task_list_display_option",
    "forecastOption": "forecast_option",
    "customProjectGroupsAndNames": "custom_project_groups",
    "tagCustomOrder": "tag_custom_order",
    "fluentFilterState": "filter_state_by_view",
    "fluentActiveViewId": "active_view_id",
}

_LEGACY_ENTRY_NAMES: Dict[str, str] = {
    "selectedProject": "selected_project",
    "advancedFilter": "advanced_filter",
    "viewMode": "view_mode",
}

_LEGACY_HIDDEN_NAMES: Dict[str, str] = {"sidebarComponents": "sidebar_components"}


def _rename(container: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {mapping.get(key, key): value for key, value in container.items()}


def _upgrade_overrides(legacy: Dict[str, Any]) -> Dict[str, Any]:
    overrides = _rename(legacy, _LEGACY_FIELD_NAMES)
    states = overrides.get("filter_state_by_view")
    if isinstance(states, dict):
        overrides["filter_state_by_view"] = {
            view_id: _rename(entry, _LEGACY_ENTRY_NAMES) if isinstance(entry, dict) else entry
            for view_id, entry in states.items()
        }
    return {key: value for key, value in overrides.items() if key in SCOPED_FIELDS}


def upgrade_registry(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``data`` upgraded to the current registry layout."""

    version = data.get("version", 1)
    if not isinstance(version, int):
        raise WorkspaceMigrationError(f"Unsupported registry version: {version!r}")
    if version >= REGISTRY_VERSION:
        return data
    try:
        upgraded: Dict[str, Any] = {
            "version": REGISTRY_VERSION,
            "default_workspace_id": data.get("defaultWorkspaceId", data.get("default_workspace_id", "")),
            "active_workspace_id": data.get("activeWorkspaceId", data.get("active_workspace_id", "")),
            "order": list(data.get("order") or []),
            "by_id": {},
        }
        for ws_id, legacy in (data.get("byId") or data.get("by_id") or {}).items():
            legacy_settings = dict(legacy.get("settings") or legacy.get("overrides") or {})
            hidden = legacy_settings.pop("hiddenModules", None)
            workspace: Dict[str, Any] = {
                "id": legacy.get("id", ws_id),
                "name": legacy.get("name", ""),
                "updated_at": int(legacy.get("updatedAt", 0)),
                "overrides": _upgrade_overrides(legacy_settings),
            }
            for optional in ("icon", "color"):
                if legacy.get(optional):
                    workspace[optional] = legacy[optional]
            if isinstance(hidden, dict):
                workspace["hidden_modules"] = _rename(hidden, _LEGACY_HIDDEN_NAMES)
            upgraded["by_id"][ws_id] = workspace
    except (AttributeError, TypeError, ValueError) as exc:
        raise WorkspaceMigrationError(f"Failed to upgrade workspace registry: {exc}") from exc
    logger.info("Upgraded workspace registry from version %s to %s", version, REGISTRY_VERSION)
    return upgraded


def clear_default_overrides(config: WorkspacesConfig, settings: Dict[str, Any]) -> bool:
    """Fold the default workspace's inheritable overrides into ``settings``."""

    default_ws = config.by_id[config.default_workspace_id]
    stray = [key for key in default_ws.overrides if key not in PROFILE_LOCAL_FIELDS]
    if not stray:
        return False
    for key in stray:
        if key in INHERITABLE_FIELDS:
            settings[key] = deepcopy(default_ws.overrides[key])
    default_ws.overrides = split_profile_local(default_ws.overrides)
    logger.info(
        "Merged default workspace overrides into global settings: %s", ", ".join(sorted(stray))
    )
    return True


def repair_active(config: WorkspacesConfig) -> bool:
    if config.active_workspace_id in config.by_id:
        return False
    logger.warning(
        "Active workspace %r does not exist; falling back to default", config.active_workspace_id
    )
    config.active_workspace_id = config.default_workspace_id
    return True


def repair_order(config: WorkspacesConfig) -> bool:
    seen: List[str] = []
    for ws_id in config.order:
        if ws_id in config.by_id and ws_id not in seen:
            seen.append(ws_id)
    for ws_id in config.by_id:
        if ws_id not in seen:
            seen.append(ws_id)
    if config.default_workspace_id in seen:
        seen.remove(config.default_workspace_id)
    seen.insert(0, config.default_workspace_id)
    if seen == config.order:
        return False
    config.order = seen
    return True


__all__ = [
    "upgrade_registry",
    "clear_default_overrides",
    "repair_active",
    "repair_order",
]
