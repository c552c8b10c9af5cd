from __future__ import annotations

import pytest

from workspace_overlay.config.exceptions import WorkspaceMigrationError
from workspace_overlay.config.migration import repair_order, upgrade_registry
from workspace_overlay.config.models import WorkspaceData, WorkspacesConfig
from workspace_overlay.config.storage import SETTINGS_KEY, MemorySettingsStore

LEGACY_REGISTRY = {
    "version": 1,
    "defaultWorkspaceId": "ws_default",
    "activeWorkspaceId": "ws_focus",
    "order": ["ws_default", "ws_focus"],
    "byId": {
        "ws_default": {"id": "ws_default", "name": "Default", "updatedAt": 10, "settings": {}},
        "ws_focus": {
            "id": "ws_focus",
            "name": "Focus",
            "icon": "target",
            "updatedAt": 20,
            "settings": {
                "viewMode": "kanban",
                "customProjectGroupsAndNames": {"work": ["a"]},
                "fluentActiveViewId": "inbox",
                "fluentFilterState": {
                    "inbox": {"filters": {}, "selectedProject": "p1", "viewMode": "kanban"}
                },
                "hiddenModules": {"views": ["gantt"], "sidebarComponents": [], "features": []},
                "someRemovedSetting": True,
            },
        },
    },
}


def test_upgrade_converts_legacy_layout() -> None:
    upgraded = upgrade_registry(LEGACY_REGISTRY)

    assert upgraded["version"] == 2
    assert upgraded["default_workspace_id"] == "ws_default"
    assert upgraded["active_workspace_id"] == "ws_focus"
    focus = upgraded["by_id"]["ws_focus"]
    assert focus["updated_at"] == 20
    assert focus["icon"] == "target"
    assert focus["overrides"] == {
        "view_mode": "kanban",
        "custom_project_groups": {"work": ["a"]},
        "active_view_id": "inbox",
        "filter_state_by_view": {
            "inbox": {"filters": {}, "selected_project": "p1", "view_mode": "kanban"}
        },
    }
    assert focus["hidden_modules"] == {"views": ["gantt"], "sidebar_components": [], "features": []}


def test_current_registry_is_returned_unchanged() -> None:
    current = {"version": 2, "default_workspace_id": "a", "active_workspace_id": "a", "by_id": {}}
    assert upgrade_registry(current) is current


def test_broken_legacy_registry_raises() -> None:
    with pytest.raises(WorkspaceMigrationError):
        upgrade_registry({"version": 1, "byId": {"x": {"settings": "oops"}}})
    with pytest.raises(WorkspaceMigrationError):
        upgrade_registry({"version": "two"})


def test_repair_order() -> None:
    config = WorkspacesConfig(
        default_workspace_id="b",
        active_workspace_id="b",
        order=["a", "ghost", "a"],
        by_id={ws_id: WorkspaceData(id=ws_id, name=ws_id, updated_at=0) for ws_id in ("a", "b", "c")},
    )
    assert repair_order(config) is True
    assert config.order == ["b", "a", "c"]
    assert repair_order(config) is False


def test_manager_loads_legacy_registry(make_manager) -> None:
    store = MemorySettingsStore({SETTINGS_KEY: {"workspaces": LEGACY_REGISTRY}})
    manager = make_manager(store)

    assert manager.active_workspace_id == "ws_focus"
    assert manager.get_effective_settings()["view_mode"] == "kanban"
    assert manager.visibility.is_hidden("views", "gantt")
    assert manager.needs_save
