from __future__ import annotations

import sys
from typing import Any, Dict

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

DEFAULT_SETTINGS_TOML = """\
# Global-only settings
lang = "en"
auto_run = true

# Workspace-scoped settings (the base every workspace inherits from)
view_mode = "list"
group = "none"
task_list_display_option = "list"
sort = [
    { field = "status", order = "asc" },
    { field = "priority", order = "desc" },
    { field = "due_date", order = "asc" },
]
columns = ["status", "content", "project", "due_date", "priority"]
view_configuration = [
    { id = "inbox", name = "Inbox", visible = true },
    { id = "forecast", name = "Forecast", visible = true },
    { id = "projects", name = "Projects", visible = true },
    { id = "tags", name = "Tags", visible = true },
    { id = "calendar", name = "Calendar", visible = true },
    { id = "kanban", name = "Kanban", visible = true },
    { id = "gantt", name = "Gantt", visible = true },
]

[filters]

[calendar]
default_view = "month"
first_day_of_week = 0
hide_weekends = false

[kanban]
group_by = "status"
hide_empty_columns = false
show_checkbox = true

[gantt]
zoom = "week"
show_task_labels = true

[display_options]
show_completed = true
show_tags = true
show_project = true

[forecast_option]
first_day_of_week = 0
hide_weekends = false

[custom_project_groups]

[tag_custom_order]

[experimental]
enabled = false

[appearance]
theme = "system"

[hotkeys]

[quick_capture]
enabled = true
target_file = "Quick Capture.md"

[workflow]
enabled = false

[habit]
enabled = false

[reward]
enabled = false

[integrations]
ics_enabled = false

[editor_extensions]
task_status_switcher = true
"""

DEFAULT_SETTINGS: Dict[str, Any] = tomllib.loads(DEFAULT_SETTINGS_TOML)

_FILTER_STATE_ENTRY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "filters": {"type": "object"},
        "selected_project": {"type": ["string", "null"]},
        "advanced_filter": {"type": ["object", "null"]},
        "view_mode": {"type": "string"},
    },
    "additionalProperties": True,
}

SCOPED_FIELD_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "filters": {"type": "object"},
    "sort": {"type": ["array", "string", "object"]},
    "group": {"type": ["string", "object", "array"]},
    "columns": {"type": ["array", "object"]},
    "view_mode": {"type": "string", "minLength": 1},
    "calendar": {"type": "object"},
    "kanban": {"type": "object"},
    "gantt": {"type": "object"},
    "display_options": {"type": "object"},
    "view_configuration": {"type": "array", "items": {"type": "object"}},
    "task_list_display_option": {"type": "string"},
    "forecast_option": {"type": "object"},
    "custom_project_groups": {"type": "object"},
    "tag_custom_order": {"type": "object"},
    "filter_state_by_view": {
        "type": "object",
        "additionalProperties": _FILTER_STATE_ENTRY_SCHEMA,
    },
    "active_view_id": {"type": "string"},
}

OVERRIDES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": SCOPED_FIELD_SCHEMAS,
    "additionalProperties": True,
}

_HIDDEN_MODULES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "views": {"type": "array", "items": {"type": "string"}},
        "sidebar_components": {"type": "array", "items": {"type": "string"}},
        "features": {"type": "array", "items": {"type": "string"}},
    },
}

WORKSPACES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "default_workspace_id": {"type": "string"},
        "active_workspace_id": {"type": "string"},
        "order": {"type": "array", "items": {"type": "string"}},
        "by_id": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "icon": {"type": "string"},
                    "color": {"type": "string"},
                    "updated_at": {"type": "integer"},
                    "overrides": OVERRIDES_SCHEMA,
                    "hidden_modules": _HIDDEN_MODULES_SCHEMA,
                },
                "required": ["name"],
            },
        },
    },
    "additionalProperties": True,
}

SETTINGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        **{
            key: schema
            for key, schema in SCOPED_FIELD_SCHEMAS.items()
            if key not in ("filter_state_by_view", "active_view_id")
        },
        "lang": {"type": "string"},
        "auto_run": {"type": "boolean"},
        "workspaces": WORKSPACES_SCHEMA,
    },
    "required": ["view_mode", "view_configuration"],
    "additionalProperties": True,
}

EXPORT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "settings": OVERRIDES_SCHEMA,
        "exportedAt": {"type": "integer"},
        "version": {"type": "integer", "enum": [1]},
    },
    "required": ["settings", "version"],
    "additionalProperties": True,
}

__all__ = [
    "tomllib",
    "DEFAULT_SETTINGS_TOML",
    "DEFAULT_SETTINGS",
    "SCOPED_FIELD_SCHEMAS",
    "OVERRIDES_SCHEMA",
    "WORKSPACES_SCHEMA",
    "SETTINGS_SCHEMA",
    "EXPORT_SCHEMA",
]
