# workspace_overlay/config/types.py

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, TypedDict


class ScopedField(str, Enum):
    """Settings a workspace is allowed to override."""

    FILTERS = "filters"
    SORT = "sort"
    GROUP = "group"
    COLUMNS = "columns"
    VIEW_MODE = "view_mode"
    CALENDAR = "calendar"
    KANBAN = "kanban"
    GANTT = "gantt"
    DISPLAY_OPTIONS = "display_options"
    VIEW_CONFIGURATION = "view_configuration"
    TASK_LIST_DISPLAY_OPTION = "task_list_display_option"
    FORECAST_OPTION = "forecast_option"
    CUSTOM_PROJECT_GROUPS = "custom_project_groups"
    TAG_CUSTOM_ORDER = "tag_custom_order"
    FILTER_STATE_BY_VIEW = "filter_state_by_view"
    ACTIVE_VIEW_ID = "active_view_id"


SCOPED_FIELDS: FrozenSet[str] = frozenset(field.value for field in ScopedField)

# Stored per workspace only; never part of the global record.
PROFILE_LOCAL_FIELDS: FrozenSet[str] = frozenset(
    {ScopedField.FILTER_STATE_BY_VIEW.value, ScopedField.ACTIVE_VIEW_ID.value}
)

INHERITABLE_FIELDS: FrozenSet[str] = SCOPED_FIELDS - PROFILE_LOCAL_FIELDS

GLOBAL_ONLY_FIELDS: FrozenSet[str] = frozenset(
    {
        "auto_run",
        "lang",
        "experimental",
        "appearance",
        "hotkeys",
        "quick_capture",
        "workflow",
        "habit",
        "reward",
        "integrations",
        "editor_extensions",
    }
)


class FilterStateEntry(TypedDict, total=False):
    filters: Dict[str, Any]
    selected_project: Optional[str]
    advanced_filter: Optional[Dict[str, Any]]
    view_mode: str


class HiddenModules(TypedDict):
    views: List[str]
    sidebar_components: List[str]
    features: List[str]


class WorkspaceOverrides(TypedDict, total=False):
    filters: Dict[str, Any]
    sort: Any
    group: Any
    columns: Any
    view_mode: str
    calendar: Dict[str, Any]
    kanban: Dict[str, Any]
    gantt: Dict[str, Any]
    display_options: Dict[str, Any]
    view_configuration: List[Dict[str, Any]]
    task_list_display_option: str
    forecast_option: Dict[str, Any]
    custom_project_groups: Dict[str, Any]
    tag_custom_order: Dict[str, Any]
    filter_state_by_view: Dict[str, FilterStateEntry]
    active_view_id: str


class WorkspaceExport(TypedDict):
    name: str
    settings: WorkspaceOverrides
    exportedAt: int
    version: int
