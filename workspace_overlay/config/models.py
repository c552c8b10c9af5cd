from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, cast

from .types import HiddenModules, WorkspaceOverrides

REGISTRY_VERSION = 2


@dataclass
class WorkspaceData:
    """A named override layer over the global settings."""

    id: str
    name: str
    updated_at: int
    overrides: WorkspaceOverrides = field(default_factory=lambda: WorkspaceOverrides())
    icon: Optional[str] = None
    color: Optional[str] = None
    hidden_modules: Optional[HiddenModules] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "updated_at": self.updated_at,
            "overrides": deepcopy(self.overrides),
        }
        if self.icon is not None:
            data["icon"] = self.icon
        if self.color is not None:
            data["color"] = self.color
        if self.hidden_modules is not None:
            data["hidden_modules"] = deepcopy(self.hidden_modules)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceData":
        overrides = data.get("overrides")
        hidden = data.get("hidden_modules")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            updated_at=int(data.get("updated_at", 0)),
            overrides=(
                cast(WorkspaceOverrides, deepcopy(overrides))
                if isinstance(overrides, dict)
                else WorkspaceOverrides()
            ),
            icon=data.get("icon"),
            color=data.get("color"),
            hidden_modules=deepcopy(hidden) if isinstance(hidden, dict) else None,
        )


@dataclass
class WorkspacesConfig:
    """The registry of workspaces plus the default and active pointers."""

    default_workspace_id: str
    active_workspace_id: str
    order: List[str] = field(default_factory=list)
    by_id: Dict[str, WorkspaceData] = field(default_factory=dict)
    version: int = REGISTRY_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "default_workspace_id": self.default_workspace_id,
            "active_workspace_id": self.active_workspace_id,
            "order": list(self.order),
            "by_id": {ws_id: ws.to_dict() for ws_id, ws in self.by_id.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspacesConfig":
        by_id: Dict[str, WorkspaceData] = {}
        for ws_id, raw in (data.get("by_id") or {}).items():
            if not isinstance(raw, dict):
                continue
            raw = dict(raw)
            raw.setdefault("id", ws_id)
            by_id[ws_id] = WorkspaceData.from_dict(raw)
        return cls(
            default_workspace_id=str(data.get("default_workspace_id") or ""),
            active_workspace_id=str(data.get("active_workspace_id") or ""),
            order=[str(ws_id) for ws_id in data.get("order") or []],
            by_id=by_id,
            version=int(data.get("version", 1)),
        )


__all__ = ["REGISTRY_VERSION", "WorkspaceData", "WorkspacesConfig"]
