# workspace_overlay/config/manager.py

"""Workspace registry and override persistence.

:class:`WorkspaceManager` owns the global settings record, the registry of
workspaces layered over it, and the cache of resolved effective settings.
Every mutating operation is a coroutine that finishes all in-memory changes
(including cache invalidation) before it awaits the store, so synchronous
readers always observe the new state even while a write is in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from copy import deepcopy
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    cast,
)

import yaml

from .defaults import DEFAULT_SETTINGS
from .events import WorkspaceEvent, WorkspaceEventType
from .exceptions import (
    WorkspaceError,
    WorkspaceImportError,
    WorkspaceIOError,
    WorkspaceValidationError,
)
from .listeners import EventCallback, ListenerRegistry
from .migration import clear_default_overrides, repair_active, repair_order, upgrade_registry
from .models import REGISTRY_VERSION, WorkspaceData, WorkspacesConfig
from .overlay import (
    diff_overrides,
    normalize_overrides,
    restrict_to_scoped,
    split_profile_local,
    values_equal,
)
from .resolver import EffectiveSettingsResolver
from .storage import LAST_ACTIVE_KEY, SETTINGS_KEY, SettingsStore
from .types import (
    INHERITABLE_FIELDS,
    PROFILE_LOCAL_FIELDS,
    SCOPED_FIELDS,
    ScopedField,
    WorkspaceExport,
    WorkspaceOverrides,
)
from .utils import _deep_merge, generate_workspace_id, now_millis
from .validation import validate_export, validate_settings
from .visibility import ModuleVisibility
from ..utils.notices import UserNotices

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WORKSPACE_NAME = "Default"
IMPORTED_WORKSPACE_NAME = "Imported Workspace"
EXPORT_VERSION = 1
PERSIST_FAILED_MESSAGE = (
    "Failed to save workspace settings. Recent changes may not survive a restart."
)


class WorkspaceManager:
    """Registry of workspaces over a shared global configuration."""

    def __init__(
        self,
        store: SettingsStore,
        *,
        notices: Optional[UserNotices] = None,
        clock: Optional[Callable[[], int]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.store = store
        self.notices = notices or UserNotices()
        self._clock = clock or now_millis
        self._id_factory = id_factory or generate_workspace_id
        self._lock = threading.RLock()
        self._listeners = ListenerRegistry()
        self._resolver = EffectiveSettingsResolver()
        self._settings: Dict[str, Any] = {}
        self._config: Optional[WorkspacesConfig] = None
        self._needs_save = False
        self._remembered_id: Optional[str] = None
        self._visibility: Optional[ModuleVisibility] = None
        self._write_lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._write_lock_instance: Optional[asyncio.Lock] = None

        self._load()
        self.bootstrap()

    # ------------------------------------------------------------------
    # Loading and bootstrap
    # ------------------------------------------------------------------
    def _load(self) -> None:
        raw = self.store.load(SETTINGS_KEY)
        if raw is None:
            logger.info("No stored settings found; starting from defaults")
            self._settings = deepcopy(DEFAULT_SETTINGS)
            self._config = None
        else:
            if not isinstance(raw, dict):
                raise WorkspaceValidationError("Settings record must be a table")
            registry = raw.pop("workspaces", None)
            settings = _deep_merge(DEFAULT_SETTINGS, raw)
            if isinstance(registry, dict):
                if registry.get("version", 1) != REGISTRY_VERSION:
                    self._needs_save = True
                registry = upgrade_registry(registry)
                validate_settings({**settings, "workspaces": registry})
                self._config = WorkspacesConfig.from_dict(registry)
            else:
                validate_settings(settings)
                self._config = None
            self._settings = settings

        session = self.store.load(LAST_ACTIVE_KEY) or {}
        remembered = session.get("workspace_id")
        self._remembered_id = remembered if isinstance(remembered, str) else None

    def bootstrap(self) -> bool:
        """Create or repair the registry; returns ``True`` if anything changed."""

        with self._lock:
            changed = False
            if self._config is None:
                workspace = self._new_workspace(DEFAULT_WORKSPACE_NAME)
                self._config = WorkspacesConfig(
                    default_workspace_id=workspace.id,
                    active_workspace_id=workspace.id,
                    order=[workspace.id],
                    by_id={workspace.id: workspace},
                )
                logger.info("Created default workspace %s", workspace.id)
                changed = True
            config = self._config

            if config.default_workspace_id not in config.by_id:
                workspace = self._new_workspace(DEFAULT_WORKSPACE_NAME)
                config.by_id[workspace.id] = workspace
                logger.warning(
                    "Default workspace %r is missing; created %s",
                    config.default_workspace_id,
                    workspace.id,
                )
                config.default_workspace_id = workspace.id
                changed = True

            for workspace in config.by_id.values():
                scoped = restrict_to_scoped(workspace.overrides)
                if len(scoped) != len(workspace.overrides):
                    workspace.overrides = scoped
                    changed = True

            for key in PROFILE_LOCAL_FIELDS:
                if key in self._settings:
                    del self._settings[key]
                    changed = True

            changed = clear_default_overrides(config, self._settings) or changed
            changed = repair_active(config) or changed
            changed = repair_order(config) or changed
            if config.version != REGISTRY_VERSION:
                config.version = REGISTRY_VERSION
                changed = True

            self._resolver.invalidate()
            if changed:
                self._needs_save = True
            return changed

    def _new_workspace(self, name: str) -> WorkspaceData:
        return WorkspaceData(id=self._id_factory(), name=name, updated_at=self._clock())

    @property
    def config(self) -> WorkspacesConfig:
        if self._config is None:
            raise WorkspaceError("Workspace registry has not been bootstrapped")
        return self._config

    @property
    def needs_save(self) -> bool:
        return self._needs_save

    # ------------------------------------------------------------------
    # Persistence and notification
    # ------------------------------------------------------------------
    def _document(self) -> Dict[str, Any]:
        document = deepcopy(self._settings)
        document["workspaces"] = self.config.to_dict()
        return document

    def _write_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        lock = self._write_lock_instance
        if lock is None or self._write_lock_loop is not loop:
            lock = self._write_lock_instance = asyncio.Lock()
            self._write_lock_loop = loop
        return lock

    async def _persist(self, workspace_id: Optional[str] = None) -> bool:
        # Snapshot first; the lock is FIFO so documents reach the store in
        # mutation order.
        document = self._document()
        try:
            async with self._write_lock():
                await self.store.save(SETTINGS_KEY, document)
        except (WorkspaceIOError, OSError) as exc:
            logger.error("Failed to persist workspace settings: %s", exc)
            self._needs_save = True
            self.notices.error(PERSIST_FAILED_MESSAGE)
            self._emit(WorkspaceEvent.create_error_event(workspace_id, exc))
            return False
        self._needs_save = False
        return True

    async def save(self) -> bool:
        """Persist the current state unconditionally."""

        return await self._persist()

    def add_listener(
        self,
        callback: EventCallback,
        event_types: Optional[Iterable[WorkspaceEventType]] = None,
    ) -> None:
        """Register ``callback``; bound methods are held weakly, functions strongly."""

        self._listeners.add(callback, event_types)

    def remove_listener(self, callback: EventCallback) -> None:
        self._listeners.remove(callback)

    def _emit(self, event: WorkspaceEvent) -> None:
        self._listeners.dispatch(event)

    def _emit_change(
        self,
        event_type: WorkspaceEventType,
        workspace_id: Optional[str],
        changed_fields: Tuple[str, ...] = (),
        data: Any = None,
    ) -> None:
        self._emit(
            WorkspaceEvent.create_change_event(event_type, workspace_id, changed_fields, data)
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def default_workspace_id(self) -> str:
        return self.config.default_workspace_id

    @property
    def active_workspace_id(self) -> str:
        return self.config.active_workspace_id

    @property
    def visibility(self) -> ModuleVisibility:
        if self._visibility is None:
            self._visibility = ModuleVisibility(self)
        return self._visibility

    def is_default_workspace(self, workspace_id: str) -> bool:
        return workspace_id == self.config.default_workspace_id

    def get_workspace(self, workspace_id: str) -> Optional[WorkspaceData]:
        with self._lock:
            workspace = self.config.by_id.get(workspace_id)
            return deepcopy(workspace) if workspace is not None else None

    def get_active_workspace(self) -> WorkspaceData:
        with self._lock:
            config = self.config
            workspace = config.by_id.get(config.active_workspace_id)
            if workspace is None:
                workspace = config.by_id[config.default_workspace_id]
            return deepcopy(workspace)

    def get_all_workspaces(self) -> List[WorkspaceData]:
        with self._lock:
            config = self.config
            return [deepcopy(config.by_id[ws_id]) for ws_id in config.order if ws_id in config.by_id]

    def get_global_settings(self) -> Dict[str, Any]:
        with self._lock:
            return deepcopy(self._settings)

    def get_effective_settings(self, workspace_id: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            return self._resolver.resolve(workspace_id, self._settings, self.config)

    def _changed_fields(
        self, before: Mapping[str, Any], after: Mapping[str, Any]
    ) -> Tuple[str, ...]:
        return tuple(
            field.value
            for field in ScopedField
            if not values_equal(before.get(field.value), after.get(field.value))
        )

    # ------------------------------------------------------------------
    # Override persistence
    # ------------------------------------------------------------------
    async def save_overrides(self, workspace_id: str, effective: Mapping[str, Any]) -> None:
        await self._save_overrides(workspace_id, effective, notify=True)

    async def save_overrides_quietly(
        self, workspace_id: str, effective: Mapping[str, Any]
    ) -> None:
        """Save like :meth:`save_overrides` without notifying listeners.

        Used by callers that are themselves reacting to a notification.
        """

        await self._save_overrides(workspace_id, effective, notify=False)

    async def _save_overrides(
        self, workspace_id: str, effective: Mapping[str, Any], notify: bool
    ) -> None:
        with self._lock:
            config = self.config
            workspace = config.by_id.get(workspace_id)
            if workspace is None:
                logger.warning("Cannot save overrides for unknown workspace %r", workspace_id)
                return
            before = self._resolver.resolve(workspace_id, self._settings, config)
            if workspace_id == config.default_workspace_id:
                # The default workspace writes through to the global record.
                for field in ScopedField:
                    value = effective.get(field.value)
                    if value is None:
                        continue
                    if field.value in PROFILE_LOCAL_FIELDS:
                        workspace.overrides[field.value] = deepcopy(value)
                    else:
                        self._settings[field.value] = deepcopy(value)
            else:
                workspace.overrides = diff_overrides(effective, self._settings)
            workspace.updated_at = self._clock()
            self._resolver.invalidate()
            after = self._resolver.resolve(workspace_id, self._settings, config)
            changed = self._changed_fields(before, after)
            logger.debug(
                "Saved overrides for %s (quiet=%s): %s",
                workspace_id,
                not notify,
                ", ".join(changed) or "no changes",
            )

        await self._persist(workspace_id)
        if notify:
            self._emit_change(WorkspaceEventType.OVERRIDES_SAVED, workspace_id, changed)
            self._emit_change(WorkspaceEventType.SETTINGS_CHANGED, workspace_id, changed)

    async def reset_overrides(self, workspace_id: str) -> None:
        with self._lock:
            config = self.config
            if workspace_id == config.default_workspace_id:
                return
            workspace = config.by_id.get(workspace_id)
            if workspace is None:
                return
            workspace.overrides = {}
            workspace.updated_at = self._clock()
            self._resolver.invalidate()

        await self._persist(workspace_id)
        self._emit_change(WorkspaceEventType.RESET, workspace_id)
        self._emit_change(WorkspaceEventType.SETTINGS_CHANGED, workspace_id)

    async def update_global_settings(self, values: Mapping[str, Any]) -> None:
        """Update global-only settings; scoped fields are rejected."""

        scoped = sorted(key for key in values if key in SCOPED_FIELDS)
        if scoped:
            raise WorkspaceValidationError(
                "Scoped settings must be saved through a workspace: " + ", ".join(scoped)
            )
        if not values:
            return
        with self._lock:
            candidate = deepcopy(self._settings)
            for key, value in values.items():
                if value is None:
                    candidate.pop(key, None)
                else:
                    candidate[key] = deepcopy(value)
            validate_settings(candidate)
            self._settings = candidate
            self._resolver.invalidate()

        await self._persist()
        self._emit_change(WorkspaceEventType.SETTINGS_CHANGED, None, tuple(values))

    # ------------------------------------------------------------------
    # Active and default workspace
    # ------------------------------------------------------------------
    async def set_active_workspace(self, workspace_id: str) -> None:
        with self._lock:
            config = self.config
            if workspace_id not in config.by_id:
                self.notices.warning("Workspace not found. Using default workspace.")
                workspace_id = config.default_workspace_id
            if config.active_workspace_id == workspace_id:
                logger.debug("Workspace %s is already active", workspace_id)
                return
            previous_id = config.active_workspace_id
            config.active_workspace_id = workspace_id
            self._resolver.invalidate()

        await self._persist(workspace_id)
        logger.info("Switched active workspace from %s to %s", previous_id, workspace_id)
        self._emit(WorkspaceEvent.create_switch_event(previous_id, workspace_id))

    async def set_default_workspace(self, workspace_id: str) -> None:
        """Promote ``workspace_id`` to be the default workspace.

        The current global values become the old default's overrides, the
        new default's overrides become the global values, and every other
        workspace is normalised against the new base.
        """

        with self._lock:
            config = self.config
            if workspace_id not in config.by_id:
                logger.warning("Cannot promote unknown workspace %r to default", workspace_id)
                return
            if workspace_id == config.default_workspace_id:
                return

            old_default = config.by_id[config.default_workspace_id]
            new_default = config.by_id[workspace_id]

            previous_base = {
                key: deepcopy(self._settings[key])
                for key in sorted(INHERITABLE_FIELDS)
                if self._settings.get(key) is not None
            }
            previous_base.update(split_profile_local(old_default.overrides))

            for key, value in new_default.overrides.items():
                if key in INHERITABLE_FIELDS:
                    self._settings[key] = deepcopy(value)

            old_default.overrides = cast(WorkspaceOverrides, previous_base)
            new_default.overrides = split_profile_local(new_default.overrides)
            config.default_workspace_id = workspace_id

            timestamp = self._clock()
            old_default.updated_at = timestamp
            new_default.updated_at = timestamp

            for ws_id, workspace in config.by_id.items():
                if ws_id == workspace_id:
                    continue
                removed = normalize_overrides(workspace.overrides, self._settings)
                if removed:
                    logger.debug("Normalised %s: dropped %s", ws_id, ", ".join(removed))
            repair_order(config)
            self._resolver.invalidate()

        await self._persist(workspace_id)
        logger.info("Workspace %s is now the default", workspace_id)
        self._emit_change(WorkspaceEventType.DEFAULT_CHANGED, workspace_id)
        self._emit_change(WorkspaceEventType.SETTINGS_CHANGED, workspace_id)

    # ------------------------------------------------------------------
    # Workspace lifecycle
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise WorkspaceValidationError("Workspace name must not be empty")
        return cleaned

    def _add_workspace(
        self,
        name: str,
        base_workspace_id: Optional[str],
        icon: Optional[str],
        color: Optional[str],
    ) -> Tuple[WorkspaceData, str]:
        config = self.config
        base_id = base_workspace_id or config.active_workspace_id or config.default_workspace_id
        base = config.by_id.get(base_id)
        if base is None:
            logger.debug("Base workspace %r not found; using default", base_id)
            base_id = config.default_workspace_id
            base = config.by_id[base_id]
        cloning = base_id != config.default_workspace_id

        workspace = self._new_workspace(self._validate_name(name))
        if cloning:
            workspace.overrides = deepcopy(base.overrides)
            workspace.hidden_modules = deepcopy(base.hidden_modules)
        workspace.icon = icon or (base.icon if cloning else None)
        workspace.color = color or (base.color if cloning else None)

        config.by_id[workspace.id] = workspace
        config.order.append(workspace.id)
        return workspace, base_id

    async def create_workspace(
        self,
        name: str,
        base_workspace_id: Optional[str] = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> WorkspaceData:
        with self._lock:
            workspace, base_id = self._add_workspace(name, base_workspace_id, icon, color)
            self._resolver.invalidate()
            created = deepcopy(workspace)

        await self._persist(workspace.id)
        logger.info("Created workspace %s (%s) from %s", workspace.id, workspace.name, base_id)
        self._emit_change(WorkspaceEventType.CREATED, workspace.id, data=base_id)
        return created

    async def delete_workspace(self, workspace_id: str) -> None:
        with self._lock:
            config = self.config
            if workspace_id == config.default_workspace_id:
                self.notices.warning("Cannot delete the default workspace")
                return
            if workspace_id not in config.by_id:
                return
            del config.by_id[workspace_id]
            if workspace_id in config.order:
                config.order.remove(workspace_id)
            was_active = config.active_workspace_id == workspace_id
            if was_active:
                config.active_workspace_id = config.default_workspace_id
            self._resolver.invalidate()

        if was_active:
            self._emit(
                WorkspaceEvent.create_switch_event(workspace_id, config.default_workspace_id)
            )
        await self._persist(workspace_id)
        logger.info("Deleted workspace %s", workspace_id)
        self._emit_change(WorkspaceEventType.DELETED, workspace_id)

    async def rename_workspace(
        self,
        workspace_id: str,
        new_name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> None:
        with self._lock:
            workspace = self.config.by_id.get(workspace_id)
            if workspace is None:
                return
            workspace.name = self._validate_name(new_name)
            if icon is not None:
                workspace.icon = icon
            if color is not None:
                workspace.color = color
            workspace.updated_at = self._clock()
            self._resolver.invalidate()

        await self._persist(workspace_id)
        self._emit_change(WorkspaceEventType.RENAMED, workspace_id, data=workspace.name)

    async def reorder_workspaces(self, new_order: Iterable[str]) -> None:
        with self._lock:
            config = self.config
            valid: List[str] = []
            for ws_id in new_order:
                if ws_id in config.by_id and ws_id not in valid:
                    valid.append(ws_id)
            # Ids left out of the request keep their previous relative order.
            valid.extend(ws_id for ws_id in config.order if ws_id not in valid)
            config.order = valid
            repair_order(config)

        await self._persist()

    async def commit_workspace(
        self,
        workspace_id: Optional[str],
        mutate: Callable[[WorkspaceData], T],
        changed_fields: Tuple[str, ...],
    ) -> Optional[T]:
        """Apply ``mutate`` to a workspace and run the save/notify path.

        ``workspace_id`` defaults to the active workspace. Returns ``None``
        without side effects when the workspace does not exist.
        """

        with self._lock:
            config = self.config
            ws_id = workspace_id or config.active_workspace_id
            workspace = config.by_id.get(ws_id)
            if workspace is None:
                return None
            result = mutate(workspace)
            workspace.updated_at = self._clock()
            self._resolver.invalidate()

        await self._persist(ws_id)
        self._emit_change(WorkspaceEventType.OVERRIDES_SAVED, ws_id, changed_fields)
        return result

    # ------------------------------------------------------------------
    # Remembered selection
    # ------------------------------------------------------------------
    def get_remembered_workspace_id(self) -> Optional[str]:
        remembered = self._remembered_id
        if remembered and remembered in self.config.by_id:
            return remembered
        return None

    async def remember_workspace(self, workspace_id: Optional[str]) -> None:
        self._remembered_id = workspace_id
        payload = {"workspace_id": workspace_id} if workspace_id else {}
        try:
            await self.store.save(LAST_ACTIVE_KEY, payload)
        except (WorkspaceIOError, OSError) as exc:
            logger.error("Failed to remember workspace %s: %s", workspace_id, exc)
            self.notices.error(PERSIST_FAILED_MESSAGE)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    def export_workspace(self, workspace_id: str, fmt: str = "json") -> Optional[str]:
        workspace = self.get_workspace(workspace_id)
        if workspace is None:
            return None
        payload: WorkspaceExport = {
            "name": workspace.name,
            "settings": workspace.overrides,
            "exportedAt": self._clock(),
            "version": EXPORT_VERSION,
        }
        if fmt == "json":
            return json.dumps(payload, indent=2)
        if fmt == "yaml":
            return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
        raise ValueError(f"Unsupported export format: {fmt}")

    @staticmethod
    def _parse_import(payload: str, fmt: str) -> Dict[str, Any]:
        try:
            if fmt == "json":
                data = json.loads(payload)
            elif fmt == "yaml":
                data = yaml.safe_load(payload)
            else:
                raise WorkspaceImportError(f"Unsupported import format: {fmt}")
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise WorkspaceImportError(f"Invalid {fmt} payload: {exc}") from exc
        if not isinstance(data, dict):
            raise WorkspaceImportError("Workspace payload must be an object")
        if "settings" not in data and "overrides" in data:
            data["settings"] = data.pop("overrides")
        validate_export(data)
        return data

    async def import_workspace(
        self, payload: str, name: Optional[str] = None, fmt: str = "json"
    ) -> Optional[WorkspaceData]:
        """Create a workspace from an exported payload.

        The imported overrides are stored verbatim. Nothing is created when
        the payload is malformed.
        """

        try:
            data = self._parse_import(payload, fmt)
        except WorkspaceImportError as exc:
            logger.error("Workspace import error: %s", exc)
            self.notices.error("Failed to import workspace configuration")
            return None

        settings = data["settings"]
        unknown = sorted(key for key in settings if key not in SCOPED_FIELDS)
        if unknown:
            logger.warning("Ignoring unknown settings in imported workspace: %s", ", ".join(unknown))
        ws_name = str(name or data.get("name") or "").strip() or IMPORTED_WORKSPACE_NAME

        with self._lock:
            workspace, base_id = self._add_workspace(
                ws_name, self.config.default_workspace_id, None, None
            )
            workspace.overrides = restrict_to_scoped(settings)
            self._resolver.invalidate()
            imported = deepcopy(workspace)

        await self._persist(workspace.id)
        logger.info("Imported workspace %s (%s)", workspace.id, workspace.name)
        self._emit_change(WorkspaceEventType.CREATED, workspace.id, data=base_id)
        return imported

    def cleanup(self) -> None:
        """Drop every listener and cached resolution on shutdown."""

        with self._lock:
            self._listeners.clear()
            self._resolver.invalidate()


__all__ = ["WorkspaceManager", "DEFAULT_WORKSPACE_NAME", "PERSIST_FAILED_MESSAGE"]
