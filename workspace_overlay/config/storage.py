from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .defaults import tomllib
from .exceptions import WorkspaceIOError
from .toml_io import toml_dumps

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
LAST_ACTIVE_KEY = "last_active_workspace"


class SettingsStore(ABC):
    """Key/value persistence for the settings record and session keys.

    Reads happen once, synchronously, when the manager is constructed.
    Writes are awaited so hosts can perform them off the event loop.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def save(self, key: str, value: Dict[str, Any]) -> None:
        ...


class MemorySettingsStore(SettingsStore):
    """In-process store; every write is recorded in ``writes``."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._data: Dict[str, Dict[str, Any]] = deepcopy(initial) if initial else {}
        self.writes: List[Tuple[str, Dict[str, Any]]] = []

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return deepcopy(value) if value is not None else None

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        snapshot = deepcopy(value)
        self._data[key] = snapshot
        self.writes.append((key, snapshot))

    def writes_for(self, key: str) -> List[Dict[str, Any]]:
        return [value for written_key, value in self.writes if written_key == key]


class TomlSettingsStore(SettingsStore):
    """Filesystem store writing one TOML document per key."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = (directory or self.default_directory()).expanduser().resolve()

    @staticmethod
    def default_directory() -> Path:
        override = os.environ.get("WORKSPACE_OVERLAY_HOME")
        if override:
            return Path(override)
        if os.name == "nt":
            appdata = os.environ.get("APPDATA")
            base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
            return base / "workspace-overlay"
        return Path.home() / ".config" / "workspace-overlay"

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        return self._directory / f"{key}.toml"

    def ensure_directory(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceIOError(
                f"Unable to create settings directory: {exc}"
            ) from exc

    def backup(self, key: str, suffix: str = "backup") -> Optional[Path]:
        path = self.path_for(key)
        if not path.exists():
            return None
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.name}.{suffix}.{timestamp}.bak")
        try:
            shutil.copy2(path, backup_path)
            return backup_path
        except OSError as exc:  # pragma: no cover
            logger.warning("Failed to create settings backup at %s: %s", backup_path, exc)
            return None

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with path.open("rb") as fh:
                return tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            logger.error("Settings file %s is not valid TOML: %s", path, exc)
            backup_path = self.backup(key, suffix="corrupt")
            if backup_path:
                logger.error("Corrupt settings backed up to %s", backup_path)
            return None
        except OSError as exc:
            raise WorkspaceIOError(f"Unable to read {path}: {exc}") from exc

    def _write_sync(self, key: str, value: Dict[str, Any]) -> None:
        self.ensure_directory()
        path = self.path_for(key)
        try:
            serialized = toml_dumps(value)
        except TypeError as exc:
            raise WorkspaceIOError(f"Unable to serialise {key}: {exc}") from exc
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                delete=False,
                dir=str(self._directory),
                prefix=f".{path.name}.",
                suffix=".tmp",
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(serialized)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as exc:
            raise WorkspaceIOError(f"Failed to write {path}: {exc}") from exc
        finally:
            if tmp_path is not None and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as exc:
                    logger.warning("Failed to remove temporary file %s: %s", tmp_path, exc)

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_sync, key, deepcopy(value))


__all__ = [
    "SETTINGS_KEY",
    "LAST_ACTIVE_KEY",
    "SettingsStore",
    "MemorySettingsStore",
    "TomlSettingsStore",
]
