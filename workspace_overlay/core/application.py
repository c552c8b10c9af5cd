import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from workspace_overlay.backend.services.logging.logging_service import setup_logging
from workspace_overlay.cli.parser import parse_arguments
from workspace_overlay.config import (
    TomlSettingsStore,
    WorkspaceError,
    WorkspaceManager,
    WorkspaceValidationError,
)
from workspace_overlay.utils.color_support import color_support

logger = logging.getLogger(__name__)


def _require_workspace(manager: WorkspaceManager, workspace_id: Optional[str]) -> None:
    if workspace_id is not None and manager.get_workspace(workspace_id) is None:
        raise WorkspaceValidationError(f"Unknown workspace: {workspace_id}")


def _guess_format(path: Path) -> str:
    return "yaml" if path.suffix.lower() in (".yaml", ".yml") else "json"


def _print_workspaces(manager: WorkspaceManager) -> None:
    for workspace in manager.get_all_workspaces():
        markers = []
        if manager.is_default_workspace(workspace.id):
            markers.append("default")
        line = f"{workspace.id}  {workspace.name}"
        if markers:
            line += f"  ({', '.join(markers)})"
        if workspace.id == manager.active_workspace_id:
            print(color_support.success(f"* {line}"))
        else:
            print(f"  {line}")


async def _set_module_hidden(
    manager: WorkspaceManager, kind: str, module_id: str, workspace_id: Optional[str], hidden: bool
) -> None:
    current = manager.visibility.get_hidden(kind, workspace_id)
    if hidden and module_id not in current:
        current.append(module_id)
    elif not hidden and module_id in current:
        current.remove(module_id)
    else:
        logger.info("%s %s is already %s", kind, module_id, "hidden" if hidden else "visible")
        return
    await manager.visibility.set_hidden(kind, current, workspace_id)


async def dispatch(manager: WorkspaceManager, args) -> int:
    """Run the sub-command described by ``args`` against ``manager``."""

    if manager.needs_save:
        await manager.save()

    command = args.command
    if command == "list":
        _print_workspaces(manager)
    elif command == "show":
        _require_workspace(manager, args.workspace)
        effective = manager.get_effective_settings(args.workspace)
        if args.format == "yaml":
            print(yaml.safe_dump(effective, sort_keys=False, allow_unicode=True), end="")
        else:
            print(json.dumps(effective, indent=2))
    elif command == "create":
        _require_workspace(manager, args.base)
        workspace = await manager.create_workspace(
            args.name, base_workspace_id=args.base, icon=args.icon, color=args.color
        )
        print(workspace.id)
    elif command == "rename":
        _require_workspace(manager, args.workspace_id)
        await manager.rename_workspace(args.workspace_id, args.name)
    elif command == "delete":
        _require_workspace(manager, args.workspace_id)
        if manager.is_default_workspace(args.workspace_id):
            raise WorkspaceValidationError("The default workspace cannot be deleted")
        await manager.delete_workspace(args.workspace_id)
    elif command == "switch":
        _require_workspace(manager, args.workspace_id)
        await manager.set_active_workspace(args.workspace_id)
        await manager.remember_workspace(args.workspace_id)
    elif command == "set-default":
        _require_workspace(manager, args.workspace_id)
        await manager.set_default_workspace(args.workspace_id)
    elif command == "reset":
        _require_workspace(manager, args.workspace_id)
        await manager.reset_overrides(args.workspace_id)
    elif command == "reorder":
        for workspace_id in args.workspace_ids:
            _require_workspace(manager, workspace_id)
        await manager.reorder_workspaces(args.workspace_ids)
        _print_workspaces(manager)
    elif command == "export":
        _require_workspace(manager, args.workspace_id)
        payload = manager.export_workspace(args.workspace_id, fmt=args.format)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            logger.info("Exported workspace %s to %s", args.workspace_id, args.output)
        else:
            print(payload)
    elif command == "import":
        path = Path(args.file)
        try:
            payload = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Unable to read %s: %s", path, exc)
            return 1
        workspace = await manager.import_workspace(
            payload, name=args.name, fmt=args.format or _guess_format(path)
        )
        if workspace is None:
            return 1
        print(workspace.id)
    elif command in ("hide", "unhide"):
        _require_workspace(manager, args.workspace)
        await _set_module_hidden(
            manager, args.kind, args.module_id, args.workspace, hidden=command == "hide"
        )
    else:  # pragma: no cover - argparse rejects unknown commands
        logger.error("Unknown command: %s", command)
        return 2
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    setup_logging(args.verbose, args.log_file)

    directory = Path(args.config_dir).expanduser() if args.config_dir else None
    try:
        manager = WorkspaceManager(TomlSettingsStore(directory))
    except WorkspaceError as exc:
        logger.error("%s", exc)
        return 1
    try:
        return asyncio.run(dispatch(manager, args))
    except WorkspaceError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        manager.cleanup()


def run() -> None:
    sys.exit(main())
