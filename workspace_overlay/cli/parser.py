import argparse
from typing import Optional

from workspace_overlay.config.visibility import ModuleKind

SUPPORTED_FORMATS = ["json", "yaml"]
MODULE_KINDS = [kind.value for kind in ModuleKind]


def _add_workspace_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Workspace id (defaults to the active workspace).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workspace-overlay",
        description="Manage workspace profiles layered over a shared settings file.",
        epilog=(
            "Examples:\n"
            "  workspace-overlay list\n"
            "  workspace-overlay create \"Deep work\" --icon target --color '#ff8800'\n"
            "  workspace-overlay show --workspace ws_1700000000000_abc123def --format yaml\n"
            "  workspace-overlay export ws_1700000000000_abc123def -o deep-work.json\n"
            "  workspace-overlay import deep-work.json --name \"Deep work (copy)\"\n"
            "  workspace-overlay hide features details-panel\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config-dir",
        type=str,
        default=None,
        help="Directory holding the settings files (default: per-user config directory).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enables verbose logging.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Path to the log file.",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    commands.add_parser("list", help="List workspaces in display order.")

    show = commands.add_parser("show", help="Print the effective settings of a workspace.")
    _add_workspace_option(show)
    show.add_argument("-f", "--format", choices=SUPPORTED_FORMATS, default="json")

    create = commands.add_parser("create", help="Create a workspace.")
    create.add_argument("name", type=str)
    create.add_argument(
        "--base",
        type=str,
        default=None,
        help="Workspace to clone (defaults to the active workspace).",
    )
    create.add_argument("--icon", type=str, default=None)
    create.add_argument("--color", type=str, default=None)

    rename = commands.add_parser("rename", help="Rename a workspace.")
    rename.add_argument("workspace_id", type=str)
    rename.add_argument("name", type=str)

    for name, help_text in (
        ("delete", "Delete a workspace."),
        ("switch", "Make a workspace the active one."),
        ("set-default", "Promote a workspace to be the default."),
        ("reset", "Drop all overrides of a workspace."),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("workspace_id", type=str)

    reorder = commands.add_parser("reorder", help="Set the display order of workspaces.")
    reorder.add_argument("workspace_ids", nargs="+")

    export = commands.add_parser("export", help="Export a workspace's overrides.")
    export.add_argument("workspace_id", type=str)
    export.add_argument("-f", "--format", choices=SUPPORTED_FORMATS, default="json")
    export.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write to this file instead of standard output.",
    )

    import_ = commands.add_parser("import", help="Create a workspace from an exported file.")
    import_.add_argument("file", type=str)
    import_.add_argument("--name", type=str, default=None)
    import_.add_argument(
        "-f",
        "--format",
        choices=SUPPORTED_FORMATS,
        default=None,
        help="Payload format (guessed from the file extension when omitted).",
    )

    for name, help_text in (
        ("hide", "Hide a view, sidebar component or feature."),
        ("unhide", "Show a previously hidden module again."),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("kind", choices=MODULE_KINDS)
        command.add_argument("module_id", type=str)
        _add_workspace_option(command)

    return parser


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
