from workspace_overlay.core.application import run as cli_run

__all__ = ["run"]


def run():
    """Console entry point for the ``workspace-overlay`` command."""
    cli_run()


if __name__ == "__main__":
    run()
