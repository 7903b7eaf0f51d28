#!/usr/bin/env python3
"""
Main CLI entry point using Typer.
"""

import os
import sys

import typer

from libvirt_storage_attach.cli.commands import volume
from libvirt_storage_attach.cli.lib.log import setup_logging

app = typer.Typer(
    name="libvirt-storage-attach",
    help="Attach LVM volumes to libvirt domains",
    add_completion=False,
)

# Add command groups
app.add_typer(volume.app, name="volume", help="Volume management commands")


@app.callback()
def callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """
    Every command is a single short-lived operation; run several at once
    and they serialize through lock files, failing fast on contention.
    """
    ctx.obj = {"verbose": verbose}
    setup_logging("DEBUG" if verbose else os.environ.get("LOG_LEVEL", "INFO"))


def main() -> int:
    """Main entry point."""
    try:
        app()
        return 0
    except KeyboardInterrupt:
        typer.echo("\nOperation cancelled by user", err=True)
        return 130
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
