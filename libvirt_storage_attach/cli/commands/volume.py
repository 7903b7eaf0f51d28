"""
Volume management commands.
"""

import json

import typer

from libvirt_storage_attach.backends import VolumeManager, get_volume_manager
from libvirt_storage_attach.cli.lib.config import AttachConfig, load_config
from libvirt_storage_attach.cli.lib.log import setup_logging
from libvirt_storage_attach.cli.lib.validators import (
    parse_size,
    validate_vm_name,
    validate_volume_id,
    validate_volume_size,
)
from libvirt_storage_attach.exceptions import StorageAttachError

app = typer.Typer(help="Volume management commands")


def _load(ctx: typer.Context) -> AttachConfig:
    cfg = load_config()
    verbose = bool((ctx.obj or {}).get("verbose"))
    setup_logging("DEBUG" if verbose else cfg.log_level)
    return cfg


def _manager(cfg: AttachConfig) -> VolumeManager:
    return get_volume_manager(cfg)


@app.command()
def attach(
    ctx: typer.Context,
    pv_id: str = typer.Option(..., "--pv-id", help="Persistent volume id"),
    vm_name: str = typer.Option(..., "--vm-name", help="Virtual machine name"),
):
    """
    Attach a volume to a running domain.

    Attaching a volume that is already attached to the domain is a no-op.
    """
    try:
        cfg = _load(ctx)
        validate_volume_id(pv_id, cfg.volume_prefix)
        validate_vm_name(vm_name)

        _manager(cfg).attach(pv_id, vm_name)

    except (StorageAttachError, ValueError) as e:
        typer.echo(f"Error attaching volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def detach(
    ctx: typer.Context,
    pv_id: str = typer.Option(..., "--pv-id", help="Persistent volume id"),
    vm_name: str = typer.Option(..., "--vm-name", help="Virtual machine name"),
):
    """
    Detach a volume from a domain and release its ownership.

    Detaching a volume that isn't attached, or from a domain that no longer
    exists, is a no-op.
    """
    try:
        cfg = _load(ctx)
        validate_volume_id(pv_id, cfg.volume_prefix)
        validate_vm_name(vm_name)

        _manager(cfg).detach(pv_id, vm_name)

    except (StorageAttachError, ValueError) as e:
        typer.echo(f"Error detaching volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def create(
    ctx: typer.Context,
    size: str = typer.Option(..., "--size", help="Volume size, e.g. 10GB (at least 1GB)"),
):
    """
    Create a new volume and print its id.
    """
    try:
        cfg = _load(ctx)
        size_bytes = parse_size(size)
        validate_volume_size(size_bytes)

        pv_id = _manager(cfg).create_volume(size_bytes)
        typer.echo(pv_id)

    except (StorageAttachError, ValueError) as e:
        typer.echo(f"Error creating volume: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def delete(
    ctx: typer.Context,
    pv_id: str = typer.Option(..., "--pv-id", help="Persistent volume id"),
):
    """
    Delete a volume.

    Refused while the volume is still owned by a VM; detach it first.
    """
    try:
        cfg = _load(ctx)
        validate_volume_id(pv_id, cfg.volume_prefix)

        _manager(cfg).delete_volume(pv_id)

    except (StorageAttachError, ValueError) as e:
        typer.echo(f"Error deleting volume: {e}", err=True)
        raise typer.Exit(1)


@app.command("list")
def list_volumes(ctx: typer.Context):
    """
    List volumes with the domains they are attached to, as JSON.
    """
    try:
        cfg = _load(ctx)
        volumes = _manager(cfg).list_volumes()
        typer.echo(json.dumps([v.to_dict() for v in volumes], indent=2))

    except (StorageAttachError, ValueError) as e:
        typer.echo(f"Error listing volumes: {e}", err=True)
        raise typer.Exit(1)
