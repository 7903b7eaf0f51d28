"""
LVM logical volume management functions.
"""

import json
import logging
from typing import Dict, List, Optional, Tuple

from libvirt_storage_attach.cli.lib.process import CommandResult, run_command
from libvirt_storage_attach.exceptions import BackendError, OperationTimeout, PermissionDenied

logger = logging.getLogger(__name__)


def _raise_for_result(result: CommandResult, action: str) -> None:
    """
    Turn a failed LVM command into an exception.

    LVM sometimes exits 0 but prints a "WARNING: " line on stderr when it
    could not read device metadata, so that is treated as a failure too.

    Raises:
        PermissionDenied: If LVM complained about privileges
        BackendError: For any other failure
    """
    if result.ok and not result.stderr.startswith("WARNING: "):
        return

    logger.info(
        "command output command=%s stdout=%r stderr=%r returncode=%s",
        result.args[0],
        result.stdout,
        result.stderr,
        result.returncode,
    )
    if "Permission denied" in result.stderr:
        raise PermissionDenied(
            f"permission denied running {result.args[0]}",
            command=result.args,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    raise BackendError(
        f"Failed to {action}: {result.stderr or result.stdout or f'exit status {result.returncode}'}",
        command=result.args,
        stdout=result.stdout,
        stderr=result.stderr,
    )


def is_thin_pool_reference(volume_group: str) -> bool:
    """A `vg/pool` reference means volumes are carved from a thin pool."""
    return "/" in volume_group


def create_lv(volume_group: str, lv_name: str, size_bytes: int) -> None:
    """
    Create a logical volume.

    Args:
        volume_group: Volume group name, or `vg/thinpool` for a thin volume
        lv_name: Logical volume name
        size_bytes: Size in bytes

    Raises:
        PermissionDenied: If LVM refuses for lack of privilege
        BackendError: If LV creation fails
    """
    # -V is the virtual size of a thin volume, -L a regular allocation
    size_flag = "-V" if is_thin_pool_reference(volume_group) else "-L"
    result = run_command(
        [
            "lvcreate",
            size_flag, f"{size_bytes}b",
            volume_group,
            "-n", lv_name,
        ]
    )
    _raise_for_result(result, "create logical volume")


def delete_lv(vg_name: str, lv_name: str) -> None:
    """
    Delete a logical volume.

    Args:
        vg_name: Volume group name (no thin pool part)
        lv_name: Logical volume name

    Raises:
        PermissionDenied: If LVM refuses for lack of privilege
        BackendError: If LV deletion fails
    """
    result = run_command(["lvremove", "--yes", f"{vg_name}/{lv_name}"])
    _raise_for_result(result, "delete logical volume")


def list_lvs(vg_name: str, prefix: str, timeout: Optional[float] = None) -> List[Tuple[str, int]]:
    """
    List logical volumes in `vg_name` whose names start with `prefix`.

    Returns:
        List of (lv_name, size_bytes) in the order lvs reports them

    Raises:
        PermissionDenied: If LVM refuses for lack of privilege
        BackendError: If lvs fails or its output can't be parsed
        OperationTimeout: If lvs runs past `timeout`
    """
    result = run_command(
        [
            "lvs",
            "--noheadings",
            "--units", "b",
            "--nosuffix",
            "-o", "name,size",
            "--separator", "\t",
            "--select", f"name=~{prefix}[^.]+ && vg_name={vg_name}",
        ],
        timeout=timeout,
    )
    _raise_for_result(result, "list logical volumes")

    volumes: List[Tuple[str, int]] = []
    for line in result.stdout.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split("\t")
        logger.debug("parsing lvs line %s", parts)
        if len(parts) != 2:
            raise BackendError(f"unexpected lvs output line {line!r}", command=result.args, stdout=result.stdout)
        try:
            size = int(float(parts[1]))
        except ValueError:
            raise BackendError(f"unexpected lvs size {parts[1]!r}", command=result.args, stdout=result.stdout)
        volumes.append((parts[0].strip(), size))
    return volumes


def volume_group_mapping(timeout: Optional[float] = None) -> Dict[str, str]:
    """
    Map every logical volume name on the host to its volume group.

    Failures, including running past `timeout`, are logged and produce an
    empty mapping; callers fall back to the configured volume group.
    """
    mapping: Dict[str, str] = {}

    try:
        result = run_command(["lvs", "-o", "vg_name,lv_name", "--reportformat", "json"], timeout=timeout)
    except OperationTimeout as e:
        logger.error("failed to get logical volume info: %s", e)
        return mapping
    if not result.ok:
        logger.error("failed to get logical volume info: %s", result.stderr)
        return mapping

    try:
        report = json.loads(result.stdout)
    except ValueError as e:
        logger.error("failed to unmarshal logical volume info: %s", e)
        return mapping

    # lvs emits a single report unless several report types are requested
    for entry in report.get("report", []):
        for lv in entry.get("lv", []):
            mapping[lv.get("lv_name", "")] = lv.get("vg_name", "")

    return mapping
