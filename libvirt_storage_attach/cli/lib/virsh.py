"""
virsh attach-device / detach-device wrappers.
"""

import logging

from libvirt_storage_attach.cli.lib.process import CommandResult, remove_file, run_command, write_temp_file
from libvirt_storage_attach.exceptions import AttachFailed, DetachFailed

logger = logging.getLogger(__name__)

ATTACH_SUCCESS_OUTPUT = "Device attached successfully"


def _run_with_descriptor(args_before_file: list, name: str, descriptor: str, timeout: float) -> CommandResult:
    xml_file = write_temp_file(name, descriptor)
    try:
        return run_command(args_before_file + [xml_file], timeout=timeout)
    finally:
        remove_file(xml_file)


def attach_device(uri: str, vm_name: str, pv_id: str, descriptor: str, timeout: float) -> CommandResult:
    """
    Hot-plug `descriptor` into the running domain `vm_name`.

    Raises:
        AttachFailed: If virsh exits non-zero
        OperationTimeout: If virsh runs past `timeout`
    """
    result = _run_with_descriptor(
        ["virsh", f"--connect={uri}", "attach-device", "--current", vm_name],
        pv_id,
        descriptor,
        timeout,
    )
    if not result.ok:
        logger.error(
            "failed to attach-device vm-name=%s stdout=%r stderr=%r", vm_name, result.stdout, result.stderr
        )
        raise AttachFailed(
            f"failed to attach {pv_id} to {vm_name}: {result.stderr or result.stdout}",
            command=result.args,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


def detach_device(uri: str, vm_name: str, pv_id: str, descriptor: str, timeout: float) -> CommandResult:
    """
    Hot-unplug the device described by `descriptor` from `vm_name`.

    Raises:
        DetachFailed: If virsh exits non-zero
        OperationTimeout: If virsh runs past `timeout`
    """
    result = _run_with_descriptor(
        ["virsh", f"--connect={uri}", "detach-device", vm_name],
        pv_id,
        descriptor,
        timeout,
    )
    if not result.ok:
        logger.info("command output stdout=%r stderr=%r", result.stdout, result.stderr)
        raise DetachFailed(
            f"failed to detach {pv_id} from {vm_name}: {result.stderr or result.stdout}",
            command=result.args,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result
