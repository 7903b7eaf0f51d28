"""Custom exceptions for libvirt-storage-attach."""

from typing import Optional


class StorageAttachError(Exception):
    """Base exception for all volume attach/detach errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigError(StorageAttachError):
    """Configuration file is missing or invalid."""

    pass


class HypervisorConnectionError(StorageAttachError):
    """Failed to connect to the hypervisor."""

    pass


class DomainNotFound(StorageAttachError):
    """Domain does not exist on the hypervisor."""

    def __init__(self, domain: str):
        super().__init__(f"Domain not found: {domain}")
        self.domain = domain


class LockContention(StorageAttachError):
    """Another operation holds a lock this operation needs."""

    def __init__(self, path: str):
        super().__init__(f"lock {path} is held by another operation")
        self.path = path


class OwnershipConflict(StorageAttachError):
    """Volume is owned by a different VM."""

    def __init__(self, pv_id: str, vm_name: str, owner: str):
        super().__init__(
            f"pv {pv_id} is in use can't be modified by '{vm_name}' since it's locked by '{owner}'"
        )
        self.pv_id = pv_id
        self.vm_name = vm_name
        self.owner = owner


class CommandError(StorageAttachError):
    """External command failed."""

    def __init__(self, message: str, command: Optional[list] = None, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.stdout = stdout
        self.stderr = stderr


class AttachFailed(CommandError):
    """virsh attach-device failed."""

    pass


class DetachFailed(CommandError):
    """virsh detach-device failed."""

    pass


class UnexpectedOutput(CommandError):
    """Command exited cleanly but reported something unexpected."""

    pass


class OperationTimeout(CommandError):
    """Command exceeded its deadline and was killed."""

    pass


class PermissionDenied(CommandError):
    """Storage backend reported insufficient privileges."""

    pass


class BackendError(CommandError):
    """Storage backend command failed."""

    pass


class TargetsExhausted(StorageAttachError):
    """Every candidate device target is already in use."""

    def __init__(self, domain: str):
        super().__init__(f"no free device target left on domain {domain}")
        self.domain = domain
