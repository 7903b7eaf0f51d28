from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Protocol, runtime_checkable


@dataclass
class VolumeInfo:
    """A managed volume and the domains it is currently attached to."""

    id: str
    capacity_bytes: int
    owners: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@runtime_checkable
class VolumeManager(Protocol):
    """Contract every volume backend implements.
    Semantics:
      - attach(pv_id, vm_name): hot-plug the volume into the domain (idempotent).
      - detach(pv_id, vm_name): hot-unplug it and clear ownership (idempotent;
        a missing domain counts as detached).
      - create_volume(size_bytes): allocate a new volume and return its id.
      - delete_volume(pv_id): remove an unowned volume.
      - list_volumes(): every managed volume with its current owners.
    Notes:
      - attach/detach/delete hold the lock files for the duration of the call.
      - Raise StorageAttachError subclasses; other exceptions may propagate.
    """

    def attach(self, pv_id: str, vm_name: str) -> None:
        ...

    def detach(self, pv_id: str, vm_name: str) -> None:
        ...

    def create_volume(self, size_bytes: int) -> str:
        ...

    def delete_volume(self, pv_id: str) -> None:
        ...

    def list_volumes(self) -> List[VolumeInfo]:
        ...
