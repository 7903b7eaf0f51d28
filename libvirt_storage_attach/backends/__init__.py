"""
Volume backend implementations.

Only the LVM backend ships today; the backend is picked once at startup from
the `backend` configuration key.
"""

from typing import TYPE_CHECKING

from .base import VolumeInfo, VolumeManager
from .lvm import LvmVolumeManager

if TYPE_CHECKING:
    from libvirt_storage_attach.cli.lib.config import AttachConfig

BACKENDS = {
    "lvm": LvmVolumeManager,
}


def get_volume_manager(cfg: "AttachConfig") -> VolumeManager:
    """
    Create the volume manager selected by `cfg.backend`.

    Raises:
        ValueError: If the backend is unknown
    """
    try:
        backend = BACKENDS[cfg.backend]
    except KeyError:
        raise ValueError(f"Unknown volume backend: {cfg.backend}")
    return backend(cfg)


__all__ = [
    "BACKENDS",
    "LvmVolumeManager",
    "VolumeInfo",
    "VolumeManager",
    "get_volume_manager",
]
