"""
Advisory lock files and the per-volume ownership record.

Every VM and every volume has a lock file under the configured lock
directory. Locks are taken with a non-blocking `flock`, so a second
operation on the same VM or volume fails immediately instead of queuing.
The contents of a volume's lock file name the VM that owns the volume
(empty = unowned); that record is what keeps a volume from being deleted
or attached elsewhere while it is in use.
"""

from __future__ import annotations

import fcntl
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, IO, Iterator, List, Optional, TypeVar

from libvirt_storage_attach.exceptions import LockContention, OwnershipConflict, StorageAttachError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _acquire(path: Path, mode: str) -> IO[str]:
    try:
        file = open(path, mode, encoding="utf-8")
    except OSError as e:
        raise StorageAttachError(f"can't open lock file {path}: {e}")
    try:
        fcntl.flock(file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        file.close()
        raise LockContention(str(path))
    except OSError as e:
        file.close()
        raise StorageAttachError(f"can't lock {path}: {e}")
    return file


def read_owner(file: IO[str]) -> str:
    file.seek(0)
    # compared verbatim with the VM name; only a trailing newline is dropped
    return file.read().rstrip("\n")


class LockingContext:
    """
    Lock state for one operation on one volume (and optionally one VM).

    Args:
        lock_path: Directory holding the lock files
        pv_id: Volume id
        vm_name: VM the operation acts for; empty for VM-agnostic
            operations such as create and delete
    """

    def __init__(self, lock_path: Path, pv_id: str, vm_name: str = ""):
        self.lock_path = Path(lock_path)
        self.pv_id = pv_id
        self.vm_name = vm_name
        self.vm_lock: Optional[IO[str]] = None
        self.pv_lock: Optional[IO[str]] = None
        self.claimed = False

    @property
    def vm_lock_file(self) -> Path:
        return self.lock_path / self.vm_name

    @property
    def pv_lock_file(self) -> Path:
        return self.lock_path / self.pv_id

    @contextmanager
    def locked(self, lock_vm: bool = True) -> Iterator["LockingContext"]:
        """
        Hold the VM lock (if `lock_vm`) and the volume lock for the body.

        Ownership is claimed for `vm_name` when the record is empty.

        Raises:
            LockContention: If either lock is held by another process
            OwnershipConflict: If another VM owns the volume
        """
        if lock_vm and not self.vm_name:
            raise StorageAttachError("a VM lock needs a vm name")

        if lock_vm:
            self.vm_lock = _acquire(self.vm_lock_file, "a")
        try:
            self.pv_lock = _acquire(self.pv_lock_file, "a+")
        except StorageAttachError:
            self._release(raise_errors=False)
            raise

        self.claimed = False
        try:
            self._claim()
            yield self
        except BaseException:
            self._release(raise_errors=False)
            raise
        self._release(raise_errors=True)

    def with_lock(self, lock_vm: bool, operation: Callable[[], T]) -> T:
        """Run `operation` while holding the locks; see `locked`."""
        with self.locked(lock_vm):
            return operation()

    def owner(self) -> str:
        """Current ownership record; the volume lock must be held."""
        return read_owner(self._held_pv_lock())

    def clear_owner(self) -> None:
        """Truncate the ownership record; the volume lock must be held."""
        file = self._held_pv_lock()
        file.truncate(0)
        file.flush()
        os.fsync(file.fileno())
        self.claimed = False

    def release_claim(self) -> None:
        """
        Undo the ownership claim made by this context, if it made one.

        Used when an operation turned out not to attach anything, so a
        volume that was unowned before stays unowned.
        """
        if self.claimed:
            self.clear_owner()

    def _held_pv_lock(self) -> IO[str]:
        if self.pv_lock is None:
            raise StorageAttachError(f"lock for {self.pv_id} is not held")
        return self.pv_lock

    def _claim(self) -> None:
        file = self._held_pv_lock()
        owner = read_owner(file)
        logger.info("device ownership pv-id=%s vm-name=%r", self.pv_id, owner)

        if owner and owner != self.vm_name:
            raise OwnershipConflict(self.pv_id, self.vm_name, owner)

        if not owner and self.vm_name:
            file.truncate(0)
            file.write(self.vm_name)
            file.flush()
            os.fsync(file.fileno())
            self.claimed = True

    def _release(self, raise_errors: bool) -> None:
        # VM lock first, then the volume lock
        errors: List[OSError] = []
        for attr in ("vm_lock", "pv_lock"):
            file = getattr(self, attr)
            if file is None:
                continue
            try:
                fcntl.flock(file.fileno(), fcntl.LOCK_UN)
            except OSError as e:
                logger.error("failed to release lock %s: %s", file.name, e)
                errors.append(e)
            finally:
                file.close()
                setattr(self, attr, None)

        if raise_errors and errors:
            raise StorageAttachError(f"failed to release lock: {errors[0]}")
