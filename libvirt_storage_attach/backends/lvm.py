"""
LVM-backed volumes attached to libvirt domains as raw block devices.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List
from xml.sax.saxutils import escape, quoteattr

from uuid6 import uuid7

from libvirt_storage_attach.backends.base import VolumeInfo
from libvirt_storage_attach.cli.lib import lvm, topology, virsh
from libvirt_storage_attach.cli.lib.config import AttachConfig
from libvirt_storage_attach.cli.lib.hypervisor import Hypervisor
from libvirt_storage_attach.cli.lib.locking import LockingContext
from libvirt_storage_attach.cli.lib.process import Deadline, call_with_deadline
from libvirt_storage_attach.cli.lib.validators import is_volume_id
from libvirt_storage_attach.exceptions import (
    AttachFailed,
    DomainNotFound,
    HypervisorConnectionError,
    StorageAttachError,
    TargetsExhausted,
    UnexpectedOutput,
)

logger = logging.getLogger(__name__)

DISK_XML_TEMPLATE = """<disk type='block' device='disk'>
  <driver name='qemu' type='raw' cache='writeback' discard='unmap'/>
  <source dev={source}/>
  <target dev={target} bus='scsi'/>
  <serial>{serial}</serial>
</disk>
"""


class LvmVolumeManager:
    """
    Volumes are logical volumes named after their id, in the configured
    volume group (or thin pool when it is given as `vg/pool`).

    Args:
        cfg: Loaded configuration
        hypervisor_factory: Callable returning a Hypervisor for a URI
    """

    def __init__(self, cfg: AttachConfig, hypervisor_factory: Callable[[str], Hypervisor] = Hypervisor):
        self.cfg = cfg
        self.hypervisor_factory = hypervisor_factory

    def _hypervisor(self) -> Hypervisor:
        return self.hypervisor_factory(self.cfg.qemu_url)

    def _locking(self, pv_id: str, vm_name: str = "") -> LockingContext:
        return LockingContext(self.cfg.lock_path, pv_id, vm_name)

    def volume_group_for(self, pv_id: str) -> str:
        """
        Volume group that holds `pv_id`.

        Volumes may outlive a change of the configured volume group, so the
        group LVM actually reports wins over the configured one.
        """
        mapping = lvm.volume_group_mapping(timeout=self.cfg.list_timeout)
        return mapping.get(pv_id) or self.cfg.base_volume_group

    def device_path(self, pv_id: str) -> str:
        return f"/dev/{self.volume_group_for(pv_id)}/{pv_id}"

    def device_serial(self, pv_id: str) -> str:
        return pv_id[len(self.cfg.volume_prefix):].replace("-", "")

    def device_descriptor(self, pv_id: str, target: str) -> str:
        return DISK_XML_TEMPLATE.format(
            source=quoteattr(self.device_path(pv_id)),
            target=quoteattr(target),
            serial=escape(self.device_serial(pv_id)),
        )

    def attach(self, pv_id: str, vm_name: str) -> None:
        ctx = self._locking(pv_id, vm_name)
        with ctx.locked(lock_vm=True):
            try:
                self._attach_locked(pv_id, vm_name)
            except (AttachFailed, DomainNotFound, HypervisorConnectionError, TargetsExhausted):
                # nothing was plugged in, so a fresh claim must not stick
                ctx.release_claim()
                raise

    def _attach_locked(self, pv_id: str, vm_name: str) -> None:
        with self._hypervisor() as hypervisor:
            summary = topology.inspect(hypervisor, vm_name, self.cfg.volume_prefix)
            if summary.is_attached(pv_id):
                logger.warning("%s already attached to %s", pv_id, vm_name)
                return
            if summary.next_target is None:
                raise TargetsExhausted(vm_name)

            logger.info("attaching device pv-id=%s vm-name=%s target=%s", pv_id, vm_name, summary.next_target)
            descriptor = self.device_descriptor(pv_id, summary.next_target)
            result = virsh.attach_device(
                self.cfg.qemu_url, vm_name, pv_id, descriptor, self.cfg.attach_timeout
            )

            self._persist_domain_config(hypervisor, vm_name)

            # virsh has been seen to exit 0 after a partial failure
            if result.stdout != virsh.ATTACH_SUCCESS_OUTPUT:
                raise UnexpectedOutput(
                    f"unexpected output '{result.stdout}' from virsh",
                    command=result.args,
                    stdout=result.stdout,
                    stderr=result.stderr,
                )

    def detach(self, pv_id: str, vm_name: str) -> None:
        ctx = self._locking(pv_id, vm_name)
        with ctx.locked(lock_vm=True):
            self._detach_locked(ctx)

    def _detach_locked(self, ctx: LockingContext) -> None:
        pv_id, vm_name = ctx.pv_id, ctx.vm_name
        with self._hypervisor() as hypervisor:
            try:
                summary = topology.inspect(hypervisor, vm_name, self.cfg.volume_prefix)
            except DomainNotFound:
                logger.info("domain %s not found, nothing to detach %s from", vm_name, pv_id)
                ctx.release_claim()
                return

            descriptor = summary.device_descriptor_by_id.get(pv_id)
            if descriptor is None:
                logger.warning("couldn't find %s in devices for %s", pv_id, vm_name)
                ctx.release_claim()
                return

            logger.info("found device xml pv-id=%s vm-name=%s xml=%s", pv_id, vm_name, descriptor)
            virsh.detach_device(self.cfg.qemu_url, vm_name, pv_id, descriptor, self.cfg.detach_timeout)

            self._persist_domain_config(hypervisor, vm_name)

        ctx.clear_owner()

    def _persist_domain_config(self, hypervisor: Hypervisor, vm_name: str) -> None:
        try:
            hypervisor.persist_domain_config(vm_name)
        except StorageAttachError as e:
            logger.error("couldn't persist domain config vm-name=%s: %s", vm_name, e)

    def create_volume(self, size_bytes: int) -> str:
        pv_id = f"{self.cfg.volume_prefix}{uuid7()}"
        ctx = self._locking(pv_id)
        with ctx.locked(lock_vm=False):
            logger.info(
                "creating logical volume pv-id=%s size=%s volume-group=%s",
                pv_id,
                size_bytes,
                self.cfg.volume_group,
            )
            lvm.create_lv(self.cfg.volume_group, pv_id, size_bytes)
        # TODO sweep for LVs whose id never reached the caller
        return pv_id

    def delete_volume(self, pv_id: str) -> None:
        ctx = self._locking(pv_id)

        def _delete() -> None:
            logger.info("deleting logical volume pv-id=%s", pv_id)
            lvm.delete_lv(self.volume_group_for(pv_id), pv_id)

        ctx.with_lock(False, _delete)

    def list_volumes(self) -> List[VolumeInfo]:
        prefix = self.cfg.volume_prefix
        deadline = Deadline(self.cfg.list_timeout, "list volumes")

        lvs = lvm.list_lvs(self.cfg.base_volume_group, prefix, timeout=deadline.remaining())

        def _scan_domains() -> Dict[str, List[str]]:
            with self._hypervisor() as hypervisor:
                return topology.list_all_attached(hypervisor, prefix, deadline)

        attached = call_with_deadline(_scan_domains, deadline)

        volumes = []
        for name, size in lvs:
            if not is_volume_id(name, prefix):
                continue
            volumes.append(VolumeInfo(id=name, capacity_bytes=size, owners=list(attached.get(name, []))))
        volumes.sort(key=lambda v: v.id)

        logger.info("volume list %s", volumes)
        return volumes
