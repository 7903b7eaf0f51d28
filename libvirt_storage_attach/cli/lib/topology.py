"""
Derive a domain's block device topology from its live XML.

The summary tells the reconciler which managed volumes are attached, the
exact `<disk>` element of each one (detach-device needs it verbatim), and
which target name a new disk should get.
"""

from __future__ import annotations

import copy
import logging
import string
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set

from libvirt_storage_attach.cli.lib.validators import is_volume_id
from libvirt_storage_attach.exceptions import StorageAttachError

logger = logging.getLogger(__name__)

TARGET_BUS_PREFIXES = ("sd", "vd")
NEW_TARGET_PREFIX = "vd"


@dataclass(frozen=True)
class DiskDevice:
    target: str
    source: str
    descriptor: str

    @property
    def source_name(self) -> str:
        return self.source.rstrip("/").split("/")[-1] if self.source else ""


@dataclass
class DeviceSummary:
    domain: str
    used_targets: Set[str] = field(default_factory=set)
    attached_devices: Set[str] = field(default_factory=set)
    device_descriptor_by_id: Dict[str, str] = field(default_factory=dict)
    next_target: Optional[str] = None

    def is_attached(self, pv_id: str) -> bool:
        return pv_id in self.attached_devices


def target_suffixes() -> Iterator[str]:
    """
    Yield target suffixes in kernel naming order: a..z, then aa..zz.
    """
    letters = string.ascii_lowercase
    yield from letters
    for first in letters:
        for second in letters:
            yield first + second


def next_free_target(used_targets: Iterable[str]) -> Optional[str]:
    """Lowest free suffix prefixed with `vd`, or None if all are taken."""
    used = set(used_targets)
    for suffix in target_suffixes():
        if suffix not in used:
            return NEW_TARGET_PREFIX + suffix
    return None


def _serialize(element: ET.Element) -> str:
    element = copy.copy(element)
    element.tail = None
    return ET.tostring(element, encoding="unicode")


def parse_disks(domain_xml: str) -> List[DiskDevice]:
    """
    Parse every `<devices>/<disk>` of a domain XML document.

    Raises:
        StorageAttachError: If the XML can't be parsed
    """
    try:
        root = ET.fromstring(domain_xml)
    except ET.ParseError as e:
        raise StorageAttachError(f"failed to parse domain XML: {e}")

    disks: List[DiskDevice] = []
    for disk in root.findall("./devices/disk"):
        target = disk.find("target")
        source = disk.find("source")
        source_path = ""
        if source is not None:
            source_path = source.get("dev") or source.get("file") or ""
        disks.append(
            DiskDevice(
                target=(target.get("dev") or "") if target is not None else "",
                source=source_path,
                descriptor=_serialize(disk),
            )
        )
    return disks


def summarize(domain: str, disks: Iterable[DiskDevice], volume_prefix: str) -> DeviceSummary:
    """
    Build a DeviceSummary from parsed disks.

    `next_target` is None when every candidate target is taken.
    """
    summary = DeviceSummary(domain=domain)
    for disk in disks:
        logger.debug("found device vm-name=%s target=%s device=%s", domain, disk.target, disk.source)

        if disk.target.startswith(TARGET_BUS_PREFIXES):
            summary.used_targets.add(disk.target[2:])

        device_id = disk.source_name
        if is_volume_id(device_id, volume_prefix):
            summary.attached_devices.add(device_id)
            summary.device_descriptor_by_id[device_id] = disk.descriptor

    summary.next_target = next_free_target(summary.used_targets)
    return summary


def inspect(hypervisor, domain: str, volume_prefix: str) -> DeviceSummary:
    """
    Inspect the live device list of `domain`.

    Raises:
        DomainNotFound: If the domain doesn't exist
        HypervisorConnectionError: If libvirt can't be reached
    """
    return summarize(domain, parse_disks(hypervisor.domain_xml(domain)), volume_prefix)


def list_all_attached(hypervisor, volume_prefix: str, deadline=None) -> Dict[str, List[str]]:
    """
    Map each attached volume id to the domains it is attached to.

    Domains that vanish or can't be inspected mid-scan are logged and
    skipped. Owner order follows libvirt's domain enumeration.

    Args:
        deadline: Optional object with `check()` raising once time is up
    """
    attached: Dict[str, List[str]] = {}
    for domain in hypervisor.list_domains():
        if deadline is not None:
            deadline.check()
        try:
            summary = inspect(hypervisor, domain, volume_prefix)
        except StorageAttachError as e:
            logger.error("list all attached pvs for %s failed: %s", domain, e)
            continue
        for pv_id in sorted(summary.attached_devices):
            attached.setdefault(pv_id, []).append(domain)

    logger.info("attached pvs %s", attached)
    return attached
