"""
Pytest configuration and fixtures.
"""

import shutil
import tempfile
import uuid
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from libvirt_storage_attach.cli.lib.config import AttachConfig
from libvirt_storage_attach.exceptions import DomainNotFound, HypervisorConnectionError


def make_domain_xml(name, disks=()):
    """
    Build a minimal domain XML document.

    Args:
        disks: Iterable of (target, source) pairs; source None means a disk
            without a <source> element (an empty cdrom drive)
    """
    lines = ["<domain type='kvm'>", f"  <name>{name}</name>", "  <devices>"]
    for target, source in disks:
        lines.append("    <disk type='block' device='disk'>")
        lines.append("      <driver name='qemu' type='raw'/>")
        if source is not None:
            lines.append(f"      <source dev='{source}'/>")
        lines.append(f"      <target dev='{target}' bus='virtio'/>")
        lines.append("    </disk>")
    lines.extend(["  </devices>", "</domain>"])
    return "\n".join(lines)


class FakeHypervisor:
    """
    In-memory stand-in for Hypervisor.

    Calling the instance returns itself, so it can be passed wherever a
    hypervisor factory is expected.
    """

    def __init__(self, domains=None):
        self.domains = dict(domains or {})
        self.persisted = []
        self.persist_error = None
        self.broken = set()

    def __call__(self, uri):
        return self

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def domain_xml(self, name, flags=0):
        if name in self.broken:
            raise HypervisorConnectionError(f"XMLDesc({name}) failed")
        if name not in self.domains:
            raise DomainNotFound(name)
        return self.domains[name]

    def persist_domain_config(self, name):
        if self.persist_error is not None:
            raise self.persist_error
        self.persisted.append(name)

    def list_domains(self):
        return list(self.domains)

    def add_disk(self, name, descriptor):
        root = ET.fromstring(self.domains[name])
        root.find("devices").append(ET.fromstring(descriptor))
        self.domains[name] = ET.tostring(root, encoding="unicode")

    def remove_disk(self, name, descriptor):
        wanted = ET.fromstring(descriptor).find("source").get("dev")
        root = ET.fromstring(self.domains[name])
        devices = root.find("devices")
        for disk in devices.findall("disk"):
            source = disk.find("source")
            if source is not None and source.get("dev") == wanted:
                devices.remove(disk)
        self.domains[name] = ET.tostring(root, encoding="unicode")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing."""
    with patch("subprocess.run") as mock:
        yield mock


@pytest.fixture
def config(temp_dir):
    """Config with its lock directory inside the temp dir."""
    lock_path = temp_dir / "locks"
    lock_path.mkdir()
    return AttachConfig(volume_group="vg0", lock_path=lock_path)


@pytest.fixture
def pv_id():
    return f"pv-{uuid.uuid4()}"


@pytest.fixture
def other_pv_id():
    return f"pv-{uuid.uuid4()}"


@pytest.fixture
def domain_xml():
    return make_domain_xml


@pytest.fixture
def fake_hypervisor():
    return FakeHypervisor


@pytest.fixture
def no_vg_mapping():
    """Resolve every volume to the configured volume group."""
    with patch("libvirt_storage_attach.cli.lib.lvm.volume_group_mapping", return_value={}) as mock:
        yield mock


@pytest.fixture
def completed():
    """Factory for subprocess.run results."""

    def _completed(returncode=0, stdout="", stderr=""):
        return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)

    return _completed
