"""
Thin wrapper around a libvirt connection.

Only the calls the attach/detach protocol needs are exposed: domain XML
lookup, redefining a domain from its live XML, and listing every defined
domain.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import libvirt

from libvirt_storage_attach.exceptions import DomainNotFound, HypervisorConnectionError

logger = logging.getLogger(__name__)


class Hypervisor:
    """A single libvirt connection, usable as a context manager."""

    def __init__(self, uri: str):
        self.uri = uri
        self.conn: Optional[libvirt.virConnect] = None

    def connect(self) -> "Hypervisor":
        if self.conn is not None:
            return self
        try:
            logger.debug("Connecting to %s", self.uri)
            self.conn = libvirt.open(self.uri)
        except libvirt.libvirtError as e:
            raise HypervisorConnectionError(f"connection to {self.uri} failed: {e}")
        if self.conn is None:
            raise HypervisorConnectionError(f"failed to connect to {self.uri}")
        return self

    def close(self) -> None:
        if self.conn is not None:
            try:
                self.conn.close()
            except libvirt.libvirtError as e:
                logger.warning("closing connection to %s failed: %s", self.uri, e)
            finally:
                self.conn = None

    def __enter__(self) -> "Hypervisor":
        return self.connect()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _lookup(self, name: str) -> "libvirt.virDomain":
        self.connect()
        try:
            return self.conn.lookupByName(name)  # type: ignore[union-attr]
        except libvirt.libvirtError as e:
            if e.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                raise DomainNotFound(name)
            raise HypervisorConnectionError(f"lookupByName({name}) failed: {e}")

    def domain_xml(self, name: str, flags: int = 0) -> str:
        """
        Return the live XML description of domain `name`.

        Raises:
            DomainNotFound: If the domain doesn't exist
            HypervisorConnectionError: For any other libvirt failure
        """
        domain = self._lookup(name)
        try:
            return domain.XMLDesc(flags)
        except libvirt.libvirtError as e:
            if e.get_error_code() == libvirt.VIR_ERR_NO_DOMAIN:
                raise DomainNotFound(name)
            raise HypervisorConnectionError(f"XMLDesc({name}) failed: {e}")

    def persist_domain_config(self, name: str) -> None:
        """
        Redefine domain `name` from its live XML so hot-plugged devices
        survive a restart.
        """
        logger.info("persisting domain config vm-name=%s", name)
        xml = self.domain_xml(name, libvirt.VIR_DOMAIN_XML_SECURE)
        try:
            self.conn.defineXMLFlags(xml, libvirt.VIR_DOMAIN_DEFINE_VALIDATE)  # type: ignore[union-attr]
        except libvirt.libvirtError as e:
            raise HypervisorConnectionError(f"defineXMLFlags({name}) failed: {e}")

    def list_domains(self) -> List[str]:
        """
        Names of all domains, running or not, in the order libvirt reports
        them. A shut-off domain still holds the disks of its persisted config.
        """
        self.connect()
        try:
            domains = self.conn.listAllDomains(0)  # type: ignore[union-attr]
        except libvirt.libvirtError as e:
            raise HypervisorConnectionError(f"listAllDomains failed: {e}")
        return [domain.name() for domain in domains]
