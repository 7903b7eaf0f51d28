"""
libvirt-storage-attach - persistent LVM volumes for libvirt domains.

This package provides a CLI for creating LVM logical volumes, hot-plugging
them into running libvirt domains, detaching and deleting them, and listing
which domains currently own them.
"""

__version__ = "0.1.0"
__all__ = ["backends", "cli", "exceptions"]
