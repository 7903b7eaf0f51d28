#!/usr/bin/env python3
"""
Entry point for the libvirt-storage-attach CLI tool.
"""

import sys

from libvirt_storage_attach.cli.cli import main

if __name__ == "__main__":
    sys.exit(main())
