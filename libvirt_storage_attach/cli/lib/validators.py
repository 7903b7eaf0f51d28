"""
Input validation functions.
"""

import re
import uuid

KIB = 1024
MIB = KIB * 1024
GIB = MIB * 1024
TIB = GIB * 1024
PIB = TIB * 1024

MIN_VOLUME_SIZE = GIB

# decimal-looking suffixes are binary multiples, the same as lvcreate
_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": KIB, "kb": KIB, "kib": KIB,
    "m": MIB, "mb": MIB, "mib": MIB,
    "g": GIB, "gb": GIB, "gib": GIB,
    "t": TIB, "tb": TIB, "tib": TIB,
    "p": PIB, "pb": PIB, "pib": PIB,
}

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def is_volume_id(candidate: str, prefix: str) -> bool:
    """
    Check whether `candidate` looks like a volume id.

    Only the prefix and the overall length (prefix + canonical UUID text)
    are checked, matching how attached devices are recognized.
    """
    return candidate.startswith(prefix) and len(candidate) == len(prefix) + 36


def validate_volume_id(pv_id: str, prefix: str) -> None:
    """
    Validate a volume id (`<prefix><uuid>`).

    Raises:
        ValueError: If the id is malformed
    """
    error = ValueError(f"pv-id should be in format {prefix}<uuid>")
    if not is_volume_id(pv_id, prefix):
        raise error
    text = pv_id[len(prefix):]
    try:
        parsed = uuid.UUID(text)
    except ValueError:
        raise error
    # UUID() ignores hyphen placement, so insist on the 8-4-4-4-12 form
    if str(parsed) != text.lower():
        raise error


def validate_vm_name(name: str) -> None:
    """
    Validate a domain name.

    The name doubles as a lock file name, so path separators and leading
    dots are rejected.

    Raises:
        ValueError: If name is invalid
    """
    if not name:
        raise ValueError("vm-name must be set")
    if "/" in name or "\0" in name:
        raise ValueError("vm-name must not contain '/'")
    if name.startswith("."):
        raise ValueError("vm-name must not start with '.'")


def parse_size(text: str) -> int:
    """
    Parse a human size such as "10GB", "512MiB" or "1T" into bytes.

    Raises:
        ValueError: If the size can't be parsed
    """
    match = _SIZE_RE.match(text or "")
    if not match:
        raise ValueError(f"invalid size {text!r}")
    unit = match.group(2).lower()
    if unit not in _SIZE_UNITS:
        raise ValueError(f"invalid size unit {match.group(2)!r}")
    return int(float(match.group(1)) * _SIZE_UNITS[unit])


def validate_volume_size(size_bytes: int) -> None:
    """
    Raises:
        ValueError: If the size is below the minimum volume size
    """
    if size_bytes < MIN_VOLUME_SIZE:
        raise ValueError("size must be at least 1GB")
