"""
Configuration loader for libvirt-storage-attach.

Settings live in a single YAML file so the volume group, lock directory and
libvirt URI are never hardcoded per host.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from libvirt_storage_attach.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/libvirt-storage-attach.yaml")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class AttachConfig:
    volume_group: str
    lock_path: Path = Path("/var/lib/libvirt-storage-attach/locks")
    qemu_url: str = "qemu:///system"
    attach_timeout: float = 2.5
    detach_timeout: float = 2.5
    list_timeout: float = 10.0
    volume_prefix: str = "pv-"
    backend: str = "lvm"
    log_level: str = "INFO"

    @property
    def base_volume_group(self) -> str:
        """Volume group name with any thin pool part removed."""
        return self.volume_group.split("/")[0]

    @property
    def volume_id_length(self) -> int:
        return len(self.volume_prefix) + 36


def _config_path() -> Path:
    env = os.environ.get("CONFIG_PATH")
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def parse_duration(raw: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) or strings such as "2500ms", "2.5s"
    and "1m30s".

    Raises:
        ValueError: If the value can't be parsed
    """
    if isinstance(raw, bool):
        raise ValueError(f"invalid duration {raw!r}")
    if isinstance(raw, (int, float)):
        if raw < 0:
            raise ValueError(f"duration must not be negative: {raw!r}")
        return float(raw)

    text = str(raw).strip()
    if not text:
        raise ValueError("duration cannot be empty")
    try:
        return parse_duration(float(text))
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {raw!r}")
    return total


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as file:
            data = yaml.safe_load(file) or {}
    except FileNotFoundError:
        raise ConfigError(f"configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"error parsing YAML config {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"configuration {path} must be a mapping")
    return data


def load_config() -> AttachConfig:
    """
    Load config from `CONFIG_PATH` or `/etc/libvirt-storage-attach.yaml`.

    The lock directory is created if it does not exist yet.

    Raises:
        ConfigError: If the file is missing, malformed, or lacks volume_group
    """
    path = _config_path()
    data = _read_yaml(path)

    volume_group = str(data.get("volume_group") or "").strip()
    if not volume_group:
        raise ConfigError(f"volume_group must be set in {path}")

    defaults = AttachConfig(volume_group=volume_group)

    def _duration(key: str, default: float) -> float:
        if data.get(key) is None:
            return default
        try:
            return parse_duration(data[key])
        except ValueError as e:
            raise ConfigError(f"{key}: {e}")

    def _get(key: str, default: str) -> str:
        value = data.get(key)
        if value is None:
            return default
        return str(value).strip()

    lock_path_raw = _get("lock_path", "")
    cfg = AttachConfig(
        volume_group=volume_group,
        lock_path=Path(lock_path_raw) if lock_path_raw else defaults.lock_path,
        qemu_url=_get("qemu_url", defaults.qemu_url),
        attach_timeout=_duration("attach_timeout", defaults.attach_timeout),
        detach_timeout=_duration("detach_timeout", defaults.detach_timeout),
        list_timeout=_duration("list_timeout", defaults.list_timeout),
        # prefix may legitimately contain trailing characters such as "-"
        volume_prefix=str(data["volume_prefix"]) if data.get("volume_prefix") is not None else defaults.volume_prefix,
        backend=_get("backend", defaults.backend),
        log_level=os.environ.get("LOG_LEVEL") or _get("log_level", defaults.log_level),
    )

    logger.info("loaded conf %s", cfg)

    try:
        cfg.lock_path.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"can't create lock directory {cfg.lock_path}: {e}")

    return cfg
