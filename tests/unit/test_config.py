"""
Unit tests for config module.
"""

from pathlib import Path

import pytest

from libvirt_storage_attach.cli.lib.config import AttachConfig, load_config, parse_duration
from libvirt_storage_attach.exceptions import ConfigError


@pytest.fixture
def config_file(temp_dir, monkeypatch):
    """Write a YAML config and point CONFIG_PATH at it."""
    path = temp_dir / "config.yaml"
    monkeypatch.setenv("CONFIG_PATH", str(path))
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    def _write(text):
        path.write_text(text)
        return path

    return _write


class TestLoadConfig:
    """Tests for load_config function."""

    @pytest.mark.unit
    def test_defaults(self, config_file, temp_dir):
        lock_path = temp_dir / "locks"
        config_file(f"volume_group: vg0\nlock_path: {lock_path}\n")

        cfg = load_config()

        assert cfg.volume_group == "vg0"
        assert cfg.lock_path == lock_path
        assert cfg.qemu_url == "qemu:///system"
        assert cfg.attach_timeout == 2.5
        assert cfg.detach_timeout == 2.5
        assert cfg.list_timeout == 10.0
        assert cfg.volume_prefix == "pv-"
        assert cfg.backend == "lvm"
        assert cfg.log_level == "INFO"
        assert lock_path.is_dir()

    @pytest.mark.unit
    def test_all_keys(self, config_file, temp_dir):
        config_file(
            "\n".join(
                [
                    "volume_group: vg0/thinpool",
                    f"lock_path: {temp_dir / 'l'}",
                    "qemu_url: qemu+ssh://host/system",
                    "attach_timeout: 5s",
                    "detach_timeout: 1500ms",
                    "list_timeout: 1m",
                    "volume_prefix: vol-",
                    "log_level: DEBUG",
                ]
            )
        )

        cfg = load_config()

        assert cfg.volume_group == "vg0/thinpool"
        assert cfg.base_volume_group == "vg0"
        assert cfg.qemu_url == "qemu+ssh://host/system"
        assert cfg.attach_timeout == 5.0
        assert cfg.detach_timeout == 1.5
        assert cfg.list_timeout == 60.0
        assert cfg.volume_prefix == "vol-"
        assert cfg.volume_id_length == 40
        assert cfg.log_level == "DEBUG"

    @pytest.mark.unit
    def test_log_level_env_override(self, config_file, temp_dir, monkeypatch):
        config_file(f"volume_group: vg0\nlock_path: {temp_dir / 'l'}\nlog_level: DEBUG\n")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        assert load_config().log_level == "WARNING"

    @pytest.mark.unit
    def test_missing_volume_group(self, config_file, temp_dir):
        config_file(f"lock_path: {temp_dir / 'l'}\n")

        with pytest.raises(ConfigError, match="volume_group must be set"):
            load_config()

    @pytest.mark.unit
    def test_missing_file(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(temp_dir / "absent.yaml"))

        with pytest.raises(ConfigError, match="not found"):
            load_config()

    @pytest.mark.unit
    def test_malformed_yaml(self, config_file):
        config_file("volume_group: [vg0\n")

        with pytest.raises(ConfigError, match="error parsing YAML"):
            load_config()

    @pytest.mark.unit
    def test_not_a_mapping(self, config_file):
        config_file("- vg0\n")

        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config()

    @pytest.mark.unit
    def test_bad_duration(self, config_file, temp_dir):
        config_file(f"volume_group: vg0\nlock_path: {temp_dir / 'l'}\nattach_timeout: soon\n")

        with pytest.raises(ConfigError, match="attach_timeout"):
            load_config()

    @pytest.mark.unit
    def test_lock_dir_cannot_be_created(self, config_file, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("")
        config_file(f"volume_group: vg0\nlock_path: {blocker / 'locks'}\n")

        with pytest.raises(ConfigError, match="can't create lock directory"):
            load_config()


class TestParseDuration:
    """Tests for parse_duration function."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (3, 3.0),
            (2.5, 2.5),
            ("4", 4.0),
            ("2500ms", 2.5),
            ("2.5s", 2.5),
            ("1m30s", 90.0),
            ("1h", 3600.0),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_duration(raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["", "fast", "5d", "s5", "-1", True])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_duration(raw)


@pytest.mark.unit
def test_config_is_frozen():
    cfg = AttachConfig(volume_group="vg0")

    with pytest.raises(Exception):
        cfg.volume_group = "vg1"

    assert cfg.lock_path == Path("/var/lib/libvirt-storage-attach/locks")
