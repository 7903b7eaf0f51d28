"""
Unit tests for validators module.
"""

import pytest

from libvirt_storage_attach.cli.lib.validators import (
    GIB,
    MIB,
    TIB,
    is_volume_id,
    parse_size,
    validate_vm_name,
    validate_volume_id,
    validate_volume_size,
)


class TestValidateVolumeId:
    """Tests for validate_volume_id function."""

    @pytest.mark.unit
    def test_valid(self, pv_id):
        validate_volume_id(pv_id, "pv-")
        validate_volume_id("pv-0190c8d4-5b7e-7c3a-9f00-1234567890ab", "pv-")

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "candidate",
        [
            "",
            "pv-",
            "pv-1234",
            "vol-0190c8d4-5b7e-7c3a-9f00-1234567890ab",
            "pv-0190c8d4-5b7e-7c3a-9f00-1234567890zz",
            "pv-0190c8d4-5b7e-7c3a-9f00-1234567890abc",
        ],
    )
    def test_invalid(self, candidate):
        with pytest.raises(ValueError, match="pv-id should be in format pv-<uuid>"):
            validate_volume_id(candidate, "pv-")

    @pytest.mark.unit
    def test_is_volume_id_checks_prefix_and_length_only(self):
        assert is_volume_id("pv-" + "x" * 36, "pv-")
        assert not is_volume_id("pv-" + "x" * 35, "pv-")
        assert not is_volume_id("pv-" + "x" * 36, "vol-")


class TestValidateVmName:
    """Tests for validate_vm_name function."""

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["vm1", "web-01", "db_primary", "instance-0000002a"])
    def test_valid(self, name):
        validate_vm_name(name)

    @pytest.mark.unit
    def test_empty(self):
        with pytest.raises(ValueError, match="vm-name must be set"):
            validate_vm_name("")

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["a/b", "../etc", ".hidden", "bad\0name"])
    def test_unsafe_lock_file_names(self, name):
        with pytest.raises(ValueError):
            validate_vm_name(name)


class TestParseSize:
    """Tests for parse_size function."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1073741824", GIB),
            ("1073741824b", GIB),
            ("1GB", GIB),
            ("1g", GIB),
            ("10GiB", 10 * GIB),
            ("512MB", 512 * MIB),
            ("1.5G", int(1.5 * GIB)),
            ("2T", 2 * TIB),
            (" 3 GB ", 3 * GIB),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_size(text) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["", "GB", "1XB", "-1G", "1 G B"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_size(text)


class TestValidateVolumeSize:
    """Tests for validate_volume_size function."""

    @pytest.mark.unit
    def test_minimum(self):
        validate_volume_size(GIB)

    @pytest.mark.unit
    def test_too_small(self):
        with pytest.raises(ValueError, match="size must be at least 1GB"):
            validate_volume_size(GIB - 1)


class TestCanonicalVolumeId:
    """Volume ids must use the 8-4-4-4-12 UUID layout."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "body",
        [
            "0190c8d45b7e7c3a9f001234567890ab----",
            "----0190c8d45b7e7c3a9f001234567890ab",
            "0190c8d4-5b7e7c3a-9f00-1234-567890ab",
        ],
    )
    def test_misplaced_hyphens_rejected(self, body):
        assert len("pv-" + body) == 39

        with pytest.raises(ValueError, match="pv-id should be in format pv-<uuid>"):
            validate_volume_id("pv-" + body, "pv-")

    @pytest.mark.unit
    def test_uppercase_canonical_accepted(self):
        validate_volume_id("pv-0190C8D4-5B7E-7C3A-9F00-1234567890AB", "pv-")
