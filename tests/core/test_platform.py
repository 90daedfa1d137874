"""
Unit tests for the host platform detection module.

Tests cover:
- Triple construction per operating system
- Architecture normalization
- Linux libc detection
- Cache behavior
"""

import sys

import pytest
from unittest.mock import patch

from cargokit.core.platform import clear_host_cache, detect_host_triple


def detect(system, machine, libc=("glibc", "2.35")):
    clear_host_cache()
    with patch("cargokit.core.platform.platform.system", return_value=system), patch(
        "cargokit.core.platform.platform.machine", return_value=machine
    ), patch("cargokit.core.platform.platform.libc_ver", return_value=libc):
        return detect_host_triple()


@pytest.mark.skipif(hasattr(sys, "getandroidapilevel"), reason="Android host")
class TestDetectHostTriple:
    """Tests for detect_host_triple."""

    @pytest.mark.parametrize(
        "system, machine, expected",
        [
            ("Linux", "x86_64", "x86_64-unknown-linux-gnu"),
            ("Linux", "aarch64", "aarch64-unknown-linux-gnu"),
            ("Darwin", "arm64", "aarch64-apple-darwin"),
            ("Darwin", "x86_64", "x86_64-apple-darwin"),
            ("Windows", "AMD64", "x86_64-pc-windows-msvc"),
            ("Windows", "ARM64", "aarch64-pc-windows-msvc"),
            ("FreeBSD", "amd64", "x86_64-unknown-freebsd"),
            ("NetBSD", "amd64", "x86_64-unknown-netbsd"),
            ("SunOS", "x86_64", "x86_64-unknown-illumos"),
        ],
    )
    def test_known_systems(self, system, machine, expected):
        """Test triples for supported systems."""
        assert detect(system, machine) == expected

    def test_musl(self):
        """Test that a non-glibc Linux is reported as musl."""
        assert detect("Linux", "x86_64", ("", "")) == "x86_64-unknown-linux-musl"

    def test_arm_hard_float(self):
        """Test the ARM hard-float environment suffix."""
        assert detect("Linux", "armv7l") == "armv7-unknown-linux-gnueabihf"

    def test_unsupported_system(self):
        """Test that unknown systems raise RuntimeError."""
        with pytest.raises(RuntimeError, match="Unsupported operating system"):
            detect("Plan9", "x86_64")

    def test_cached(self):
        """Test that detection runs once until the cache is cleared."""
        first = detect("Linux", "x86_64")
        with patch("cargokit.core.platform.platform.system", return_value="Darwin"):
            assert detect_host_triple() == first

        clear_host_cache()
        assert detect("Darwin", "arm64") == "aarch64-apple-darwin"
