"""
Host platform detection.

The host triple is the default build target when neither the configuration
nor the caller names one. It is derived from the running interpreter's
platform; callers that can ask the compiler (`rustc -vV`) should pass the
result to ResolveOptions.host instead.

Usage:
    from cargokit.core.platform import detect_host_triple

    detect_host_triple()  # 'x86_64-unknown-linux-gnu'
"""

import functools
import platform
import sys

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i386": "i686",
    "i586": "i686",
    "x86": "i686",
    "armv7l": "armv7",
    "ppc64le": "powerpc64le",
    "ppc64": "powerpc64",
}


@functools.lru_cache(maxsize=1)
def detect_host_triple() -> str:
    """
    Detect the target triple of the current host.

    This function is cached - it only runs detection once per process.

    Returns:
        Target triple such as 'aarch64-apple-darwin'

    Raises:
        RuntimeError: If the operating system is not recognized
    """
    arch = _detect_architecture()
    system = platform.system().lower()

    if system == "linux":
        if hasattr(sys, "getandroidapilevel"):
            suffix = "linux-androideabi" if arch == "armv7" else "linux-android"
            return f"{arch}-{suffix}"
        env = _detect_linux_env()
        if arch.startswith("arm"):
            env += "eabihf"
        return f"{arch}-unknown-linux-{env}"
    if system == "darwin":
        return f"{arch}-apple-darwin"
    if system == "windows":
        return f"{arch}-pc-windows-msvc"
    if system == "freebsd":
        return f"{arch}-unknown-freebsd"
    if system == "netbsd":
        return f"{arch}-unknown-netbsd"
    if system in ("sunos", "illumos"):
        return f"{arch}-unknown-illumos"
    raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def _detect_linux_env() -> str:
    libc, _ = platform.libc_ver()
    return "gnu" if libc == "glibc" else "musl"


def clear_host_cache() -> None:
    """Clear the cached host triple (mainly for testing)."""
    detect_host_triple.cache_clear()


__all__ = ["detect_host_triple", "clear_host_cache"]
