"""Host platform detection and the fixed platform/target lookup tables.

Every table here is a closed mapping. A key that is not present is an error
(UnsupportedPlatform / UnsupportedTarget), never a silent default.
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from tsgrammars.errors import UnsupportedPlatform, UnsupportedTarget

LINUX = "linux"
MACOS = "macos"
WINDOWS = "windows"
FREEBSD = "freebsd"

ARTIFACT_SUFFIXES: Tuple[str, ...] = (".so", ".dylib", ".dll")

# (operating system, architecture prefix) -> bundle platform triple
BUNDLE_TRIPLES: Dict[Tuple[str, str], str] = {
    (WINDOWS, "x86_64"): "x86_64-pc-windows-msvc",
    (LINUX, "x86_64"): "x86_64-unknown-linux-gnu",
    (LINUX, "aarch64"): "aarch64-unknown-linux-gnu",
    (FREEBSD, "x86_64"): "x86_64-unknown-freebsd",
    (FREEBSD, "aarch64"): "aarch64-unknown-freebsd",
    (MACOS, "x86_64"): "x86_64-apple-darwin",
    (MACOS, "aarch64"): "aarch64-apple-darwin",
}

# Shared-library suffix produced by the native toolchain. macOS output is
# renamed to .dylib during post-processing.
NATIVE_SUFFIXES: Dict[str, str] = {
    LINUX: ".so",
    FREEBSD: ".so",
    MACOS: ".so",
    WINDOWS: ".dll",
}

_MACHINE_PREFIXES: Dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


@dataclass(frozen=True)
class CrossToolchain:
    """Toolchain used to cross-compile for one supported target.

    Attributes:
        triple: Target name understood by the local toolchain.
        c_compiler: C compiler executable.
        cxx_compiler: C++ compiler executable.
        pass_target_flag: Whether ``-target <triple>`` must be passed (clang).
        suffix: Shared-library suffix written for this target.
    """

    triple: str
    c_compiler: str
    cxx_compiler: str
    pass_target_flag: bool
    suffix: str

    def target_flags(self) -> Tuple[str, ...]:
        return ("-target", self.triple) if self.pass_target_flag else ()


@dataclass(frozen=True)
class BuildTarget:
    """Platform a compilation produces artifacts for.

    ``cross_toolchain`` is None for host builds.
    """

    operating_system: str
    architecture_triple: str
    cross_toolchain: Optional[CrossToolchain] = None

    @property
    def is_cross(self) -> bool:
        return self.cross_toolchain is not None

    @property
    def is_apple(self) -> bool:
        return self.operating_system == MACOS


# Requested target triple -> (operating system, toolchain)
CROSS_TARGETS: Dict[str, Tuple[str, CrossToolchain]] = {
    "aarch64-apple-darwin": (
        MACOS,
        CrossToolchain("arm64-apple-macos11", "clang", "clang++", True, ".so"),
    ),
    "x86_64-apple-darwin": (
        MACOS,
        CrossToolchain("x86_64-apple-macos10.12", "clang", "clang++", True, ".so"),
    ),
    "aarch64-unknown-linux-gnu": (
        LINUX,
        CrossToolchain(
            "aarch64-linux-gnu",
            "aarch64-linux-gnu-gcc",
            "aarch64-linux-gnu-g++",
            False,
            ".so",
        ),
    ),
    "x86_64-pc-windows-msvc": (
        WINDOWS,
        CrossToolchain(
            "x86_64-w64-mingw32",
            "x86_64-w64-mingw32-gcc",
            "x86_64-w64-mingw32-g++",
            False,
            ".dll",
        ),
    ),
}

# Bundle triple -> OS tag used by the legacy "<name>-<os>-<version>" naming.
LEGACY_OS_TAGS: Dict[str, str] = {
    "x86_64-pc-windows-msvc": WINDOWS,
    "x86_64-unknown-linux-gnu": LINUX,
    "aarch64-unknown-linux-gnu": LINUX,
    "x86_64-unknown-freebsd": FREEBSD,
    "aarch64-unknown-freebsd": FREEBSD,
    "x86_64-apple-darwin": MACOS,
    "aarch64-apple-darwin": MACOS,
}


def detect_host_os() -> str:
    """Return the normalized host operating system name.

    Raises:
        UnsupportedPlatform: When ``sys.platform`` maps to no known OS.
    """
    plat = sys.platform
    if plat.startswith("linux"):
        return LINUX
    if plat == "darwin":
        return MACOS
    if plat.startswith(("win", "cygwin", "msys")):
        return WINDOWS
    if plat.startswith("freebsd"):
        return FREEBSD
    raise UnsupportedPlatform(f"Unsupported host platform: {plat}")


def detect_host_arch(machine: Optional[str] = None) -> str:
    """Return the architecture prefix (``x86_64`` or ``aarch64``)."""
    raw = (machine if machine is not None else platform.machine()).lower()
    for prefix, arch in _MACHINE_PREFIXES.items():
        if raw.startswith(prefix):
            return arch
    raise UnsupportedPlatform(f"Unsupported host architecture: {raw or 'unknown'}")


def bundle_triple(operating_system: str, arch: str) -> str:
    """Look up the bundle platform triple for an OS/architecture pair."""
    try:
        return BUNDLE_TRIPLES[(operating_system, arch)]
    except KeyError:
        raise UnsupportedPlatform(
            f"No bundle platform for {arch} on {operating_system}"
        ) from None


def native_suffix(operating_system: str) -> str:
    try:
        return NATIVE_SUFFIXES[operating_system]
    except KeyError:
        raise UnsupportedPlatform(
            f"No shared-library suffix for {operating_system}"
        ) from None


def resolve_target(
    target: Optional[str], host_os: str, machine: Optional[str] = None
) -> BuildTarget:
    """Turn a requested target name into a BuildTarget.

    Args:
        target: Cross-compilation target triple, or None for a host build.
        host_os: Normalized host OS (from the configuration).
        machine: Optional ``platform.machine()`` override.

    Raises:
        UnsupportedTarget: When ``target`` is not in CROSS_TARGETS.
        UnsupportedPlatform: When the host has no bundle triple.
    """
    if target is None:
        arch = detect_host_arch(machine)
        return BuildTarget(host_os, bundle_triple(host_os, arch))
    entry = CROSS_TARGETS.get(target)
    if entry is None:
        raise UnsupportedTarget(
            f"Unsupported cross-compilation target '{target}'. "
            f"Supported: {', '.join(sorted(CROSS_TARGETS))}"
        )
    operating_system, toolchain = entry
    return BuildTarget(operating_system, target, toolchain)


def validate_bundle_triple(triple: str) -> str:
    """Ensure ``triple`` names a published bundle platform."""
    if triple not in LEGACY_OS_TAGS:
        raise UnsupportedTarget(
            f"No bundle is published for '{triple}'. "
            f"Known platforms: {', '.join(sorted(LEGACY_OS_TAGS))}"
        )
    return triple


def bundle_file_name(name: str, version: str, triple: str) -> str:
    """``<name>.<triple>.v<version>.tar.gz``"""
    return f"{name}.{triple}.v{version.lstrip('v')}.tar.gz"


def legacy_bundle_file_name(name: str, version: str, triple: str) -> str:
    """``<name>-<os>-<version>.tar.gz``, the naming used by older releases."""
    os_tag = LEGACY_OS_TAGS[validate_bundle_triple(triple)]
    return f"{name}-{os_tag}-{version.lstrip('v')}.tar.gz"


__all__ = [
    "ARTIFACT_SUFFIXES",
    "BUNDLE_TRIPLES",
    "CROSS_TARGETS",
    "LEGACY_OS_TAGS",
    "BuildTarget",
    "CrossToolchain",
    "bundle_file_name",
    "bundle_triple",
    "detect_host_arch",
    "detect_host_os",
    "legacy_bundle_file_name",
    "native_suffix",
    "resolve_target",
    "validate_bundle_triple",
]
