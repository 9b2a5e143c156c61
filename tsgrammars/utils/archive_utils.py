"""Safe extraction of downloaded grammar bundles.

Bundles are flat gzip tarballs of shared libraries plus a version marker.
Members are validated before anything is written so that a hostile archive
cannot place files outside the artifact directory (Tar Slip) or plant links.
"""

import logging
import sys
import tarfile
from pathlib import Path
from typing import List

from tsgrammars.errors import GrammarToolError

logger = logging.getLogger("tsgrammars.utils.archive_utils")


class ArchiveSecurityError(GrammarToolError):
    """Raised when an archive contains potentially malicious members."""

    pass


def _is_path_safe(member_path: Path, target_dir: Path) -> bool:
    try:
        resolved = (target_dir / member_path).resolve()
        return resolved.is_relative_to(target_dir)
    except (ValueError, RuntimeError):
        return False


def _validate_members(tar_ref: tarfile.TarFile, target_dir: Path) -> List[tarfile.TarInfo]:
    members = tar_ref.getmembers()
    for member in members:
        member_path = Path(member.name)
        if member_path.is_absolute() or ".." in member_path.parts:
            raise ArchiveSecurityError(
                f"Tar Slip detected: {member.name} contains path traversal"
            )
        if member.issym() or member.islnk():
            raise ArchiveSecurityError(
                f"Link members are not allowed in bundles: {member.name} -> {member.linkname}"
            )
        if not (member.isfile() or member.isdir()):
            raise ArchiveSecurityError(f"Unsupported member type: {member.name}")
        if not _is_path_safe(member_path, target_dir):
            raise ArchiveSecurityError(
                f"Tar Slip detected: {member.name} escapes target directory"
            )
    return members


def safe_extract_tar(archive_path: Path, target_dir: Path, mode: str = "r:gz") -> List[str]:
    """Extract a bundle into ``target_dir``, overwriting same-named files.

    Args:
        archive_path: Path to the tarball.
        target_dir: Destination directory (created when missing).
        mode: Tarfile open mode.

    Returns:
        Names of the extracted file members.

    Raises:
        ArchiveSecurityError: If the archive contains unsafe members.
        tarfile.TarError: If the archive is corrupted.
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    target_dir = target_dir.resolve()

    with tarfile.open(archive_path, mode) as tar_ref:
        members = _validate_members(tar_ref, target_dir)
        if sys.version_info >= (3, 12):
            tar_ref.extractall(target_dir, members=members, filter="data")
        else:
            tar_ref.extractall(target_dir, members=members)

    names = [m.name for m in members if m.isfile()]
    logger.info("Extracted %d file(s) from %s to %s", len(names), archive_path.name, target_dir)
    return names


__all__ = ["ArchiveSecurityError", "safe_extract_tar"]
