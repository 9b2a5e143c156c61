"""Filesystem helpers shared by the bundle builder and the installer."""

import os
import tempfile
from pathlib import Path
from typing import List

from tsgrammars.build.platform import ARTIFACT_SUFFIXES


def write_text_atomic(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` in one rename.

    Readers never observe a partially written file: the content goes to a
    temporary file in the same directory which then replaces the target.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def artifact_files(directory: Path) -> List[Path]:
    """Files in ``directory`` carrying a shared-library suffix, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix in ARTIFACT_SUFFIXES
    )
