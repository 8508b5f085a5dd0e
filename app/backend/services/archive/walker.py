"""Recursive file enumeration for directory archives.

Symbolic links are never descended into. A link that points at a regular file
is returned like a regular file (its target's contents get archived); links to
directories, dangling links and links to special files are skipped.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import List, Union

from backend.services.archive.errors import ArchiveIOError

logger = logging.getLogger(__name__)


def walk_files(root: Union[str, Path]) -> List[Path]:
    """Return every regular file below `root`, sorted.

    The walk is all-or-nothing: an unreadable directory anywhere in the tree
    aborts it.

    Args:
        root: Directory to enumerate.

    Returns:
        List[Path]: Absolute file paths.

    Raises:
        ArchiveIOError: If the root is missing, not a directory, or any part of
            the tree cannot be read.
    """

    root_path = Path(root)
    if not root_path.is_dir():
        raise ArchiveIOError(f"Not a readable directory: {root_path}")

    files: List[Path] = []
    pending: List[Path] = [root_path]

    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    path = Path(entry.path)
                    if entry.is_symlink():
                        if _is_regular_file_link(path):
                            files.append(path)
                        else:
                            logger.debug("Skipping symlink %s", path)
                        continue
                    if entry.is_dir(follow_symlinks=False):
                        pending.append(path)
                    elif entry.is_file(follow_symlinks=False):
                        files.append(path)
                    else:
                        logger.debug("Skipping special file %s", path)
        except OSError as exc:
            raise ArchiveIOError(f"Failed to read directory {current}: {exc}") from exc

    files.sort()
    return files


def _is_regular_file_link(path: Path) -> bool:
    try:
        return stat.S_ISREG(os.stat(path).st_mode)
    except OSError:
        return False
