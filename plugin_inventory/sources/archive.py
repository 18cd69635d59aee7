"""Extraction of plugin bundle archives."""

import logging
import tarfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Raised when an archive cannot be extracted."""

    pass


def extract_tar(archive_path: Union[str, Path], destination_dir: Union[str, Path]) -> None:
    """
    Extract a tar archive (optionally compressed) into a directory.

    Members, symlinks and hard links that would land or point outside
    destination_dir are rejected before anything is written.

    Args:
        archive_path: Path to the archive
        destination_dir: Directory to extract into

    Raises:
        ArchiveError: If the archive is missing, corrupt, or unsafe
    """
    archive_path = Path(archive_path)
    destination_dir = Path(destination_dir)

    if not archive_path.is_file():
        raise ArchiveError(f"Archive not found: {archive_path}")

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            _check_members(tar, archive_path, destination_dir)
            if hasattr(tarfile, "data_filter"):
                # Python 3.12+ and security backports
                tar.extractall(destination_dir, filter="data")
            else:
                tar.extractall(destination_dir)
    except tarfile.TarError as e:
        raise ArchiveError(f"Unable to extract {archive_path}: {e}") from e
    except OSError as e:
        raise ArchiveError(f"Unable to extract {archive_path}: {e}") from e

    logger.debug(f"Extracted {archive_path} to {destination_dir}")


def _check_members(tar: tarfile.TarFile, archive_path: Path, destination_dir: Path) -> None:
    root = destination_dir.resolve()
    for member in tar.getmembers():
        target = (destination_dir / member.name).resolve()
        if not _is_within(root, target):
            raise ArchiveError(f"Unsafe path '{member.name}' in archive {archive_path}")

        if not (member.issym() or member.islnk()):
            continue
        if member.issym():
            # Symlinks resolve relative to their own directory
            link_target = (target.parent / member.linkname).resolve()
        else:
            link_target = (destination_dir / member.linkname).resolve()
        if Path(member.linkname).is_absolute() or not _is_within(root, link_target):
            raise ArchiveError(f"Unsafe link '{member.name}' -> '{member.linkname}' in archive {archive_path}")


def _is_within(root: Path, path: Path) -> bool:
    return path == root or root in path.parents
