"""Archive extraction for local .zip locators."""

from __future__ import annotations

import logging
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Protocol

from .errors import ArchiveError

logger = logging.getLogger(__name__)


class ArchiveExtractor(Protocol):
    """Extracts a local archive and returns where its content landed."""

    def extract(self, archive_path: Path, target: Optional[Path] = None) -> Path:
        ...


class ZipExtractor:
    """
    Extract ZIP archives to a directory.

    Members whose resolved path would land outside the target directory
    are rejected and nothing is written.

    Example:
        extractor = ZipExtractor()
        directory = extractor.extract(Path("bundle.zip"))
    """

    def __init__(self, prefix: str = "pullchain-"):
        """Initialize extractor.

        Args:
            prefix: Prefix of temporary directories created when no target is given
        """
        self.prefix = prefix

    def _check_members(self, archive: zipfile.ZipFile, target: Path) -> None:
        for member in archive.namelist():
            destination = (target / member).resolve()
            if destination != target and target not in destination.parents:
                raise ArchiveError(f"Archive member escapes extraction directory: {member}")

    def extract(self, archive_path: Path, target: Optional[Path] = None) -> Path:
        """Extract an archive.

        Args:
            archive_path: Path to the .zip file
            target: Directory to extract into (a new temporary directory if None)

        Returns:
            Resolved absolute path of the extraction directory

        Raises:
            ArchiveError: If the archive is corrupt, encrypted, uses an unsupported
                compression method, is unsafe or cannot be written
        """
        archive_path = Path(archive_path)
        locator = str(archive_path)

        try:
            if target is None:
                target = Path(tempfile.mkdtemp(prefix=self.prefix))
            else:
                target = Path(target)
                target.mkdir(parents=True, exist_ok=True)
            target = target.resolve()

            with zipfile.ZipFile(archive_path) as archive:
                self._check_members(archive, target)
                archive.extractall(target)
                count = len(archive.namelist())
        except ArchiveError as e:
            e.locator = locator
            raise
        except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError, EOFError) as e:
            # RuntimeError: encrypted member; NotImplementedError: unsupported compression
            raise ArchiveError(f"Cannot extract {archive_path}: {e}", locator=locator) from e

        logger.info(f"Extracted {count} entries from {archive_path} to {target}")
        return target
