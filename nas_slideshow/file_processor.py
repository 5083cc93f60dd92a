# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Local file handling for downloaded photos.
Clears the download directory, unpacks the downloaded archive and flattens
it into a single directory, and deletes photos on request.
"""

import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import List, Optional

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Finder metadata that ends up in archives packed on a Mac
MACOS_METADATA_FILE = ".ds_store"


def unique_destination(directory: Path, file_name: str) -> Path:
    """
    Return a path in ``directory`` for ``file_name`` that does not exist yet.

    Collisions get ``_1``, ``_2``, ... appended to the stem.
    """
    destination = directory / file_name
    if not destination.exists():
        return destination

    stem, ext = os.path.splitext(file_name)
    counter = 1
    while destination.exists():
        destination = directory / f"{stem}_{counter}{ext}"
        counter += 1
    return destination


class FileProcessor:
    """Manages the local download directory."""

    def __init__(self, download_dir: str, archive_name: str):
        """
        Args:
            download_dir: Directory photos are downloaded and flattened into.
            archive_name: File name of the downloaded archive.
        """
        self.download_dir = Path(download_dir)
        self.archive_name = archive_name

    @property
    def archive_path(self) -> Path:
        return self.download_dir / self.archive_name

    def clean_directory(self, cancel: CancellationToken, path: Optional[Path] = None) -> None:
        """
        Remove everything inside the directory, or create it if missing.

        Raises:
            OSError: If a file or directory cannot be removed.
        """
        root = Path(path) if path is not None else self.download_dir

        if not root.exists():
            logger.warning(f"Directory '{root}' does not exist, creating it")
            root.mkdir(parents=True, exist_ok=True)
            return

        logger.info(f"Cleaning directory '{root}'")
        for entry in root.iterdir():
            cancel.raise_if_cancelled()
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        logger.info(f"Directory '{root}' cleaned")

    def unpack(
        self,
        cancel: CancellationToken,
        archive_path: Optional[Path] = None,
        target_dir: Optional[Path] = None
    ) -> None:
        """
        Extract the archive, delete it, and flatten the result.

        Does nothing if the archive does not exist.

        Raises:
            OSError / zipfile.BadZipFile: On extraction or move failure.
        """
        archive = Path(archive_path) if archive_path is not None else self.archive_path
        target = Path(target_dir) if target_dir is not None else self.download_dir

        if not archive.exists():
            logger.error(f"File '{archive}' does not exist")
            return

        logger.info("Processing zip file")

        with zipfile.ZipFile(archive) as zf:
            for member in zf.infolist():
                cancel.raise_if_cancelled()
                zf.extract(member, target)

        archive.unlink()
        self.flatten(target, cancel)

        logger.info("Finished processing zip file")

    def flatten(self, root: Path, cancel: CancellationToken) -> int:
        """
        Move every nested file directly into ``root`` and remove subdirectories.

        Files already at the top level stay put. Mac metadata files are not
        moved. Name collisions are resolved with numbered suffixes.

        Returns:
            Number of files moved.
        """
        root = Path(root)
        nested = sorted(
            p for p in root.rglob("*")
            if p.is_file() and p.parent != root
        )

        moved = 0
        for file_path in nested:
            cancel.raise_if_cancelled()
            if file_path.name.lower() == MACOS_METADATA_FILE:
                continue
            destination = unique_destination(root, file_path.name)
            shutil.move(str(file_path), str(destination))
            moved += 1

        # Only skipped metadata files remain below the top level now
        for directory in sorted(p for p in root.iterdir() if p.is_dir()):
            shutil.rmtree(directory)

        logger.debug(f"Flattened {moved} files into {root}")
        return moved

    def delete_photos(self, names: List[str], cancel: CancellationToken) -> List[str]:
        """
        Delete photos from the download directory.

        Args:
            names: File names relative to the download directory.
            cancel: Cancellation token.

        Returns:
            Names that were actually deleted.
        """
        if not self.download_dir.exists():
            logger.warning(f"Directory '{self.download_dir}' does not exist")
            return []

        root = self.download_dir.resolve()
        deleted = []
        for name in names:
            cancel.raise_if_cancelled()
            photo_path = (root / name).resolve()
            if root not in photo_path.parents:
                logger.warning(f"Refusing to delete '{name}' outside the photo directory")
                continue

            logger.info(f"Deleting photo with name '{name}'")
            try:
                photo_path.unlink()
                deleted.append(name)
            except FileNotFoundError:
                logger.warning(f"Photo '{name}' was already gone")
        return deleted
