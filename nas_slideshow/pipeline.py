# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Download pipeline.
Runs search, download, unpack, optional conversion and cataloging in order.
"""

import logging
import threading
import zipfile
from typing import List

from .auth import SessionAuthenticator
from .cancellation import CancellationToken
from .catalog import MediaCatalog, SlideRecord
from .downloader import FileStationDownloader
from .errors import FileSystemError, Result, TransportError
from .file_processor import FileProcessor
from .search import PhotoSearch

logger = logging.getLogger(__name__)


class SlideshowPipeline:
    """
    Refreshes the local photo directory from the NAS.

    One run at a time: the photo directory is owned by the running pipeline.
    """

    def __init__(
        self,
        authenticator: SessionAuthenticator,
        search: PhotoSearch,
        downloader: FileStationDownloader,
        file_processor: FileProcessor,
        catalog: MediaCatalog,
        convert_photos: bool = True
    ):
        self._authenticator = authenticator
        self._search = search
        self._downloader = downloader
        self._file_processor = file_processor
        self._catalog = catalog
        self.convert_photos = convert_photos
        self._run_lock = threading.Lock()

    def run(self, cancel: CancellationToken) -> Result[List[SlideRecord]]:
        """
        Download a fresh random set of photos.

        Returns:
            Result with the new slides, or the failure of the first stage
            that failed.

        Raises:
            AuthenticationFailed: If the NAS login fails.
            OperationCancelled: If cancelled. Session logout and search
                cleanup have already run.
        """
        with self._run_lock:
            return self._run(cancel)

    def _run(self, cancel: CancellationToken) -> Result[List[SlideRecord]]:
        with self._authenticator.session(cancel) as session:
            search_result = self._search.search(session, cancel)
            if not search_result.ok:
                logger.warning(f"Photo search failed: {search_result.error}")
                return Result.failure(search_result.error)

            items = search_result.value
            if not items:
                logger.warning("Search found no photos, keeping current slides")
                return Result.success(self._catalog.list_slides(cancel))

            try:
                self._downloader.download(session, items, cancel)
            except TransportError as e:
                logger.error(f"Photo download failed: {e}")
                return Result.failure(e)
            except OSError as e:
                logger.error(f"Failed to store downloaded photos: {e}")
                return Result.failure(FileSystemError(str(e)))

        try:
            self._file_processor.unpack(cancel)
            if self.convert_photos:
                self._catalog.convert_and_compress(cancel)
        except (OSError, zipfile.BadZipFile) as e:
            logger.error(f"Failed to process downloaded photos: {e}")
            return Result.failure(FileSystemError(str(e)))

        slides = self._catalog.list_slides(cancel)
        logger.info(f"Pipeline finished with {len(slides)} slides")
        return Result.success(slides)
