# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Photo download from NAS FileStation.
"""

import logging
import posixpath
from pathlib import Path
from typing import List, Optional

from .api_client import API_DOWNLOAD, ApiRequest, Session, SynologyApiClient
from .api_info import ApiInfoProvider
from .cancellation import CancellationToken
from .file_processor import FileProcessor
from .search import CandidateItem

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
ZIP_CONTENT_TYPES = ("application/zip", "application/x-zip-compressed")


class FileStationDownloader:
    """Downloads the selected photos as a single package."""

    def __init__(
        self,
        client: SynologyApiClient,
        api_info: ApiInfoProvider,
        file_processor: FileProcessor
    ):
        self._client = client
        self._api_info = api_info
        self._file_processor = file_processor

    def download(
        self,
        session: Session,
        items: List[CandidateItem],
        cancel: CancellationToken
    ) -> Optional[Path]:
        """
        Clear the download directory and download ``items`` into it.

        A multi-file request produces a zip archive at the configured archive
        path. A single file comes back as-is and is stored under its own name.

        Args:
            session: Active NAS session.
            items: Files to download.
            cancel: Cancellation token, checked between chunks.

        Returns:
            Path of the written file, or None if there was nothing to download.

        Raises:
            TransportError: If the download request fails.
            OSError: If the directory cannot be cleared or the file written.
        """
        if not items:
            logger.warning("No photos to download")
            return None

        self._file_processor.clean_directory(cancel)

        version = self._api_info.get_capabilities(cancel).max_version("download")
        request = ApiRequest(
            api=API_DOWNLOAD,
            method="download",
            version=version,
            params={"path": [item.path for item in items], "mode": "download"},
            session=session,
        )

        response = self._client.get_raw(self._client.url_for(request), cancel)
        try:
            destination = self._destination_for(items, response.headers.get("Content-Type", ""))
            with open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    cancel.raise_if_cancelled()
                    if chunk:
                        f.write(chunk)
        finally:
            response.close()

        logger.info(f"Downloaded {len(items)} photos to {destination}")
        return destination

    def _destination_for(self, items: List[CandidateItem], content_type: str) -> Path:
        is_zip = content_type.split(";")[0].strip().lower() in ZIP_CONTENT_TYPES
        if len(items) == 1 and not is_zip:
            name = posixpath.basename(items[0].name or items[0].path)
            return self._file_processor.download_dir / name
        return self._file_processor.archive_path
