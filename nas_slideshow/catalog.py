# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Catalog of downloaded photos.
Lists slides with their display metadata, re-encodes photos to WebP, and
deletes photos the viewer no longer wants.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .cancellation import CancellationToken
from .file_processor import FileProcessor, unique_destination
from .geocoding import LocationResolver
from .metadata import MetadataExtractor

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff'}

# DS File writes index thumbnails into this directory
THUMBNAIL_DIR = "@eaDir"

# Re-encoding settings
CONVERTIBLE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.tiff'}
SCALE_FACTOR = 0.8
WEBP_QUALITY = 80


@dataclass
class SlideRecord:
    """A photo as shown by the slideshow client."""
    url: str
    date_taken: Optional[datetime] = None
    map_link: str = ""
    location: str = ""

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "date_taken": self.date_taken.isoformat() if self.date_taken else "",
            "map_link": self.map_link,
            "location": self.location,
        }


@dataclass
class DeleteResult:
    """Outcome of a delete request."""
    unmatched: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)


class MediaCatalog:
    """Reads the flattened photo directory."""

    def __init__(
        self,
        file_processor: FileProcessor,
        photo_route: str = "/photos",
        location_resolver: Optional[LocationResolver] = None,
        extractor: Optional[MetadataExtractor] = None
    ):
        """
        Args:
            file_processor: Owner of the photo directory.
            photo_route: URL prefix the photos are served under.
            location_resolver: Resolver for place names. None disables them.
            extractor: EXIF reader.
        """
        self._file_processor = file_processor
        self.root = file_processor.download_dir
        self.photo_route = photo_route.rstrip('/')
        self._location_resolver = location_resolver
        self._extractor = extractor or MetadataExtractor()

    def _photo_paths(self, cancel: CancellationToken) -> List[Path]:
        if not self.root.is_dir():
            logger.warning(f"Photo directory does not exist: {self.root}")
            return []

        paths = []
        for dir_path, dir_names, file_names in os.walk(self.root):
            cancel.raise_if_cancelled()
            dir_names[:] = [d for d in dir_names if THUMBNAIL_DIR not in d]
            for name in file_names:
                if THUMBNAIL_DIR in name:
                    continue
                if os.path.splitext(name)[1].lower() in IMAGE_EXTENSIONS:
                    paths.append(Path(dir_path) / name)
        return paths

    def _url_for(self, path: Path) -> str:
        relative = path.relative_to(self.root).as_posix()
        return f"{self.photo_route}/{relative}"

    def list_photo_urls(self, cancel: CancellationToken) -> List[str]:
        """Slide URLs without metadata, sorted case-insensitively."""
        urls = [self._url_for(p) for p in self._photo_paths(cancel)]
        return sorted(urls, key=str.lower)

    def list_slides(self, cancel: CancellationToken) -> List[SlideRecord]:
        """
        Build a slide record for every photo in the directory.

        A photo whose metadata cannot be read still gets a record, with
        empty date, map link and location.
        """
        slides = []
        for path in self._photo_paths(cancel):
            cancel.raise_if_cancelled()
            slides.append(self._slide_for(path, cancel))

        slides.sort(key=lambda s: s.url.lower())
        return slides

    def _slide_for(self, path: Path, cancel: CancellationToken) -> SlideRecord:
        slide = SlideRecord(url=self._url_for(path))
        metadata = self._extractor.extract(str(path))

        slide.date_taken = metadata.date_taken
        slide.map_link = metadata.map_link
        if self._location_resolver is not None and metadata.has_location:
            slide.location = self._location_resolver.resolve(
                metadata.gps_latitude, metadata.gps_longitude, cancel
            )
        return slide

    def convert_and_compress(self, cancel: CancellationToken) -> int:
        """
        Re-encode photos as smaller WebP files and delete the originals.

        This is irreversible; it only runs as part of the download pipeline.

        Returns:
            Number of photos converted.
        """
        converted = 0
        for path in self._photo_paths(cancel):
            cancel.raise_if_cancelled()
            if path.suffix.lower() not in CONVERTIBLE_EXTENSIONS:
                continue
            try:
                self._convert(path)
            except (OSError, UnidentifiedImageError) as e:
                logger.warning(f"Failed to convert {path.name}: {e}")
                continue
            converted += 1

        logger.info(f"Converted {converted} photos to WebP")
        return converted

    def _convert(self, path: Path) -> Path:
        destination = unique_destination(path.parent, f"{path.stem}.webp")
        with Image.open(path) as img:
            oriented = ImageOps.exif_transpose(img)
            exif = oriented.getexif()
            width = max(1, int(oriented.width * SCALE_FACTOR))
            height = max(1, int(oriented.height * SCALE_FACTOR))
            resized = oriented.resize((width, height), Image.Resampling.LANCZOS)
            if resized.mode not in ("RGB", "RGBA"):
                resized = resized.convert("RGBA" if "A" in resized.getbands() else "RGB")
            resized.save(destination, "WEBP", quality=WEBP_QUALITY, exif=exif.tobytes())

        path.unlink()
        logger.debug(f"Converted {path.name} -> {destination.name}")
        return destination

    def delete_photos(self, names: List[str], cancel: CancellationToken) -> DeleteResult:
        """
        Delete photos by name.

        A name matches when it appears (case-insensitively) in a current
        slide URL. Nothing is deleted if no name matches.
        """
        urls = [u.lower() for u in self.list_photo_urls(cancel)]
        result = DeleteResult()
        to_delete = []
        for name in names:
            if any(name.lower() in url for url in urls):
                to_delete.append(name)
            else:
                result.unmatched.append(name)

        if to_delete:
            result.deleted = self._file_processor.delete_photos(to_delete, cancel)
        return result
