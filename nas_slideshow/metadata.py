# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Metadata extraction for photos.
Extracts the EXIF capture time (with UTC offset when recorded) and GPS
position, and formats the position as a map link.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from PIL import ExifTags, Image, UnidentifiedImageError
from PIL.ExifTags import GPSTAGS, TAGS

logger = logging.getLogger(__name__)

MAP_LINK_TEMPLATE = "https://www.google.com/maps?q={lat},{lon}"

_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


@dataclass
class PhotoMetadata:
    """Extracted metadata from a photo."""
    date_taken: Optional[datetime] = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None

    @property
    def has_location(self) -> bool:
        return self.gps_latitude is not None and self.gps_longitude is not None

    @property
    def map_link(self) -> str:
        if not self.has_location:
            return ""
        return google_maps_link(self.gps_latitude, self.gps_longitude)


def google_maps_link(latitude: float, longitude: float) -> str:
    """Map link for a position in signed decimal degrees."""
    return MAP_LINK_TEMPLATE.format(lat=latitude, lon=longitude)


class MetadataExtractor:
    """Extracts metadata from photo files."""

    # EXIF date format
    EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

    # Date tags in order of preference, each with its offset tag
    DATE_TAGS = [
        ("DateTimeOriginal", "OffsetTimeOriginal"),    # When photo was taken
        ("DateTimeDigitized", "OffsetTimeDigitized"),  # When photo was digitized
        ("DateTime", "OffsetTime"),                    # File modification time
    ]

    def extract(self, image_path: str) -> PhotoMetadata:
        """
        Extract metadata from an image file.

        Never raises: unreadable files and files without EXIF give empty
        metadata.

        Args:
            image_path: Path to the image file.

        Returns:
            PhotoMetadata with extracted information.
        """
        metadata = PhotoMetadata()

        try:
            with Image.open(image_path) as img:
                exif_data, gps_data = self._get_exif_data(img)
        except (OSError, UnidentifiedImageError) as e:
            logger.warning(f"Error reading {image_path}: {e}")
            return metadata

        if not exif_data and not gps_data:
            return metadata

        metadata.date_taken = self._extract_date(exif_data)
        metadata.gps_latitude, metadata.gps_longitude = self._extract_gps(gps_data)
        return metadata

    def _get_exif_data(self, img: Image.Image) -> Tuple[dict, dict]:
        """
        Extract EXIF data as dictionaries with readable tag names.

        Returns:
            (exif_data, gps_data). The Exif sub-IFD is merged into exif_data.
        """
        exif_data = {}
        gps_data = {}

        try:
            exif = img.getexif()
            if not exif:
                return exif_data, gps_data

            for tag_id, value in exif.items():
                exif_data[TAGS.get(tag_id, tag_id)] = value
            for tag_id, value in exif.get_ifd(ExifTags.IFD.Exif).items():
                exif_data[TAGS.get(tag_id, tag_id)] = value
            for tag_id, value in exif.get_ifd(ExifTags.IFD.GPSInfo).items():
                gps_data[GPSTAGS.get(tag_id, tag_id)] = value
        except Exception as e:
            logger.debug(f"Error reading EXIF: {e}")

        return exif_data, gps_data

    def _extract_date(self, exif_data: dict) -> Optional[datetime]:
        """
        Extract the date the photo was taken from EXIF data.

        The UTC offset is attached when the matching offset tag parses;
        otherwise the datetime is naive (local, offset unknown).

        Returns:
            datetime or None if not found.
        """
        for date_tag, offset_tag in self.DATE_TAGS:
            date_str = _as_text(exif_data.get(date_tag))
            if not date_str:
                continue
            try:
                taken = datetime.strptime(date_str.strip("\x00 "), self.EXIF_DATE_FORMAT)
            except ValueError as e:
                logger.debug(f"Failed to parse date '{date_str}': {e}")
                continue

            offset = parse_utc_offset(_as_text(exif_data.get(offset_tag)))
            if offset is not None:
                taken = taken.replace(tzinfo=offset)
            return taken

        return None

    def _extract_gps(self, gps_data: dict) -> Tuple[Optional[float], Optional[float]]:
        """
        Extract GPS coordinates from decoded GPS tags.

        All four of latitude, longitude and their refs must be present, and
        each coordinate must be a (degrees, minutes, seconds) triple.

        Returns:
            Tuple of (latitude, longitude) or (None, None).
        """
        lat = gps_data.get("GPSLatitude")
        lat_ref = _as_text(gps_data.get("GPSLatitudeRef"))
        lon = gps_data.get("GPSLongitude")
        lon_ref = _as_text(gps_data.get("GPSLongitudeRef"))

        if lat is None or lon is None or not lat_ref or not lon_ref:
            return None, None
        if not _is_dms_triple(lat) or not _is_dms_triple(lon):
            return None, None

        try:
            latitude = self._convert_gps_coordinate(lat)
            longitude = self._convert_gps_coordinate(lon)
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.debug(f"Error extracting GPS: {e}")
            return None, None

        if lat_ref.strip().upper().startswith("S"):
            latitude = -latitude
        if lon_ref.strip().upper().startswith("W"):
            longitude = -longitude

        return latitude, longitude

    def _convert_gps_coordinate(self, coord) -> float:
        """
        Convert GPS coordinate from degrees/minutes/seconds to decimal.

        Args:
            coord: GPS coordinate tuple (degrees, minutes, seconds).

        Returns:
            Decimal degrees.
        """
        def to_float(val):
            if hasattr(val, 'numerator'):
                return float(val.numerator) / float(val.denominator)
            return float(val)

        degrees = to_float(coord[0])
        minutes = to_float(coord[1])
        seconds = to_float(coord[2])

        return degrees + (minutes / 60.0) + (seconds / 3600.0)


def parse_utc_offset(value: Optional[str]) -> Optional[timezone]:
    """Parse an EXIF offset such as "+02:00". Returns None if unparseable."""
    if not value:
        return None
    match = _OFFSET_PATTERN.match(value.strip("\x00 "))
    if not match:
        return None
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    if delta >= timedelta(hours=24):
        return None
    return timezone(-delta if sign == "-" else delta)


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='ignore')
    return str(value)


def _is_dms_triple(value) -> bool:
    return isinstance(value, (tuple, list)) and len(value) == 3
