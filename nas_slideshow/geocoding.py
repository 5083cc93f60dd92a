# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Reverse geocoding for photo locations.

Turns GPS coordinates into a short place name ("Nashville, TN") using the
Google geocoder through geopy. Results are cached in two tiers, in memory
and in a JSON file shared by every process on the host, with one expiry
for both.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

from geopy.exc import GeopyError
from geopy.geocoders import GoogleV3

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 7 * 24 * 3600
CACHE_FILE_NAME = "geocode_cache.json"
MOCK_LOCATION = "(Mock)Nashville, TN"


def cache_key(latitude: float, longitude: float) -> str:
    """Stable cache key for a coordinate pair."""
    return f"{latitude!r},{longitude!r}"


class GeoCache:
    """
    Two-tier cache of place names.

    Entries are advisory: a miss, an expired entry or an unreadable cache
    file simply mean a live lookup.
    """

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock=time.time
    ):
        """
        Args:
            cache_dir: Directory for the shared JSON tier. None = memory only.
            ttl_seconds: Expiry applied to both tiers.
            clock: Returns the current epoch time. Replaceable in tests.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._memory: Dict[str, Tuple[str, float]] = {}
        self._path = Path(cache_dir) / CACHE_FILE_NAME if cache_dir else None

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            entry = self._memory.get(key)
            if entry is not None:
                if entry[1] > now:
                    return entry[0]
                del self._memory[key]

            shared = self._read_shared()
            entry = shared.get(key)
            if entry is None:
                return None
            try:
                value = entry["value"]
                expires_at = float(entry["expires_at"])
            except (KeyError, TypeError, ValueError):
                return None
            if expires_at <= now:
                return None

            self._memory[key] = (value, expires_at)
            return value

    def set(self, key: str, value: str) -> None:
        expires_at = self._clock() + self.ttl_seconds
        with self._lock:
            self._memory[key] = (value, expires_at)
            if self._path is None:
                return
            shared = self._read_shared()
            now = self._clock()
            shared = {k: v for k, v in shared.items() if _expires_after(v, now)}
            shared[key] = {"value": value, "expires_at": expires_at}
            self._write_shared(shared)

    def _read_shared(self) -> dict:
        if self._path is None or not self._path.exists():
            return {}
        try:
            with open(self._path, 'r') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load geocode cache: {e}")
            return {}

    def _write_shared(self, data: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            with open(tmp_path, 'w') as f:
                json.dump(data, f)
            tmp_path.replace(self._path)
        except OSError as e:
            logger.warning(f"Failed to save geocode cache: {e}")


class LocationResolver:
    """Resolves coordinates to a place name. Returns "" when unknown."""

    def resolve(self, latitude: float, longitude: float, cancel: CancellationToken) -> str:
        raise NotImplementedError


class MockLocationResolver(LocationResolver):
    """Fixed answer, for development without an API key."""

    def resolve(self, latitude: float, longitude: float, cancel: CancellationToken) -> str:
        cancel.raise_if_cancelled()
        return MOCK_LOCATION


class GoogleLocationResolver(LocationResolver):
    """Google Geocoding API lookups with caching."""

    CITY_TYPE = "locality"
    STATE_TYPE = "administrative_area_level_1"

    def __init__(self, api_key: str, cache: GeoCache, timeout: int = 10, geocoder=None):
        self._cache = cache
        self._geocoder = geocoder or GoogleV3(api_key=api_key, timeout=timeout)

    def resolve(self, latitude: float, longitude: float, cancel: CancellationToken) -> str:
        """
        Return "City, ST" for the coordinates.

        Errors from the geocoding service are logged and give "".
        """
        key = cache_key(latitude, longitude)
        logger.debug(f"Checking cache for location with key: '{key}'")

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        cancel.raise_if_cancelled()
        logger.info(f"Cache miss for key: '{key}', fetching from source")
        location = self._lookup(latitude, longitude)
        if location:
            self._cache.set(key, location)
        return location

    def _lookup(self, latitude: float, longitude: float) -> str:
        try:
            result = self._geocoder.reverse((latitude, longitude), exactly_one=True, language="en")
        except GeopyError as e:
            logger.error(f"Failed to get location from Google Maps API: {e}")
            return ""

        if result is None or not result.raw:
            return ""

        components = result.raw.get("address_components") or []
        city = self._component(components, self.CITY_TYPE, "long_name")
        state = self._component(components, self.STATE_TYPE, "short_name")
        if city and state:
            return f"{city}, {state}"

        logger.warning("Failed to get city and state from Google Maps API")
        return ""

    @staticmethod
    def _component(components: list, component_type: str, name_field: str) -> Optional[str]:
        for component in components:
            if component_type in component.get("types", []):
                return component.get(name_field)
        return None


def create_location_resolver(geo_config) -> Optional[LocationResolver]:
    """
    Build the resolver described by the geolocation config.

    Returns:
        None when geolocation is disabled.
    """
    if not geo_config.enabled:
        return None
    if geo_config.use_mock:
        logger.info("Using mock location resolver")
        return MockLocationResolver()

    cache = GeoCache(
        cache_dir=geo_config.cache_directory,
        ttl_seconds=geo_config.cache_ttl_days * 24 * 3600,
    )
    return GoogleLocationResolver(api_key=geo_config.api_key, cache=cache)


def _expires_after(entry, now: float) -> bool:
    try:
        return float(entry["expires_at"]) > now
    except (KeyError, TypeError, ValueError):
        return False
