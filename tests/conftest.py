# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Pytest configuration and shared fixtures for NAS Slideshow tests.
"""

import tempfile
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

import pytest
from PIL import Image

from nas_slideshow.api_client import (
    API_AUTH, API_DOWNLOAD, API_INFO, API_SEARCH, build_url,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_dict(temp_dir):
    """Return a minimal valid config dictionary."""
    return {
        "nas": {
            "url": "https://nas.local:5001",
            "verify_ssl": False,
            "timeout_seconds": 15
        },
        "account": {
            "account": "slideshow",
            "password": "secret"
        },
        "search": {
            "folders": ["/photo/2023", "/photo/2024"],
            "sample_count": 5,
            "timeout_seconds": 60,
            "poll_delay_seconds": 0.5,
            "max_poll_attempts": 10,
            "excluded_extensions": [".mp4", ".mov"]
        },
        "download": {
            "directory": str(temp_dir / "photos"),
            "file_name": "photos.zip",
            "convert_photos": False
        },
        "geolocation": {
            "enabled": True,
            "use_mock": True,
            "cache_directory": str(temp_dir / "cache")
        },
        "web": {
            "enabled": False,
            "port": 8080,
            "host": "127.0.0.1"
        }
    }


@pytest.fixture
def sample_config_yaml(temp_dir, sample_config_dict):
    """Create a temporary config.yaml file."""
    import yaml
    config_path = temp_dir / "config.yaml"
    with open(config_path, 'w') as f:
        yaml.dump(sample_config_dict, f)
    return config_path


def parse_query(url: str) -> dict:
    """Decode the query string of an API URL."""
    return dict(parse_qsl(urlsplit(url).query))


DEFAULT_API_INFO = {
    "success": True,
    "data": {
        API_AUTH: {"path": "entry.cgi", "minVersion": 1, "maxVersion": 6},
        API_SEARCH: {"path": "entry.cgi", "minVersion": 1, "maxVersion": 2},
        API_DOWNLOAD: {"path": "entry.cgi", "minVersion": 1, "maxVersion": 2},
    }
}

DEFAULT_LOGIN = {"success": True, "data": {"sid": "sid-123", "synotoken": "token-456"}}


class FakeNasClient:
    """
    Stands in for SynologyApiClient.

    Answers are scripted per (api, method). A script is either a callable
    taking the decoded query, or a list of responses consumed in order (the
    last one repeats). Exceptions in a script are raised.
    """

    def __init__(self, base_url: str = "https://nas.local:5001"):
        self.base_url = base_url
        self.calls = []
        self.raw_calls = []
        self.raw_response = None
        self.closed = False
        self._scripts = {
            (API_INFO, "query"): [DEFAULT_API_INFO],
            (API_AUTH, "login"): [DEFAULT_LOGIN],
            (API_AUTH, "logout"): [{"success": True}],
            (API_SEARCH, "clean"): [{"success": True}],
        }

    def on(self, api: str, method: str, *responses):
        if len(responses) == 1 and callable(responses[0]):
            self._scripts[(api, method)] = responses[0]
        else:
            self._scripts[(api, method)] = list(responses)

    def url_for(self, request):
        return build_url(self.base_url, request)

    def get_json(self, url, cancel, check_after=True):
        cancel.raise_if_cancelled()
        query = parse_query(url)
        self.calls.append(query)

        script = self._scripts.get((query["api"], query["method"]))
        if script is None:
            return {"success": True, "data": {}}
        if callable(script):
            response = script(query)
        else:
            response = script.pop(0) if len(script) > 1 else script[0]

        if isinstance(response, Exception):
            raise response
        if check_after:
            cancel.raise_if_cancelled()
        return response

    def get_raw(self, url, cancel):
        cancel.raise_if_cancelled()
        self.raw_calls.append(parse_query(url))
        if isinstance(self.raw_response, Exception):
            raise self.raw_response
        return self.raw_response

    def close(self):
        self.closed = True

    def methods(self, api: str = None):
        """Methods called so far, optionally for one API only."""
        return [c["method"] for c in self.calls if api is None or c["api"] == api]


@pytest.fixture
def fake_client():
    return FakeNasClient()


@pytest.fixture
def make_jpeg():
    """Factory writing a small JPEG, optionally with EXIF date and GPS."""
    def _make(path, date=None, offset=None, gps=None, size=(40, 30)):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        img = Image.new("RGB", size, (200, 80, 40))
        exif = Image.Exif()
        if date:
            exif_ifd = {36867: date}  # DateTimeOriginal
            if offset:
                exif_ifd[36881] = offset  # OffsetTimeOriginal
            exif[0x8769] = exif_ifd
        if gps:
            lat, lat_ref, lon, lon_ref = gps
            exif[0x8825] = {1: lat_ref, 2: lat, 3: lon_ref, 4: lon}
        img.save(path, "JPEG", exif=exif)
        return path
    return _make
