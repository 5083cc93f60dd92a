# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Tests for downloading photos from FileStation.
"""

import json
from unittest.mock import MagicMock

import pytest

from nas_slideshow.api_client import Session
from nas_slideshow.api_info import ApiInfoProvider
from nas_slideshow.cancellation import CancellationToken
from nas_slideshow.downloader import FileStationDownloader
from nas_slideshow.errors import OperationCancelled, TransportError
from nas_slideshow.file_processor import FileProcessor
from nas_slideshow.search import CandidateItem


SESSION = Session(sid="sid-123", syno_token="token-456")


def raw_response(chunks, content_type="application/zip"):
    response = MagicMock()
    response.headers = {"Content-Type": content_type}
    response.iter_content.return_value = iter(chunks)
    return response


@pytest.fixture
def processor(temp_dir):
    return FileProcessor(str(temp_dir / "photos"), "photos.zip")


@pytest.fixture
def downloader(fake_client, processor):
    return FileStationDownloader(fake_client, ApiInfoProvider(fake_client), processor)


ITEMS = [CandidateItem("/photo/a.jpg", "a.jpg"), CandidateItem("/photo/b.jpg", "b.jpg")]


class TestDownload:
    """Test the download request and the written file."""

    def test_writes_archive(self, downloader, fake_client, processor):
        fake_client.raw_response = raw_response([b"PK", b"", b"data"])

        destination = downloader.download(SESSION, ITEMS, CancellationToken())

        assert destination == processor.archive_path
        assert destination.read_bytes() == b"PKdata"
        fake_client.raw_response.close.assert_called_once()

    def test_request_parameters(self, downloader, fake_client):
        fake_client.raw_response = raw_response([b"PK"])

        downloader.download(SESSION, ITEMS, CancellationToken())

        query = fake_client.raw_calls[0]
        assert query["method"] == "download"
        assert query["mode"] == "download"
        assert query["version"] == "2"
        assert json.loads(query["path"]) == ["/photo/a.jpg", "/photo/b.jpg"]
        assert query["_sid"] == "sid-123"

    def test_single_file_kept_under_own_name(self, downloader, fake_client, processor):
        fake_client.raw_response = raw_response([b"\xff\xd8"], content_type="image/jpeg")

        destination = downloader.download(SESSION, ITEMS[:1], CancellationToken())

        assert destination == processor.download_dir / "a.jpg"
        assert not processor.archive_path.exists()

    def test_clears_previous_photos(self, downloader, fake_client, processor):
        processor.download_dir.mkdir(parents=True)
        (processor.download_dir / "old.webp").write_bytes(b"old")
        fake_client.raw_response = raw_response([b"PK"])

        downloader.download(SESSION, ITEMS, CancellationToken())

        assert [p.name for p in processor.download_dir.iterdir()] == ["photos.zip"]

    def test_nothing_to_download(self, downloader, fake_client):
        assert downloader.download(SESSION, [], CancellationToken()) is None
        assert fake_client.raw_calls == []

    def test_transport_error(self, downloader, fake_client):
        fake_client.raw_response = TransportError("timeout")

        with pytest.raises(TransportError):
            downloader.download(SESSION, ITEMS, CancellationToken())

    def test_cancel_between_chunks(self, downloader, fake_client):
        token = CancellationToken()

        def chunks():
            yield b"PK"
            token.cancel()
            yield b"more"

        fake_client.raw_response = raw_response([])
        fake_client.raw_response.iter_content.return_value = chunks()

        with pytest.raises(OperationCancelled):
            downloader.download(SESSION, ITEMS, token)
        fake_client.raw_response.close.assert_called_once()
