# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Tests for application wiring and the run-once mode.
"""

import signal
from unittest.mock import MagicMock, patch

import pytest

import nas_slideshow
from nas_slideshow.config import load_config
from nas_slideshow.errors import AuthenticationFailed, Result, SearchTimedOut
from nas_slideshow.geocoding import MockLocationResolver
from nas_slideshow.main import SlideshowApp, build_components, main


@pytest.fixture(autouse=True)
def restore_signal_handlers():
    """SlideshowApp installs handlers; put the originals back."""
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


class TestBuildComponents:
    """Test wiring components from config."""

    def test_wires_from_config(self, sample_config_yaml):
        config = load_config(str(sample_config_yaml))

        components = build_components(config)

        assert components.client.base_url == "https://nas.local:5001"
        assert components.file_processor.archive_path.name == "photos.zip"
        assert components.catalog.root == components.file_processor.download_dir
        assert isinstance(components.catalog._location_resolver, MockLocationResolver)
        assert components.pipeline.convert_photos is False


class TestSlideshowApp:
    """Test the application lifecycle."""

    def test_invalid_config_fails(self, temp_dir):
        app = SlideshowApp(config_path=str(temp_dir / "absent.yaml"))

        assert app.run(once=True) == 1

    def test_run_once_success(self, sample_config_yaml):
        app = SlideshowApp(config_path=str(sample_config_yaml))
        pipeline = MagicMock()
        pipeline.run.return_value = Result.success([])

        with patch("nas_slideshow.main.SlideshowPipeline", return_value=pipeline):
            assert app.run(once=True) == 0
        pipeline.run.assert_called_once()

    def test_run_once_failure(self, sample_config_yaml):
        app = SlideshowApp(config_path=str(sample_config_yaml))
        pipeline = MagicMock()
        pipeline.run.return_value = Result.failure(SearchTimedOut.after_attempts(10))

        with patch("nas_slideshow.main.SlideshowPipeline", return_value=pipeline):
            assert app.run(once=True) == 1

    def test_run_once_login_failure(self, sample_config_yaml):
        app = SlideshowApp(config_path=str(sample_config_yaml))
        pipeline = MagicMock()
        pipeline.run.side_effect = AuthenticationFailed("SynoToken is null or empty")

        with patch("nas_slideshow.main.SlideshowPipeline", return_value=pipeline):
            assert app.run(once=True) == 1

    def test_stop_cancels_work(self, sample_config_yaml):
        app = SlideshowApp(config_path=str(sample_config_yaml))
        seen = []

        def run(cancel):
            app.stop()
            seen.append(cancel.cancelled)
            return Result.success([])

        pipeline = MagicMock()
        pipeline.run.side_effect = run

        with patch("nas_slideshow.main.SlideshowPipeline", return_value=pipeline):
            app.run(once=True)

        assert seen == [True]


class TestWebServer:
    """Test starting the web API alongside the application."""

    @pytest.fixture
    def app(self, sample_config_yaml):
        app = SlideshowApp(config_path=str(sample_config_yaml))
        assert app._load_config()
        app.components = MagicMock()
        return app

    def test_disabled(self, app):
        app._start_web_server()

        assert app.web_thread is None

    def test_serves_pipeline_and_catalog(self, app):
        app.config.web.enabled = True
        flask_app = MagicMock()

        with patch("nas_slideshow.web.app.create_app", return_value=flask_app) as create_app:
            app._start_web_server()
            app.web_thread.join(timeout=5)

        create_app.assert_called_once_with(
            app.config,
            app.components.pipeline,
            app.components.catalog,
            shutdown_event=app._shutdown_event,
        )
        flask_app.run.assert_called_once()
        assert flask_app.run.call_args.kwargs["host"] == "127.0.0.1"
        assert flask_app.run.call_args.kwargs["port"] == 8080

    def test_bind_failure_stops_app(self, app):
        app.config.web.enabled = True
        flask_app = MagicMock()
        flask_app.run.side_effect = OSError("Address already in use")

        with patch("nas_slideshow.web.app.create_app", return_value=flask_app):
            app._start_web_server()
            app.web_thread.join(timeout=5)

        assert app._shutdown_event.is_set()


class TestVersion:
    """Test the --version flag."""

    def test_prints_package_version(self, capsys):
        with patch("sys.argv", ["nas-slideshow", "--version"]):
            assert main() == 0

        assert capsys.readouterr().out.strip() == f"NAS Slideshow {nas_slideshow.__version__}"
        assert nas_slideshow.__version__ == "1.0.0"
        assert not hasattr(nas_slideshow, "__author__")
