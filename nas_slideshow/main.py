#!/usr/bin/env python3
# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
NAS Slideshow - Main Application.
Builds the download pipeline and serves it through the web API.
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .api_client import SynologyApiClient
from .api_info import ApiInfoProvider
from .auth import SessionAuthenticator
from .cancellation import CancellationToken
from .catalog import MediaCatalog
from .config import SlideshowConfig, load_config, validate_config
from .downloader import FileStationDownloader
from .errors import AuthenticationFailed, OperationCancelled
from .file_processor import FileProcessor
from .geocoding import create_location_resolver
from .pipeline import SlideshowPipeline
from .search import PhotoSearch

# Initialize logging early
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def setup_file_logging(log_dir: str) -> None:
    """Set up file logging in addition to console."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path / 'nas-slideshow.log')
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logging.getLogger().addHandler(file_handler)


@dataclass
class Components:
    """Wired pipeline parts."""
    client: SynologyApiClient
    file_processor: FileProcessor
    catalog: MediaCatalog
    pipeline: SlideshowPipeline


def build_components(config: SlideshowConfig) -> Components:
    """Wire every pipeline component from the configuration."""
    client = SynologyApiClient(
        config.nas.url,
        timeout=config.nas.timeout_seconds,
        verify_ssl=config.nas.verify_ssl,
    )
    api_info = ApiInfoProvider(client)
    authenticator = SessionAuthenticator(
        client, api_info, config.account.account, config.account.password
    )
    file_processor = FileProcessor(config.download.directory, config.download.file_name)
    catalog = MediaCatalog(
        file_processor,
        photo_route=config.web.photo_route,
        location_resolver=create_location_resolver(config.geolocation),
    )
    pipeline = SlideshowPipeline(
        authenticator=authenticator,
        search=PhotoSearch(client, api_info, config.search),
        downloader=FileStationDownloader(client, api_info, file_processor),
        file_processor=file_processor,
        catalog=catalog,
        convert_photos=config.download.convert_photos,
    )
    return Components(client, file_processor, catalog, pipeline)


class SlideshowApp:
    """Main NAS Slideshow application."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Path to configuration file.
        """
        self.config_path = config_path
        self.config = None
        self.components = None
        self.web_thread = None

        self._shutdown_event = threading.Event()

        # Set up signal handlers
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating shutdown...")
        self.stop()

    def _load_config(self) -> bool:
        """Load and validate configuration. Returns False if unusable."""
        try:
            self.config = load_config(self.config_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load configuration: {e}")
            return False

        errors = validate_config(self.config)
        for error in errors:
            logger.error(f"Config error: {error}")
        if errors:
            return False

        logger.info(f"Configuration loaded from: {self.config.config_path or 'defaults'}")
        return True

    def _start_web_server(self) -> None:
        """Start the web server in a background thread."""
        if not self.config.web.enabled:
            logger.info("Web interface disabled")
            return

        from .web.app import create_app

        def run_web():
            app = create_app(
                self.config,
                self.components.pipeline,
                self.components.catalog,
                shutdown_event=self._shutdown_event,
            )
            logging.getLogger('werkzeug').setLevel(logging.WARNING)
            logger.info(f"Starting web server on {self.config.web.host}:{self.config.web.port}")

            try:
                app.run(
                    host=self.config.web.host,
                    port=self.config.web.port,
                    debug=False,
                    threaded=True,
                    use_reloader=False
                )
            except OSError as e:
                logger.error(f"Web server error: {e}")
                self.stop()

        self.web_thread = threading.Thread(target=run_web, daemon=True)
        self.web_thread.start()

    def run_once(self) -> int:
        """Run the download pipeline once. Returns an exit code."""
        cancel = CancellationToken(event=self._shutdown_event)
        try:
            result = self.components.pipeline.run(cancel)
        except AuthenticationFailed as e:
            logger.error(f"NAS login failed: {e}")
            return 1
        except OperationCancelled:
            logger.warning("Download cancelled")
            return 1

        if not result.ok:
            logger.error(f"Download failed ({result.error.kind}): {result.error}")
            return 1

        logger.info(f"Downloaded {len(result.value)} slides")
        return 0

    def run(self, once: bool = False) -> int:
        """
        Run the application.

        Args:
            once: Run the pipeline a single time instead of serving.

        Returns:
            Exit code (0 for success).
        """
        logger.info("Starting NAS Slideshow...")

        if not self._load_config():
            return 1

        if self.config.logging.directory:
            try:
                setup_file_logging(self.config.logging.directory)
            except OSError as e:
                logger.warning(f"Could not set up file logging: {e}")

        self.components = build_components(self.config)

        try:
            if once:
                return self.run_once()

            self._start_web_server()
            logger.info("NAS Slideshow started successfully")
            self._shutdown_event.wait()
            return 0
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Stop the application and cancel work in flight."""
        logger.info("Stopping NAS Slideshow...")
        self._shutdown_event.set()

    def _cleanup(self) -> None:
        """Clean up resources."""
        logger.info("Cleaning up...")
        if self.components:
            self.components.client.close()
        logger.info("NAS Slideshow stopped")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="NAS Slideshow - random photos from a Synology NAS",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '-c', '--config',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Download a fresh set of photos and exit'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--version',
        action='store_true',
        help='Show version and exit'
    )

    args = parser.parse_args()

    if args.version:
        from . import __version__
        print(f"NAS Slideshow {__version__}")
        return 0

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    app = SlideshowApp(config_path=args.config)
    return app.run(once=args.once)


if __name__ == "__main__":
    sys.exit(main())
