# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
NAS Slideshow web API.
Serves slides and downloaded photos, and triggers downloads and deletions.
"""

import logging
import threading
from typing import Optional

from flask import Flask, jsonify, request, send_from_directory

from ..cancellation import CancellationToken
from ..catalog import MediaCatalog
from ..config import SlideshowConfig
from ..errors import AuthenticationFailed, OperationCancelled, SlideshowError
from ..pipeline import SlideshowPipeline

logger = logging.getLogger(__name__)

# HTTP status for each failure kind
STATUS_BY_KIND = {
    "failed_to_initiate_search": 503,
    "search_timed_out": 503,
    "invalid_api_version": 503,
    "authentication_failed": 502,
    "transport_error": 502,
    "io_error": 500,
    "cancelled": 503,
}


def problem(status: int, title: str, detail: str = "", kind: str = ""):
    """JSON problem response."""
    body = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "detail": detail,
        "kind": kind,
    }
    return jsonify(body), status


def error_response(error: SlideshowError):
    status = STATUS_BY_KIND.get(error.kind, 500)
    return problem(status, "Failed to download photos", error.message, error.kind)


def create_app(
    config: SlideshowConfig,
    pipeline: SlideshowPipeline,
    catalog: MediaCatalog,
    shutdown_event: Optional[threading.Event] = None
) -> Flask:
    """
    Create the Flask application.

    Args:
        config: Slideshow configuration.
        pipeline: Download pipeline run by POST /api/download-photos.
        catalog: Catalog of the photo directory.
        shutdown_event: Set on shutdown; cancels requests in flight.

    Returns:
        Flask application.
    """
    app = Flask(__name__)

    # Store references
    app.slideshow_config = config
    app.pipeline = pipeline
    app.catalog = catalog
    app.shutdown_event = shutdown_event or threading.Event()

    def request_token() -> CancellationToken:
        return CancellationToken(event=app.shutdown_event)

    photo_route = config.web.photo_route.rstrip('/')

    @app.route('/api/slides')
    def api_slides():
        """Slides currently in the photo directory."""
        slides = app.catalog.list_slides(request_token())
        return jsonify([s.to_dict() for s in slides])

    @app.route('/api/download-photos', methods=['POST'])
    def api_download_photos():
        """Download a fresh random set of photos."""
        try:
            result = app.pipeline.run(request_token())
        except AuthenticationFailed as e:
            logger.error(f"NAS login failed: {e}")
            return error_response(e)
        except OperationCancelled as e:
            logger.warning("Photo download cancelled")
            return error_response(e)

        if not result.ok:
            return error_response(result.error)
        return jsonify([s.to_dict() for s in result.value])

    @app.route('/api/photos/delete', methods=['POST'])
    def api_delete_photos():
        """Delete photos by name. Body is a JSON list of names."""
        names = request.get_json(silent=True)
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            return problem(400, "Bad request", "Expected a JSON list of photo names")
        if not names:
            return problem(400, "Bad request", "No photo names provided")

        result = app.catalog.delete_photos(names, request_token())
        if len(result.unmatched) == len(names):
            return problem(404, "Not found", "None of the photos were found")

        return jsonify({
            "unmatched_photos": result.unmatched,
            "deleted": result.deleted,
        })

    @app.route(f'{photo_route}/<path:filename>')
    def serve_photo(filename: str):
        """Serve a downloaded photo."""
        return send_from_directory(str(app.catalog.root.resolve()), filename)

    return app
