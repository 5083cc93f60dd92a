#!/usr/bin/env python3
# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Command-line interface for NAS Slideshow.
Talks to the running service through its web API.
"""

import argparse
import os
import sys
from typing import Any, List, Tuple

import requests


DEFAULT_API_URL = "http://localhost:8080"

# Downloads run the whole pipeline before answering
DOWNLOAD_TIMEOUT = 600


def get_api_url() -> str:
    """Get the API URL from environment or default."""
    return os.environ.get("NAS_SLIDESHOW_API_URL", DEFAULT_API_URL)


def api_call(endpoint: str, method: str = "GET", data: Any = None, timeout: int = 10) -> Tuple[int, Any]:
    """
    Make an API call to the NAS Slideshow web interface.

    Args:
        endpoint: API endpoint (e.g., "/api/slides").
        method: HTTP method.
        data: JSON data to send.
        timeout: Request timeout in seconds.

    Returns:
        (status code, decoded JSON body).
    """
    url = f"{get_api_url()}{endpoint}"

    try:
        if method == "GET":
            response = requests.get(url, timeout=timeout)
        elif method == "POST":
            response = requests.post(url, json=data, timeout=timeout)
        else:
            raise ValueError(f"Unknown method: {method}")

        return response.status_code, response.json()

    except requests.exceptions.ConnectionError:
        print("Error: Could not connect to NAS Slideshow service.")
        print(f"Make sure the service is running and accessible at {get_api_url()}")
        sys.exit(1)
    except (requests.exceptions.RequestException, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


def print_problem(status: int, body: Any) -> None:
    """Print an error response."""
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("title", "Unknown error")
        kind = body.get("kind")
        print(f"Error ({status}{', ' + kind if kind else ''}): {detail}")
    else:
        print(f"Error ({status})")


def print_slides(slides: List[dict]) -> None:
    if not slides:
        print("No photos downloaded.")
        return

    print(f"Slides ({len(slides)})")
    print("=" * 60)
    for slide in slides:
        date = slide.get("date_taken", "")[:19]
        location = slide.get("location", "")
        print(f"{slide.get('url', '')}  {date}  {location}".rstrip())


def cmd_slides(args):
    """List current slides."""
    status, body = api_call("/api/slides")
    if status != 200:
        print_problem(status, body)
        return 1
    print_slides(body)
    return 0


def cmd_download(args):
    """Download a fresh set of photos."""
    print("Downloading photos from the NAS...")
    status, body = api_call("/api/download-photos", "POST", timeout=DOWNLOAD_TIMEOUT)
    if status != 200:
        print_problem(status, body)
        return 1
    print_slides(body)
    return 0


def cmd_delete(args):
    """Delete photos by name."""
    status, body = api_call("/api/photos/delete", "POST", args.names)
    if status != 200:
        print_problem(status, body)
        return 1

    for name in body.get("deleted", []):
        print(f"Deleted: {name}")
    for name in body.get("unmatched_photos", []):
        print(f"Not found: {name}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="NAS Slideshow - random photos from a Synology NAS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nas-slideshow-cli slides            List current slides
  nas-slideshow-cli download          Download a fresh set of photos
  nas-slideshow-cli delete a.webp     Delete a photo

Environment:
  NAS_SLIDESHOW_API_URL    API URL (default: http://localhost:8080)
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("slides", help="List current slides")
    subparsers.add_parser("download", help="Download a fresh set of photos")

    delete = subparsers.add_parser("delete", help="Delete photos by name")
    delete.add_argument("names", nargs="+", help="Photo file names")

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "slides": cmd_slides,
        "download": cmd_download,
        "delete": cmd_delete,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
