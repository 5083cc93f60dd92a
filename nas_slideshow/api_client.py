# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Synology Web API transport.
Builds request URLs and performs authenticated HTTP calls against the NAS.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from .cancellation import CancellationToken
from .errors import TransportError

logger = logging.getLogger(__name__)

# API names used by the slideshow
API_INFO = "SYNO.API.Info"
API_AUTH = "SYNO.API.Auth"
API_SEARCH = "SYNO.FileStation.Search"
API_DOWNLOAD = "SYNO.FileStation.Download"

ENTRY_PATH = "webapi/entry.cgi"


@dataclass
class Session:
    """An authenticated NAS session."""
    sid: str          # Session id, needed to log out
    syno_token: str   # CSRF token sent with every call

    def __repr__(self) -> str:
        return "Session(sid=***, syno_token=***)"


@dataclass
class ApiRequest:
    """A typed Synology Web API request."""
    api: str
    method: str
    version: int
    params: Dict[str, Any] = field(default_factory=dict)
    session: Optional[Session] = None


def _encode_param(value: Any) -> str:
    # Synology expects lists as JSON arrays and booleans in lower case
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_url(base_url: str, request: ApiRequest) -> str:
    """
    Build the full URL for an API request.

    Args:
        base_url: NAS base URL, e.g. "https://nas.local:5001".
        request: The request to encode.

    Returns:
        Fully formed request URL.
    """
    query: Dict[str, str] = {
        "api": request.api,
        "version": str(request.version),
        "method": request.method,
    }
    for key, value in request.params.items():
        if value is None:
            continue
        query[key] = _encode_param(value)
    if request.session is not None:
        query["_sid"] = request.session.sid
        query["SynoToken"] = request.session.syno_token

    return f"{base_url.rstrip('/')}/{ENTRY_PATH}?{urlencode(query)}"


class SynologyApiClient:
    """
    HTTP client for the Synology Web API.

    Wraps a requests.Session. Every call takes a CancellationToken; the
    per-request timeout is capped by the token's remaining time.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        verify_ssl: bool = True,
        http_session: Optional[requests.Session] = None
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._http = http_session or requests.Session()
        self._http.verify = verify_ssl

    def url_for(self, request: ApiRequest) -> str:
        return build_url(self.base_url, request)

    def _timeout_for(self, cancel: CancellationToken) -> float:
        remaining = cancel.remaining()
        if remaining is None:
            return self.timeout
        # A zero timeout means "no timeout" to requests
        return max(0.001, min(self.timeout, remaining))

    def get_json(
        self,
        url: str,
        cancel: CancellationToken,
        check_after: bool = True
    ) -> Dict[str, Any]:
        """
        GET a URL and decode the JSON body.

        Args:
            url: Request URL.
            cancel: Cancellation token.
            check_after: Also raise if cancelled while the call was in flight.
                Calls that create server-side state pass False so the caller
                still receives what was created.

        Raises:
            OperationCancelled: If the token is cancelled before (or, with
                check_after, after) the call.
            TransportError: On network failure, HTTP error status or invalid JSON.
        """
        cancel.raise_if_cancelled()
        try:
            response = self._http.get(url, timeout=self._timeout_for(cancel))
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise TransportError(f"Request to NAS failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from NAS: {e}") from e
        if check_after:
            cancel.raise_if_cancelled()

        if not isinstance(payload, dict):
            raise TransportError("Unexpected response shape from NAS")
        if not payload.get("success", False):
            code = (payload.get("error") or {}).get("code")
            logger.debug(f"NAS reported failure (error code {code})")
        return payload

    def get_raw(self, url: str, cancel: CancellationToken) -> requests.Response:
        """
        GET a URL and return the streamed response. Caller must close it.

        Raises:
            OperationCancelled: If the token is already cancelled.
            TransportError: On network failure or HTTP error status.
        """
        cancel.raise_if_cancelled()
        try:
            response = self._http.get(url, stream=True, timeout=self._timeout_for(cancel))
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"Download from NAS failed: {e}") from e
        return response

    def close(self) -> None:
        self._http.close()
