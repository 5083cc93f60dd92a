# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
API capability discovery.
Fetches the NAS's advertised API versions once and keeps them for the
lifetime of the provider.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from .api_client import (
    API_AUTH, API_DOWNLOAD, API_INFO, API_SEARCH, ApiRequest, SynologyApiClient,
)
from .cancellation import CancellationToken
from .errors import TransportError

logger = logging.getLogger(__name__)

# Logical operation -> Synology API that serves it
OPERATION_APIS = {
    "login": API_AUTH,
    "logout": API_AUTH,
    "search_start": API_SEARCH,
    "search_list": API_SEARCH,
    "search_clean": API_SEARCH,
    "download": API_DOWNLOAD,
}


@dataclass(frozen=True)
class ApiCapabilities:
    """Maximum supported version per Synology API."""
    versions: Dict[str, int] = field(default_factory=dict)

    def max_version(self, operation: str) -> int:
        """
        Version to use for a logical operation.

        Args:
            operation: One of the keys of OPERATION_APIS.

        Returns:
            The advertised max version, or 0 if unknown.
        """
        api = OPERATION_APIS.get(operation)
        if api is None:
            return 0
        return self.versions.get(api, 0)

    @classmethod
    def from_response(cls, data: dict) -> "ApiCapabilities":
        versions = {}
        for api, info in data.items():
            try:
                versions[api] = int(info.get("maxVersion", 0))
            except (AttributeError, TypeError, ValueError):
                versions[api] = 0
        return cls(versions=versions)


class ApiInfoProvider:
    """Memoizes the capability descriptor after the first successful fetch."""

    def __init__(self, client: SynologyApiClient):
        self._client = client
        self._lock = threading.Lock()
        self._capabilities: Optional[ApiCapabilities] = None

    def get_capabilities(self, cancel: CancellationToken) -> ApiCapabilities:
        """
        Return the cached descriptor, fetching it on first use.

        Raises:
            TransportError: If the fetch fails. Nothing is cached in that case.
        """
        cached = self._capabilities
        if cached is not None:
            return cached

        request = ApiRequest(
            api=API_INFO,
            method="query",
            version=1,
            params={"query": ",".join(sorted(set(OPERATION_APIS.values())))},
        )
        payload = self._client.get_json(self._client.url_for(request), cancel)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise TransportError("API info response contained no data")

        capabilities = ApiCapabilities.from_response(data)
        with self._lock:
            self._capabilities = capabilities
        logger.info(f"Fetched NAS API versions: {capabilities.versions}")
        return capabilities
