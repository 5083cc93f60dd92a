# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
NAS session handling.
Logs in before a protected operation and always logs out afterwards.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from .api_client import API_AUTH, ApiRequest, Session, SynologyApiClient
from .api_info import ApiInfoProvider
from .cancellation import CancellationToken
from .errors import AuthenticationFailed, TransportError

logger = logging.getLogger(__name__)

SESSION_NAME = "FileStation"


class SessionAuthenticator:
    """Acquires and releases NAS sessions for configured credentials."""

    def __init__(
        self,
        client: SynologyApiClient,
        api_info: ApiInfoProvider,
        account: str,
        password: str
    ):
        self._client = client
        self._api_info = api_info
        self._account = account
        self._password = password

    def acquire(self, cancel: CancellationToken) -> Session:
        """
        Log in to the NAS.

        Raises:
            AuthenticationFailed: If login fails or returns no session token.
            OperationCancelled: If cancelled while logging in.
        """
        try:
            version = self._api_info.get_capabilities(cancel).max_version("login")
            request = ApiRequest(
                api=API_AUTH,
                method="login",
                version=version,
                params={
                    "account": self._account,
                    "passwd": self._password,
                    "session": SESSION_NAME,
                    "format": "sid",
                    "enable_syno_token": "yes",
                },
            )
            logger.debug("Authenticating with NAS")
            payload = self._client.get_json(self._client.url_for(request), cancel)
        except TransportError as e:
            logger.error(f"Failed to login to NAS: {e}")
            raise AuthenticationFailed(f"Login request failed: {e.message}") from e

        data = payload.get("data") or {}
        syno_token = data.get("synotoken") or ""
        sid = data.get("sid") or ""
        if not syno_token.strip():
            code = (payload.get("error") or {}).get("code")
            logger.error(f"Failed to login to NAS (error code {code})")
            raise AuthenticationFailed("SynoToken is null or empty")

        return Session(sid=sid, syno_token=syno_token)

    def release(self, session: Session) -> None:
        """Log out. Never raises; failures are only logged."""
        # Logout must still go out when the operation itself was cancelled
        cancel = CancellationToken.none()
        try:
            version = self._api_info.get_capabilities(cancel).max_version("logout")
            request = ApiRequest(
                api=API_AUTH,
                method="logout",
                version=version,
                params={"session": SESSION_NAME, "_sid": session.sid},
            )
            logger.debug("Logging out from NAS")
            self._client.get_json(self._client.url_for(request), cancel)
        except Exception as e:
            logger.warning(f"Failed to logout from NAS: {e}")

    @contextmanager
    def session(self, cancel: CancellationToken) -> Iterator[Session]:
        """Scoped session: released exactly once on every exit path."""
        session = self.acquire(cancel)
        try:
            yield session
        finally:
            self.release(session)
