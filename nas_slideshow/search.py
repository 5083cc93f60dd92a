# Copyright (c) 2025 Luc Vincent. All Rights Reserved.
"""
Random photo search on the NAS.

Runs a FileStation search job over the configured folders, waits for it to
finish, then draws random single-item listings until enough photos are
collected. The job is always cleaned up on the NAS, including when the
search fails, times out or is cancelled.
"""

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .api_client import API_SEARCH, ApiRequest, Session, SynologyApiClient
from .api_info import ApiInfoProvider
from .cancellation import CancellationToken
from .config import SearchConfig
from .errors import (
    FailedToInitiateSearch, InvalidApiVersion, OperationCancelled, Result,
    SearchTimedOut, SlideshowError, TransportError,
)

logger = logging.getLogger(__name__)

SINGLE_ITEM_LIMIT = 1


class SearchState(Enum):
    """Lifecycle of a search job."""
    CREATED = "created"
    STARTED = "started"
    POLLING = "polling"
    FINISHED = "finished"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CLEANED = "cleaned"


@dataclass
class SearchJob:
    """A server-side search task."""
    task_id: str
    api_version: int
    state: SearchState = SearchState.CREATED
    history: List[SearchState] = field(default_factory=list)

    def advance(self, state: SearchState) -> None:
        logger.debug(f"Search task {self.task_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


@dataclass(frozen=True)
class CandidateItem:
    """A file found by the search."""
    path: str
    name: str = ""
    is_dir: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateItem":
        return cls(
            path=data.get("path") or "",
            name=data.get("name") or "",
            is_dir=bool(data.get("isdir", False)),
        )

    def has_extension(self, extensions: List[str]) -> bool:
        lowered = self.path.lower()
        return any(lowered.endswith(ext.lower()) for ext in extensions)


class PhotoSearch:
    """Samples random photos from a NAS search job."""

    def __init__(
        self,
        client: SynologyApiClient,
        api_info: ApiInfoProvider,
        config: SearchConfig,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            client: NAS API client.
            api_info: Capability provider used to pick API versions.
            config: Search settings (folders, counts, timing).
            rng: Random source for offsets. Defaults to a fresh Random.
        """
        self._client = client
        self._api_info = api_info
        self.config = config
        self._rng = rng or random.Random()
        self.last_job: Optional[SearchJob] = None  # Most recent job, for diagnostics

    def search(self, session: Session, cancel: CancellationToken) -> Result[List[CandidateItem]]:
        """
        Search for random photos.

        The search runs until the caller cancels or the configured search
        timeout passes, whichever comes first.

        Args:
            session: Active NAS session.
            cancel: Caller's cancellation token.

        Returns:
            Result with the sampled items, or a failure: InvalidApiVersion,
            FailedToInitiateSearch, SearchTimedOut or TransportError.

        Raises:
            OperationCancelled: If the caller cancelled. Job cleanup has
                already been issued by then.
        """
        search_cancel = cancel.linked(self.config.timeout_seconds)
        self.last_job = None

        try:
            api_version = self._api_info.get_capabilities(search_cancel).max_version("search_start")
            if api_version <= 0:
                logger.warning("Failed to get search API version")
                return Result.failure(InvalidApiVersion(api_version))

            with self._search_job(session, api_version, search_cancel) as job:
                total = self._wait_for_total(session, job, search_cancel)
                items = self._sample_items(session, job, total, search_cancel)
            return Result.success(items)

        except OperationCancelled:
            if cancel.cancelled:
                raise
            logger.warning(f"Search exceeded {self.config.timeout_seconds}s timeout")
            return Result.failure(SearchTimedOut.after_seconds(self.config.timeout_seconds))
        except SlideshowError as e:
            return Result.failure(e)

    @contextmanager
    def _search_job(
        self,
        session: Session,
        api_version: int,
        cancel: CancellationToken
    ) -> Iterator[SearchJob]:
        """Start a search job and clean it up on every exit path."""
        job = self._start(session, api_version, cancel)
        self.last_job = job
        try:
            yield job
        except SearchTimedOut:
            job.advance(SearchState.TIMED_OUT)
            raise
        except BaseException:
            job.advance(SearchState.FAILED)
            raise
        finally:
            self._clean(session, job)

    def _request(self, session: Session, method: str, version: int, **params) -> ApiRequest:
        return ApiRequest(
            api=API_SEARCH,
            method=method,
            version=version,
            params=params,
            session=session,
        )

    def _start(self, session: Session, api_version: int, cancel: CancellationToken) -> SearchJob:
        request = self._request(
            session, "start", api_version,
            folder_path=list(self.config.folders),
            filetype="file",
        )
        # A task created while cancellation was in flight must still be cleaned
        payload = self._client.get_json(self._client.url_for(request), cancel, check_after=False)
        task_id = (payload.get("data") or {}).get("taskid")
        if not task_id:
            logger.warning("Failed to initiate search operation")
            raise FailedToInitiateSearch()

        logger.debug(f"Started search task {task_id}")
        job = SearchJob(task_id=task_id, api_version=api_version)
        job.advance(SearchState.STARTED)
        return job

    def _list(
        self,
        session: Session,
        job: SearchJob,
        offset: int,
        cancel: CancellationToken
    ) -> Dict[str, Any]:
        request = self._request(
            session, "list", job.api_version,
            taskid=job.task_id,
            offset=offset,
            limit=SINGLE_ITEM_LIMIT,
        )
        payload = self._client.get_json(self._client.url_for(request), cancel)
        return payload.get("data") or {}

    def _wait_for_total(self, session: Session, job: SearchJob, cancel: CancellationToken) -> int:
        """
        Poll the job until it reports finished.

        Returns:
            Total number of matches (0 if the NAS did not report one).

        Raises:
            SearchTimedOut: If the job is still running after the last attempt.
        """
        job.advance(SearchState.POLLING)
        max_attempts = self.config.max_poll_attempts

        data = self._list(session, job, 0, cancel)
        attempt = 0
        while data.get("finished") is False and attempt < max_attempts:
            attempt += 1
            logger.debug(f"Search still running, retrying (attempt {attempt})")
            cancel.wait(self.config.poll_delay_seconds)
            data = self._list(session, job, 0, cancel)

        if data.get("finished") is False:
            logger.warning("Search operation timed out")
            raise SearchTimedOut.after_attempts(max_attempts)

        job.advance(SearchState.FINISHED)
        total = data.get("total")
        if total is None:
            logger.warning("Search did not report a total photo count")
            return 0
        try:
            return int(total)
        except (TypeError, ValueError) as e:
            raise TransportError(f"Invalid total in search listing: {total!r}") from e

    def _sample_items(
        self,
        session: Session,
        job: SearchJob,
        total: int,
        cancel: CancellationToken
    ) -> List[CandidateItem]:
        """Draw random items until the target count of photos is reached."""
        if total <= 0:
            logger.warning("No photos were found in the search results")
            return []

        target = self.config.sample_count
        excluded = self.config.excluded_extensions
        items: List[CandidateItem] = []

        while len(items) < target:
            cancel.raise_if_cancelled()
            offset = self._rng.randrange(total)
            files = self._list(session, job, offset, cancel).get("files") or []
            if not files:
                logger.warning(f"No file returned at offset {offset}")
                continue

            item = CandidateItem.from_dict(files[0])
            if not item.path.strip() or item.is_dir:
                continue
            if item.has_extension(excluded):
                logger.debug(f"Skipping excluded file: {item.path}")
                continue
            items.append(item)

        logger.info(f"Selected {len(items)} photos out of {total} matches")
        return items

    def _clean(self, session: Session, job: SearchJob) -> None:
        """Clean up the search task. Runs even after cancellation."""
        request = self._request(session, "clean", job.api_version, taskid=job.task_id)
        try:
            self._client.get_json(self._client.url_for(request), CancellationToken.none())
            logger.debug(f"Cleaned up search task {job.task_id}")
        except Exception as e:
            logger.warning(f"Failed to clean up search task {job.task_id}: {e}")
        finally:
            job.advance(SearchState.CLEANED)
