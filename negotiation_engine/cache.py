"""Per-job record caches owned by the controllers."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobCache(Generic[T]):
    """Lists of records keyed by job id.

    A list is present only once it was fetched. Every fetch takes a ticket from
    `begin_fetch()` before it goes out. When it lands, `put()` applies it only if
    no later fetch was applied first and `forget()` was not called in between.
    Refreshes for the same job can therefore complete in any order.
    """

    def __init__(self) -> None:
        self._items: Dict[str, List[T]] = {}
        self._issued: Dict[str, int] = {}
        self._floor: Dict[str, int] = {}
        self._loading: Dict[str, "asyncio.Future[List[T]]"] = {}

    def begin_fetch(self, job_id: str) -> int:
        ticket = self._issued.get(job_id, 0) + 1
        self._issued[job_id] = ticket
        return ticket

    def is_loaded(self, job_id: str) -> bool:
        return job_id in self._items

    def get(self, job_id: str) -> Optional[List[T]]:
        items = self._items.get(job_id)
        return list(items) if items is not None else None

    def put(self, job_id: str, items: List[T], ticket: Optional[int] = None) -> bool:
        if ticket is not None:
            if ticket <= self._floor.get(job_id, 0):
                logger.debug("Discarding stale result for job %s (fetch %d)", job_id, ticket)
                return False
            self._floor[job_id] = ticket
        self._items[job_id] = list(items)
        return True

    def update(self, job_id: str, fn: Callable[[List[T]], List[T]]) -> bool:
        """Replace the job's list with `fn(list)`; no-op when the job is not loaded."""
        items = self._items.get(job_id)
        if items is None:
            return False
        self._items[job_id] = fn(list(items))
        return True

    async def load(self, job_id: str, fetch: Callable[[], Awaitable[List[T]]]) -> List[T]:
        """First load of a job's list, shared by every caller while it is in flight."""
        items = self.get(job_id)
        if items is not None:
            return items
        task = self._loading.get(job_id)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._loading[job_id] = task

            def _done(finished: "asyncio.Future[List[T]]") -> None:
                if self._loading.get(job_id) is finished:
                    del self._loading[job_id]

            task.add_done_callback(_done)
        else:
            logger.debug("Joining load already in flight for job %s", job_id)
        return list(await asyncio.shield(task))

    def forget(self, job_id: str) -> None:
        self._items.pop(job_id, None)
        self._loading.pop(job_id, None)
        self._floor[job_id] = self._issued.get(job_id, 0)

    def job_ids(self) -> List[str]:
        return list(self._items)
