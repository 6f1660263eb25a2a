"""Mutation helpers shared by the controllers.

Two strategies are used:

- `apply_optimistic`: patch the local cache first, send, and restore the
  snapshot if the request fails. Only voting uses this.
- `confirm_then_refresh`: send first and only touch local state once the server
  agreed, by re-fetching rather than predicting. If the server reports a
  stale-state conflict the list is re-fetched anyway so the cache reconciles.

`InFlight` serializes mutations per entity id. A second mutation on a busy
entity is rejected instead of queued, the way a disabled button would.
`BestEffort` runs the "mark viewed" signals; no failure of theirs surfaces.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, Set, TypeVar

from .errors import EntityBusyError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S")


class InFlight:
    """Ids of entities with a request currently outstanding."""

    def __init__(self) -> None:
        self._busy: Set[str] = set()

    def is_busy(self, entity_id: str) -> bool:
        return entity_id in self._busy

    @contextmanager
    def hold(self, entity_id: str) -> Iterator[None]:
        if entity_id in self._busy:
            raise EntityBusyError(entity_id)
        self._busy.add(entity_id)
        try:
            yield
        finally:
            self._busy.discard(entity_id)


async def apply_optimistic(
    apply: Callable[[], S],
    revert: Callable[[S], None],
    send: Callable[[], Awaitable[T]],
) -> T:
    """Run `apply` (returning a snapshot), then `send`; on any failure `revert(snapshot)`."""
    snapshot = apply()
    try:
        return await send()
    except Exception:
        revert(snapshot)
        raise


async def confirm_then_refresh(
    send: Callable[[], Awaitable[T]],
    refresh: Callable[[], Awaitable[object]],
) -> T:
    """Send, then re-fetch the authoritative state.

    On a stale-state rejection the refresh still runs and the original error is
    re-raised. A failing reconcile is logged, never masks the original error.
    """
    try:
        result = await send()
    except RemoteError as exc:
        if exc.is_stale_state:
            try:
                await refresh()
            except RemoteError as refresh_exc:
                logger.warning("Reconcile after stale-state error failed: %s", refresh_exc)
        raise
    await refresh()
    return result


class BestEffort:
    """Fire-and-forget signals whose failure is logged and otherwise ignored."""

    def __init__(self) -> None:
        self._tasks: Set["asyncio.Task[None]"] = set()

    def fire(self, label: str, send: Callable[[], Awaitable[None]]) -> "asyncio.Task[None]":
        task = asyncio.ensure_future(self._run(label, send))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _run(label: str, send: Callable[[], Awaitable[None]]) -> None:
        try:
            await send()
        except RemoteError as exc:
            logger.warning("%s failed (ignored): %s", label, exc)
        except Exception:
            logger.exception("%s failed unexpectedly (ignored)", label)

    async def drain(self) -> None:
        """Wait for every pending signal; used by tests and on shutdown."""
        pending = [t for t in self._tasks if not t.done()]
        while pending:
            await asyncio.gather(*pending)
            pending = [t for t in self._tasks if not t.done()]
