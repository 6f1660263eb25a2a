"""Poll workflow: create, vote, approve, close and delete decision polls.

Voting is the only optimistic operation in the engine: the client's choice is
written to the cache immediately and restored if the server refuses it.
Approve, close and delete wait for the server before patching the cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, List, Optional, Tuple

from .cache import JobCache
from .errors import DraftValidationError, InvalidTransitionError, UnknownEntityError
from .models import Job, Poll, PollDraft, PollOption, PollStatus
from .mutations import BestEffort, InFlight, apply_optimistic
from .permissions import (
    Viewer,
    can_approve,
    can_close_poll,
    can_create_poll,
    can_delete_poll,
    can_vote,
    is_client,
    is_poll_creator,
    require,
)
from .remote.base import NegotiationContract
from .transitions import ensure_transition

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"})
ALLOWED_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp", ".gif"})


def is_allowed_image(filename: str, content_type: Optional[str] = None) -> bool:
    """Check an option image before it is uploaded."""
    if content_type:
        return content_type.lower() in ALLOWED_IMAGE_TYPES
    return PurePosixPath(filename or "").suffix.lower() in ALLOWED_IMAGE_EXTENSIONS


class OptionState(str, Enum):
    idle = "idle"
    selected = "selected"  # the client's vote, not yet binding
    approved_answer = "approved_answer"


@dataclass(frozen=True)
class OptionView:
    option: PollOption
    state: OptionState
    selectable: bool


def option_views(job: Job, poll: Poll, viewer: Viewer, busy: bool = False) -> List[OptionView]:
    """Per-option display facts for `viewer`.

    An option is selectable only on an active poll, for the job's client, with
    no request in flight for the poll.
    """
    selectable = poll.status == PollStatus.active and is_client(job, viewer) and not busy
    views: List[OptionView] = []
    for opt in poll.options:
        if poll.status == PollStatus.approved and opt.id == poll.selected_option:
            state = OptionState.approved_answer
        elif opt.id == poll.client_vote:
            state = OptionState.selected
        else:
            state = OptionState.idle
        views.append(OptionView(option=opt, state=state, selectable=selectable))
    return views


class PollController:
    """Lifecycle of the polls on the viewer's jobs."""

    def __init__(self, contract: NegotiationContract, viewer: Viewer) -> None:
        self._contract = contract
        self.viewer = viewer
        self._jobs: Dict[str, Job] = {}
        self._cache: JobCache[Poll] = JobCache()
        self._inflight = InFlight()
        self.signals = BestEffort()

    # ----- cache -----

    def track_job(self, job: Job) -> None:
        self._jobs[job.id] = job

    def cached(self, job_id: str) -> Optional[List[Poll]]:
        return self._cache.get(job_id)

    def is_loaded(self, job_id: str) -> bool:
        return self._cache.is_loaded(job_id)

    def is_busy(self, poll_id: str) -> bool:
        return self._inflight.is_busy(poll_id)

    def forget(self, job_id: str) -> None:
        self._cache.forget(job_id)

    def _job(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise UnknownEntityError(f"job {job_id} is not loaded")
        return job

    def _lookup(self, poll_id: str) -> Tuple[Job, Poll]:
        for job_id in self._cache.job_ids():
            for poll in self._cache.get(job_id) or []:
                if poll.id == poll_id:
                    return self._job(job_id), poll
        raise UnknownEntityError(f"poll {poll_id} is not loaded")

    def _patch(self, job_id: str, poll_id: str, **changes) -> Optional[Poll]:
        patched: List[Poll] = []

        def apply(polls: List[Poll]) -> List[Poll]:
            out = []
            for poll in polls:
                if poll.id == poll_id:
                    poll = poll.model_copy(update=changes)
                    patched.append(poll)
                out.append(poll)
            return out

        self._cache.update(job_id, apply)
        return patched[0] if patched else None

    def poll(self, poll_id: str) -> Poll:
        return self._lookup(poll_id)[1]

    def option_views(self, poll_id: str) -> List[OptionView]:
        job, poll = self._lookup(poll_id)
        return option_views(job, poll, self.viewer, busy=self.is_busy(poll_id))

    def available_actions(self, poll_id: str) -> FrozenSet[str]:
        """Controls a UI should offer for this poll right now."""
        job, poll = self._lookup(poll_id)
        if self.is_busy(poll_id):
            return frozenset()
        actions = set()
        if can_vote(job, poll, self.viewer):
            actions.add("vote")
        if can_approve(job, poll, self.viewer):
            actions.add("approve")
        if can_close_poll(poll, self.viewer):
            actions.add("close")
        if can_delete_poll(poll, self.viewer):
            actions.add("delete")
        return frozenset(actions)

    # ----- reads -----

    async def list_polls(self, job: Job) -> List[Poll]:
        """Polls for `job`, fetched on first call only.

        Concurrent first calls share one fetch. The first load also sends a
        best-effort "polls viewed" signal; its outcome never affects the
        returned list.
        """
        self.track_job(job)
        cached = self._cache.get(job.id)
        if cached is not None:
            logger.debug("Polls for job %s served from cache", job.id)
            return cached
        return await self._cache.load(job.id, lambda: self._first_load(job))

    async def _first_load(self, job: Job) -> List[Poll]:
        polls = await self.refresh(job.id)
        self.signals.fire(
            f"mark polls viewed for job {job.id}",
            lambda: self._contract.mark_polls_viewed(job.id),
        )
        return polls

    async def refresh(self, job_id: str) -> List[Poll]:
        ticket = self._cache.begin_fetch(job_id)
        polls = await self._contract.list_polls(job_id)
        if not self._cache.put(job_id, polls, ticket=ticket):
            return self._cache.get(job_id) or list(polls)
        return list(polls)

    # ----- professional -----

    async def create_poll(self, job_id: str, draft: PollDraft) -> Poll:
        """Create a poll and put the server's copy at the top of the list."""
        job = self._job(job_id)
        require(can_create_poll(job, self.viewer), "create polls on this job")
        problems = draft.problems()
        if problems:
            raise DraftValidationError(problems)
        with self._inflight.hold(f"{job_id}:new-poll"):
            poll = await self._contract.create_poll(job_id, draft.to_payload())
        if not poll.job_id:
            poll = poll.model_copy(update={"job_id": job_id})
        # Not loaded yet: the first expansion fetches it along with the rest.
        self._cache.update(job_id, lambda polls: [poll] + polls)
        logger.info("Created poll %s on job %s with %d options", poll.id, job_id, len(poll.options))
        return poll

    async def close(self, poll_id: str) -> Poll:
        job, poll = self._lookup(poll_id)
        require(is_poll_creator(poll, self.viewer), "close this poll")
        ensure_transition("poll", poll.status, PollStatus.closed, action="close")
        with self._inflight.hold(poll_id):
            await self._contract.close_poll(poll_id)
        closed = self._patch(
            job.id, poll_id, status=PollStatus.closed, closed_at=datetime.now(timezone.utc)
        )
        logger.info("Closed poll %s", poll_id)
        return closed or poll.model_copy(update={"status": PollStatus.closed})

    async def delete(self, poll_id: str) -> None:
        job, poll = self._lookup(poll_id)
        require(is_poll_creator(poll, self.viewer), "delete this poll")
        with self._inflight.hold(poll_id):
            await self._contract.delete_poll(poll_id)
        self._cache.update(job.id, lambda polls: [p for p in polls if p.id != poll_id])
        logger.info("Deleted poll %s", poll_id)

    # ----- client -----

    async def vote(self, poll_id: str, option_id: str) -> Poll:
        """Record the client's choice, optimistically."""
        job, poll = self._lookup(poll_id)
        require(is_client(job, self.viewer), "vote on this poll")
        if poll.status != PollStatus.active:
            raise InvalidTransitionError("poll", poll.status.value, "vote")
        if option_id not in poll.option_ids:
            raise UnknownEntityError(f"option {option_id} is not part of poll {poll_id}")

        def apply() -> Optional[str]:
            previous = poll.client_vote
            self._patch(job.id, poll_id, client_vote=option_id)
            return previous

        def revert(previous: Optional[str]) -> None:
            logger.warning("Vote on poll %s failed; restoring previous choice", poll_id)
            self._patch(job.id, poll_id, client_vote=previous)

        with self._inflight.hold(poll_id):
            await apply_optimistic(apply, revert, lambda: self._contract.vote(poll_id, option_id))
        logger.info("Voted %s on poll %s", option_id, poll_id)
        try:
            return self.poll(poll_id)
        except UnknownEntityError:
            return poll.model_copy(update={"client_vote": option_id})

    async def approve(self, poll_id: str, option_id: Optional[str] = None) -> Poll:
        """Make the client's voted option the final answer.

        `option_id` defaults to the current vote and must match it.
        """
        job, poll = self._lookup(poll_id)
        require(is_client(job, self.viewer), "approve this poll")
        ensure_transition("poll", poll.status, PollStatus.approved, action="approve")
        if poll.client_vote is None:
            raise InvalidTransitionError("poll", poll.status.value, "approve without a vote")
        option_id = option_id or poll.client_vote
        if option_id != poll.client_vote:
            raise InvalidTransitionError("poll", poll.status.value, "approve an option other than the vote")
        with self._inflight.hold(poll_id):
            await self._contract.approve(poll_id, option_id)
        approved = self._patch(
            job.id, poll_id, status=PollStatus.approved, selected_option=option_id, client_vote=option_id
        )
        logger.info("Approved option %s on poll %s", option_id, poll_id)
        return approved or poll.model_copy(
            update={"status": PollStatus.approved, "selected_option": option_id}
        )
