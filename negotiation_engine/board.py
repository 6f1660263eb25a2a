"""The "My Jobs" aggregate view.

Lists the viewer's jobs and lazily expands each one into its proposals and
polls. The job list and the per-job panels are fetched independently: a panel
loads the first time it is expanded and is served from the controllers' caches
afterwards, until a confirmed mutation refreshes it.

All state changes go through `ProposalController` and `PollController`; the
board only reads from them. Badge numbers for proposals come from the job
record itself, so right after a mutation they may lag the cached list until
the job list refresh triggered by that mutation lands.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from .errors import UnknownEntityError
from .filters import JobBadges, PollFilter, filter_jobs, filter_polls, job_badges
from .models import Job, JobStatus, Poll, Proposal
from .permissions import Viewer
from .polls import PollController
from .proposals import ProposalController
from .remote.base import NegotiationContract

logger = logging.getLogger(__name__)


class JobBoard:
    """Per-viewer list of jobs with lazily expanded proposal and poll panels."""

    def __init__(self, contract: NegotiationContract, viewer: Viewer) -> None:
        self._contract = contract
        self.viewer = viewer
        self.proposals = ProposalController(contract, viewer, on_job_changed=self._on_job_changed)
        self.polls = PollController(contract, viewer)
        self._jobs: Dict[str, Job] = {}
        self._order: List[str] = []
        self.expanded_proposals: Set[str] = set()
        self.expanded_polls: Set[str] = set()

    @property
    def jobs(self) -> List[Job]:
        return [self._jobs[job_id] for job_id in self._order]

    def job(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise UnknownEntityError(f"job {job_id} is not on the board") from None

    async def refresh_jobs(self) -> List[Job]:
        """Fetch the job list. Proposal and poll panels are left as they are."""
        jobs = await self._contract.list_my_jobs()
        self._jobs = {job.id: job for job in jobs}
        self._order = [job.id for job in jobs]
        for job in jobs:
            self.proposals.track_job(job)
            self.polls.track_job(job)
        logger.info("Loaded %d jobs", len(jobs))
        return self.jobs

    async def _on_job_changed(self, job_id: str) -> None:
        logger.debug("Job %s changed; refreshing job list", job_id)
        await self.refresh_jobs()

    def visible_jobs(self, query: str = "", status: Optional[JobStatus] = None) -> List[Job]:
        return filter_jobs(self.jobs, query=query, status=status)

    # ----- panels -----

    async def expand_proposals(self, job_id: str) -> List[Proposal]:
        self.expanded_proposals.add(job_id)
        return await self.proposals.list_proposals(self.job(job_id))

    def collapse_proposals(self, job_id: str) -> None:
        """Hide the panel; the cached list stays for the next expansion."""
        self.expanded_proposals.discard(job_id)

    async def expand_polls(self, job_id: str) -> List[Poll]:
        self.expanded_polls.add(job_id)
        return await self.polls.list_polls(self.job(job_id))

    def collapse_polls(self, job_id: str) -> None:
        self.expanded_polls.discard(job_id)

    def visible_polls(self, job_id: str, which: PollFilter = PollFilter.all) -> List[Poll]:
        return filter_polls(self.polls.cached(job_id) or [], which)

    def forget(self, job_id: str) -> None:
        """Tear down a job's panels; late responses for it are dropped."""
        self.expanded_proposals.discard(job_id)
        self.expanded_polls.discard(job_id)
        self.proposals.forget(job_id)
        self.polls.forget(job_id)

    def badges(self, job_id: str) -> JobBadges:
        return job_badges(self.job(job_id), self.polls.cached(job_id))

    async def drain(self) -> None:
        """Wait for outstanding best-effort signals."""
        await self.proposals.signals.drain()
        await self.polls.signals.drain()
