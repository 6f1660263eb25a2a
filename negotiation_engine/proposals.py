"""Proposal workflow: listing a job's proposals and the owner's decisions on them.

Every mutation here is confirm-then-refresh. Accepting one proposal can move
the job to `in_progress` and touch sibling proposals, so after the server
agrees the whole list is re-fetched instead of patched locally.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple

from .cache import JobCache
from .errors import DraftValidationError, InvalidTransitionError, RemoteError, UnknownEntityError
from .models import HiringChoice, Job, Proposal, ProposalDraft, ProposalStatus
from .mutations import BestEffort, InFlight, confirm_then_refresh
from .permissions import (
    Viewer,
    can_decide_proposal,
    can_submit_proposal,
    can_withdraw_proposal,
    is_client,
    require,
)
from .remote.base import NegotiationContract
from .transitions import ensure_transition

logger = logging.getLogger(__name__)

JobChanged = Callable[[str], Awaitable[object]]


class ProposalController:
    """Client-side view of the proposals on the viewer's jobs."""

    def __init__(
        self,
        contract: NegotiationContract,
        viewer: Viewer,
        on_job_changed: Optional[JobChanged] = None,
    ) -> None:
        self._contract = contract
        self.viewer = viewer
        self._on_job_changed = on_job_changed
        self._jobs: Dict[str, Job] = {}
        self._cache: JobCache[Proposal] = JobCache()
        self._inflight = InFlight()
        self.signals = BestEffort()

    # ----- cache -----

    def track_job(self, job: Job) -> None:
        """Record the latest copy of a job; permission checks read it."""
        self._jobs[job.id] = job

    def cached(self, job_id: str) -> Optional[List[Proposal]]:
        return self._cache.get(job_id)

    def is_loaded(self, job_id: str) -> bool:
        return self._cache.is_loaded(job_id)

    def is_busy(self, proposal_id: str) -> bool:
        return self._inflight.is_busy(proposal_id)

    def forget(self, job_id: str) -> None:
        """Drop the job's list; responses still in flight for it are discarded."""
        self._cache.forget(job_id)

    def _lookup(self, proposal_id: str, job_id: str) -> Tuple[Job, Proposal]:
        job = self._jobs.get(job_id)
        proposals = self._cache.get(job_id)
        if job is None or proposals is None:
            raise UnknownEntityError(f"proposals for job {job_id} are not loaded")
        for proposal in proposals:
            if proposal.id == proposal_id:
                return job, proposal
        raise UnknownEntityError(f"proposal {proposal_id} not found on job {job_id}")

    def _has_accepted(self, job_id: str) -> bool:
        return any(p.status == ProposalStatus.accepted for p in self._cache.get(job_id) or [])

    def available_actions(self, proposal_id: str, job_id: str) -> FrozenSet[str]:
        """Controls a UI should offer for this proposal right now."""
        job, proposal = self._lookup(proposal_id, job_id)
        if self.is_busy(proposal_id):
            return frozenset()
        actions = set()
        if can_decide_proposal(job, proposal, self.viewer):
            actions.add("reject")
            if proposal.status == ProposalStatus.pending:
                actions.add("shortlist")
                if not proposal.contact_revealed:
                    actions.add("reveal_contact")
            if not self._has_accepted(job_id):
                actions.add("accept")
        if can_withdraw_proposal(proposal, self.viewer):
            actions.add("withdraw")
        return frozenset(actions)

    # ----- reads -----

    async def list_proposals(self, job: Job) -> List[Proposal]:
        """Proposals for `job` in server order, fetched on first call only.

        Concurrent first calls share one fetch. The first load also sends a
        best-effort "proposals viewed" signal.
        """
        self.track_job(job)
        cached = self._cache.get(job.id)
        if cached is not None:
            logger.debug("Proposals for job %s served from cache", job.id)
            return cached
        return await self._cache.load(job.id, lambda: self._first_load(job))

    async def _first_load(self, job: Job) -> List[Proposal]:
        proposals = await self.refresh(job.id)
        if is_client(job, self.viewer):
            self.signals.fire(
                f"mark proposals viewed for job {job.id}",
                lambda: self._contract.mark_proposals_viewed(job.id),
            )
        return proposals

    async def refresh(self, job_id: str) -> List[Proposal]:
        """Re-fetch the job's list from the server and replace the cache."""
        ticket = self._cache.begin_fetch(job_id)
        fresh = await self._contract.list_proposals(job_id)
        fresh = _keep_revealed(self._cache.get(job_id) or [], fresh)
        if not self._cache.put(job_id, fresh, ticket=ticket):
            return self._cache.get(job_id) or list(fresh)
        return list(fresh)

    # ----- job owner -----

    async def accept(self, proposal_id: str, job_id: str) -> List[Proposal]:
        """Accept an open proposal, then re-fetch the proposals and the job list.

        Only one proposal per job can be accepted; a second accept is refused
        until a refresh shows the first one gone.
        """
        job, proposal = self._lookup(proposal_id, job_id)
        require(is_client(job, self.viewer), "accept proposals on this job")
        ensure_transition("proposal", proposal.status, ProposalStatus.accepted)
        if self._has_accepted(job_id):
            raise InvalidTransitionError(
                "proposal", proposal.status.value, "accept while another proposal is accepted"
            )
        with self._inflight.hold(proposal_id):
            await confirm_then_refresh(
                lambda: self._contract.accept_proposal(proposal_id),
                lambda: self.refresh(job_id),
            )
        logger.info("Accepted proposal %s on job %s", proposal_id, job_id)
        await self._job_changed(job_id)
        return self._cache.get(job_id) or []

    async def reject(self, proposal_id: str, job_id: str) -> List[Proposal]:
        job, proposal = self._lookup(proposal_id, job_id)
        require(is_client(job, self.viewer), "reject proposals on this job")
        ensure_transition("proposal", proposal.status, ProposalStatus.rejected)
        with self._inflight.hold(proposal_id):
            await confirm_then_refresh(
                lambda: self._contract.reject_proposal(proposal_id),
                lambda: self.refresh(job_id),
            )
        logger.info("Rejected proposal %s on job %s", proposal_id, job_id)
        return self._cache.get(job_id) or []

    async def shortlist(
        self,
        proposal_id: str,
        job_id: str,
        hiring_choice: HiringChoice = HiringChoice.homico,
    ) -> List[Proposal]:
        """Shortlist a pending proposal.

        `direct` hiring also exposes the pro's contact; `homico` keeps the deal
        on the platform.
        """
        job, proposal = self._lookup(proposal_id, job_id)
        require(is_client(job, self.viewer), "shortlist proposals on this job")
        ensure_transition("proposal", proposal.status, ProposalStatus.shortlisted, action="shortlist")
        with self._inflight.hold(proposal_id):
            await confirm_then_refresh(
                lambda: self._contract.shortlist_proposal(proposal_id, hiring_choice.value),
                lambda: self.refresh(job_id),
            )
        logger.info("Shortlisted proposal %s on job %s (%s)", proposal_id, job_id, hiring_choice.value)
        return self._cache.get(job_id) or []

    async def reveal_contact(self, proposal_id: str, job_id: str) -> List[Proposal]:
        """Expose the pro's contact details on this proposal.

        Revealing twice is a no-op. Proposals that were rejected or withdrawn
        cannot be revealed.
        """
        job, proposal = self._lookup(proposal_id, job_id)
        require(is_client(job, self.viewer), "reveal contacts on this job")
        if proposal.status in (ProposalStatus.rejected, ProposalStatus.withdrawn):
            raise InvalidTransitionError("proposal", proposal.status.value, "reveal contact")
        if proposal.contact_revealed:
            logger.debug("Contact on proposal %s already revealed", proposal_id)
            return self._cache.get(job_id) or []
        if proposal.status != ProposalStatus.pending:
            raise InvalidTransitionError("proposal", proposal.status.value, "reveal contact")
        with self._inflight.hold(proposal_id):
            await confirm_then_refresh(
                lambda: self._contract.reveal_contact(proposal_id),
                lambda: self.refresh(job_id),
            )
        logger.info("Revealed contact on proposal %s", proposal_id)
        return self._cache.get(job_id) or []

    # ----- professional -----

    async def submit(self, job: Job, draft: ProposalDraft) -> Proposal:
        """Send a new proposal against an open job."""
        require(can_submit_proposal(job, self.viewer), "submit a proposal on this job")
        problems = draft.problems()
        if problems:
            raise DraftValidationError(problems)
        with self._inflight.hold(f"{job.id}:new-proposal"):
            proposal = await self._contract.submit_proposal(job.id, draft.to_payload())
        if not proposal.job_id:
            proposal = proposal.model_copy(update={"job_id": job.id})
        self._cache.update(job.id, lambda items: items + [proposal])
        logger.info("Submitted proposal %s on job %s", proposal.id, job.id)
        await self._job_changed(job.id)
        return proposal

    async def withdraw(self, proposal: Proposal) -> Proposal:
        """Withdraw the viewer's own pending proposal."""
        require(proposal.pro_profile_id == self.viewer.user_id, "withdraw this proposal")
        ensure_transition("proposal", proposal.status, ProposalStatus.withdrawn)
        with self._inflight.hold(proposal.id):
            await self._contract.withdraw_proposal(proposal.id)
        withdrawn = proposal.model_copy(update={"status": ProposalStatus.withdrawn})
        if proposal.job_id:
            self._cache.update(
                proposal.job_id,
                lambda items: [withdrawn if p.id == proposal.id else p for p in items],
            )
        logger.info("Withdrew proposal %s", proposal.id)
        return withdrawn

    async def _job_changed(self, job_id: str) -> None:
        if self._on_job_changed is None:
            return
        try:
            await self._on_job_changed(job_id)
        except RemoteError as exc:
            # The mutation itself succeeded; badges catch up on the next refresh.
            logger.warning("Job list refresh after change to %s failed: %s", job_id, exc)


def _keep_revealed(previous: List[Proposal], fresh: List[Proposal]) -> List[Proposal]:
    """Never let a refresh flip `contact_revealed` back to false."""
    revealed = {p.id for p in previous if p.contact_revealed}
    out: List[Proposal] = []
    for proposal in fresh:
        if proposal.id in revealed and not proposal.contact_revealed:
            logger.warning("Server reported proposal %s as unrevealed; keeping it revealed", proposal.id)
            proposal = proposal.model_copy(update={"contact_revealed": True})
        out.append(proposal)
    return out
