"""Shared fixtures: an in-memory marketplace that plays by the server's rules."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Dict, List, Set, Tuple

import pytest

from negotiation_engine.errors import RemoteError
from negotiation_engine.models import Job, Poll, Proposal
from negotiation_engine.permissions import Role, Viewer
from negotiation_engine.remote.base import NegotiationContract
from negotiation_engine.utils import normalize_ids

CLIENT_ID = "client-1"
PRO_ID = "pro-1"
OTHER_PRO_ID = "pro-2"


def make_job(job_id: str = "job-1", **overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "_id": job_id,
        "title": "Kitchen renovation",
        "category": "renovation",
        "location": "Tbilisi",
        "status": "open",
        "clientId": {"_id": CLIENT_ID, "name": "Nino"},
        "proposalCount": 0,
        "viewCount": 3,
        "createdAt": "2026-10-01T10:00:00Z",
    }
    data.update(overrides)
    return data


def make_proposal(proposal_id: str, job_id: str = "job-1", pro_id: str = PRO_ID, **overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "_id": proposal_id,
        "jobId": job_id,
        "proId": {"_id": pro_id, "name": "Giorgi", "phone": "+995 555 000 111"},
        "coverLetter": "Ten years of kitchens.",
        "proposedPrice": 4200,
        "estimatedDuration": 3,
        "estimatedDurationUnit": "weeks",
        "status": "pending",
        "contactRevealed": False,
        "createdAt": "2026-10-02T09:00:00Z",
    }
    data.update(overrides)
    return data


def make_poll(poll_id: str, job_id: str = "job-1", creator: str = PRO_ID, **overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "_id": poll_id,
        "jobId": job_id,
        "title": "Choose tiles",
        "options": [
            {"_id": f"{poll_id}-o1", "text": "White"},
            {"_id": f"{poll_id}-o2", "text": "Grey"},
        ],
        "status": "active",
        "createdBy": {"_id": creator, "name": "Giorgi"},
        "createdAt": "2026-10-03T09:00:00Z",
    }
    data.update(overrides)
    return data


def _load(model, data):
    return model.model_validate(normalize_ids(data))


class FakeContract(NegotiationContract):
    """Stores raw wire dicts, applies server-side rules, and records every call.

    `fail` maps a method name to an error raised on its next call. `gates` maps
    a method name to an event the call waits on after being recorded. List
    calls answer with the state as of the moment they were made, so a gated
    list behaves like a slow response carrying an older snapshot.
    """

    def __init__(self) -> None:
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.proposals: Dict[str, Dict[str, Any]] = {}
        self.polls: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail: Dict[str, Exception] = {}
        self.viewed: Set[Tuple[str, str]] = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self._ids = itertools.count(1)

    # helpers

    def add_job(self, **kw: Any) -> Dict[str, Any]:
        job = make_job(**kw)
        self.jobs[job["_id"]] = job
        return job

    def add_proposal(self, proposal_id: str, job_id: str = "job-1", **kw: Any) -> Dict[str, Any]:
        proposal = make_proposal(proposal_id, job_id, **kw)
        self.proposals[proposal_id] = proposal
        self.jobs[job_id]["proposalCount"] += 1
        return proposal

    def add_poll(self, poll_id: str, job_id: str = "job-1", **kw: Any) -> Dict[str, Any]:
        poll = make_poll(poll_id, job_id, **kw)
        self.polls[poll_id] = poll
        return poll

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        error = self.fail.pop(name, None)
        if error is not None:
            raise error

    # jobs

    async def list_my_jobs(self) -> List[Job]:
        jobs = [_load(Job, j) for j in self.jobs.values()]
        await self._record("list_my_jobs")
        return jobs

    # proposals

    async def list_proposals(self, job_id: str) -> List[Proposal]:
        proposals = [_load(Proposal, p) for p in self.proposals.values() if p["jobId"] == job_id]
        await self._record("list_proposals", job_id)
        return proposals

    async def submit_proposal(self, job_id: str, payload: Dict[str, Any]) -> Proposal:
        await self._record("submit_proposal", job_id, payload)
        proposal = make_proposal(f"new-{next(self._ids)}", job_id, **payload)
        self.proposals[proposal["_id"]] = proposal
        self.jobs[job_id]["proposalCount"] += 1
        return _load(Proposal, proposal)

    def _pending(self, proposal_id: str, allowed: Tuple[str, ...] = ("pending",)) -> Dict[str, Any]:
        proposal = self.proposals[proposal_id]
        if proposal["status"] not in allowed:
            raise RemoteError("Proposal is no longer pending", status_code=409)
        return proposal

    async def accept_proposal(self, proposal_id: str) -> None:
        await self._record("accept_proposal", proposal_id)
        proposal = self._pending(proposal_id, ("pending", "shortlisted"))
        proposal["status"] = "accepted"
        job = self.jobs[proposal["jobId"]]
        job["status"] = "in_progress"
        job["hiredPro"] = proposal["proId"]
        for other in self.proposals.values():
            if other["jobId"] == proposal["jobId"] and other["_id"] != proposal_id and other["status"] in ("pending", "shortlisted"):
                other["status"] = "rejected"

    async def reject_proposal(self, proposal_id: str) -> None:
        await self._record("reject_proposal", proposal_id)
        self._pending(proposal_id, ("pending", "shortlisted"))["status"] = "rejected"

    async def withdraw_proposal(self, proposal_id: str) -> None:
        await self._record("withdraw_proposal", proposal_id)
        self._pending(proposal_id)["status"] = "withdrawn"

    async def shortlist_proposal(self, proposal_id: str, hiring_choice: str) -> None:
        await self._record("shortlist_proposal", proposal_id, hiring_choice)
        proposal = self._pending(proposal_id)
        proposal["status"] = "shortlisted"
        proposal["hiringChoice"] = hiring_choice
        if hiring_choice == "direct":
            proposal["contactRevealed"] = True

    async def reveal_contact(self, proposal_id: str) -> None:
        await self._record("reveal_contact", proposal_id)
        self.proposals[proposal_id]["contactRevealed"] = True

    async def mark_proposals_viewed(self, job_id: str) -> None:
        await self._record("mark_proposals_viewed", job_id)
        self.viewed.add(("proposals", job_id))

    # polls

    async def list_polls(self, job_id: str) -> List[Poll]:
        polls = [_load(Poll, p) for p in self.polls.values() if p["jobId"] == job_id]
        await self._record("list_polls", job_id)
        return polls

    async def create_poll(self, job_id: str, payload: Dict[str, Any]) -> Poll:
        await self._record("create_poll", job_id, payload)
        poll_id = f"poll-{next(self._ids)}"
        options = [{"_id": f"{poll_id}-o{i}", **opt} for i, opt in enumerate(payload["options"], start=1)]
        poll = make_poll(poll_id, job_id, title=payload["title"], options=options)
        if "description" in payload:
            poll["description"] = payload["description"]
        self.polls[poll_id] = poll
        return _load(Poll, poll)

    def _active(self, poll_id: str) -> Dict[str, Any]:
        poll = self.polls[poll_id]
        if poll["status"] != "active":
            raise RemoteError("Poll is not active", status_code=409)
        return poll

    async def vote(self, poll_id: str, option_id: str) -> None:
        await self._record("vote", poll_id, option_id)
        self._active(poll_id)["clientVote"] = option_id

    async def approve(self, poll_id: str, option_id: str) -> None:
        await self._record("approve", poll_id, option_id)
        poll = self._active(poll_id)
        poll["status"] = "approved"
        poll["selectedOption"] = option_id

    async def close_poll(self, poll_id: str) -> None:
        await self._record("close_poll", poll_id)
        self._active(poll_id)["status"] = "closed"

    async def delete_poll(self, poll_id: str) -> None:
        await self._record("delete_poll", poll_id)
        del self.polls[poll_id]

    async def mark_polls_viewed(self, job_id: str) -> None:
        await self._record("mark_polls_viewed", job_id)
        self.viewed.add(("polls", job_id))


@pytest.fixture
def contract() -> FakeContract:
    fake = FakeContract()
    fake.add_job()
    return fake


@pytest.fixture
def job(contract: FakeContract) -> Job:
    return _load(Job, contract.jobs["job-1"])


@pytest.fixture
def client_viewer() -> Viewer:
    return Viewer(user_id=CLIENT_ID, role=Role.client)


@pytest.fixture
def pro_viewer() -> Viewer:
    return Viewer(user_id=PRO_ID, role=Role.pro)


@pytest.fixture
def other_pro_viewer() -> Viewer:
    return Viewer(user_id=OTHER_PRO_ID, role=Role.pro)



async def settle() -> None:
    """Let scheduled tasks run up to their next real wait."""
    for _ in range(5):
        await asyncio.sleep(0)
