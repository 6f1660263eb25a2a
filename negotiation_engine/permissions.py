"""Role resolution and mutation rights.

The rules are evaluated twice: by a UI deciding which controls to show, and by
the controllers right before a request goes out. Both call into this module so
the two checks cannot drift apart.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from .errors import PermissionDeniedError
from .models import Job, JobStatus, Poll, PollStatus, Proposal, ProposalStatus


class Role(str, Enum):
    client = "client"
    pro = "pro"


class Viewer(BaseModel):
    """The signed-in user, passed explicitly into every controller."""

    user_id: str
    role: Role = Role.client


def is_client(job: Job, viewer: Viewer) -> bool:
    """The viewer owns the job."""
    return job.client_id == viewer.user_id


def is_pro(job: Job, viewer: Viewer) -> bool:
    """The viewer is a professional with standing on the job.

    Once a pro is hired only that pro has standing; before that any pro other
    than the job's own client does.
    """
    if viewer.role != Role.pro or is_client(job, viewer):
        return False
    hired = job.hired_pro_id
    return hired is None or hired == viewer.user_id


def is_poll_creator(poll: Poll, viewer: Viewer) -> bool:
    return poll.creator_id == viewer.user_id


# ----- proposals -----


def can_decide_proposal(job: Job, proposal: Proposal, viewer: Viewer) -> bool:
    """Accept and reject need the job owner and a proposal still under consideration."""
    return is_client(job, viewer) and proposal.status in (ProposalStatus.pending, ProposalStatus.shortlisted)


def can_submit_proposal(job: Job, viewer: Viewer) -> bool:
    return viewer.role == Role.pro and not is_client(job, viewer) and job.status == JobStatus.open


def can_withdraw_proposal(proposal: Proposal, viewer: Viewer) -> bool:
    return proposal.pro_profile_id == viewer.user_id and proposal.status == ProposalStatus.pending


# ----- polls -----


def can_create_poll(job: Job, viewer: Viewer) -> bool:
    return is_pro(job, viewer)


def can_vote(job: Job, poll: Poll, viewer: Viewer) -> bool:
    return is_client(job, viewer) and poll.status == PollStatus.active


def can_approve(job: Job, poll: Poll, viewer: Viewer) -> bool:
    """Approval needs a vote on record; the UI hides the button until then."""
    return can_vote(job, poll, viewer) and poll.client_vote is not None


def can_close_poll(poll: Poll, viewer: Viewer) -> bool:
    return is_poll_creator(poll, viewer) and poll.status == PollStatus.active


def can_delete_poll(poll: Poll, viewer: Viewer) -> bool:
    return is_poll_creator(poll, viewer)


def require(allowed: bool, action: str) -> None:
    """Raise `PermissionDeniedError` naming `action` when `allowed` is false."""
    if not allowed:
        raise PermissionDeniedError(f"not allowed to {action}")
