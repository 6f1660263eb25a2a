"""Base class for the remote negotiation contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..models import Job, Poll, Proposal


class NegotiationContract(ABC):
    """The marketplace API as seen by the negotiation workflow.

    Implementations raise `RemoteError` for any failed round trip. Methods that
    return nothing only signal success by not raising.
    """

    # ----- jobs -----

    @abstractmethod
    async def list_my_jobs(self) -> List[Job]:
        raise NotImplementedError

    # ----- proposals -----

    @abstractmethod
    async def list_proposals(self, job_id: str) -> List[Proposal]:
        raise NotImplementedError

    @abstractmethod
    async def submit_proposal(self, job_id: str, payload: Dict[str, Any]) -> Proposal:
        raise NotImplementedError

    @abstractmethod
    async def accept_proposal(self, proposal_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def reject_proposal(self, proposal_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def withdraw_proposal(self, proposal_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def shortlist_proposal(self, proposal_id: str, hiring_choice: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def reveal_contact(self, proposal_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_proposals_viewed(self, job_id: str) -> None:
        raise NotImplementedError

    # ----- polls -----

    @abstractmethod
    async def list_polls(self, job_id: str) -> List[Poll]:
        raise NotImplementedError

    @abstractmethod
    async def create_poll(self, job_id: str, payload: Dict[str, Any]) -> Poll:
        raise NotImplementedError

    @abstractmethod
    async def vote(self, poll_id: str, option_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def approve(self, poll_id: str, option_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def close_poll(self, poll_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_poll(self, poll_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_polls_viewed(self, job_id: str) -> None:
        raise NotImplementedError
