"""Status state machines for proposals and polls.

Proposals can move out of `pending` and `shortlisted`; polls only out of
`active`. Every other state is terminal for the client. Keeping the tables
here lets controllers reject a move before any request is made.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Union

from .errors import InvalidTransitionError
from .models import PollStatus, ProposalStatus

PROPOSAL_TRANSITIONS: Dict[ProposalStatus, FrozenSet[ProposalStatus]] = {
    ProposalStatus.pending: frozenset(
        {
            ProposalStatus.shortlisted,
            ProposalStatus.accepted,
            ProposalStatus.rejected,
            ProposalStatus.withdrawn,
        }
    ),
    ProposalStatus.shortlisted: frozenset({ProposalStatus.accepted, ProposalStatus.rejected}),
    ProposalStatus.accepted: frozenset(),
    ProposalStatus.rejected: frozenset(),
    ProposalStatus.withdrawn: frozenset(),
    # Reached through the server only.
    ProposalStatus.in_discussion: frozenset(),
    ProposalStatus.completed: frozenset(),
    ProposalStatus.unknown: frozenset(),
}

POLL_TRANSITIONS: Dict[PollStatus, FrozenSet[PollStatus]] = {
    PollStatus.active: frozenset({PollStatus.approved, PollStatus.closed}),
    PollStatus.approved: frozenset(),
    PollStatus.closed: frozenset(),
}

Status = Union[ProposalStatus, PollStatus]


def _table_for(status: Status) -> Dict:
    if isinstance(status, ProposalStatus):
        return PROPOSAL_TRANSITIONS
    return POLL_TRANSITIONS


def can_transition(current: Status, target: Status) -> bool:
    """True if `target` is reachable from `current` in one step."""
    if type(current) is not type(target):
        return False
    return target in _table_for(current)[current]


def is_terminal(status: Status) -> bool:
    return not _table_for(status)[status]


def ensure_transition(entity: str, current: Status, target: Status, action: Optional[str] = None) -> None:
    """Raise `InvalidTransitionError` unless `current -> target` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(entity, current.value, action or f"move to '{target.value}'")
