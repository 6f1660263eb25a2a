import itertools

import pytest

from negotiation_engine.errors import InvalidTransitionError
from negotiation_engine.models import PollStatus, ProposalStatus
from negotiation_engine.transitions import can_transition, ensure_transition, is_terminal


OPEN_PROPOSAL_MOVES = {
    (ProposalStatus.pending, ProposalStatus.shortlisted),
    (ProposalStatus.pending, ProposalStatus.accepted),
    (ProposalStatus.pending, ProposalStatus.rejected),
    (ProposalStatus.pending, ProposalStatus.withdrawn),
    (ProposalStatus.shortlisted, ProposalStatus.accepted),
    (ProposalStatus.shortlisted, ProposalStatus.rejected),
}


def test_proposal_moves_only_out_of_pending_or_shortlisted():
    for current, target in itertools.product(ProposalStatus, ProposalStatus):
        expected = (current, target) in OPEN_PROPOSAL_MOVES
        assert can_transition(current, target) is expected, (current, target)


def test_poll_moves_only_out_of_active():
    for current, target in itertools.product(PollStatus, PollStatus):
        expected = current == PollStatus.active and target != PollStatus.active
        assert can_transition(current, target) is expected, (current, target)


def test_terminal_states():
    open_states = {ProposalStatus.pending, ProposalStatus.shortlisted}
    assert not any(is_terminal(s) for s in open_states)
    assert all(is_terminal(s) for s in ProposalStatus if s not in open_states)
    assert not is_terminal(PollStatus.active)
    assert is_terminal(PollStatus.approved) and is_terminal(PollStatus.closed)


def test_mixed_machines_never_transition():
    assert not can_transition(ProposalStatus.pending, PollStatus.closed)


def test_ensure_transition_message():
    with pytest.raises(InvalidTransitionError) as exc:
        ensure_transition("poll", PollStatus.closed, PollStatus.approved, action="approve")
    assert exc.value.current == "closed"
    assert str(exc.value) == "poll in status 'closed': cannot approve"
