from conftest import CLIENT_ID, PRO_ID, make_job, make_poll, make_proposal
from negotiation_engine.models import Job, Poll, Proposal
from negotiation_engine.permissions import (
    Role,
    Viewer,
    can_approve,
    can_close_poll,
    can_create_poll,
    can_decide_proposal,
    can_delete_poll,
    can_submit_proposal,
    can_vote,
    can_withdraw_proposal,
    is_client,
    is_pro,
)
from negotiation_engine.utils import normalize_ids

CLIENT = Viewer(user_id=CLIENT_ID, role=Role.client)
PRO = Viewer(user_id=PRO_ID, role=Role.pro)
OUTSIDER = Viewer(user_id="pro-9", role=Role.pro)


def _job(**kw):
    return Job.model_validate(normalize_ids(make_job(**kw)))


def _poll(**kw):
    return Poll.model_validate(normalize_ids(make_poll("poll-1", **kw)))


def _proposal(**kw):
    return Proposal.model_validate(normalize_ids(make_proposal("p1", **kw)))


def test_roles_on_open_job():
    job = _job()
    assert is_client(job, CLIENT) and not is_pro(job, CLIENT)
    assert is_pro(job, PRO) and is_pro(job, OUTSIDER)


def test_only_hired_pro_has_standing_once_hired():
    job = _job(status="in_progress", hiredPro={"_id": PRO_ID})
    assert is_pro(job, PRO)
    assert not is_pro(job, OUTSIDER)
    assert can_create_poll(job, PRO) and not can_create_poll(job, OUTSIDER)


def test_client_cannot_act_as_pro_on_own_job():
    job = _job()
    assert not is_pro(job, Viewer(user_id=CLIENT_ID, role=Role.pro))


def test_proposal_decisions():
    job = _job()
    assert can_decide_proposal(job, _proposal(), CLIENT)
    assert not can_decide_proposal(job, _proposal(), PRO)
    assert not can_decide_proposal(job, _proposal(status="accepted"), CLIENT)


def test_submit_and_withdraw():
    assert can_submit_proposal(_job(), PRO)
    assert not can_submit_proposal(_job(status="in_progress"), PRO)
    assert not can_submit_proposal(_job(), CLIENT)
    assert can_withdraw_proposal(_proposal(), PRO)
    assert not can_withdraw_proposal(_proposal(), OUTSIDER)
    assert not can_withdraw_proposal(_proposal(status="rejected"), PRO)


def test_poll_rights():
    job = _job()
    active = _poll()
    voted = _poll(clientVote="poll-1-o1")
    closed = _poll(status="closed")

    assert can_vote(job, active, CLIENT) and not can_vote(job, active, PRO)
    assert not can_vote(job, closed, CLIENT)
    assert not can_approve(job, active, CLIENT)
    assert can_approve(job, voted, CLIENT)
    assert can_close_poll(active, PRO) and not can_close_poll(active, OUTSIDER)
    assert not can_close_poll(closed, PRO)
    assert can_delete_poll(closed, PRO) and not can_delete_poll(active, CLIENT)
