"""Pure client-side filtering and summaries.

Nothing in here touches the network: the job list search, the poll tabs and
the badge counts are all computed from records already in memory.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from .models import Job, JobStatus, Poll, PollStatus
from .utils import safe_count

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def matches_query(job: Job, query: str) -> bool:
    """Case-insensitive substring match over title, category, subcategory and location."""
    q = (query or "").strip().lower()
    if not q:
        return True
    fields = (job.title, job.category, job.subcategory, job.location)
    return any(q in (value or "").lower() for value in fields)


def _sort_time(job: Job) -> datetime:
    stamp = job.created_at or job.updated_at
    if stamp is None:
        return _EPOCH
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=timezone.utc)
    return stamp


def filter_jobs(
    jobs: Iterable[Job],
    query: str = "",
    status: Optional[JobStatus] = None,
) -> List[Job]:
    """Jobs matching `status` and `query`, newest first."""
    hits = [
        job for job in jobs
        if (status is None or job.status == status) and matches_query(job, query)
    ]
    return sorted(hits, key=_sort_time, reverse=True)


class PollFilter(str, Enum):
    all = "all"
    active = "active"
    approved = "approved"


def filter_polls(polls: Iterable[Poll], which: PollFilter = PollFilter.all) -> List[Poll]:
    """Polls for one tab, keeping server order."""
    if which == PollFilter.all:
        return list(polls)
    wanted = PollStatus.active if which == PollFilter.active else PollStatus.approved
    return [p for p in polls if p.status == wanted]


@dataclass(frozen=True)
class PollCounts:
    total: int = 0
    active: int = 0
    approved: int = 0


def poll_counts(polls: Iterable[Poll]) -> PollCounts:
    polls = list(polls)
    return PollCounts(
        total=len(polls),
        active=sum(1 for p in polls if p.status == PollStatus.active),
        approved=sum(1 for p in polls if p.status == PollStatus.approved),
    )


@dataclass(frozen=True)
class JobBadges:
    """What the job card shows. Proposal numbers always come from the job record."""

    proposal_count: int
    view_count: int
    polls: Optional[PollCounts] = None


def job_badges(job: Job, polls: Optional[Iterable[Poll]] = None) -> JobBadges:
    return JobBadges(
        proposal_count=safe_count(job.proposal_count),
        view_count=safe_count(job.view_count),
        polls=poll_counts(polls) if polls is not None else None,
    )
