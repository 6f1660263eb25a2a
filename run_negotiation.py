"""CLI entry point.

Drives the negotiation workflow against a running marketplace API and prints
the resulting records as JSON.

Credentials and identity come from NEGOTIATION_* environment variables (or a
.env file): NEGOTIATION_API_URL, NEGOTIATION_ACCESS_TOKEN,
NEGOTIATION_USER_ID and NEGOTIATION_ROLE.

Examples:
    python run_negotiation.py jobs --query kitchen
    python run_negotiation.py proposals JOB_ID
    python run_negotiation.py accept JOB_ID PROPOSAL_ID
    python run_negotiation.py shortlist JOB_ID PROPOSAL_ID --choice direct
    python run_negotiation.py create-poll JOB_ID --title "Choose flooring" --option Oak --option Walnut
    python run_negotiation.py vote JOB_ID POLL_ID OPTION_ID --out poll.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from negotiation_engine.board import JobBoard
from negotiation_engine.config import load_settings
from negotiation_engine.errors import NegotiationError
from negotiation_engine.filters import PollFilter
from negotiation_engine.models import HiringChoice, JobStatus, PollDraft, PollOptionDraft
from negotiation_engine.remote.http import HttpContract

logger = logging.getLogger("negotiation_engine.cli")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Work with proposals and polls on your jobs.")
    p.add_argument("--out", type=str, default=None, help="Write JSON here instead of stdout.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log requests and cache activity.")
    sub = p.add_subparsers(dest="command", required=True)

    jobs = sub.add_parser("jobs", help="List your jobs with their badges.")
    jobs.add_argument("--query", type=str, default="", help="Substring over title/category/location.")
    jobs.add_argument("--status", choices=[s.value for s in JobStatus], default=None)

    proposals = sub.add_parser("proposals", help="List a job's proposals.")
    proposals.add_argument("job_id")

    for name in ("accept", "reject", "reveal"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} a proposal.")
        cmd.add_argument("job_id")
        cmd.add_argument("proposal_id")

    shortlist = sub.add_parser("shortlist", help="Shortlist a pending proposal.")
    shortlist.add_argument("job_id")
    shortlist.add_argument("proposal_id")
    shortlist.add_argument("--choice", choices=[c.value for c in HiringChoice], default=HiringChoice.homico.value)

    polls = sub.add_parser("polls", help="List a job's polls.")
    polls.add_argument("job_id")
    polls.add_argument("--filter", choices=[f.value for f in PollFilter], default=PollFilter.all.value)

    create = sub.add_parser("create-poll", help="Create a poll (professionals).")
    create.add_argument("job_id")
    create.add_argument("--title", required=True)
    create.add_argument("--description", default=None)
    create.add_argument("--option", action="append", default=[], help="Text option (repeatable).")
    create.add_argument("--image", action="append", default=[], help="Uploaded image URL option (repeatable).")

    vote = sub.add_parser("vote", help="Vote for a poll option (clients).")
    vote.add_argument("job_id")
    vote.add_argument("poll_id")
    vote.add_argument("option_id")

    approve = sub.add_parser("approve", help="Approve your voted option (clients).")
    approve.add_argument("job_id")
    approve.add_argument("poll_id")
    approve.add_argument("option_id", nargs="?", default=None)

    for name in ("close", "delete"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} a poll you created.")
        cmd.add_argument("job_id")
        cmd.add_argument("poll_id")

    return p.parse_args(argv)


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "to_wire"):
        return value.to_wire()
    return value


async def run(args: argparse.Namespace) -> Any:
    settings = load_settings()
    async with HttpContract.from_settings(settings) as contract:
        board = JobBoard(contract, settings.viewer())
        await board.refresh_jobs()
        cmd = args.command

        if cmd == "jobs":
            status = JobStatus(args.status) if args.status else None
            out = []
            for job in board.visible_jobs(query=args.query, status=status):
                badges = board.badges(job.id)
                out.append({**job.to_wire(), "badges": {"proposals": badges.proposal_count, "views": badges.view_count}})
            return out

        if cmd in ("proposals", "accept", "reject", "reveal", "shortlist"):
            result: Any = await board.expand_proposals(args.job_id)
            if cmd == "accept":
                result = await board.proposals.accept(args.proposal_id, args.job_id)
            elif cmd == "reject":
                result = await board.proposals.reject(args.proposal_id, args.job_id)
            elif cmd == "reveal":
                result = await board.proposals.reveal_contact(args.proposal_id, args.job_id)
            elif cmd == "shortlist":
                result = await board.proposals.shortlist(args.proposal_id, args.job_id, HiringChoice(args.choice))
            await board.drain()
            return _dump(result)

        await board.expand_polls(args.job_id)
        if cmd == "polls":
            result = board.visible_polls(args.job_id, PollFilter(args.filter))
        elif cmd == "create-poll":
            options = [PollOptionDraft(text=t) for t in args.option]
            options += [PollOptionDraft(image_url=u) for u in args.image]
            draft = PollDraft(title=args.title, description=args.description, options=options)
            result = await board.polls.create_poll(args.job_id, draft)
        elif cmd == "vote":
            result = await board.polls.vote(args.poll_id, args.option_id)
        elif cmd == "approve":
            result = await board.polls.approve(args.poll_id, args.option_id)
        elif cmd == "close":
            result = await board.polls.close(args.poll_id)
        else:
            await board.polls.delete(args.poll_id)
            result = {"deleted": args.poll_id}
        await board.drain()
        return _dump(result)


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        data = asyncio.run(run(args))
    except (NegotiationError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    text = json.dumps(data, indent=2, ensure_ascii=False)
    if args.out:
        out_path = Path(args.out).expanduser().resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        print(f"Wrote {args.command} result to: {out_path}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
