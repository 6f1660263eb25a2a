"""Negotiation engine package.

Client-side core of the marketplace's job negotiation workflow:
- `models.py` defines the records exchanged with the API and the input drafts.
- `remote/` contains the API contract and its httpx implementation.
- `proposals.py` and `polls.py` are the workflow controllers.
- `board.py` composes them into the per-job "My Jobs" view.
- `contact.py` is the profile-level contact gate.
"""

from .board import JobBoard
from .contact import ContactGate, is_basic_tier
from .permissions import Role, Viewer
from .polls import PollController
from .proposals import ProposalController

__all__ = [
    "ContactGate",
    "JobBoard",
    "PollController",
    "ProposalController",
    "Role",
    "Viewer",
    "is_basic_tier",
]
