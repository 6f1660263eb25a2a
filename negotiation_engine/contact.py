"""Profile-level contact gate.

Basic-tier professionals expose their phone number directly; elevated tiers are
reached through in-app messaging. This is independent of the per-proposal
`contactRevealed` flag handled by `ProposalController.reveal_contact`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlencode

from .models import ProProfile

logger = logging.getLogger(__name__)

BASIC_TIERS = frozenset({"", "none", "basic"})


def is_basic_tier(profile: ProProfile) -> bool:
    """True when the pro's premium tier is absent, "none" or "basic"."""
    return (profile.premium_tier or "").strip().lower() in BASIC_TIERS


class ContactKind(str, Enum):
    show_phone = "show_phone"
    message = "message"


@dataclass(frozen=True)
class ContactAction:
    kind: ContactKind
    phone: Optional[str] = None
    messages_path: Optional[str] = None


class ContactGate:
    """Per-page contact state for one professional's profile.

    `phone_revealed` lives only as long as this object; nothing is persisted and
    no request is made.
    """

    def __init__(self, profile: ProProfile) -> None:
        self.profile = profile
        self.phone_revealed = False

    @property
    def is_basic_tier(self) -> bool:
        return is_basic_tier(self.profile)

    @property
    def visible_phone(self) -> Optional[str]:
        return self.profile.phone if self.phone_revealed else None

    def contact(self) -> ContactAction:
        if self.is_basic_tier and self.profile.phone:
            self.phone_revealed = True
            logger.info("Revealed phone for pro %s", self.profile.id)
            return ContactAction(kind=ContactKind.show_phone, phone=self.profile.phone)
        path = "/messages?" + urlencode({"recipient": self.profile.id})
        return ContactAction(kind=ContactKind.message, messages_path=path)
