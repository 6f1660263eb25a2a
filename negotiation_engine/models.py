"""Data models for the negotiation engine.

Records mirror what the marketplace API returns: camelCase on the wire,
snake_case in Python. Payloads are expected to have gone through
`utils.normalize_ids` first so that every identifier is exposed as `id`.

Drafts (`ProposalDraft`, `PollDraft`) hold user input before it is sent. They
are validated with `problems()` so that bad input never reaches the network.

This file uses Pydantic v2.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils import ref_id, safe_count

logger = logging.getLogger(__name__)

MIN_POLL_OPTIONS = 2
MAX_POLL_OPTIONS = 6


class JobStatus(str, Enum):
    open = "open"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    expired = "expired"


class ProposalStatus(str, Enum):
    pending = "pending"
    shortlisted = "shortlisted"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"
    in_discussion = "in_discussion"
    completed = "completed"
    # Anything else the server sends; display-only, no action applies.
    unknown = "unknown"


class HiringChoice(str, Enum):
    homico = "homico"  # hired through the platform
    direct = "direct"  # client contacts the pro directly


class PollStatus(str, Enum):
    active = "active"
    approved = "approved"
    closed = "closed"


class DurationUnit(str, Enum):
    days = "days"
    weeks = "weeks"
    months = "months"


class WireModel(BaseModel):
    """Base for records exchanged with the API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PersonRef(WireModel):
    """A user reference that the API sends either as a bare id or populated."""

    id: str
    name: str = ""
    avatar: Optional[str] = None
    phone: Optional[str] = None
    title: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_bare_id(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"id": value}
        return value


# ============== JOB ==============


class Job(WireModel):
    """A posted work request owned by exactly one client."""

    id: str
    title: str = ""
    category: str = ""
    subcategory: Optional[str] = None
    location: Optional[str] = None
    status: JobStatus = JobStatus.open

    client: PersonRef = Field(..., alias="clientId")
    hired_pro: Optional[PersonRef] = None

    proposal_count: int = Field(default=0, description="Denormalized, server-maintained.")
    view_count: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("proposal_count", "view_count", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return safe_count(value)

    @field_validator("hired_pro", mode="before")
    @classmethod
    def _hired_pro_ref(cls, value: Any) -> Any:
        # Hired pros carry their user account under userId; permissions compare user ids.
        if isinstance(value, dict) and isinstance(value.get("userId"), dict):
            return {**value, **value["userId"]}
        return value

    @property
    def client_id(self) -> str:
        return self.client.id

    @property
    def hired_pro_id(self) -> Optional[str]:
        return self.hired_pro.id if self.hired_pro else None


# ============== PROPOSAL ==============


class Proposal(WireModel):
    """A professional's offer against one job."""

    id: str
    job_id: str = ""
    pro: PersonRef = Field(..., alias="proId")

    cover_letter: str = ""
    proposed_price: Optional[float] = Field(default=None, description="Base currency units, already scaled.")
    estimated_duration: Optional[int] = None
    estimated_duration_unit: DurationUnit = DurationUnit.days

    status: ProposalStatus = ProposalStatus.pending
    hiring_choice: Optional[HiringChoice] = None
    contact_revealed: bool = False
    revealed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def _job_ref(cls, value: Any) -> Any:
        return ref_id(value)

    @field_validator("proposed_price", mode="before")
    @classmethod
    def _positive_price(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)) and value <= 0:
            return None
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, value: Any) -> Any:
        if value is None:
            return ProposalStatus.pending
        if isinstance(value, ProposalStatus):
            return value
        try:
            return ProposalStatus(value)
        except ValueError:
            logger.warning("Unrecognized proposal status %r", value)
            return ProposalStatus.unknown

    @field_validator("hiring_choice", mode="before")
    @classmethod
    def _known_choice(cls, value: Any) -> Any:
        if value is None or isinstance(value, HiringChoice):
            return value
        try:
            return HiringChoice(value)
        except ValueError:
            logger.warning("Unrecognized hiring choice %r", value)
            return None

    @field_validator("contact_revealed", mode="before")
    @classmethod
    def _revealed_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def pro_profile_id(self) -> str:
        return self.pro.id


# ============== POLL ==============


class _OptionBase(WireModel):
    kind: ClassVar[str]

    id: str
    text: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)


class TextOption(_OptionBase):
    kind: ClassVar[str] = "text"
    text: str = Field(..., min_length=1)


class ImageOption(_OptionBase):
    kind: ClassVar[str] = "image"
    image_url: str = Field(..., min_length=1)


class ImageTextOption(_OptionBase):
    kind: ClassVar[str] = "image_text"
    text: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1)


def _option_tag(value: Any) -> Optional[str]:
    """Pick the option variant from whichever of text/image is present."""
    if isinstance(value, dict):
        text = value.get("text")
        image = value.get("imageUrl", value.get("image_url"))
    else:
        text = getattr(value, "text", None)
        image = getattr(value, "image_url", None)
    has_text = bool(text and str(text).strip())
    has_image = bool(image and str(image).strip())
    if has_text and has_image:
        return "image_text"
    if has_image:
        return "image"
    if has_text:
        return "text"
    # No tag: pydantic reports the option as invalid.
    return None


PollOption = Annotated[
    Union[
        Annotated[TextOption, Tag("text")],
        Annotated[ImageOption, Tag("image")],
        Annotated[ImageTextOption, Tag("image_text")],
    ],
    Discriminator(_option_tag),
]


class Poll(WireModel):
    """A multi-option decision request posed by a professional to the client."""

    id: str
    job_id: str = ""
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    options: List[PollOption] = Field(..., min_length=MIN_POLL_OPTIONS, max_length=MAX_POLL_OPTIONS)

    status: PollStatus = PollStatus.active
    selected_option: Optional[str] = Field(default=None, description="Set only once approved.")
    client_vote: Optional[str] = None

    created_by: PersonRef
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def _job_ref(cls, value: Any) -> Any:
        return ref_id(value)

    @model_validator(mode="after")
    def _selected_option_exists(self) -> "Poll":
        if self.selected_option is not None and self.selected_option not in self.option_ids:
            raise ValueError(f"selectedOption {self.selected_option!r} is not one of the poll's options")
        return self

    @property
    def option_ids(self) -> List[str]:
        return [opt.id for opt in self.options]

    @property
    def has_images(self) -> bool:
        """Layout hint: image grid when any option carries an image."""
        return any(opt.has_image for opt in self.options)

    @property
    def creator_id(self) -> str:
        return self.created_by.id


# ============== CONTACT ==============


class ProProfile(WireModel):
    """The slice of a professional's public profile the contact gate needs."""

    id: str
    name: str = ""
    phone: Optional[str] = None
    premium_tier: Optional[str] = None


# ============== DRAFTS ==============


class ProposalDraft(BaseModel):
    """Proposal form input from a professional."""

    cover_letter: str = ""
    proposed_price: Optional[float] = None
    estimated_duration: Optional[int] = None
    estimated_duration_unit: DurationUnit = DurationUnit.days

    def problems(self) -> List[str]:
        out: List[str] = []
        if not self.cover_letter.strip():
            out.append("Cover letter is required")
        if self.proposed_price is not None and not self.proposed_price > 0:
            out.append("Proposed price must be a positive amount")
        if self.estimated_duration is not None and self.estimated_duration < 1:
            out.append("Estimated duration must be at least 1")
        return out

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "coverLetter": self.cover_letter.strip(),
            "estimatedDurationUnit": self.estimated_duration_unit.value,
        }
        if self.proposed_price is not None:
            payload["proposedPrice"] = self.proposed_price
        if self.estimated_duration is not None:
            payload["estimatedDuration"] = self.estimated_duration
        return payload


class PollOptionDraft(BaseModel):
    text: Optional[str] = None
    image_url: Optional[str] = Field(default=None, description="Set once the upload succeeded.")

    @property
    def is_usable(self) -> bool:
        return bool((self.text or "").strip()) or bool(self.image_url)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if (self.text or "").strip():
            payload["text"] = self.text.strip()
        if self.image_url:
            payload["imageUrl"] = self.image_url
        return payload


class PollDraft(BaseModel):
    """Poll form input from a professional. Blank option slots are dropped."""

    title: str = ""
    description: Optional[str] = None
    options: List[PollOptionDraft] = Field(default_factory=list)

    @property
    def usable_options(self) -> List[PollOptionDraft]:
        return [opt for opt in self.options if opt.is_usable]

    def problems(self) -> List[str]:
        out: List[str] = []
        if not self.title.strip():
            out.append("Title is required")
        usable = len(self.usable_options)
        if usable < MIN_POLL_OPTIONS:
            out.append(f"At least {MIN_POLL_OPTIONS} options are required")
        elif usable > MAX_POLL_OPTIONS:
            out.append(f"At most {MAX_POLL_OPTIONS} options are allowed")
        return out

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": self.title.strip(),
            "options": [opt.to_payload() for opt in self.usable_options],
        }
        if self.description and self.description.strip():
            payload["description"] = self.description.strip()
        return payload
