"""Remote contract implementations."""

from .base import NegotiationContract
from .http import HttpContract

__all__ = ["HttpContract", "NegotiationContract"]
