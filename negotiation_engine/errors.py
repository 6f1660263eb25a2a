"""Exception types raised by the negotiation workflow.

Everything derives from `NegotiationError` so a host application can catch the
whole family in one place. The split mirrors how each failure is surfaced:

- `DraftValidationError`, `PermissionDeniedError`, `InvalidTransitionError`,
  `EntityBusyError` and `UnknownEntityError` are raised locally, before any
  request leaves the process.
- `RemoteError` (and `AuthenticationError`) wrap a failed round trip.
"""

from __future__ import annotations

from typing import List, Optional


class NegotiationError(Exception):
    """Base class for all workflow errors."""


class DraftValidationError(NegotiationError):
    """User input failed client-side validation; nothing was sent."""

    def __init__(self, problems: List[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid input")


class PermissionDeniedError(NegotiationError):
    """The viewer's role does not allow this action."""


class InvalidTransitionError(NegotiationError):
    """The entity's current status does not allow the requested action."""

    def __init__(self, entity: str, current: str, action: str) -> None:
        self.entity = entity
        self.current = current
        self.action = action
        super().__init__(f"{entity} in status '{current}': cannot {action}")


class EntityBusyError(NegotiationError):
    """Another mutation for the same entity is still in flight."""

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"a request for {entity_id} is already in flight")


class UnknownEntityError(NegotiationError, LookupError):
    """The id is not present in any loaded cache."""


class RemoteError(NegotiationError):
    """The remote contract rejected the request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_stale_state(self) -> bool:
        """True when the server says our view of the entity is out of date."""
        return self.status_code in (400, 409, 422)


class AuthenticationError(RemoteError):
    """The credentials were rejected (HTTP 401)."""
