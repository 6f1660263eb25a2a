"""HTTP implementation of the negotiation contract.

Talks JSON to the marketplace API with httpx. The bearer token is handed in at
construction; this module never looks for credentials on its own. Responses
have Mongo-style ids normalized before they are validated into models.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import AuthenticationError, RemoteError
from ..models import Job, Poll, Proposal
from ..utils import normalize_ids
from .base import NegotiationContract

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _seg(value: str) -> str:
    return quote(str(value), safe="")


def _parse(model: Type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Unexpected %s payload: %s", model.__name__, exc)
        raise RemoteError(f"server sent an invalid {model.__name__}") from exc


class HttpContract(NegotiationContract):
    """Marketplace API client backed by `httpx.AsyncClient`."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_s: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._headers: Dict[str, str] = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_s, follow_redirects=True
        )

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[httpx.AsyncClient] = None) -> "HttpContract":
        return cls(settings.api_url, token=settings.access_token, timeout_s=settings.timeout_s, client=client)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpContract":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """Prefer the server's `message` field; fall back to the status line."""
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message")
            if isinstance(message, list):
                message = "; ".join(str(m) for m in message)
            if message:
                return str(message)
        return f"HTTP {resp.status_code} {resp.reason_phrase}".strip()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug("%s %s", method, path)
        try:
            resp = await self._client.request(method, path, json=json, headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = self._error_message(exc.response)
            logger.warning("%s %s -> %s: %s", method, path, status, message)
            if status == 401:
                raise AuthenticationError(message, status_code=status) from exc
            raise RemoteError(message, status_code=status) from exc
        except httpx.HTTPError as exc:
            # Transport, decoding and redirect failures alike.
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteError(f"{method} {path} failed: {exc}") from exc

        if not resp.content:
            return None
        try:
            body = resp.json()
        except ValueError as exc:
            logger.warning("%s %s returned a non-JSON body", method, path)
            raise RemoteError(f"{method} {path} returned invalid JSON", status_code=resp.status_code) from exc
        return normalize_ids(body)

    # ----- jobs -----

    async def list_my_jobs(self) -> List[Job]:
        data = await self._request("GET", "/jobs/my-jobs")
        return [_parse(Job, j) for j in data or []]

    # ----- proposals -----

    async def list_proposals(self, job_id: str) -> List[Proposal]:
        data = await self._request("GET", f"/jobs/{_seg(job_id)}/proposals")
        return [_parse(Proposal, p) for p in data or []]

    async def submit_proposal(self, job_id: str, payload: Dict[str, Any]) -> Proposal:
        data = await self._request("POST", f"/jobs/{_seg(job_id)}/proposals", json=payload)
        return _parse(Proposal, data)

    async def accept_proposal(self, proposal_id: str) -> None:
        await self._request("POST", f"/jobs/proposals/{_seg(proposal_id)}/accept")

    async def reject_proposal(self, proposal_id: str) -> None:
        await self._request("POST", f"/jobs/proposals/{_seg(proposal_id)}/reject")

    async def withdraw_proposal(self, proposal_id: str) -> None:
        await self._request("POST", f"/jobs/proposals/{_seg(proposal_id)}/withdraw")

    async def shortlist_proposal(self, proposal_id: str, hiring_choice: str) -> None:
        await self._request(
            "POST", f"/jobs/proposals/{_seg(proposal_id)}/shortlist", json={"hiringChoice": hiring_choice}
        )

    async def reveal_contact(self, proposal_id: str) -> None:
        await self._request("POST", f"/jobs/proposals/{_seg(proposal_id)}/reveal-contact")

    async def mark_proposals_viewed(self, job_id: str) -> None:
        await self._request("POST", f"/jobs/counters/mark-proposals-viewed/{_seg(job_id)}")

    # ----- polls -----

    async def list_polls(self, job_id: str) -> List[Poll]:
        data = await self._request("GET", f"/jobs/{_seg(job_id)}/polls")
        return [_parse(Poll, p) for p in data or []]

    async def create_poll(self, job_id: str, payload: Dict[str, Any]) -> Poll:
        data = await self._request("POST", f"/jobs/{_seg(job_id)}/polls", json=payload)
        return _parse(Poll, data)

    async def vote(self, poll_id: str, option_id: str) -> None:
        await self._request("POST", f"/jobs/polls/{_seg(poll_id)}/vote", json={"optionId": option_id})

    async def approve(self, poll_id: str, option_id: str) -> None:
        await self._request("POST", f"/jobs/polls/{_seg(poll_id)}/approve", json={"optionId": option_id})

    async def close_poll(self, poll_id: str) -> None:
        await self._request("POST", f"/jobs/polls/{_seg(poll_id)}/close")

    async def delete_poll(self, poll_id: str) -> None:
        await self._request("DELETE", f"/jobs/polls/{_seg(poll_id)}")

    async def mark_polls_viewed(self, job_id: str) -> None:
        await self._request("POST", f"/jobs/projects/{_seg(job_id)}/polls/viewed")
