from __future__ import annotations

import os
from typing import Any
from uuid import UUID

import httpx

API_URL = os.environ.get("AUTOINSPECT_API_URL", "http://localhost:8000")

# Statuses worth retrying even though they are 4xx.
_TRANSIENT_CLIENT_STATUSES = frozenset({408, 429})


class RemoteError(Exception):
    """Any failed call to the service, transport errors included."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_rejection(self) -> bool:
        """The service refused the request itself; retrying will not help."""
        return (
            self.status_code is not None
            and 400 <= self.status_code < 500
            and self.status_code not in _TRANSIENT_CLIENT_STATUSES
        )


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        if "detail" in body:
            return str(body["detail"])
        error = body.get("error")
        if isinstance(error, dict) and "message" in error:
            return str(error["message"])
    return str(body)


class RemoteClient:
    """Typed wrapper over the service HTTP API."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def create(cls, identity: str, base_url: str = API_URL) -> RemoteClient:
        """`identity` is the `name:email` pair sent as `X-User`."""
        return cls(httpx.AsyncClient(base_url=base_url, headers={"X-User": identity}))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {url} failed: {exc}") from exc
        if response.is_error:
            raise RemoteError(_detail(response), status_code=response.status_code)
        return response

    # ── Jobs ──

    async def list_jobs(self) -> list[dict[str, Any]]:
        return (await self._request("GET", "/jobs")).json()

    async def get_job(self, job_id: UUID | str) -> dict[str, Any]:
        return (await self._request("GET", f"/jobs/{job_id}")).json()

    async def update_step(
        self, step_id: UUID | str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        return (await self._request("PATCH", f"/steps/{step_id}", json=updates)).json()

    async def report_fault(
        self, job_id: UUID | str, fault: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self._request("POST", f"/jobs/{job_id}/faults", json=fault)
        return response.json()

    async def upload_media(
        self,
        job_id: UUID | str,
        path: str,
        content: bytes,
        section: str,
        step_id: UUID | str | None = None,
        caption: str | None = None,
    ) -> dict[str, Any]:
        params = {"path": path, "section": section}
        if step_id is not None:
            params["step_id"] = str(step_id)
        if caption:
            params["caption"] = caption
        response = await self._request(
            "PUT",
            f"/jobs/{job_id}/media",
            params=params,
            content=content,
            headers={"Content-Type": "application/octet-stream"},
        )
        return response.json()

    async def submit_job(self, job_id: UUID | str) -> dict[str, Any]:
        return (await self._request("POST", f"/jobs/{job_id}/submit")).json()

    # ── Negotiation ──

    async def get_negotiation(self, job_id: UUID | str) -> dict[str, Any]:
        return (await self._request("GET", f"/jobs/{job_id}/negotiation")).json()

    async def make_offer(
        self, job_id: UUID | str, amount: float, notes: str | None = None
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/jobs/{job_id}/negotiation/offers",
            json={"amount": amount, "notes": notes},
        )
        return response.json()

    async def accept_offer(self, job_id: UUID | str) -> dict[str, Any]:
        response = await self._request("POST", f"/jobs/{job_id}/negotiation/accept")
        return response.json()

    async def decline_offer(self, job_id: UUID | str) -> dict[str, Any]:
        response = await self._request("POST", f"/jobs/{job_id}/negotiation/decline")
        return response.json()

    # ── Push ──

    async def register_push_token(self, token: str, platform: str = "web") -> None:
        await self._request(
            "POST", "/push-tokens", json={"token": token, "platform": platform}
        )
