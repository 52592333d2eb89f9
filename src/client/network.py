from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[bool], Awaitable[None] | None]


class NetworkMonitor:
    """Connectivity flag that notifies listeners on transitions only."""

    def __init__(
        self, online: bool = True, client: httpx.AsyncClient | None = None
    ) -> None:
        self._online = online
        self._client = client
        self._listeners: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Network is %s", "online" if online else "offline")
        for listener in list(self._listeners):
            result = listener(online)
            if inspect.isawaitable(result):
                await result

    async def probe(self) -> bool:
        """Check the service health endpoint and record the outcome."""
        if self._client is None:
            return self._online
        try:
            response = await self._client.get("/health")
            online = response.status_code == 200
        except httpx.HTTPError:
            online = False
        await self.set_online(online)
        return online

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
