from dataclasses import dataclass

import httpx

from src.client.network import NetworkMonitor
from src.client.queue import OfflineQueue, RemoteActionExecutor, RetryPolicy
from src.client.remote import API_URL, RemoteClient
from src.client.storage import CLIENT_STATE_PATH, LocalStore


@dataclass
class FieldClient:
    """Everything a device needs to work offline against the service."""

    store: LocalStore
    monitor: NetworkMonitor
    remote: RemoteClient
    queue: OfflineQueue

    async def aclose(self) -> None:
        self.queue.shutdown()
        await self.remote.aclose()
        await self.monitor.aclose()


def create_field_client(
    identity: str,
    base_url: str = API_URL,
    policy: RetryPolicy | None = None,
) -> FieldClient:
    """Wire the local store, network monitor, remote client and queue together."""
    store = LocalStore(CLIENT_STATE_PATH)
    monitor = NetworkMonitor(client=httpx.AsyncClient(base_url=base_url))
    remote = RemoteClient.create(identity, base_url)
    queue = OfflineQueue(
        store=store,
        monitor=monitor,
        executor=RemoteActionExecutor(remote),
        policy=policy or RetryPolicy(),
    )
    return FieldClient(store=store, monitor=monitor, remote=remote, queue=queue)
