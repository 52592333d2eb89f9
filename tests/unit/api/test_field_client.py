from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from src.client.inspection import OfflineInspection
from src.client.negotiation import NegotiationClient
from src.client.network import NetworkMonitor
from src.client.queue import OfflineQueue, RemoteActionExecutor
from src.client.remote import RemoteClient
from src.client.storage import LocalStore
from src.inspection.models import InspectionJob, JobStatus
from src.inspection.service import list_faults, list_steps
from src.negotiation.models import NegotiationStatus, Party


def _remote(app: FastAPI, identity: str) -> RemoteClient:
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    return RemoteClient(
        httpx.AsyncClient(
            transport=transport, base_url="http://test", headers={"X-User": identity}
        )
    )


@pytest.fixture
async def staff_remote(
    app: FastAPI, staff_header: dict[str, str]
) -> AsyncGenerator[RemoteClient]:
    remote = _remote(app, staff_header["X-User"])
    yield remote
    await remote.aclose()


@pytest.fixture
async def admin_remote(
    app: FastAPI, admin_header: dict[str, str]
) -> AsyncGenerator[RemoteClient]:
    remote = _remote(app, admin_header["X-User"])
    yield remote
    await remote.aclose()


class TestOfflineInspectionAgainstService:
    async def test_offline_work_lands_after_reconnect(
        self,
        db_session: AsyncSession,
        job: InspectionJob,
        staff_remote: RemoteClient,
        tmp_path: Path,
    ) -> None:
        store = LocalStore(tmp_path / "device.json")
        monitor = NetworkMonitor(online=False)
        queue = OfflineQueue(
            store=store, monitor=monitor, executor=RemoteActionExecutor(staff_remote)
        )
        inspection = OfflineInspection(str(job.id), store, queue, staff_remote, monitor)
        steps = await list_steps(db_session, job.id)

        for step in steps:
            await inspection.update_step(
                str(step.id), {"is_complete": True, "rating": 4}
            )
        await inspection.add_fault({"type": "tyres", "description": "Bald front left"})
        await inspection.upload_media(
            "front.jpg", b"jpeg", "exterior", step_id=str(steps[0].id)
        )
        assert await inspection.submit() is False
        assert len(queue) == len(steps) + 3

        await monitor.set_online(True)

        assert len(queue) == 0
        assert job.status is JobStatus.SUBMITTED
        assert [f.description for f in await list_faults(db_session, job.id)] == [
            "Bald front left"
        ]
        assert steps[0].photo_url is not None
        assert steps[0].photo_url.endswith("_front.jpg")


class TestNegotiationAgainstService:
    async def test_counter_and_accept(
        self,
        job: InspectionJob,
        staff_remote: RemoteClient,
        admin_remote: RemoteClient,
    ) -> None:
        inspector = NegotiationClient(staff_remote, str(job.id), Party.INSPECTOR)
        admin = NegotiationClient(admin_remote, str(job.id), Party.ADMIN)

        await inspector.make_offer(5000)
        await admin.refresh()
        assert admin.can_respond()
        await admin.make_offer(4500, notes="Tyres need replacing")
        await inspector.refresh()
        state = await inspector.accept()

        assert state.status is NegotiationStatus.AGREED
        assert state.final_agreed_price == 4500
        assert [o.status.value for o in state.offers] == ["superseded", "accepted"]
